"""Error taxonomy for the recommendation cache-and-filter layer."""


class RecsError(Exception):
    """Base exception for recommendation pipeline errors."""

    kind = "error"

    def __init__(
        self,
        message: str,
        source_id: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.source_id = source_id
        self.operation = operation


class CacheCorruptError(RecsError):
    """Cached entry could not be parsed or has an incompatible schema version."""

    kind = "cache_corrupt"


class StorageWriteError(RecsError):
    """Cache entry could not be persisted (quota, disk, driver error)."""

    kind = "storage_write_failed"


class FetchFailedError(RecsError):
    """Remote fetch raised or returned a transport-level error."""

    kind = "fetch_failed"


class FetchEmptyError(RecsError):
    """Remote fetch succeeded but returned no records."""

    kind = "fetch_empty"


class FilterTimeoutError(RecsError):
    """Offloaded task did not finish within the pool's task timeout."""

    kind = "filter_timeout"

    def __init__(self, task_type: str, timeout: float, source_id: str | None = None):
        super().__init__(
            f"Task {task_type} timed out after {timeout:g}s",
            source_id=source_id,
            operation=task_type,
        )
        self.task_type = task_type
        self.timeout = timeout


class UnknownTaskError(RecsError):
    """Worker pool received a task type with no registered handler."""

    kind = "unknown_task"
