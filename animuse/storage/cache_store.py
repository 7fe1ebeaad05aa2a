"""Expiring, schema-versioned cache of fetched record lists."""

import json
import time
from typing import Any, Callable

from animuse.core.contracts import CacheEntry, RecommendationRecord
from animuse.core.errors import CacheCorruptError, StorageWriteError
from animuse.logging import get_logger
from animuse.storage.kv import KeyValueStorage

logger = get_logger(__name__)

DEFAULT_TTL_MILLIS = 24 * 60 * 60 * 1000


def now_millis() -> int:
    return int(time.time() * 1000)


class CacheStore:
    """Cache over a key-value storage engine.

    An entry is valid while it is younger than the TTL and carries the
    running schema version. Storage failures are logged and swallowed so the
    store degrades to "no cache" instead of failing callers.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        ttl_millis: int = DEFAULT_TTL_MILLIS,
        schema_version: str = "1",
        namespace: str = "animuse",
        clock: Callable[[], int] = now_millis,
    ) -> None:
        """Initialize cache store.

        Args:
            storage: Key-value engine holding serialized entries
            ttl_millis: Maximum entry age in milliseconds
            schema_version: Version written with entries and required on read
            namespace: Prefix separating these keys from other users of the storage
            clock: Millisecond epoch clock
        """
        self.storage = storage
        self.ttl_millis = ttl_millis
        self.schema_version = schema_version
        self.namespace = namespace
        self._clock = clock

    def now(self) -> int:
        return self._clock()

    def key_for(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def is_fresh(self, entry: CacheEntry) -> bool:
        """Check TTL and schema version of an entry."""
        if entry.schema_version != self.schema_version:
            return False
        return entry.age_millis(self._clock()) < self.ttl_millis

    async def read(self, key: str, allow_expired: bool = False) -> CacheEntry | None:
        """Read an entry, deleting it if it is corrupt, mismatched or expired.

        Args:
            key: Cache key (without namespace)
            allow_expired: Return an expired entry instead of deleting it;
                used when falling back to last-known data after a failed fetch

        Returns:
            CacheEntry or None on miss
        """
        full_key = self.key_for(key)

        try:
            raw = await self.storage.get_item(full_key)
        except Exception as e:
            logger.warning(f"Cache read failed for {full_key}: {e}")
            return None

        if raw is None:
            return None

        try:
            entry = self._decode(raw)
        except CacheCorruptError as e:
            logger.warning(f"Dropping cache entry {full_key}: {e.message}")
            await self._remove(full_key)
            return None

        if not allow_expired and not self.is_fresh(entry):
            logger.info(f"Cache entry {full_key} expired, removing")
            await self._remove(full_key)
            return None

        return entry

    async def write(self, key: str, payload: list[RecommendationRecord]) -> bool:
        """Persist a payload stamped with the current time (best-effort).

        Returns:
            True if the entry was stored
        """
        full_key = self.key_for(key)
        document = {
            "payload": [record.to_dict() for record in payload],
            "fetchedAtMillis": self._clock(),
            "schemaVersion": self.schema_version,
        }

        try:
            raw = json.dumps(document, ensure_ascii=False, separators=(",", ":"))
            await self.storage.set_item(full_key, raw)
        except Exception as e:
            error = StorageWriteError(f"Cache write failed for {full_key}: {e}", operation="write")
            logger.warning(error.message)
            return False

        return True

    async def invalidate(self, key: str) -> None:
        """Delete an entry unconditionally."""
        await self._remove(self.key_for(key))

    async def _remove(self, full_key: str) -> None:
        try:
            await self.storage.remove_item(full_key)
        except Exception as e:
            logger.warning(f"Cache delete failed for {full_key}: {e}")

    def _decode(self, raw: str) -> CacheEntry:
        try:
            document: Any = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise CacheCorruptError(f"unparseable entry ({e})")

        if not isinstance(document, dict):
            raise CacheCorruptError("entry is not an object")

        version = document.get("schemaVersion")
        if version != self.schema_version:
            raise CacheCorruptError(
                f"schema version {version!r} does not match {self.schema_version!r}"
            )

        items = document.get("payload")
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise CacheCorruptError("payload is not a list of objects")

        try:
            payload = [RecommendationRecord.from_dict(item) for item in items]
            fetched_at = int(document["fetchedAtMillis"])
        except (KeyError, TypeError, ValueError) as e:
            raise CacheCorruptError(f"malformed entry ({e})")

        return CacheEntry(payload=payload, fetched_at_millis=fetched_at, schema_version=version)
