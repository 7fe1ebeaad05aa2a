"""Convex HTTP action client with retry logic."""

import asyncio
from typing import Any

import httpx

from animuse.core.contracts import FetchResult, RecommendationRecord
from animuse.core.studios import get_studio
from animuse.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 3
BASE_BACKOFF = 1.0


class ConvexError(Exception):
    """Base exception for Convex API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConvexRateLimitError(ConvexError):
    """Rate limit exceeded."""

    def __init__(self, retry_after: int | None = None):
        super().__init__("Rate limit exceeded", status_code=429)
        self.retry_after = retry_after


class ConvexClient:
    """Async client for a Convex deployment's HTTP function API."""

    def __init__(
        self,
        base_url: str,
        deploy_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff: float = BASE_BACKOFF,
    ):
        """Initialize Convex client.

        Args:
            base_url: Deployment URL (e.g., "https://happy-otter-123.convex.cloud")
            deploy_key: Optional deploy key sent as a Convex authorization header
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
            backoff: Base delay in seconds for exponential retry backoff
        """
        self.base_url = base_url.rstrip("/")
        self.deploy_key = deploy_key
        self.timeout = timeout
        self.backoff = backoff
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.deploy_key:
                headers["Authorization"] = f"Convex {self.deploy_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def run_action(self, path: str, args: dict[str, Any] | None = None) -> Any:
        """Run a Convex action and return its value.

        Args:
            path: Function path (e.g., "externalApis:fetchMadhouseAnime")
            args: Action arguments

        Returns:
            Decoded action return value

        Raises:
            ConvexError: On API error after retries exhausted
        """
        client = await self._get_client()
        body = {"path": path, "args": args or {}, "format": "json"}
        last_error: Exception | None = None

        for attempt in range(MAX_RETRIES):
            wait_time = self.backoff * (2 ** attempt)
            try:
                response = await client.post("/api/action", json=body)

                if response.status_code == 200:
                    data = response.json()
                    if data.get("status") == "success":
                        return data.get("value")
                    raise ConvexError(data.get("errorMessage") or "Action failed")

                if response.status_code == 429:
                    retry_after = response.headers.get("Retry-After")
                    if retry_after:
                        wait_time = int(retry_after)
                    logger.warning(
                        f"Convex rate limited, retry after {wait_time}s "
                        f"(attempt {attempt + 1}/{MAX_RETRIES})"
                    )
                    if attempt < MAX_RETRIES - 1:
                        await asyncio.sleep(wait_time)
                        continue
                    raise ConvexRateLimitError(retry_after=int(retry_after) if retry_after else None)

                if response.status_code >= 500:
                    logger.warning(
                        f"Convex server error {response.status_code}, "
                        f"retry in {wait_time}s (attempt {attempt + 1}/{MAX_RETRIES})"
                    )
                    if attempt < MAX_RETRIES - 1:
                        await asyncio.sleep(wait_time)
                        continue
                    raise ConvexError(
                        f"Server error: {response.status_code}",
                        status_code=response.status_code,
                    )

                # Client error (4xx except 429)
                error_data = response.json() if response.content else {}
                error_msg = error_data.get("errorMessage", f"HTTP {response.status_code}")
                raise ConvexError(error_msg, status_code=response.status_code)

            except httpx.TimeoutException as e:
                logger.warning(
                    f"Convex timeout, retry in {wait_time}s "
                    f"(attempt {attempt + 1}/{MAX_RETRIES})"
                )
                last_error = e
                if attempt < MAX_RETRIES - 1:
                    await asyncio.sleep(wait_time)
                    continue

            except httpx.RequestError as e:
                logger.warning(
                    f"Convex request error: {e}, retry in {wait_time}s "
                    f"(attempt {attempt + 1}/{MAX_RETRIES})"
                )
                last_error = e
                if attempt < MAX_RETRIES - 1:
                    await asyncio.sleep(wait_time)
                    continue

        raise ConvexError(f"Max retries exceeded: {last_error}")


def parse_records(raw_items: Any) -> list[RecommendationRecord]:
    """Convert raw anime dicts into records, skipping malformed ones.

    Args:
        raw_items: List of dicts from the action's `animes` field

    Returns:
        Parsed records in source order
    """
    if not isinstance(raw_items, list):
        return []

    records: list[RecommendationRecord] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        try:
            records.append(RecommendationRecord.from_dict(raw))
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed record {raw.get('title')!r}: {e}")
    return records


class ConvexRemoteFetcher:
    """Fetches studio catalogs through the studio's Convex action."""

    def __init__(self, client: ConvexClient) -> None:
        self.client = client

    async def fetch_by_source(self, source_id: str, limit: int) -> FetchResult:
        """Fetch up to `limit` records for a studio source.

        Raises:
            ConvexError: On transport or API failure
        """
        profile = get_studio(source_id)
        if profile is None:
            return FetchResult(error=f"Unknown source: {source_id}")

        value = await self.client.run_action(profile.action_path, {"limit": limit})
        if not isinstance(value, dict):
            return FetchResult(error="Unexpected response from source")

        if value.get("error"):
            return FetchResult(error=str(value["error"]))

        return FetchResult(records=parse_records(value.get("animes")))
