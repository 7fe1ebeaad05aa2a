"""Remote data providers."""

from animuse.providers.convex_client import (
    ConvexClient,
    ConvexError,
    ConvexRateLimitError,
    ConvexRemoteFetcher,
    parse_records,
)

__all__ = [
    "ConvexClient",
    "ConvexError",
    "ConvexRateLimitError",
    "ConvexRemoteFetcher",
    "parse_records",
]
