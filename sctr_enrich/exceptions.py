"""
Custom exceptions for the enrichment pipeline.

Only RankDatasetError is expected to reach callers of ``enrich``; the
others are raised by upstream clients and contained by the stage that
called them.
"""


class SctrEnrichError(Exception):
    """Base exception for all enrichment errors."""


class UpstreamError(SctrEnrichError):
    """Network failure, timeout, or unexpected response from an upstream."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(UpstreamError):
    """Upstream answered 429; the caller should stop issuing requests."""

    def __init__(self, source: str, status_code: int = 429):
        self.source = source
        super().__init__(f"{source} rate limit hit (HTTP {status_code})", status_code)


class RankDatasetError(UpstreamError):
    """The full SCTR dataset could not be fetched; no enrichment is possible."""
