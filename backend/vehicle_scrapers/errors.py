"""
Exception types raised by the ingestion pipeline.

Row-level parse misses are not exceptions: extractors return None and the
adapter logs and counts the skip. Only conditions that change the control
flow of a run are modelled here.
"""

from typing import Optional


class ScraperError(Exception):
    """Base class for all scraper errors."""


class UnknownSourceError(ScraperError):
    """Raised when no adapter is registered for the configured source."""

    def __init__(self, source: str, valid_sources):
        self.source = source
        self.valid_sources = sorted(valid_sources)
        super().__init__(
            f"Unknown scraper source: '{source}'. Valid sources: {', '.join(self.valid_sources)}"
        )


class SourceBlockedError(ScraperError):
    """The source signalled an IP/bot block; the rest of the run is abandoned."""


class SubmissionError(ScraperError):
    """The backend answered an upsert with a non-2xx status."""

    def __init__(self, status_code: int, body: Optional[str] = None):
        self.status_code = status_code
        self.body = (body or '')[:200]
        super().__init__(f"HTTP {status_code}: {self.body}")
