"""
Error taxonomy for fetching and extraction.
The orchestrator's failure classifier decides retry vs terminate from these types.
"""

from typing import Optional


class ScrapeError(Exception):
    """Base class for scrape errors"""
    pass


class FetchError(ScrapeError):
    """Content retrieval failed"""

    def __init__(self, message: str, reason: str = "fetch_error",
                 status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code
        self.url = url


class TransientFetchError(FetchError):
    """Retrieval failure that may succeed on a later attempt (timeouts, throttling, partial loads)"""
    pass


class PermanentFetchError(FetchError):
    """Retrieval failure that will not change on retry (missing listing, access denied)"""
    pass


class StructuredDataParseError(ScrapeError):
    """A structured-data block could not be parsed. Isolated to that block."""
    pass


class MergeInvariantViolation(ScrapeError):
    """Candidates handed to the merger broke the strategy contract"""
    pass


class JobNotFoundError(ScrapeError):
    """No job exists with the given id"""
    pass
