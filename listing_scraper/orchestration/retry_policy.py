"""
Failure classification and backoff for scrape attempts.
"""

import asyncio
from typing import Tuple

from listing_scraper.extraction.errors import MergeInvariantViolation, PermanentFetchError
from listing_scraper.storage.memory_store import FailureKind
from listing_scraper.utils.validation import ValidationError

PERMANENT_ERRORS: Tuple[type, ...] = (PermanentFetchError, ValidationError, MergeInvariantViolation)


def classify_failure(exc: BaseException) -> FailureKind:
    """Decide whether a failed attempt may be retried. Anything not known to be
    permanent is transient, unexpected crashes included."""
    if isinstance(exc, PERMANENT_ERRORS):
        return FailureKind.PERMANENT
    return FailureKind.TRANSIENT


def compute_backoff(attempt: int, base_delay: float, multiplier: float = 2.0,
                    max_delay: float = 60.0) -> float:
    """Delay before the attempt after `attempt`: min(base * multiplier^attempt, max)"""
    return min(base_delay * (multiplier ** attempt), max_delay)


def describe_failure(exc: BaseException) -> str:
    """Human readable error text stored on the job"""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)) and not str(exc):
        return "Attempt timed out"
    message = str(exc) or exc.__class__.__name__
    reason = getattr(exc, 'reason', None)
    return f"{reason}: {message}" if reason else message
