"""
Content fetchers. A fetcher retrieves one listing page for one attempt and
reports failures as transient or permanent fetch errors; it never retries
on its own, retry policy belongs to the orchestrator.
"""

import re
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

import requests

from listing_scraper.extraction.errors import PermanentFetchError, TransientFetchError
from listing_scraper.models.listing import RawContent
from listing_scraper.utils.config import DEFAULT_USER_AGENT, ScrapingConfig
from listing_scraper.utils.logging_config import get_logger

logger = get_logger()

BOT_CHALLENGE_MARKERS = (
    'are you a human',
    'verify you are human',
    'pardon our interruption',
    'access to this page has been denied',
    'please complete the security check',
)

# Body markers only count on pages shorter than this; title markers always count
CHALLENGE_PAGE_MAX_LENGTH = 20000

TITLE_PATTERN = re.compile(r'<title[^>]*>(.*?)</title>', re.IGNORECASE | re.DOTALL)


def _is_challenge_page(text: str) -> bool:
    match = TITLE_PATTERN.search(text)
    title = match.group(1).lower() if match else ''
    if any(marker in title for marker in BOT_CHALLENGE_MARKERS):
        return True
    if len(text) > CHALLENGE_PAGE_MAX_LENGTH:
        return False
    lowered = text.lower()
    return any(marker in lowered for marker in BOT_CHALLENGE_MARKERS)


def check_page_content(url: str, text: str, min_content_length: int,
                       status_code: Optional[int] = None) -> None:
    """Reject challenge pages and partial loads; both may succeed on a later attempt"""
    text = text or ''
    if _is_challenge_page(text):
        raise TransientFetchError(
            f"Bot challenge page returned for {url}",
            reason="bot_challenge", status_code=status_code, url=url
        )
    if len(text) < min_content_length:
        raise TransientFetchError(
            f"Page content too short ({len(text)} chars) - may be blocked or redirected",
            reason="truncated_content", status_code=status_code, url=url
        )


class ContentFetcher(ABC):
    """Retrieves raw page content for a listing URL"""

    name = "fetcher"

    @abstractmethod
    def fetch(self, url: str, timeout: float) -> RawContent:
        """Fetch a page or raise TransientFetchError / PermanentFetchError"""

    def close(self) -> None:
        """Release any held resources"""


class HttpContentFetcher(ContentFetcher):
    """Plain HTTP fetcher built on requests"""

    name = "http"

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, min_content_length: int = 1000,
                 session: Optional[requests.Session] = None):
        self.min_content_length = min_content_length
        self.session = session or requests.Session()
        self.session.headers.update(self._default_headers(user_agent))

    @staticmethod
    def _default_headers(user_agent: str) -> Dict[str, str]:
        return {
            'User-Agent': user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
            'Cache-Control': 'no-cache',
        }

    def fetch(self, url: str, timeout: float) -> RawContent:
        try:
            resp = self.session.get(url, timeout=timeout, allow_redirects=True)
        except requests.exceptions.Timeout as e:
            raise TransientFetchError(f"Timeout fetching {url}", reason="timeout", url=url) from e
        except requests.exceptions.ConnectionError as e:
            raise TransientFetchError(f"Connection error fetching {url}: {e}", reason="connection", url=url) from e
        except requests.exceptions.RequestException as e:
            raise TransientFetchError(f"Request failed for {url}: {e}", reason="request_error", url=url) from e

        status = resp.status_code
        if status == 429:
            raise TransientFetchError(f"Rate limited by {url}", reason="rate_limited", status_code=status, url=url)
        if status >= 500:
            raise TransientFetchError(f"Server error {status} from {url}", reason="server_error",
                                      status_code=status, url=url)
        if status in (404, 410):
            raise PermanentFetchError(f"Listing not found: {url}", reason="not_found", status_code=status, url=url)
        if status == 403:
            raise PermanentFetchError(f"Access denied for {url}", reason="access_denied", status_code=status, url=url)
        if status >= 400:
            raise PermanentFetchError(f"HTTP {status} for {url}", reason="http_error", status_code=status, url=url)

        content_type = resp.headers.get('Content-Type', '')
        if content_type and 'html' not in content_type.lower():
            raise PermanentFetchError(f"Unsupported content type {content_type} for {url}",
                                      reason="unsupported_content", status_code=status, url=url)

        text = resp.text
        check_page_content(url, text, self.min_content_length, status)
        logger.debug(f"Fetched {len(text)} chars from {url} (HTTP {status})")

        return RawContent(url=url, text=text, fetched_at=datetime.now(), status_code=status, fetcher=self.name)

    def close(self) -> None:
        self.session.close()


def create_fetcher(config: ScrapingConfig) -> ContentFetcher:
    """Build the fetcher selected by configuration"""
    if config.fetcher_backend == 'browser':
        # Selenium is only imported when the browser backend is selected
        from listing_scraper.extraction.browser_fetcher import BrowserContentFetcher
        return BrowserContentFetcher(user_agent=config.user_agent, min_content_length=config.min_content_length)
    if config.fetcher_backend == 'http':
        return HttpContentFetcher(user_agent=config.user_agent, min_content_length=config.min_content_length)
    raise ValueError(f"Unknown fetcher backend: {config.fetcher_backend}")
