"""Tests for the content fetchers.

Coverage:
- HTTP status and transport errors mapped to transient/permanent failures
- Bot challenge and truncated pages rejected as transient
- Backend selection from configuration
- Browser fetcher error mapping with a fake driver; driver always quit
"""

from __future__ import annotations

import pytest
import requests
from selenium.common.exceptions import TimeoutException, WebDriverException

from listing_scraper.extraction.browser_fetcher import BrowserContentFetcher
from listing_scraper.extraction.errors import PermanentFetchError, TransientFetchError
from listing_scraper.extraction.fetcher import HttpContentFetcher, check_page_content, create_fetcher
from listing_scraper.utils.config import ScrapingConfig
from tests.helpers import LISTING_URL, SAMPLE_LISTING_HTML


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = SAMPLE_LISTING_HTML,
                 content_type: str = "text/html; charset=utf-8") -> None:
        self.status_code = status_code
        self.text = text
        self.headers = {"Content-Type": content_type}


def _http_fetcher(monkeypatch, outcome) -> HttpContentFetcher:
    fetcher = HttpContentFetcher(min_content_length=1000)

    def fake_get(url, timeout=None, allow_redirects=True):
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    monkeypatch.setattr(fetcher.session, "get", fake_get)
    return fetcher


# ---------------------------------------------------------------------------
# HTTP fetcher
# ---------------------------------------------------------------------------

class TestHttpContentFetcher:
    def test_successful_fetch(self, monkeypatch) -> None:
        raw = _http_fetcher(monkeypatch, FakeResponse()).fetch(LISTING_URL, timeout=5)
        assert raw.url == LISTING_URL
        assert raw.status_code == 200
        assert raw.fetcher == "http"
        assert "Oceanfront Cottage" in raw.text

    def test_sends_browser_headers(self) -> None:
        fetcher = HttpContentFetcher(user_agent="TestAgent/1.0")
        assert fetcher.session.headers["User-Agent"] == "TestAgent/1.0"
        assert "text/html" in fetcher.session.headers["Accept"]

    @pytest.mark.parametrize(
        "status, reason",
        [(429, "rate_limited"), (500, "server_error"), (503, "server_error")],
    )
    def test_transient_statuses(self, monkeypatch, status, reason) -> None:
        fetcher = _http_fetcher(monkeypatch, FakeResponse(status_code=status))
        with pytest.raises(TransientFetchError) as info:
            fetcher.fetch(LISTING_URL, timeout=5)
        assert info.value.reason == reason
        assert info.value.status_code == status

    @pytest.mark.parametrize(
        "status, reason",
        [(404, "not_found"), (410, "not_found"), (403, "access_denied"), (400, "http_error")],
    )
    def test_permanent_statuses(self, monkeypatch, status, reason) -> None:
        fetcher = _http_fetcher(monkeypatch, FakeResponse(status_code=status))
        with pytest.raises(PermanentFetchError) as info:
            fetcher.fetch(LISTING_URL, timeout=5)
        assert info.value.reason == reason

    @pytest.mark.parametrize(
        "exc, reason",
        [
            (requests.exceptions.ConnectTimeout("slow"), "timeout"),
            (requests.exceptions.ConnectionError("reset"), "connection"),
            (requests.exceptions.TooManyRedirects("loop"), "request_error"),
        ],
    )
    def test_transport_errors_are_transient(self, monkeypatch, exc, reason) -> None:
        fetcher = _http_fetcher(monkeypatch, exc)
        with pytest.raises(TransientFetchError) as info:
            fetcher.fetch(LISTING_URL, timeout=5)
        assert info.value.reason == reason
        assert info.value.__cause__ is exc

    def test_non_html_is_permanent(self, monkeypatch) -> None:
        fetcher = _http_fetcher(monkeypatch, FakeResponse(content_type="application/pdf"))
        with pytest.raises(PermanentFetchError) as info:
            fetcher.fetch(LISTING_URL, timeout=5)
        assert info.value.reason == "unsupported_content"

    def test_short_page_is_transient(self, monkeypatch) -> None:
        fetcher = _http_fetcher(monkeypatch, FakeResponse(text="<html></html>"))
        with pytest.raises(TransientFetchError) as info:
            fetcher.fetch(LISTING_URL, timeout=5)
        assert info.value.reason == "truncated_content"


class TestPageContentCheck:
    def test_bot_challenge(self) -> None:
        page = "<html><h1>Pardon Our Interruption</h1>" + "x" * 2000 + "</html>"
        with pytest.raises(TransientFetchError) as info:
            check_page_content(LISTING_URL, page, 1000)
        assert info.value.reason == "bot_challenge"

    def test_challenge_title(self) -> None:
        page = "<html><head><title>Verify you are human</title></head>" + "<script></script>" * 3000 + "</html>"
        with pytest.raises(TransientFetchError) as info:
            check_page_content(LISTING_URL, page, 1000)
        assert info.value.reason == "bot_challenge"

    def test_complete_page_passes(self) -> None:
        check_page_content(LISTING_URL, SAMPLE_LISTING_HTML, 1000)

    def test_listing_with_captcha_widget_passes(self) -> None:
        page = SAMPLE_LISTING_HTML.replace(
            "</head>", '<script src="https://www.google.com/recaptcha/api.js" async defer></script></head>'
        )
        check_page_content(LISTING_URL, page, 1000)

    def test_long_listing_mentioning_challenge_phrase_passes(self) -> None:
        page = SAMPLE_LISTING_HTML.replace(
            "</footer>", "Access to this page has been denied? Contact support.</footer>"
        ) + "<!-- padding -->" * 2000
        check_page_content(LISTING_URL, page, 1000)


class TestCreateFetcher:
    def test_http_backend(self) -> None:
        fetcher = create_fetcher(ScrapingConfig(fetcher_backend="http", min_content_length=10))
        assert isinstance(fetcher, HttpContentFetcher)
        assert fetcher.min_content_length == 10

    def test_browser_backend(self) -> None:
        assert isinstance(create_fetcher(ScrapingConfig(fetcher_backend="browser")), BrowserContentFetcher)

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError):
            create_fetcher(ScrapingConfig(fetcher_backend="carrier-pigeon"))


# ---------------------------------------------------------------------------
# Browser fetcher
# ---------------------------------------------------------------------------

class FakeDriver:
    def __init__(self, page_source: str = SAMPLE_LISTING_HTML, error: Exception = None) -> None:
        self.page_source = page_source
        self.error = error
        self.page_load_timeout = None
        self.visited = []
        self.quit_called = False

    def set_page_load_timeout(self, timeout: float) -> None:
        self.page_load_timeout = timeout

    def get(self, url: str) -> None:
        self.visited.append(url)
        if self.error is not None:
            raise self.error

    def quit(self) -> None:
        self.quit_called = True


class TestBrowserContentFetcher:
    def test_renders_page(self) -> None:
        driver = FakeDriver()
        fetcher = BrowserContentFetcher(render_wait_seconds=0, driver_factory=lambda: driver)

        raw = fetcher.fetch(LISTING_URL, timeout=7)

        assert raw.fetcher == "browser"
        assert raw.text == SAMPLE_LISTING_HTML
        assert driver.visited == [LISTING_URL]
        assert driver.page_load_timeout == 7
        assert driver.quit_called is True

    @pytest.mark.parametrize(
        "error, reason",
        [(TimeoutException("load"), "timeout"), (WebDriverException("crashed"), "browser_error")],
    )
    def test_driver_errors_are_transient(self, error, reason) -> None:
        driver = FakeDriver(error=error)
        fetcher = BrowserContentFetcher(render_wait_seconds=0, driver_factory=lambda: driver)

        with pytest.raises(TransientFetchError) as info:
            fetcher.fetch(LISTING_URL, timeout=7)

        assert info.value.reason == reason
        assert driver.quit_called is True

    def test_driver_start_failure(self) -> None:
        def broken_factory():
            raise WebDriverException("chromedriver missing")

        fetcher = BrowserContentFetcher(driver_factory=broken_factory)
        with pytest.raises(TransientFetchError) as info:
            fetcher.fetch(LISTING_URL, timeout=7)
        assert info.value.reason == "browser_error"

    def test_truncated_render(self) -> None:
        driver = FakeDriver(page_source="<html><body></body></html>")
        fetcher = BrowserContentFetcher(render_wait_seconds=0, driver_factory=lambda: driver)
        with pytest.raises(TransientFetchError) as info:
            fetcher.fetch(LISTING_URL, timeout=7)
        assert info.value.reason == "truncated_content"
        assert driver.quit_called is True
