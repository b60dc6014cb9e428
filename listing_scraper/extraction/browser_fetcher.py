"""
Browser-automation fetcher for pages that only render their gallery client side.
"""

import time
from datetime import datetime
from typing import Callable, Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options

from listing_scraper.extraction.errors import TransientFetchError
from listing_scraper.extraction.fetcher import ContentFetcher, check_page_content
from listing_scraper.models.listing import RawContent
from listing_scraper.utils.config import DEFAULT_USER_AGENT
from listing_scraper.utils.logging_config import get_logger

logger = get_logger()


def chrome_options(user_agent: str = DEFAULT_USER_AGENT, headless: bool = True) -> Options:
    """Chrome options suited to headless scraping on small servers"""
    options = Options()
    if headless:
        options.add_argument('--headless=new')
    options.add_argument('--window-size=1280,900')
    options.add_argument(f'--user-agent={user_agent}')
    options.add_argument('--disable-blink-features=AutomationControlled')
    options.add_experimental_option("excludeSwitches", ["enable-automation"])
    options.add_experimental_option('useAutomationExtension', False)
    options.add_argument('--no-sandbox')
    options.add_argument('--disable-dev-shm-usage')
    options.add_argument('--disable-gpu')
    options.add_argument('--disable-extensions')
    return options


class BrowserContentFetcher(ContentFetcher):
    """Fetches the rendered page with a Selenium-driven Chrome, one driver per fetch"""

    name = "browser"

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, min_content_length: int = 1000,
                 render_wait_seconds: float = 2.0, headless: bool = True,
                 driver_factory: Optional[Callable[[], webdriver.Remote]] = None):
        self.user_agent = user_agent
        self.min_content_length = min_content_length
        self.render_wait_seconds = render_wait_seconds
        self.headless = headless
        self.driver_factory = driver_factory or self._default_driver

    def _default_driver(self):
        return webdriver.Chrome(options=chrome_options(self.user_agent, self.headless))

    def fetch(self, url: str, timeout: float) -> RawContent:
        try:
            driver = self.driver_factory()
        except WebDriverException as e:
            raise TransientFetchError(f"Could not start browser: {e.msg}", reason="browser_error", url=url) from e

        try:
            driver.set_page_load_timeout(timeout)
            logger.info(f"Fetching with Selenium: {url}")
            driver.get(url)
            # Lazy galleries populate shortly after load
            if self.render_wait_seconds:
                time.sleep(self.render_wait_seconds)
            text = driver.page_source
        except TimeoutException as e:
            raise TransientFetchError(f"Page load timed out for {url}", reason="timeout", url=url) from e
        except WebDriverException as e:
            raise TransientFetchError(f"Browser error for {url}: {e.msg}", reason="browser_error", url=url) from e
        finally:
            try:
                driver.quit()
            except WebDriverException as e:
                logger.warning(f"Failed to quit browser cleanly: {e.msg}")

        check_page_content(url, text, self.min_content_length)
        return RawContent(url=url, text=text, fetched_at=datetime.now(), fetcher=self.name)
