"""Shared fixtures: a sample listing page and a fast-retry configuration."""

from __future__ import annotations

import os
import tempfile
from typing import List, Optional

# Keep test runs from writing into the repository's logs/ directory
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="listing_scraper_logs_"))

import pytest

from listing_scraper.extraction.fetcher import ContentFetcher
from listing_scraper.models.listing import RawContent
from listing_scraper.orchestration.orchestrator import JobOrchestrator
from listing_scraper.storage.memory_store import JobStore
from listing_scraper.utils.config import ScrapingConfig
from tests.helpers import SAMPLE_LISTING_HTML, FakeFetcher, make_raw


@pytest.fixture
def sample_raw() -> RawContent:
    return make_raw(SAMPLE_LISTING_HTML)


@pytest.fixture
def fast_config() -> ScrapingConfig:
    return ScrapingConfig(
        max_attempts=3,
        retry_base_delay_seconds=0.01,
        retry_max_delay_seconds=0.05,
        retry_backoff_multiplier=2.0,
        attempt_timeout_seconds=1.0,
        max_concurrent_jobs=2,
        maintenance_interval_seconds=3600,
    )


@pytest.fixture
def make_orchestrator(fast_config):
    """Factory for started orchestrators; all are shut down after the test."""
    created: List[JobOrchestrator] = []

    def _make(fetcher: Optional[ContentFetcher] = None, config: Optional[ScrapingConfig] = None,
              queue=None) -> JobOrchestrator:
        orchestrator = JobOrchestrator(
            store=JobStore(),
            fetcher=fetcher or FakeFetcher(),
            config=config or fast_config,
            queue=queue,
        )
        orchestrator.start()
        created.append(orchestrator)
        return orchestrator

    yield _make

    for orchestrator in created:
        orchestrator.shutdown()
