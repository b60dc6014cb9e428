"""
Async extraction engine for a single scrape attempt.
Runs every photo strategy and the metadata extractor over the same page
content, joins their results by strategy, then merges.
"""

import asyncio
import time
from enum import Enum
from typing import Dict, List, Optional, Sequence

from listing_scraper.extraction.merger import ResultMerger
from listing_scraper.extraction.page_metadata import PageMetadataExtractor
from listing_scraper.extraction.strategies import ExtractionStrategy, default_strategies
from listing_scraper.models.listing import (
    ExtractionResult, PageMetadata, PhotoCandidate, RawContent, StrategyName
)
from listing_scraper.utils.config import ScrapingConfig
from listing_scraper.utils.logging_config import get_logger

logger = get_logger()

class ExecutionStrategy(Enum):
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"

class ExtractionEngine:
    """Fan-out / fan-in over the extraction strategies for one attempt"""

    def __init__(self, strategies: Optional[Sequence[ExtractionStrategy]] = None,
                 metadata_extractor: Optional[PageMetadataExtractor] = None,
                 merger: Optional[ResultMerger] = None,
                 execution_strategy: ExecutionStrategy = ExecutionStrategy.PARALLEL):
        self.strategies = list(strategies) if strategies is not None else default_strategies()
        self.metadata_extractor = metadata_extractor or PageMetadataExtractor()
        self.merger = merger or ResultMerger()
        self.execution_strategy = execution_strategy

    @classmethod
    def from_config(cls, config: ScrapingConfig) -> 'ExtractionEngine':
        return cls(
            strategies=default_strategies(config.platform_base_url),
            merger=ResultMerger(max_photos=config.max_photos),
            execution_strategy=ExecutionStrategy.PARALLEL if config.parallel_strategies else ExecutionStrategy.SEQUENTIAL
        )

    async def extract(self, raw: RawContent, job_id: Optional[str] = None) -> ExtractionResult:
        """Run all strategies over the page and merge their candidates"""
        start_time = time.monotonic()

        if self.execution_strategy == ExecutionStrategy.PARALLEL:
            candidates, errors, metadata = await self._execute_parallel(raw, job_id)
        else:
            candidates, errors, metadata = self._execute_sequential(raw, job_id)

        for strategy in self.strategies:
            key = strategy.name.value
            logger.log_strategy_stats(job_id, key, len(candidates.get(strategy.name, ())), errors.get(key))

        processing_time_ms = int((time.monotonic() - start_time) * 1000)
        result = self.merger.merge(candidates, metadata, processing_time_ms=processing_time_ms,
                                   strategy_errors=errors)

        stats = result.extraction_stats
        logger.info(
            f"Extraction merged {stats.total_found} candidates into {stats.total_processed} photos "
            f"({stats.duplicates_removed} duplicates) in {processing_time_ms} ms",
            job_id=job_id
        )
        return result

    async def _execute_parallel(self, raw: RawContent, job_id: Optional[str]):
        """Run every strategy in the default executor and await them by name"""
        loop = asyncio.get_running_loop()

        tasks = [(strategy, loop.run_in_executor(None, strategy.extract, raw)) for strategy in self.strategies]
        metadata_task = loop.run_in_executor(None, self.metadata_extractor.extract, raw)

        candidates: Dict[StrategyName, List[PhotoCandidate]] = {}
        errors: Dict[str, str] = {}
        for strategy, task in tasks:
            try:
                candidates[strategy.name] = await task
            except Exception as e:
                logger.error(f"Strategy {strategy.name.value} failed: {str(e)}", job_id=job_id,
                             strategy=strategy.name.value, exc_info=True)
                candidates[strategy.name] = []
                errors[strategy.name.value] = str(e) or e.__class__.__name__

        try:
            metadata = await metadata_task
        except Exception as e:
            logger.error(f"Metadata extraction failed: {str(e)}", job_id=job_id, exc_info=True)
            metadata = PageMetadata()
            errors['metadata'] = str(e) or e.__class__.__name__

        return candidates, errors, metadata

    def _execute_sequential(self, raw: RawContent, job_id: Optional[str]):
        """Run strategies one after another in canonical order"""
        candidates: Dict[StrategyName, List[PhotoCandidate]] = {}
        errors: Dict[str, str] = {}
        for strategy in self.strategies:
            try:
                candidates[strategy.name] = strategy.extract(raw)
            except Exception as e:
                logger.error(f"Strategy {strategy.name.value} failed: {str(e)}", job_id=job_id,
                             strategy=strategy.name.value, exc_info=True)
                candidates[strategy.name] = []
                errors[strategy.name.value] = str(e) or e.__class__.__name__

        try:
            metadata = self.metadata_extractor.extract(raw)
        except Exception as e:
            logger.error(f"Metadata extraction failed: {str(e)}", job_id=job_id, exc_info=True)
            metadata = PageMetadata()
            errors['metadata'] = str(e) or e.__class__.__name__

        return candidates, errors, metadata
