"""
Merges per-strategy photo candidates and page metadata into one canonical result.
"""

from typing import Dict, List, Mapping, Optional, Sequence

from listing_scraper.extraction.errors import MergeInvariantViolation
from listing_scraper.extraction.strategies import is_valid_image_url
from listing_scraper.models.listing import (
    ExtractionResult, ExtractionStats, PageMetadata, PhotoCandidate, STRATEGY_ORDER, StrategyName
)


class ResultMerger:
    """Deduplicates candidates in fixed strategy precedence and builds the result"""

    def __init__(self, max_photos: int = 50):
        self.max_photos = max_photos

    def merge(self, candidates_by_strategy: Mapping[StrategyName, Sequence[PhotoCandidate]],
              page_metadata: Optional[PageMetadata] = None,
              processing_time_ms: int = 0,
              strategy_errors: Optional[Dict[str, str]] = None) -> ExtractionResult:
        """Merge candidates; first occurrence of a fingerprint wins, in static→lazy→gallery→structured order"""
        metadata = page_metadata or PageMetadata()
        self._check_contract(candidates_by_strategy)

        photos: List[PhotoCandidate] = []
        seen = set()
        total_found = 0
        duplicates = 0
        counts = {}

        for strategy in STRATEGY_ORDER:
            candidates = candidates_by_strategy.get(strategy) or ()
            counts[strategy.value] = len(candidates)
            total_found += len(candidates)
            for candidate in candidates:
                key = candidate.fingerprint
                if key in seen:
                    duplicates += 1
                    continue
                seen.add(key)
                photos.append(candidate)

        photos = photos[:self.max_photos]

        stats = ExtractionStats(
            count_per_strategy=counts,
            total_found=total_found,
            duplicates_removed=duplicates,
            total_processed=len(photos),
            strategy_errors=dict(strategy_errors or {})
        )

        return ExtractionResult(
            photos=tuple(photos),
            amenities=metadata.amenities,
            rooms=metadata.rooms,
            specifications=metadata.specifications,
            location=metadata.location,
            title=metadata.title,
            description=metadata.description,
            extraction_stats=stats,
            processing_time_ms=processing_time_ms
        )

    @staticmethod
    def _check_contract(candidates_by_strategy: Mapping[StrategyName, Sequence[PhotoCandidate]]) -> None:
        for strategy, candidates in candidates_by_strategy.items():
            if strategy not in STRATEGY_ORDER:
                raise MergeInvariantViolation(f"Unknown strategy: {strategy!r}")
            for candidate in candidates or ():
                if candidate.source_strategy is not strategy:
                    raise MergeInvariantViolation(
                        f"Candidate {candidate.url} from {candidate.source_strategy.value} "
                        f"filed under {strategy.value}"
                    )
                if not is_valid_image_url(candidate.url):
                    raise MergeInvariantViolation(f"Candidate is not a valid image URL: {candidate.url}")
