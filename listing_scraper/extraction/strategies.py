"""
Photo extraction strategies.

Each strategy scans the raw page markup independently and returns photo
candidates tagged with its own name. Strategies never see each other's
output; the merger is the only place their results meet.
"""

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator, List, Optional

from listing_scraper.extraction.errors import StructuredDataParseError
from listing_scraper.models.listing import PhotoCandidate, RawContent, StrategyName
from listing_scraper.utils.logging_config import get_logger

logger = get_logger()

DEFAULT_BASE_URL = "https://www.vrbo.com"

IMAGE_EXTENSION_PATTERN = re.compile(r'\.(jpe?g|png|webp|gif|avif)(\?.*)?$', re.IGNORECASE)

DENYLIST_KEYWORDS = (
    'pixel', 'tracking', 'analytics', 'beacon', '1x1', 'blank', 'empty',
    'placeholder', 'logo', 'icon', 'favicon', 'spinner', 'loader', 'loading'
)

IMG_TAG_PATTERN = re.compile(r'<img\b[^>]*>', re.IGNORECASE)
SOURCE_TAG_PATTERN = re.compile(r'<(?:img|source)\b[^>]*>', re.IGNORECASE)
SCRIPT_PATTERN = re.compile(r'<script\b([^>]*)>(.*?)</script>', re.IGNORECASE | re.DOTALL)
LD_JSON_TYPE_PATTERN = re.compile(r'type\s*=\s*["\']application/ld\+json["\']', re.IGNORECASE)


def _attribute_pattern(name: str) -> re.Pattern:
    # The lookbehind keeps "src" from matching inside "data-src"
    return re.compile(
        r'(?<![\w-])' + re.escape(name) + r'\s*=\s*(?:"([^"]*)"|\'([^\']*)\')',
        re.IGNORECASE
    )


def _attribute_values(tag: str, pattern: re.Pattern) -> Iterator[str]:
    for match in pattern.finditer(tag):
        value = match.group(1) if match.group(1) is not None else match.group(2)
        if value:
            yield value


def normalize_image_url(url: str, base_url: str = DEFAULT_BASE_URL) -> str:
    """Turn a raw candidate string into an absolute https URL where possible"""
    cleaned = url.strip().strip('"\'').strip()
    cleaned = cleaned.replace('\\/', '/').replace('\\u002F', '/').replace('\\u002f', '/')
    cleaned = cleaned.replace('&amp;', '&')

    if cleaned.startswith('//'):
        cleaned = 'https:' + cleaned
    elif cleaned.startswith('/'):
        cleaned = base_url.rstrip('/') + cleaned
    return cleaned


def is_valid_image_url(url: str) -> bool:
    """True for absolute http(s) image URLs that are not tracking pixels or UI chrome"""
    if not url or not isinstance(url, str):
        return False
    if not (url.startswith('http://') or url.startswith('https://')):
        return False
    if not IMAGE_EXTENSION_PATTERN.search(url):
        return False
    lowered = url.lower()
    return not any(keyword in lowered for keyword in DENYLIST_KEYWORDS)


class ExtractionStrategy(ABC):
    """Base class for photo extraction strategies"""

    name: StrategyName

    def __init__(self, base_url: str = DEFAULT_BASE_URL):
        self.base_url = base_url

    @abstractmethod
    def _scan(self, text: str) -> Iterable[str]:
        """Yield raw candidate strings found in the page"""

    def extract(self, raw: RawContent) -> List[PhotoCandidate]:
        """Scan page content and return validated candidates in document order"""
        candidates = []
        seen = set()
        for value in self._scan(raw.text or ''):
            url = normalize_image_url(value, self.base_url)
            if url in seen or not is_valid_image_url(url):
                continue
            seen.add(url)
            candidates.append(PhotoCandidate(url=url, source_strategy=self.name))
        return candidates


class StaticTagStrategy(ExtractionStrategy):
    """Plain src attributes of img tags"""

    name = StrategyName.STATIC
    _src = _attribute_pattern('src')

    def _scan(self, text: str) -> Iterable[str]:
        for tag in IMG_TAG_PATTERN.findall(text):
            yield from _attribute_values(tag, self._src)


class LazyAttributeStrategy(ExtractionStrategy):
    """Deferred-loading attributes, responsive srcsets and inline background images"""

    name = StrategyName.LAZY

    LAZY_ATTRIBUTES = (
        'data-src', 'data-lazy-src', 'data-original', 'data-url',
        'data-hero-src', 'data-gallery-src', 'data-photo-src'
    )
    _lazy = [_attribute_pattern(attr) for attr in LAZY_ATTRIBUTES]
    _srcset = [_attribute_pattern('srcset'), _attribute_pattern('data-srcset')]
    _background = re.compile(
        r'background-image\s*:\s*url\(\s*(?:&quot;|["\'])?([^)]+?)(?:&quot;|["\'])?\s*\)',
        re.IGNORECASE
    )

    def _scan(self, text: str) -> Iterable[str]:
        for tag in IMG_TAG_PATTERN.findall(text):
            for pattern in self._lazy:
                yield from _attribute_values(tag, pattern)

        for tag in SOURCE_TAG_PATTERN.findall(text):
            for pattern in self._srcset:
                for srcset in _attribute_values(tag, pattern):
                    yield from self._split_srcset(srcset)

        for match in self._background.finditer(text):
            yield match.group(1)

    @staticmethod
    def _split_srcset(srcset: str) -> Iterator[str]:
        # "a.jpg 1x, b.jpg 2x" -> a.jpg, b.jpg
        for part in srcset.split(','):
            tokens = part.strip().split()
            if tokens:
                yield tokens[0]


class GalleryArrayStrategy(ExtractionStrategy):
    """Photo arrays assigned to gallery-like keys inside inline scripts"""

    name = StrategyName.GALLERY

    # Keys may carry a prefix, e.g. galleryImages, listingPhotos
    _array = re.compile(
        r'["\']?\w*(?:images?|photos?|gallery(?:data)?|imageurls?)["\']?'
        r'\s*[:=]\s*\[(.*?)\]',
        re.IGNORECASE | re.DOTALL
    )
    _quoted_image = re.compile(
        r'["\']([^"\'\s]+?\.(?:jpe?g|png|webp|gif|avif)(?:\?[^"\'\s]*)?)["\']',
        re.IGNORECASE
    )

    def _scan(self, text: str) -> Iterable[str]:
        for attributes, body in SCRIPT_PATTERN.findall(text):
            if LD_JSON_TYPE_PATTERN.search(attributes):
                continue
            for array in self._array.findall(body):
                for url in self._quoted_image.findall(array):
                    yield url


class StructuredDataStrategy(ExtractionStrategy):
    """Image properties of schema.org objects in JSON-LD blocks"""

    name = StrategyName.STRUCTURED

    IMAGE_PROPERTIES = (
        'image', 'images', 'photo', 'photos', 'primaryImageOfPage', 'thumbnail', 'thumbnailUrl'
    )

    def _scan(self, text: str) -> Iterable[str]:
        for index, (attributes, body) in enumerate(SCRIPT_PATTERN.findall(text)):
            if not LD_JSON_TYPE_PATTERN.search(attributes):
                continue
            try:
                data = self._parse_block(body)
            except StructuredDataParseError as e:
                logger.warning(f"Skipping structured data block {index}: {e}", strategy=self.name.value)
                continue
            yield from self._walk(data)

    @staticmethod
    def _parse_block(body: str) -> Any:
        try:
            return json.loads(body.strip())
        except json.JSONDecodeError as e:
            raise StructuredDataParseError(f"invalid JSON-LD ({e.msg} at line {e.lineno})") from e

    def _walk(self, node: Any) -> Iterator[str]:
        if isinstance(node, list):
            for item in node:
                yield from self._walk(item)
        elif isinstance(node, dict):
            for key, value in node.items():
                if key in self.IMAGE_PROPERTIES:
                    yield from self._image_values(value)
                elif isinstance(value, (dict, list)):
                    yield from self._walk(value)

    def _image_values(self, value: Any) -> Iterator[str]:
        if isinstance(value, str):
            yield value
        elif isinstance(value, list):
            for item in value:
                yield from self._image_values(item)
        elif isinstance(value, dict):
            for key in ('url', 'contentUrl'):
                if isinstance(value.get(key), str):
                    yield value[key]
            # ImageObject may nest its own thumbnail
            yield from self._walk({k: v for k, v in value.items() if k not in ('url', 'contentUrl')})


def default_strategies(base_url: Optional[str] = None) -> List[ExtractionStrategy]:
    """All strategies in canonical order"""
    base = base_url or DEFAULT_BASE_URL
    return [
        StaticTagStrategy(base),
        LazyAttributeStrategy(base),
        GalleryArrayStrategy(base),
        StructuredDataStrategy(base),
    ]
