"""
Domain model for extracted listing data.
Everything here is immutable once built; results are shared between the
worker pool and status readers without copying.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any, Tuple


class StrategyName(Enum):
    STATIC = "static"
    LAZY = "lazy"
    GALLERY = "gallery"
    STRUCTURED = "structured"


# Canonical precedence used when merging candidates
STRATEGY_ORDER = (
    StrategyName.STATIC,
    StrategyName.LAZY,
    StrategyName.GALLERY,
    StrategyName.STRUCTURED,
)


class AmenityPriority(Enum):
    ESSENTIAL = "essential"
    IMPORTANT = "important"
    NICE_TO_HAVE = "nice_to_have"


@dataclass(frozen=True)
class RawContent:
    """Page content retrieved for a single attempt"""
    url: str
    text: str
    fetched_at: datetime = field(default_factory=datetime.now)
    status_code: Optional[int] = None
    fetcher: str = "http"


@dataclass(frozen=True)
class PhotoCandidate:
    """A photo URL found by one strategy"""
    url: str
    source_strategy: StrategyName

    @property
    def fingerprint(self) -> str:
        return photo_fingerprint(self.url)


def photo_fingerprint(url: str) -> str:
    """Canonical identity of a photo: lowercased, query string stripped"""
    return url.split('?', 1)[0].lower()


@dataclass(frozen=True)
class Amenity:
    name: str
    category: str = "general"
    priority: AmenityPriority = AmenityPriority.NICE_TO_HAVE
    verified: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'category': self.category,
            'priority': self.priority.value,
            'verified': self.verified
        }


@dataclass(frozen=True)
class RoomGroup:
    name: str
    room_type: str
    details: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'room_type': self.room_type, 'details': list(self.details)}


@dataclass(frozen=True)
class PropertySpecifications:
    property_type: str = "Vacation Rental"
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    max_guests: Optional[int] = None
    square_footage: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'property_type': self.property_type,
            'bedrooms': self.bedrooms,
            'bathrooms': self.bathrooms,
            'max_guests': self.max_guests,
            'square_footage': self.square_footage
        }


@dataclass(frozen=True)
class PropertyLocation:
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    street_address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'city': self.city,
            'state': self.state,
            'country': self.country,
            'postal_code': self.postal_code,
            'street_address': self.street_address,
            'latitude': self.latitude,
            'longitude': self.longitude
        }


@dataclass(frozen=True)
class PageMetadata:
    """Non-photo listing data read from the page"""
    title: Optional[str] = None
    description: Optional[str] = None
    amenities: Tuple[Amenity, ...] = ()
    rooms: Tuple[RoomGroup, ...] = ()
    specifications: PropertySpecifications = field(default_factory=PropertySpecifications)
    location: PropertyLocation = field(default_factory=PropertyLocation)


@dataclass(frozen=True)
class ExtractionStats:
    count_per_strategy: Dict[str, int] = field(default_factory=dict)
    total_found: int = 0
    duplicates_removed: int = 0
    total_processed: int = 0
    strategy_errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count_per_strategy': dict(self.count_per_strategy),
            'total_found': self.total_found,
            'duplicates_removed': self.duplicates_removed,
            'total_processed': self.total_processed,
            'strategy_errors': dict(self.strategy_errors)
        }


@dataclass(frozen=True)
class ExtractionResult:
    """Canonical output of one successful scrape attempt"""
    photos: Tuple[PhotoCandidate, ...] = ()
    amenities: Tuple[Amenity, ...] = ()
    rooms: Tuple[RoomGroup, ...] = ()
    specifications: PropertySpecifications = field(default_factory=PropertySpecifications)
    location: PropertyLocation = field(default_factory=PropertyLocation)
    title: Optional[str] = None
    description: Optional[str] = None
    extraction_stats: ExtractionStats = field(default_factory=ExtractionStats)
    processing_time_ms: int = 0

    @property
    def photo_urls(self) -> List[str]:
        return [photo.url for photo in self.photos]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'photos': self.photo_urls,
            'amenities': [amenity.to_dict() for amenity in self.amenities],
            'rooms': [room.to_dict() for room in self.rooms],
            'specifications': self.specifications.to_dict(),
            'location': self.location.to_dict(),
            'title': self.title,
            'description': self.description,
            'extraction_stats': self.extraction_stats.to_dict(),
            'processing_time_ms': self.processing_time_ms
        }
