"""
Non-photo listing data: title, description, specifications, location, amenities and rooms.
Structured data (JSON-LD) is preferred; meta tags and page text fill the gaps.
"""

import json
import math
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup

from listing_scraper.models.listing import (
    Amenity, AmenityPriority, PageMetadata, PropertyLocation, PropertySpecifications, RawContent, RoomGroup
)
from listing_scraper.utils.logging_config import get_logger

logger = get_logger()

DEFAULT_PROPERTY_TYPE = "Vacation Rental"

LODGING_TYPES = {
    'VacationRental': 'Vacation Rental',
    'LodgingBusiness': 'Vacation Rental',
    'Accommodation': 'Vacation Rental',
    'House': 'House',
    'SingleFamilyResidence': 'House',
    'Apartment': 'Apartment',
    'Condominium': 'Condo',
    'Residence': 'Residence',
    'Suite': 'Suite',
    'Hotel': 'Hotel',
    'BedAndBreakfast': 'Bed and Breakfast',
}

# Keyword scan used when the page exposes no amenity list
AMENITY_KEYWORDS = [
    ("WiFi", [r'wi.?fi', r'internet', r'wireless']),
    ("Kitchen", [r'kitchen', r'cooking']),
    ("Parking", [r'parking', r'garage']),
    ("Pool", [r'\bpool\b', r'swimming']),
    ("Hot Tub", [r'hot.?tub', r'jacuzzi']),
    ("Air Conditioning", [r'air.?condition', r'\ba/c\b']),
    ("Heating", [r'heating']),
    ("Fireplace", [r'fire.?place']),
    ("Washer/Dryer", [r'washer', r'dryer', r'laundry']),
    ("Dishwasher", [r'dishwasher']),
    ("TV", [r'television', r'\btv\b']),
    ("Pets Allowed", [r'pet.?friendly', r'pets?\s+allowed']),
]

AMENITY_CATEGORIES = [
    ('connectivity', ('wifi', 'wi-fi', 'internet')),
    ('kitchen', ('kitchen', 'dishwasher', 'microwave', 'oven', 'stove', 'coffee', 'refrigerator', 'fridge')),
    ('outdoor', ('pool', 'hot tub', 'patio', 'deck', 'balcony', 'grill', 'bbq', 'garden', 'yard')),
    ('climate', ('air conditioning', 'heating', 'fan')),
    ('laundry', ('washer', 'dryer', 'laundry', 'iron')),
    ('entertainment', ('tv', 'television', 'fireplace', 'game', 'cable', 'streaming')),
    ('safety', ('smoke', 'carbon monoxide', 'fire extinguisher', 'first aid')),
]

ESSENTIAL_AMENITIES = ('wifi', 'internet', 'kitchen', 'parking', 'heating', 'air conditioning')
IMPORTANT_AMENITIES = ('pool', 'hot tub', 'washer', 'dryer', 'tv', 'dishwasher')

ROOM_HEADING = re.compile(
    r'^(bedroom|bathroom|half bath|full bath|living room|family room|dining room|bunk room|'
    r'kitchen|loft|den|office|sunroom)(?:\s*#?\s*\d+)?$',
    re.IGNORECASE
)

BEDROOMS_PATTERN = re.compile(r'(\d+)\s*(?:bedrooms?|br\b)', re.IGNORECASE)
BATHROOMS_PATTERN = re.compile(r'(\d+(?:\.\d+)?)\s*(?:bathrooms?|baths?\b|ba\b)', re.IGNORECASE)
GUESTS_PATTERNS = [
    re.compile(r'(?:sleeps|accommodates)\s*(?:up\s+to\s+)?(\d+)', re.IGNORECASE),
    re.compile(r'(\d+)\s*guests?\b', re.IGNORECASE),
]
AREA_PATTERN = re.compile(r'(\d[\d,]*)\s*(?:sq\.?\s*ft|square\s+feet|ft²)', re.IGNORECASE)


def categorize_amenity(name: str) -> str:
    lowered = name.lower()
    for category, keywords in AMENITY_CATEGORIES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return 'general'


def prioritize_amenity(name: str) -> AmenityPriority:
    lowered = name.lower()
    if any(keyword in lowered for keyword in ESSENTIAL_AMENITIES):
        return AmenityPriority.ESSENTIAL
    if any(keyword in lowered for keyword in IMPORTANT_AMENITIES):
        return AmenityPriority.IMPORTANT
    return AmenityPriority.NICE_TO_HAVE


def _clean(text: Any) -> Optional[str]:
    if not isinstance(text, str):
        return None
    cleaned = re.sub(r'\s+', ' ', text).strip()
    return cleaned or None


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, dict):
        value = value.get('maxValue', value.get('value'))
    try:
        return int(float(str(value).replace(',', '')))
    except (TypeError, ValueError, OverflowError):
        return None


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, dict):
        value = value.get('value')
    try:
        number = float(str(value).replace(',', ''))
    except (TypeError, ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


class PageMetadataExtractor:
    """Extracts listing metadata from a page with BeautifulSoup"""

    def extract(self, raw: RawContent) -> PageMetadata:
        soup = BeautifulSoup(raw.text or '', 'html.parser')
        objects = list(self._json_ld_objects(soup))
        listing = self._listing_object(objects)

        # Scripts and styles only add noise to text patterns
        for tag in soup(['script', 'style', 'noscript']):
            tag.decompose()
        page_text = soup.get_text(' ')

        return PageMetadata(
            title=self._title(soup, listing),
            description=self._description(soup, listing),
            amenities=tuple(self._amenities(soup, listing, page_text)),
            rooms=tuple(self._rooms(soup, listing)),
            specifications=self._specifications(listing, page_text),
            location=self._location(soup, listing)
        )

    # Structured data
    def _json_ld_objects(self, soup: BeautifulSoup) -> Iterator[Dict[str, Any]]:
        for script in soup.find_all('script', attrs={'type': 'application/ld+json'}):
            try:
                data = json.loads(script.string or script.get_text() or '')
            except json.JSONDecodeError as e:
                logger.debug(f"Ignoring malformed JSON-LD block: {e.msg}")
                continue
            yield from self._flatten(data)

    def _flatten(self, data: Any) -> Iterator[Dict[str, Any]]:
        if isinstance(data, list):
            for item in data:
                yield from self._flatten(item)
        elif isinstance(data, dict):
            yield data
            if '@graph' in data:
                yield from self._flatten(data['@graph'])

    @staticmethod
    def _types(obj: Dict[str, Any]) -> List[str]:
        value = obj.get('@type')
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [v for v in value if isinstance(v, str)]
        return []

    def _listing_object(self, objects: List[Dict[str, Any]]) -> Dict[str, Any]:
        for obj in objects:
            if any(t in LODGING_TYPES for t in self._types(obj)):
                return obj
        for obj in objects:
            if obj.get('name') and ('address' in obj or 'image' in obj):
                return obj
        return {}

    @staticmethod
    def _meta(soup: BeautifulSoup, *keys: str) -> Optional[str]:
        for key in keys:
            tag = soup.find('meta', attrs={'property': key}) or soup.find('meta', attrs={'name': key})
            if tag and _clean(tag.get('content')):
                return _clean(tag.get('content'))
        return None

    # Fields
    def _title(self, soup: BeautifulSoup, listing: Dict[str, Any]) -> Optional[str]:
        title = _clean(listing.get('name')) or self._meta(soup, 'og:title')
        if not title and soup.title:
            title = _clean(soup.title.get_text())
        return title

    def _description(self, soup: BeautifulSoup, listing: Dict[str, Any]) -> Optional[str]:
        return _clean(listing.get('description')) or self._meta(soup, 'og:description', 'description')

    def _specifications(self, listing: Dict[str, Any], page_text: str) -> PropertySpecifications:
        bedrooms = _to_int(listing.get('numberOfBedrooms', listing.get('numberOfRooms')))
        bathrooms = _to_float(listing.get('numberOfBathroomsTotal', listing.get('numberOfBathrooms')))
        max_guests = _to_int(listing.get('occupancy'))
        square_footage = _to_int(listing.get('floorSize'))

        if bedrooms is None:
            match = BEDROOMS_PATTERN.search(page_text)
            bedrooms = int(match.group(1)) if match else None
        if bathrooms is None:
            match = BATHROOMS_PATTERN.search(page_text)
            bathrooms = float(match.group(1)) if match else None
        if max_guests is None:
            for pattern in GUESTS_PATTERNS:
                match = pattern.search(page_text)
                if match:
                    max_guests = int(match.group(1))
                    break
        if square_footage is None:
            match = AREA_PATTERN.search(page_text)
            square_footage = _to_int(match.group(1)) if match else None

        property_type = DEFAULT_PROPERTY_TYPE
        for t in self._types(listing):
            if t in LODGING_TYPES:
                property_type = LODGING_TYPES[t]
                break

        return PropertySpecifications(
            property_type=property_type,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            max_guests=max_guests,
            square_footage=square_footage
        )

    def _location(self, soup: BeautifulSoup, listing: Dict[str, Any]) -> PropertyLocation:
        address = listing.get('address') or {}
        if isinstance(address, list):
            address = address[0] if address else {}
        if isinstance(address, str):
            address = {'streetAddress': address}
        if not isinstance(address, dict):
            address = {}
        country = address.get('addressCountry')
        if isinstance(country, dict):
            country = country.get('name')

        geo = listing.get('geo') or {}
        latitude = _to_float(geo.get('latitude')) if isinstance(geo, dict) else None
        longitude = _to_float(geo.get('longitude')) if isinstance(geo, dict) else None
        if latitude is None:
            latitude = _to_float(self._meta(soup, 'place:location:latitude'))
        if longitude is None:
            longitude = _to_float(self._meta(soup, 'place:location:longitude'))
        if latitude is not None and not -90 <= latitude <= 90:
            latitude = None
        if longitude is not None and not -180 <= longitude <= 180:
            longitude = None

        return PropertyLocation(
            city=_clean(address.get('addressLocality')) or self._meta(soup, 'og:locality'),
            state=_clean(address.get('addressRegion')) or self._meta(soup, 'og:region'),
            country=_clean(country) or self._meta(soup, 'og:country-name'),
            postal_code=_clean(str(address['postalCode'])) if address.get('postalCode') else self._meta(soup, 'og:postal-code'),
            street_address=_clean(address.get('streetAddress')) or self._meta(soup, 'og:street-address'),
            latitude=latitude,
            longitude=longitude
        )

    def _amenities(self, soup: BeautifulSoup, listing: Dict[str, Any], page_text: str) -> List[Amenity]:
        found: List[Tuple[str, bool]] = []

        features = listing.get('amenityFeature') or []
        if isinstance(features, dict):
            features = [features]
        elif not isinstance(features, list):
            features = []
        for feature in features:
            if isinstance(feature, dict):
                if feature.get('value') is False:
                    continue
                found.append((feature.get('name'), True))
            elif isinstance(feature, str):
                found.append((feature, True))

        for element in soup.select('[data-amenity]'):
            found.append((element.get('data-amenity') or element.get_text(' '), False))
        for element in soup.find_all(['li', 'span', 'div'], class_=re.compile(r'amenit', re.IGNORECASE)):
            # Leaf elements only, containers repeat their children's text
            if element.find(['li', 'div', 'ul']):
                continue
            found.append((element.get_text(' '), False))

        if not found:
            lowered = page_text.lower()
            for name, patterns in AMENITY_KEYWORDS:
                if any(re.search(pattern, lowered) for pattern in patterns):
                    found.append((name, False))

        amenities = []
        seen = set()
        for name, verified in found:
            name = _clean(name)
            if not name or len(name) > 80 or name.lower() in seen:
                continue
            seen.add(name.lower())
            amenities.append(Amenity(
                name=name,
                category=categorize_amenity(name),
                priority=prioritize_amenity(name),
                verified=verified
            ))
        return amenities

    def _rooms(self, soup: BeautifulSoup, listing: Dict[str, Any]) -> List[RoomGroup]:
        rooms: List[RoomGroup] = []

        places = listing.get('containsPlace') or []
        if isinstance(places, dict):
            places = [places]
        elif not isinstance(places, list):
            places = []
        for place in places:
            if not isinstance(place, dict) or not _clean(place.get('name')):
                continue
            rooms.append(RoomGroup(
                name=_clean(place['name']),
                room_type=self._room_type(place['name']),
                details=tuple(self._bed_details(place.get('bed')))
            ))

        for element in soup.find_all(['h2', 'h3', 'h4', 'h5', 'dt', 'strong', 'span', 'div', 'p']):
            if element.find(True):
                continue
            heading = _clean(element.get_text(' '))
            if not heading or not ROOM_HEADING.match(heading):
                continue
            sibling = element.find_next_sibling()
            detail = _clean(sibling.get_text(' ')) if sibling else None
            rooms.append(RoomGroup(
                name=heading,
                room_type=self._room_type(heading),
                details=(detail,) if detail else ()
            ))

        unique = []
        seen = set()
        for room in rooms:
            if room.name.lower() in seen:
                continue
            seen.add(room.name.lower())
            unique.append(room)
        return unique

    @staticmethod
    def _room_type(name: str) -> str:
        lowered = name.lower()
        if 'bath' in lowered:
            return 'bathroom'
        if 'bed' in lowered or 'bunk' in lowered or 'loft' in lowered:
            return 'bedroom'
        if 'kitchen' in lowered or 'dining' in lowered:
            return 'kitchen'
        if 'living' in lowered or 'family' in lowered or 'den' in lowered or 'sunroom' in lowered:
            return 'living_area'
        return 'other'

    @staticmethod
    def _bed_details(bed: Any) -> Iterator[str]:
        beds = bed if isinstance(bed, list) else [bed] if bed else []
        for item in beds:
            if isinstance(item, str):
                yield item
            elif isinstance(item, dict):
                count = item.get('numberOfBeds')
                kind = item.get('typeOfBed') or 'Bed'
                yield f"{count} {kind}" if count else str(kind)
