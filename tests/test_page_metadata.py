"""Tests for PageMetadataExtractor.

Coverage:
- Title/description fallback chain (JSON-LD, Open Graph, <title>)
- Specifications from structured data and from page text
- Location from JSON-LD address/geo and meta tags
- Amenities: structured (verified), markup, keyword fallback, priorities
- Rooms from containsPlace and from headings
"""

from __future__ import annotations

from listing_scraper.extraction.page_metadata import (
    PageMetadataExtractor,
    categorize_amenity,
    prioritize_amenity,
)
from listing_scraper.models.listing import AmenityPriority
from tests.helpers import make_raw


def _extract(html: str):
    return PageMetadataExtractor().extract(make_raw(html))


class TestSampleListing:
    def test_title_and_description(self, sample_raw) -> None:
        metadata = PageMetadataExtractor().extract(sample_raw)
        assert metadata.title == "Oceanfront Cottage"
        assert metadata.description == "A bright cottage steps from the beach."

    def test_specifications(self, sample_raw) -> None:
        specs = PageMetadataExtractor().extract(sample_raw).specifications
        assert specs.property_type == "Vacation Rental"
        assert specs.bedrooms == 3
        assert specs.bathrooms == 2.5
        assert specs.max_guests == 8
        assert specs.square_footage == 1450

    def test_location(self, sample_raw) -> None:
        location = PageMetadataExtractor().extract(sample_raw).location
        assert location.city == "Cannon Beach"
        assert location.state == "OR"
        assert location.country == "US"
        assert location.postal_code == "97110"
        assert location.street_address == "12 Shore Rd"
        assert location.latitude == 45.89
        assert location.longitude == -123.96

    def test_amenities(self, sample_raw) -> None:
        amenities = {a.name: a for a in PageMetadataExtractor().extract(sample_raw).amenities}
        assert set(amenities) == {"WiFi", "Hot tub", "Board games", "Dishwasher", "Free parking"}
        assert amenities["WiFi"].verified is True
        assert amenities["WiFi"].priority is AmenityPriority.ESSENTIAL
        assert amenities["Dishwasher"].verified is False
        assert amenities["Dishwasher"].category == "kitchen"
        assert amenities["Board games"].priority is AmenityPriority.NICE_TO_HAVE

    def test_rooms(self, sample_raw) -> None:
        rooms = PageMetadataExtractor().extract(sample_raw).rooms
        assert [(r.name, r.room_type, r.details) for r in rooms] == [
            ("Bedroom 1", "bedroom", ("1 King Bed",)),
            ("Bedroom 2", "bedroom", ("2 Twin Beds",)),
        ]


class TestFallbacks:
    def test_open_graph_then_title(self) -> None:
        metadata = _extract('<html><head><meta property="og:title" content="OG Title"></head></html>')
        assert metadata.title == "OG Title"

        metadata = _extract("<html><head><title>  Plain   Title </title></head></html>")
        assert metadata.title == "Plain Title"

    def test_text_patterns_fill_specifications(self) -> None:
        html = "<body><p>Cozy 2 bedrooms and 1 bathroom cabin. Sleeps 4.</p></body>"
        specs = _extract(html).specifications
        assert (specs.bedrooms, specs.bathrooms, specs.max_guests) == (2, 1.0, 4)
        assert specs.property_type == "Vacation Rental"

    def test_lodging_type_maps_property_type(self) -> None:
        html = '<script type="application/ld+json">{"@type": "Apartment", "name": "Loft"}</script>'
        assert _extract(html).specifications.property_type == "Apartment"

    def test_meta_location_and_out_of_range_coordinates(self) -> None:
        html = (
            '<meta property="og:locality" content="Aspen">'
            '<meta property="og:region" content="CO">'
            '<meta property="place:location:latitude" content="123.0">'
            '<meta property="place:location:longitude" content="-106.8">'
        )
        location = _extract(html).location
        assert location.city == "Aspen"
        assert location.state == "CO"
        assert location.latitude is None
        assert location.longitude == -106.8

    def test_keyword_amenities_when_no_list(self) -> None:
        html = "<body><p>Enjoy free WiFi, a private pool and a pet friendly yard.</p></body>"
        names = [a.name for a in _extract(html).amenities]
        assert names == ["WiFi", "Pool", "Pets Allowed"]

    def test_malformed_page_never_raises(self) -> None:
        metadata = _extract('<div><script type="application/ld+json">{oops</script><p>Bedroom')
        assert metadata.title is None
        assert metadata.amenities == ()

    def test_non_finite_numbers_are_dropped(self) -> None:
        html = (
            '<script type="application/ld+json">'
            '{"@type": "VacationRental", "name": "X", "numberOfRooms": Infinity,'
            ' "numberOfBathroomsTotal": NaN, "geo": {"latitude": -Infinity, "longitude": 10}}'
            "</script>"
        )
        metadata = _extract(html)
        assert metadata.title == "X"
        assert metadata.specifications.bedrooms is None
        assert metadata.specifications.bathrooms is None
        assert metadata.location.latitude is None
        assert metadata.location.longitude == 10.0

    def test_unexpected_json_ld_shapes(self) -> None:
        html = (
            '<script type="application/ld+json">{"@type": 5, "name": "Odd"}</script>'
            '<script type="application/ld+json">'
            '{"@type": "House", "name": "Cabin", "amenityFeature": 3, "containsPlace": true}'
            "</script>"
        )
        metadata = _extract(html)
        assert metadata.title == "Cabin"
        assert metadata.specifications.property_type == "House"
        assert metadata.rooms == ()


def test_amenity_priority_and_category_helpers() -> None:
    assert prioritize_amenity("High-speed Internet") is AmenityPriority.ESSENTIAL
    assert prioritize_amenity("Washer") is AmenityPriority.IMPORTANT
    assert prioritize_amenity("Kayaks") is AmenityPriority.NICE_TO_HAVE
    assert categorize_amenity("Gas grill") == "outdoor"
    assert categorize_amenity("Kayaks") == "general"
