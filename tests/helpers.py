"""Test helpers: a sample listing page, a scripted fetcher and a polling helper."""

from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional

from listing_scraper.extraction.fetcher import ContentFetcher
from listing_scraper.models.listing import RawContent


LISTING_URL = "https://www.vrbo.com/1234567"

SAMPLE_LISTING_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Oceanfront Cottage | Vrbo</title>
  <meta property="og:title" content="Oceanfront Cottage with Hot Tub">
  <meta property="og:description" content="A bright cottage steps from the beach.">
  <link rel="icon" href="https://www.vrbo.com/favicon.png">
  <script type="application/ld+json">
  {
    "@context": "https://schema.org",
    "@type": "VacationRental",
    "name": "Oceanfront Cottage",
    "description": "A bright   cottage steps from the beach.",
    "image": [
      "https://images.trvl-media.com/lodging/1/hero.jpg?impolicy=resizecrop",
      {"@type": "ImageObject", "url": "https://images.trvl-media.com/lodging/1/deck.jpg"}
    ],
    "numberOfRooms": 3,
    "numberOfBathroomsTotal": 2.5,
    "occupancy": {"@type": "QuantitativeValue", "maxValue": 8},
    "address": {
      "@type": "PostalAddress",
      "streetAddress": "12 Shore Rd",
      "addressLocality": "Cannon Beach",
      "addressRegion": "OR",
      "addressCountry": "US",
      "postalCode": "97110"
    },
    "geo": {"@type": "GeoCoordinates", "latitude": 45.89, "longitude": -123.96},
    "amenityFeature": [
      {"@type": "LocationFeatureSpecification", "name": "WiFi", "value": true},
      {"@type": "LocationFeatureSpecification", "name": "Hot tub", "value": true},
      {"@type": "LocationFeatureSpecification", "name": "Board games", "value": true},
      {"@type": "LocationFeatureSpecification", "name": "Smoking", "value": false}
    ],
    "containsPlace": [
      {"@type": "Accommodation", "name": "Bedroom 1", "bed": {"numberOfBeds": 1, "typeOfBed": "King Bed"}}
    ]
  }
  </script>
</head>
<body>
  <img src="https://images.trvl-media.com/lodging/1/hero.jpg" alt="Hero">
  <img src="https://www.vrbo.com/static/logo.png" alt="Vrbo">
  <img src="https://tracker.example.com/1x1.gif">
  <img data-src="//images.trvl-media.com/lodging/1/kitchen.jpg" src="https://www.vrbo.com/img/spinner.gif">
  <picture>
    <source srcset="https://images.trvl-media.com/lodging/1/living.webp 1x, https://images.trvl-media.com/lodging/1/living-2x.webp 2x">
  </picture>
  <div class="hero" style="background-image: url('/media/lodging/1/exterior.jpg')"></div>
  <section class="rooms">
    <h4>Bedroom 2</h4>
    <p>2 Twin Beds</p>
  </section>
  <ul class="amenities">
    <li class="amenity-item">Dishwasher</li>
    <li class="amenity-item">Free parking</li>
  </ul>
  <p>This 3 bedroom, 2.5 bath home sleeps 8 guests across 1,450 sq ft.</p>
  <script>
    window.__STATE__ = {"propertyPhotos": ["https:\\/\\/images.trvl-media.com\\/lodging\\/1\\/hero.jpg?w=1200", "https://images.trvl-media.com/lodging/1/bath.jpg"]};
  </script>
  <footer>%s</footer>
</body>
</html>
""" % ("Vacation rentals and holiday homes. " * 40)


def make_raw(text: str, url: str = LISTING_URL) -> RawContent:
    return RawContent(url=url, text=text, status_code=200)


class FakeFetcher(ContentFetcher):
    """Fetcher that replays a scripted sequence of pages or exceptions."""

    name = "fake"

    def __init__(self, outcomes: Optional[List[object]] = None, default: object = None,
                 delay: float = 0.0) -> None:
        self.outcomes = list(outcomes or [])
        self.default = default if default is not None else SAMPLE_LISTING_HTML
        self.delay = delay
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def fetch(self, url: str, timeout: float) -> RawContent:
        with self._lock:
            self.calls.append(url)
            outcome = self.outcomes.pop(0) if self.outcomes else self.default
        if self.delay:
            time.sleep(self.delay)
        if isinstance(outcome, BaseException):
            raise outcome
        return make_raw(str(outcome), url)


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()




class RecordingQueue:
    """Stand-in for JobQueue that records scheduling instead of running jobs."""

    def __init__(self) -> None:
        self.scheduled: List[tuple] = []
        self.is_running = False
        self.handler = None

    def start(self, handler, maintenance=None) -> None:
        self.handler = handler
        self.is_running = True

    def stop(self) -> None:
        self.is_running = False

    def schedule(self, job_id: str, delay_seconds: float = 0.0) -> None:
        self.scheduled.append((job_id, delay_seconds))

    def queue_length(self) -> int:
        return len(self.scheduled)

    def get_worker_info(self) -> List[dict]:
        return []
