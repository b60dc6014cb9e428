"""
Listing URL validation and canonicalization.
Decides whether a submitted URL points at a supported listing page and
produces the cleaned form that jobs are keyed on.
"""

import re
import validators
from dataclasses import dataclass, field
from typing import Dict, Any, Iterable, Optional, Tuple
from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode

SUPPORTED_LISTING_HOSTS = ('vrbo.com', 'homeaway.com', 'vacationrentals.com')

TRACKING_PARAMS = {
    'gclid', 'fbclid', 'msclkid', 'dclid', 'mc_cid', 'mc_eid',
    '_ga', '_gl', 'ref', 'referrer', 'affid', 'cid'
}

# Last path segment of a listing page, e.g. 1234567, 1234567ha, p1234567vb
LISTING_ID_PATTERN = re.compile(r'^p?(\d{4,})(?:ha|vb)?$', re.IGNORECASE)

class ValidationError(Exception):
    """Raised when a listing URL fails validation"""

    def __init__(self, message: str, outcome: Optional['ValidationOutcome'] = None):
        super().__init__(message)
        self.outcome = outcome

@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating a single listing URL"""
    is_valid: bool
    original_url: str
    cleaned_url: Optional[str] = None
    listing_id: Optional[str] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)
    errors: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'original_url': self.original_url,
            'cleaned_url': self.cleaned_url,
            'listing_id': self.listing_id,
            'warnings': list(self.warnings),
            'errors': list(self.errors)
        }

def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith('utm_') or lowered in TRACKING_PARAMS

def _host_matches(host: str, allowed: Iterable[str]) -> bool:
    """Suffix match so that www. and regional subdomains are accepted"""
    for pattern in allowed:
        p = pattern.strip().lower()
        if p and (host == p or host.endswith('.' + p)):
            return True
    return False

class ListingUrlValidator:
    """Validator for submitted listing URLs. Pure, performs no network I/O."""

    def __init__(self, supported_hosts: Optional[Iterable[str]] = None):
        self.supported_hosts = tuple(supported_hosts or SUPPORTED_LISTING_HOSTS)

    def validate(self, raw_url: Any) -> ValidationOutcome:
        """Validate and canonicalize a listing URL"""
        original = raw_url if isinstance(raw_url, str) else ('' if raw_url is None else str(raw_url))

        if not isinstance(raw_url, str) or not raw_url.strip():
            return self._invalid(original, ["URL is required"])

        warnings = []
        url = raw_url.strip()
        if url != raw_url:
            warnings.append("Surrounding whitespace removed")

        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https'):
            return self._invalid(original, ["URL must use HTTP or HTTPS protocol"], warnings)

        if not parsed.hostname or not validators.url(url):
            return self._invalid(original, ["URL is not a valid absolute URL"], warnings)

        host = parsed.hostname.lower()
        if not _host_matches(host, self.supported_hosts):
            return self._invalid(
                original,
                [f"Unsupported listing site: {host} (supported: {', '.join(self.supported_hosts)})"],
                warnings
            )

        netloc = parsed.netloc
        if netloc != netloc.lower():
            netloc = netloc.lower()
            warnings.append("Host lowercased")

        path = parsed.path
        if len(path) > 1 and path.endswith('/'):
            path = path.rstrip('/') or '/'
            warnings.append("Trailing slash removed")

        query = parsed.query
        if query:
            pairs = parse_qsl(query, keep_blank_values=True)
            kept = [(k, v) for k, v in pairs if not _is_tracking_param(k)]
            removed = sorted({k for k, _ in pairs if _is_tracking_param(k)})
            if removed:
                # Only re-encode when something was dropped so clean URLs round-trip unchanged
                query = urlencode(kept)
                warnings.append(f"Tracking parameters removed: {', '.join(removed)}")

        if parsed.fragment:
            warnings.append("Fragment removed")

        listing_id = self._extract_listing_id(path)
        if listing_id is None:
            return self._invalid(original, ["URL does not point to a listing page"], warnings)

        cleaned = urlunparse((parsed.scheme, netloc, path, parsed.params, query, ''))
        return ValidationOutcome(
            is_valid=True,
            original_url=original,
            cleaned_url=cleaned,
            listing_id=listing_id,
            warnings=tuple(warnings)
        )

    @staticmethod
    def _extract_listing_id(path: str) -> Optional[str]:
        segments = [s for s in path.split('/') if s]
        if not segments:
            return None
        match = LISTING_ID_PATTERN.match(segments[-1])
        return match.group(1) if match else None

    @staticmethod
    def _invalid(original: str, errors, warnings=None) -> ValidationOutcome:
        return ValidationOutcome(
            is_valid=False,
            original_url=original,
            warnings=tuple(warnings or ()),
            errors=tuple(errors)
        )

def validate_listing_url(raw_url: Any) -> ValidationOutcome:
    """Validate a URL against the default supported listing sites"""
    return ListingUrlValidator().validate(raw_url)
