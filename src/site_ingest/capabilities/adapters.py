"""
Boundary adapters for extraction service responses.

Each remote service answers in whatever shape its version happens to use
(bare lists, wrapped lists, several aliases per field). The functions here
coerce those payloads into one strict internal type per capability so the
pipeline never touches raw responses.
"""
import json
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence

from ..models.records import UrlType

DEFAULT_PLATFORM = "generic"
KNOWN_PLATFORMS = ("shopify", "wordpress", "webflow", "wix", "squarespace")

# Values at or above this are read as 0-100 percentages; (1, 2) is a unit-scale overshoot
PERCENT_SCALE_THRESHOLD = 2.0

URL_TYPE_LABELS = {
    "homepage": UrlType.HOMEPAGE,
    "home": UrlType.HOMEPAGE,
    "index": UrlType.HOMEPAGE,
    "about": UrlType.ABOUT,
    "about-us": UrlType.ABOUT,
    "contact": UrlType.CONTACT,
    "contact-us": UrlType.CONTACT,
    "pricing": UrlType.PRICING,
    "blog": UrlType.BLOG,
    "careers": UrlType.CAREERS,
    "jobs": UrlType.CAREERS,
    "docs": UrlType.DOCS,
    "documentation": UrlType.DOCS,
    "terms": UrlType.TERMS,
    "privacy": UrlType.PRIVACY,
}


@dataclass(frozen=True)
class DiscoveredPage:
    """A page reported by the discovery service."""
    url: str
    label: Optional[str]


@dataclass(frozen=True)
class DetectedTechnology:
    """A technology reported by the detection service."""
    slug: str
    name: str
    website_url: Optional[str]
    confidence: Optional[float]


def _first_present(item: dict, keys: Sequence[str]) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


def _first_truthy(item: dict, keys: Sequence[str]) -> Any:
    for key in keys:
        value = item.get(key)
        if value:
            return value
    return None


def _unwrap_list(result: Any, keys: Sequence[str]) -> List[Any]:
    if isinstance(result, list):
        return result
    if isinstance(result, dict):
        for key in keys:
            if isinstance(result.get(key), list):
                return result[key]
    return []


# ==================== Pages ====================

def normalize_pages_result(result: Any) -> List[DiscoveredPage]:
    """
    Normalize a discovery response into ``DiscoveredPage`` items.

    Accepts a bare list or a list under ``pages``/``items``; each entry may be
    a URL string or an object using ``url``/``href``/``link`` for the address
    and ``type``/``category``/``pageType``/``purpose`` for its label.
    """
    pages = []
    for entry in _unwrap_list(result, ("pages", "items")):
        if isinstance(entry, str):
            url, label = entry, None
        elif isinstance(entry, dict):
            url = _first_truthy(entry, ("url", "href", "link"))
            label = _first_truthy(entry, ("type", "category", "pageType", "purpose"))
        else:
            continue
        if isinstance(url, str) and url:
            pages.append(DiscoveredPage(url=url, label=str(label) if label is not None else None))
    return pages


def guess_url_type(label: Optional[str]) -> UrlType:
    """Map a free-text page label onto ``UrlType`` by exact match, else OTHER."""
    return URL_TYPE_LABELS.get(str(label or "").strip().lower(), UrlType.OTHER)


# ==================== Technologies ====================

def clamp_confidence(value: Any) -> Optional[float]:
    """
    Normalize a detector confidence into [0, 1].

    Values of 2 and above are treated as percentages; everything is then
    clamped. Missing or non-numeric input yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    if number >= PERCENT_SCALE_THRESHOLD:
        number = number / 100
    return max(0.0, min(1.0, number))


def slugify(value: Any) -> str:
    """Lower-case ``value`` and collapse non-alphanumeric runs into single dashes."""
    text = str(value or "").strip().lower()
    return re.sub(r"[^a-z0-9]+", "-", text).strip("-")


def normalize_technologies_result(result: Any) -> List[DetectedTechnology]:
    """
    Normalize a detection response into ``DetectedTechnology`` items.

    Accepts a bare list or a list under ``technologies``/``items``. Entries
    without a usable name or slug are dropped; repeated slugs keep the first
    occurrence.
    """
    technologies = []
    seen = set()
    for entry in _unwrap_list(result, ("technologies", "items")):
        if isinstance(entry, str):
            entry = {"name": entry}
        if not isinstance(entry, dict):
            continue

        name = _first_truthy(entry, ("name", "technology", "slug", "id"))
        slug = slugify(_first_truthy(entry, ("slug", "id")) or name)
        if not name or not slug or slug in seen:
            continue

        website_url = _first_truthy(entry, ("websiteUrl", "website", "url"))
        seen.add(slug)
        technologies.append(DetectedTechnology(
            slug=slug,
            name=str(name),
            website_url=str(website_url) if website_url else None,
            confidence=clamp_confidence(_first_present(entry, ("confidence", "confidenceScore", "score"))),
        ))
    return technologies


def detect_platform(technologies: Iterable[DetectedTechnology]) -> Optional[str]:
    """Return the first known site platform among detected technologies."""
    technologies = list(technologies)
    for platform in KNOWN_PLATFORMS:
        for tech in technologies:
            if tech.slug == platform or platform in tech.name.lower():
                return platform
    return None


def pick_technology_hints(technologies: Iterable[DetectedTechnology], limit: int = 50) -> List[str]:
    return [tech.slug for tech in technologies if tech.slug][:limit]


# ==================== Screenshots ====================

def extension_for_content_type(content_type: Optional[str]) -> str:
    value = str(content_type or "").lower()
    if "png" in value:
        return "png"
    if "jpeg" in value or "jpg" in value:
        return "jpg"
    return "bin"


def safe_json(value: Any) -> Optional[str]:
    """Serialize ``value`` to JSON, or None when it is missing or not serializable."""
    if value is None:
        return None
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return None


# ==================== Colors ====================

_COLOR_CANDIDATE_PATHS = (
    ("signatureColor", "hex"),
    ("signatureColor", "color"),
    ("palette", "signature"),
    ("palette", "accent"),
    ("palette", "primary"),
    ("palette", "brand"),
    ("palette", "accents", 0),
    ("accents", 0),
    ("backgrounds", 0),
    ("texts", 0),
    ("data", "prominentColor"),
    ("data", "dominantColor"),
    ("data", "primaryColor"),
    ("data", "mainColor"),
    ("data", "dominant"),
    ("data", "prominent"),
    ("data", "color"),
    ("prominentColor",),
    ("dominantColor",),
    ("primaryColor",),
    ("mainColor",),
    ("dominant",),
    ("prominent",),
    ("color",),
    ("data", "colors", 0),
    ("data", "palette", 0),
    ("colors", 0),
    ("palette", 0),
)


def _lookup(value: Any, path: Sequence[Any]) -> Any:
    for step in path:
        if isinstance(step, int):
            if not isinstance(value, list) or len(value) <= step:
                return None
            value = value[step]
        else:
            if not isinstance(value, dict):
                return None
            value = value.get(step)
        if value is None:
            return None
    return value


def normalize_css_color(value: Any) -> Optional[str]:
    """Return a canonical hex (or rgb/hsl function) string, or None if unrecognised."""
    text = str(value or "").strip()
    if not text:
        return None
    if re.fullmatch(r"0x[0-9a-f]{6}", text, re.IGNORECASE):
        return f"#{text[2:].lower()}"
    if re.fullmatch(r"[0-9a-f]{3}|[0-9a-f]{6}", text, re.IGNORECASE):
        return f"#{text.lower()}"
    if re.fullmatch(r"#[0-9a-f]{3,8}", text, re.IGNORECASE):
        return text.lower()
    if re.match(r"(rgb|hsl)a?\(", text, re.IGNORECASE):
        return text
    return None


def _clamp_byte(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    rounded = math.floor(number + 0.5)
    if rounded < 0 or rounded > 255:
        return None
    return rounded


def rgb_to_hex(r: Any, g: Any, b: Any) -> Optional[str]:
    channels = [_clamp_byte(r), _clamp_byte(g), _clamp_byte(b)]
    if any(channel is None for channel in channels):
        return None
    return "#" + "".join(f"{channel:02x}" for channel in channels)


def normalize_prominent_color_value(value: Any) -> Optional[str]:
    """Coerce one color representation (string, triple, or object) to a color string."""
    if value is None:
        return None
    if isinstance(value, str):
        return normalize_css_color(value)
    if isinstance(value, (list, tuple)):
        return rgb_to_hex(value[0], value[1], value[2]) if len(value) >= 3 else None
    if not isinstance(value, dict):
        return None

    if value.get("hex"):
        return normalize_css_color(value["hex"])
    if value.get("value"):
        return normalize_prominent_color_value(value["value"])
    if value.get("color"):
        return normalize_prominent_color_value(value["color"])

    rgb = value.get("rgb")
    if isinstance(rgb, str):
        return normalize_css_color(rgb)
    if isinstance(rgb, (list, tuple)):
        return rgb_to_hex(*(list(rgb) + [None, None, None])[:3])
    if isinstance(rgb, dict):
        return rgb_to_hex(
            _first_present(rgb, ("r", "red")),
            _first_present(rgb, ("g", "green")),
            _first_present(rgb, ("b", "blue")),
        )

    if any(key in value for key in ("r", "g", "b")):
        return rgb_to_hex(value.get("r"), value.get("g"), value.get("b"))
    if any(key in value for key in ("red", "green", "blue")):
        return rgb_to_hex(value.get("red"), value.get("green"), value.get("blue"))
    return None


def normalize_prominent_color_result(result: Any) -> Optional[str]:
    """Pick the first present candidate from a color extraction response and normalize it."""
    for path in _COLOR_CANDIDATE_PATHS:
        candidate = _lookup(result, path)
        if candidate is not None:
            return normalize_prominent_color_value(candidate)
    return None
