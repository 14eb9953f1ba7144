"""Utilities for transforming Places API payloads into store records."""

import logging
from typing import Any, Dict, FrozenSet, Iterable, Optional

from golfscout.models import Category, Center, Record

logger = logging.getLogger(__name__)

ENRICHABLE_FIELDS = (
    "phone",
    "website",
    "address",
    "rating",
    "review_count",
    "category",
    "business_status",
    "latitude",
    "longitude",
    "maps_url",
    "types",
    "opening_hours",
)


def classify_category(types: Iterable[str], outdoor_tags: FrozenSet[str], indoor_tags: FrozenSet[str]) -> str:
    tags = set(types or [])
    outdoor = bool(tags & outdoor_tags)
    indoor = bool(tags & indoor_tags)
    if outdoor and indoor:
        return Category.MIXED.value
    if outdoor:
        return Category.OUTDOOR.value
    if indoor:
        return Category.INDOOR.value
    return Category.OTHER.value


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        value = value.get("text", "")
    return str(value).strip()


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    try:
        if value is None or value == "":
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _opening_hours(place: Dict[str, Any]) -> str:
    hours = place.get("regularOpeningHours") or {}
    descriptions = hours.get("weekdayDescriptions") or []
    return " / ".join(str(line).strip() for line in descriptions if line)


def _place_fields(place: Dict[str, Any], outdoor_tags: FrozenSet[str], indoor_tags: FrozenSet[str]) -> Dict[str, Any]:
    location = place.get("location") or {}
    types = [str(tag) for tag in place.get("types") or [] if tag]
    return {
        "name": _text(place.get("displayName")),
        "address": _text(place.get("formattedAddress")),
        "phone": _text(place.get("nationalPhoneNumber")),
        "website": _text(place.get("websiteUri")),
        "rating": _safe_float(place.get("rating")),
        "review_count": _safe_int(place.get("userRatingCount")),
        "business_status": _text(place.get("businessStatus")),
        "latitude": _safe_float(location.get("latitude")),
        "longitude": _safe_float(location.get("longitude")),
        "maps_url": _text(place.get("googleMapsUri")),
        "types": types,
        "category": classify_category(types, outdoor_tags, indoor_tags) if types else "",
        "opening_hours": _opening_hours(place),
    }


def to_record(
    place: Dict[str, Any],
    *,
    center: Center,
    keyword: str,
    outdoor_tags: FrozenSet[str],
    indoor_tags: FrozenSet[str],
) -> Optional[Record]:
    """Build a record from a search candidate, or None when it has no identifier.

    Missing or malformed fields fall back to empty defaults; a degraded record
    is kept rather than dropped.
    """
    place_id = _text(place.get("id"))
    if not place_id:
        logger.debug("Skipping candidate without id: %s", place)
        return None

    fields = _place_fields(place, outdoor_tags, indoor_tags)
    fields["category"] = fields["category"] or Category.OTHER.value
    return Record(id=place_id, source_region=center.name, source_keyword=keyword, **fields)


def details_fields(place: Dict[str, Any], outdoor_tags: FrozenSet[str], indoor_tags: FrozenSet[str]) -> Dict[str, Any]:
    """Enrichment fields from a details payload; empty values mean "no new data"."""
    return _place_fields(place, outdoor_tags, indoor_tags)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def merge_details(record: Record, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Return the columns of ``record`` that ``fields`` overwrites.

    A provider value replaces the stored one only when it is non-empty.
    Applying the same fields twice yields the same row.
    """
    changes: Dict[str, Any] = {}
    for name in ENRICHABLE_FIELDS:
        value = fields.get(name)
        if _is_empty(value):
            continue
        if getattr(record, name) != value:
            changes[name] = value
    return changes


def region_allowed(record: Record, allowlist: FrozenSet[str]) -> bool:
    """Region filter: an empty allow-list admits every record."""
    if not allowlist:
        return True
    return record.source_region in allowlist
