"""Core data models shared by the golf facility collection pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


class Phase(str, enum.Enum):
    SEARCH = "search"
    DETAILS = "details"
    DONE = "done"


class DetailsStatus(str, enum.Enum):
    PENDING = "pending"
    DONE = "done"
    ERROR = "error"


class Category(str, enum.Enum):
    OUTDOOR = "outdoor"
    INDOOR = "indoor"
    MIXED = "mixed"
    OTHER = "other"


@dataclass(frozen=True)
class Center:
    """Named origin of a radius-bounded search; the name becomes ``source_region``."""

    name: str
    latitude: float
    longitude: float


@dataclass(slots=True)
class Record:
    """One row of the record store, keyed by the Places identifier."""

    id: str
    name: str = ""
    address: str = ""
    category: str = Category.OTHER.value
    phone: str = ""
    website: str = ""
    rating: Optional[float] = None
    review_count: Optional[int] = None
    business_status: str = ""
    source_region: str = ""
    source_keyword: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    maps_url: str = ""
    types: List[str] = field(default_factory=list)
    opening_hours: str = ""
    details_status: str = DetailsStatus.PENDING.value
    details_error: str = ""


@dataclass(slots=True)
class CollectionState:
    """Persisted progress cursor of the single active collection run."""

    phase: Phase = Phase.SEARCH
    center_index: int = 0
    keyword_index: int = 0
    continuation_cursor: Optional[str] = None
    search_variant: int = 0
    batch_processed_count: int = 0
    last_run_at: Optional[datetime] = None

    def reset_search_cursor(self) -> None:
        self.continuation_cursor = None
        self.search_variant = 0
