"""Application configuration helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, Optional, Tuple

from dotenv import load_dotenv

from golfscout.core.errors import ConfigError
from golfscout.models import Center

logger = logging.getLogger(__name__)

DEFAULT_CENTERS: Tuple[Center, ...] = (
    Center("東京都", 35.6895, 139.6917),
    Center("神奈川県", 35.4478, 139.6425),
    Center("埼玉県", 35.8617, 139.6455),
    Center("千葉県", 35.6073, 140.1063),
    Center("茨城県", 36.3418, 140.4468),
    Center("栃木県", 36.5657, 139.8836),
    Center("群馬県", 36.3912, 139.0609),
)

DEFAULT_KEYWORDS: Tuple[str, ...] = (
    "ゴルフ練習場",
    "インドアゴルフ",
    "ゴルフ場",
    "シミュレーションゴルフ",
    "ゴルフスクール",
)

OUTDOOR_TAGS: FrozenSet[str] = frozenset({"golf_course", "golf_driving_range", "driving_range"})
INDOOR_TAGS: FrozenSet[str] = frozenset({"gym", "fitness_center", "indoor_golf", "sports_club", "sports_activity_location"})


@dataclass(frozen=True)
class Settings:
    google_api_key: str
    database_url: str
    credentials_file: str
    export_dir: str = "exports"
    worker_port: int = 9000
    batch_size_search: int = 60
    batch_size_details: int = 40
    continuation_delay_seconds: int = 60
    search_radius_meters: int = 20000
    region_allowlist: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CollectionConfig:
    """Immutable run configuration injected into both stages and the runner."""

    centers: Tuple[Center, ...] = DEFAULT_CENTERS
    keywords: Tuple[str, ...] = DEFAULT_KEYWORDS
    batch_size_search: int = 60
    batch_size_details: int = 40
    continuation_delay_seconds: int = 60
    search_radius_meters: float = 20000.0
    relaxed_radius_meters: float = 50000.0
    page_size: int = 20
    relaxed_page_size: int = 10
    included_type: Optional[str] = "golf_course"
    language_code: str = "ja"
    region_code: str = "JP"
    outdoor_tags: FrozenSet[str] = OUTDOOR_TAGS
    indoor_tags: FrozenSet[str] = INDOOR_TAGS
    region_allowlist: FrozenSet[str] = field(default_factory=frozenset)
    page_delay_seconds: float = 2.0
    details_delay_seconds: float = 0.2

    def __post_init__(self) -> None:
        if not self.centers or not self.keywords:
            raise ConfigError("At least one center and one keyword are required")
        if self.batch_size_search <= 0 or self.batch_size_details <= 0:
            raise ConfigError("Batch sizes must be positive")

    @classmethod
    def from_settings(cls, settings: Settings) -> "CollectionConfig":
        return cls(
            batch_size_search=settings.batch_size_search,
            batch_size_details=settings.batch_size_details,
            continuation_delay_seconds=settings.continuation_delay_seconds,
            search_radius_meters=float(settings.search_radius_meters),
            region_allowlist=frozenset(settings.region_allowlist),
        )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    google_api_key = os.getenv("GOOGLE_API_KEY", "")
    database_url = os.getenv("DATABASE_URL", "")
    credentials_file = os.getenv("CREDENTIALS_FILE") or str(Path.home() / ".golfscout" / "credentials.json")
    allowlist_raw = os.getenv("REGION_ALLOWLIST", "")
    region_allowlist = tuple(part.strip() for part in allowlist_raw.split(",") if part.strip())

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; falling back to stored credentials.")

    return Settings(
        google_api_key=google_api_key,
        database_url=database_url,
        credentials_file=credentials_file,
        export_dir=os.getenv("EXPORT_DIR", "exports"),
        worker_port=_int_env("WORKER_PORT", 9000),
        batch_size_search=_int_env("BATCH_SIZE_SEARCH", 60),
        batch_size_details=_int_env("BATCH_SIZE_DETAILS", 40),
        continuation_delay_seconds=_int_env("CONTINUATION_DELAY_SECONDS", 60),
        search_radius_meters=_int_env("SEARCH_RADIUS_METERS", 20000),
        region_allowlist=region_allowlist,
    )
