"""CSV export of the record store."""

import csv
import io
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from golfscout.models import Record

logger = logging.getLogger(__name__)

CSV_COLUMNS = (
    "id",
    "name",
    "address",
    "category",
    "phone",
    "website",
    "rating",
    "review_count",
    "business_status",
    "source_region",
    "source_keyword",
    "latitude",
    "longitude",
    "maps_url",
    "types",
    "opening_hours",
    "details_status",
    "details_error",
)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "|".join(str(item) for item in value)
    return str(value)


def render_csv(records: Iterable[Record]) -> str:
    """Header plus one line per record, minimal quoting, CRLF line endings."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(CSV_COLUMNS)
    for record in records:
        writer.writerow([_cell(getattr(record, column)) for column in CSV_COLUMNS])
    return buffer.getvalue()


def export_csv(records: Iterable[Record], export_dir: str, now: Optional[datetime] = None) -> Path:
    now = now or datetime.now(timezone.utc)
    directory = Path(export_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"golf_facilities_{now:%Y%m%d_%H%M%S}.csv"

    rows = list(records)
    content = render_csv(rows)
    # BOM so spreadsheet tools detect UTF-8 for Japanese text.
    with path.open("w", encoding="utf-8-sig", newline="") as fh:
        fh.write(content)
        fh.flush()
    logger.info("Exported %d rows to %s", len(rows), path)
    return path
