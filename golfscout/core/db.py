"""Database helpers: connection pool, schema and the record store."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from psycopg2 import extras, pool

from golfscout.core.config import get_settings
from golfscout.models import DetailsStatus, Record

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS golf_facilities (
    row_id BIGSERIAL PRIMARY KEY,
    place_id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL DEFAULT '',
    address TEXT NOT NULL DEFAULT '',
    category TEXT NOT NULL DEFAULT '',
    phone TEXT NOT NULL DEFAULT '',
    website TEXT NOT NULL DEFAULT '',
    rating DOUBLE PRECISION,
    review_count INTEGER,
    business_status TEXT NOT NULL DEFAULT '',
    source_region TEXT NOT NULL DEFAULT '',
    source_keyword TEXT NOT NULL DEFAULT '',
    latitude DOUBLE PRECISION,
    longitude DOUBLE PRECISION,
    maps_url TEXT NOT NULL DEFAULT '',
    types JSONB NOT NULL DEFAULT '[]'::jsonb,
    opening_hours TEXT NOT NULL DEFAULT '',
    details_status TEXT NOT NULL DEFAULT 'pending',
    details_error TEXT NOT NULL DEFAULT '',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS golf_facilities_details_status_idx
    ON golf_facilities (details_status, row_id);

CREATE TABLE IF NOT EXISTS collection_state (
    id SMALLINT PRIMARY KEY CHECK (id = 1),
    phase TEXT NOT NULL,
    center_index INTEGER NOT NULL DEFAULT 0,
    keyword_index INTEGER NOT NULL DEFAULT 0,
    continuation_cursor TEXT,
    search_variant SMALLINT NOT NULL DEFAULT 0,
    batch_processed_count INTEGER NOT NULL DEFAULT 0,
    last_run_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS continuation_triggers (
    id BIGSERIAL PRIMARY KEY,
    handler TEXT NOT NULL,
    run_at TIMESTAMPTZ NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS continuation_triggers_handler_key ON continuation_triggers (handler);

CREATE TABLE IF NOT EXISTS app_properties (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

RECORD_COLUMNS = (
    "place_id",
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
UPDATABLE_COLUMNS = frozenset(RECORD_COLUMNS) - {"place_id"}


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


def init_schema() -> None:
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        conn.commit()
    logger.info("Database schema ensured")


def _record_params(record: Record) -> Dict[str, Any]:
    return {
        "place_id": record.id,
        "name": record.name,
        "address": record.address,
        "category": record.category,
        "phone": record.phone,
        "website": record.website,
        "rating": record.rating,
        "review_count": record.review_count,
        "business_status": record.business_status,
        "source_region": record.source_region,
        "source_keyword": record.source_keyword,
        "latitude": record.latitude,
        "longitude": record.longitude,
        "maps_url": record.maps_url,
        "types": extras.Json(list(record.types)),
        "opening_hours": record.opening_hours,
        "details_status": record.details_status,
        "details_error": record.details_error,
    }


def _row_to_record(row: Dict[str, Any]) -> Record:
    return Record(
        id=row["place_id"],
        name=row.get("name") or "",
        address=row.get("address") or "",
        category=row.get("category") or "",
        phone=row.get("phone") or "",
        website=row.get("website") or "",
        rating=row.get("rating"),
        review_count=row.get("review_count"),
        business_status=row.get("business_status") or "",
        source_region=row.get("source_region") or "",
        source_keyword=row.get("source_keyword") or "",
        latitude=row.get("latitude"),
        longitude=row.get("longitude"),
        maps_url=row.get("maps_url") or "",
        types=list(row.get("types") or []),
        opening_hours=row.get("opening_hours") or "",
        details_status=row.get("details_status") or DetailsStatus.PENDING.value,
        details_error=row.get("details_error") or "",
    )


_INSERT_RECORD = """
INSERT INTO golf_facilities ({columns}) VALUES ({values})
ON CONFLICT (place_id) DO NOTHING
RETURNING row_id;
""".format(
    columns=", ".join(RECORD_COLUMNS),
    values=", ".join(f"%({column})s" for column in RECORD_COLUMNS),
)

_SELECT_RECORDS = "SELECT row_id, {columns} FROM golf_facilities".format(columns=", ".join(RECORD_COLUMNS))


class PostgresRecordStore:
    """Append-only facility table keyed by ``place_id``; ``row_id`` is the row position."""

    def existing_ids(self) -> Set[str]:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT place_id FROM golf_facilities")
                return {row[0] for row in cur.fetchall()}

    def append(self, record: Record) -> bool:
        """Insert ``record``; an existing ``place_id`` is left untouched."""
        if not record.id:
            raise ValueError("record id is required for append")
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_INSERT_RECORD, _record_params(record))
                inserted = cur.fetchone() is not None
            conn.commit()
        logger.debug("Appended %s (inserted=%s)", record.id, inserted)
        return inserted

    def update_row(self, row_id: int, fields: Dict[str, Any]) -> None:
        """Update only the named columns of one row."""
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"unknown columns: {', '.join(sorted(unknown))}")
        if not fields:
            return
        params = dict(fields)
        if "types" in params:
            params["types"] = extras.Json(list(params["types"]))
        assignments = ", ".join(f"{column} = %({column})s" for column in sorted(fields))
        params["row_id"] = row_id
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"UPDATE golf_facilities SET {assignments}, updated_at = NOW() WHERE row_id = %(row_id)s",
                    params,
                )
            conn.commit()

    def mark_details(self, row_id: int, status: DetailsStatus, error: str = "") -> None:
        self.update_row(row_id, {"details_status": status.value, "details_error": error})

    def pending_details(self, limit: int) -> List[Tuple[int, Record]]:
        with get_connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(
                    _SELECT_RECORDS + " WHERE details_status = %s ORDER BY row_id LIMIT %s",
                    (DetailsStatus.PENDING.value, limit),
                )
                return [(row["row_id"], _row_to_record(row)) for row in cur.fetchall()]

    def count_pending(self) -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT COUNT(*) FROM golf_facilities WHERE details_status = %s",
                    (DetailsStatus.PENDING.value,),
                )
                return cur.fetchone()[0]

    def count(self) -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM golf_facilities")
                return cur.fetchone()[0]

    def iter_rows(self) -> Iterator[Record]:
        with get_connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute(_SELECT_RECORDS + " ORDER BY row_id")
                rows = cur.fetchall()
        for row in rows:
            yield _row_to_record(row)
