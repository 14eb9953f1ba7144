"""Persistence of the single collection state row."""

import logging
from typing import Optional

from psycopg2 import extras

from golfscout.core.db import get_connection
from golfscout.models import CollectionState, Phase

logger = logging.getLogger(__name__)

_UPSERT_STATE = """
INSERT INTO collection_state (
    id,
    phase,
    center_index,
    keyword_index,
    continuation_cursor,
    search_variant,
    batch_processed_count,
    last_run_at
) VALUES (
    1,
    %(phase)s,
    %(center_index)s,
    %(keyword_index)s,
    %(continuation_cursor)s,
    %(search_variant)s,
    %(batch_processed_count)s,
    %(last_run_at)s
)
ON CONFLICT (id) DO UPDATE SET
    phase = EXCLUDED.phase,
    center_index = EXCLUDED.center_index,
    keyword_index = EXCLUDED.keyword_index,
    continuation_cursor = EXCLUDED.continuation_cursor,
    search_variant = EXCLUDED.search_variant,
    batch_processed_count = EXCLUDED.batch_processed_count,
    last_run_at = EXCLUDED.last_run_at;
"""


def _prepare_params(state: CollectionState) -> dict:
    return {
        "phase": state.phase.value,
        "center_index": state.center_index,
        "keyword_index": state.keyword_index,
        "continuation_cursor": state.continuation_cursor,
        "search_variant": state.search_variant,
        "batch_processed_count": state.batch_processed_count,
        "last_run_at": state.last_run_at,
    }


class PostgresStateStore:
    def load(self) -> Optional[CollectionState]:
        with get_connection() as conn:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                cur.execute("SELECT * FROM collection_state WHERE id = 1")
                row = cur.fetchone()
        if row is None:
            return None
        return CollectionState(
            phase=Phase(row["phase"]),
            center_index=row["center_index"],
            keyword_index=row["keyword_index"],
            continuation_cursor=row["continuation_cursor"],
            search_variant=row["search_variant"],
            batch_processed_count=row["batch_processed_count"],
            last_run_at=row["last_run_at"],
        )

    def save(self, state: CollectionState) -> None:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_UPSERT_STATE, _prepare_params(state))
            conn.commit()
        logger.debug(
            "Saved state phase=%s center=%s keyword=%s cursor=%s",
            state.phase.value,
            state.center_index,
            state.keyword_index,
            bool(state.continuation_cursor),
        )

    def clear(self) -> None:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM collection_state")
            conn.commit()
        logger.info("Collection state cleared")
