"""Deferred continuation triggers stored in PostgreSQL.

A trigger is a row naming a handler and the time after which it may run.
Nothing here waits: an external ticker (cron, or the host's scheduler calling
``POST /tasks/tick``) pops due triggers and invokes the handler.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from golfscout.core.db import get_connection

logger = logging.getLogger(__name__)

CONTINUE_HANDLER = "continue_collection"


class PostgresScheduler:
    def __init__(self, handler: str = CONTINUE_HANDLER) -> None:
        self.handler = handler

    def schedule_once(self, delay_seconds: float) -> datetime:
        """Replace any pending trigger for the handler with a single new one."""
        run_at = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO continuation_triggers (handler, run_at) VALUES (%s, %s)
                    ON CONFLICT (handler) DO UPDATE SET run_at = EXCLUDED.run_at, created_at = NOW()
                    """,
                    (self.handler, run_at),
                )
            conn.commit()
        logger.info("Scheduled %s at %s", self.handler, run_at.isoformat())
        return run_at

    def cancel_all(self) -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM continuation_triggers WHERE handler = %s", (self.handler,))
                removed = cur.rowcount
            conn.commit()
        logger.info("Cancelled %s pending %s trigger(s)", removed, self.handler)
        return removed

    def pop_due(self, now: Optional[datetime] = None) -> List[datetime]:
        """Delete and return the run times of every due trigger."""
        now = now or datetime.now(timezone.utc)
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM continuation_triggers WHERE handler = %s AND run_at <= %s RETURNING run_at",
                    (self.handler, now),
                )
                due = [row[0] for row in cur.fetchall()]
            conn.commit()
        return due
