"""Collection runner and CLI: bounded batches driven by persisted state."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from golfscout.core.config import CollectionConfig, get_settings
from golfscout.core.credentials import CredentialStore, default_credential_store
from golfscout.core.db import PostgresRecordStore, init_schema
from golfscout.core.errors import CollectionError, MissingCredentialError, NoActiveRunError
from golfscout.core.scheduler import PostgresScheduler
from golfscout.core.state import PostgresStateStore
from golfscout.etl.export import export_csv
from golfscout.models import CollectionState, Phase
from golfscout.stages.details import run_details_batch
from golfscout.stages.search import run_search_batch
from golfscout.vendors.google_places import PlacesClient

logger = logging.getLogger(__name__)


class CollectionRunner:
    """Runs one bounded batch per invocation and decides what happens next.

    Every invocation that does not reach ``Phase.DONE`` leaves exactly one
    pending continuation behind. Any stage error cancels pending
    continuations before it is re-raised.
    """

    def __init__(
        self,
        *,
        config: CollectionConfig,
        state_store,
        record_store,
        scheduler,
        credentials: CredentialStore,
        client_factory: Callable[[str], Any] = PlacesClient,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.state_store = state_store
        self.record_store = record_store
        self.scheduler = scheduler
        self.credentials = credentials
        self.client_factory = client_factory
        self.sleep = sleep

    def _client(self):
        api_key = self.credentials.get()
        if not api_key:
            raise MissingCredentialError()
        return self.client_factory(api_key)

    def start_collection(self) -> CollectionState:
        """Reset progress and run the first search batch synchronously."""
        client = self._client()
        self.scheduler.cancel_all()
        state = CollectionState()
        self.state_store.save(state)
        logger.info("Started new collection run")
        return self._run(client, state)

    def continue_collection(self) -> CollectionState:
        state = self.state_store.load()
        if state is None:
            raise NoActiveRunError()
        if state.phase is Phase.DONE:
            logger.info("Collection already complete; nothing to do")
            return state
        return self._run(self._client(), state)

    def _run(self, client, state: CollectionState) -> CollectionState:
        state.last_run_at = datetime.now(timezone.utc)
        try:
            if state.phase is Phase.SEARCH:
                finished = run_search_batch(
                    state,
                    self.config.batch_size_search,
                    config=self.config,
                    client=client,
                    store=self.record_store,
                    sleep=self.sleep,
                )
                if finished:
                    state.phase = Phase.DETAILS
                    state.center_index = 0
                    state.keyword_index = 0
                    state.reset_search_cursor()
                    logger.info("Search phase complete; advancing to details")
            elif state.phase is Phase.DETAILS:
                finished = run_details_batch(
                    state,
                    self.config.batch_size_details,
                    config=self.config,
                    client=client,
                    store=self.record_store,
                    sleep=self.sleep,
                )
                if finished:
                    state.phase = Phase.DONE
                    logger.info("Details phase complete; collection done")

            self.state_store.save(state)
            if state.phase is Phase.DONE:
                self.scheduler.cancel_all()
            else:
                self.scheduler.schedule_once(self.config.continuation_delay_seconds)
        except Exception:
            logger.exception("Collection batch failed; cancelling pending continuations")
            self.scheduler.cancel_all()
            raise
        return state

    def tick(self) -> int:
        """Run one continuation per due trigger; returns how many ran."""
        due = self.scheduler.pop_due()
        for _ in due:
            try:
                self.continue_collection()
            except NoActiveRunError:
                logger.warning("Dropping continuation trigger: no active collection run")
        return len(due)

    def clear_progress(self) -> None:
        self.state_store.clear()

    def clear_all(self) -> None:
        self.scheduler.cancel_all()
        self.state_store.clear()

    def export(self, export_dir: str) -> Path:
        return export_csv(self.record_store.iter_rows(), export_dir)

    def status(self) -> Dict[str, Any]:
        state = self.state_store.load()
        if state is None:
            return {"active": False, "records": self.record_store.count()}
        return {
            "active": state.phase is not Phase.DONE,
            "phase": state.phase.value,
            "center_index": state.center_index,
            "keyword_index": state.keyword_index,
            "has_cursor": bool(state.continuation_cursor),
            "batch_processed_count": state.batch_processed_count,
            "last_run_at": state.last_run_at.isoformat() if state.last_run_at else None,
            "records": self.record_store.count(),
            "pending_details": self.record_store.count_pending(),
        }


def build_runner() -> CollectionRunner:
    settings = get_settings()
    return CollectionRunner(
        config=CollectionConfig.from_settings(settings),
        state_store=PostgresStateStore(),
        record_store=PostgresRecordStore(),
        scheduler=PostgresScheduler(),
        credentials=default_credential_store(settings),
    )


def _is_interactive() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def _prompt_for_key(credentials: CredentialStore) -> bool:
    if not _is_interactive():
        return False
    value = getpass.getpass("Places API key: ").strip()
    if not value:
        return False
    credentials.set(value)
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="golfscout", description="Resumable golf facility collection")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="Create database tables")
    sub.add_parser("start", help="Reset progress and run the first batch")
    sub.add_parser("continue", help="Resume the active run for one batch")
    sub.add_parser("tick", help="Run continuations whose scheduled time has passed")
    export = sub.add_parser("export", help="Write the record store to a timestamped CSV")
    export.add_argument("--dir", dest="export_dir", default=None, help="Output directory")
    sub.add_parser("clear-progress", help="Reset collection state, keep records and API key")
    sub.add_parser("clear-all", help="Reset collection state and cancel scheduled continuations")
    sub.add_parser("status", help="Show collection progress")
    set_key = sub.add_parser("set-key", help="Store the Places API key")
    set_key.add_argument("key", nargs="?", help="API key (prompted when omitted)")
    sub.add_parser("repair-key", help="Copy the API key into scopes that lost it")
    return parser


def run_command(runner: CollectionRunner, args: argparse.Namespace) -> int:
    command = args.command
    if command == "init-db":
        init_schema()
    elif command in {"start", "continue"}:
        action = runner.start_collection if command == "start" else runner.continue_collection
        try:
            state = action()
        except MissingCredentialError:
            if not _prompt_for_key(runner.credentials):
                raise
            state = action()
        logger.info("Run state: phase=%s processed=%s", state.phase.value, state.batch_processed_count)
    elif command == "tick":
        logger.info("Ran %d due continuation(s)", runner.tick())
    elif command == "export":
        path = runner.export(args.export_dir or get_settings().export_dir)
        print(path)
    elif command == "clear-progress":
        runner.clear_progress()
    elif command == "clear-all":
        runner.clear_all()
    elif command == "status":
        for key, value in runner.status().items():
            print(f"{key}: {value}")
    elif command == "set-key":
        value = args.key or getpass.getpass("Places API key: ")
        runner.credentials.set(value)
    elif command == "repair-key":
        repaired = runner.credentials.repair()
        print(", ".join(repaired) if repaired else "nothing to repair")
    return 0


def main(argv: Optional[list] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)
    try:
        code = run_command(build_runner(), args)
    except CollectionError as exc:
        logger.error("%s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("Collection command failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc
    raise SystemExit(code)


if __name__ == "__main__":
    main()
