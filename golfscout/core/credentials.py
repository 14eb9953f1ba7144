"""Places API key storage across several persistence scopes.

The key is read from the first scope that holds a non-empty value, in
priority order: environment, database, local file. Writes go to every
writable scope, and ``repair`` copies the winning value into any writable
scope that lost it. The value itself is opaque to the rest of the system.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

from golfscout.core.config import Settings
from golfscout.core.db import get_connection

logger = logging.getLogger(__name__)

API_KEY_PROPERTY = "places_api_key"


class EnvScope:
    """Key supplied through ``Settings.google_api_key``; never written back."""

    name = "env"
    writable = False

    def __init__(self, value: Optional[str]) -> None:
        self.value = value

    def read(self) -> Optional[str]:
        return self.value or None


class DatabaseScope:
    name = "database"
    writable = True

    def __init__(self, key: str = API_KEY_PROPERTY) -> None:
        self.key = key

    def read(self) -> Optional[str]:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT value FROM app_properties WHERE key = %s", (self.key,))
                row = cur.fetchone()
        return row[0] if row and row[0] else None

    def write(self, value: str) -> None:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO app_properties (key, value, updated_at) VALUES (%s, %s, NOW())
                    ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
                    """,
                    (self.key, value),
                )
            conn.commit()


class FileScope:
    name = "file"
    writable = True

    def __init__(self, path: str, key: str = API_KEY_PROPERTY) -> None:
        self.path = Path(path).expanduser()
        self.key = key

    def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable credentials file %s: %s", self.path, exc)
            return None
        value = data.get(self.key) if isinstance(data, dict) else None
        return value or None

    def write(self, value: str) -> None:
        data = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                data = {}
        if not isinstance(data, dict):
            data = {}
        data[self.key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        os.chmod(self.path, 0o600)


class CredentialStore:
    def __init__(self, scopes: Sequence) -> None:
        self.scopes = list(scopes)

    def _read(self, scope) -> Optional[str]:
        try:
            return scope.read()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Credential scope %s unavailable: %s", scope.name, exc)
            return None

    def get(self) -> Optional[str]:
        for scope in self.scopes:
            value = self._read(scope)
            if value:
                return value.strip()
        return None

    def set(self, value: str) -> None:
        value = (value or "").strip()
        if not value:
            raise ValueError("API key must not be empty")
        written = 0
        for scope in self.scopes:
            if not scope.writable:
                continue
            try:
                scope.write(value)
                written += 1
            except Exception as exc:  # noqa: BLE001
                logger.warning("Could not store API key in %s scope: %s", scope.name, exc)
        if not written:
            raise RuntimeError("API key could not be stored in any scope")
        logger.info("API key stored in %d scope(s)", written)

    def repair(self) -> List[str]:
        """Copy the current key into writable scopes that lack it; return their names."""
        value = self.get()
        if not value:
            return []
        repaired = []
        for scope in self.scopes:
            if not scope.writable or self._read(scope) == value:
                continue
            try:
                scope.write(value)
                repaired.append(scope.name)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Could not repair %s scope: %s", scope.name, exc)
        if repaired:
            logger.info("Repaired API key in scopes: %s", ", ".join(repaired))
        return repaired


def default_credential_store(settings: Settings) -> CredentialStore:
    return CredentialStore(
        [EnvScope(settings.google_api_key), DatabaseScope(), FileScope(settings.credentials_file)]
    )
