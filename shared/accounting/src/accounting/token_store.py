"""Local persistence for the backend bearer token."""

from __future__ import annotations

import json
from pathlib import Path

from common import settings as common_settings
from loguru import logger


class TokenStore:
    """Stores a single auth token in a small JSON file so restarts stay signed in."""

    def __init__(self, path: Path | None = None, key: str = common_settings.TOKEN_STORE_KEY):
        self.path = Path(path) if path is not None else common_settings.TOKEN_STORE_PATH
        self.key = key

    def _read(self) -> dict:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except (FileNotFoundError, OSError):
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring corrupt token store at {self.path}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> str | None:
        token = self._read().get(self.key)
        if isinstance(token, str) and token:
            return token
        return None

    def save(self, token: str) -> None:
        data = self._read()
        data[self.key] = token
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data), encoding="utf-8")
        except OSError as e:
            # The in-memory token still works for this process
            logger.warning(f"Could not persist auth token to {self.path}: {e}")

    def clear(self) -> None:
        data = self._read()
        if self.key not in data:
            return
        data.pop(self.key)
        try:
            self.path.write_text(json.dumps(data), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not clear auth token at {self.path}: {e}")
