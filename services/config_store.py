"""Persisted local state for agy-top.

A small JSON document holding credentials, the installation id, the last
submission cursor and a few preferences. Every write replaces the file
atomically, so the cursor is never partially updated.
"""

import json
import os
import random
import string
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from config import ApplicationConfig
from models import Locale, StoredAuth, SubmissionCursor
from utils import create_contextual_logger, log_exception

_BASE36 = string.digits + string.ascii_lowercase


def generate_installation_id() -> str:
    suffix = "".join(random.choices(_BASE36, k=8))
    return f"agy-{int(time.time() * 1000)}-{suffix}"


class ConfigStore:
    """JSON-file backed key/value store."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.logger = create_contextual_logger(__name__, service="config_store")

    @classmethod
    def from_config(cls, config: ApplicationConfig) -> "ConfigStore":
        return cls(config.config_path)

    # --- raw access ---
    def _read(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            log_exception(
                self.logger, e, "Config file unreadable, starting empty", level="warning", path=str(self.path)
            )
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".config-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        self._write(data)

    # --- authentication ---
    def get_auth(self) -> StoredAuth:
        try:
            return StoredAuth.model_validate(self.get("auth") or {})
        except ValidationError:
            return StoredAuth()

    def store_auth(self, auth: StoredAuth) -> None:
        self.set("auth", auth.model_dump(exclude_none=True))

    def clear_auth(self) -> None:
        self.set("auth", {})

    def is_authenticated(self) -> bool:
        return bool(self.get_auth().token)

    def auth_token(self) -> Optional[str]:
        return self.get_auth().token

    def user_id(self) -> Optional[int]:
        return self.get_auth().user_id

    def email(self) -> Optional[str]:
        return self.get_auth().email

    # --- installation ---
    def installation_id(self) -> str:
        """Stable per-install id, generated on first use."""
        installation_id = self.get("installation_id")
        if not installation_id:
            installation_id = generate_installation_id()
            self.set("installation_id", installation_id)
        return installation_id

    # --- submission cursor ---
    def get_cursor(self) -> Optional[SubmissionCursor]:
        raw = self.get("last_submission")
        if not raw:
            return None
        try:
            return SubmissionCursor.model_validate(raw)
        except ValidationError as e:
            self.logger.warning("Ignoring invalid submission cursor", error=str(e))
            return None

    def store_cursor(self, cursor: SubmissionCursor) -> None:
        self.set("last_submission", cursor.model_dump(mode="json"))

    # --- URLs ---
    def resolve_api_url(self, config: ApplicationConfig) -> str:
        """Environment override, then persisted value, then default."""
        if config.api_url_from_env():
            return config.api_url
        stored = self.get("api_url")
        if isinstance(stored, str) and stored.startswith(("http://", "https://")):
            return stored.rstrip("/")
        return config.api_url

    def resolve_web_url(self, config: ApplicationConfig) -> str:
        if config.web_url_from_env():
            return config.web_url
        stored = self.get("web_url")
        if isinstance(stored, str) and stored.startswith(("http://", "https://")):
            return stored.rstrip("/")
        return config.web_url

    # --- preferences ---
    def get_locale(self) -> Locale:
        try:
            return Locale(self.get("locale", Locale.EN.value))
        except ValueError:
            return Locale.EN

    def set_locale(self, locale: Locale) -> None:
        self.set("locale", Locale(locale).value)

    def get_estimator_state(self) -> Optional[Dict[str, Any]]:
        state = self.get("estimator")
        return state if isinstance(state, dict) else None

    def store_estimator_state(self, state: Dict[str, Any]) -> None:
        self.set("estimator", state)
