"""Settings: environment variables, optional YAML file, backend factory.

Example ``tabnote.yaml``::

    url: https://abc.example.co
    anon_key: eyJhbGciOi...
    backend: rest              # or "duckdb" for a local database
    autosave_delay_ms: 1000
    timeout: 10
    log_level: INFO

Environment variables override the file; direct kwargs override both.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from tabnote.errors import ConfigError

_BACKENDS = ("rest", "duckdb")

_ENV = {
    "url": "TABNOTE_URL",
    "anon_key": "TABNOTE_ANON_KEY",
    "backend": "TABNOTE_BACKEND",
    "db_path": "TABNOTE_DB_PATH",
    "autosave_delay_ms": "TABNOTE_AUTOSAVE_DELAY_MS",
    "timeout": "TABNOTE_TIMEOUT",
    "log_level": "TABNOTE_LOG_LEVEL",
}


@dataclass
class Settings:
    url: str = ""
    anon_key: str = ""
    backend: str = "rest"
    db_path: str = ":memory:"
    autosave_delay_ms: int = 1000
    timeout: float = 10.0
    log_level: str = "WARNING"

    @property
    def autosave_delay(self) -> float:
        """Debounce window in seconds."""
        return self.autosave_delay_ms / 1000

    @classmethod
    def _coerce(cls, data: dict[str, Any]) -> dict[str, Any]:
        known = {f.name for f in fields(cls)}
        result: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                raise ConfigError(f"unknown setting '{key}'")
            if value is None:
                continue
            try:
                if key == "autosave_delay_ms":
                    value = int(value)
                elif key == "timeout":
                    value = float(value)
                else:
                    value = str(value)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"invalid value for '{key}': {value!r}") from exc
            result[key] = value
        return result

    @classmethod
    def from_env(cls, base: dict[str, Any] | None = None, **overrides: Any) -> "Settings":
        """Build settings from *base* (e.g. file contents), the environment, then kwargs."""
        data = dict(base or {})
        for name, var in _ENV.items():
            if var in os.environ:
                data[name] = os.environ[var]
        data.update({k: v for k, v in overrides.items() if v is not None})
        settings = cls(**cls._coerce(data))
        settings.validate()
        return settings

    @classmethod
    def from_file(cls, path: Path | str, **overrides: Any) -> "Settings":
        """Load a YAML mapping from *path*; environment and kwargs still win."""
        try:
            raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"cannot read settings from {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")
        return cls.from_env(raw, **overrides)

    def validate(self) -> None:
        if self.backend not in _BACKENDS:
            raise ConfigError(f"backend must be one of {', '.join(_BACKENDS)}, got '{self.backend}'")
        if self.backend == "rest" and not (self.url and self.anon_key):
            raise ConfigError("the rest backend needs both url and anon_key")
        if self.autosave_delay_ms <= 0:
            raise ConfigError("autosave_delay_ms must be positive")
        if self.timeout <= 0:
            raise ConfigError("timeout must be positive")
        if self.log_level.upper() not in logging.getLevelNamesMapping():
            raise ConfigError(f"unknown log_level '{self.log_level}'")


def configure_logging(level: str | int = "WARNING") -> None:
    """Send ``tabnote`` log records to stderr at *level*."""
    logger = logging.getLogger("tabnote")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level.upper() if isinstance(level, str) else level)


def connect(settings: Settings):
    """Return a ``(DataService, SessionStore)`` pair for *settings*.

    Also applies ``settings.log_level`` to the ``tabnote`` loggers.  Editors
    pick up the autosave window through :meth:`NotebookEditor.from_settings`.
    """
    configure_logging(settings.log_level)
    if settings.backend == "duckdb":
        from tabnote.remote.duckdb_local import DuckDBDataService
        from tabnote.remote.local_auth import LocalSessionStore

        return DuckDBDataService(settings.db_path), LocalSessionStore()

    from tabnote.remote.rest import RestDataService, RestSessionStore

    data = RestDataService(settings.url, api_key=settings.anon_key, timeout=settings.timeout)
    store = RestSessionStore(settings.url, api_key=settings.anon_key, data=data, timeout=settings.timeout)
    return data, store
