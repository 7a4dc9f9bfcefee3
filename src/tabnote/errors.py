"""Exception hierarchy shared by the remote backends and view models."""

from __future__ import annotations

from typing import Any

#: PostgREST code for "JSON object requested, multiple (or no) rows returned"
NOT_FOUND_CODE = "PGRST116"


class TabnoteError(Exception):
    """Base class for every error raised by :mod:`tabnote`."""


class ConfigError(TabnoteError):
    """Missing or invalid configuration."""


class RemoteError(TabnoteError):
    """A call to the remote data service or session store failed."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    @classmethod
    def from_body(cls, body: dict[str, Any], *, fallback: str = "request failed") -> "RemoteError":
        """Build the right subclass from a PostgREST / GoTrue error body."""
        code = body.get("code")
        message = body.get("message") or body.get("msg") or body.get("error_description") or fallback
        error_cls = NotFoundError if code == NOT_FOUND_CODE else cls
        return error_cls(str(message), code=str(code) if code is not None else None, details=body.get("details"))


class NotFoundError(RemoteError):
    """Expected absence of a single row; callers treat it as empty state."""

    def __init__(self, message: str = "row not found", *, code: str | None = NOT_FOUND_CODE, details: Any = None) -> None:
        super().__init__(message, code=code, details=details)
