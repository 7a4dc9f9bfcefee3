"""Row projections of the remote tables.

The application never owns these entities: each view model re-fetches them
and keeps the projection only as long as it is rendered.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

#: Title given to the tab every new notebook starts with
FIRST_TAB_TITLE = "First Tab"


def utc_now_iso() -> str:
    """Fixed-width UTC timestamp; lexical order equals chronological order."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


def next_position(tabs: list["Tab"]) -> int:
    """Position for a new tab: one past the current maximum, ``0`` when empty."""
    if not tabs:
        return 0
    return max(tab.position for tab in tabs) + 1


@dataclass
class Notebook:
    id: str
    title: str
    user_id: str | None = None
    description: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Notebook":
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            user_id=row.get("user_id"),
            description=row.get("description"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NotebookSummary:
    """A row of the ``notebooks_with_tab_count`` read view."""

    id: str
    title: str
    description: str | None = None
    tab_count: int = 0
    updated_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "NotebookSummary":
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            description=row.get("description"),
            tab_count=int(row.get("tab_count") or 0),
            updated_at=row.get("updated_at"),
        )

    @property
    def tab_label(self) -> str:
        return f"{self.tab_count} {'tab' if self.tab_count == 1 else 'tabs'}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Tab:
    id: str
    notebook_id: str
    title: str
    position: int = 0

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Tab":
        return cls(
            id=str(row["id"]),
            notebook_id=str(row["notebook_id"]),
            title=row.get("title") or "",
            position=int(row.get("position") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Note:
    id: str
    tab_id: str
    content: str = ""

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Note":
        return cls(id=str(row["id"]), tab_id=str(row["tab_id"]), content=row.get("content") or "")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Profile:
    id: str
    full_name: str | None = None
    avatar_url: str | None = None
    email: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Profile":
        return cls(
            id=str(row["id"]),
            full_name=row.get("full_name"),
            avatar_url=row.get("avatar_url"),
            email=row.get("email"),
        )

    @property
    def display_name(self) -> str:
        return self.full_name or "User"

    @property
    def initial(self) -> str:
        """Avatar fallback letter: full name first, then email."""
        source = self.full_name or self.email or ""
        return source[:1].upper()

    def merged(self, fields: dict[str, Any]) -> "Profile":
        """Return a copy with *fields* applied; unknown keys are ignored."""
        data = self.to_dict()
        data.update({k: v for k, v in fields.items() if k in data and k != "id"})
        return Profile(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class User:
    """Identity projection of an authenticated session."""

    id: str
    email: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "User":
        return cls(
            id=str(row["id"]),
            email=row.get("email"),
            metadata=dict(row.get("user_metadata") or {}),
        )


@dataclass
class Session:
    access_token: str
    user: User
    refresh_token: str | None = None
