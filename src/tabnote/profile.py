"""ProfileView: read-only profile card with an edit form."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tabnote.session import SessionContext

SUCCESS_MESSAGE = "Profile updated successfully!"
UNEXPECTED_MESSAGE = "An unexpected error occurred."

#: Fields the form may change
EDITABLE_FIELDS = ("full_name",)


@dataclass
class StatusMessage:
    text: str
    is_error: bool = False


class ProfileView:
    def __init__(self, session: "SessionContext") -> None:
        self._session = session
        self.editing = False
        self.form: dict[str, Any] = {}
        self.status: StatusMessage | None = None

    @property
    def full_name(self) -> str:
        profile = self._session.profile
        return (profile.full_name if profile else None) or "Not set"

    @property
    def display_name(self) -> str:
        profile = self._session.profile
        return profile.display_name if profile else "User"

    @property
    def email(self) -> str | None:
        profile = self._session.profile
        return profile.email if profile else None

    @property
    def avatar(self) -> str:
        """Avatar URL, or the initial shown in its place."""
        profile = self._session.profile
        if profile is None:
            return ""
        return profile.avatar_url or profile.initial

    @property
    def busy(self) -> bool:
        return self._session.loading

    def _seed_form(self) -> None:
        profile = self._session.profile
        self.form = {name: (getattr(profile, name, None) or "") for name in EDITABLE_FIELDS}

    def begin_edit(self) -> None:
        self._seed_form()
        self.editing = True

    def cancel_edit(self) -> None:
        """Leave edit mode and discard the form."""
        self._seed_form()
        self.editing = False

    def set_field(self, name: str, value: Any) -> None:
        if name not in EDITABLE_FIELDS:
            raise KeyError(name)
        self.form[name] = value

    async def submit(self) -> bool:
        """Post the form through the session context; show inline feedback."""
        self.status = None
        result = await self._session.update_profile(dict(self.form))
        if not result.ok:
            self.status = StatusMessage(result.error or UNEXPECTED_MESSAGE, is_error=True)
            return False
        self.status = StatusMessage(SUCCESS_MESSAGE)
        self.editing = False
        return True
