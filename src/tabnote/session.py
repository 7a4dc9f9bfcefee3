"""SessionContext: mirrors the session store into ``user`` / ``profile``.

The context is built once by the application and handed to every view model
that needs the current identity; there is no module-level session.

Lifecycle::

    ctx = SessionContext(store, data)
    await ctx.start()      # subscribe, then mirror the ambient session
    ...
    ctx.close()            # unsubscribe
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from tabnote.errors import RemoteError
from tabnote.models import Profile, Session, User
from tabnote.remote.base import DataService, SessionStore

log = logging.getLogger(__name__)

Listener = Callable[["SessionContext"], None]


@dataclass
class AuthResult:
    """Outcome of an auth-facing operation; never raised, always returned."""

    ok: bool
    error: str | None = None
    redirect_url: str | None = None


class SessionContext:
    def __init__(self, store: SessionStore, data: DataService) -> None:
        self._store = store
        self._data = data
        self.user: User | None = None
        self.profile: Profile | None = None
        self.loading = False
        self.error: str | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._listeners: list[Listener] = []
        self._generation = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to session changes and mirror the current session once."""
        if self._unsubscribe is None:
            self._unsubscribe = self._store.on_auth_state_change(self._on_change)
        generation = self._generation
        self.loading = True
        try:
            session = await self._store.get_session()
        except RemoteError as exc:
            log.error("Error getting auth session: %s", exc)
            self.error = str(exc)
            self.loading = False
            self._notify()
            return
        if generation != self._generation:
            # A change event already mirrored a newer session
            return
        await self._mirror(session)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def __aenter__(self) -> "SessionContext":
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with this context after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ------------------------------------------------------------------
    # Mirroring
    # ------------------------------------------------------------------

    async def _on_change(self, event: str, session: Session | None) -> None:
        log.debug("Auth state change: %s", event)
        await self._mirror(session)

    async def _mirror(self, session: Session | None) -> None:
        self._generation += 1
        generation = self._generation
        self.loading = True
        if session is None:
            self.user = None
            self.profile = None
        else:
            if self.user is None or self.user.id != session.user.id:
                self.profile = None
            self.user = session.user
            await self._fetch_profile(session.user, generation)
            if generation != self._generation:
                log.debug("Discarding profile of superseded session for %s", session.user.id)
                return
        self.loading = False
        self._notify()

    async def _fetch_profile(self, user: User, generation: int) -> None:
        try:
            row = await self._data.select_one("profiles", eq={"id": user.id})
        except RemoteError as exc:
            if generation != self._generation:
                return
            # The identity stays signed in even without a profile row
            log.error("Error fetching profile: %s", exc)
            self.error = str(exc)
            self.profile = None
            return
        if generation == self._generation and self.user is user:
            self.profile = Profile.from_row(row)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def sign_in(self, provider: str = "google", *, redirect_to: str | None = None) -> AuthResult:
        """Ask the store for the OAuth redirect URL."""
        try:
            url = await self._store.sign_in_with_oauth(provider, redirect_to=redirect_to)
        except RemoteError as exc:
            log.error("Error logging in with %s: %s", provider, exc)
            self.error = str(exc)
            return AuthResult(ok=False, error=str(exc))
        return AuthResult(ok=True, redirect_url=url)

    async def sign_out(self) -> AuthResult:
        """Clear the remote session; local state follows the change event."""
        try:
            await self._store.sign_out()
        except RemoteError as exc:
            log.error("Error signing out: %s", exc)
            self.error = str(exc)
            return AuthResult(ok=False, error=str(exc))
        return AuthResult(ok=True)

    async def update_profile(self, fields: dict[str, Any]) -> AuthResult:
        """Write *fields* through to ``profiles`` and merge them locally on success."""
        user = self.user
        if user is None:
            return AuthResult(ok=False, error="Not signed in")
        self.loading = True
        try:
            await self._data.update("profiles", fields, eq={"id": user.id})
        except RemoteError as exc:
            log.error("Error updating profile: %s", exc)
            self.error = str(exc)
            return AuthResult(ok=False, error=str(exc))
        finally:
            self.loading = False
        if self.user is not user:
            # Signed out or switched identity meanwhile
            return AuthResult(ok=False, error="Not signed in")
        base = self.profile or Profile(id=user.id, email=user.email)
        self.profile = base.merged(fields)
        self._notify()
        return AuthResult(ok=True)
