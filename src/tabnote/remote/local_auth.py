"""In-process session store for offline use and tests."""

from __future__ import annotations

import inspect
import uuid
from typing import Callable
from urllib.parse import urlencode

from tabnote.errors import RemoteError
from tabnote.models import Session, User
from tabnote.remote.base import SIGNED_IN, SIGNED_OUT, AuthListener


class LocalSessionStore:
    """Keeps one session in memory and notifies listeners on change.

    There is no identity provider behind it: :meth:`sign_in_as` stands in for
    the completed OAuth redirect.
    """

    def __init__(self, session: Session | None = None) -> None:
        self._session = session
        self._listeners: list[AuthListener] = []
        #: Set to make the next :meth:`sign_out` fail (simulates a network error)
        self.fail_sign_out = False

    async def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            result = listener(event, self._session)
            if inspect.isawaitable(result):
                await result

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def sign_in_as(self, user: User) -> Session:
        self._session = Session(access_token=uuid.uuid4().hex, user=user)
        await self._emit(SIGNED_IN)
        return self._session

    # ------------------------------------------------------------------
    # SessionStore
    # ------------------------------------------------------------------

    async def get_session(self) -> Session | None:
        return self._session

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def sign_in_with_oauth(self, provider: str, *, redirect_to: str | None = None) -> str:
        params = {"provider": provider}
        if redirect_to:
            params["redirect_to"] = redirect_to
        return f"local://authorize?{urlencode(params)}"

    async def sign_out(self) -> None:
        if self.fail_sign_out:
            raise RemoteError("sign-out failed")
        self._session = None
        await self._emit(SIGNED_OUT)
