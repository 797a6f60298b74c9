"""
Identity collaborator interface.

Token issuance lives outside this package; the engines only need the current
user's id and a way to obtain a bearer token for it.
"""

from typing import Awaitable, Callable, NamedTuple, Optional, Protocol


class UserSession(NamedTuple):
    """An authenticated user as seen by the engines."""

    uid: str
    get_token: Callable[[], Awaitable[str]]


class IdentityProvider(Protocol):
    def current_user(self) -> Optional[UserSession]:
        ...


class StaticIdentity:
    """Identity with a fixed user id and token (or anonymous when empty)."""

    def __init__(self, user_id: str = "", token: str = ""):
        self._session: Optional[UserSession] = None
        if user_id:
            async def _token() -> str:
                return token

            self._session = UserSession(uid=user_id, get_token=_token)

    def current_user(self) -> Optional[UserSession]:
        return self._session


ANONYMOUS = StaticIdentity()
