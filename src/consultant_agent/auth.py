"""Identity resolution for requests forwarded by the auth proxy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

USER_ID_HEADER = "x-user-id"
USER_EMAIL_HEADER = "x-user-email"
USER_NAME_HEADER = "x-user-name"


class AuthProviderError(RuntimeError):
    """Raised when the auth provider cannot be initialized."""


@dataclass(frozen=True, slots=True)
class User:
    id: str
    email: str = ""
    display_name: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "email": self.email,
            "displayName": self.display_name,
        }


@dataclass(frozen=True, slots=True)
class AuthState:
    user: Optional[User] = None
    is_loading: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class HeaderAuthProvider:
    """Trusts identity headers injected by a fronting authentication proxy.

    Header lookups are case-insensitive. A request without a user id header
    resolves to an unauthenticated state.
    """

    def __init__(
        self,
        *,
        id_header: str = USER_ID_HEADER,
        email_header: str = USER_EMAIL_HEADER,
        name_header: str = USER_NAME_HEADER,
    ) -> None:
        if not id_header.strip():
            raise AuthProviderError("A user id header name is required.")
        self._id_header = id_header.lower()
        self._email_header = email_header.lower()
        self._name_header = name_header.lower()

    def resolve(self, headers: Mapping[str, str]) -> AuthState:
        lowered = {key.lower(): value for key, value in headers.items()}
        user_id = (lowered.get(self._id_header) or "").strip()
        if not user_id:
            return AuthState(user=None)
        email = (lowered.get(self._email_header) or "").strip()
        display_name = (lowered.get(self._name_header) or "").strip()
        return AuthState(
            user=User(id=user_id, email=email, display_name=display_name or email)
        )
