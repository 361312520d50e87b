"""Authentication provider protocol and session providers."""

from typing import Optional, Protocol

from domain.entities.profile import Session


class IAuthProvider(Protocol):
    """Protocol for authentication providers."""

    async def validate_token(self, token: str) -> Optional[Session]:
        """
        Validate an access token.

        Args:
            token: The bearer token to validate

        Returns:
            Session if valid, None if invalid
        """
        ...


class StaticSessionProvider:
    """ISessionProvider returning a fixed session, or None when signed out."""

    def __init__(self, session: Optional[Session] = None) -> None:
        self._session = session

    def get_session(self) -> Optional[Session]:
        return self._session

    def sign_out(self) -> None:
        self._session = None
