"""Session provider protocol."""

from typing import Protocol

from domain.entities.profile import Session


class ISessionProvider(Protocol):
    """Exposes the current authenticated session, if any."""

    def get_session(self) -> Session | None:
        """Return the active session or None when signed out."""
        ...
