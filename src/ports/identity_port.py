"""Identity port — abstract interface for the authenticated user.

Core modules never read ambient session state; the action service asks this
port for the user and passes it explicitly into every core call.
"""

from __future__ import annotations

from typing import Protocol

from src.data.models import User


class IdentityPort(Protocol):
    """Abstract identity interface used by the action service."""

    def current_user(self) -> User | None: ...

    def require_user(self) -> User:
        """Return the signed-in user or raise UnauthorizedError."""
        ...
