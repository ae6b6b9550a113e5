"""Identity adapter — resolves a session's user id through UserDB."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.core.errors import UnauthorizedError

if TYPE_CHECKING:
    from src.data.db import UserDB
    from src.data.models import User

logger = logging.getLogger(__name__)


class UserDBIdentity:
    """IdentityPort backed by the users table.

    `user_id` is whatever the session layer authenticated; None means
    signed out.
    """

    def __init__(self, users: UserDB, user_id: int | None) -> None:
        self._users = users
        self._user_id = user_id

    def current_user(self) -> User | None:
        if self._user_id is None:
            return None
        user = self._users.get_user(self._user_id)
        if user is None:
            logger.warning("Session refers to unknown user #%d", self._user_id)
        return user

    def require_user(self) -> User:
        user = self.current_user()
        if user is None:
            raise UnauthorizedError("Sign in to continue")
        return user
