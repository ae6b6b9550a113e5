"""
Meetup Calendar — Friendship Graph.

States per unordered pair: no record, PENDING, ACCEPTED. Rejecting a request
deletes the record, so the pair starts from scratch and either side may ask
again immediately.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

from src.core.errors import (
    AlreadyFriendsError,
    DuplicateRequestError,
    InvalidTransitionError,
    NotFoundError,
    SelfTargetError,
    UnauthorizedError,
)
from src.data.models import Friendship, FriendshipStatus

if TYPE_CHECKING:
    from src.data.db import FriendshipDB, UserDB
    from src.data.models import User

logger = logging.getLogger(__name__)


class FriendshipGraph:
    """Pairwise relationship state that gates meeting proposals."""

    def __init__(self, friendships: FriendshipDB, users: UserDB) -> None:
        self._friendships = friendships
        self._users = users

    def request(self, requester: User, target_username: str) -> Friendship:
        """Send a friend request.

        Raises:
            NotFoundError: unknown target.
            SelfTargetError: target is the requester.
            DuplicateRequestError: a request is already pending either way.
            AlreadyFriendsError: the pair is already friends.
        """
        try:
            with self._friendships.transaction() as conn:
                target = self._users.get_by_username(target_username, conn=conn)
                if target is None:
                    raise NotFoundError(f"User {target_username!r} not found")
                if target.id == requester.id:
                    raise SelfTargetError("You cannot send a friend request to yourself")

                existing = self._friendships.find_between(requester.id, target.id, conn=conn)
                if existing is not None:
                    if existing.status is FriendshipStatus.ACCEPTED:
                        raise AlreadyFriendsError(f"Already friends with {target.username}")
                    raise DuplicateRequestError(
                        f"A friend request with {target.username} is already pending"
                    )

                friendship = self._friendships.create(requester.id, target.id, conn=conn)
        except sqlite3.IntegrityError as exc:
            # Lost a race with a concurrent request for the same pair
            raise DuplicateRequestError("A friend request is already pending") from exc

        logger.info("Friend request #%d: #%d -> #%d", friendship.id, requester.id, target.id)
        return friendship

    def respond(self, receiver: User, friendship_id: int, accept: bool) -> Friendship | None:
        """Accept or reject a pending request. Rejection deletes it and returns None.

        Raises:
            NotFoundError: no such request.
            UnauthorizedError: caller is not the receiver.
            InvalidTransitionError: the request was already accepted.
        """
        with self._friendships.transaction() as conn:
            friendship = self._friendships.get(friendship_id, conn=conn)
            if friendship is None:
                raise NotFoundError(f"Friend request {friendship_id} not found")
            if friendship.receiver_id != receiver.id:
                raise UnauthorizedError("Only the receiver can answer a friend request")
            if friendship.status is not FriendshipStatus.PENDING:
                raise InvalidTransitionError("Friend request was already accepted")

            if accept:
                self._friendships.set_status(friendship.id, FriendshipStatus.ACCEPTED, conn=conn)
                friendship.status = FriendshipStatus.ACCEPTED
            else:
                self._friendships.delete(friendship.id, conn=conn)

        if accept:
            logger.info("Friend request #%d accepted", friendship_id)
            return friendship
        logger.info("Friend request #%d rejected and removed", friendship_id)
        return None

    def is_accepted(
        self, a_id: int, b_id: int, conn: sqlite3.Connection | None = None,
    ) -> bool:
        friendship = self._friendships.find_between(a_id, b_id, conn=conn)
        return friendship is not None and friendship.status is FriendshipStatus.ACCEPTED

    def relationship(self, a_id: int, b_id: int) -> Friendship | None:
        return self._friendships.find_between(a_id, b_id)

    def friend_ids(self, user_id: int) -> list[int]:
        accepted = self._friendships.list_for_user(user_id, FriendshipStatus.ACCEPTED)
        return [f.other(user_id) for f in accepted]

    def list_friends(self, user: User) -> list[User]:
        by_id = self._users.get_many(self.friend_ids(user.id))
        return sorted(by_id.values(), key=lambda u: u.username)

    def list_incoming(self, user: User) -> list[Friendship]:
        return self._friendships.list_for_user(user.id, FriendshipStatus.PENDING, incoming=True)

    def list_outgoing(self, user: User) -> list[Friendship]:
        return self._friendships.list_for_user(user.id, FriendshipStatus.PENDING, incoming=False)

    def find_people(self, user: User, query: str | None, limit: int = 10) -> list[User]:
        """Other users whose username contains `query`, ignoring case."""
        query = (query or "").strip()
        if not query:
            return []
        return self._users.search(query, exclude_id=user.id, limit=limit)
