"""
Meetup Calendar — Activity feed.

Recent calendar updates and meeting proposals from the user and their
friends, merged newest first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING

from src.core.dates import format_date_key
from src.data.models import ProposalStatus

if TYPE_CHECKING:
    from src.core.friendship import FriendshipGraph
    from src.data.db import DayEntryDB, ProposalDB, UserDB
    from src.data.models import User

logger = logging.getLogger(__name__)


class FeedItemKind(Enum):
    DAY = "day"
    PROPOSAL = "proposal"


@dataclass
class FeedItem:
    kind: FeedItemKind
    occurred_at: str
    description: str
    username: str      # whose calendar the item links to
    date: date


class ActivityFeed:
    def __init__(
        self,
        users: UserDB,
        day_entries: DayEntryDB,
        proposals: ProposalDB,
        friendships: FriendshipGraph,
    ) -> None:
        self._users = users
        self._entries = day_entries
        self._proposals = proposals
        self._friendships = friendships

    def build(self, user: User, limit: int | None = None) -> list[FeedItem]:
        """Up to `limit` day updates and `limit` proposals, merged newest first."""
        if limit is None:
            from src.config import settings
            limit = settings.FEED_LIMIT

        scope = [user.id, *self._friendships.friend_ids(user.id)]
        entries = self._entries.list_recent(scope, limit)
        proposals = self._proposals.list_recent(scope, limit)

        involved = {e.user_id for e in entries}
        for p in proposals:
            involved.update((p.proposer_id, p.receiver_id))
        users = self._users.get_many(sorted(involved))

        items: list[FeedItem] = []
        for entry in entries:
            owner = users[entry.user_id]
            items.append(FeedItem(
                kind=FeedItemKind.DAY,
                occurred_at=entry.updated_at,
                description=(
                    f"{owner.label} set {format_date_key(entry.date)} to {entry.status.value}."
                ),
                username=owner.username,
                date=entry.date,
            ))
        for proposal in proposals:
            proposer = users[proposal.proposer_id]
            receiver = users[proposal.receiver_id]
            if proposal.status is ProposalStatus.ACCEPTED:
                text = (
                    f"{proposer.label} and {receiver.label} confirmed a meeting "
                    f"on {format_date_key(proposal.date)}."
                )
            else:
                text = f"{proposer.label} proposed a meeting to {receiver.label}."
            items.append(FeedItem(
                kind=FeedItemKind.PROPOSAL,
                occurred_at=proposal.created_at,
                description=text,
                username=receiver.username,
                date=proposal.date,
            ))

        items.sort(key=lambda item: item.occurred_at, reverse=True)
        logger.debug("Feed for user #%d: %d items from %d users", user.id, len(items), len(scope))
        return items
