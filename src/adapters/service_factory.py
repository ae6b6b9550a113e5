"""Service factory — wires the SQLite stores into the core services."""

from __future__ import annotations

from dataclasses import dataclass

from src.core.availability import AvailabilityStore
from src.core.conversations import ConversationLedger
from src.core.feed import ActivityFeed
from src.core.friendship import FriendshipGraph
from src.core.proposals import ProposalEngine
from src.data.db import ConversationDB, DayEntryDB, FriendshipDB, ProposalDB, UserDB


@dataclass
class Services:
    users: UserDB
    availability: AvailabilityStore
    friendships: FriendshipGraph
    proposals: ProposalEngine
    ledger: ConversationLedger
    feed: ActivityFeed


def create_services(db_path: str | None = None) -> Services:
    """Return every core service bound to one database file.

    Args:
        db_path: SQLite file. Defaults to the DATABASE_PATH setting.
    """
    users = UserDB(db_path)
    day_entries = DayEntryDB(users.db_path)
    friendship_db = FriendshipDB(users.db_path)
    proposal_db = ProposalDB(users.db_path)
    conversation_db = ConversationDB(users.db_path)

    availability = AvailabilityStore(day_entries, users, proposal_db)
    friendships = FriendshipGraph(friendship_db, users)
    ledger = ConversationLedger(conversation_db)
    proposals = ProposalEngine(proposal_db, users, availability, friendships, ledger)
    feed = ActivityFeed(users, day_entries, proposal_db, friendships)

    return Services(
        users=users,
        availability=availability,
        friendships=friendships,
        proposals=proposals,
        ledger=ledger,
        feed=feed,
    )
