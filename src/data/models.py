"""
Meetup Calendar — Data Models.

Plain records returned by the SQLite stores. Status columns are closed
enums; raw strings are converted at the boundary and never trusted past it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum


class AvailabilityStatus(str, Enum):
    NONE = "NONE"
    OPEN = "OPEN"
    BUSY = "BUSY"
    CLOSED = "CLOSED"


class FriendshipStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"


class ProposalStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not ProposalStatus.PENDING


class MessageType(str, Enum):
    TEXT = "TEXT"
    MEETING_PROPOSAL = "MEETING_PROPOSAL"
    SYSTEM = "SYSTEM"


@dataclass
class User:
    """A registered user. Owns a calendar of day entries."""

    id: int
    username: str
    display_name: str | None = None
    friend_only_for_meeting_requests: bool = False
    created_at: str = ""

    @property
    def label(self) -> str:
        """Name shown to other users."""
        return self.display_name or self.username


@dataclass
class DayEntry:
    """A user's availability for one calendar day.

    At most one entry exists per (user_id, date).
    """

    id: int
    user_id: int
    date: date
    status: AvailabilityStatus = AvailabilityStatus.NONE
    personal_note: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class DayComment:
    id: int
    day_entry_id: int
    author_id: int
    content: str
    created_at: str = ""


@dataclass
class Friendship:
    """Directed request, symmetric once accepted. Rejection deletes the row."""

    id: int
    requester_id: int
    receiver_id: int
    status: FriendshipStatus = FriendshipStatus.PENDING
    created_at: str = ""

    def other(self, user_id: int) -> int:
        return self.receiver_id if user_id == self.requester_id else self.requester_id


@dataclass
class MeetingProposal:
    """A request to meet on the receiver's day entry."""

    id: int
    proposer_id: int
    receiver_id: int
    day_entry_id: int
    date: date
    message: str | None = None
    status: ProposalStatus = ProposalStatus.PENDING
    created_at: str = ""
    responded_at: str | None = None


@dataclass
class Conversation:
    """The single thread shared by an unordered user pair (user_a_id < user_b_id)."""

    id: int
    user_a_id: int
    user_b_id: int
    created_at: str = ""
    last_message_at: str = ""

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user_a_id, self.user_b_id)

    def other(self, user_id: int) -> int:
        return self.user_b_id if user_id == self.user_a_id else self.user_a_id


@dataclass
class Message:
    id: int
    conversation_id: int
    sender_id: int
    content: str
    message_type: MessageType = MessageType.TEXT
    related_proposal_id: int | None = None
    created_at: str = ""

    @property
    def is_system(self) -> bool:
        """True for engine-generated proposal lifecycle messages."""
        return self.message_type is not MessageType.TEXT


@dataclass
class ConversationSummary:
    """Inbox row: a conversation with its latest message."""

    conversation: Conversation
    other_user_id: int
    last_message: Message | None = None
