"""
Meetup Calendar — UI-Agnostic Action Service.

Stateless façade that every surface (web forms, bots, CLI) calls. It asks
the identity port for the user, validates raw input, passes the user
explicitly into the core and returns structured response objects.

Validation and business-rule failures of mutating actions come back as
ErrorResponse so the surface can show them inline. Authorization and
not-found errors are raised: they end the request. Read views have no
form to re-render, so a malformed date key in a view raises
ValidationError as a bad request; an omitted key means today.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any

from src.core.availability import DayDetail
from src.core.dates import parse_date
from src.core.errors import (
    NotFoundError,
    StateConflictError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from src.core.validators import (
    CommentForm,
    DayEntryForm,
    FriendResponseForm,
    MeetingProposalForm,
    ProposalResponseForm,
    RegistrationForm,
    validate,
)
from src.data.models import AvailabilityStatus, ProposalStatus

if TYPE_CHECKING:
    from src.adapters.service_factory import Services
    from src.core.feed import FeedItem
    from src.data.models import (
        Conversation,
        ConversationSummary,
        Friendship,
        Message,
        User,
    )
    from src.ports.identity_port import IdentityPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response types
# ---------------------------------------------------------------------------


class ResponseKind(Enum):
    SUCCESS = "success"
    ERROR = "error"
    NO_ACTION = "no_action"


@dataclass
class ServiceResponse:
    kind: ResponseKind
    message: str


@dataclass
class SuccessResponse(ServiceResponse):
    data: Any = None


@dataclass
class ErrorResponse(ServiceResponse):
    retryable: bool = False


@dataclass
class NoActionResponse(ServiceResponse):
    pass


# --- Read views ---

@dataclass
class CalendarView:
    owner: User
    year: int
    month: int
    statuses: dict[date, AvailabilityStatus]
    selected: DayDetail
    is_owner: bool
    is_friend: bool
    can_propose: bool


@dataclass
class ConversationView:
    conversation: Conversation
    other_user: User | None
    messages: list[Message] = field(default_factory=list)


@dataclass
class FriendsView:
    friends: list[User] = field(default_factory=list)
    incoming: list[Friendship] = field(default_factory=list)
    outgoing: list[Friendship] = field(default_factory=list)
    search_results: list[User] = field(default_factory=list)


_PROPOSAL_SUCCESS = {
    ProposalStatus.ACCEPTED: "Meeting accepted.",
    ProposalStatus.DECLINED: "Meeting declined.",
    ProposalStatus.CANCELLED: "Proposal cancelled.",
}


# ---------------------------------------------------------------------------
# ActionService
# ---------------------------------------------------------------------------


class ActionService:
    """Orchestrates the core for one request's identity.

    Returns structured response objects and never renders anything itself.
    """

    def __init__(self, services: Services, identity: IdentityPort) -> None:
        self._services = services
        self._identity = identity

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _run(action: Callable[[], Any], success_message: str) -> ServiceResponse:
        """Execute a core call, turning business-rule failures into responses."""
        try:
            result = action()
        except (ValidationError, StateConflictError) as exc:
            logger.info("Action rejected: %s", exc)
            return ErrorResponse(kind=ResponseKind.ERROR, message=str(exc))
        except StoreError as exc:
            logger.error("Store error: %s", exc)
            return ErrorResponse(
                kind=ResponseKind.ERROR,
                message="The service is busy right now. Please try again.",
                retryable=True,
            )
        return SuccessResponse(kind=ResponseKind.SUCCESS, message=success_message, data=result)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def register_user(self, username: str, display_name: str | None = None) -> ServiceResponse:
        """Create a user record. Credentials are handled by the session layer."""
        def action() -> User:
            form = validate(RegistrationForm, username=username, display_name=display_name)
            return self._services.users.add_user(form.username, form.display_name)

        return self._run(action, "Account created.")

    def update_meeting_policy(self, friend_only: bool) -> ServiceResponse:
        """Choose whether only accepted friends may propose meetings to the signed-in user."""
        user = self._identity.require_user()

        def action() -> User | None:
            users = self._services.users
            users.set_meeting_request_policy(user.id, friend_only)
            return users.get_user(user.id)

        return self._run(action, "Meeting request settings updated.")

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------

    def update_day(
        self, username: str, date_key: str, status: str, personal_note: str | None = None,
    ) -> ServiceResponse:
        """Set the signed-in user's availability for one day.

        Raises:
            UnauthorizedError: `username` is not the signed-in user's calendar.
        """
        user = self._identity.require_user()
        if user.username != username:
            raise UnauthorizedError("You can only edit your own calendar")

        def action():
            form = validate(DayEntryForm, day=date_key, status=status, personal_note=personal_note)
            return self._services.availability.set_availability(
                user, form.day, form.status, form.personal_note,
            )

        return self._run(action, "Availability updated.")

    def add_day_comment(self, username: str, date_key: str, content: str) -> ServiceResponse:
        user = self._identity.require_user()

        def action():
            form = validate(CommentForm, day=date_key, content=content)
            return self._services.availability.add_comment(user, username, form.day, form.content)

        return self._run(action, "Comment added.")

    def view_calendar(self, username: str, date_key: str | None = None) -> CalendarView:
        """Month statuses plus the selected day's detail for `username`.

        Raises:
            NotFoundError: unknown user.
            ValidationError: malformed date key.
        """
        viewer = self._identity.require_user()
        owner = self._services.users.get_by_username(username)
        if owner is None:
            raise NotFoundError(f"User {username!r} not found")

        selected_day = parse_date(date_key) if date_key else date.today()
        availability = self._services.availability
        is_owner = viewer.id == owner.id
        return CalendarView(
            owner=owner,
            year=selected_day.year,
            month=selected_day.month,
            statuses=availability.list_month(owner.id, selected_day.year, selected_day.month),
            selected=availability.day_detail(owner.id, selected_day),
            is_owner=is_owner,
            is_friend=not is_owner and self._services.friendships.is_accepted(viewer.id, owner.id),
            can_propose=self._services.proposals.can_propose(viewer, owner),
        )

    def view_day(self, username: str, date_key: str) -> DayDetail:
        """Entry, comments and proposals for one of `username`'s days.

        Raises:
            NotFoundError: unknown user.
            ValidationError: malformed date key.
        """
        self._identity.require_user()
        owner = self._services.users.get_by_username(username)
        if owner is None:
            raise NotFoundError(f"User {username!r} not found")
        return self._services.availability.day_detail(owner.id, parse_date(date_key))

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def propose_meeting(
        self, username: str, date_key: str, message: str | None = None,
    ) -> ServiceResponse:
        user = self._identity.require_user()

        def action():
            form = validate(MeetingProposalForm, day=date_key, message=message)
            return self._services.proposals.propose(user, username, form.day, form.message)

        return self._run(action, "Meeting proposed.")

    def respond_to_proposal(self, proposal_id: int | str, status: str) -> ServiceResponse:
        user = self._identity.require_user()
        try:
            form = validate(ProposalResponseForm, proposal_id=proposal_id, status=status)
        except ValidationError as exc:
            return ErrorResponse(kind=ResponseKind.ERROR, message=str(exc))

        return self._run(
            lambda: self._services.proposals.respond(user, form.proposal_id, form.status),
            _PROPOSAL_SUCCESS[form.status],
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_message(self, conversation_id: int, content: str) -> ServiceResponse:
        user = self._identity.require_user()
        if not (content or "").strip():
            return NoActionResponse(kind=ResponseKind.NO_ACTION, message="")

        return self._run(
            lambda: self._services.ledger.send_text(user, conversation_id, content),
            "Message sent.",
        )

    def inbox(self) -> list[ConversationSummary]:
        user = self._identity.require_user()
        return self._services.ledger.list_conversations(user)

    def open_conversation(self, conversation_id: int) -> ConversationView:
        user = self._identity.require_user()
        ledger = self._services.ledger
        conversation = ledger.get_for_participant(user, conversation_id)
        return ConversationView(
            conversation=conversation,
            other_user=self._services.users.get_user(conversation.other(user.id)),
            messages=ledger.list_messages(conversation.id),
        )

    # ------------------------------------------------------------------
    # Friends
    # ------------------------------------------------------------------

    def send_friend_request(self, target_username: str) -> ServiceResponse:
        user = self._identity.require_user()
        return self._run(
            lambda: self._services.friendships.request(user, target_username.strip()),
            "Friend request sent.",
        )

    def respond_friend_request(self, friendship_id: int | str, action: str) -> ServiceResponse:
        user = self._identity.require_user()
        try:
            form = validate(FriendResponseForm, friendship_id=friendship_id, action=action)
        except ValidationError as exc:
            return ErrorResponse(kind=ResponseKind.ERROR, message=str(exc))

        return self._run(
            lambda: self._services.friendships.respond(user, form.friendship_id, form.accept),
            "Friend request accepted." if form.accept else "Friend request rejected.",
        )

    def friends(self, query: str | None = None) -> FriendsView:
        """Friends, pending requests both ways, and username matches for `query`."""
        user = self._identity.require_user()
        graph = self._services.friendships
        return FriendsView(
            friends=graph.list_friends(user),
            incoming=graph.list_incoming(user),
            outgoing=graph.list_outgoing(user),
            search_results=graph.find_people(user, query),
        )

    def feed(self, limit: int | None = None) -> list[FeedItem]:
        user = self._identity.require_user()
        return self._services.feed.build(user, limit)
