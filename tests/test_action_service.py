"""Tests for src.core.action_service — UI-agnostic service layer.

Identity is a MagicMock standing in for the session layer; everything else
runs against a real temp database.
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from src.core.action_service import (
    ActionService,
    CalendarView,
    ConversationView,
    ErrorResponse,
    NoActionResponse,
    ResponseKind,
    SuccessResponse,
)
from src.core.errors import (
    ForbiddenError,
    NotFoundError,
    SelfTargetError,
    StoreError,
    UnauthorizedError,
    ValidationError,
)
from src.data.models import AvailabilityStatus, ProposalStatus


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _identity(user):
    identity = MagicMock()
    identity.current_user.return_value = user
    if user is None:
        identity.require_user.side_effect = UnauthorizedError("Sign in to continue")
    else:
        identity.require_user.return_value = user
    return identity


@pytest.fixture
def as_user(services):
    """Return a helper building an ActionService for the given user."""
    def _as(user):
        return ActionService(services, _identity(user))
    return _as


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegisterUser:
    def test_register(self, as_user):
        response = as_user(None).register_user("dave", "Dave")
        assert isinstance(response, SuccessResponse)
        assert response.data.username == "dave"

    def test_taken_username_is_inline_error(self, as_user, alice):
        response = as_user(None).register_user("alice")
        assert isinstance(response, ErrorResponse)
        assert "taken" in response.message

    def test_invalid_username_is_inline_error(self, as_user):
        response = as_user(None).register_user("x!")
        assert response.kind == ResponseKind.ERROR


class TestMeetingPolicy:
    def test_friend_only_blocks_strangers(self, as_user, services, alice, bob):
        response = as_user(alice).update_meeting_policy(True)
        assert isinstance(response, SuccessResponse)
        assert response.data.friend_only_for_meeting_requests is True
        with pytest.raises(ForbiddenError):
            as_user(bob).propose_meeting("alice", "2024-06-01")

        as_user(alice).update_meeting_policy(False)
        assert isinstance(as_user(bob).propose_meeting("alice", "2024-06-01"), SuccessResponse)

    def test_requires_sign_in(self, as_user):
        with pytest.raises(UnauthorizedError):
            as_user(None).update_meeting_policy(True)


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------


class TestUpdateDay:
    def test_owner_updates_own_day(self, as_user, services, alice):
        response = as_user(alice).update_day("alice", "2024-06-01", "OPEN", "free")
        assert isinstance(response, SuccessResponse)
        assert response.data.status is AvailabilityStatus.OPEN
        entry = services.availability.get_day_entry(alice.id, date(2024, 6, 1))
        assert entry.personal_note == "free"

    def test_other_calendar_is_unauthorized(self, as_user, alice, bob):
        with pytest.raises(UnauthorizedError):
            as_user(bob).update_day("alice", "2024-06-01", "OPEN")

    def test_signed_out_is_unauthorized(self, as_user, alice):
        with pytest.raises(UnauthorizedError):
            as_user(None).update_day("alice", "2024-06-01", "OPEN")

    def test_bad_status_is_inline_error(self, as_user, services, alice):
        response = as_user(alice).update_day("alice", "2024-06-01", "SOMETIMES")
        assert isinstance(response, ErrorResponse)
        assert services.availability.get_day_entry(alice.id, date(2024, 6, 1)) is None

    def test_bad_date_is_inline_error(self, as_user, alice):
        response = as_user(alice).update_day("alice", "June 1st", "OPEN")
        assert isinstance(response, ErrorResponse)
        assert "Invalid date" in response.message


class TestDayComment:
    def test_comment(self, as_user, services, alice, bob):
        response = as_user(bob).add_day_comment("alice", "2024-06-01", "coffee?")
        assert isinstance(response, SuccessResponse)
        detail = services.availability.day_detail(alice.id, date(2024, 6, 1))
        assert [c.content for c in detail.comments] == ["coffee?"]

    def test_empty_comment(self, as_user, alice, bob):
        response = as_user(bob).add_day_comment("alice", "2024-06-01", " ")
        assert isinstance(response, ErrorResponse)

    def test_unknown_owner(self, as_user, bob):
        with pytest.raises(NotFoundError):
            as_user(bob).add_day_comment("ghost", "2024-06-01", "hi")


class TestViewCalendar:
    def test_view_friend_calendar(self, as_user, services, alice, bob, make_friends):
        make_friends(alice, bob)
        services.availability.set_availability(alice, date(2024, 6, 3), AvailabilityStatus.OPEN)

        view = as_user(bob).view_calendar("alice", "2024-06-03")
        assert isinstance(view, CalendarView)
        assert (view.year, view.month) == (2024, 6)
        assert view.statuses == {date(2024, 6, 3): AvailabilityStatus.OPEN}
        assert view.selected.status is AvailabilityStatus.OPEN
        assert view.is_owner is False
        assert view.is_friend is True
        assert view.can_propose is True

    def test_owner_cannot_propose_to_self(self, as_user, alice):
        view = as_user(alice).view_calendar("alice", "2024-06-03")
        assert view.is_owner is True
        assert view.can_propose is False

    def test_unknown_user(self, as_user, alice):
        with pytest.raises(NotFoundError):
            as_user(alice).view_calendar("ghost")

    def test_view_day(self, as_user, alice, bob):
        as_user(bob).add_day_comment("alice", "2024-06-03", "lunch?")
        detail = as_user(bob).view_day("alice", "2024-06-03T18:30:00")
        assert detail.date == date(2024, 6, 3)
        assert [c.content for c in detail.comments] == ["lunch?"]
        with pytest.raises(NotFoundError):
            as_user(bob).view_day("ghost", "2024-06-03")

    def test_malformed_date_key_raises(self, as_user, alice, bob):
        with pytest.raises(ValidationError):
            as_user(bob).view_calendar("alice", "2024-13-40")
        with pytest.raises(ValidationError):
            as_user(bob).view_day("alice", "not-a-date")

    def test_missing_date_key_means_today(self, as_user, alice):
        today = date.today()
        view = as_user(alice).view_calendar("alice")
        assert (view.year, view.month) == (today.year, today.month)
        assert view.selected.date == today


# ---------------------------------------------------------------------------
# Proposals
# ---------------------------------------------------------------------------


class TestProposeMeeting:
    def test_propose(self, as_user, alice, bob):
        response = as_user(bob).propose_meeting("alice", "2024-06-01", "dinner?")
        assert isinstance(response, SuccessResponse)
        assert response.data.status is ProposalStatus.PENDING

    def test_message_too_long_is_inline_error(self, as_user, services, alice, bob):
        response = as_user(bob).propose_meeting("alice", "2024-06-01", "x" * 500)
        assert isinstance(response, ErrorResponse)
        assert services.proposals.list_for_user(alice) == []

    def test_authorization_failures_propagate(self, as_user, services, alice, bob):
        with pytest.raises(SelfTargetError):
            as_user(bob).propose_meeting("bob", "2024-06-01")
        services.users.set_meeting_request_policy(alice.id, True)
        with pytest.raises(ForbiddenError):
            as_user(bob).propose_meeting("alice", "2024-06-01")
        with pytest.raises(NotFoundError):
            as_user(bob).propose_meeting("ghost", "2024-06-01")

    def test_store_error_is_retryable_response(self, as_user, services, alice, bob):
        with patch.object(
            services.proposals, "propose", side_effect=StoreError("database is locked"),
        ):
            response = as_user(bob).propose_meeting("alice", "2024-06-01")
        assert isinstance(response, ErrorResponse)
        assert response.retryable is True


class TestRespondToProposal:
    def test_accept(self, as_user, services, alice, bob):
        proposal = as_user(bob).propose_meeting("alice", "2024-06-01").data
        response = as_user(alice).respond_to_proposal(str(proposal.id), "ACCEPTED")
        assert isinstance(response, SuccessResponse)
        assert response.message == "Meeting accepted."
        assert services.availability.get_day_entry(bob.id, date(2024, 6, 1)).status is AvailabilityStatus.BUSY

    def test_repeat_response_is_inline_error(self, as_user, alice, bob):
        proposal = as_user(bob).propose_meeting("alice", "2024-06-01").data
        as_user(alice).respond_to_proposal(proposal.id, "DECLINED")
        response = as_user(alice).respond_to_proposal(proposal.id, "ACCEPTED")
        assert isinstance(response, ErrorResponse)
        assert "already DECLINED" in response.message

    def test_unknown_status_is_inline_error(self, as_user, alice, bob):
        proposal = as_user(bob).propose_meeting("alice", "2024-06-01").data
        response = as_user(alice).respond_to_proposal(proposal.id, "MAYBE")
        assert isinstance(response, ErrorResponse)

    def test_wrong_party_propagates(self, as_user, alice, bob):
        proposal = as_user(bob).propose_meeting("alice", "2024-06-01").data
        with pytest.raises(UnauthorizedError):
            as_user(bob).respond_to_proposal(proposal.id, "ACCEPTED")

    def test_missing_proposal_propagates(self, as_user, alice):
        with pytest.raises(NotFoundError):
            as_user(alice).respond_to_proposal(404, "ACCEPTED")


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TestMessaging:
    def test_inbox_and_open_conversation(self, as_user, alice, bob):
        as_user(bob).propose_meeting("alice", "2024-06-01", "dinner?")
        inbox = as_user(alice).inbox()
        assert len(inbox) == 1

        conversation_id = inbox[0].conversation.id
        response = as_user(alice).send_message(conversation_id, "sounds good")
        assert isinstance(response, SuccessResponse)

        view = as_user(bob).open_conversation(conversation_id)
        assert isinstance(view, ConversationView)
        assert view.other_user.username == "alice"
        assert [m.is_system for m in view.messages] == [True, False]

    def test_blank_message_is_no_action(self, as_user, services, alice, bob):
        conversation = services.ledger.ensure_conversation(alice.id, bob.id)
        response = as_user(alice).send_message(conversation.id, "   ")
        assert isinstance(response, NoActionResponse)
        assert services.ledger.list_messages(conversation.id) == []

    def test_outsider_cannot_read_or_write(self, as_user, services, alice, bob, carol):
        conversation = services.ledger.ensure_conversation(alice.id, bob.id)
        with pytest.raises(ForbiddenError):
            as_user(carol).open_conversation(conversation.id)
        with pytest.raises(ForbiddenError):
            as_user(carol).send_message(conversation.id, "hi")


# ---------------------------------------------------------------------------
# Friends and feed
# ---------------------------------------------------------------------------


class TestFriends:
    def test_request_and_accept(self, as_user, alice, bob):
        response = as_user(alice).send_friend_request(" bob ")
        assert isinstance(response, SuccessResponse)

        incoming = as_user(bob).friends().incoming
        assert len(incoming) == 1
        response = as_user(bob).respond_friend_request(str(incoming[0].id), "accept")
        assert response.message == "Friend request accepted."
        assert [u.username for u in as_user(alice).friends().friends] == ["bob"]

    def test_duplicate_request_is_inline_error(self, as_user, alice, bob):
        as_user(alice).send_friend_request("bob")
        response = as_user(bob).send_friend_request("alice")
        assert isinstance(response, ErrorResponse)
        assert "pending" in response.message

    def test_reject(self, as_user, alice, bob):
        request = as_user(alice).send_friend_request("bob").data
        response = as_user(bob).respond_friend_request(request.id, "reject")
        assert response.message == "Friend request rejected."
        assert response.data is None
        assert as_user(bob).friends().incoming == []

    def test_bad_action_is_inline_error(self, as_user, alice, bob):
        request = as_user(alice).send_friend_request("bob").data
        response = as_user(bob).respond_friend_request(request.id, "maybe")
        assert isinstance(response, ErrorResponse)

    def test_self_request_propagates(self, as_user, alice):
        with pytest.raises(SelfTargetError):
            as_user(alice).send_friend_request("alice")

    def test_search_for_people(self, as_user, alice, bob, carol, make_friends):
        make_friends(alice, bob)
        view = as_user(alice).friends(" O ")
        assert [u.username for u in view.search_results] == ["bob", "carol"]
        assert [u.username for u in view.friends] == ["bob"]
        assert as_user(alice).friends().search_results == []


class TestFeed:
    def test_feed(self, as_user, alice, bob, make_friends):
        make_friends(alice, bob)
        as_user(bob).update_day("bob", "2024-06-01", "OPEN")
        items = as_user(alice).feed()
        assert [i.username for i in items] == ["bob"]
