"""
Meetup Calendar — Proposal Engine.

State machine for meeting proposals:

    PENDING --receiver--> ACCEPTED | DECLINED
    PENDING --proposer--> CANCELLED

All three targets are terminal. Every transition writes the proposal, its
day-entry side effects and a message in the pair's conversation inside one
transaction, so a proposal never exists without its conversation record.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from src.core.dates import format_date_key
from src.core.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    SelfTargetError,
    UnauthorizedError,
)
from src.data.models import MeetingProposal, MessageType, ProposalStatus

if TYPE_CHECKING:
    from src.core.availability import AvailabilityStore
    from src.core.conversations import ConversationLedger
    from src.core.friendship import FriendshipGraph
    from src.data.db import ProposalDB, UserDB
    from src.data.models import User

logger = logging.getLogger(__name__)


_PROPOSED_TEMPLATE = "{user} proposed a meeting on {date}."
_OUTCOME_TEMPLATES = {
    ProposalStatus.ACCEPTED: "{user} accepted the meeting on {date}.",
    ProposalStatus.DECLINED: "{user} declined the meeting on {date}.",
    ProposalStatus.CANCELLED: "{user} cancelled the meeting proposal for {date}.",
}


class ProposalEngine:
    """Creates meeting proposals and applies their transitions."""

    def __init__(
        self,
        proposals: ProposalDB,
        users: UserDB,
        availability: AvailabilityStore,
        friendships: FriendshipGraph,
        ledger: ConversationLedger,
    ) -> None:
        self._proposals = proposals
        self._users = users
        self._availability = availability
        self._friendships = friendships
        self._ledger = ledger

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def propose(
        self,
        proposer: User,
        receiver_username: str,
        day: date,
        message: str | None = None,
    ) -> MeetingProposal:
        """Propose meeting `receiver_username` on `day`.

        The proposal points at the receiver's day entry, which is created
        with status NONE if it did not exist.

        Raises:
            NotFoundError: unknown receiver.
            SelfTargetError: receiver is the proposer.
            ForbiddenError: receiver only accepts proposals from friends.
        """
        message = (message or "").strip() or None

        with self._proposals.transaction() as conn:
            receiver = self._users.get_by_username(receiver_username, conn=conn)
            if receiver is None:
                raise NotFoundError(f"User {receiver_username!r} not found")
            if receiver.id == proposer.id:
                raise SelfTargetError("You cannot propose a meeting to yourself")
            if receiver.friend_only_for_meeting_requests and not self._friendships.is_accepted(
                proposer.id, receiver.id, conn=conn,
            ):
                logger.warning(
                    "Proposal from #%d to #%d blocked: friends only", proposer.id, receiver.id,
                )
                raise ForbiddenError(f"{receiver.username} only accepts proposals from friends")

            entry = self._availability.ensure_day_entry(receiver.id, day, conn=conn)
            proposal = self._proposals.create(proposer.id, receiver.id, entry, message, conn=conn)

            conversation = self._ledger.ensure_conversation(proposer.id, receiver.id, conn=conn)
            self._ledger.post_message(
                conversation,
                proposer.id,
                _PROPOSED_TEMPLATE.format(user=proposer.username, date=format_date_key(day)),
                MessageType.MEETING_PROPOSAL,
                related_proposal_id=proposal.id,
                conn=conn,
            )

        logger.info(
            "Proposal #%d: #%d -> #%d on %s", proposal.id, proposer.id, receiver.id, day,
        )
        return proposal

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    def respond(
        self, responder: User, proposal_id: int, target: ProposalStatus,
    ) -> MeetingProposal:
        """Move a PENDING proposal to ACCEPTED, DECLINED or CANCELLED.

        Raises:
            NotFoundError: no such proposal.
            UnauthorizedError: receiver-only or proposer-only transition
                attempted by someone else.
            InvalidTransitionError: target is PENDING, or the proposal is
                already in a terminal state.
        """
        with self._proposals.transaction() as conn:
            proposal = self._proposals.get(proposal_id, conn=conn)
            if proposal is None:
                raise NotFoundError(f"Proposal {proposal_id} not found")

            self._authorize(responder, proposal, target)
            if proposal.status is not ProposalStatus.PENDING:
                raise InvalidTransitionError(
                    f"Proposal {proposal_id} is already {proposal.status.value}"
                )

            responded_at = self._proposals.transition(proposal.id, target, conn=conn)
            if responded_at is None:
                raise InvalidTransitionError(f"Proposal {proposal_id} is no longer pending")
            proposal.status = target
            proposal.responded_at = responded_at

            if target is ProposalStatus.ACCEPTED:
                # Mirror the commitment onto both calendars
                self._availability.apply_confirmed_busy(proposal.receiver_id, proposal.date, conn=conn)
                self._availability.apply_confirmed_busy(proposal.proposer_id, proposal.date, conn=conn)

            conversation = self._ledger.ensure_conversation(
                proposal.proposer_id, proposal.receiver_id, conn=conn,
            )
            self._ledger.post_message(
                conversation,
                responder.id,
                _OUTCOME_TEMPLATES[target].format(
                    user=responder.username, date=format_date_key(proposal.date),
                ),
                MessageType.SYSTEM,
                related_proposal_id=proposal.id,
                conn=conn,
            )

        logger.info("Proposal #%d %s by #%d", proposal.id, target.value, responder.id)
        return proposal

    @staticmethod
    def _authorize(responder: User, proposal: MeetingProposal, target: ProposalStatus) -> None:
        if target is ProposalStatus.PENDING:
            raise InvalidTransitionError("A proposal cannot be moved back to PENDING")
        if target is ProposalStatus.CANCELLED:
            allowed = responder.id == proposal.proposer_id
        else:
            allowed = responder.id == proposal.receiver_id
        if not allowed:
            raise UnauthorizedError(
                f"Not allowed to mark proposal {proposal.id} as {target.value}"
            )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_proposal(self, proposal_id: int) -> MeetingProposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise NotFoundError(f"Proposal {proposal_id} not found")
        return proposal

    def list_for_day_entry(self, day_entry_id: int) -> list[MeetingProposal]:
        return self._proposals.list_for_day_entry(day_entry_id)

    def list_for_user(
        self, user: User, status: ProposalStatus | None = None,
    ) -> list[MeetingProposal]:
        return self._proposals.list_for_user(user.id, status)

    def can_propose(self, viewer: User, target: User) -> bool:
        """Whether the viewer may propose a meeting on the target's calendar."""
        if viewer.id == target.id:
            return False
        if not target.friend_only_for_meeting_requests:
            return True
        return self._friendships.is_accepted(viewer.id, target.id)
