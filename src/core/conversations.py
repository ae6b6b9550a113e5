"""
Meetup Calendar — Conversation Ledger.

One thread per unordered user pair. Messages are append-only: human chat
(TEXT) and engine-generated records of proposal lifecycle events share the
same log.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

from src.core.errors import ForbiddenError, NotFoundError, SelfTargetError
from src.data.models import Conversation, ConversationSummary, Message, MessageType

if TYPE_CHECKING:
    from src.data.db import ConversationDB
    from src.data.models import User

logger = logging.getLogger(__name__)


class ConversationLedger:
    """Conversations and their messages."""

    def __init__(self, conversations: ConversationDB) -> None:
        self._conversations = conversations

    def ensure_conversation(
        self, a_id: int, b_id: int, conn: sqlite3.Connection | None = None,
    ) -> Conversation:
        """Get-or-create the pair's thread. Safe to call from both orderings at once."""
        if a_id == b_id:
            raise SelfTargetError("A conversation needs two different users")
        return self._conversations.ensure(a_id, b_id, conn=conn)

    def post_message(
        self,
        conversation: Conversation,
        sender_id: int,
        content: str,
        message_type: MessageType = MessageType.TEXT,
        related_proposal_id: int | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> Message | None:
        """Append a message and bump last_message_at.

        Blank TEXT content is ignored and returns None. Engine-generated
        messages are always written.

        Raises:
            ForbiddenError: sender is not one of the two participants.
        """
        if not conversation.has_participant(sender_id):
            raise ForbiddenError("Only participants can post in this conversation")

        if message_type is MessageType.TEXT:
            content = (content or "").strip()
            if not content:
                logger.debug("Ignoring blank message in conversation #%d", conversation.id)
                return None

        message = self._conversations.add_message(
            conversation.id,
            sender_id,
            content,
            message_type,
            related_proposal_id=related_proposal_id,
            conn=conn,
        )
        conversation.last_message_at = message.created_at
        return message

    def get_for_participant(self, viewer: User, conversation_id: int) -> Conversation:
        """Load a conversation the viewer takes part in.

        Raises:
            NotFoundError: no such conversation.
            ForbiddenError: viewer is not a participant.
        """
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found")
        if not conversation.has_participant(viewer.id):
            raise ForbiddenError("You are not part of this conversation")
        return conversation

    def send_text(self, sender: User, conversation_id: int, content: str) -> Message | None:
        with self._conversations.transaction() as conn:
            conversation = self._conversations.get(conversation_id, conn=conn)
            if conversation is None:
                raise NotFoundError(f"Conversation {conversation_id} not found")
            message = self.post_message(conversation, sender.id, content, conn=conn)
        if message is not None:
            logger.info("User #%d posted in conversation #%d", sender.id, conversation_id)
        return message

    def list_conversations(self, user: User) -> list[ConversationSummary]:
        return self._conversations.list_for_user(user.id)

    def list_messages(self, conversation_id: int) -> list[Message]:
        return self._conversations.list_messages(conversation_id)
