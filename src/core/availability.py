"""
Meetup Calendar — Availability Store.

Per-user, per-day availability. Entries are created lazily: the first status
edit, comment or proposal that touches a day creates it.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from src.core.dates import month_bounds
from src.core.errors import NotFoundError
from src.data.models import AvailabilityStatus, DayComment, DayEntry, MeetingProposal

if TYPE_CHECKING:
    from src.data.db import DayEntryDB, ProposalDB, UserDB
    from src.data.models import User

logger = logging.getLogger(__name__)


@dataclass
class DayDetail:
    """Everything shown for one selected day on a user's calendar."""

    owner_id: int
    date: date
    entry: DayEntry | None = None
    comments: list[DayComment] = field(default_factory=list)
    proposals: list[MeetingProposal] = field(default_factory=list)

    @property
    def status(self) -> AvailabilityStatus:
        return self.entry.status if self.entry else AvailabilityStatus.NONE


class AvailabilityStore:
    """Reads and writes day entries."""

    def __init__(
        self,
        day_entries: DayEntryDB,
        users: UserDB,
        proposals: ProposalDB | None = None,
    ) -> None:
        self._entries = day_entries
        self._users = users
        self._proposals = proposals

    def set_availability(
        self,
        user: User,
        day: date,
        status: AvailabilityStatus,
        note: str | None = None,
    ) -> DayEntry:
        """Upsert the user's own entry for `day`. Calling twice keeps one row."""
        note = (note or "").strip() or None
        entry = self._entries.upsert(user.id, day, status, note)
        logger.info("User #%d set %s to %s", user.id, day, status.value)
        return entry

    def ensure_day_entry(
        self, user_id: int, day: date, conn: sqlite3.Connection | None = None,
    ) -> DayEntry:
        return self._entries.ensure(user_id, day, conn=conn)

    def apply_confirmed_busy(
        self, user_id: int, day: date, conn: sqlite3.Connection | None = None,
    ) -> DayEntry:
        """Confirmed meetings always win: BUSY overrides any prior status."""
        return self._entries.force_status(user_id, day, AvailabilityStatus.BUSY, conn=conn)

    def get_day_entry(self, user_id: int, day: date) -> DayEntry | None:
        return self._entries.get(user_id, day)

    def list_month(self, user_id: int, year: int, month: int) -> dict[date, AvailabilityStatus]:
        """Status of every touched day in the month. Untouched days are absent."""
        start, end = month_bounds(year, month)
        return {e.date: e.status for e in self._entries.list_range(user_id, start, end)}

    def day_detail(self, owner_id: int, day: date) -> DayDetail:
        entry = self._entries.get(owner_id, day)
        detail = DayDetail(owner_id=owner_id, date=day, entry=entry)
        if entry is None:
            return detail
        detail.comments = self._entries.list_comments(entry.id)
        if self._proposals is not None:
            detail.proposals = self._proposals.list_for_day_entry(entry.id)
        return detail

    def add_comment(
        self, author: User, owner_username: str, day: date, content: str,
    ) -> DayComment:
        """Comment on someone's day, creating their entry if needed.

        Raises:
            NotFoundError: if the calendar owner does not exist.
        """
        with self._entries.transaction() as conn:
            owner = self._users.get_by_username(owner_username, conn=conn)
            if owner is None:
                raise NotFoundError(f"User {owner_username!r} not found")
            entry = self._entries.ensure(owner.id, day, conn=conn)
            comment = self._entries.add_comment(entry.id, author.id, content, conn=conn)
        logger.info("User #%d commented on #%d's %s", author.id, owner.id, day)
        return comment

    def list_comments(self, day_entry_id: int) -> list[DayComment]:
        return self._entries.list_comments(day_entry_id)
