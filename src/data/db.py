"""
Meetup Calendar — SQLite storage.

Every store class shares one schema and one database file. Reads and single
writes open their own short transaction; multi-step operations open one with
`transaction()` and pass the connection to each store call as `conn`, so the
whole unit commits or rolls back together.

Uniqueness constraints are the backstop for every get-or-create:
one day entry per (user, date), one friendship and one conversation per
unordered pair.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path

from src.core.errors import StoreError, UsernameTakenError
from src.data.models import (
    AvailabilityStatus,
    Conversation,
    ConversationSummary,
    DayComment,
    DayEntry,
    Friendship,
    FriendshipStatus,
    MeetingProposal,
    Message,
    MessageType,
    ProposalStatus,
    User,
)

logger = logging.getLogger(__name__)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id                               INTEGER PRIMARY KEY AUTOINCREMENT,
    username                         TEXT    NOT NULL UNIQUE,
    display_name                     TEXT,
    friend_only_for_meeting_requests INTEGER NOT NULL DEFAULT 0,
    created_at                       TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS day_entries (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id         INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    date            TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'NONE'
                    CHECK (status IN ('NONE', 'OPEN', 'BUSY', 'CLOSED')),
    personal_note   TEXT,
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL,
    UNIQUE (user_id, date)
);

CREATE TABLE IF NOT EXISTS day_comments (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    day_entry_id    INTEGER NOT NULL REFERENCES day_entries(id) ON DELETE CASCADE,
    author_id       INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    content         TEXT    NOT NULL,
    created_at      TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS friendships (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    requester_id    INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    receiver_id     INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    status          TEXT    NOT NULL DEFAULT 'PENDING'
                    CHECK (status IN ('PENDING', 'ACCEPTED')),
    created_at      TEXT    NOT NULL,
    CHECK (requester_id <> receiver_id)
);

CREATE UNIQUE INDEX IF NOT EXISTS friendships_pair
    ON friendships (min(requester_id, receiver_id), max(requester_id, receiver_id));

CREATE TABLE IF NOT EXISTS meeting_proposals (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    proposer_id     INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    receiver_id     INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    day_entry_id    INTEGER NOT NULL REFERENCES day_entries(id) ON DELETE CASCADE,
    message         TEXT,
    status          TEXT    NOT NULL DEFAULT 'PENDING'
                    CHECK (status IN ('PENDING', 'ACCEPTED', 'DECLINED', 'CANCELLED')),
    created_at      TEXT    NOT NULL,
    responded_at    TEXT
);

CREATE TABLE IF NOT EXISTS conversations (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    user_a_id       INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    user_b_id       INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    created_at      TEXT    NOT NULL,
    last_message_at TEXT    NOT NULL,
    CHECK (user_a_id < user_b_id),
    UNIQUE (user_a_id, user_b_id)
);

CREATE TABLE IF NOT EXISTS messages (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id     INTEGER NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    sender_id           INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    content             TEXT    NOT NULL,
    message_type        TEXT    NOT NULL DEFAULT 'TEXT'
                        CHECK (message_type IN ('TEXT', 'MEETING_PROPOSAL', 'SYSTEM')),
    related_proposal_id INTEGER REFERENCES meeting_proposals(id) ON DELETE SET NULL,
    created_at          TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS messages_conversation
    ON messages (conversation_id, created_at);
"""


def utc_now() -> str:
    """Timestamp string that sorts chronologically as text."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def canonical_pair(a: int, b: int) -> tuple[int, int]:
    """Order a user pair so the smaller id comes first."""
    return (a, b) if a < b else (b, a)


class SQLiteStore:
    """Connection and transaction handling shared by every store."""

    def __init__(self, db_path: str | None = None, timeout: float | None = None) -> None:
        if db_path is None or timeout is None:
            from src.config import settings
            db_path = db_path or settings.DATABASE_PATH
            timeout = settings.DB_TIMEOUT_SECONDS if timeout is None else timeout

        self._db_path = db_path
        self._timeout = timeout
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @property
    def db_path(self) -> str:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly below
        conn = sqlite3.connect(self._db_path, timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self) -> None:
        """Create every table and index if missing."""
        conn = self._connect()
        try:
            conn.executescript(_SCHEMA)
        finally:
            conn.close()
        logger.debug("Schema initialized at %s", self._db_path)

    @contextmanager
    def transaction(self, immediate: bool = True) -> Iterator[sqlite3.Connection]:
        """Run a block in one transaction. Commits on success, rolls back on any error.

        `immediate` takes the write lock up front so two writers never
        interleave read-then-write sequences.

        Raises:
            StoreError: when SQLite reports a busy/locked or I/O failure.
        """
        try:
            conn = self._connect()
        except sqlite3.OperationalError as exc:
            raise StoreError(f"Could not open database: {exc}") from exc

        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.OperationalError as exc:
            _rollback(conn)
            logger.warning("Transaction rolled back after store failure: %s", exc)
            raise StoreError(f"Database temporarily unavailable: {exc}") from exc
        except BaseException:
            _rollback(conn)
            raise
        finally:
            conn.close()

    @contextmanager
    def _session(
        self, conn: sqlite3.Connection | None, write: bool = False,
    ) -> Iterator[sqlite3.Connection]:
        """Join the caller's transaction, or open a short one of our own."""
        if conn is not None:
            yield conn
            return
        with self.transaction(immediate=write) as own:
            yield own


def _rollback(conn: sqlite3.Connection) -> None:
    if conn.in_transaction:
        conn.execute("ROLLBACK")


class UserDB(SQLiteStore):
    """Registered users."""

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            display_name=row["display_name"],
            friend_only_for_meeting_requests=bool(row["friend_only_for_meeting_requests"]),
            created_at=row["created_at"],
        )

    def add_user(
        self,
        username: str,
        display_name: str | None = None,
        friend_only_for_meeting_requests: bool = False,
    ) -> User:
        """Register a new user.

        Raises:
            UsernameTakenError: if the username already exists.
        """
        now = utc_now()
        try:
            with self.transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO users
                        (username, display_name, friend_only_for_meeting_requests, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (username, display_name, int(friend_only_for_meeting_requests), now),
                )
                user_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            raise UsernameTakenError(f"Username {username!r} is already taken") from exc

        logger.info("User registered: #%d '%s'", user_id, username)
        return User(
            id=user_id,
            username=username,
            display_name=display_name,
            friend_only_for_meeting_requests=friend_only_for_meeting_requests,
            created_at=now,
        )

    def get_user(self, user_id: int, conn: sqlite3.Connection | None = None) -> User | None:
        with self._session(conn) as c:
            row = c.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_by_username(
        self, username: str, conn: sqlite3.Connection | None = None,
    ) -> User | None:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM users WHERE username = ?", (username,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_many(self, user_ids: list[int]) -> dict[int, User]:
        """Fetch several users at once, keyed by id."""
        if not user_ids:
            return {}
        placeholders = ", ".join("?" for _ in user_ids)
        with self._session(None) as conn:
            rows = conn.execute(
                f"SELECT * FROM users WHERE id IN ({placeholders})", list(user_ids),
            ).fetchall()
        return {row["id"]: self._row_to_user(row) for row in rows}

    def search(self, query: str, exclude_id: int | None = None, limit: int = 10) -> list[User]:
        """Case-insensitive substring match on usernames, alphabetical."""
        pattern = "%" + re.sub(r"([\\%_])", r"\\\1", query.lower()) + "%"
        with self._session(None) as conn:
            rows = conn.execute(
                """
                SELECT * FROM users
                WHERE LOWER(username) LIKE ? ESCAPE '\\' AND id IS NOT ?
                ORDER BY username
                LIMIT ?
                """,
                (pattern, exclude_id, limit),
            ).fetchall()
        return [self._row_to_user(row) for row in rows]

    def set_meeting_request_policy(self, user_id: int, friend_only: bool) -> None:
        """Toggle whether only accepted friends may propose meetings to the user."""
        with self.transaction() as conn:
            conn.execute(
                "UPDATE users SET friend_only_for_meeting_requests = ? WHERE id = ?",
                (int(friend_only), user_id),
            )
        logger.info("User #%d friend-only meeting requests: %s", user_id, friend_only)


class DayEntryDB(SQLiteStore):
    """Per-user, per-day availability records and their comments."""

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> DayEntry:
        return DayEntry(
            id=row["id"],
            user_id=row["user_id"],
            date=date.fromisoformat(row["date"]),
            status=AvailabilityStatus(row["status"]),
            personal_note=row["personal_note"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_comment(row: sqlite3.Row) -> DayComment:
        return DayComment(
            id=row["id"],
            day_entry_id=row["day_entry_id"],
            author_id=row["author_id"],
            content=row["content"],
            created_at=row["created_at"],
        )

    def _select(self, conn: sqlite3.Connection, user_id: int, day: date) -> DayEntry:
        row = conn.execute(
            "SELECT * FROM day_entries WHERE user_id = ? AND date = ?",
            (user_id, day.isoformat()),
        ).fetchone()
        return self._row_to_entry(row)

    def get(
        self, user_id: int, day: date, conn: sqlite3.Connection | None = None,
    ) -> DayEntry | None:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM day_entries WHERE user_id = ? AND date = ?",
                (user_id, day.isoformat()),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    def get_by_id(
        self, entry_id: int, conn: sqlite3.Connection | None = None,
    ) -> DayEntry | None:
        with self._session(conn) as c:
            row = c.execute("SELECT * FROM day_entries WHERE id = ?", (entry_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    def upsert(
        self,
        user_id: int,
        day: date,
        status: AvailabilityStatus,
        personal_note: str | None,
        conn: sqlite3.Connection | None = None,
    ) -> DayEntry:
        """Insert or overwrite status and note for (user_id, day)."""
        now = utc_now()
        with self._session(conn, write=True) as c:
            c.execute(
                """
                INSERT INTO day_entries
                    (user_id, date, status, personal_note, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (user_id, date) DO UPDATE SET
                    status = excluded.status,
                    personal_note = excluded.personal_note,
                    updated_at = excluded.updated_at
                """,
                (user_id, day.isoformat(), status.value, personal_note, now, now),
            )
            return self._select(c, user_id, day)

    def ensure(
        self, user_id: int, day: date, conn: sqlite3.Connection | None = None,
    ) -> DayEntry:
        """Get-or-create with status NONE. A concurrent insert wins; we read its row."""
        now = utc_now()
        with self._session(conn, write=True) as c:
            cursor = c.execute(
                """
                INSERT INTO day_entries
                    (user_id, date, status, personal_note, created_at, updated_at)
                VALUES (?, ?, 'NONE', NULL, ?, ?)
                ON CONFLICT (user_id, date) DO NOTHING
                """,
                (user_id, day.isoformat(), now, now),
            )
            if cursor.rowcount:
                logger.debug("Day entry created lazily for user #%d on %s", user_id, day)
            return self._select(c, user_id, day)

    def force_status(
        self,
        user_id: int,
        day: date,
        status: AvailabilityStatus,
        conn: sqlite3.Connection | None = None,
    ) -> DayEntry:
        """Set status regardless of its previous value, keeping the note."""
        now = utc_now()
        with self._session(conn, write=True) as c:
            c.execute(
                """
                INSERT INTO day_entries
                    (user_id, date, status, personal_note, created_at, updated_at)
                VALUES (?, ?, ?, NULL, ?, ?)
                ON CONFLICT (user_id, date) DO UPDATE SET
                    status = excluded.status,
                    updated_at = excluded.updated_at
                """,
                (user_id, day.isoformat(), status.value, now, now),
            )
            return self._select(c, user_id, day)

    def list_range(self, user_id: int, start: date, end: date) -> list[DayEntry]:
        """Entries with start <= date < end, ordered by date."""
        with self._session(None) as conn:
            rows = conn.execute(
                """
                SELECT * FROM day_entries
                WHERE user_id = ? AND date >= ? AND date < ?
                ORDER BY date
                """,
                (user_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def list_recent(self, user_ids: list[int], limit: int) -> list[DayEntry]:
        """Most recently updated entries across several users."""
        if not user_ids:
            return []
        placeholders = ", ".join("?" for _ in user_ids)
        with self._session(None) as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM day_entries
                WHERE user_id IN ({placeholders})
                ORDER BY updated_at DESC, id DESC
                LIMIT ?
                """,
                [*user_ids, limit],
            ).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def count(self, user_id: int | None = None) -> int:
        query = "SELECT COUNT(*) FROM day_entries"
        params: list = []
        if user_id is not None:
            query += " WHERE user_id = ?"
            params.append(user_id)
        with self._session(None) as conn:
            return conn.execute(query, params).fetchone()[0]

    def add_comment(
        self,
        day_entry_id: int,
        author_id: int,
        content: str,
        conn: sqlite3.Connection | None = None,
    ) -> DayComment:
        now = utc_now()
        with self._session(conn, write=True) as c:
            cursor = c.execute(
                """
                INSERT INTO day_comments (day_entry_id, author_id, content, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (day_entry_id, author_id, content, now),
            )
            comment_id = cursor.lastrowid
        return DayComment(
            id=comment_id,
            day_entry_id=day_entry_id,
            author_id=author_id,
            content=content,
            created_at=now,
        )

    def list_comments(self, day_entry_id: int) -> list[DayComment]:
        with self._session(None) as conn:
            rows = conn.execute(
                "SELECT * FROM day_comments WHERE day_entry_id = ? ORDER BY created_at, id",
                (day_entry_id,),
            ).fetchall()
        return [self._row_to_comment(r) for r in rows]


class FriendshipDB(SQLiteStore):
    """Friend requests and accepted friendships."""

    @staticmethod
    def _row_to_friendship(row: sqlite3.Row) -> Friendship:
        return Friendship(
            id=row["id"],
            requester_id=row["requester_id"],
            receiver_id=row["receiver_id"],
            status=FriendshipStatus(row["status"]),
            created_at=row["created_at"],
        )

    def get(
        self, friendship_id: int, conn: sqlite3.Connection | None = None,
    ) -> Friendship | None:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM friendships WHERE id = ?", (friendship_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_friendship(row)

    def find_between(
        self, a_id: int, b_id: int, conn: sqlite3.Connection | None = None,
    ) -> Friendship | None:
        """Look up the pair's record in either direction."""
        with self._session(conn) as c:
            row = c.execute(
                """
                SELECT * FROM friendships
                WHERE (requester_id = ? AND receiver_id = ?)
                   OR (requester_id = ? AND receiver_id = ?)
                """,
                (a_id, b_id, b_id, a_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_friendship(row)

    def create(
        self, requester_id: int, receiver_id: int, conn: sqlite3.Connection | None = None,
    ) -> Friendship:
        """Insert a PENDING request. Raises sqlite3.IntegrityError if the pair exists."""
        now = utc_now()
        with self._session(conn, write=True) as c:
            cursor = c.execute(
                """
                INSERT INTO friendships (requester_id, receiver_id, status, created_at)
                VALUES (?, ?, 'PENDING', ?)
                """,
                (requester_id, receiver_id, now),
            )
            friendship_id = cursor.lastrowid
        return Friendship(
            id=friendship_id,
            requester_id=requester_id,
            receiver_id=receiver_id,
            status=FriendshipStatus.PENDING,
            created_at=now,
        )

    def set_status(
        self,
        friendship_id: int,
        status: FriendshipStatus,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._session(conn, write=True) as c:
            c.execute(
                "UPDATE friendships SET status = ? WHERE id = ?",
                (status.value, friendship_id),
            )

    def delete(self, friendship_id: int, conn: sqlite3.Connection | None = None) -> bool:
        with self._session(conn, write=True) as c:
            cursor = c.execute("DELETE FROM friendships WHERE id = ?", (friendship_id,))
        return cursor.rowcount > 0

    def list_for_user(
        self,
        user_id: int,
        status: FriendshipStatus,
        incoming: bool | None = None,
    ) -> list[Friendship]:
        """Records involving the user.

        incoming=True: user is the receiver; False: user is the requester;
        None: either side.
        """
        if incoming is None:
            where = "(requester_id = ? OR receiver_id = ?)"
            params: list = [user_id, user_id]
        elif incoming:
            where = "receiver_id = ?"
            params = [user_id]
        else:
            where = "requester_id = ?"
            params = [user_id]
        params.append(status.value)
        with self._session(None) as conn:
            rows = conn.execute(
                f"SELECT * FROM friendships WHERE {where} AND status = ? ORDER BY created_at, id",
                params,
            ).fetchall()
        return [self._row_to_friendship(r) for r in rows]


class ProposalDB(SQLiteStore):
    """Meeting proposals. The proposal's date is read from its day entry."""

    _SELECT = """
        SELECT p.*, d.date AS entry_date
        FROM meeting_proposals p
        JOIN day_entries d ON d.id = p.day_entry_id
    """

    @staticmethod
    def _row_to_proposal(row: sqlite3.Row) -> MeetingProposal:
        return MeetingProposal(
            id=row["id"],
            proposer_id=row["proposer_id"],
            receiver_id=row["receiver_id"],
            day_entry_id=row["day_entry_id"],
            date=date.fromisoformat(row["entry_date"]),
            message=row["message"],
            status=ProposalStatus(row["status"]),
            created_at=row["created_at"],
            responded_at=row["responded_at"],
        )

    def create(
        self,
        proposer_id: int,
        receiver_id: int,
        day_entry: DayEntry,
        message: str | None,
        conn: sqlite3.Connection | None = None,
    ) -> MeetingProposal:
        now = utc_now()
        with self._session(conn, write=True) as c:
            cursor = c.execute(
                """
                INSERT INTO meeting_proposals
                    (proposer_id, receiver_id, day_entry_id, message, status, created_at)
                VALUES (?, ?, ?, ?, 'PENDING', ?)
                """,
                (proposer_id, receiver_id, day_entry.id, message, now),
            )
            proposal_id = cursor.lastrowid
        return MeetingProposal(
            id=proposal_id,
            proposer_id=proposer_id,
            receiver_id=receiver_id,
            day_entry_id=day_entry.id,
            date=day_entry.date,
            message=message,
            status=ProposalStatus.PENDING,
            created_at=now,
        )

    def get(
        self, proposal_id: int, conn: sqlite3.Connection | None = None,
    ) -> MeetingProposal | None:
        with self._session(conn) as c:
            row = c.execute(self._SELECT + " WHERE p.id = ?", (proposal_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_proposal(row)

    def transition(
        self,
        proposal_id: int,
        status: ProposalStatus,
        conn: sqlite3.Connection | None = None,
    ) -> str | None:
        """Move a PENDING proposal to `status`.

        Returns the responded_at timestamp, or None if the proposal was no
        longer PENDING.
        """
        now = utc_now()
        with self._session(conn, write=True) as c:
            cursor = c.execute(
                """
                UPDATE meeting_proposals
                SET status = ?, responded_at = ?
                WHERE id = ? AND status = 'PENDING'
                """,
                (status.value, now, proposal_id),
            )
        return now if cursor.rowcount else None

    def list_for_day_entry(self, day_entry_id: int) -> list[MeetingProposal]:
        with self._session(None) as conn:
            rows = conn.execute(
                self._SELECT + " WHERE p.day_entry_id = ? ORDER BY p.created_at DESC, p.id DESC",
                (day_entry_id,),
            ).fetchall()
        return [self._row_to_proposal(r) for r in rows]

    def list_for_user(
        self, user_id: int, status: ProposalStatus | None = None,
    ) -> list[MeetingProposal]:
        """Proposals the user sent or received, newest first."""
        query = self._SELECT + " WHERE (p.proposer_id = ? OR p.receiver_id = ?)"
        params: list = [user_id, user_id]
        if status is not None:
            query += " AND p.status = ?"
            params.append(status.value)
        query += " ORDER BY p.created_at DESC, p.id DESC"
        with self._session(None) as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_proposal(r) for r in rows]

    def list_recent(self, user_ids: list[int], limit: int) -> list[MeetingProposal]:
        """Newest proposals where any of the users is proposer or receiver."""
        if not user_ids:
            return []
        placeholders = ", ".join("?" for _ in user_ids)
        with self._session(None) as conn:
            rows = conn.execute(
                self._SELECT
                + f"""
                WHERE p.proposer_id IN ({placeholders}) OR p.receiver_id IN ({placeholders})
                ORDER BY p.created_at DESC, p.id DESC
                LIMIT ?
                """,
                [*user_ids, *user_ids, limit],
            ).fetchall()
        return [self._row_to_proposal(r) for r in rows]

    def count(self) -> int:
        with self._session(None) as conn:
            return conn.execute("SELECT COUNT(*) FROM meeting_proposals").fetchone()[0]


class ConversationDB(SQLiteStore):
    """Conversations and their append-only messages."""

    @staticmethod
    def _row_to_conversation(row: sqlite3.Row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_a_id=row["user_a_id"],
            user_b_id=row["user_b_id"],
            created_at=row["created_at"],
            last_message_at=row["last_message_at"],
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            sender_id=row["sender_id"],
            content=row["content"],
            message_type=MessageType(row["message_type"]),
            related_proposal_id=row["related_proposal_id"],
            created_at=row["created_at"],
        )

    def ensure(
        self, a_id: int, b_id: int, conn: sqlite3.Connection | None = None,
    ) -> Conversation:
        """Get-or-create the pair's conversation under its canonical ordering."""
        first, second = canonical_pair(a_id, b_id)
        now = utc_now()
        with self._session(conn, write=True) as c:
            cursor = c.execute(
                """
                INSERT INTO conversations (user_a_id, user_b_id, created_at, last_message_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_a_id, user_b_id) DO NOTHING
                """,
                (first, second, now, now),
            )
            if cursor.rowcount:
                logger.debug("Conversation created for users #%d and #%d", first, second)
            row = c.execute(
                "SELECT * FROM conversations WHERE user_a_id = ? AND user_b_id = ?",
                (first, second),
            ).fetchone()
        return self._row_to_conversation(row)

    def get(
        self, conversation_id: int, conn: sqlite3.Connection | None = None,
    ) -> Conversation | None:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_conversation(row)

    def find_between(self, a_id: int, b_id: int) -> Conversation | None:
        """Check both orderings; rows are canonical but callers need not be."""
        with self._session(None) as conn:
            row = conn.execute(
                """
                SELECT * FROM conversations
                WHERE (user_a_id = ? AND user_b_id = ?)
                   OR (user_a_id = ? AND user_b_id = ?)
                """,
                (a_id, b_id, b_id, a_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_conversation(row)

    def add_message(
        self,
        conversation_id: int,
        sender_id: int,
        content: str,
        message_type: MessageType,
        related_proposal_id: int | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> Message:
        """Append a message and bump the conversation's last_message_at."""
        now = utc_now()
        with self._session(conn, write=True) as c:
            cursor = c.execute(
                """
                INSERT INTO messages
                    (conversation_id, sender_id, content, message_type,
                     related_proposal_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (conversation_id, sender_id, content, message_type.value,
                 related_proposal_id, now),
            )
            message_id = cursor.lastrowid
            c.execute(
                "UPDATE conversations SET last_message_at = ? WHERE id = ?",
                (now, conversation_id),
            )
        return Message(
            id=message_id,
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            message_type=message_type,
            related_proposal_id=related_proposal_id,
            created_at=now,
        )

    def list_messages(self, conversation_id: int) -> list[Message]:
        with self._session(None) as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY created_at, id",
                (conversation_id,),
            ).fetchall()
        return [self._row_to_message(r) for r in rows]

    def list_for_user(self, user_id: int) -> list[ConversationSummary]:
        """The user's conversations, most recent activity first."""
        with self._session(None) as conn:
            rows = conn.execute(
                """
                SELECT * FROM conversations
                WHERE user_a_id = ? OR user_b_id = ?
                ORDER BY last_message_at DESC, id DESC
                """,
                (user_id, user_id),
            ).fetchall()
            summaries = []
            for row in rows:
                conversation = self._row_to_conversation(row)
                last = conn.execute(
                    """
                    SELECT * FROM messages WHERE conversation_id = ?
                    ORDER BY created_at DESC, id DESC LIMIT 1
                    """,
                    (conversation.id,),
                ).fetchone()
                summaries.append(
                    ConversationSummary(
                        conversation=conversation,
                        other_user_id=conversation.other(user_id),
                        last_message=self._row_to_message(last) if last else None,
                    )
                )
        return summaries

    def count(self) -> int:
        with self._session(None) as conn:
            return conn.execute("SELECT COUNT(*) FROM conversations").fetchone()[0]

    def count_messages(self) -> int:
        with self._session(None) as conn:
            return conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
