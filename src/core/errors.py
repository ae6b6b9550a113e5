"""Error taxonomy for the scheduling core.

Validation and state-conflict errors are business-rule rejections that the
action service renders as inline messages. Authorization and not-found
errors are fatal for the request. StoreError wraps transient database
failures after the enclosing transaction has been rolled back.
"""

from __future__ import annotations


class SchedulingError(Exception):
    """Base class for every error raised by the core."""


class ValidationError(SchedulingError):
    """Malformed date, unknown status value, empty required field."""


class NotFoundError(SchedulingError):
    """Missing user, proposal, friendship or conversation."""


class AuthorizationError(SchedulingError):
    """Caller may not perform the operation."""


class UnauthorizedError(AuthorizationError):
    """Caller is not the party allowed to act on the record."""


class ForbiddenError(AuthorizationError):
    """Policy rejects the caller (friend-only gating, non-participant)."""


class SelfTargetError(AuthorizationError):
    """Caller targeted themselves."""


class StateConflictError(SchedulingError):
    """Operation conflicts with the current state of a record."""


class InvalidTransitionError(StateConflictError):
    """Status change not allowed from the record's current status."""


class DuplicateRequestError(StateConflictError):
    """A pending friend request already exists between the pair."""


class AlreadyFriendsError(StateConflictError):
    """The pair is already connected."""


class UsernameTakenError(StateConflictError):
    """Another user already registered the username."""


class StoreError(SchedulingError):
    """Transient database failure. Nothing was committed; safe to retry."""

    retryable = True
