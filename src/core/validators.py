"""
Meetup Calendar — Boundary validation.

Form models for raw caller input. Everything past this module works with
enums, dates and trimmed strings only.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Literal

from pydantic import BaseModel, ValidationError as PydanticValidationError, field_validator

from src.config import settings
from src.core.dates import parse_date
from src.core.errors import ValidationError
from src.data.models import AvailabilityStatus, ProposalStatus

_USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")


class RegistrationForm(BaseModel):
    username: str
    display_name: str | None = None

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters.")
        if not _USERNAME_RE.match(v):
            raise ValueError("Username may only contain letters, digits and underscores.")
        return v

    @field_validator("display_name")
    @classmethod
    def check_display_name(cls, v: str | None) -> str | None:
        v = (v or "").strip()
        if len(v) > settings.DISPLAY_NAME_MAX_LENGTH:
            raise ValueError("Display name is too long.")
        return v or None


class DayEntryForm(BaseModel):
    day: date
    status: AvailabilityStatus
    personal_note: str | None = None

    @field_validator("day", mode="before")
    @classmethod
    def check_day(cls, v: str | date) -> date:
        return parse_date(v)

    @field_validator("personal_note")
    @classmethod
    def blank_note_is_none(cls, v: str | None) -> str | None:
        return (v or "").strip() or None


class CommentForm(BaseModel):
    day: date
    content: str

    @field_validator("day", mode="before")
    @classmethod
    def check_day(cls, v: str | date) -> date:
        return parse_date(v)

    @field_validator("content")
    @classmethod
    def check_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Please enter a comment.")
        if len(v) > settings.COMMENT_MAX_LENGTH:
            raise ValueError(f"Comments are limited to {settings.COMMENT_MAX_LENGTH} characters.")
        return v


class MeetingProposalForm(BaseModel):
    day: date
    message: str | None = None

    @field_validator("day", mode="before")
    @classmethod
    def check_day(cls, v: str | date) -> date:
        return parse_date(v)

    @field_validator("message")
    @classmethod
    def check_message(cls, v: str | None) -> str | None:
        v = (v or "").strip()
        if len(v) > settings.PROPOSAL_MESSAGE_MAX_LENGTH:
            raise ValueError(
                f"Messages are limited to {settings.PROPOSAL_MESSAGE_MAX_LENGTH} characters."
            )
        return v or None


class ProposalResponseForm(BaseModel):
    proposal_id: int
    status: ProposalStatus

    @field_validator("status")
    @classmethod
    def check_terminal(cls, v: ProposalStatus) -> ProposalStatus:
        if not v.is_terminal:
            raise ValueError("Choose accept, decline or cancel.")
        return v


class FriendResponseForm(BaseModel):
    friendship_id: int
    action: Literal["accept", "reject"]

    @property
    def accept(self) -> bool:
        return self.action == "accept"


def validate(form: type[BaseModel], **data: object) -> BaseModel:
    """Build `form` from raw input, reporting the first problem as ValidationError."""
    try:
        return form(**data)
    except PydanticValidationError as exc:
        raise ValidationError(_first_message(exc)) from exc


def _first_message(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input."
    first = errors[0]
    # ValueError raised inside a validator arrives as "Value error, <text>"
    ctx_error = first.get("ctx", {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    field_name = ".".join(str(part) for part in first.get("loc", ()))
    return f"{field_name}: {first.get('msg', 'invalid value')}" if field_name else first["msg"]
