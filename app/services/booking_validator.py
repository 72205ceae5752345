"""
Per-step input validation for the booking flow.

Each validator returns a ValidationResult; a failure carries the message
to show before re-prompting. None of these touch storage.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Any, Generic, List, Optional, Sequence, TypeVar

from app.schemas.booking import Gender

T = TypeVar("T")

NAME_PATTERN = re.compile(r"^[A-Za-z\s.'-]+$")
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100

SELF_WORDS = frozenset({"self", "myself", "me"})
AFFIRMATIVE_WORDS = frozenset({"confirm", "yes", "y", "ok", "okay"})
NEGATIVE_WORDS = frozenset({"cancel", "no", "n"})
CANCEL_WORD = "cancel"

_GENDER_CHOICES = {
    "1": Gender.MALE,
    "m": Gender.MALE,
    "male": Gender.MALE,
    "2": Gender.FEMALE,
    "f": Gender.FEMALE,
    "female": Gender.FEMALE,
    "3": Gender.OTHER,
    "o": Gender.OTHER,
    "other": Gender.OTHER,
}


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    valid: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "ValidationResult[T]":
        return cls(valid=True, value=value)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult[T]":
        return cls(valid=False, error=error)


def is_cancel(text: str) -> bool:
    return text.strip().lower() == CANCEL_WORD


def validate_name(text: str) -> ValidationResult[str]:
    name = text.strip()
    if len(name) < NAME_MIN_LENGTH:
        return ValidationResult.fail("Name must be at least 2 characters")
    if len(name) > NAME_MAX_LENGTH:
        return ValidationResult.fail("Name is too long (max 100 characters)")
    if not NAME_PATTERN.match(name):
        return ValidationResult.fail(
            "Name should only contain letters, spaces, dots, hyphens, and apostrophes"
        )
    return ValidationResult.ok(name)


def validate_booking_for(text: str) -> ValidationResult[str]:
    value = text.strip()
    if value.lower() in SELF_WORDS:
        return ValidationResult.ok("self")
    result = validate_name(value)
    if not result.valid:
        return ValidationResult.fail('Please enter a valid name or "self"')
    return result


def validate_gender(text: str) -> ValidationResult[Gender]:
    choice = _GENDER_CHOICES.get(text.strip().lower())
    if choice is None:
        return ValidationResult.fail("Please select: Male, Female, or Other")
    return ValidationResult.ok(choice)


def validate_service_choice(text: str, services: Sequence[Any]) -> ValidationResult[Any]:
    """
    Pick a service by 1-based index, exact name, or a unique partial name.

    `services` only needs a `name` attribute per item.
    """
    raw = text.strip()
    if not raw:
        return ValidationResult.fail("Please select a service")
    if raw.isdecimal():
        index = int(raw) - 1
        if 0 <= index < len(services):
            return ValidationResult.ok(services[index])
        return ValidationResult.fail(
            f"Please choose a number between 1 and {len(services)}"
        )
    needle = raw.lower()
    exact = [s for s in services if s.name.strip().lower() == needle]
    if len(exact) == 1:
        return ValidationResult.ok(exact[0])
    partial = [s for s in services if needle in s.name.lower()]
    if len(partial) == 1:
        return ValidationResult.ok(partial[0])
    if len(partial) > 1:
        names = ", ".join(s.name for s in partial)
        return ValidationResult.fail(f"That matches more than one service ({names})")
    return ValidationResult.fail("Service not found")


def booking_window(today: date, days: int = 7) -> List[date]:
    return [today + timedelta(days=offset) for offset in range(days)]


def validate_date_choice(
    text: str, today: date, window_days: int = 7
) -> ValidationResult[date]:
    raw = text.strip().lower()
    chosen: Optional[date] = None
    if raw == "today":
        chosen = today
    elif raw == "tomorrow":
        chosen = today + timedelta(days=1)
    elif raw.isdecimal():
        index = int(raw) - 1
        window = booking_window(today, window_days)
        if not 0 <= index < len(window):
            return ValidationResult.fail(
                f"Please choose a number between 1 and {len(window)}"
            )
        chosen = window[index]
    else:
        try:
            chosen = date.fromisoformat(raw)
        except ValueError:
            return ValidationResult.fail(
                "Invalid date format. Please select from the options or use format: YYYY-MM-DD"
            )
    if chosen < today:
        return ValidationResult.fail("Please choose today or a future date")
    return ValidationResult.ok(chosen)


def validate_time_choice(text: str, slots: Sequence[time]) -> ValidationResult[time]:
    raw = text.strip()
    if raw.isdecimal():
        index = int(raw) - 1
        if 0 <= index < len(slots):
            return ValidationResult.ok(slots[index])
    return ValidationResult.fail("Invalid time slot. Please reply with the slot number")


def validate_confirmation(text: str) -> ValidationResult[bool]:
    word = text.strip().lower()
    if word in AFFIRMATIVE_WORDS:
        return ValidationResult.ok(True)
    if word in NEGATIVE_WORDS:
        return ValidationResult.ok(False)
    return ValidationResult.fail('Please reply with "CONFIRM" or "CANCEL"')
