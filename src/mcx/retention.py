"""Object lock values: retention modes, validity periods and legal hold."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from .exceptions import InvalidArgumentError

GOVERNANCE = "GOVERNANCE"
COMPLIANCE = "COMPLIANCE"
RETENTION_MODES = (GOVERNANCE, COMPLIANCE)

LEGAL_HOLD_ON = "ON"
LEGAL_HOLD_OFF = "OFF"
LEGAL_HOLD_STATES = (LEGAL_HOLD_ON, LEGAL_HOLD_OFF)

DAYS = "DAYS"
YEARS = "YEARS"

_VALIDITY_RE = re.compile(r"(\d+)([dy])", re.IGNORECASE)


def validate_mode(mode: str) -> str:
    """Return *mode* upper-cased, or raise for an unknown mode."""
    value = (mode or "").strip().upper()
    if value not in RETENTION_MODES:
        raise InvalidArgumentError(
            f"Invalid retention mode {mode!r} (expected GOVERNANCE or COMPLIANCE)")
    return value


def validate_legal_hold(value: str) -> str:
    """Return ``ON`` or ``OFF`` for a case-insensitive legal hold state."""
    state = (value or "").strip().upper()
    if state not in LEGAL_HOLD_STATES:
        raise InvalidArgumentError(f"Invalid legal hold {value!r} (expected ON or OFF)")
    return state


def parse_validity(value: str) -> tuple[int, str]:
    """Parse ``<N>d`` or ``<N>y`` into ``(N, DAYS|YEARS)``.

    Raises:
        InvalidArgumentError: If the value is malformed or not positive.
    """
    m = _VALIDITY_RE.fullmatch((value or "").strip())
    if m is None:
        raise InvalidArgumentError(
            f"Invalid retention validity {value!r} (use e.g. 30d or 1y)")
    count = int(m.group(1))
    if count <= 0:
        raise InvalidArgumentError(f"Retention validity must be positive: {value!r}")
    return count, DAYS if m.group(2).lower() == "d" else YEARS


def _add_years(when: datetime, years: int) -> datetime:
    try:
        return when.replace(year=when.year + years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return when.replace(year=when.year + years, month=3, day=1)


def retain_until(value: str, now: datetime | None = None) -> datetime:
    """Concrete retain-until date for a validity like ``30d`` or ``1y``."""
    count, unit = parse_validity(value)
    now = now or datetime.now(timezone.utc)
    if unit == DAYS:
        return now + timedelta(days=count)
    return _add_years(now, count)


def format_rfc3339(when: datetime) -> str:
    """Format as UTC RFC 3339 (``2025-01-02T03:04:05Z``)."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_rfc3339(value: str) -> datetime:
    try:
        when = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise InvalidArgumentError(f"Invalid RFC 3339 date {value!r}") from None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when
