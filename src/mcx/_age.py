"""``--older-than`` / ``--newer-than`` parsing and matching."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .exceptions import InvalidArgumentError

_TERM_RE = re.compile(r"(\d+)([dhms])")
_UNITS = {"d": "days", "h": "hours", "m": "minutes", "s": "seconds"}


def parse_duration(value: str) -> timedelta:
    """Parse concatenated terms like ``90d`` or ``7d10h30m``.

    Raises:
        InvalidArgumentError: On an empty or malformed value.
    """
    text = value.strip().lower()
    pos = 0
    total = timedelta()
    for m in _TERM_RE.finditer(text):
        if m.start() != pos:
            break
        total += timedelta(**{_UNITS[m.group(2)]: int(m.group(1))})
        pos = m.end()
    if not text or pos != len(text):
        raise InvalidArgumentError(
            f"Invalid duration {value!r} (use e.g. 90d, 7d10h, 30m)")
    return total


@dataclass(frozen=True)
class AgeFilter:
    """Selects objects by age relative to a fixed *now*.

    ``older_than`` keeps objects whose age exceeds it; ``newer_than`` keeps
    objects whose age is below it.
    """
    older_than: timedelta | None = None
    newer_than: timedelta | None = None
    now: datetime | None = None

    @classmethod
    def parse(cls, older_than: str | None = None, newer_than: str | None = None,
              now: datetime | None = None) -> AgeFilter:
        return cls(
            older_than=parse_duration(older_than) if older_than else None,
            newer_than=parse_duration(newer_than) if newer_than else None,
            now=now or datetime.now(timezone.utc),
        )

    @property
    def active(self) -> bool:
        return self.older_than is not None or self.newer_than is not None

    def matches(self, time: datetime | None) -> bool:
        """True if an object last modified at *time* passes the filter."""
        if not self.active:
            return True
        if time is None:
            return False
        if time.tzinfo is None:
            time = time.replace(tzinfo=timezone.utc)
        now = self.now or datetime.now(timezone.utc)
        age = now - time
        if self.older_than is not None and not age > self.older_than:
            return False
        if self.newer_than is not None and not age < self.newer_than:
            return False
        return True
