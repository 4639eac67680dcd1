"""HTTP header helpers for object metadata."""

from __future__ import annotations

import re

CONTENT_TYPE = "Content-Type"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

LOCK_MODE = "X-Amz-Object-Lock-Mode"
LOCK_RETAIN_UNTIL = "X-Amz-Object-Lock-Retain-Until-Date"
LOCK_LEGAL_HOLD = "X-Amz-Object-Lock-Legal-Hold"

SSE_CUSTOMER_PREFIX = "X-Amz-Server-Side-Encryption-Customer"
USER_META_PREFIX = "X-Amz-Meta-"

ATTRS_KEY = "X-Amz-Meta-Mcx-Attrs"

# RFC 7230 token
_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
# Visible ASCII, obs-text, space and horizontal tab; no other controls.
_VALUE_RE = re.compile(r"[\t\x20-\x7e\x80-\U0010ffff]*")


def canonical_header_key(key: str) -> str:
    """Canonicalize like HTTP: ``x-amz-meta-foo`` -> ``X-Amz-Meta-Foo``.

    Keys that are not valid header tokens are returned unchanged.
    """
    if not valid_header_name(key):
        return key
    return "-".join(part[:1].upper() + part[1:].lower() for part in key.split("-"))


def valid_header_name(key: str) -> bool:
    return bool(key) and _TOKEN_RE.fullmatch(key) is not None


def valid_header_value(value: str) -> bool:
    return _VALUE_RE.fullmatch(value) is not None


def canonical_metadata(metadata: dict[str, str] | None) -> dict[str, str]:
    """Return a copy of *metadata* with canonical keys."""
    return {canonical_header_key(k): v for k, v in (metadata or {}).items()}
