"""Metadata merging and filtering for the copy pipeline."""

from __future__ import annotations

from collections.abc import Mapping

from .._headers import (
    SSE_CUSTOMER_PREFIX,
    canonical_header_key,
    valid_header_name,
    valid_header_value,
)


def merge_metadata(*layers: Mapping[str, str] | None) -> dict[str, str]:
    """Merge *layers* with canonical keys; later layers win."""
    merged: dict[str, str] = {}
    for layer in layers:
        for k, v in (layer or {}).items():
            merged[canonical_header_key(k)] = v
    return merged


def filter_metadata(metadata: Mapping[str, str]) -> dict[str, str]:
    """Drop invalid header names/values and every SSE-C key header."""
    prefix = canonical_header_key(SSE_CUSTOMER_PREFIX)
    result = {}
    for k, v in metadata.items():
        if not (valid_header_name(k) and valid_header_value(v)):
            continue
        if canonical_header_key(k).startswith(prefix):
            continue
        result[k] = v
    return result


def parse_attrs(value: str) -> dict[str, str]:
    """Parse ``--attr`` values: ``key1=value1;key2=value2``.

    Raises:
        ValueError: On an entry without ``=`` or with an empty key.
    """
    attrs = {}
    for item in value.split(";"):
        if not item.strip():
            continue
        key, sep, val = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid attribute {item!r} (expected key=value)")
        attrs[key] = val.strip()
    return attrs
