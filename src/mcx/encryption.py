"""Per-prefix server-side encryption keys.

Keys are configured as ``prefix1=key1,prefix2=key2,...`` where each prefix
starts with an alias (``s3/backups/=<key>``).  A key is either 32 bytes of
plain text or 44 characters of base64 that decode to 32 bytes.  SSE-S3
prefixes (no key, the backend manages it) are given as a plain comma list.

Lookup is longest-prefix match within the alias; the registry is read-only
once built and safe to share between pipeline tasks.
"""

from __future__ import annotations

import base64
import binascii
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Iterator

from .exceptions import InvalidArgumentError

ENV_ENCRYPT = "MCX_ENCRYPT"
ENV_ENCRYPT_KEY = "MCX_ENCRYPT_KEY"

KEY_SIZE = 32


@dataclass(frozen=True)
class EncryptionKeyEntry:
    """An alias-relative prefix and its key.

    Attributes:
        prefix: Path prefix relative to the alias (``""`` matches everything).
        key: The 32-byte customer key, or ``None`` for SSE-S3.
    """
    prefix: str
    key: bytes | None = None

    def __repr__(self) -> str:
        kind = "SSE-S3" if self.key is None else "SSE-C"
        return f"EncryptionKeyEntry({self.prefix!r}, {kind})"

    @property
    def is_sse_s3(self) -> bool:
        return self.key is None

    def sse(self):
        """Return the minio SSE object for this entry."""
        from minio.sse import SseCustomerKey, SseS3
        if self.key is None:
            return SseS3()
        return SseCustomerKey(self.key)


def _split_alias(path: str) -> tuple[str, str]:
    """Split ``alias/rest`` into ``(alias, rest)``."""
    path = path.replace("\\", "/")
    alias, _, rest = path.partition("/")
    return alias, rest


def decode_key(value: str) -> bytes:
    """Decode a 32-byte plain text or 44-character base64 key.

    Raises:
        InvalidArgumentError: If *value* is neither form.
    """
    raw = value.encode("utf-8")
    if len(value) == KEY_SIZE and len(raw) == KEY_SIZE:
        return raw
    if len(value) == 44:
        try:
            decoded = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            decoded = b""
        if len(decoded) == KEY_SIZE:
            return decoded
    raise InvalidArgumentError(
        "Encryption key should be 32 bytes plain text key or 44 bytes base64 encoded key"
    )


def _parse_pair(pair: str) -> tuple[str, bytes]:
    prefix, sep, secret = pair.partition("=")
    if not sep or not prefix:
        raise InvalidArgumentError(
            f"SSE-C prefix should be of the form prefix1=key1,... (got {pair!r})"
        )
    try:
        return prefix.strip(), decode_key(secret)
    except InvalidArgumentError as exc:
        raise InvalidArgumentError(f"{exc.message}: {prefix!r}") from None


class KeyRegistry(Mapping):
    """Mapping of alias to an ordered tuple of :class:`EncryptionKeyEntry`."""

    def __init__(self, entries: Mapping[str, list[EncryptionKeyEntry]] | None = None):
        self._entries: dict[str, tuple[EncryptionKeyEntry, ...]] = {
            alias: tuple(lst) for alias, lst in (entries or {}).items()
        }

    def __getitem__(self, alias: str) -> tuple[EncryptionKeyEntry, ...]:
        return self._entries[alias]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"KeyRegistry({self._entries!r})"

    def resolve(self, path: str) -> EncryptionKeyEntry | None:
        """Return the entry for ``alias/path``, or ``None`` if unencrypted."""
        alias, _ = _split_alias(path)
        return resolve_key(path, self._entries.get(alias, ()))


def resolve_key(path: str, entries) -> EncryptionKeyEntry | None:
    """Return the entry whose prefix is the longest match of *path*.

    *path* is an aliased path (``s3/bucket/key``); the alias segment is
    stripped before matching since entry prefixes are alias-relative.
    """
    _, rel = _split_alias(path)
    best: EncryptionKeyEntry | None = None
    for entry in entries:
        if rel.startswith(entry.prefix):
            if best is None or len(entry.prefix) > len(best.prefix):
                best = entry
    return best


def parse_encryption_keys(sse_keys: str | None, sse_server: str | None = None, *,
                          alias: str | None = None) -> KeyRegistry:
    """Parse SSE-C pairs and SSE-S3 prefixes into a :class:`KeyRegistry`.

    When *alias* is given, all prefixes are taken as relative to it;
    otherwise each prefix's first segment names the alias.

    Raises:
        InvalidArgumentError: On a malformed pair, a key of the wrong size,
            or an alias configured for both SSE-S3 and SSE-C.
    """
    result: dict[str, list[EncryptionKeyEntry]] = {}
    customer_aliases: set[str] = set()

    def _place(prefix: str) -> tuple[str, str]:
        if alias is not None:
            return alias, prefix
        return _split_alias(prefix)

    for pair in (sse_keys or "").split(","):
        if not pair.strip():
            continue
        prefix, key = _parse_pair(pair.strip())
        a, rel = _place(prefix)
        result.setdefault(a, []).append(EncryptionKeyEntry(rel, key))
        customer_aliases.add(a)

    for prefix in (sse_server or "").split(","):
        prefix = prefix.strip()
        if not prefix:
            continue
        a, rel = _place(prefix)
        if a in customer_aliases:
            raise InvalidArgumentError(
                f"SSE-S3 prefix {prefix!r} conflicts with SSE-C keys configured for alias {a!r}"
            )
        result.setdefault(a, []).append(EncryptionKeyEntry(rel, None))

    return KeyRegistry(result)


def load_encryption_keys(encrypt: str | None = None, encrypt_key: str | None = None,
                         environ: Mapping[str, str] | None = None) -> KeyRegistry:
    """Build the registry from explicit values, falling back to the environment."""
    if environ is None:
        environ = os.environ
    sse_server = encrypt or environ.get(ENV_ENCRYPT, "")
    sse_keys = encrypt_key or environ.get(ENV_ENCRYPT_KEY, "")
    return parse_encryption_keys(sse_keys, sse_server)
