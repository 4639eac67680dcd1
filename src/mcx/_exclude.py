"""Exclude filter applied to recursive listings.

Combines ``--exclude`` patterns and ``--exclude-from`` files into a single
predicate over keys relative to the listing root.  Pattern syntax follows
gitignore rules (implemented by ``dulwich.ignore.IgnoreFilter``), so
``*.log`` matches at any depth and ``tmp/`` matches a prefix.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

from dulwich.ignore import IgnoreFilter


def relative_key(root: str, url: str) -> str:
    """Return *url* relative to the listing *root*, ``/``-separated."""
    root = root.replace(os.sep, "/")
    url = url.replace(os.sep, "/")
    if root and url.startswith(root):
        url = url[len(root):]
    return url.lstrip("/")


class ExcludeFilter:
    """Combines --exclude patterns and --exclude-from."""

    def __init__(
        self,
        *,
        patterns: Sequence[str] | None = None,
        exclude_from: str | None = None,
    ) -> None:
        lines: list[bytes] = []
        for p in patterns or ():
            lines.append(p.encode("utf-8"))
        if exclude_from is not None:
            for raw in Path(exclude_from).read_bytes().splitlines():
                line = raw.strip()
                if line and not line.startswith(b"#"):
                    lines.append(line)
        self._filter: IgnoreFilter | None = IgnoreFilter(lines) if lines else None

    @property
    def active(self) -> bool:
        return self._filter is not None

    def is_excluded(self, rel_path: str, *, is_dir: bool = False) -> bool:
        """True if *rel_path* or any of its parent prefixes is excluded."""
        if self._filter is None or not rel_path:
            return False
        parts = rel_path.rstrip("/").split("/")
        # A matched parent prefix excludes everything below it.
        for depth in range(1, len(parts)):
            if self._filter.is_ignored("/".join(parts[:depth]) + "/") is True:
                return True
        check = rel_path.rstrip("/")
        if is_dir:
            check += "/"
        return self._filter.is_ignored(check) is True
