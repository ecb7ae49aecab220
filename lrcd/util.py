from __future__ import annotations

import os

from .constants import USERNAME_MAX_CHARS


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def normalize_username(value, max_chars: int = USERNAME_MAX_CHARS) -> str | None:
    """Return the trimmed username, or None if it cannot be used.

    An empty string is returned as-is so callers can tell "nothing typed"
    apart from "rejected".
    """
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return s

    if max_chars and len(s) > int(max_chars):
        return None

    return s
