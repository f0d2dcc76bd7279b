"""Name rules: which entries are screenshots, and how game names become folders."""

from __future__ import annotations

import itertools
import re
import threading

# Characters Windows refuses in a path segment
INVALID_NAME_CHARS = re.compile(r'[\\/:*?"<>|]')

WHITESPACE_RUN = re.compile(r"\s+")

APP_ID_PATTERN = re.compile(r"[0-9]+")

# appid_timestamp_sequence.extension, as written by the Steam client
SCREENSHOT_NAME_PATTERN = re.compile(r"[0-9]+_[0-9]+_[0-9]+\.(png|jpg|jpeg|avif)")

PLACEHOLDER_PREFIX = "Empty GameName"

_placeholder_ids = itertools.count(1)
_placeholder_lock = threading.Lock()


def next_placeholder_name() -> str:
    """Return a fresh ``Empty GameName <n>`` label, unique for this process."""
    with _placeholder_lock:
        number = next(_placeholder_ids)
    return f"{PLACEHOLDER_PREFIX} {number}"


def sanitize_name(name: str) -> str:
    """Turn a display name into something usable as a single directory name.

    Blacklisted characters become ``_``, whitespace runs collapse to one
    space and the result is trimmed. Names that end up empty (or as a bare
    ``.``/``..``) get a numbered placeholder instead.
    """
    cleaned = INVALID_NAME_CHARS.sub("_", name)
    cleaned = WHITESPACE_RUN.sub(" ", cleaned).strip()
    if not cleaned or cleaned in {".", ".."}:
        return next_placeholder_name()
    return cleaned


def is_valid_app_id(value: object) -> bool:
    """Check that ``value`` is a non-empty string of ASCII digits."""
    return isinstance(value, str) and APP_ID_PATTERN.fullmatch(value) is not None


def is_screenshot_name(filename: object) -> bool:
    """Check whether a filename looks like a Steam screenshot."""
    return (
        isinstance(filename, str)
        and SCREENSHOT_NAME_PATTERN.fullmatch(filename) is not None
    )
