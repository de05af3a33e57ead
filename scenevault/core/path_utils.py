# ============================================================================
# SceneVault -- Path Sanitizer & Deduplicator (scenevault/core/path_utils.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Turns user-supplied names ("Scene: 1/2", "  photo .png") into names
#   that are safe as a single path segment on Windows, macOS and Linux,
#   and picks a free name when the preferred one is taken.
#
# RULES:
#   sanitize_segment():
#     1. Unicode NFC composition ("e" + combining accent -> one char)
#     2. Trim surrounding whitespace
#     3. Replace <>:"/\|?* and control characters (0x00-0x1F) with "-"
#     4. Collapse runs of whitespace to a single space, trim again
#     5. Reject "", "." and ".."
#   The function is idempotent: sanitize(sanitize(x)) == sanitize(x).
#
#   make_unique_name() / make_unique_filename():
#     "photo.png" taken         -> "photo-2.png"
#     "photo-2.png" also taken  -> "photo-3.png"
#     The extension is the text after the LAST dot, unless that dot is
#     the first or last character (".env" and "notes." have none).
#
# CONCURRENCY:
#   Deterministic for a fixed set of existing names. Nothing here locks a
#   directory, so two processes writing into the same folder can still
#   pick the same name.
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

import re
import unicodedata
from typing import Iterable, Set

from scenevault.core.exceptions import InvalidSegmentError


_ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
# Trimmed and collapsed whitespace: space separators, line terminators and
# U+FEFF. str.isspace() would also take 0x1C-0x1F (left to the control
# character rule) and U+0085 (kept).
_WHITESPACE = (
    " \t\n\x0b\x0c\r\u00a0\u1680\u2000\u2001\u2002\u2003\u2004\u2005"
    "\u2006\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
)
_WHITESPACE_RUN = re.compile("[" + re.escape(_WHITESPACE) + "]+")


def normalize_unicode(value) -> str:
    """NFC-normalize any value's string form."""
    return unicodedata.normalize("NFC", str(value))


def sanitize_segment(value) -> str:
    """
    Return a filesystem-safe single path segment.

    Raises InvalidSegmentError if nothing usable is left.
    """
    normalized = normalize_unicode(value if value is not None else "").strip(_WHITESPACE)
    if not normalized:
        raise InvalidSegmentError("Path segment cannot be empty.", value=value)

    replaced = _ILLEGAL_CHARS.sub("-", normalized)
    collapsed = _WHITESPACE_RUN.sub(" ", replaced).strip(_WHITESPACE)
    if not collapsed or collapsed in (".", ".."):
        raise InvalidSegmentError(value=value)

    return collapsed


def _taken_set(existing_names: Iterable) -> Set[str]:
    # Existing names are compared in NFC form only; they are already on
    # disk, so sanitizing them again could reject them.
    return {normalize_unicode(name) for name in existing_names}


def split_extension(filename: str):
    """
    Split "clip.final.mp4" into ("clip.final", ".mp4").

    Returns (filename, "") when there is no usable extension.
    """
    dot = filename.rfind(".")
    if 0 < dot < len(filename) - 1:
        return filename[:dot], filename[dot:]
    return filename, ""


def make_unique_name(base_name, existing_names: Iterable) -> str:
    """Sanitized base_name, or base_name-2, -3, ... if already taken."""
    base = sanitize_segment(base_name)
    taken = _taken_set(existing_names)

    if base not in taken:
        return base

    attempt = 2
    while f"{base}-{attempt}" in taken:
        attempt += 1
    return f"{base}-{attempt}"


def make_unique_filename(file_name, existing_names: Iterable) -> str:
    """Like make_unique_name, but the suffix goes before the extension."""
    normalized = sanitize_segment(file_name)
    taken = _taken_set(existing_names)

    if normalized not in taken:
        return normalized

    stem, ext = split_extension(normalized)
    attempt = 2
    while f"{stem}-{attempt}{ext}" in taken:
        attempt += 1
    return f"{stem}-{attempt}{ext}"
