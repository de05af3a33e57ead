# ============================================================================
# SceneVault -- Optimistic Lock Save (scenevault/core/revision_lock.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Saves script documents without losing someone else's edit.
#
#   Every document carries a small YAML header:
#
#     ---
#     rev: 4
#     updated_at: '2026-03-01T09:30:00.000Z'
#     updated_by: writer-a
#     ---
#     (document body)
#
#   An editor remembers the rev it loaded. When it saves, it sends that
#   number back as expected_rev:
#     - still the current rev -> write the new body with rev + 1
#     - someone saved in between -> DON'T touch the document; write both
#       versions into .conflicts/<doc>.conflict-<time>.md for a human to
#       merge, and report status="conflict"
#
#   This is "optimistic" locking: nobody holds a lock while editing, the
#   clash is detected at save time instead.
#
# REV RULES:
#   - Missing document, missing header or unusable rev value -> rev 1
#   - A save increments rev by exactly 1
#   - Other header keys (title, tags, ...) are kept as they are
#
# DEPENDENCIES:
#   - PyYAML (yaml.safe_load / yaml.safe_dump) for the header
# ============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from scenevault.core.config import Config
from scenevault.core.filesystem import LocalFileSystem
from scenevault.core.path_utils import make_unique_filename
from scenevault.monitoring.logger import get_app_logger, initialize_logging


_OPEN = "---\n"
_CLOSE = "\n---\n"


# -------------------------------------------------------------------
# Result types
# -------------------------------------------------------------------

@dataclass
class DocumentRevision:
    """Parsed revision header plus the body below it."""
    rev: int
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None
    header: Dict[str, Any] = field(default_factory=dict)
    body: str = ""
    exists: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rev": self.rev,
            "updated_at": self.updated_at,
            "updated_by": self.updated_by,
        }


@dataclass
class SaveResult:
    status: str                          # "saved" or "conflict"
    rev: Optional[int] = None            # new rev when saved
    current_rev: Optional[int] = None    # rev on disk when in conflict
    conflict_path: Optional[Path] = None

    @property
    def saved(self) -> bool:
        return self.status == "saved"

    def to_dict(self) -> Dict[str, Any]:
        if self.saved:
            return {"status": self.status, "rev": self.rev}
        return {
            "status": self.status,
            "currentRev": self.current_rev,
            "conflictPath": str(self.conflict_path),
        }


# -------------------------------------------------------------------
# Header parsing
# -------------------------------------------------------------------

def parse_frontmatter(text: str) -> Tuple[Dict[str, Any], str]:
    """
    Split a document into (header dict, body).

    Documents without a header, with an unterminated header or with a
    header that is not a YAML mapping come back as ({}, whole text).
    """
    if not text.startswith(_OPEN):
        return {}, text

    end = text.find(_CLOSE, len(_OPEN) - 1)
    if end >= 0:
        header_text, body = text[len(_OPEN):end], text[end + len(_CLOSE):]
    elif text.endswith("\n---"):
        header_text, body = text[len(_OPEN):-len("\n---")], ""
    else:
        return {}, text

    try:
        header = yaml.safe_load(header_text) if header_text.strip() else {}
    except yaml.YAMLError:
        return {}, text
    if not isinstance(header, dict):
        return {}, text
    return header, body


def serialize_frontmatter(header: Dict[str, Any], body: str) -> str:
    dumped = yaml.safe_dump(header, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"{_OPEN}{dumped}---\n{body}"


def _rev_from_header(header: Dict[str, Any]) -> int:
    rev = header.get("rev")
    # bool is an int subclass; "rev: true" is not a revision
    if isinstance(rev, int) and not isinstance(rev, bool) and rev >= 1:
        return rev
    return 1


def read_revision(document_path, filesystem: Optional[LocalFileSystem] = None) -> DocumentRevision:
    """Current revision of a document (rev 1 if missing or headerless)."""
    fs = filesystem or LocalFileSystem()
    try:
        text = fs.read_text(document_path)
        exists = True
    except FileNotFoundError:
        text = ""
        exists = False

    header, body = parse_frontmatter(text)
    updated_at = header.get("updated_at")
    updated_by = header.get("updated_by")
    return DocumentRevision(
        rev=_rev_from_header(header),
        updated_at=str(updated_at) if updated_at is not None else None,
        updated_by=str(updated_by) if updated_by is not None else None,
        header=header,
        body=body,
        exists=exists,
    )


def _iso_utc(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# -------------------------------------------------------------------
# Save
# -------------------------------------------------------------------

def save_document(
    document_path,
    next_body: str,
    expected_rev: int,
    updated_by: Optional[str] = None,
    incoming_content: Optional[str] = None,
    config: Optional[Config] = None,
    now: Optional[datetime] = None,
    filesystem: Optional[LocalFileSystem] = None,
) -> SaveResult:
    """
    Save next_body if the document is still at expected_rev.

    Parameters
    ----------
    document_path : str or Path
        The script document. It does not have to exist yet (rev 1).

    next_body : str
        New body text, without a header.

    expected_rev : int
        The rev the editor loaded.

    updated_by : str, optional
        Recorded in the header. Defaults to config.document.default_updated_by.

    incoming_content : str, optional
        What to show as the "Incoming" side of a conflict artifact, if the
        editor wants something other than next_body there (for example
        the full document with its own header).

    now : datetime, optional
        Clock override for tests.

    Returns
    -------
    SaveResult
        status="saved" with the new rev, or status="conflict" with the rev
        on disk and the path of the conflict artifact. A conflict is a
        normal outcome, not an exception.
    """
    config = config or Config()
    fs = filesystem or LocalFileSystem()
    initialize_logging(config.logging.log_dir)
    logger = get_app_logger("revision_lock")
    path = Path(document_path)
    moment = now or datetime.now(timezone.utc)

    current = read_revision(path, fs)
    rev_matches = not isinstance(expected_rev, bool) and expected_rev == current.rev

    if not rev_matches:
        conflict_path = _write_conflict_artifact(
            path,
            current,
            expected_rev,
            incoming_content or next_body or "",
            config.document.conflicts_dir,
            moment,
            fs,
        )
        logger.warning(
            "document_save_conflict",
            document_path=str(path),
            expected_rev=expected_rev,
            current_rev=current.rev,
            conflict_path=str(conflict_path),
        )
        return SaveResult(status="conflict", current_rev=current.rev, conflict_path=conflict_path)

    header = dict(current.header)
    header["rev"] = current.rev + 1
    header["updated_at"] = _iso_utc(moment)
    header["updated_by"] = updated_by or config.document.default_updated_by

    fs.write_text(path, serialize_frontmatter(header, next_body))
    logger.info("document_saved", document_path=str(path), rev=header["rev"])
    return SaveResult(status="saved", rev=header["rev"])


def _write_conflict_artifact(
    document_path: Path,
    current: DocumentRevision,
    expected_rev,
    incoming: str,
    conflicts_dir: str,
    moment: datetime,
    fs: LocalFileSystem,
) -> Path:
    target_dir = document_path.parent / conflicts_dir
    fs.make_dirs(target_dir)

    stamp = moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    name = make_unique_filename(
        f"{document_path.name}.conflict-{stamp}.md",
        fs.list_names(target_dir),
    )
    conflict_path = target_dir / name

    content = "\n".join([
        "# Manual Merge Required",
        "",
        f"- expected_rev: {expected_rev}",
        f"- current_rev: {current.rev}",
        "",
        "## Current",
        current.body,
        "",
        "## Incoming",
        incoming,
        "",
    ])
    fs.write_text(conflict_path, content)
    return conflict_path
