# ============================================================================
# SceneVault -- Document Link Updater (scenevault/core/linking.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Keeps companion documents (scene cards) pointing at the assets that
#   were imported for them. Each imported asset gets one line under a
#   "## Linked Assets" heading:
#
#     ## Linked Assets
#     - [[3f2c...]] 01-opening/media/images/photo.png
#
#   The [[asset id]] token is the backlink. The path after it is relative
#   to the document's own folder and always uses "/".
#
# ROLLBACK:
#   upsert_backlink() returns a DocumentBackup holding what the file looked
#   like before (or that it did not exist). restore_backup() puts that
#   state back. The ingest engine keeps one backup per document per batch.
#
# IDEMPOTENT:
#   Adding a backlink that is already in the document changes nothing,
#   and the file is not rewritten.
# ============================================================================

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from scenevault.core.filesystem import LocalFileSystem


DEFAULT_LINKED_ASSETS_HEADING = "## Linked Assets"


@dataclass
class DocumentBackup:
    """State of a document before the first backlink of a batch touched it."""
    path: Path
    previous_content: str
    existed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "previousContent": self.previous_content,
            "existed": self.existed,
        }


def backlink_marker(asset_id: str) -> str:
    return f"[[{asset_id}]]"


def relative_link_path(document_path, stored_path) -> str:
    """Path from the document's folder to the stored file, with "/"."""
    rel = os.path.relpath(Path(stored_path), Path(document_path).parent)
    return rel.replace(os.sep, "/")


def append_linked_asset(
    content: str,
    asset_id: str,
    relative_path: str,
    heading: str = DEFAULT_LINKED_ASSETS_HEADING,
) -> str:
    """
    Return content with a backlink line for asset_id added.

    - Marker already present: content comes back unchanged.
    - No heading yet: the heading goes at the end, after a blank line.
    - Heading present: the new line goes after everything already in the
      document, directly below the last linked asset when the heading is
      the final section.
    """
    marker = backlink_marker(asset_id)
    if marker in content:
        return content

    link_line = f"- {marker} {relative_path}".rstrip()
    trimmed = content.rstrip()

    heading_re = re.compile(r"^" + re.escape(heading) + r"[ \t]*$", re.MULTILINE)
    match = heading_re.search(trimmed)
    if match is None:
        if not trimmed:
            return f"{heading}\n{link_line}\n"
        return f"{trimmed}\n\n{heading}\n{link_line}\n"

    head = trimmed[:match.end()]
    tail = trimmed[match.end():].lstrip("\n")
    if tail:
        return f"{head}\n{tail}\n{link_line}\n"
    return f"{head}\n{link_line}\n"


def upsert_backlink(
    document_path,
    asset_id: str,
    relative_path: str,
    heading: str = DEFAULT_LINKED_ASSETS_HEADING,
    filesystem: Optional[LocalFileSystem] = None,
) -> DocumentBackup:
    """
    Add a backlink to a document, creating the document if it is missing.

    Returns the pre-change state for restore_backup(). A missing document
    is read as empty content, not an error.
    """
    fs = filesystem or LocalFileSystem()
    path = Path(document_path)

    try:
        previous = fs.read_text(path)
        existed = True
    except FileNotFoundError:
        previous = ""
        existed = False

    updated = append_linked_asset(previous, asset_id, relative_path, heading)
    if updated != previous or not existed:
        fs.write_text(path, updated)

    return DocumentBackup(path=path, previous_content=previous, existed=existed)


def restore_backup(backup: DocumentBackup, filesystem: Optional[LocalFileSystem] = None) -> None:
    """Rewrite the previous content, or delete a document the batch created."""
    fs = filesystem or LocalFileSystem()
    if backup.existed:
        fs.write_text(backup.path, backup.previous_content)
    else:
        fs.remove_file(backup.path)


def find_backlinks(project_root, asset_id: str) -> List[Path]:
    """Every markdown file under project_root that references asset_id."""
    marker = backlink_marker(asset_id)
    hits: List[Path] = []
    for path in sorted(Path(project_root).rglob("*.md")):
        if not path.is_file():
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        if marker in text:
            hits.append(path)
    return hits
