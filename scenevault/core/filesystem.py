# ============================================================================
# SceneVault -- Filesystem Collaborator (scenevault/core/filesystem.py)
# ============================================================================
#
# WHAT THIS FILE DOES (plain English):
#   Every disk operation the engine needs, in one small class:
#     - guarded copy (never overwrites an existing destination)
#     - move, with a copy-then-delete fallback across drives
#     - plain rename (no fallback, used by the reorder protocol)
#     - recursive delete, recursive mkdir, directory listing
#     - text read/write and an atomic JSON write for manifests
#
#   The engine only ever talks to this class. Tests swap it for a subclass
#   that injects failures (a cross-device rename, a locked file) without
#   monkeypatching the os module.
#
# HOW THE MOVE WORKS:
#   On the same filesystem, os.rename() is atomic: the entry appears at
#   the destination fully formed or not at all.
#
#   If source and destination are on different drives the OS refuses with
#   EXDEV. We then copy the file (or the whole folder) to the destination
#   and delete the source. That fallback is NOT atomic; a crash between
#   the copy and the delete leaves both copies on disk.
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

import errno
import json
import os
import shutil
from pathlib import Path
from typing import Any, List


class LocalFileSystem:
    """
    Filesystem primitives used by the ingest engine, the reorder protocol
    and the save protocol.

    NON-PROGRAMMER NOTE:
      All paths may be str or Path. Methods that create files also create
      any missing parent folders.
    """

    def __init__(self, copy_buffer_size: int = 1_048_576) -> None:
        # 1 MB copy buffer, same as the bulk copy default for network shares
        self.copy_buffer_size = copy_buffer_size

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, path) -> bool:
        return os.path.lexists(path)

    def is_dir(self, path) -> bool:
        return Path(path).is_dir()

    def list_names(self, directory) -> List[str]:
        """Entry names in a directory; a missing directory lists as empty."""
        try:
            return sorted(os.listdir(directory))
        except FileNotFoundError:
            return []

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def make_dirs(self, path) -> None:
        Path(path).mkdir(parents=True, exist_ok=True)

    def copy(self, source, destination) -> None:
        """
        Copy a file, or a folder recursively, to a destination that must
        not exist yet.

        The file case opens the destination with exclusive-create, so a
        file that appears between the name check and the copy makes this
        raise FileExistsError instead of being overwritten. If the copy
        fails after the destination was created, the partial destination
        is removed before the error is raised.
        """
        source = Path(source)
        destination = Path(destination)

        if self.is_dir(source):
            if self.exists(destination):
                raise FileExistsError(errno.EEXIST, "Destination already exists", str(destination))
            try:
                shutil.copytree(source, destination, dirs_exist_ok=False)
            except Exception:
                self.remove_tree(destination)
                raise
            return

        destination.parent.mkdir(parents=True, exist_ok=True)
        with open(source, "rb") as fsrc:
            fdst = open(destination, "xb")
            try:
                with fdst:
                    shutil.copyfileobj(fsrc, fdst, length=self.copy_buffer_size)
                shutil.copystat(source, destination)
            except Exception:
                self.remove_file(destination)
                raise

    def write_text(self, path, text: str) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def write_json_atomic(self, path, data: Any) -> None:
        """
        Write JSON to a sibling .tmp file, then os.replace() it into place.

        Readers see either the old manifest or the new one, never half of
        one.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(
            json.dumps(data, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        os.replace(tmp, path)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_text(self, path) -> str:
        """Raises FileNotFoundError if the file is missing."""
        return Path(path).read_text(encoding="utf-8")

    def read_json(self, path, default=None):
        """Parsed JSON, or default when the file is missing or not JSON."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (FileNotFoundError, json.JSONDecodeError, UnicodeDecodeError):
            return default

    # ------------------------------------------------------------------
    # Rename / move
    # ------------------------------------------------------------------

    def rename(self, source, destination) -> None:
        """Plain same-filesystem rename. No fallback."""
        os.rename(source, destination)

    def move(self, source, destination) -> None:
        """
        Move source to destination: atomic rename, or copy-then-delete if
        the two paths are on different devices.

        The destination must not exist. Any failure other than the
        cross-device refusal is raised unchanged.

        In the copy-then-delete case a file source that cannot be deleted
        leaves the source in place and removes the copy, so a failed move
        changes nothing. A folder source may already be partly deleted by
        then, so its complete copy is kept.
        """
        if self.exists(destination):
            raise FileExistsError(errno.EEXIST, "Destination already exists", str(destination))

        try:
            self.rename(source, destination)
            return
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise

        self.copy(source, destination)
        try:
            self.remove_tree(source)
        except OSError:
            if not self.is_dir(destination):
                self.remove_file(destination)
            raise

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def remove_file(self, path) -> None:
        """Delete one file; a missing file is not an error."""
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass

    def remove_tree(self, path) -> None:
        """Delete a file or a folder recursively; missing is not an error."""
        path = Path(path)
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            self.remove_file(path)
