# ============================================================================
# SceneVault -- Ingest Engine (scenevault/core/ingest_engine.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Imports a batch of external files into the project tree and can undo
#   the most recent batch.
#
#   For every input, one at a time:
#     1. Pick a bucket folder from the extension (images/videos/audio/files)
#     2. Pick a free name in that folder ("photo.png" -> "photo-2.png")
#     3. Copy it there, or move it (copy + delete across drives)
#     4. Give it a new asset id and write "<file>.meta.json" next to it
#     5. If there is a companion document, add a backlink line to it
#     6. Record success, or record the failure and carry on
#     7. Tell the progress callback how far along we are
#
# WHY ONE AT A TIME:
#   Step 2 lists the bucket folder. A later item has to see the file an
#   earlier item just wrote, otherwise both would get "photo.png". Running
#   items in parallel would race on that listing.
#
# UNDO:
#   The engine keeps exactly ONE transaction: what the last batch copied,
#   moved, wrote and which documents it touched. undo_last_import() reverts
#   it in reverse and forgets it. Starting a new batch replaces it, so the
#   previous batch can no longer be undone. Nothing is written to disk
#   about the transaction; it is gone when the process exits.
#
# FAILURE MODEL:
#   - Bad mode / empty inputs / bad target -> ValidationError, nothing done
#   - One item fails -> ItemResult(status="failed"), the batch continues
#   - A move-back fails during undo -> logged, undo continues
#
# INTERNET ACCESS: NONE
# ============================================================================

from __future__ import annotations

import errno
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from scenevault.core.asset_ids import IdFactory, new_id
from scenevault.core.config import Config
from scenevault.core.exceptions import EmptyInputError, InvalidModeError, ValidationError, describe_failure
from scenevault.core.filesystem import LocalFileSystem
from scenevault.core.ingest_routing import IngestTarget, TargetDescriptor, resolve_target
from scenevault.core.linking import DocumentBackup, relative_link_path, restore_backup, upsert_backlink
from scenevault.core.path_utils import make_unique_filename
from scenevault.monitoring.logger import (
    BatchLogEntry,
    UndoLogEntry,
    get_app_logger,
    get_audit_logger,
    initialize_logging,
)


SIDECAR_SCHEMA_VERSION = 1
VALID_MODES = ("copy", "move")


# ============================================================================
# Result and transaction types
# ============================================================================

@dataclass
class IngestProgress:
    """Passed to the progress callback after every item."""
    processed: int
    total: int
    completed: int
    failed: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "processed": self.processed,
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
        }


ProgressCallback = Callable[[IngestProgress], None]


@dataclass
class IngestRequest:
    """Everything ingest_batch() needs, as one object (CLI/HTTP layers build this)."""
    project_root: Union[str, Path]
    target: Union[TargetDescriptor, Mapping[str, Any]]
    inputs: List[Union[str, Path]]
    mode: Optional[str] = None
    companion_document_path: Optional[Union[str, Path]] = None
    on_progress: Optional[ProgressCallback] = None


@dataclass
class ItemResult:
    """Outcome of one input. Failed items only carry source_path and error."""
    source_path: str
    status: str
    destination_path: Optional[str] = None
    metadata_path: Optional[str] = None
    asset_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def failed(cls, source_path, error: str) -> "ItemResult":
        return cls(source_path=str(source_path), status="failed", error=error)

    def to_dict(self) -> Dict[str, Any]:
        if not self.ok:
            return {"sourcePath": self.source_path, "status": self.status, "error": self.error}
        return {
            "sourcePath": self.source_path,
            "status": self.status,
            "destinationPath": self.destination_path,
            "metadataPath": self.metadata_path,
            "assetId": self.asset_id,
        }


@dataclass
class BatchSummary:
    total: int
    completed: int
    failed: int

    def to_dict(self) -> Dict[str, int]:
        return {"total": self.total, "completed": self.completed, "failed": self.failed}


@dataclass
class BatchResult:
    mode: str
    target: IngestTarget
    summary: BatchSummary
    results: List[ItemResult]
    transaction_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "target": self.target.to_dict(),
            "summary": self.summary.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "transactionId": self.transaction_id,
        }


@dataclass
class MoveEntry:
    source_path: Path
    destination_path: Path


@dataclass
class BatchTransaction:
    """
    What one batch changed on disk, in the order it happened.

    document_backups holds one backup per companion document, taken on the
    FIRST touch within the batch, so undo returns the document to its
    pre-batch state rather than to an intermediate one.
    """
    id: str
    copy_destinations: List[Path] = field(default_factory=list)
    move_entries: List[MoveEntry] = field(default_factory=list)
    metadata_paths: List[Path] = field(default_factory=list)
    document_backups: Dict[str, DocumentBackup] = field(default_factory=dict)

    @property
    def reverted_count(self) -> int:
        return (
            len(self.copy_destinations)
            + len(self.move_entries)
            + len(self.metadata_paths)
            + len(self.document_backups)
        )


@dataclass
class UndoResult:
    undone: bool
    transaction_id: Optional[str] = None
    reverted_count: Optional[int] = None
    reason: Optional[str] = None
    move_back_failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        if not self.undone:
            return {"undone": False, "reason": self.reason}
        return {
            "undone": True,
            "transactionId": self.transaction_id,
            "revertedCount": self.reverted_count,
        }


# ============================================================================
# Engine
# ============================================================================

class IngestEngine:
    """
    Imports media into one project workspace and undoes the last batch.

    One engine instance per workspace session. The retained transaction
    lives on the instance; two engines never share undo state.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        filesystem: Optional[LocalFileSystem] = None,
        id_factory: Optional[IdFactory] = None,
    ):
        self.config = config or Config()
        self.fs = filesystem or LocalFileSystem()
        self.id_factory = id_factory or new_id
        self.last_transaction: Optional[BatchTransaction] = None

        initialize_logging(self.config.logging.log_dir)
        self.logger = get_app_logger("ingest_engine")
        self.audit = get_audit_logger("ingest_audit") if self.config.logging.audit_enabled else None

        ingest_cfg = self.config.ingest
        self._media_types: Dict[str, str] = {}
        for media_type in ("image", "video", "audio"):
            for ext in getattr(ingest_cfg, media_type + "_extensions"):
                self._media_types[ext.lower()] = media_type

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify_media_type(self, file_name) -> str:
        """"image", "video", "audio" or "other", from the extension."""
        ext = os.path.splitext(str(file_name))[1].lower()
        return self._media_types.get(ext, "other")

    def bucket_for(self, media_type: str) -> str:
        buckets = self.config.ingest.buckets
        return buckets.get(media_type) or buckets.get("other") or "files"

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def ingest(self, request: IngestRequest) -> BatchResult:
        return self.ingest_batch(
            project_root=request.project_root,
            target=request.target,
            inputs=request.inputs,
            mode=request.mode,
            companion_document_path=request.companion_document_path,
            on_progress=request.on_progress,
        )

    def ingest_batch(
        self,
        project_root,
        target: Union[TargetDescriptor, Mapping[str, Any]],
        inputs,
        mode: Optional[str] = None,
        companion_document_path=None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """
        Import every input into the resolved target.

        Parameters
        ----------
        project_root : str or Path
            Root of the project tree.

        target : TargetDescriptor or mapping
            Where to put the files, e.g. {"nodeType": "character"}.

        inputs : list of str or Path
            Files or folders to import. Processed in the given order.

        mode : "copy" or "move"
            Defaults to config.ingest.default_mode.

        companion_document_path : str or Path, optional
            Document that receives backlinks. Overrides the target's own
            companion (the scene card for scene-card targets).

        on_progress : callable, optional
            Called with an IngestProgress after each item.

        Raises ValidationError (before touching the disk) for a bad mode,
        an empty input list or a target that cannot be resolved. Per-item
        problems never raise; they come back in BatchResult.results.
        """
        mode = mode if mode is not None else self.config.ingest.default_mode
        if mode not in VALID_MODES:
            raise InvalidModeError(mode=mode)

        if isinstance(inputs, (str, bytes, os.PathLike)):
            raise ValidationError(
                "inputs must be a list of paths, not a single path.",
                fix_suggestion="Wrap the path in a list: inputs=[path].",
            )
        input_list = list(inputs or [])
        if not input_list:
            raise EmptyInputError()

        root = Path(project_root)
        resolved = resolve_target(root, target, self.config.layout)
        link_doc = (
            Path(companion_document_path)
            if companion_document_path is not None
            else resolved.companion_document_path
        )

        self.fs.make_dirs(resolved.base_path)

        # The transaction is retained from the start so undo also covers a
        # batch cut short by an exception from the progress callback.
        transaction = BatchTransaction(id=self.id_factory())
        self.last_transaction = transaction

        results: List[ItemResult] = []
        completed = 0
        total = len(input_list)

        for index, source in enumerate(input_list, start=1):
            try:
                result = self._ingest_one(source, mode, root, resolved, link_doc, transaction)
                completed += 1
            except Exception as e:
                # Never abort the batch on a single item -- record and continue
                error_msg = describe_failure(e)
                self.logger.warning(
                    "ingest_item_failed",
                    transaction_id=transaction.id,
                    source_path=str(source),
                    error=error_msg,
                )
                result = ItemResult.failed(source, error_msg)
            results.append(result)

            if on_progress is not None:
                on_progress(IngestProgress(
                    processed=index,
                    total=total,
                    completed=completed,
                    failed=index - completed,
                ))

        summary = BatchSummary(total=total, completed=completed, failed=total - completed)
        self.logger.info(
            "ingest_batch_complete",
            transaction_id=transaction.id,
            mode=mode,
            target_node=resolved.node_type.value,
            **summary.to_dict(),
        )
        if self.audit is not None:
            self.audit.info("ingest_batch", **BatchLogEntry.build(
                transaction_id=transaction.id,
                mode=mode,
                target_node=resolved.node_type.value,
                total=summary.total,
                completed=summary.completed,
                failed=summary.failed,
                details={"logical_path": resolved.logical_path},
            ))

        return BatchResult(
            mode=mode,
            target=resolved,
            summary=summary,
            results=results,
            transaction_id=transaction.id,
        )

    def undo_last_import(self) -> UndoResult:
        """
        Revert the last batch: documents, sidecars, copies, then moves.

        Move-backs are best-effort. A failed move-back is logged and
        skipped; the rest of the rollback still runs and the result still
        says undone=True. A failure while restoring a document propagates
        and the transaction is kept, so the undo can be retried.
        """
        transaction = self.last_transaction
        if transaction is None:
            return UndoResult(undone=False, reason="no-transaction")

        for backup in reversed(list(transaction.document_backups.values())):
            restore_backup(backup, self.fs)

        for metadata_path in reversed(transaction.metadata_paths):
            self.fs.remove_file(metadata_path)

        for destination in reversed(transaction.copy_destinations):
            self.fs.remove_tree(destination)

        move_back_failures = 0
        for entry in reversed(transaction.move_entries):
            try:
                self.fs.make_dirs(entry.source_path.parent)
                self.fs.move(entry.destination_path, entry.source_path)
            except OSError as e:
                move_back_failures += 1
                self.logger.warning(
                    "undo_move_back_failed",
                    transaction_id=transaction.id,
                    source_path=str(entry.source_path),
                    destination_path=str(entry.destination_path),
                    error=describe_failure(e),
                )

        self.last_transaction = None

        self.logger.info(
            "undo_complete",
            transaction_id=transaction.id,
            reverted_count=transaction.reverted_count,
            move_back_failures=move_back_failures,
        )
        if self.audit is not None:
            self.audit.info("ingest_undo", **UndoLogEntry.build(
                transaction_id=transaction.id,
                reverted_count=transaction.reverted_count,
                move_back_failures=move_back_failures,
            ))

        return UndoResult(
            undone=True,
            transaction_id=transaction.id,
            reverted_count=transaction.reverted_count,
            move_back_failures=move_back_failures,
        )

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _ingest_one(
        self,
        source,
        mode: str,
        project_root: Path,
        target: IngestTarget,
        link_doc: Optional[Path],
        transaction: BatchTransaction,
    ) -> ItemResult:
        source_path = Path(source)
        if not self.fs.exists(source_path):
            raise FileNotFoundError(errno.ENOENT, "Source not found", str(source_path))

        # Classify the sanitized name: the unique-name suffix goes before
        # the extension, so it is also the destination's extension.
        dest_name = make_unique_filename(source_path.name, [])
        media_type = self.classify_media_type(dest_name)

        bucket_dir = target.base_path / self.bucket_for(media_type)
        self.fs.make_dirs(bucket_dir)
        destination = bucket_dir / make_unique_filename(dest_name, self.fs.list_names(bucket_dir))

        if mode == "copy":
            self.fs.copy(source_path, destination)
            transaction.copy_destinations.append(destination)
        else:
            self.fs.move(source_path, destination)
            transaction.move_entries.append(MoveEntry(source_path, destination))

        asset_id = self.id_factory()
        metadata_path = destination.with_name(destination.name + self.config.ingest.sidecar_suffix)
        metadata: Dict[str, Any] = {
            "schema_version": SIDECAR_SCHEMA_VERSION,
            "asset_id": asset_id,
            "media_type": media_type,
            "source_path": str(source_path),
            "stored_path": str(destination),
            "target_node": target.node_type.value,
            "target_logical_path": target.logical_path,
            "backlinks": [],
        }

        if link_doc is not None:
            backup = upsert_backlink(
                link_doc,
                asset_id,
                relative_link_path(link_doc, destination),
                heading=self.config.document.linked_assets_heading,
                filesystem=self.fs,
            )
            transaction.document_backups.setdefault(str(link_doc), backup)
            metadata["backlinks"].append(
                os.path.relpath(link_doc, project_root).replace(os.sep, "/")
            )

        existing = self.fs.read_json(metadata_path, {})
        merged = dict(existing) if isinstance(existing, dict) else {}
        merged.update(metadata)
        self.fs.write_json_atomic(metadata_path, merged)
        transaction.metadata_paths.append(metadata_path)

        self.logger.debug(
            "ingest_item_complete",
            transaction_id=transaction.id,
            asset_id=asset_id,
            source_path=str(source_path),
            destination_path=str(destination),
        )

        return ItemResult(
            source_path=str(source),
            status="success",
            destination_path=str(destination),
            metadata_path=str(metadata_path),
            asset_id=asset_id,
        )
