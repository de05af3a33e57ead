# ============================================================================
# SceneVault -- Scene Reorder Protocol (scenevault/core/scene_order.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Renumbers the scenes of an episode into a new display order and saves
#   that order to ".scene-order.json" in the scenes folder:
#
#     before:  02-x.md  02-x/   01-y.md  01-y/
#     reorder(["02-x", "01-y"])
#     after:   01-x.md  01-x/   02-y.md  02-y/
#     manifest: [{"order": 1, "sceneName": "01-x"},
#                {"order": 2, "sceneName": "02-y"}]
#
#   A scene is its markdown card and/or a folder with the same name. Both
#   are renamed together.
#
# WHY TWO PHASES:
#   Renaming pairwise breaks on a swap: "02-x" -> "01-x" is fine, but
#   "01-y" -> "02-y" may need a name that another entry is still holding
#   in a longer cycle. So:
#     phase 1: EVERY affected path -> "<path>.tmp-<rank>"
#     phase 2: EVERY temp path     -> its final name
#   After phase 1 none of the old names are held, so no phase 2 rename
#   can land on an occupied path.
#
# FAILURE HANDLING:
#   - Temp or final name already taken by something else -> raise
#     StagingConflictError before anything is renamed.
#   - A rename fails part-way -> undo the completed renames in reverse
#     (best-effort) and raise ReorderError chained to the OSError.
#   The manifest is only written after both phases finished.
# ============================================================================

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from scenevault.core.config import Config
from scenevault.core.exceptions import ReorderError, StagingConflictError, ValidationError
from scenevault.core.filesystem import LocalFileSystem
from scenevault.core.path_utils import sanitize_segment
from scenevault.core.project_layout import scenes_root
from scenevault.monitoring.logger import get_app_logger, initialize_logging


DEFAULT_MANIFEST_FILENAME = ".scene-order.json"

_NUMERIC_PREFIX = re.compile(r"^\d+-")


@dataclass
class ReorderResult:
    manifest_path: Path
    manifest: List[Dict[str, Any]]
    renamed: int = 0

    @property
    def scene_names(self) -> List[str]:
        return [entry["sceneName"] for entry in self.manifest]

    def to_dict(self) -> Dict[str, Any]:
        return {"sceneOrderPath": str(self.manifest_path), "manifest": self.manifest}


@dataclass
class _StagedRename:
    source: Path
    temp: Path
    final: Path


def renumbered_name(name: str, rank: int) -> str:
    """
    "07-chase" at rank 2 -> "02-chase"; "chase" at rank 2 -> "02-chase".

    Only a leading run of digits followed by "-" counts as a prefix, so
    "night-market" keeps its whole name.
    """
    title = _NUMERIC_PREFIX.sub("", name, count=1) or name
    return f"{rank:02d}-{title}"


def reorder(
    root,
    ordered_names,
    manifest_filename: str = DEFAULT_MANIFEST_FILENAME,
    filesystem: Optional[LocalFileSystem] = None,
) -> ReorderResult:
    """
    Rename the entries of root into the given order and write the manifest.

    ordered_names are existing scene names (with or without a numeric
    prefix). Names that have no card and no folder on disk still get a
    manifest entry.
    """
    fs = filesystem or LocalFileSystem()
    logger = get_app_logger("scene_order")
    root = Path(root)

    safe_names = [sanitize_segment(name) for name in ordered_names]
    seen = set()
    for name in safe_names:
        if name in seen:
            raise ValidationError(
                f"Scene {name!r} appears more than once in the new order.",
                fix_suggestion="List every scene exactly once.",
            )
        seen.add(name)

    manifest: List[Dict[str, Any]] = []
    staged: List[_StagedRename] = []
    for rank, name in enumerate(safe_names, start=1):
        final_name = renumbered_name(name, rank)
        manifest.append({"order": rank, "sceneName": final_name})
        if final_name == name:
            continue
        for source, final in (
            (root / f"{name}.md", root / f"{final_name}.md"),
            (root / name, root / final_name),
        ):
            if fs.exists(source):
                staged.append(_StagedRename(
                    source=source,
                    temp=source.with_name(f"{source.name}.tmp-{rank}"),
                    final=final,
                ))

    # Pre-flight: nothing is renamed if any staging or final name is held
    # by an entry that this reorder does not move away.
    vacated = {move.source for move in staged}
    for move in staged:
        if fs.exists(move.temp):
            raise StagingConflictError(path=str(move.temp))
        if fs.exists(move.final) and move.final not in vacated:
            raise StagingConflictError(
                f"Target path already exists and is not part of this reorder. Path: {move.final}",
                path=str(move.final),
            )

    completed: List[Tuple[Path, Path]] = []
    try:
        for move in staged:
            fs.rename(move.source, move.temp)
            completed.append((move.source, move.temp))
        for move in staged:
            fs.rename(move.temp, move.final)
            completed.append((move.temp, move.final))
    except OSError as e:
        _rollback(completed, fs, logger)
        raise ReorderError(
            f"Reorder of {root} failed after {len(completed)} rename(s): {e}"
        ) from e

    manifest_path = root / manifest_filename
    fs.write_json_atomic(manifest_path, manifest)

    result = ReorderResult(manifest_path=manifest_path, manifest=manifest, renamed=len(staged))
    logger.info(
        "reorder_complete",
        scenes_root=str(root),
        scenes=result.scene_names,
        renamed=result.renamed,
    )
    return result


def _rollback(completed: List[Tuple[Path, Path]], fs: LocalFileSystem, logger) -> None:
    for original, current in reversed(completed):
        try:
            fs.rename(current, original)
        except OSError as e:
            logger.warning(
                "reorder_rollback_failed",
                path=str(current),
                original_path=str(original),
                error=str(e),
            )


def reorder_scenes(
    project_root,
    episode_name,
    ordered_names,
    config: Optional[Config] = None,
    filesystem: Optional[LocalFileSystem] = None,
) -> ReorderResult:
    """Reorder the scenes folder of one episode (episode ids like "EP3")."""
    config = config or Config()
    initialize_logging(config.logging.log_dir)
    root = scenes_root(project_root, episode_name, config.layout)
    return reorder(root, ordered_names, config.document.scene_order_filename, filesystem)


def load_scene_order(
    scenes_dir,
    manifest_filename: str = DEFAULT_MANIFEST_FILENAME,
    filesystem: Optional[LocalFileSystem] = None,
) -> List[str]:
    """
    Scene names in display order.

    Uses the manifest when it is readable; otherwise falls back to the
    alphabetical list of scene cards (*.md stems).
    """
    fs = filesystem or LocalFileSystem()
    root = Path(scenes_dir)

    data = fs.read_json(root / manifest_filename)
    if isinstance(data, list) and all(
        isinstance(entry, dict)
        and isinstance(entry.get("order"), int)
        and isinstance(entry.get("sceneName"), str)
        for entry in data
    ):
        return [entry["sceneName"] for entry in sorted(data, key=lambda entry: entry["order"])]

    return sorted(
        name[:-3] for name in fs.list_names(root)
        if name.endswith(".md") and (root / name).is_file()
    )
