# ============================================================================
# SceneVault -- Project Layout (scenevault/core/project_layout.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Knows where things live inside a project tree: the assets root, an
#   episode folder, the scenes folder of an episode and the scene card /
#   scene storage pair for one scene. Folder names come from LayoutConfig.
#
#   Also owns episode identifier normalization:
#     "EP3", "ep03", "3", "03"  ->  "EP03"
#     "EP123"                   ->  "EP123"  (padding is a minimum width)
# ============================================================================

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from scenevault.core.config import LayoutConfig
from scenevault.core.exceptions import InvalidEpisodeNameError
from scenevault.core.path_utils import sanitize_segment


_EPISODE_PREFIXED = re.compile(r"^EP(\d+)$")
_EPISODE_NUMERIC = re.compile(r"^\d+$")


def normalize_episode_name(value) -> str:
    """Return the canonical "EPnn" form or raise InvalidEpisodeNameError."""
    raw = str(value if value is not None else "").strip().upper()

    match = _EPISODE_PREFIXED.match(raw)
    digits = match.group(1) if match else (raw if _EPISODE_NUMERIC.match(raw) else None)
    if digits is None or int(digits) <= 0:
        raise InvalidEpisodeNameError(value=value)

    return f"EP{int(digits):02d}"


def episode_root(project_root, episode_name, layout: Optional[LayoutConfig] = None) -> Path:
    layout = layout or LayoutConfig()
    return Path(project_root) / layout.script_dir / normalize_episode_name(episode_name)


def scenes_root(project_root, episode_name, layout: Optional[LayoutConfig] = None) -> Path:
    """Folder holding the scene cards (and scene storage folders) of an episode."""
    layout = layout or LayoutConfig()
    return episode_root(project_root, episode_name, layout) / layout.scenes_dir


def scene_paths(project_root, episode_name, scene_name, layout: Optional[LayoutConfig] = None):
    """
    Return (card_path, storage_root) for one scene.

    The card is "<scenes>/<scene>.md"; its media and other storage live in
    the sibling folder "<scenes>/<scene>/".
    """
    layout = layout or LayoutConfig()
    safe_scene = sanitize_segment(scene_name)
    root = scenes_root(project_root, episode_name, layout)
    return root / f"{safe_scene}.md", root / safe_scene
