# ============================================================================
# SceneVault -- Ingest Target Resolver (scenevault/core/ingest_routing.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Maps a logical destination ("put this on character", "put this on
#   scene 01-opening of EP3") to a concrete folder under the project root,
#   plus the companion document that should receive backlinks, if any.
#
#   node type (after aliases)   base path                         companion
#   -------------------------   -------------------------------   -----------------
#   assets                      assets/                           none
#   character                   assets/characters/                none
#   scene                       assets/scenes/                    none
#   prop                        assets/props/                     none
#   episode                     script/EPnn/resources/            none
#   scene-card                  script/EPnn/scenes/<scene>/media  script/EPnn/scenes/<scene>.md
#
#   Nothing here touches the disk. The caller creates base_path.
# ============================================================================

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from scenevault.core.config import LayoutConfig
from scenevault.core.exceptions import UnsupportedTargetError, ValidationError
from scenevault.core.project_layout import episode_root, normalize_episode_name, scene_paths


class NodeType(str, Enum):
    ASSETS = "assets"
    CHARACTER = "character"
    SCENE = "scene"
    PROP = "prop"
    EPISODE = "episode"
    SCENE_CARD = "scene-card"


# Lower-cased alias -> canonical node type. Includes the folder names used
# by projects created with the Chinese layout.
NODE_TYPE_ALIASES: Dict[str, NodeType] = {
    "assets": NodeType.ASSETS,
    "asset": NodeType.ASSETS,
    "资产": NodeType.ASSETS,
    "character": NodeType.CHARACTER,
    "characters": NodeType.CHARACTER,
    "角色": NodeType.CHARACTER,
    "scene": NodeType.SCENE,
    "scenes": NodeType.SCENE,
    "场景": NodeType.SCENE,
    "prop": NodeType.PROP,
    "props": NodeType.PROP,
    "道具": NodeType.PROP,
    "episode": NodeType.EPISODE,
    "ep": NodeType.EPISODE,
    "scene-card": NodeType.SCENE_CARD,
    "scene_card": NodeType.SCENE_CARD,
    "scenecard": NodeType.SCENE_CARD,
    "scene card": NodeType.SCENE_CARD,
    "场次": NodeType.SCENE_CARD,
}


@dataclass
class TargetDescriptor:
    """What the caller asked for, before resolution."""
    node_type: str
    episode_name: Optional[str] = None
    scene_name: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TargetDescriptor":
        """Accept snake_case or camelCase keys (JSON bodies use camelCase)."""
        return cls(
            node_type=data.get("node_type", data.get("nodeType")),
            episode_name=data.get("episode_name", data.get("episodeName")),
            scene_name=data.get("scene_name", data.get("sceneName")),
        )


@dataclass
class IngestTarget:
    """A resolved destination inside the project tree."""
    node_type: NodeType
    base_path: Path
    logical_path: str
    companion_document_path: Optional[Path] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeType": self.node_type.value,
            "basePath": str(self.base_path),
            "companionDocumentPath": (
                str(self.companion_document_path)
                if self.companion_document_path is not None else None
            ),
            "logicalPath": self.logical_path,
        }


def normalize_node_type(node_type) -> NodeType:
    raw = str(node_type if node_type is not None else "").strip()
    if not raw:
        raise ValidationError("target.node_type is required.")

    resolved = NODE_TYPE_ALIASES.get(raw.lower())
    if resolved is None:
        raise UnsupportedTargetError(node_type=raw)
    return resolved


def resolve_target(
    project_root,
    target: Union[TargetDescriptor, Mapping[str, Any]],
    layout: Optional[LayoutConfig] = None,
) -> IngestTarget:
    """
    Resolve a target descriptor against a project root.

    Raises UnsupportedTargetError, InvalidEpisodeNameError or
    InvalidSegmentError (all ValidationError subclasses).
    """
    layout = layout or LayoutConfig()
    if target is None:
        raise ValidationError("target is required.")
    if isinstance(target, Mapping):
        target = TargetDescriptor.from_mapping(target)

    root = Path(project_root)
    node_type = normalize_node_type(target.node_type)

    category_dirs = {
        NodeType.ASSETS: Path(layout.assets_dir),
        NodeType.CHARACTER: Path(layout.assets_dir) / layout.characters_dir,
        NodeType.SCENE: Path(layout.assets_dir) / layout.scenes_assets_dir,
        NodeType.PROP: Path(layout.assets_dir) / layout.props_dir,
    }
    if node_type in category_dirs:
        relative_dir = category_dirs[node_type]
        return IngestTarget(
            node_type=node_type,
            base_path=root / relative_dir,
            logical_path=relative_dir.as_posix(),
        )

    if node_type is NodeType.EPISODE:
        base = episode_root(root, target.episode_name, layout) / layout.episode_resources_dir
        return IngestTarget(
            node_type=node_type,
            base_path=base,
            logical_path=base.relative_to(root).as_posix(),
        )

    # Scene card: media goes into the scene's storage folder, backlinks go
    # into the scene's markdown card next to it. The episode is checked
    # before the scene name so a bad episode is reported first.
    normalize_episode_name(target.episode_name)
    card_path, storage_root = scene_paths(root, target.episode_name, target.scene_name or "", layout)
    return IngestTarget(
        node_type=node_type,
        base_path=storage_root / layout.scene_media_dir,
        logical_path=storage_root.relative_to(root).as_posix(),
        companion_document_path=card_path,
    )
