# ============================================================================
# SceneVault -- Configuration (scenevault/core/config.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Single source of truth for every SceneVault setting: folder names in a
#   project tree, which extensions count as image/video/audio, the sidecar
#   suffix, the manifest and conflict folder names, and where logs go.
#
# HOW IT WORKS:
#   1. Python "dataclasses" define every setting with a sensible default
#   2. A YAML file (<project>/config/scenevault.yaml) can override defaults
#   3. Environment variables can override YAML (machine-specific values)
#
#   Priority: env vars > YAML file > hardcoded defaults
#
# USAGE:
#   from scenevault.core.config import load_config
#   config = load_config("/path/to/project")
#   print(config.layout.assets_dir)          # "assets"
#   print(config.ingest.sidecar_suffix)      # ".meta.json"
#
# YAML EXAMPLE (config/scenevault.yaml):
#   layout:
#     assets_dir: "资产"
#     script_dir: "剧本"
#   document:
#     default_updated_by: "writer-a"
# ============================================================================

from __future__ import annotations

import os
import sys
import yaml
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List


# -------------------------------------------------------------------
# Sub-configs: each one maps to a section in the YAML file
# -------------------------------------------------------------------

@dataclass
class LayoutConfig:
    """
    Folder names inside a project tree.

    A project looks like this with the defaults:

      <project>/
        assets/
          characters/   scenes/   props/
        script/
          EP01/
            resources/                 <- episode-level media
            scenes/
              .scene-order.json        <- display order manifest
              01-opening.md            <- scene card (companion document)
              01-opening/
                media/                 <- scene-card media
    """
    assets_dir: str = "assets"
    characters_dir: str = "characters"
    scenes_assets_dir: str = "scenes"
    props_dir: str = "props"
    script_dir: str = "script"
    episode_resources_dir: str = "resources"
    scenes_dir: str = "scenes"
    scene_media_dir: str = "media"


@dataclass
class IngestConfig:
    """
    Import settings.

    Extensions are matched case-insensitively. Anything not listed goes to
    the "other" bucket.
    """
    default_mode: str = "copy"     # "copy" or "move"

    image_extensions: List[str] = field(default_factory=lambda: [
        ".png", ".jpg", ".jpeg", ".webp", ".gif",
    ])
    video_extensions: List[str] = field(default_factory=lambda: [
        ".mp4", ".mov", ".webm",
    ])
    audio_extensions: List[str] = field(default_factory=lambda: [
        ".mp3", ".wav", ".m4a",
    ])

    # media type -> bucket subfolder under the target base path
    buckets: Dict[str, str] = field(default_factory=lambda: {
        "image": "images",
        "video": "videos",
        "audio": "audio",
        "other": "files",
    })

    sidecar_suffix: str = ".meta.json"

    def __post_init__(self) -> None:
        env_mode = os.getenv("SCENEVAULT_INGEST_MODE")
        if env_mode:
            self.default_mode = env_mode.strip().lower()


@dataclass
class DocumentConfig:
    """Companion-document, scene-order and save-protocol settings."""
    linked_assets_heading: str = "## Linked Assets"
    scene_order_filename: str = ".scene-order.json"
    conflicts_dir: str = ".conflicts"
    default_updated_by: str = "local-user"

    def __post_init__(self) -> None:
        env_user = os.getenv("SCENEVAULT_USER")
        if env_user:
            self.default_updated_by = env_user.strip()


@dataclass
class LoggingConfig:
    """Where structured logs are written."""
    log_dir: str = "logs"
    audit_enabled: bool = True     # Write batch/undo records to audit_*.log

    def __post_init__(self) -> None:
        env_dir = os.getenv("SCENEVAULT_LOG_DIR")
        if env_dir:
            self.log_dir = env_dir
        if self.log_dir:
            self.log_dir = os.path.normpath(os.path.expandvars(self.log_dir))


# -------------------------------------------------------------------
# Master Config -- the one object that holds everything
# -------------------------------------------------------------------

@dataclass
class Config:
    """
    Master configuration object for SceneVault.

    Example:
        config = load_config(".")
        engine = IngestEngine(config)
    """
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    ingest: IngestConfig = field(default_factory=IngestConfig)
    document: DocumentConfig = field(default_factory=DocumentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# -------------------------------------------------------------------
# Helper: YAML dict -> dataclass (with safety net)
# -------------------------------------------------------------------

def _dict_to_dataclass(cls, data: dict):
    """
    Build a dataclass from a dictionary, ignoring unknown keys.

    A YAML key that does not match any field prints a [WARN] line to
    stderr and is dropped, so "scene_dir" vs "scenes_dir" typos are loud
    instead of silently falling back to the default. The warning suggests
    the closest field name when one contains the other.
    """
    if not isinstance(data, dict):
        return cls()

    known_fields = {f.name for f in dataclasses.fields(cls)}

    filtered = {}
    for k, v in data.items():
        if k in known_fields:
            filtered[k] = v
        else:
            suggestion = ""
            for field_name in sorted(known_fields):
                if k in field_name or field_name in k:
                    suggestion = " Did you mean '" + field_name + "'?"
                    break
            print(
                "  [WARN] config/" + cls.__name__ + ": YAML key '"
                + str(k) + "' is not a recognized setting"
                + " -- IGNORED (using default)." + suggestion,
                file=sys.stderr,
            )

    return cls(**filtered)


# -------------------------------------------------------------------
# Main entry point: load_config()
# -------------------------------------------------------------------

def load_config(
    project_dir: str = ".",
    config_filename: str = "scenevault.yaml",
) -> Config:
    """
    Load configuration from YAML file, with defaults and env var overrides.

    Parameters
    ----------
    project_dir : str
        Path to the project root folder.

    config_filename : str
        Name of the YAML config file inside the config/ subfolder.

    Returns
    -------
    Config
        Fully resolved configuration object. A missing or empty YAML file
        yields all defaults.
    """
    config_path = Path(project_dir) / "config" / config_filename

    yaml_data: dict = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                yaml_data = raw

    return Config(
        layout=_dict_to_dataclass(LayoutConfig, yaml_data.get("layout", {})),
        ingest=_dict_to_dataclass(IngestConfig, yaml_data.get("ingest", {})),
        document=_dict_to_dataclass(DocumentConfig, yaml_data.get("document", {})),
        logging=_dict_to_dataclass(LoggingConfig, yaml_data.get("logging", {})),
    )


def validate_config(config: Config) -> List[str]:
    """
    Check a Config object for problems. Returns a list of error messages.
    Empty list = everything is valid.
    """
    errors: List[str] = []

    if config.ingest.default_mode not in ("copy", "move"):
        errors.append(
            "Invalid ingest.default_mode: '" + config.ingest.default_mode
            + "'. Must be 'copy' or 'move'."
        )

    for f in dataclasses.fields(config.layout):
        if not str(getattr(config.layout, f.name)).strip():
            errors.append("layout." + f.name + " must not be empty.")

    seen: Dict[str, str] = {}
    for media_type in ("image", "video", "audio"):
        for ext in getattr(config.ingest, media_type + "_extensions"):
            key = ext.lower()
            if key in seen and seen[key] != media_type:
                errors.append(
                    "Extension '" + ext + "' is listed as both "
                    + seen[key] + " and " + media_type + "."
                )
            seen[key] = media_type

    for media_type in ("image", "video", "audio", "other"):
        if not config.ingest.buckets.get(media_type):
            errors.append("ingest.buckets has no folder for '" + media_type + "'.")

    if not config.ingest.sidecar_suffix.startswith("."):
        errors.append("ingest.sidecar_suffix must start with '.'.")

    if not config.document.linked_assets_heading.strip():
        errors.append("document.linked_assets_heading must not be empty.")

    return errors
