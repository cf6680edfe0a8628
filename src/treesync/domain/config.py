from __future__ import annotations

"""
Configuration Domain Management.

Defines the capability flags composed by a tree host and the persistent
engine settings (debounce window, virtualization geometry, naming limits).
Settings are stored as JSON in the user data directory, merged over
defaults and stamped with a schema version.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping

from treesync.domain import constants as const
from treesync.infra.fs import get_user_data_dir, write_json_atomic

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Constants & Defaults
# -----------------------------------------------------------------------------
CONFIG_FILE_NAME = "config.json"


def get_config_file() -> str:
    return os.path.join(get_user_data_dir(), CONFIG_FILE_NAME)

# -----------------------------------------------------------------------------
# Capability Flags
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class TreeFeatures:
    """
    Capabilities a host enables for one tree instance.

    Attributes:
        selection: Allow item selection.
        multi_select: Allow toggling several items into the selection.
        checkboxes: Track checked state and mirror it with the selection.
        search: Enable query filtering of the visible rows.
        rename: Allow in-place renames.
        delete: Allow removing and clearing items.
        drag_drop: Allow internal drag reordering and moves.
        foreign_drag: Allow dragging items out to other trees.
        accept_drops: Accept node payloads from other trees.
        external_file_drop: Accept OS file drops.
    """
    selection: bool = True
    multi_select: bool = True
    checkboxes: bool = False
    search: bool = True
    rename: bool = True
    delete: bool = True
    drag_drop: bool = True
    foreign_drag: bool = False
    accept_drops: bool = False
    external_file_drop: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TreeFeatures":
        """Build flags from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: bool(v) for k, v in data.items() if k in known})

    @classmethod
    def read_only(cls) -> "TreeFeatures":
        return cls(rename=False, delete=False, drag_drop=False)

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)

# -----------------------------------------------------------------------------
# Settings Models (Dict-based)
# -----------------------------------------------------------------------------

def get_default_settings() -> Dict[str, Any]:
    """
    Generate the default engine settings.

    Returns:
        Dict[str, Any]: Default configuration values.
    """
    return {
        # Reconciliation
        "debounce_ms": const.DEFAULT_DEBOUNCE_MS,

        # Virtualization geometry
        "row_height": const.DEFAULT_ROW_HEIGHT,
        "overscan": const.DEFAULT_OVERSCAN,
        "indent": const.DEFAULT_INDENT,

        # Naming
        "max_name_length": const.MAX_NAME_LENGTH,

        # Interaction
        "checkbox_mode": False,
        "locale": "en",
        "features": TreeFeatures().to_dict(),
    }


def get_default_app_state() -> Dict[str, Any]:
    """
    Generate the complete default application state structure.

    Returns:
        Dict[str, Any]: The full JSON structure for config.json.
    """
    return {
        "version": const.CURRENT_CONFIG_VERSION,
        "settings": get_default_settings(),
        "recent_documents": [],
    }

# -----------------------------------------------------------------------------
# Persistence Logic
# -----------------------------------------------------------------------------

def load_app_state() -> Dict[str, Any]:
    """
    Load application state from disk, merged over defaults.

    Returns:
        Dict[str, Any]: The loaded state or a default structure on failure.
    """
    state = get_default_app_state()
    config_file = get_config_file()

    if not os.path.exists(config_file):
        logger.debug("Config file not found. Returning defaults.")
        return state

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load config: {e}. Using defaults.")
        return state

    if not isinstance(data, dict):
        logger.warning("Corrupted config file. Resetting to defaults.")
        return state

    settings = data.get("settings")
    if isinstance(settings, dict):
        features = settings.get("features")
        state["settings"].update({k: v for k, v in settings.items() if k != "features"})
        if isinstance(features, dict):
            state["settings"]["features"].update(features)

    recent = data.get("recent_documents")
    if isinstance(recent, list):
        state["recent_documents"] = [str(p) for p in recent]

    state["version"] = const.CURRENT_CONFIG_VERSION
    return state


def save_app_state(state: Dict[str, Any]) -> None:
    """
    Persist application state to disk.

    Args:
        state: The state dictionary to save.
    """
    config_file = get_config_file()
    state["version"] = const.CURRENT_CONFIG_VERSION
    try:
        write_json_atomic(config_file, state)
        logger.debug(f"Configuration saved to {config_file}")
    except OSError as e:
        logger.error(f"Failed to save configuration: {e}")

# -----------------------------------------------------------------------------
# Facade API
# -----------------------------------------------------------------------------

def load_settings() -> Dict[str, Any]:
    """Retrieve the persisted engine settings merged over defaults."""
    return load_app_state()["settings"]


def save_settings(settings: Dict[str, Any]) -> None:
    """Persist the provided engine settings."""
    state = load_app_state()
    state["settings"] = settings
    save_app_state(state)


def remember_document(path: str, limit: int = 10) -> None:
    """Push a tree document path to the front of the recent list."""
    state = load_app_state()
    recent = [p for p in state["recent_documents"] if p != path]
    state["recent_documents"] = [path] + recent[: max(0, limit - 1)]
    save_app_state(state)
