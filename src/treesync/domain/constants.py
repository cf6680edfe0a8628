from __future__ import annotations

"""
Domain Constants and Static Data Structures.

Provides centralized access to engine-wide constants: id conventions,
naming rules, wire formats for drag payloads and rendering defaults.
"""

import re
from typing import FrozenSet, Pattern

APP_NAME = "treesync"
CURRENT_CONFIG_VERSION = "1.0.0"

# -----------------------------------------------------------------------------
# IDENTIFIERS
# -----------------------------------------------------------------------------

FILE_ID_PREFIX = "file"
FOLDER_ID_PREFIX = "folder"

# Optimistic nodes that the server has not confirmed yet
TRANSIENT_ID_PATTERN: Pattern[str] = re.compile(r"^(temp-|file-temp-|folder-temp-)")

# -----------------------------------------------------------------------------
# NODE DEFAULTS
# -----------------------------------------------------------------------------

ROOT_PATH = "/"
PATH_SEPARATOR = "/"
DEFAULT_MIME_TYPE = "application/octet-stream"
COPY_SUFFIX = "copy"

# -----------------------------------------------------------------------------
# NAME VALIDATION
# -----------------------------------------------------------------------------

MAX_NAME_LENGTH = 255
INVALID_NAME_CHARS: Pattern[str] = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
RESERVED_NAMES: Pattern[str] = re.compile(r"^(con|prn|aux|nul|com[1-9]|lpt[1-9])$", re.IGNORECASE)

# -----------------------------------------------------------------------------
# DRAG AND DROP WIRE FORMATS
# -----------------------------------------------------------------------------

JSON_DRAG_FORMAT = "application/json"
TEXT_DRAG_FORMAT = "text/plain"
ITEM_TYPE_FORMAT = "item-type"
FILE_SIZE_FORMAT = "file-size"
FILE_TYPE_FORMAT = "file-type"
DEFAULT_FOREIGN_ITEM_NAME = "New Item"
# Completed foreign drag ids remembered per tree for idempotent completion
COMPLETED_DRAG_HISTORY = 256

# Node keys that overrides may never touch
STRUCTURAL_KEYS: FrozenSet[str] = frozenset({
    "id", "node_id", "type", "node_type", "parent_id", "parentId",
    "children", "path", "depth", "name",
})

# -----------------------------------------------------------------------------
# RENDERING
# -----------------------------------------------------------------------------

DEFAULT_DEBOUNCE_MS = 50
DEFAULT_ROW_HEIGHT = 32
DEFAULT_OVERSCAN = 5
DEFAULT_INDENT = 20
