from __future__ import annotations

"""
Tree Renderer.

Converts the flattened visible rows of a tree into an ASCII representation
with the standard connectors, for terminals and logs.
"""

from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from treesync.core.selection.checkboxes import CheckedState

if TYPE_CHECKING:
    from treesync.core.render.adapter import VisibleRow

_CHECK_MARKS: Dict[Optional[CheckedState], str] = {
    CheckedState.CHECKED: "[x] ",
    CheckedState.UNCHECKED: "[ ] ",
    CheckedState.INDETERMINATE: "[-] ",
    None: "",
}

# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def render_rows(
        rows: Sequence[VisibleRow],
        lines: Optional[List[str]] = None,
        show_ids: bool = False,
        show_checks: bool = False,
) -> List[str]:
    """
    Transform flattened rows into connector-prefixed lines.

    Rows must be in display (pre-order) order. The prefix of each row is
    rebuilt from the is_last_child flags of its ancestors, so collapsed or
    filtered folders simply contribute no lines.

    Args:
        rows: Visible rows as produced by the render adapter.
        lines: Accumulator list for output strings.
        show_ids: Append each node id in brackets.
        show_checks: Prefix each entry with its checkbox state.

    Returns:
        List[str]: The accumulator.
    """
    out = lines if lines is not None else []
    # last_at[level] tells whether the open ancestor at that level is a last child
    last_at: List[bool] = []

    for row in rows:
        del last_at[row.level:]
        prefix = "".join("    " if last else "│   " for last in last_at)
        connector = "└── " if row.is_last_child else "├── "

        label = f"{row.name}/" if row.is_folder else row.name
        if row.is_folder and row.has_children and not row.is_expanded:
            label += " [+]"
        if show_checks:
            label = _CHECK_MARKS.get(row.checked_state, "") + label
        if show_ids:
            label += f"  [{row.id}]"

        out.append(f"{prefix}{connector}{label}")
        last_at.append(row.is_last_child)
    return out

