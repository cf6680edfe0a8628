from __future__ import annotations

"""
Tree Error Taxonomy.

Every rejected operation surfaces as a subclass of TreeError carrying a
stable machine-readable code and a localized, human-readable reason.
Structural checks run before any mutation, so raising one of these never
leaves a store half-updated.
"""

from typing import Any, List, Sequence

from treesync.utils.i18n import i18n


class TreeError(Exception):
    """
    Base class for all engine failures.

    Attributes:
        code: Stable identifier of the failure kind.
        context: Values interpolated into the localized message.
    """
    code = "tree_error"

    def __init__(self, **context: Any) -> None:
        self.context = context
        super().__init__(i18n.t(f"errors.{self.code}", **context))

    @property
    def reason(self) -> str:
        return str(self)


# -----------------------------------------------------------------------------
# RESOLUTION FAILURES
# -----------------------------------------------------------------------------

class NodeNotFoundError(TreeError):
    """Raised when an id does not resolve to a node."""
    code = "not_found"

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(node_id=node_id)


class TargetNotFoundError(NodeNotFoundError):
    """Raised when the destination of an add/move does not exist."""
    code = "target_not_found"


class NotAFolderError(TreeError):
    """Raised when a folder-only operation is applied to a file."""
    code = "not_folder"

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(node_id=node_id)


class TargetNotFolderError(NotAFolderError):
    """Raised when the destination of an add/move/drop is a file."""
    code = "target_not_folder"


# -----------------------------------------------------------------------------
# STRUCTURAL VIOLATIONS
# -----------------------------------------------------------------------------

class CyclicMoveError(TreeError):
    """Raised when a folder would become its own descendant."""
    code = "cyclic_move"

    def __init__(self, node_id: str, target_id: str) -> None:
        self.node_id = node_id
        self.target_id = target_id
        super().__init__(node_id=node_id, target_id=target_id)


class RootOperationError(TreeError):
    """Raised when an operation that needs a parent is applied to the root."""
    code = "root_operation"

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(operation=operation)


class DuplicateIdError(TreeError):
    """Raised when an id is already in use or was used before."""
    code = "duplicate_id"

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(node_id=node_id)


class InvalidNameError(TreeError):
    """Raised when a name fails validation."""
    code = "invalid_name"

    def __init__(self, name: str, reasons: Sequence[str]) -> None:
        self.name = name
        self.reasons: List[str] = list(reasons)
        super().__init__(name=name, reasons="; ".join(self.reasons))


class TreeIntegrityError(TreeError):
    """Raised in strict mode when initial data breaks the tree invariants."""
    code = "integrity"

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems: List[str] = list(problems)
        super().__init__(count=len(self.problems), problems="; ".join(self.problems))


# -----------------------------------------------------------------------------
# DRAG AND DROP FAILURES
# -----------------------------------------------------------------------------

class PayloadError(TreeError):
    """Raised when a serialized node payload cannot be decoded."""
    code = "payload"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail=detail)


class ForeignDropError(TreeError):
    """Raised when a foreign drop cannot be accepted by this tree."""
    code = "foreign_drop"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail=detail)


class DragStateError(TreeError):
    """Raised when a drag transition is requested from the wrong phase."""
    code = "drag_state"

    def __init__(self, phase: str, action: str) -> None:
        self.phase = phase
        self.action = action
        super().__init__(phase=phase, action=action)


# -----------------------------------------------------------------------------
# COMPOSITION FAILURES
# -----------------------------------------------------------------------------

class FeatureDisabledError(TreeError):
    """Raised when a capability switched off in TreeFeatures is used."""
    code = "feature_disabled"

    def __init__(self, feature: str) -> None:
        self.feature = feature
        super().__init__(feature=feature)


class TreeNotRegisteredError(TreeError, KeyError):
    """Raised when a tree id is unknown to the registry."""
    code = "tree_not_registered"

    def __init__(self, tree_id: str) -> None:
        self.tree_id = tree_id
        super().__init__(tree_id=tree_id)

    def __str__(self) -> str:
        return Exception.__str__(self)


class DuplicateTreeError(TreeError):
    """Raised when a tree id is registered twice."""
    code = "duplicate_tree"

    def __init__(self, tree_id: str) -> None:
        self.tree_id = tree_id
        super().__init__(tree_id=tree_id)
