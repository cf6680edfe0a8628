from __future__ import annotations

"""
Node Name Rules.

Validation and sanitization of display names, plus generation of
collision-free names for duplicated items.
"""

from typing import Collection, List

from treesync.domain import constants as const
from treesync.domain.errors import InvalidNameError
from treesync.utils.i18n import i18n


def name_problems(name: str, max_length: int = const.MAX_NAME_LENGTH) -> List[str]:
    """
    List every rule a candidate name breaks.

    Args:
        name: Candidate display name.
        max_length: Upper bound on the name length.

    Returns:
        List[str]: Localized reasons, empty when the name is valid.
    """
    problems: List[str] = []
    if not name or not name.strip():
        problems.append(i18n.t("names.empty", default="name cannot be empty"))
        return problems

    if len(name) > max_length:
        problems.append(i18n.t("names.too_long", default="name is too long", limit=max_length))
    if const.INVALID_NAME_CHARS.search(name):
        problems.append(i18n.t("names.invalid_chars", default="name contains invalid characters"))
    if const.RESERVED_NAMES.match(name):
        problems.append(i18n.t("names.reserved", default="name is reserved"))
    if name.endswith(".") or name.endswith(" "):
        problems.append(i18n.t("names.trailing", default="name cannot end with a dot or a space"))
    return problems


def validate_name(name: str, max_length: int = const.MAX_NAME_LENGTH) -> str:
    """
    Ensure a name is acceptable for a node.

    Returns:
        str: The unchanged name.

    Raises:
        InvalidNameError: If any naming rule is broken.
    """
    problems = name_problems(name, max_length)
    if problems:
        raise InvalidNameError(name, problems)
    return name


def is_valid_name(name: str, max_length: int = const.MAX_NAME_LENGTH) -> bool:
    return not name_problems(name, max_length)


def sanitize_name(
        name: str,
        fallback: str = const.DEFAULT_FOREIGN_ITEM_NAME,
        max_length: int = const.MAX_NAME_LENGTH,
) -> str:
    """
    Turn arbitrary text into a valid node name.

    Strips forbidden characters, truncates to the length limit and drops
    trailing dots/spaces. Reserved device names are checked on the final
    text and get a '_' suffix.
    """
    cleaned = const.INVALID_NAME_CHARS.sub("", name or "").strip()
    cleaned = cleaned[:max_length].rstrip(". ")
    if const.RESERVED_NAMES.match(cleaned):
        cleaned = f"{cleaned[:max_length - 1]}_"
    return cleaned or fallback


def copy_name(name: str, is_file: bool, taken: Collection[str] = ()) -> str:
    """
    Build the display name of a duplicated item.

    Files keep their extension ('a (copy).txt'); folders get a plain
    suffix ('A (copy)'). When the name is already used by a sibling the
    suffix is numbered: '(copy 2)', '(copy 3)'...

    Args:
        name: Name of the original item.
        is_file: Whether the suffix goes before the extension.
        taken: Names already used in the destination folder.
    """
    stem, ext = name, ""
    if is_file:
        head, dot, tail = name.rpartition(".")
        if dot and head and tail:
            stem, ext = head, f".{tail}"

    candidate = f"{stem} ({const.COPY_SUFFIX}){ext}"
    counter = 2
    while candidate in taken:
        candidate = f"{stem} ({const.COPY_SUFFIX} {counter}){ext}"
        counter += 1
    return candidate
