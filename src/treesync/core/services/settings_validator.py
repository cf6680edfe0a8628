from __future__ import annotations

"""
Settings Validation Service.

Gatekeeper between untrusted settings (config.json, CLI flags, host
dictionaries) and the engine. Coerces types, clamps numeric ranges and
fills missing keys with defaults, collecting a warning for every
correction unless strict mode is requested.
"""

import logging
from typing import Any, Dict, List, Tuple

from treesync.domain.config import TreeFeatures, get_default_settings

logger = logging.getLogger(__name__)

# field -> (minimum, maximum)
_INT_RANGES: Dict[str, Tuple[int, int]] = {
    "debounce_ms": (0, 5000),
    "row_height": (1, 512),
    "overscan": (0, 500),
    "indent": (0, 256),
    "max_name_length": (1, 4096),
}

# -----------------------------------------------------------------------------
# PUBLIC API
# -----------------------------------------------------------------------------

def validate_settings(
        settings: Any,
        *,
        strict: bool = False,
) -> Tuple[Dict[str, Any], List[str]]:
    """
    Validate and normalize an engine settings dictionary.

    Args:
        settings: Raw settings (usually a dictionary).
        strict: If True, raise on type mismatch instead of coercing.

    Returns:
        Tuple[Dict[str, Any], List[str]]: Normalized settings and warnings.

    Raises:
        TypeError: In strict mode, on a value of the wrong type.
        ValueError: In strict mode, on an out-of-range number.
    """
    warnings: List[str] = []
    defaults = get_default_settings()

    if not isinstance(settings, dict):
        msg = f"Invalid settings type: expected dict, received {type(settings).__name__}."
        if strict:
            raise TypeError(msg)
        warnings.append(f"{msg} Using defaults.")
        logger.warning(msg)
        return defaults, warnings

    merged: Dict[str, Any] = dict(defaults)
    merged.update(settings)

    for field, (low, high) in _INT_RANGES.items():
        merged[field] = _as_int(merged.get(field), defaults[field], low, high, field, warnings, strict)

    merged["checkbox_mode"] = _as_bool(
        merged.get("checkbox_mode"), defaults["checkbox_mode"], "checkbox_mode", warnings, strict
    )
    merged["locale"] = _as_str(merged.get("locale"), defaults["locale"], "locale", warnings, strict)
    merged["features"] = _as_features(merged.get("features"), defaults["features"], warnings, strict)

    for w in warnings:
        logger.debug(f"Settings correction: {w}")
    return merged, warnings

# -----------------------------------------------------------------------------
# PRIVATE HELPERS: TYPE COERCION
# -----------------------------------------------------------------------------

def _as_int(
        value: Any,
        fallback: int,
        low: int,
        high: int,
        field: str,
        warnings: List[str],
        strict: bool,
) -> int:
    """Coerce to int and clamp into [low, high]."""
    if value is None:
        return fallback

    number: Any = value
    if isinstance(value, bool) or not isinstance(value, int):
        if strict:
            raise TypeError(f"Invalid field '{field}': expected int, received {type(value).__name__}.")
        try:
            number = int(str(value).strip())
            warnings.append(f"Field '{field}' converted from {value!r} to {number}.")
        except ValueError:
            warnings.append(f"Invalid field '{field}': {value!r} is not an integer. Using fallback.")
            return fallback

    if number < low or number > high:
        if strict:
            raise ValueError(f"Field '{field}' out of range [{low}, {high}]: {number}.")
        clamped = min(max(number, low), high)
        warnings.append(f"Field '{field}' clamped from {number} to {clamped}.")
        return clamped
    return number


def _as_bool(value: Any, fallback: bool, field: str, warnings: List[str], strict: bool) -> bool:
    """Coerce various input types into native booleans."""
    if isinstance(value, bool):
        return value
    if value is None:
        return fallback

    if not strict:
        if isinstance(value, (int, float)) and value in (0, 1):
            warnings.append(f"Field '{field}' converted from number {value} to bool.")
            return bool(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if s in ("true", "1", "yes", "y", "on"):
                warnings.append(f"Field '{field}' converted from '{value}' to True.")
                return True
            if s in ("false", "0", "no", "n", "off"):
                warnings.append(f"Field '{field}' converted from '{value}' to False.")
                return False

    msg = f"Invalid field '{field}': expected bool, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_str(value: Any, fallback: str, field: str, warnings: List[str], strict: bool) -> str:
    """Validate and sanitize string inputs."""
    if value is None:
        return fallback
    if isinstance(value, str):
        v = value.strip()
        return v if v else fallback

    msg = f"Invalid field '{field}': expected str, received {type(value).__name__}."
    if strict:
        raise TypeError(msg)
    warnings.append(f"{msg} Using fallback.")
    return fallback


def _as_features(
        value: Any,
        fallback: Dict[str, bool],
        warnings: List[str],
        strict: bool,
) -> Dict[str, bool]:
    """Normalize the capability flag table, dropping unknown flags."""
    if value is None:
        return dict(fallback)
    if not isinstance(value, dict):
        msg = f"Invalid field 'features': expected dict, received {type(value).__name__}."
        if strict:
            raise TypeError(msg)
        warnings.append(f"{msg} Using fallback.")
        return dict(fallback)

    out = dict(fallback)
    for key, flag in value.items():
        if key not in fallback:
            warnings.append(f"Unknown feature flag '{key}' discarded.")
            continue
        out[key] = _as_bool(flag, fallback[key], f"features.{key}", warnings, strict)

    # Round-trip through the dataclass so the table always matches it
    return TreeFeatures.from_mapping(out).to_dict()
