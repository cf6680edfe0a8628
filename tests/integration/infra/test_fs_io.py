from __future__ import annotations

"""
Integration tests for FileSystem Infrastructure.

Validates path normalization, data directory resolution and atomic JSON
document persistence.
"""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from treesync.infra.fs import (
    get_user_data_dir,
    normalize_path,
    read_json,
    safe_mkdir,
    write_json_atomic,
)

# -----------------------------------------------------------------------------
# PATH RESOLUTION TESTS
# -----------------------------------------------------------------------------

def test_get_user_data_dir_unix() -> None:
    """Resolution of ~/.treesync on Unix-like systems."""
    with patch("os.name", "posix"):
        with patch("os.path.expanduser", return_value="/home/testuser"):
            with patch("os.makedirs"):
                path = get_user_data_dir()
    assert path.replace("\\", "/").endswith("/home/testuser/.treesync")


def test_normalize_path_expansion() -> None:
    """Expansion of environment variables."""
    with patch.dict(os.environ, {"TEST_VAR": "my_folder"}):
        path = normalize_path("$TEST_VAR/sub", fallback=".")
    assert path.endswith(os.path.join("my_folder", "sub"))
    assert os.path.isabs(path)


def test_normalize_path_fallback() -> None:
    assert normalize_path("   ", fallback="/tmp/x") == os.path.abspath("/tmp/x")
    assert normalize_path(None, fallback="/tmp/x") == os.path.abspath("/tmp/x")


def test_safe_mkdir(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b"
    assert safe_mkdir(str(target)) == (True, None)
    assert target.is_dir()

    blocker = tmp_path / "file"
    blocker.write_text("x", encoding="utf-8")
    ok, error = safe_mkdir(str(blocker / "child"))
    assert ok is False
    assert error

# -----------------------------------------------------------------------------
# JSON DOCUMENTS
# -----------------------------------------------------------------------------

def test_write_and_read_json(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "doc.json"
    write_json_atomic(str(target), {"name": "ñandú", "n": [1, 2]})

    assert read_json(str(target)) == {"name": "ñandú", "n": [1, 2]}
    assert "ñandú" in target.read_text(encoding="utf-8")
    assert [p.name for p in target.parent.iterdir()] == ["doc.json"]


def test_failed_write_keeps_previous_document(tmp_path: Path) -> None:
    target = tmp_path / "doc.json"
    write_json_atomic(str(target), {"v": 1})

    with pytest.raises(TypeError):
        write_json_atomic(str(target), {"v": object()})

    assert json.loads(target.read_text(encoding="utf-8")) == {"v": 1}
    assert [p.name for p in tmp_path.iterdir()] == ["doc.json"]


def test_read_json_errors(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        read_json(str(tmp_path / "missing.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    with pytest.raises(ValueError):
        read_json(str(broken))
