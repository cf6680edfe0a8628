from __future__ import annotations

"""
End-to-End (E2E) CLI Tests.

Verifies the application's external behavior by invoking the entry point
script via subprocess. These tests validate argument parsing, exit codes,
stream output (stdout/stderr) and file system side effects (documents
rewritten in place, written elsewhere or left untouched).
"""

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
SRC_DIR = PROJECT_ROOT / "src"
ENTRY_POINT = SRC_DIR / "treesync" / "main.py"


def run_cli(args: List[str], home: Path) -> subprocess.CompletedProcess:
    """
    Helper to execute the CLI in a separate process.

    Injects the 'src' directory into PYTHONPATH so the package resolves
    without being installed, and points HOME at a temporary folder so the
    persisted settings never touch the real user profile.
    """
    env = os.environ.copy()
    env["PYTHONPATH"] = str(SRC_DIR) + os.pathsep + env.get("PYTHONPATH", "")
    env["HOME"] = str(home)

    cmd = [sys.executable, str(ENTRY_POINT)] + args
    return subprocess.run(cmd, env=env, capture_output=True, text=True, encoding="utf-8")


def _read(path: Path) -> Dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def _names(document: Dict[str, Any]) -> List[str]:
    return [n["name"] for n in document["nodes"]]


@pytest.fixture
def home(tmp_path: Path) -> Path:
    target = tmp_path / "home"
    target.mkdir()
    return target


@pytest.fixture
def document(tmp_path: Path) -> Path:
    """
    Write a small tree document.

    Structure:
    /
      docs/
        a.txt
      readme.md
    """
    doc = {
        "treeId": "e2e",
        "rootId": "root",
        "nodes": [
            {"id": "root", "name": "root", "type": "folder", "children": ["docs", "readme"]},
            {"id": "docs", "name": "docs", "type": "folder", "parentId": "root", "children": ["a"]},
            {"id": "a", "name": "a.txt", "type": "file", "parentId": "docs", "mimeType": "text/plain"},
            {"id": "readme", "name": "readme.md", "type": "file", "parentId": "root"},
        ],
    }
    path = tmp_path / "tree.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path

# -----------------------------------------------------------------------------
# Inspection
# -----------------------------------------------------------------------------

def test_show_renders_expanded_tree(document: Path, home: Path) -> None:
    result = run_cli(["--use-defaults", "show", str(document)], home)

    assert result.returncode == 0, result.stderr
    assert result.stdout.splitlines() == [
        "├── docs/",
        "│   └── a.txt",
        "└── readme.md",
    ]


def test_search_json(document: Path, home: Path) -> None:
    result = run_cli(["--use-defaults", "--json", "search", str(document), "A.TXT"], home)

    assert result.returncode == 0, result.stderr
    payload = json.loads(result.stdout)
    assert payload["matches"] == ["a"]
    assert payload["count"] == 1
    assert payload["changed"] is False
    assert payload["savedTo"] is None


def test_validate_reports_problems(tmp_path: Path, home: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({
        "rootId": "root",
        "nodes": [{"id": "root", "name": "root", "type": "folder", "children": ["ghost"]}],
    }), encoding="utf-8")

    result = run_cli(["--use-defaults", "--json", "validate", str(broken)], home)

    assert result.returncode == 1
    assert json.loads(result.stdout)["problems"]


def test_validate_consistent_document(document: Path, home: Path) -> None:
    result = run_cli(["--use-defaults", "validate", str(document)], home)
    assert result.returncode == 0
    assert "4 nodes" in result.stdout

# -----------------------------------------------------------------------------
# Mutations and persistence
# -----------------------------------------------------------------------------

def test_add_folder_rewrites_document(document: Path, home: Path) -> None:
    result = run_cli(["--use-defaults", "--json", "add-folder", str(document), "archive", "--parent", "docs"], home)

    assert result.returncode == 0, result.stderr
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    assert payload["changed"] is True
    assert payload["savedTo"] == str(document)

    saved = _read(document)
    created = next(n for n in saved["nodes"] if n["id"] == payload["id"])
    assert created["parentId"] == "docs"
    assert created["path"] == "/docs/archive"


def test_dry_run_leaves_document_untouched(document: Path, home: Path) -> None:
    before = document.read_text(encoding="utf-8")

    result = run_cli(["--use-defaults", "--dry-run", "remove", str(document), "docs"], home)

    assert result.returncode == 0, result.stderr
    assert "Dry run" in result.stdout
    assert document.read_text(encoding="utf-8") == before


def test_output_goes_to_other_file(document: Path, home: Path, tmp_path: Path) -> None:
    out = tmp_path / "out" / "moved.json"
    before = document.read_text(encoding="utf-8")

    result = run_cli(["--use-defaults", "-o", str(out), "move", str(document), "readme", "--to", "docs"], home)

    assert result.returncode == 0, result.stderr
    assert document.read_text(encoding="utf-8") == before
    moved = next(n for n in _read(out)["nodes"] if n["id"] == "readme")
    assert moved["parentId"] == "docs"


def test_import_payload(document: Path, home: Path, tmp_path: Path) -> None:
    payload = tmp_path / "payload.json"
    payload.write_text(json.dumps([
        {"id": "x", "name": "pics", "type": "folder", "children": ["y"]},
        {"id": "y", "name": "p.png", "type": "file", "parentId": "x"},
    ]), encoding="utf-8")

    result = run_cli(["--use-defaults", "--json", "import", str(document), str(payload), "--into", "docs"], home)

    assert result.returncode == 0, result.stderr
    inserted = json.loads(result.stdout)["inserted"]
    assert len(inserted) == 2
    assert "x" not in inserted
    assert "pics" in _names(_read(document))


def test_home_relative_document_path(document: Path, home: Path) -> None:
    target = home / "tree.json"
    target.write_text(document.read_text(encoding="utf-8"), encoding="utf-8")

    result = run_cli(["--use-defaults", "--json", "rename", "~/tree.json", "a", "b.txt"], home)

    assert result.returncode == 0, result.stderr
    assert json.loads(result.stdout)["savedTo"] == str(target)
    assert "b.txt" in _names(_read(target))


def test_recent_documents_are_remembered(document: Path, home: Path) -> None:
    result = run_cli(["rename", str(document), "a", "b.txt"], home)

    assert result.returncode == 0, result.stderr
    config = _read(home / ".treesync" / "config.json")
    assert config["recent_documents"] == [str(document)]
    assert "b.txt" in _names(_read(document))

# -----------------------------------------------------------------------------
# Failures
# -----------------------------------------------------------------------------

def test_rejected_operation_exits_with_1(document: Path, home: Path) -> None:
    before = document.read_text(encoding="utf-8")

    result = run_cli(["--use-defaults", "move", str(document), "docs", "--to", "docs"], home)

    assert result.returncode == 1
    assert "ERROR" in result.stderr
    assert document.read_text(encoding="utf-8") == before


def test_invalid_name_rejected(document: Path, home: Path) -> None:
    result = run_cli(["--use-defaults", "rename", str(document), "a", "bad/name"], home)
    assert result.returncode == 1
    assert "invalid characters" in result.stderr


def test_missing_document_exits_with_2(tmp_path: Path, home: Path) -> None:
    result = run_cli(["--use-defaults", "show", str(tmp_path / "nope.json")], home)
    assert result.returncode == 2
    assert "ERROR" in result.stderr


def test_malformed_document_exits_with_2(tmp_path: Path, home: Path) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"rootId": "root", "nodes": "x"}), encoding="utf-8")
    assert run_cli(["--use-defaults", "show", str(bad)], home).returncode == 2


def test_infinite_file_size_exits_with_2(tmp_path: Path, home: Path) -> None:
    bad = tmp_path / "inf.json"
    bad.write_text(
        '{"rootId": "root", "nodes": ['
        '{"id": "root", "name": "root", "type": "folder"},'
        '{"id": "f", "name": "f.bin", "type": "file", "parentId": "root", "fileSize": 1e400}]}',
        encoding="utf-8",
    )
    result = run_cli(["--use-defaults", "show", str(bad)], home)
    assert result.returncode == 2
    assert "Traceback" not in result.stderr


def test_no_command_prints_help(home: Path) -> None:
    result = run_cli(["--use-defaults"], home)
    assert result.returncode == 2
    assert "usage" in result.stderr.lower()


def test_dump_config_applies_overrides(home: Path) -> None:
    result = run_cli(["--use-defaults", "--dump-config", "--max-name-length", "99"], home)

    assert result.returncode == 0, result.stderr
    settings = json.loads(result.stdout)
    assert settings["max_name_length"] == 99
    assert settings["debounce_ms"] == 50
