from __future__ import annotations

"""
CLI Argument Definition and Mapping.

Defines the command-line schema (global flags plus one sub-command per tree
operation) and translates the parsed namespace into settings overrides.
"""

import argparse
from typing import Any, Dict

from treesync.utils.i18n import i18n

SEARCH_FIELDS = ("name", "extension", "mime_type")

# -----------------------------------------------------------------------------
# ARGUMENT DEFINITION
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """
    Construct the argument parser for the treesync CLI.

    Returns:
        argparse.ArgumentParser: Configured parser instance.
    """
    p = argparse.ArgumentParser(
        prog="treesync",
        description=i18n.t("app.description"),
    )

    # --- Output and Safety ---
    p.add_argument(
        "-o", "--output",
        dest="output_path",
        default=None,
        help="Write the resulting document here instead of over the input.",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Apply the operation in memory only.",
    )
    p.add_argument(
        "--json",
        dest="json_output",
        action="store_true",
        help="Print machine-readable results.",
    )

    # --- Configuration and Diagnostics ---
    p.add_argument(
        "--use-defaults",
        action="store_true",
        help="Ignore persisted settings.",
    )
    p.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the effective settings and exit.",
    )
    p.add_argument(
        "--max-name-length",
        dest="max_name_length",
        type=int,
        default=None,
        help="Override the maximum length of item names.",
    )
    p.add_argument(
        "--locale",
        default=None,
        help="Language of messages (e.g. 'en').",
    )
    p.add_argument(
        "--log-file",
        dest="log_file",
        default=None,
        help="Also write diagnostics to this rotating log file.",
    )
    p.add_argument(
        "--debug",
        action="store_true",
        help="Elevate logging verbosity to DEBUG.",
    )

    sub = p.add_subparsers(dest="command", metavar="COMMAND")

    # --- Inspection ---
    show = sub.add_parser("show", help="Render the tree.")
    _document_arg(show)
    show.add_argument("--ids", action="store_true", help="Show item ids.")
    show.add_argument("--collapsed", action="store_true", help="Only show top-level items.")

    search = sub.add_parser("search", help="Show items matching a query with their ancestors.")
    _document_arg(search)
    search.add_argument("query")
    search.add_argument(
        "--field",
        dest="fields",
        action="append",
        choices=SEARCH_FIELDS,
        default=None,
        help="Field to match (repeatable, default: name).",
    )
    search.add_argument("--ids", action="store_true", help="Show item ids.")

    validate = sub.add_parser("validate", help="Check the structural consistency of a document.")
    _document_arg(validate)

    export = sub.add_parser("export", help="Print the normalized document.")
    _document_arg(export)
    export.add_argument(
        "--format",
        dest="export_format",
        choices=("json", "text"),
        default="json",
    )

    # --- Creation ---
    add_folder = sub.add_parser("add-folder", help="Create a folder.")
    _document_arg(add_folder)
    add_folder.add_argument("name")
    add_folder.add_argument("--parent", default=None, help="Parent folder id (default: root).")
    add_folder.add_argument("--id", dest="node_id", default=None, help="Use this id.")

    add_file = sub.add_parser("add-file", help="Create a file.")
    _document_arg(add_file)
    add_file.add_argument("name")
    add_file.add_argument("--parent", default=None, help="Parent folder id (default: root).")
    add_file.add_argument("--id", dest="node_id", default=None, help="Use this id.")
    add_file.add_argument("--mime-type", dest="mime_type", default=None)
    add_file.add_argument("--size", dest="file_size", type=int, default=None)

    # --- Structure ---
    move = sub.add_parser("move", help="Move items into a folder.")
    _document_arg(move)
    move.add_argument("ids", nargs="+")
    move.add_argument("--to", dest="target", required=True, help="Target folder id.")
    move.add_argument("--index", type=int, default=None, help="Insertion position.")

    rename = sub.add_parser("rename", help="Rename an item.")
    _document_arg(rename)
    rename.add_argument("node_id")
    rename.add_argument("name")

    remove = sub.add_parser("remove", help="Remove items and their contents.")
    _document_arg(remove)
    remove.add_argument("ids", nargs="+")

    duplicate = sub.add_parser("duplicate", help="Copy items next to the originals.")
    _document_arg(duplicate)
    duplicate.add_argument("ids", nargs="+")

    clear = sub.add_parser("clear", help="Remove everything inside a folder.")
    _document_arg(clear)
    clear.add_argument("folder_id")

    import_ = sub.add_parser("import", help="Drop a JSON node payload into a folder.")
    _document_arg(import_)
    import_.add_argument("payload", help="File holding a JSON array of nodes.")
    import_.add_argument("--into", dest="target", default=None, help="Target folder id (default: root).")
    import_.add_argument("--index", type=int, default=None, help="Insertion position.")

    return p

# -----------------------------------------------------------------------------
# ARGUMENT MAPPING
# -----------------------------------------------------------------------------

def args_to_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Translate the parsed arguments into settings overrides.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Dict[str, Any]: Only the settings explicitly given on the command line.
    """
    overrides: Dict[str, Any] = {}
    if args.max_name_length is not None:
        overrides["max_name_length"] = args.max_name_length
    if args.locale:
        overrides["locale"] = args.locale
    return overrides

# -----------------------------------------------------------------------------
# HELPERS
# -----------------------------------------------------------------------------

def _document_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("document", help="Tree document (JSON).")
