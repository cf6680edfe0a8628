from __future__ import annotations

"""
Command Line Interface (CLI) Application Controller.

Orchestrates the CLI lifecycle: logging bootstrap, settings resolution
(defaults or persisted state, plus command-line overrides), loading the
tree document into a session, running one tree operation, and writing the
result back unless a dry run was requested.

Exit codes: 0 success, 1 operation rejected, 2 unreadable input.
"""

import argparse
import json
import sys
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from treesync.core.render.adapter import RenderAdapter
from treesync.core.search.index import SearchIndex
from treesync.core.services.session import TreeSession
from treesync.core.services.settings_validator import validate_settings
from treesync.domain import constants as const
from treesync.domain.config import TreeFeatures, get_default_settings, load_settings, remember_document
from treesync.domain.drag_models import DataTransfer, DragTarget, DropPosition
from treesync.domain.errors import TreeError
from treesync.infra.fs import normalize_path
from treesync.infra.logging import LoggingConfig, configure_logging, get_logger
from treesync.interface.cli import args as cli_args
from treesync.interface.cli.document import DocumentError, document_to_dict, load_document, save_document
from treesync.utils.i18n import i18n

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_BAD_INPUT = 2

# Every capability on: the CLI is a trusted local editor
CLI_FEATURES = TreeFeatures(foreign_drag=True, accept_drops=True, external_file_drop=False)


@dataclass
class CommandResult:
    """Outcome of one sub-command, rendered as text or JSON."""
    lines: List[str] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)
    changed: bool = False
    ok: bool = True

# -----------------------------------------------------------------------------
# ENTRYPOINT ORCHESTRATOR
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """
    Execute the CLI workflow.

    Args:
        argv: Command line arguments; sys.argv[1:] when None.

    Returns:
        int: Process exit code.
    """
    parser = cli_args.build_parser()
    args = parser.parse_args(argv)

    # 1. Logging bootstrap (stderr, optional rotating file)
    configure_logging(LoggingConfig.for_cli(debug=args.debug, log_file=args.log_file), force=True)
    logger.debug("CLI execution initiated. Resolving settings...")

    # 2. Settings: defaults or persisted state, then CLI overrides
    base = get_default_settings() if args.use_defaults else load_settings()
    base.update(cli_args.args_to_overrides(args))
    settings, warnings = validate_settings(base, strict=False)
    for w in warnings:
        logger.warning(f"Settings correction: {w}")
    if settings["locale"] != i18n.locale:
        i18n.load_locale(settings["locale"])

    if args.dump_config:
        print(json.dumps(settings, ensure_ascii=False, indent=2))
        return EXIT_OK
    if not args.command:
        parser.print_help(sys.stderr)
        return EXIT_BAD_INPUT

    # 3. Document loading
    args.document = normalize_path(args.document, fallback=".")
    if args.output_path:
        args.output_path = normalize_path(args.output_path, fallback=args.document)
    try:
        document = load_document(args.document)
        session = TreeSession(
            document.tree_id,
            document.root_id,
            document.nodes,
            features=CLI_FEATURES,
            settings=settings,
        )
    except (DocumentError, TreeError) as e:
        _fail(i18n.t("cli.errors.document_invalid", error=str(e)))
        return EXIT_BAD_INPUT

    # 4. Operation
    handler = _COMMANDS[args.command]
    try:
        result = handler(session, args)
    except DocumentError as e:
        _fail(i18n.t("cli.errors.document_invalid", error=str(e)))
        return EXIT_BAD_INPUT
    except (TreeError, ValueError) as e:
        _fail(i18n.t("cli.errors.rejected", reason=str(e)))
        return EXIT_REJECTED

    # 5. Persistence
    saved_to: Optional[str] = None
    if result.changed and not args.dry_run:
        saved_to = args.output_path or args.document
        try:
            save_document(saved_to, session.store)
        except OSError as e:
            _fail(str(e))
            return EXIT_REJECTED
        if not args.use_defaults:
            remember_document(saved_to)
    session.dispose()

    # 6. Rendering
    if args.json_output:
        payload = {"command": args.command, "ok": result.ok, "changed": result.changed, "savedTo": saved_to}
        payload.update(result.data)
        print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
    else:
        for line in result.lines:
            print(line)
        if saved_to:
            print(i18n.t("cli.status.saved", path=saved_to))
        elif result.changed:
            print(i18n.t("cli.status.dry_run"))

    return EXIT_OK if result.ok else EXIT_REJECTED

# -----------------------------------------------------------------------------
# COMMAND HANDLERS
# -----------------------------------------------------------------------------

def _cmd_show(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    if not args.collapsed:
        session.expand_all()
    session.flush()
    rows = session.rows
    return CommandResult(
        lines=session.adapter.render_lines(show_ids=args.ids),
        data={"rows": [asdict(r) for r in rows]},
    )


def _cmd_search(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    index = SearchIndex(session.store, tuple(args.fields or ("name",)))
    adapter = RenderAdapter(session.store, search=index)
    adapter.set_search_query(args.query)
    adapter.rebuild()

    matches = sorted(index.search(args.query)) if args.query.strip() else []
    lines = adapter.render_lines(show_ids=args.ids)
    lines.append(i18n.t("cli.status.matches", count=len(matches)))
    return CommandResult(lines=lines, data={"query": args.query, "matches": matches, "count": len(matches)})


def _cmd_validate(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    report = session.store.integrity_report
    if report.ok:
        lines = [i18n.t("cli.status.valid", count=len(session.store))]
    else:
        lines = [i18n.t("cli.status.invalid", count=len(report.problems))]
        lines.extend(f"  - {p}" for p in report.problems)
    return CommandResult(lines=lines, data={"problems": list(report.problems)}, ok=report.ok)


def _cmd_export(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    document = document_to_dict(session.store)
    if args.export_format == "text":
        session.expand_all()
        session.flush()
        lines = session.adapter.render_lines()
    else:
        lines = [json.dumps(document, ensure_ascii=False, indent=2)]
    # Writing only happens when an explicit destination is given
    return CommandResult(lines=lines, data={"document": document}, changed=bool(args.output_path))


def _cmd_add_folder(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    parent = args.parent or session.store.root_id
    node_id = session.add_folder(args.name, parent, node_id=args.node_id)
    return CommandResult([i18n.t("cli.status.created", node_id=node_id)], {"id": node_id}, changed=True)


def _cmd_add_file(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    parent = args.parent or session.store.root_id
    overrides: Dict[str, Any] = {}
    if args.mime_type:
        overrides["mime_type"] = args.mime_type
    if args.file_size is not None:
        overrides["file_size"] = args.file_size
    node_id = session.add_file(args.name, parent, overrides, node_id=args.node_id)
    return CommandResult([i18n.t("cli.status.created", node_id=node_id)], {"id": node_id}, changed=True)


def _cmd_move(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    outcome = session.move_items(args.ids, args.target, args.index)
    line = i18n.t(
        "cli.status.moved",
        kind=outcome.kind.value,
        count=len(outcome.ids),
        parent_id=outcome.parent_id,
    )
    return CommandResult([line], {"outcome": asdict(outcome)}, changed=outcome.changed)


def _cmd_rename(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    before = session.store.version
    session.rename_item(args.node_id, args.name)
    return CommandResult(data={"id": args.node_id, "name": args.name}, changed=session.store.version != before)


def _cmd_remove(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    removed = session.remove_items(args.ids)
    return CommandResult(
        [i18n.t("cli.status.removed", count=len(removed))],
        {"removed": removed},
        changed=bool(removed),
    )


def _cmd_duplicate(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    copies = session.duplicate_items(args.ids)
    return CommandResult(
        [i18n.t("cli.status.created", node_id=c) for c in copies],
        {"copies": copies},
        changed=bool(copies),
    )


def _cmd_clear(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    removed = session.clear_folder(args.folder_id)
    return CommandResult(
        [i18n.t("cli.status.removed", count=len(removed))],
        {"removed": removed},
        changed=bool(removed),
    )


def _cmd_import(session: TreeSession, args: argparse.Namespace) -> CommandResult:
    try:
        with open(args.payload, "r", encoding="utf-8") as f:
            payload = f.read()
    except OSError as e:
        raise DocumentError(str(e)) from e

    parent = args.target or session.store.root_id
    target = DragTarget(parent, DropPosition.INSIDE)
    if args.index is not None:
        children = session.store.get_children(parent)
        if 0 <= args.index < len(children):
            target = DragTarget(children[args.index], DropPosition.BEFORE)

    transfer = DataTransfer(items={const.JSON_DRAG_FORMAT: payload})
    result = session.drop_foreign(transfer, target)
    line = i18n.t("cli.status.imported", count=result.count, parent_id=result.parent_id)
    return CommandResult([line], {"inserted": list(result.inserted_ids)}, changed=result.count > 0)


_COMMANDS: Dict[str, Callable[[TreeSession, argparse.Namespace], CommandResult]] = {
    "show": _cmd_show,
    "search": _cmd_search,
    "validate": _cmd_validate,
    "export": _cmd_export,
    "add-folder": _cmd_add_folder,
    "add-file": _cmd_add_file,
    "move": _cmd_move,
    "rename": _cmd_rename,
    "remove": _cmd_remove,
    "duplicate": _cmd_duplicate,
    "clear": _cmd_clear,
    "import": _cmd_import,
}

# -----------------------------------------------------------------------------
# HELPERS
# -----------------------------------------------------------------------------

def _fail(message: str) -> None:
    logger.error(message)
    print(f"ERROR: {message}", file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
