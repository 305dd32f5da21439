"""CLI entrypoint for the workflow draft builder.

Every command prints one JSON envelope on stdout and returns an exit code
derived from the error code on failure.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import ValidationError

from workflow_builder import __version__
from workflow_builder.builder.errors import BuilderError, ErrorCodes
from workflow_builder.builder.models import TERMINAL_STATES, SessionState
from workflow_builder.builder.service import BuilderService
from workflow_builder.builder.store import SessionStore
from workflow_builder.cli import output
from workflow_builder.cli.config import BuilderSettings
from workflow_builder.cli.logging import configure_logging

logger = logging.getLogger(__name__)


def _parse_json_object(value: str, *, flag: str) -> dict[str, Any]:
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as e:
        raise BuilderError(
            ErrorCodes.INVALID_INPUT,
            f"{flag} is not valid JSON: {e.msg}",
            details={"flag": flag, "position": e.pos},
            hint=f"Quote the value, e.g. {flag} '{{\"key\": \"value\"}}'",
        ) from e
    if not isinstance(parsed, dict):
        raise BuilderError(
            ErrorCodes.INVALID_INPUT,
            f"{flag} must be a JSON object",
            details={"flag": flag},
            hint=f"Pass an object, e.g. {flag} '{{\"key\": \"value\"}}'",
        )
    return parsed


def _parse_ids(value: str | None) -> list[str]:
    if value is None:
        return []
    return [p.strip() for p in value.split(",") if p.strip()]


def _node_data_from_args(args: argparse.Namespace) -> dict[str, Any]:
    if args.json is not None:
        return _parse_json_object(args.json, flag="--json")
    if args.id is None:
        raise BuilderError(
            ErrorCodes.INVALID_INPUT,
            "A node needs an id",
            hint="Pass `--id <id>` or a full node with `--json`",
        )
    node: dict[str, Any] = {"id": args.id, "dependsOn": _parse_ids(args.depends_on)}
    if args.type is not None:
        node["type"] = args.type
    if args.data is not None:
        node["data"] = _parse_json_object(args.data, flag="--data")
    return node


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflow-builder",
        description="Build, validate and commit workflow drafts locally",
    )
    parser.add_argument(
        "--version", action="version", version=f"workflow-builder {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    start = subparsers.add_parser("start", help="Start a new draft session")
    start.add_argument("--name", required=True, help="Workflow name")
    start.add_argument("--description", default=None, help="Workflow description")
    start.add_argument(
        "--force",
        action="store_true",
        help="Abort the open session (if any) and start a new one",
    )

    subparsers.add_parser("status", help="Summarize the current session")
    subparsers.add_parser("show", help="Print the full current session record")
    subparsers.add_parser("list", help="List all sessions, most recently updated first")

    add_node = subparsers.add_parser("add-node", help="Add a node to the draft")
    add_node.add_argument(
        "--json",
        default=None,
        help='Full node as JSON, e.g. \'{"id": "n1", "type": "task", "dependsOn": []}\'',
    )
    add_node.add_argument("--id", default=None, help="Node id (ignored with --json)")
    add_node.add_argument("--type", default=None, help="Node type (ignored with --json)")
    add_node.add_argument("--data", default=None, help="Node data as a JSON object")
    add_node.add_argument(
        "--depends-on",
        default=None,
        help="Comma-separated predecessor ids, e.g. 'n1,n2'",
    )

    update_node = subparsers.add_parser("update-node", help="Patch an existing node")
    update_node.add_argument("--id", required=True, help="Node id")
    update_node.add_argument(
        "--patch",
        required=True,
        help='Fields to merge as JSON, e.g. \'{"type": "llm"}\' (the id never changes)',
    )

    remove_node = subparsers.add_parser("remove-node", help="Remove a node and its edges")
    remove_node.add_argument("--id", required=True, help="Node id")

    for command, help_text in (
        ("connect", "Make --to depend on --from"),
        ("disconnect", "Remove the dependency of --to on --from"),
    ):
        edge = subparsers.add_parser(command, help=help_text)
        edge.add_argument("--from", dest="from_id", required=True, help="Predecessor node id")
        edge.add_argument("--to", dest="to_id", required=True, help="Dependent node id")

    subparsers.add_parser("validate", help="Check references and cycles in the draft")
    subparsers.add_parser("commit", help="Finalize a validated draft")
    subparsers.add_parser("abort", help="Abandon the current draft")

    prune = subparsers.add_parser("prune", help="Delete committed/aborted session files")
    prune.add_argument(
        "--state",
        dest="states",
        action="append",
        choices=sorted(s.value for s in TERMINAL_STATES),
        default=None,
        help="Only prune sessions in this state (repeatable; default: both)",
    )
    prune.add_argument(
        "--older-than-days",
        type=float,
        default=None,
        help="Only prune sessions last updated more than this many days ago",
    )

    return parser


def run_command(service: BuilderService, args: argparse.Namespace) -> int:
    command = args.command

    if command == "start":
        session = service.start(args.name, args.description, force=args.force)
        return output.ok("builder.start", session.to_json())

    if command == "status":
        return output.ok("builder.status", service.status().to_json())

    if command == "show":
        return output.ok("builder.show", service.show().to_json())

    if command == "list":
        sessions = [s.to_json() for s in service.list_sessions()]
        return output.ok("builder.list", {"sessions": sessions})

    if command == "add-node":
        result = service.add_node(_node_data_from_args(args))
        return output.ok("builder.node.add", result.to_json())

    if command == "update-node":
        patch = _parse_json_object(args.patch, flag="--patch")
        result = service.update_node(args.id, patch)
        return output.ok("builder.node.update", result.to_json())

    if command == "remove-node":
        return output.ok("builder.node.remove", service.remove_node(args.id).to_json())

    if command == "connect":
        result = service.connect(args.from_id, args.to_id)
        return output.ok("builder.connect", result.to_json())

    if command == "disconnect":
        result = service.disconnect(args.from_id, args.to_id)
        return output.ok("builder.disconnect", result.to_json())

    if command == "validate":
        return output.ok("builder.validate", service.validate().to_json())

    if command == "commit":
        return output.ok("builder.commit", service.commit().to_json())

    if command == "abort":
        session = service.abort()
        return output.ok("builder.abort", {"sessionId": session.id, "state": session.state.value})

    if command == "prune":
        states = (
            [SessionState(s) for s in args.states] if args.states else list(TERMINAL_STATES)
        )
        older_than = None
        if args.older_than_days is not None:
            older_than = datetime.now(UTC) - timedelta(days=args.older_than_days)
        pruned = service.prune(states=states, older_than=older_than)
        return output.ok("builder.prune", {"pruned": pruned})

    logger.error("Unknown command", extra={"command": command})
    return 2


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = BuilderSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment or .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    service = BuilderService(SessionStore(settings.builder_dir))
    try:
        return run_command(service, args)

    except BuilderError as e:
        logger.info("Command rejected", extra={"command": args.command, "code": e.code})
        return output.fail(e)

    except Exception as e:
        logger.exception("Command failed", extra={"command": args.command})
        return output.fail(
            BuilderError(
                ErrorCodes.INTERNAL_ERROR,
                f"Unexpected error: {e}",
                hint="Re-run with LOG_LEVEL=DEBUG for details",
            )
        )


if __name__ == "__main__":
    raise SystemExit(main())
