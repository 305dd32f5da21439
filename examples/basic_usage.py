#!/usr/bin/env python3
"""Programmatic draft building example.

This demonstrates using the builder components directly:

* load settings from `.env`
* start a draft session and add a small dependency graph
* validate and commit it, printing the finalized workflow

The session is persisted under `<config>/builder/` like any CLI session.
"""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence

from workflow_builder.builder.errors import BuilderError
from workflow_builder.builder.service import BuilderService
from workflow_builder.builder.store import SessionStore
from workflow_builder.cli.config import BuilderSettings
from workflow_builder.cli.logging import configure_logging


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a tiny workflow (programmatic example).")
    parser.add_argument("--name", default="example-workflow", help="Workflow name")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Abort any open session before starting",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = BuilderSettings()
    configure_logging(settings.log_level)

    service = BuilderService(SessionStore(settings.builder_dir))

    try:
        service.start(args.name, "Built by examples/basic_usage.py", force=args.force)
        service.add_node({"id": "fetch", "type": "http", "data": {"url": "https://example.com"}})
        service.add_node({"id": "summarize", "type": "llm", "dependsOn": ["fetch"]})
        service.add_node({"id": "notify", "type": "email"})
        service.connect("summarize", "notify")

        report = service.validate()
        if not report.ok:
            print(json.dumps(report.to_json(), indent=2))
            return 3

        result = service.commit()
    except BuilderError as exc:
        print(json.dumps(exc.to_json(), indent=2))
        return 1

    print(json.dumps(result.to_json(), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
