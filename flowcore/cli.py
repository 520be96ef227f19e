"""
Command-line interface for flowcore.

Usage:
    flowcore validate graph.json
    flowcore heal graph.json -o healed.json
    flowcore run graph.json --input '{"key": "value"}' --heal --store runs/
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from flowcore.config import RuntimeConfig
from flowcore.errors import StructuralError
from flowcore.graph.edge import GraphSpec
from flowcore.graph.executor import GraphExecutor
from flowcore.graph.healer import heal
from flowcore.graph.validator import validate_graph
from flowcore.observability.logging import configure_logging
from flowcore.storage.run_store import FileRunStore


def _load_graph(path: str) -> GraphSpec:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return GraphSpec.from_dict(data)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_validate(args: argparse.Namespace) -> int:
    """Report every validation finding; exit 1 on any error."""
    graph = _load_graph(args.graph)
    report = validate_graph(graph)

    for finding in report.findings:
        location = f" (node {finding.node_id})" if finding.node_id else ""
        print(f"{finding}{location}")

    if report.is_valid:
        print(f"✓ Graph '{graph.id}' is valid ({len(report.warnings)} warning(s))")
        return 0
    print(f"✗ Graph '{graph.id}' has {len(report.errors)} error(s)", file=sys.stderr)
    return 1


def cmd_heal(args: argparse.Namespace) -> int:
    """Heal a graph and write it out."""
    graph = _load_graph(args.graph)
    try:
        result = heal(graph)
    except StructuralError as e:
        print(f"✗ Could not heal graph: {e}", file=sys.stderr)
        return 1

    for fix in result.fixes:
        print(f"• {fix}", file=sys.stderr)
    for warning in result.warnings:
        print(f"{warning}", file=sys.stderr)
    print(f"Status: {result.status}", file=sys.stderr)

    healed = result.graph.to_dict()
    if args.output:
        Path(args.output).write_text(json.dumps(healed, indent=2), encoding="utf-8")
        print(f"Healed graph written to {args.output}", file=sys.stderr)
    else:
        _print_json(healed)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Execute a graph once and print the outcome."""
    graph = _load_graph(args.graph)

    trigger_input: Any = {}
    if args.input:
        try:
            trigger_input = json.loads(args.input)
        except json.JSONDecodeError as e:
            print(f"✗ --input is not valid JSON: {e}", file=sys.stderr)
            return 1

    try:
        if args.heal:
            graph = heal(graph).graph
        config = RuntimeConfig()
        recorder = FileRunStore(Path(args.store)) if args.store else None
        executor = GraphExecutor(recorder=recorder, config=config)
        result = asyncio.run(executor.execute(graph, trigger_input))
    except StructuralError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    _print_json(
        {
            "run_id": result.run_id,
            "status": result.status,
            "final_output": result.final_output,
            "error": result.error,
            "failed_node_id": result.failed_node_id,
            "path": result.path,
        }
    )
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowcore",
        description="flowcore - validate, heal and run workflow graphs",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default from config)")
    parser.add_argument(
        "--log-format",
        choices=["auto", "json", "human"],
        default=None,
        help="Log output format (default from config)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="Validate a graph")
    validate_parser.add_argument("graph", help="Path to the graph JSON file")
    validate_parser.set_defaults(func=cmd_validate)

    heal_parser = subparsers.add_parser("heal", help="Repair a graph")
    heal_parser.add_argument("graph", help="Path to the graph JSON file")
    heal_parser.add_argument("-o", "--output", help="Write the healed graph here")
    heal_parser.set_defaults(func=cmd_heal)

    run_parser = subparsers.add_parser("run", help="Execute a graph once")
    run_parser.add_argument("graph", help="Path to the graph JSON file")
    run_parser.add_argument("--input", help="Trigger input as JSON")
    run_parser.add_argument("--heal", action="store_true", help="Heal the graph first")
    run_parser.add_argument("--store", help="Directory to persist the run record in")
    run_parser.set_defaults(func=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = RuntimeConfig()
    configure_logging(
        level=args.log_level or config.log_level,
        format=args.log_format or config.log_format,
    )

    try:
        code = args.func(args)
    except (OSError, ValueError) as e:
        print(f"✗ {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
