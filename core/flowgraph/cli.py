"""
Command-line interface for Flowgraph.

Usage:
    flowgraph validate my-flow.json
    flowgraph info my-flow.json
    flowgraph catalog
    flowgraph run my-flow.json --decide true
    flowgraph run my-flow.json --decide ask --json

Workflow files are the JSON documents written by ``WorkflowStorage``
(``export_workflow``) or by the browser editor. ``run`` uses the simulated
step executor; nothing is sent anywhere.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from flowgraph.config import FlowgraphConfig
from flowgraph.graph.catalog import (
    DEFAULT_CATALOG,
    NodeCategory,
    get_nodes_by_category,
    is_trigger,
)
from flowgraph.graph.decision import (
    DecisionPrompt,
    DecisionProvider,
    RandomDecisionProvider,
    StaticDecisionProvider,
)
from flowgraph.graph.executor import InvalidWorkflowError, WorkflowExecutor
from flowgraph.graph.step import SimulatedStepExecutor
from flowgraph.graph.workflow import WorkflowGraph
from flowgraph.observability import configure_logging
from flowgraph.storage.workflow_store import SavedWorkflow, StorageError, WorkflowStorage


class ConsoleDecisionProvider:
    """Asks on the terminal which way each condition goes."""

    def __init__(self, stream=None):
        self._stream = stream or sys.stdout

    async def decide(self, prompt: DecisionPrompt) -> bool:
        question = f"{prompt.title}: {prompt.message} [t]rue / [f]alse: "
        while True:
            answer = await asyncio.to_thread(input, question)
            answer = answer.strip().lower()
            if answer in ("t", "true", "y", "yes", "pass"):
                return True
            if answer in ("f", "false", "n", "no", "fail"):
                return False
            print("Please answer 't' or 'f'.", file=self._stream)


def _decision_provider(mode: str) -> DecisionProvider:
    if mode == "true":
        return StaticDecisionProvider(True)
    if mode == "false":
        return StaticDecisionProvider(False)
    if mode == "ask":
        return ConsoleDecisionProvider()
    return RandomDecisionProvider()


def _load(path: str) -> tuple[SavedWorkflow, WorkflowGraph] | None:
    try:
        saved = WorkflowStorage.import_workflow(Path(path))
    except StorageError as e:
        print(f"Error: {e}: {path}", file=sys.stderr)
        return None
    return saved, saved.to_graph()


def cmd_validate(args: argparse.Namespace) -> int:
    loaded = _load(args.file)
    if loaded is None:
        return 1
    saved, graph = loaded

    errors = graph.validation_errors()
    if args.json:
        print(json.dumps({"name": saved.name, "valid": not errors, "errors": errors}, indent=2))
        return 0 if not errors else 1

    if errors:
        print(f"✗ {saved.name} is not runnable:")
        for problem in errors:
            print(f"  - {problem}")
        return 1

    print(f"✓ {saved.name} is runnable")
    if not graph.has_trigger_node:
        print("  warning: no trigger node")
    if graph.has_unconnected_nodes:
        print("  warning: some nodes are not connected")
    if graph.has_pending_config:
        print("  warning: some nodes are missing required configuration")
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    loaded = _load(args.file)
    if loaded is None:
        return 1
    saved, graph = loaded

    if args.json:
        info = {
            "name": saved.name,
            "version": saved.version,
            "nodes": [
                {"id": n.id, "type": n.type, "label": n.label} for n in graph.nodes
            ],
            "edges": [e.model_dump(mode="json") for e in graph.edges],
            "runnable": graph.is_valid_workflow,
        }
        print(json.dumps(info, indent=2))
        return 0

    print(f"Workflow: {saved.name} (format {saved.version})")
    print(f"Updated:  {saved.updated_at}")
    print(f"Nodes ({len(graph.nodes)}):")
    for node in graph.nodes:
        definition = DEFAULT_CATALOG.lookup(node.type)
        marker = "▶" if is_trigger(DEFAULT_CATALOG, node.type) else " "
        complete = definition is None or definition.is_config_complete(
            graph.get_node_config(node.id)
        )
        suffix = "" if complete else "  (incomplete config)"
        print(f"  {marker} {node.id}: {node.display_name} [{node.type}]{suffix}")
    print(f"Edges ({len(graph.edges)}):")
    for edge in graph.edges:
        print(f"    {edge.source} -> {edge.target} ({edge.branch})")
    print(f"Runnable: {'yes' if graph.is_valid_workflow else 'no'}")
    return 0


def cmd_catalog(args: argparse.Namespace) -> int:
    if args.json:
        listing = {
            category.value: [
                definition.model_dump(mode="json") for definition in get_nodes_by_category(category)
            ]
            for category in NodeCategory
        }
        print(json.dumps(listing, indent=2))
        return 0

    for category in NodeCategory:
        print(f"{category.value.title()}:")
        for definition in get_nodes_by_category(category):
            required = ", ".join(definition.required_fields) or "-"
            print(f"  {definition.type:<16} {definition.label}  (required: {required})")
    return 0


async def _execute(graph: WorkflowGraph, mode: str):
    config = FlowgraphConfig()
    executor = WorkflowExecutor(
        step_executor=SimulatedStepExecutor(max_delay=config.max_simulated_delay),
        decision_provider=_decision_provider(mode),
        config=config,
    )
    result = await executor.start(graph)
    return executor, result


def cmd_run(args: argparse.Namespace) -> int:
    loaded = _load(args.file)
    if loaded is None:
        return 1
    saved, graph = loaded

    try:
        executor, result = asyncio.run(_execute(graph, args.decide))
    except InvalidWorkflowError as e:
        print(f"✗ {saved.name} is not runnable:", file=sys.stderr)
        for problem in e.errors:
            print(f"  - {problem}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130

    if args.json:
        output = {
            "name": saved.name,
            "run_id": result.run_id,
            "success": result.success,
            "path": result.path,
            "failed_nodes": result.failed_nodes,
            "skipped_nodes": result.skipped_nodes,
            "decisions": result.decisions,
            "log": executor.log.to_dicts(),
        }
        print(json.dumps(output, indent=2, default=str))
    else:
        print(f"Run {result.run_id} of {saved.name}")
        for entry in executor.log:
            stamp = entry.timestamp.strftime("%H:%M:%S")
            print(f"  {stamp} {entry.status:<8} {entry.node_name}: {entry.message}")
        outcome = "✓ completed" if result.success else "✗ completed with failures"
        print(f"{outcome}: {len(result.path)} executed, {len(result.skipped_nodes)} skipped")

    return 0 if result.success else 1


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="flowgraph",
        description="Flowgraph - validate and run branching automation workflows",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for engine messages (written to stderr)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="Check a workflow is runnable")
    validate_parser.add_argument("file", help="Workflow JSON file")
    validate_parser.add_argument("--json", action="store_true", help="Output as JSON")
    validate_parser.set_defaults(func=cmd_validate)

    info_parser = subparsers.add_parser("info", help="Show workflow details")
    info_parser.add_argument("file", help="Workflow JSON file")
    info_parser.add_argument("--json", action="store_true", help="Output as JSON")
    info_parser.set_defaults(func=cmd_info)

    catalog_parser = subparsers.add_parser("catalog", help="List available node types")
    catalog_parser.add_argument("--json", action="store_true", help="Output as JSON")
    catalog_parser.set_defaults(func=cmd_catalog)

    run_parser = subparsers.add_parser("run", help="Run a workflow with simulated steps")
    run_parser.add_argument("file", help="Workflow JSON file")
    run_parser.add_argument(
        "--decide",
        choices=["true", "false", "random", "ask"],
        default="random",
        help="How condition nodes choose a branch (default: random)",
    )
    run_parser.add_argument("--json", action="store_true", help="Output as JSON")
    run_parser.set_defaults(func=cmd_run)

    args = parser.parse_args(argv)
    configure_logging(level=args.log_level)

    if hasattr(args, "func"):
        sys.exit(args.func(args))


if __name__ == "__main__":
    main()
