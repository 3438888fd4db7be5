"""Command-line interface for walking flow documents."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import find_folder, github_token, load_catalog_folders, load_env_file
from .graph.checks import GraphIssue, check_graph
from .graph.document import load_document, save_document
from .graph.model import FlowGraph, MultiChoiceStep, TerminalStep, choices_of
from .sources.catalog import CatalogClient
from .sources.fetch import FetchError, fetch_document
from .traversal.engine import Action, TraversalEngine, replay
from .traversal.errors import FlowError
from .traversal.state import TraversalState

logger = logging.getLogger("flowwalk")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    load_env_file()

    if not args.command:
        parser.print_help()
        return 1

    try:
        return args.handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 1
    except (FlowError, FetchError, ValueError, OSError) as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}")
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowwalk", description="Walk branching decision flows"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )
    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", help="Walk a flow interactively")
    run.add_argument("source", help="Flow document path or URL")
    run.add_argument("--start", default=None, help="Step id to start from")
    run.set_defaults(handler=cmd_run)

    inspect = subparsers.add_parser("inspect", help="Summarize a flow and report problems")
    inspect.add_argument("source", help="Flow document path or URL")
    inspect.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Output format",
    )
    inspect.set_defaults(handler=cmd_inspect)

    replay_cmd = subparsers.add_parser(
        "replay", help="Walk a flow with scripted actions"
    )
    replay_cmd.add_argument("source", help="Flow document path or URL")
    replay_cmd.add_argument(
        "actions",
        nargs="*",
        help="next | back | select:ID[,ID] | pick:ID[,ID] (select then continue)",
    )
    replay_cmd.add_argument("--start", default=None, help="Step id to start from")
    replay_cmd.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Output format",
    )
    replay_cmd.set_defaults(handler=cmd_replay)

    export = subparsers.add_parser("export", help="Write a flow document to a file")
    export.add_argument("source", help="Flow document path or URL")
    export.add_argument("dest", help="Destination file")
    export.set_defaults(handler=cmd_export)

    catalog = subparsers.add_parser("catalog", help="Browse catalog folders")
    catalog.add_argument("folder", nargs="?", help="Folder index, id or name")
    catalog.add_argument("file", nargs="?", help="File index or name to fetch")
    catalog.add_argument("--catalog", default=None, help="Catalog folders JSON file")
    catalog.add_argument("--save", default=None, help="Save the fetched document here")
    catalog.set_defaults(handler=cmd_catalog)

    return parser


def configure_logging(verbose: bool) -> None:
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def load_source(source: str, start_step_id: Optional[str] = None) -> FlowGraph:
    if source.startswith(("http://", "https://")):
        return fetch_document(source, start_step_id=start_step_id)
    return load_document(Path(source), start_step_id=start_step_id)


def cmd_run(args: argparse.Namespace) -> int:
    from .tui import run_tui

    graph = load_source(args.source)
    engine = TraversalEngine(graph)
    run_tui(engine, title=Path(args.source).name, start_step_id=args.start, debug=args.verbose)
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    graph = load_source(args.source)
    issues = check_graph(graph)
    if args.output == "json":
        print(json.dumps(inspection_to_dict(graph, issues), indent=2))
    else:
        render_inspection_text(graph, issues)
    return 1 if any(issue.severity == "error" for issue in issues) else 0


def cmd_replay(args: argparse.Namespace) -> int:
    graph = load_source(args.source)
    engine = TraversalEngine(graph)
    actions = parse_actions(args.actions)
    start = engine.start(args.start)

    try:
        states = replay(engine, actions, state=start)
        error: Optional[FlowError] = None
    except FlowError as exc:
        states = exc.states or [start]
        error = exc

    if args.output == "json":
        payload = state_to_dict(states[-1])
        payload["trail"] = [state.current_step_id for state in _moves(states)]
        if error is not None:
            payload["error"] = {"kind": type(error).__name__, "message": error.message}
        print(json.dumps(payload, indent=2))
    else:
        render_trail_text(engine, states)
        if error is not None:
            print(f"Stopped: {error.message}")
    return 1 if error is not None else 0


def cmd_export(args: argparse.Namespace) -> int:
    graph = load_source(args.source)
    save_document(graph, Path(args.dest))
    print(f"Saved {len(graph.steps)} steps to {args.dest}")
    return 0


def cmd_catalog(args: argparse.Namespace) -> int:
    folders = load_catalog_folders(Path(args.catalog) if args.catalog else None)
    if not args.folder:
        print("CATALOG FOLDERS")
        for idx, folder in enumerate(folders):
            print(f"{idx}: {folder.name} ({folder.owner}/{folder.repo}/{folder.path})")
        return 0

    folder = find_folder(folders, args.folder)
    client = CatalogClient(token=github_token())
    files = client.list_files(folder)
    if not args.file:
        print(folder.name.upper())
        if not files:
            print("No flow documents found.")
        for idx, file in enumerate(files):
            print(f"{idx}: {file.name}")
        return 0

    file = client.find_file(files, args.file)
    graph = client.load_file(file)
    if args.save:
        save_document(graph, Path(args.save))
        print(f"Saved {file.name} to {args.save}")
    else:
        render_inspection_text(graph, check_graph(graph))
    return 0


def parse_actions(tokens: List[str]) -> List[Action]:
    actions: List[Action] = []
    for token in tokens:
        name, _, rest = token.partition(":")
        choice_ids = tuple(part for part in rest.split(",") if part)
        if name in ("next", "continue", "restart"):
            actions.append(Action("advance"))
        elif name == "back":
            actions.append(Action("back"))
        elif name == "select":
            actions.append(Action("select", choice_ids))
        elif name == "pick":
            actions.append(Action("select", choice_ids))
            actions.append(Action("advance"))
        else:
            raise ValueError(f"Unknown action: {token}")
    return actions


def render_inspection_text(graph: FlowGraph, issues: List[GraphIssue]) -> None:
    print("STEPS")
    for step in graph.steps:
        marker = "*" if step.id == graph.start_step_id else " "
        print(f"{marker} {step.id} [{step.kind.name.lower()}] {step.label or step.content}")
        for choice in choices_of(step):
            print(f"    option {choice.id}: {choice.label}")
        if isinstance(step, MultiChoiceStep):
            for path in step.paths:
                requires = " + ".join(path.required_choice_ids) or "(any/else)"
                print(f"    path {path.id}: {path.label} <- {requires}")
        if isinstance(step, TerminalStep) and step.allow_restart:
            print("    can restart")
    print(f"\nCONNECTIONS: {len(graph.connections)}")
    for connection in graph.connections:
        outlet = f" via {connection.source_outlet_id}" if connection.source_outlet_id else ""
        print(f"  {connection.source} -> {connection.target}{outlet}")
    print("\nISSUES")
    if not issues:
        print("None")
    for issue in issues:
        print(f"  [{issue.severity}] {issue.step_id}: {issue.description}")


def render_trail_text(engine: TraversalEngine, states: List[TraversalState]) -> None:
    print("TRAIL")
    for idx, state in enumerate(_moves(states), start=1):
        step = engine.graph.get_step(state.current_step_id)
        title = (step.label or step.content) if step else "?"
        print(f"{idx:02d}. {state.current_step_id}: {title}")
    final = states[-1]
    if final.selections:
        print(f"Selected: {', '.join(sorted(final.selections))}")


def inspection_to_dict(graph: FlowGraph, issues: List[GraphIssue]) -> Dict[str, Any]:
    return {
        "start_step_id": graph.start_step_id,
        "steps": [
            {"id": step.id, "kind": step.kind.value, "label": step.label}
            for step in graph.steps
        ],
        "connections": len(graph.connections),
        "issues": [
            {
                "kind": issue.kind,
                "step_id": issue.step_id,
                "description": issue.description,
                "severity": issue.severity,
            }
            for issue in issues
        ],
    }


def state_to_dict(state: TraversalState) -> Dict[str, Any]:
    return {
        "current_step_id": state.current_step_id,
        "start_step_id": state.start_step_id,
        "selections": sorted(state.selections),
        "history": list(state.history),
    }


def _moves(states: List[TraversalState]) -> List[TraversalState]:
    """Drop consecutive states that stayed on the same step (selection changes)."""
    moves: List[TraversalState] = []
    for state in states:
        previous = moves[-1] if moves else None
        if (
            previous is not None
            and previous.current_step_id == state.current_step_id
            and previous.history == state.history
        ):
            moves[-1] = state
            continue
        moves.append(state)
    return moves


if __name__ == "__main__":
    raise SystemExit(main())
