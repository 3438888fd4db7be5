"""Structural diagnostics for flow graphs."""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass
from typing import List, Set

from .model import (
    FlowGraph,
    InformationalStep,
    MultiChoiceStep,
    SingleChoiceStep,
    Step,
    TerminalStep,
)


@dataclass
class GraphIssue:
    kind: str
    step_id: str
    description: str
    severity: str = "warning"


def check_graph(graph: FlowGraph) -> List[GraphIssue]:
    """Collect everything in the graph a run could trip over."""
    issues: List[GraphIssue] = []
    if not graph.has_step(graph.start_step_id):
        issues.append(
            GraphIssue(
                kind="missing-start",
                step_id=graph.start_step_id,
                description=f"Start step {graph.start_step_id} does not exist",
                severity="error",
            )
        )

    issues.extend(find_dangling_connections(graph))
    for step in graph.steps:
        issues.extend(check_step(step, graph))
    issues.extend(find_unreachable_steps(graph))
    return issues


def find_dangling_connections(graph: FlowGraph) -> List[GraphIssue]:
    issues: List[GraphIssue] = []
    for connection in graph.connections:
        if not graph.has_step(connection.target):
            issues.append(
                GraphIssue(
                    kind="dangling-target",
                    step_id=connection.source,
                    description=f"Connection points at missing step {connection.target}",
                    severity="error",
                )
            )
        if not graph.has_step(connection.source):
            issues.append(
                GraphIssue(
                    kind="dangling-source",
                    step_id=connection.source,
                    description=f"Connection leaves from missing step {connection.source}",
                )
            )
    return issues


def check_step(step: Step, graph: FlowGraph) -> List[GraphIssue]:
    outgoing = graph.outgoing(step.id)
    outlets = Counter(connection.source_outlet_id for connection in outgoing)

    if isinstance(step, InformationalStep):
        if not outgoing:
            return [_issue("no-exit", step, "Informational step has no outgoing connection")]
        if len(outgoing) > 1:
            return [
                _issue(
                    "ambiguous-exit",
                    step,
                    f"{len(outgoing)} outgoing connections; only the first is followed",
                )
            ]
        return []

    if isinstance(step, TerminalStep):
        if outgoing:
            return [_issue("terminal-exit", step, "Terminal step has outgoing connections")]
        return []

    issues: List[GraphIssue] = []
    if not step.choices:
        issues.append(_issue("no-choices", step, "Step offers no choices", "error"))

    if isinstance(step, SingleChoiceStep):
        for choice in step.choices:
            count = outlets.get(choice.id, 0)
            if count == 0:
                issues.append(
                    _issue("unwired-outlet", step, f"Choice {choice.label or choice.id} leads nowhere")
                )
            elif count > 1:
                issues.append(
                    _issue(
                        "ambiguous-outlet",
                        step,
                        f"Choice {choice.label or choice.id} has {count} connections",
                    )
                )
        return issues

    if isinstance(step, MultiChoiceStep):
        issues.extend(_check_paths(step, outlets))
    return issues


def _check_paths(step: MultiChoiceStep, outlets: Counter) -> List[GraphIssue]:
    issues: List[GraphIssue] = []
    if not step.paths:
        issues.append(_issue("no-paths", step, "Multiple-choice step defines no paths", "error"))
        return issues

    for path in step.paths:
        name = path.label or path.id
        if outlets.get(path.id, 0) == 0:
            issues.append(_issue("unwired-outlet", step, f"Path {name} leads nowhere"))

    if not any(path.is_default for path in step.paths):
        issues.append(
            _issue(
                "no-default-path",
                step,
                "No path without requirements; unmatched selections have nowhere to go",
                "info",
            )
        )
    return issues


def find_unreachable_steps(graph: FlowGraph) -> List[GraphIssue]:
    if not graph.has_step(graph.start_step_id):
        return []
    seen: Set[str] = {graph.start_step_id}
    queue = deque([graph.start_step_id])
    while queue:
        step_id = queue.popleft()
        for connection in graph.outgoing(step_id):
            if connection.target not in seen and graph.has_step(connection.target):
                seen.add(connection.target)
                queue.append(connection.target)

    return [
        _issue("unreachable", step, "Step cannot be reached from the start step", "info")
        for step in graph.steps
        if step.id not in seen
    ]


def _issue(kind: str, step: Step, description: str, severity: str = "warning") -> GraphIssue:
    return GraphIssue(kind=kind, step_id=step.id, description=description, severity=severity)
