"""Per-kind rules for picking the outgoing connection of the current step.

Each resolver receives the step, its outgoing connections (document order)
and the current selections, and returns the connection to follow or None.
The four rules stay separate: an informational step follows its connection
unconditionally, a single-choice step follows the outlet of the selected
choice, and a multi-choice step matches selections against its paths.
"""

from __future__ import annotations

from typing import AbstractSet, Callable, Dict, Iterable, List, Optional, Sequence

from flowwalk.graph.model import (
    Connection,
    InformationalStep,
    MultiChoiceStep,
    OutputPath,
    SingleChoiceStep,
    StepKind,
    TerminalStep,
)


def rank_paths(paths: Iterable[OutputPath]) -> List[OutputPath]:
    """Most specific first; equal sizes order by case-folded label, then id."""
    return sorted(
        paths,
        key=lambda path: (-len(path.requirement), path.label.casefold(), path.label, path.id),
    )


def match_path(
    paths: Iterable[OutputPath], selections: AbstractSet[str]
) -> Optional[OutputPath]:
    """Return the most specific path whose requirements are all selected.

    A path requiring {A} matches selections {A, B}; when {A, B} is also a
    path it wins. A path with no requirements matches anything and therefore
    only wins when nothing more specific does.
    """
    for path in rank_paths(paths):
        if path.requirement <= selections:
            return path
    return None


def resolve_informational(
    step: InformationalStep,
    connections: Sequence[Connection],
    selections: AbstractSet[str],
) -> Optional[Connection]:
    return connections[0] if connections else None


def resolve_single_choice(
    step: SingleChoiceStep,
    connections: Sequence[Connection],
    selections: AbstractSet[str],
) -> Optional[Connection]:
    if len(selections) != 1:
        return None
    (selected,) = selections
    return _connection_for_outlet(connections, selected)


def resolve_multi_choice(
    step: MultiChoiceStep,
    connections: Sequence[Connection],
    selections: AbstractSet[str],
) -> Optional[Connection]:
    path = match_path(step.paths, selections)
    if path is None:
        return None
    return _connection_for_outlet(connections, path.id)


def resolve_terminal(
    step: TerminalStep,
    connections: Sequence[Connection],
    selections: AbstractSet[str],
) -> Optional[Connection]:
    return None


Resolver = Callable[..., Optional[Connection]]

RESOLVERS: Dict[StepKind, Resolver] = {
    StepKind.INFORMATIONAL: resolve_informational,
    StepKind.SINGLE_CHOICE: resolve_single_choice,
    StepKind.MULTI_CHOICE: resolve_multi_choice,
    StepKind.TERMINAL: resolve_terminal,
}


def _connection_for_outlet(
    connections: Sequence[Connection], outlet_id: str
) -> Optional[Connection]:
    for connection in connections:
        if connection.source_outlet_id == outlet_id:
            return connection
    return None
