"""Walking a flow: state, resolvers and the traversal engine."""

from .errors import (
    DanglingTarget,
    FlowError,
    MissingStep,
    NoPathDefined,
    SelectionRequired,
    TerminalDeadEnd,
    UnknownChoice,
)
from .state import TraversalState
from .resolvers import (
    RESOLVERS,
    match_path,
    rank_paths,
    resolve_informational,
    resolve_multi_choice,
    resolve_single_choice,
    resolve_terminal,
)
from .engine import Action, TraversalEngine, replay

__all__ = [
    "Action",
    "DanglingTarget",
    "FlowError",
    "MissingStep",
    "NoPathDefined",
    "RESOLVERS",
    "SelectionRequired",
    "TerminalDeadEnd",
    "TraversalEngine",
    "TraversalState",
    "UnknownChoice",
    "match_path",
    "rank_paths",
    "replay",
    "resolve_informational",
    "resolve_multi_choice",
    "resolve_single_choice",
    "resolve_terminal",
]
