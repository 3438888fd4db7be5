"""Traversal engine: moves a run through a flow one step at a time."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from flowwalk.graph.model import (
    FlowGraph,
    MultiChoiceStep,
    SingleChoiceStep,
    Step,
    TerminalStep,
    choices_of,
)

from .errors import (
    DanglingTarget,
    FlowError,
    MissingStep,
    NoPathDefined,
    SelectionRequired,
    TerminalDeadEnd,
    UnknownChoice,
)
from .resolvers import RESOLVERS, match_path
from .state import TraversalState

logger = logging.getLogger(__name__)


class TraversalEngine:
    """Computes transitions over a read-only graph.

    The engine keeps no run state of its own: every transition takes a
    `TraversalState` and returns a new one, so a failed transition leaves the
    caller holding the state it started with.
    """

    def __init__(self, graph: FlowGraph):
        self.graph = graph

    def start(self, start_step_id: Optional[str] = None) -> TraversalState:
        step_id = self.graph.start_step_id if start_step_id is None else start_step_id
        if not self.graph.has_step(step_id):
            raise MissingStep(step_id)
        logger.debug("Starting run at %s", step_id)
        return TraversalState.initial(step_id)

    def current_step(self, state: TraversalState) -> Step:
        return self._require_step(state.current_step_id)

    def toggle_selection(
        self,
        state: TraversalState,
        choice_id: str,
        exclusive: Optional[bool] = None,
    ) -> TraversalState:
        step = self.current_step(state)
        if choice_id not in {choice.id for choice in choices_of(step)}:
            raise UnknownChoice(step.id, choice_id)
        if exclusive is None:
            exclusive = isinstance(step, SingleChoiceStep)

        if exclusive:
            return state.with_selections({choice_id})
        return state.with_selections(state.selections ^ {choice_id})

    def can_advance(self, state: TraversalState) -> bool:
        step = self.graph.get_step(state.current_step_id)
        if step is None:
            return False
        if isinstance(step, TerminalStep):
            return step.allow_restart
        if isinstance(step, (SingleChoiceStep, MultiChoiceStep)):
            return bool(state.selections)
        return True

    def advance(self, state: TraversalState) -> TraversalState:
        step = self.current_step(state)

        if isinstance(step, TerminalStep):
            if not step.allow_restart:
                raise TerminalDeadEnd(step.id)
            self._require_step(state.start_step_id)
            logger.debug("Restarting run from %s", state.start_step_id)
            return state.restarted()

        if isinstance(step, (SingleChoiceStep, MultiChoiceStep)) and not state.selections:
            raise SelectionRequired(step.id)

        connections = self.graph.outgoing(step.id)
        connection = RESOLVERS[step.kind](step, connections, state.selections)
        if connection is None:
            self._warn_unwired_path(step, state)
            raise NoPathDefined(step.id)

        if not self.graph.has_step(connection.target):
            logger.warning(
                "Connection from %s points at missing step %s", step.id, connection.target
            )
            raise DanglingTarget(step.id, connection.target)

        logger.debug("Advancing %s -> %s", step.id, connection.target)
        return state.moved_to(connection.target)

    def can_go_back(self, state: TraversalState) -> bool:
        return state.can_go_back

    def back(self, state: TraversalState) -> TraversalState:
        if not state.history:
            return state
        logger.debug("Going back %s -> %s", state.current_step_id, state.history[-1])
        return state.popped()

    def incoming_neighbors(self, step_id: str) -> List[Step]:
        return self._unique_steps(connection.source for connection in self.graph.incoming(step_id))

    def outgoing_neighbors(self, step_id: str) -> List[Step]:
        return self._unique_steps(connection.target for connection in self.graph.outgoing(step_id))

    def _unique_steps(self, step_ids: Iterable[str]) -> List[Step]:
        steps: List[Step] = []
        seen = set()
        for step_id in step_ids:
            if step_id in seen:
                continue
            seen.add(step_id)
            step = self.graph.get_step(step_id)
            if step is not None:
                steps.append(step)
        return steps

    def _require_step(self, step_id: str) -> Step:
        step = self.graph.get_step(step_id)
        if step is None:
            raise MissingStep(step_id)
        return step

    def _warn_unwired_path(self, step: Step, state: TraversalState) -> None:
        if not isinstance(step, MultiChoiceStep):
            return
        path = match_path(step.paths, state.selections)
        if path is not None:
            logger.warning("Path %s of step %s is not connected to any step", path.id, step.id)


@dataclass(frozen=True)
class Action:
    """One scripted user action: "select" choices, "advance" or "back"."""

    kind: str
    choice_ids: Tuple[str, ...] = ()


def replay(
    engine: TraversalEngine,
    actions: Iterable[Action],
    state: Optional[TraversalState] = None,
) -> List[TraversalState]:
    """Apply actions in order and return every state passed through.

    The first element is the state replay began from. Errors propagate; the
    states collected up to that point are attached as `states` on the
    exception.
    """
    if state is None:
        state = engine.start()
    states = [state]
    for action in actions:
        try:
            state = _apply(engine, state, action)
        except FlowError as exc:
            exc.states = states
            raise
        states.append(state)
    return states


def _apply(engine: TraversalEngine, state: TraversalState, action: Action) -> TraversalState:
    if action.kind == "select":
        for choice_id in action.choice_ids:
            state = engine.toggle_selection(state, choice_id)
        return state
    if action.kind == "advance":
        return engine.advance(state)
    if action.kind == "back":
        return engine.back(state)
    raise ValueError(f"Unknown action: {action.kind}")
