"""Run-time position within a flow."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import FrozenSet, Iterable, Tuple


@dataclass(frozen=True)
class TraversalState:
    """Where a run is: current step, its selections and the steps behind it."""

    current_step_id: str
    start_step_id: str
    selections: FrozenSet[str] = frozenset()
    history: Tuple[str, ...] = ()

    @classmethod
    def initial(cls, start_step_id: str) -> "TraversalState":
        return cls(current_step_id=start_step_id, start_step_id=start_step_id)

    @property
    def can_go_back(self) -> bool:
        return bool(self.history)

    def with_selections(self, selections: Iterable[str]) -> "TraversalState":
        return replace(self, selections=frozenset(selections))

    def moved_to(self, step_id: str) -> "TraversalState":
        return replace(
            self,
            current_step_id=step_id,
            selections=frozenset(),
            history=self.history + (self.current_step_id,),
        )

    def popped(self) -> "TraversalState":
        if not self.history:
            return self
        return replace(
            self,
            current_step_id=self.history[-1],
            selections=frozenset(),
            history=self.history[:-1],
        )

    def restarted(self) -> "TraversalState":
        return TraversalState.initial(self.start_step_id)
