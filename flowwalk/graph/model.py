"""Step types and graph schema for decision flows."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union


DEFAULT_START_STEP_ID = "start"


class GraphError(ValueError):
    """Raised when a step or graph has an impossible shape."""


class StepKind(Enum):
    INFORMATIONAL = "static"
    SINGLE_CHOICE = "radio"
    MULTI_CHOICE = "checkbox"
    TERMINAL = "end"


@dataclass(frozen=True)
class Choice:
    id: str
    label: str = ""


@dataclass(frozen=True)
class OutputPath:
    """Outlet of a multi-choice step, taken when all required choices are selected."""

    id: str
    label: str = ""
    required_choice_ids: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Order is kept for round-trips; duplicates carry no meaning.
        object.__setattr__(
            self, "required_choice_ids", tuple(dict.fromkeys(self.required_choice_ids))
        )

    @property
    def requirement(self) -> FrozenSet[str]:
        return frozenset(self.required_choice_ids)

    @property
    def is_default(self) -> bool:
        return not self.required_choice_ids


@dataclass(frozen=True)
class BaseStep:
    """Base class for all step types."""

    id: str
    content: str = ""
    label: str = ""
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)
    kind: StepKind = field(init=False)


@dataclass(frozen=True)
class InformationalStep(BaseStep):
    """Displays content; continues along its single unconditional connection."""

    kind: StepKind = field(init=False, default=StepKind.INFORMATIONAL)


@dataclass(frozen=True)
class SingleChoiceStep(BaseStep):
    """User picks exactly one choice; each choice is its own outlet."""

    kind: StepKind = field(init=False, default=StepKind.SINGLE_CHOICE)
    choices: Tuple[Choice, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "choices", tuple(self.choices))
        _ensure_unique(self.id, "choice", (choice.id for choice in self.choices))


@dataclass(frozen=True)
class MultiChoiceStep(BaseStep):
    """User picks any number of choices; output paths decide where to go."""

    kind: StepKind = field(init=False, default=StepKind.MULTI_CHOICE)
    choices: Tuple[Choice, ...] = ()
    paths: Tuple[OutputPath, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "choices", tuple(self.choices))
        object.__setattr__(self, "paths", tuple(self.paths))
        _ensure_unique(self.id, "choice", (choice.id for choice in self.choices))
        _ensure_unique(self.id, "path", (path.id for path in self.paths))
        choice_ids = {choice.id for choice in self.choices}
        for path in self.paths:
            unknown = [rid for rid in path.required_choice_ids if rid not in choice_ids]
            if unknown:
                raise GraphError(
                    f"Step {self.id} path {path.id} requires unknown choices: {', '.join(unknown)}"
                )

    def get_path(self, path_id: str) -> Optional[OutputPath]:
        for path in self.paths:
            if path.id == path_id:
                return path
        return None


@dataclass(frozen=True)
class TerminalStep(BaseStep):
    """Finishes the flow."""

    kind: StepKind = field(init=False, default=StepKind.TERMINAL)
    allow_restart: bool = False


Step = Union[InformationalStep, SingleChoiceStep, MultiChoiceStep, TerminalStep]


def choices_of(step: Step) -> Tuple[Choice, ...]:
    if isinstance(step, (SingleChoiceStep, MultiChoiceStep)):
        return step.choices
    return ()


@dataclass(frozen=True)
class Connection:
    """Directed edge; source_outlet_id names the choice or path it leaves from."""

    source: str
    target: str
    source_outlet_id: Optional[str] = None
    id: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class FlowGraph:
    """Immutable snapshot of a flow: steps, connections and the entry point.

    Connections may reference steps that do not exist; lookups skip them and
    the traversal engine reports them when a run actually follows one.
    """

    steps: Tuple[Step, ...]
    connections: Tuple[Connection, ...] = ()
    start_step_id: str = DEFAULT_START_STEP_ID

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "connections", tuple(self.connections))

        by_id: Dict[str, Step] = {}
        for step in self.steps:
            if step.id in by_id:
                raise GraphError(f"Duplicate step id: {step.id}")
            by_id[step.id] = step

        outgoing: Dict[str, List[Connection]] = {}
        incoming: Dict[str, List[Connection]] = {}
        for connection in self.connections:
            outgoing.setdefault(connection.source, []).append(connection)
            incoming.setdefault(connection.target, []).append(connection)

        object.__setattr__(self, "_by_id", by_id)
        object.__setattr__(
            self, "_outgoing", {key: tuple(value) for key, value in outgoing.items()}
        )
        object.__setattr__(
            self, "_incoming", {key: tuple(value) for key, value in incoming.items()}
        )

    def has_step(self, step_id: str) -> bool:
        return step_id in self._by_id

    def get_step(self, step_id: str) -> Optional[Step]:
        return self._by_id.get(step_id)

    def outgoing(self, step_id: str) -> Tuple[Connection, ...]:
        return self._outgoing.get(step_id, ())

    def incoming(self, step_id: str) -> Tuple[Connection, ...]:
        return self._incoming.get(step_id, ())

    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]


def _ensure_unique(step_id: str, what: str, ids: Iterable[str]) -> None:
    seen = set()
    for item_id in ids:
        if item_id in seen:
            raise GraphError(f"Step {step_id} has duplicate {what} id: {item_id}")
        seen.add(item_id)
