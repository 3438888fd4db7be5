"""Errors raised while walking a flow."""

from __future__ import annotations

from typing import Any, List, Optional


class FlowError(Exception):
    """Base class for traversal failures.

    A failed transition never changes the state it was given; `recoverable`
    tells presentation layers whether the run can simply continue.
    """

    recoverable = True

    def __init__(self, message: str, step_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step_id = step_id
        # Filled in by replay() with the states reached before the failure.
        self.states: List[Any] = []


class MissingStep(FlowError):
    recoverable = False

    def __init__(self, step_id: str):
        super().__init__(f"Step {step_id} does not exist in this flow.", step_id)


class NoPathDefined(FlowError):
    def __init__(self, step_id: str, message: str = "No valid path defined for this selection."):
        super().__init__(message, step_id)


class SelectionRequired(NoPathDefined):
    def __init__(self, step_id: str):
        super().__init__(step_id, "Select an option before continuing.")


class DanglingTarget(FlowError):
    def __init__(self, step_id: str, target_id: str):
        super().__init__(
            f"Configuration error: the next step ({target_id}) is missing.", step_id
        )
        self.target_id = target_id


class TerminalDeadEnd(FlowError):
    def __init__(self, step_id: str):
        super().__init__("This is the end of the flow.", step_id)


class UnknownChoice(FlowError):
    def __init__(self, step_id: str, choice_id: str):
        super().__init__(f"Step {step_id} has no choice {choice_id}.", step_id)
        self.choice_id = choice_id
