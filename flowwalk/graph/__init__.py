"""Flow graph model, document codec and checks."""

from .model import (
    DEFAULT_START_STEP_ID,
    BaseStep,
    Choice,
    Connection,
    FlowGraph,
    GraphError,
    InformationalStep,
    MultiChoiceStep,
    OutputPath,
    SingleChoiceStep,
    Step,
    StepKind,
    TerminalStep,
    choices_of,
)
from .document import (
    DocumentError,
    dumps_document,
    graph_to_document,
    load_document,
    loads_document,
    parse_document,
    save_document,
)
from .checks import GraphIssue, check_graph

__all__ = [
    "DEFAULT_START_STEP_ID",
    "BaseStep",
    "Choice",
    "Connection",
    "DocumentError",
    "FlowGraph",
    "GraphError",
    "GraphIssue",
    "InformationalStep",
    "MultiChoiceStep",
    "OutputPath",
    "SingleChoiceStep",
    "Step",
    "StepKind",
    "TerminalStep",
    "check_graph",
    "choices_of",
    "dumps_document",
    "graph_to_document",
    "load_document",
    "loads_document",
    "parse_document",
    "save_document",
]
