"""Reading and writing flow documents (`{"nodes": [...], "edges": [...]}`)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .model import (
    DEFAULT_START_STEP_ID,
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
)


class DocumentError(GraphError):
    """Raised when a payload is not a usable flow document."""


_NODE_KEYS = {"id", "data"}
_EDGE_KEYS = {"id", "source", "target"}
_DATA_KEYS: Dict[StepKind, set] = {
    StepKind.INFORMATIONAL: {"label", "content", "type"},
    StepKind.SINGLE_CHOICE: {"label", "content", "type", "options"},
    StepKind.MULTI_CHOICE: {"label", "content", "type", "options", "paths"},
    StepKind.TERMINAL: {"label", "content", "type", "canRestart"},
}


def load_document(path: Path, start_step_id: Optional[str] = None) -> FlowGraph:
    raw = Path(path).read_text(encoding="utf-8")
    return loads_document(raw, start_step_id=start_step_id)


def save_document(graph: FlowGraph, path: Path) -> None:
    Path(path).write_text(dumps_document(graph), encoding="utf-8")


def loads_document(text: str, start_step_id: Optional[str] = None) -> FlowGraph:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentError(f"Invalid JSON: {exc}") from exc
    return parse_document(data, start_step_id=start_step_id)


def dumps_document(graph: FlowGraph) -> str:
    return json.dumps(graph_to_document(graph), indent=2)


def parse_document(data: Any, start_step_id: Optional[str] = None) -> FlowGraph:
    """Build a graph from a decoded document.

    The start step defaults to the node with id ``"start"``, falling back to
    the first node when the document has none.
    """
    if not isinstance(data, Mapping):
        raise DocumentError("Document must be a JSON object")
    nodes = data.get("nodes")
    edges = data.get("edges")
    if not isinstance(nodes, list) or not isinstance(edges, list):
        raise DocumentError("Document must contain 'nodes' and 'edges' lists")

    try:
        steps = [node_to_step(node, index) for index, node in enumerate(nodes)]
        connections = [edge_to_connection(edge, index) for index, edge in enumerate(edges)]
        if start_step_id is None:
            start_step_id = _default_start(steps)
        return FlowGraph(steps=steps, connections=connections, start_step_id=start_step_id)
    except DocumentError:
        raise
    except GraphError as exc:
        raise DocumentError(str(exc)) from exc


def node_to_step(node: Any, index: int = 0) -> Step:
    if not isinstance(node, Mapping):
        raise DocumentError(f"Node #{index} is not an object")
    step_id = _require_str(node.get("id"), f"Node #{index} id")
    data = node.get("data") or {}
    if not isinstance(data, Mapping):
        raise DocumentError(f"Node {step_id} data is not an object")

    kind = _parse_kind(data.get("type", node.get("type")), step_id)
    node_extra = {key: value for key, value in node.items() if key not in _NODE_KEYS}
    data_extra = {key: value for key, value in data.items() if key not in _DATA_KEYS[kind]}
    extra: Dict[str, Any] = {
        "data_keys": tuple(key for key in data if key in _DATA_KEYS[kind]),
    }
    if node_extra:
        extra["node"] = node_extra
    if data_extra:
        extra["data"] = data_extra

    common = {
        "id": step_id,
        "content": _optional_str(data.get("content"), f"Node {step_id} content"),
        "label": _optional_str(data.get("label"), f"Node {step_id} label"),
        "extra": extra,
    }
    if kind is StepKind.SINGLE_CHOICE:
        return SingleChoiceStep(choices=_parse_choices(data, step_id), **common)
    if kind is StepKind.MULTI_CHOICE:
        return MultiChoiceStep(
            choices=_parse_choices(data, step_id),
            paths=_parse_paths(data, step_id),
            **common,
        )
    if kind is StepKind.TERMINAL:
        return TerminalStep(allow_restart=bool(data.get("canRestart", False)), **common)
    return InformationalStep(**common)


def edge_to_connection(edge: Any, index: int = 0) -> Connection:
    if not isinstance(edge, Mapping):
        raise DocumentError(f"Edge #{index} is not an object")
    source = _require_str(edge.get("source"), f"Edge #{index} source")
    target = _require_str(edge.get("target"), f"Edge #{index} target")
    outlet = edge.get("sourceHandle")
    if outlet is not None and not isinstance(outlet, str):
        raise DocumentError(f"Edge #{index} sourceHandle must be a string")
    edge_id = edge.get("id")
    # An explicit null sourceHandle stays in extra and is written back as is.
    extra = {
        key: value
        for key, value in edge.items()
        if key not in _EDGE_KEYS and not (key == "sourceHandle" and outlet is not None)
    }
    return Connection(
        source=source,
        target=target,
        source_outlet_id=outlet,
        id=None if edge_id is None else str(edge_id),
        extra=extra,
    )


def graph_to_document(graph: FlowGraph) -> Dict[str, Any]:
    return {
        "nodes": [step_to_node(step) for step in graph.steps],
        "edges": [connection_to_edge(connection) for connection in graph.connections],
    }


def step_to_node(step: Step) -> Dict[str, Any]:
    """Write a step back as a node.

    A step read from a document gets back the data keys that node had, plus
    any field whose value is not the default. A step built in code gets the
    full node shape.
    """
    node_extra = step.extra.get("node", {})
    data_keys = step.extra.get("data_keys")

    fields: Dict[str, Any] = {"label": step.label, "content": step.content}
    if isinstance(step, (SingleChoiceStep, MultiChoiceStep)):
        fields["options"] = [{"id": choice.id, "label": choice.label} for choice in step.choices]
    if isinstance(step, MultiChoiceStep):
        fields["paths"] = [
            {
                "id": path.id,
                "label": path.label,
                "requiredOptionIds": list(path.required_choice_ids),
            }
            for path in step.paths
        ]
    if isinstance(step, TerminalStep):
        fields["canRestart"] = step.allow_restart

    data: Dict[str, Any] = {}
    if data_keys is None:
        data.update(fields)
        data["type"] = step.kind.value
    else:
        # The kind must survive on the node or in its data.
        if "type" in data_keys or "type" not in node_extra:
            data["type"] = step.kind.value
        for key, value in fields.items():
            if key in data_keys or value:
                data[key] = value
        order = [key for key in data_keys if key in data]
        order += [key for key in data if key not in order]
        data = {key: data[key] for key in order}
    data.update(step.extra.get("data", {}))

    node: Dict[str, Any] = {"id": step.id}
    if data_keys is None:
        node["type"] = step.kind.value
    node.update(node_extra)
    if "type" in node:
        node["type"] = step.kind.value
    node["data"] = data
    return node


def connection_to_edge(connection: Connection) -> Dict[str, Any]:
    edge: Dict[str, Any] = {}
    if connection.id is not None:
        edge["id"] = connection.id
    edge["source"] = connection.source
    edge["target"] = connection.target
    if connection.source_outlet_id is not None:
        edge["sourceHandle"] = connection.source_outlet_id
    edge.update(connection.extra)
    return edge


def _default_start(steps: List[Step]) -> str:
    if not steps or any(step.id == DEFAULT_START_STEP_ID for step in steps):
        return DEFAULT_START_STEP_ID
    return steps[0].id


def _parse_kind(value: Any, step_id: str) -> StepKind:
    try:
        return StepKind(value)
    except ValueError:
        raise DocumentError(f"Node {step_id} has unknown type: {value!r}") from None


def _parse_choices(data: Mapping[str, Any], step_id: str) -> List[Choice]:
    raw = data.get("options") or []
    if not isinstance(raw, list):
        raise DocumentError(f"Node {step_id} options must be a list")
    choices: List[Choice] = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise DocumentError(f"Node {step_id} has a malformed option")
        choices.append(
            Choice(
                id=_require_str(item.get("id"), f"Node {step_id} option id"),
                label=_optional_str(item.get("label"), f"Node {step_id} option label"),
            )
        )
    return choices


def _parse_paths(data: Mapping[str, Any], step_id: str) -> List[OutputPath]:
    raw = data.get("paths") or []
    if not isinstance(raw, list):
        raise DocumentError(f"Node {step_id} paths must be a list")
    paths: List[OutputPath] = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise DocumentError(f"Node {step_id} has a malformed path")
        required = item.get("requiredOptionIds") or []
        if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
            raise DocumentError(f"Node {step_id} path requirements must be a list of ids")
        paths.append(
            OutputPath(
                id=_require_str(item.get("id"), f"Node {step_id} path id"),
                label=_optional_str(item.get("label"), f"Node {step_id} path label"),
                required_choice_ids=tuple(required),
            )
        )
    return paths


def _require_str(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise DocumentError(f"{what} must be a non-empty string")
    return value


def _optional_str(value: Any, what: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DocumentError(f"{what} must be a string")
    return value
