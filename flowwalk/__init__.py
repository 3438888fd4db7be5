"""Walk branching decision flows."""

from .graph import FlowGraph, load_document, parse_document
from .traversal import TraversalEngine, TraversalState

__all__ = [
    "FlowGraph",
    "TraversalEngine",
    "TraversalState",
    "load_document",
    "parse_document",
]
