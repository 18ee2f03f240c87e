"""
promptgraph core
================
Graph resolution engine for prompt-engineering flows.

    Graph            node/edge store
    resolve_output   what a node's output socket produces
    pull_input_data  bind a node's template variables across its upstream closure
    GraphService     owns a graph; mutations, refresh pings, group/ungroup, observers

Public API
----------
    from promptgraph.core import GraphService

    service = GraphService()
    service.add_node(Node("t1", "table", data={...}))
    service.connect("t1", "question", "p1", "question")
    bindings = service.pull_input_data(["question"], "p1")
"""

from .ColorRegistry import ColorRegistry
from .Errors import (
    CyclicDependency,
    DuplicateVariableName,
    GraphError,
    InsufficientSelection,
    MissingTableColumn,
    UnknownNode,
)
from .GraphPrimitives import Edge, Graph, Node
from .GraphService import GraphService
from .GroupTransform import Group, create_group, ungroup
from .InputBinder import get_immediate_input_node_types, pull_input_data
from .OutputResolver import resolve_output
from .Template import escape_braces, unescape_braces
from .Types import REFRESHABLE_NODE_TYPES, NodeType, TemplateVarInfo

__all__ = [
    "ColorRegistry",
    "CyclicDependency",
    "DuplicateVariableName",
    "GraphError",
    "InsufficientSelection",
    "MissingTableColumn",
    "UnknownNode",
    "Edge",
    "Graph",
    "Node",
    "GraphService",
    "Group",
    "create_group",
    "ungroup",
    "get_immediate_input_node_types",
    "pull_input_data",
    "resolve_output",
    "escape_braces",
    "unescape_braces",
    "REFRESHABLE_NODE_TYPES",
    "NodeType",
    "TemplateVarInfo",
]
