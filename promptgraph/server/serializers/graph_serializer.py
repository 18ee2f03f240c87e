"""
Graph serializer: GraphService state → JSON-safe dicts for the editor UI.

The flow shape ({nodes, edges, viewport, groups}) is what the persistence
layer stores; the serializer adds the per-node extras the editor draws
(connected handles, refreshable flag, composite summaries).
"""
from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Optional, Set

from promptgraph.core.GraphPrimitives import Node
from promptgraph.core.GraphService import GraphService
from promptgraph.core.GroupTransform import is_composite
from promptgraph.core.Types import REFRESHABLE_NODE_TYPES, TemplateVarInfo

# ── Wire shapes (dicts, not TypedDicts, for easy JSON serialisation) ──────────

# SerializedNode keys: id, type, position, data, selected, refreshable,
#                      connectedHandles, summary (composite nodes only)
# SerializedEdge keys: id, source, sourceHandle, target, targetHandle
# SerializedGraph keys: nodes, edges, viewport, groups


# ── Helpers ───────────────────────────────────────────────────────────────────

def serialize_value(value: Any) -> Any:
    if isinstance(value, TemplateVarInfo):
        return value.to_dict()
    if isinstance(value, list):
        return [serialize_value(v) for v in value]
    return value


def serialize_pulled(pulled: Dict[str, List[Any]]) -> Dict[str, List[Any]]:
    return {varname: serialize_value(values) for varname, values in pulled.items()}


def summarize_composite(node: Node) -> Optional[Dict[str, Any]]:
    """
    Contained nodes and "A → B" connection labels of a composite node, or
    None while it is collapsed.
    """
    if not is_composite(node) or node.data.get("isCollapsed"):
        return None
    contained = [n for n in node.data.get("nodes") or [] if isinstance(n, dict)]
    names = {n.get("id"): n.get("displayName") or f"{n.get('type')} Node" for n in contained}
    connections = []
    for conn in node.data.get("connections") or []:
        if not isinstance(conn, dict):
            continue
        source, target = conn.get("source"), conn.get("target")
        if source in names and target in names:
            connections.append(f"{names[source]} → {names[target]}")
    return {
        "nodes": [names[n.get("id")] for n in contained],
        "connections": connections,
    }


def _serialize_node(node: Node, connected: Set[str]) -> Dict[str, Any]:
    result = node.to_dict()
    result["refreshable"] = node.type in REFRESHABLE_NODE_TYPES
    result["connectedHandles"] = sorted(connected)
    if is_composite(node):
        result["summary"] = summarize_composite(node)
    return result


# ── Public API ─────────────────────────────────────────────────────────────────

def serialize_graph(service: GraphService) -> Dict[str, Any]:
    """Serialize the whole graph held by *service*."""
    graph = service.graph

    # Input handles with an incoming edge, per target node.
    connected: Dict[str, Set[str]] = defaultdict(set)
    for edge in graph.edges:
        if edge.target_handle:
            connected[edge.target].add(edge.target_handle)

    flow = service.to_flow_data()
    flow["nodes"] = [_serialize_node(node, connected.get(node.id, set())) for node in graph.nodes.values()]
    return flow
