"""
Collapse a selection of nodes into one composite node, and expand it again.

The composite node's data snapshots everything needed to rebuild the
selection: each node's id, type, display name, position and full data, and
each induced edge with its handles.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple
import copy
import logging
import random
import uuid

from .Errors import InsufficientSelection
from .GraphPrimitives import Edge, Graph, Node
from .Types import NodeType

logger = logging.getLogger(__name__)

MIN_GROUP_SELECTION = 2
UNGROUP_JITTER = 100.0


class Group:
    """Render-level aggregation of nodes. Does not touch edges."""

    def __init__(self, id: str, name: str, nodes: List[str],
                 description: Optional[str] = None, isCollapsed: bool = False):
        self.id = id
        self.name = name
        self.description = description
        self.nodes = list(nodes)
        self.isCollapsed = isCollapsed

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Group":
        return cls(
            str(raw.get("id") or f"group-{uuid.uuid4()}"),
            str(raw.get("name") or ""),
            [str(n) for n in raw.get("nodes") or []],
            description=raw.get("description"),
            isCollapsed=bool(raw.get("isCollapsed", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "nodes": list(self.nodes),
            "isCollapsed": self.isCollapsed,
        }

    def __repr__(self):
        return f"Group({self.id}, {self.name!r}, nodes={self.nodes})"


def composite_node_id(group_id: str) -> str:
    return f"groupnode-{group_id}"


def is_composite(node: Optional[Node]) -> bool:
    return node is not None and node.type == NodeType.GROUP_NODE and isinstance(node.data.get("nodes"), list)


def induced_edges(graph: Graph, node_ids: Iterable[str]) -> List[Edge]:
    """Every edge with at least one endpoint in *node_ids*."""
    selected = set(node_ids)
    return [e for e in graph.edges if e.source in selected or e.target in selected]


def centroid(nodes: List[Node]) -> Dict[str, float]:
    return {
        "x": sum(float(n.position.get("x", 0.0)) for n in nodes) / len(nodes),
        "y": sum(float(n.position.get("y", 0.0)) for n in nodes) / len(nodes),
    }


def create_group(graph: Graph, selected_ids: Iterable[str], name: str,
                 description: Optional[str] = None) -> Tuple[Group, Node]:
    """
    Replace the selected nodes and every edge touching them with one composite node.

    Raises InsufficientSelection, leaving the graph untouched, when fewer than
    two existing nodes are selected.
    """
    ordered: List[str] = []
    for node_id in selected_ids:
        if node_id not in ordered:
            ordered.append(node_id)
    grouped_nodes = [graph.get_node(nid) for nid in ordered if graph.has_node(nid)]
    if len(ordered) < MIN_GROUP_SELECTION or len(grouped_nodes) < MIN_GROUP_SELECTION:
        raise InsufficientSelection(len(grouped_nodes))

    node_connections = induced_edges(graph, ordered)
    center = centroid(grouped_nodes)

    group = Group(f"group-{uuid.uuid4()}", name, [n.id for n in grouped_nodes], description=description)
    composite = Node(
        composite_node_id(group.id),
        NodeType.GROUP_NODE,
        data={
            "name": name,
            "description": description,
            "groupId": group.id,
            "nodes": [
                {
                    "id": n.id,
                    "type": n.type.value,
                    "displayName": n.display_name,
                    "position": dict(n.position),
                    "data": copy.deepcopy(n.data),
                }
                for n in grouped_nodes
            ],
            "connections": [
                {
                    "id": e.id,
                    "source": e.source,
                    "target": e.target,
                    "sourceHandle": e.source_handle,
                    "targetHandle": e.target_handle,
                }
                for e in node_connections
            ],
            "isCollapsed": False,
        },
        position=center,
    )

    for edge in node_connections:
        graph.remove_edge(edge.id)
    for node in grouped_nodes:
        graph.remove_node(node.id)
    graph.add_node(composite)

    logger.info(f"Grouped {len(grouped_nodes)} nodes and {len(node_connections)} edges into '{composite.id}'")
    return group, composite


def ungroup(graph: Graph, composite_id: str,
            rng: Optional[random.Random] = None) -> Optional[Tuple[List[Node], List[Edge]]]:
    """
    Expand composite node *composite_id* back into its nodes and inner edges.

    Nodes come back with their full data, spread around the composite's
    position. Only edges whose two endpoints are both restored are re-added.
    Returns None when *composite_id* is not a composite node.
    Raises ValueError, with the graph untouched, when the snapshot holds an
    invalid node or an edge id that is already taken.
    """
    composite = graph.get_node(composite_id)
    if not is_composite(composite):
        logger.debug(f"ungroup: '{composite_id}' is not a composite node")
        return None
    rng = rng or random.Random()

    position = composite.position
    snapshot_nodes = [n for n in composite.data.get("nodes") or [] if isinstance(n, dict)]
    connections = [c for c in composite.data.get("connections") or [] if isinstance(c, dict)]

    # Build and check everything before the composite goes away, so a bad
    # snapshot leaves the graph as it was.
    restored: List[Node] = []
    restored_ids = set()
    for snap in snapshot_nodes:
        if isinstance(snap.get("data"), dict):
            data = copy.deepcopy(snap["data"])
        else:
            # older snapshots only kept the display name
            data = {"name": snap["displayName"]} if snap.get("displayName") else {}
        node = Node(
            snap.get("id"),
            snap.get("type"),
            data=data,
            position={
                "x": float(position.get("x", 0.0)) + rng.uniform(-UNGROUP_JITTER, UNGROUP_JITTER),
                "y": float(position.get("y", 0.0)) + rng.uniform(-UNGROUP_JITTER, UNGROUP_JITTER),
            },
            selected=False,
        )
        if graph.has_node(node.id) or node.id in restored_ids:
            logger.warning(f"ungroup: node '{node.id}' already exists, keeping the live one")
            continue
        restored.append(node)
        restored_ids.add(node.id)

    # Edges touching the composite are dropped with it and free their ids.
    taken: Dict[str, Edge] = {
        e.id: e for e in graph.edges if e.source != composite_id and e.target != composite_id
    }
    restored_edges: List[Edge] = []
    for conn in connections:
        source, target = conn.get("source"), conn.get("target")
        if source not in restored_ids or target not in restored_ids:
            continue
        edge = Edge(
            str(conn.get("id") or f"{source}-{target}"),
            source,
            conn.get("sourceHandle"),
            target,
            conn.get("targetHandle"),
        )
        if any(edge.same_connection(e) for e in restored_edges):
            continue
        if edge.id in taken:
            raise ValueError(f"Cannot ungroup '{composite_id}': edge id '{edge.id}' is already in use")
        taken[edge.id] = edge
        restored_edges.append(edge)

    graph.remove_node(composite_id)
    for node in restored:
        graph.add_node(node)
    for edge in restored_edges:
        graph.add_edge(edge)

    logger.info(f"Ungrouped '{composite_id}' into {len(restored)} nodes and {len(restored_edges)} edges")
    return restored, restored_edges
