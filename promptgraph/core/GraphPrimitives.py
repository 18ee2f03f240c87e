from typing import Any, Dict, List, NamedTuple, Optional
from collections import defaultdict
import copy
import logging

from .Types import NodeType, coerce_node_type

logger = logging.getLogger(__name__)


# Edges are immutable; the store replaces rather than edits them.
class Edge(NamedTuple):
    id: str
    source: str
    source_handle: Optional[str]
    target: str
    target_handle: Optional[str]

    @staticmethod
    def make_id(source: str, source_handle: Optional[str], target: str, target_handle: Optional[str]) -> str:
        return f"reactflow__edge-{source}{source_handle or ''}-{target}{target_handle or ''}"

    def same_connection(self, other: "Edge") -> bool:
        return (self.source, self.source_handle, self.target, self.target_handle) == \
               (other.source, other.source_handle, other.target, other.target_handle)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "sourceHandle": self.source_handle,
            "target": self.target,
            "targetHandle": self.target_handle,
        }

    def __repr__(self):
        return f"Edge({self.source}.{self.source_handle} -> {self.target}.{self.target_handle})"


class Node:
    """
    A typed unit in the graph. `data` is interpreted by the node's type and is
    never schema-checked here; only `type` has to be a registered variant.
    """
    def __init__(self,
                 id: str,
                 type: Any,
                 data: Optional[Dict[str, Any]] = None,
                 position: Optional[Dict[str, float]] = None,
                 selected: bool = False):
        node_type = coerce_node_type(type)
        if node_type is None:
            raise ValueError(f"Unknown node type '{type}'")
        if id is None or id == "":
            raise ValueError("Node requires a non-empty id")
        self.id = str(id)
        self.type: NodeType = node_type
        self.data: Dict[str, Any] = data if data is not None else {}
        self.position: Dict[str, float] = dict(position) if position else {"x": 0.0, "y": 0.0}
        self.selected = selected

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Node":
        data = raw.get("data")
        position = raw.get("position")
        return cls(
            raw.get("id"),
            raw.get("type"),
            data=dict(data) if isinstance(data, dict) else {},
            position=position if isinstance(position, dict) else None,
            selected=bool(raw.get("selected", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "position": dict(self.position),
            "data": copy.deepcopy(self.data),
            "selected": self.selected,
        }

    @property
    def display_name(self) -> str:
        name = self.data.get("name")
        return name if name else self.type.value

    def declared_vars(self) -> List[str]:
        """The variable names this node pulls from upstream (data['vars'])."""
        n_vars = self.data.get("vars")
        if isinstance(n_vars, list):
            return n_vars
        return []

    def __repr__(self):
        return f"Node({self.id}, {self.type.value})"


class Graph:
    """
    Sole owner of node and edge identity (Arena Pattern).

    Edges live in one ordered list so fan-in into a variable is always read in
    the order the connections were made; the endpoint indexes are kept in step.
    """

    def __init__(self):
        self.nodes: Dict[str, Node] = {}
        self.edges: List[Edge] = []
        self.incoming_edges: Dict[str, List[Edge]] = defaultdict(list)
        self.outgoing_edges: Dict[str, List[Edge]] = defaultdict(list)

    # --- Nodes ---

    def add_node(self, node: Node) -> Node:
        if node.id in self.nodes:
            raise ValueError(f"Node with id '{node.id}' already exists in the graph")
        self.nodes[node.id] = node
        logger.debug(f"Graph: added node {node.id} ({node.type.value})")
        return node

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def remove_node(self, node_id: str) -> Optional[Node]:
        node = self.nodes.pop(node_id, None)
        if node is None:
            logger.debug(f"Graph: remove_node ignored unknown id '{node_id}'")
            return None
        # Cleanup connections associated with this node
        for edge in [e for e in self.edges if e.source == node_id or e.target == node_id]:
            self.remove_edge(edge.id)
        return node

    # --- Edges ---

    def add_edge(self, edge: Edge) -> Optional[Edge]:
        if edge.source not in self.nodes or edge.target not in self.nodes:
            logger.debug(f"Graph: dropping {edge!r}, endpoint does not exist")
            return None
        for existing in self.edges:
            if existing.same_connection(edge):
                return existing
        if self.get_edge(edge.id) is not None:
            raise ValueError(f"Edge with id '{edge.id}' already exists in the graph")

        self.edges.append(edge)
        self.incoming_edges[edge.target].append(edge)
        self.outgoing_edges[edge.source].append(edge)
        return edge

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def remove_edge(self, edge_id: str) -> Optional[Edge]:
        edge = self.get_edge(edge_id)
        if edge is None:
            return None
        self.edges.remove(edge)
        self.incoming_edges[edge.target].remove(edge)
        self.outgoing_edges[edge.source].remove(edge)
        return edge

    def input_edges_for_node(self, node_id: str) -> List[Edge]:
        return list(self.incoming_edges.get(node_id, []))

    def output_edges_for_node(self, node_id: str) -> List[Edge]:
        return list(self.outgoing_edges.get(node_id, []))

    def get_incoming_edges(self, node_id: str, handle: str) -> List[Edge]:
        return [e for e in self.incoming_edges.get(node_id, []) if e.target_handle == handle]

    def get_outgoing_edges(self, node_id: str, handle: str) -> List[Edge]:
        return [e for e in self.outgoing_edges.get(node_id, []) if e.source_handle == handle]

    def reset(self):
        self.nodes.clear()
        self.edges.clear()
        self.incoming_edges.clear()
        self.outgoing_edges.clear()
