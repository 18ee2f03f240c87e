"""
GraphService: the one object that owns a graph and every operation on it.

UI layers never touch the node/edge collections directly; they go through the
query/mutation API below and observe changes by subscribing a callback. Each
mutation fires a plain-dict event (see server/events/event_types.py for the
wire shapes) after the graph has been updated.

Resolution (output / pull_input_data) only reads; every other public method
mutates and is expected to be called from a single writer at a time.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
import copy
import logging
import random
import uuid

from .Errors import UnknownNode
from .GraphPrimitives import Edge, Graph, Node
from .GroupTransform import Group, create_group, is_composite, ungroup
from .InputBinder import PulledData, get_immediate_input_node_types, pull_input_data
from .OutputResolver import resolve_output
from .Types import INPUT_TRACKING_NODE_TYPES, REFRESHABLE_NODE_TYPES, NodeType

logger = logging.getLogger(__name__)

GraphListener = Callable[[Dict[str, Any]], None]

DEFAULT_VIEWPORT = {"x": 0, "y": 0, "zoom": 1}


class GraphService:

    def __init__(self, graph: Optional[Graph] = None, rng: Optional[random.Random] = None) -> None:
        self.graph: Graph = graph if graph is not None else Graph()
        self.groups: List[Group] = []
        self.viewport: Dict[str, float] = dict(DEFAULT_VIEWPORT)
        self._rng = rng or random.Random()
        self._listeners: List[GraphListener] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: GraphListener) -> GraphListener:
        """Register a callback that receives every graph event."""
        self._listeners.append(callback)
        return callback

    def unsubscribe(self, callback: GraphListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self, event_type: str, **payload: Any) -> None:
        event = {"type": event_type, **payload}
        for cb in list(self._listeners):
            try:
                cb(event)
            except Exception:
                # a broken listener must not leave the mutation half-reported
                logger.exception(f"Graph listener failed on {event_type}")

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.graph.get_node(node_id)

    def require_node(self, node_id: str) -> Node:
        node = self.graph.get_node(node_id)
        if node is None:
            raise UnknownNode(node_id)
        return node

    @property
    def nodes(self) -> List[Node]:
        return list(self.graph.nodes.values())

    @property
    def edges(self) -> List[Edge]:
        return list(self.graph.edges)

    def add_node(self, node: Any, type: Optional[str] = None, data: Optional[Dict[str, Any]] = None,
                 position: Optional[Dict[str, float]] = None) -> Node:
        """
        Add *node* to the graph. *node* is either a Node, or a type name used
        (with *type*/*data*) to build a fresh node with a generated id.
        """
        if isinstance(node, Node):
            new_node = node
        else:
            node_type = type or str(node)
            new_node = Node(f"{node}-{uuid.uuid4().hex[:12]}", node_type, data=dict(data or {}), position=position)
        self.graph.add_node(new_node)
        self._emit("NODE_ADDED", nodeId=new_node.id, node=new_node.to_dict())
        return new_node

    def remove_node(self, node_id: str) -> Optional[Node]:
        touching = [e.id for e in self.graph.edges if e.source == node_id or e.target == node_id]
        node = self.graph.remove_node(node_id)
        if node is None:
            return None
        for group in self.groups:
            if node_id in group.nodes:
                group.nodes.remove(node_id)
        for edge_id in touching:
            self._emit("EDGE_REMOVED", edgeId=edge_id)
        self._emit("NODE_REMOVED", nodeId=node_id)
        return node

    def duplicate_node(self, node_id: str, offset: Optional[Dict[str, float]] = None) -> Optional[Node]:
        """Deep copy of a node with a new id, shifted by *offset*. Not added to the graph."""
        node = self.graph.get_node(node_id)
        if node is None:
            return None
        offset = offset or {}
        dup = Node.from_dict(copy.deepcopy(node.to_dict()))
        dup.id = f"{dup.type.value}-{uuid.uuid4().hex[:12]}"
        dup.position["x"] += offset.get("x", 0)
        dup.position["y"] += offset.get("y", 0)
        return dup

    def set_position(self, node_id: str, x: float, y: float) -> Optional[Node]:
        node = self.graph.get_node(node_id)
        if node is None:
            return None
        node.position = {"x": x, "y": y}
        self._emit("NODE_MOVED", nodeId=node_id, position=dict(node.position))
        return node

    def set_data_props_for_node(self, node_id: str, data_props: Dict[str, Any]) -> Optional[Node]:
        """
        Merge *data_props* into the node's data, then replace data with a deep
        copy so anything diffing by identity sees a new object.
        Unknown ids are ignored.
        """
        node = self.graph.get_node(node_id)
        if node is None:
            logger.debug(f"set_data_props_for_node: unknown node '{node_id}'")
            return None
        merged = node.data
        for key, value in data_props.items():
            merged[key] = value
        node.data = copy.deepcopy(merged)
        self._emit("NODE_DATA_CHANGED", nodeId=node_id, keys=list(data_props.keys()))
        return node

    # --- Selection ---

    def deselect_all_nodes(self) -> None:
        for node in self.graph.nodes.values():
            node.selected = False

    def bring_node_to_front(self, node_id: str) -> None:
        for node in self.graph.nodes.values():
            node.selected = node.id == node_id

    def get_selected_nodes(self) -> List[str]:
        return [n.id for n in self.graph.nodes.values() if n.selected]

    def set_selected_nodes(self, node_ids: Iterable[str]) -> None:
        selected = set(node_ids)
        for node in self.graph.nodes.values():
            node.selected = node.id in selected

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def input_edges_for_node(self, node_id: str) -> List[Edge]:
        return self.graph.input_edges_for_node(node_id)

    def output_edges_for_node(self, node_id: str) -> List[Edge]:
        return self.graph.output_edges_for_node(node_id)

    def connect(self, source: str, source_handle: Optional[str], target: str,
                target_handle: Optional[str], edge_id: Optional[str] = None) -> Optional[Edge]:
        """
        Wire *source*.*source_handle* into *target*.*target_handle*.

        Visualizer-like targets remember their input node, and refreshable
        targets are pinged. Returns None when either endpoint is missing.
        """
        target_node = self.graph.get_node(target)
        if target_node is None or not self.graph.has_node(source):
            logger.debug(f"connect: dangling connection {source} -> {target} ignored")
            return None

        if target_node.type in INPUT_TRACKING_NODE_TYPES:
            self.set_data_props_for_node(target, {"input": source})
        if target_node.type in REFRESHABLE_NODE_TYPES:
            self.set_data_props_for_node(target, {"refresh": True})

        edge = Edge(
            edge_id or Edge.make_id(source, source_handle, target, target_handle),
            source, source_handle, target, target_handle,
        )
        added = self.graph.add_edge(edge)
        if added is edge:
            self._emit("EDGE_ADDED", edge=edge.to_dict())
        return added

    def remove_edge(self, edge_id: str) -> Optional[Edge]:
        edge = self.graph.remove_edge(edge_id)
        if edge is not None:
            self._emit("EDGE_REMOVED", edgeId=edge_id)
        return edge

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def output(self, node_id: str, socket_key: Optional[str] = None, strict: bool = False):
        return resolve_output(self.graph, node_id, socket_key, strict=strict)

    def pull_input_data(self, variable_names: Sequence[str], node_id: str) -> PulledData:
        return pull_input_data(self.graph, variable_names, node_id)

    def get_immediate_input_node_types(self, target_handles: Sequence[str], node_id: str) -> List[str]:
        return get_immediate_input_node_types(self.graph, target_handles, node_id)

    def notify_downstream(self, node_id: str) -> List[str]:
        """
        Ping the nodes immediately downstream of *node_id* whose type is
        refreshable. One hop only; returns the ids that were flagged.
        """
        pinged: List[str] = []
        for edge in self.graph.output_edges_for_node(node_id):
            node = self.graph.get_node(edge.target)
            if node is not None and node.type in REFRESHABLE_NODE_TYPES:
                self.set_data_props_for_node(node.id, {"refresh": True})
                pinged.append(node.id)
        return pinged

    # ------------------------------------------------------------------
    # Render-level groups
    # ------------------------------------------------------------------

    def get_group(self, group_id: str) -> Optional[Group]:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def create_render_group(self, name: str, description: Optional[str] = None,
                            node_ids: Optional[Iterable[str]] = None) -> str:
        nodes = list(node_ids) if node_ids is not None else self.get_selected_nodes()
        group = Group(f"group-{uuid.uuid4()}", name, nodes, description=description)
        self.groups.append(group)
        self._emit("GROUP_CREATED", group=group.to_dict())
        return group.id

    def add_nodes_to_group(self, group_id: str, node_ids: Iterable[str]) -> None:
        group = self.get_group(group_id)
        if group is None:
            return
        for node_id in node_ids:
            if node_id not in group.nodes:
                group.nodes.append(node_id)

    def remove_nodes_from_group(self, group_id: str, node_ids: Iterable[str]) -> None:
        group = self.get_group(group_id)
        if group is None:
            return
        drop = set(node_ids)
        group.nodes = [n for n in group.nodes if n not in drop]

    def delete_group(self, group_id: str) -> None:
        before = len(self.groups)
        self.groups = [g for g in self.groups if g.id != group_id]
        if len(self.groups) != before:
            self._emit("GROUP_REMOVED", groupId=group_id)

    def update_group(self, group_id: str, **updates: Any) -> Optional[Group]:
        group = self.get_group(group_id)
        if group is None:
            return None
        for key, value in updates.items():
            if key == "id" or not hasattr(group, key):
                raise ValueError(f"Group has no updatable field '{key}'")
            setattr(group, key, value)
        return group

    def set_groups(self, groups: Iterable[Group]) -> None:
        self.groups = list(groups)

    def select_nodes_in_group(self, group_id: str) -> None:
        group = self.get_group(group_id)
        if group is not None:
            self.set_selected_nodes(group.nodes)

    # ------------------------------------------------------------------
    # Composite groups
    # ------------------------------------------------------------------

    def create_group(self, selected_ids: Iterable[str], name: str,
                     description: Optional[str] = None) -> Tuple[str, Node]:
        """
        Collapse *selected_ids* into a composite node. Returns (group id, composite node).
        Raises InsufficientSelection with the graph untouched.
        """
        removed_edges = [e.id for e in self.graph.edges]
        group, composite = create_group(self.graph, selected_ids, name, description)
        live_edges = {e.id for e in self.graph.edges}

        self.groups.append(group)
        for edge_id in removed_edges:
            if edge_id not in live_edges:
                self._emit("EDGE_REMOVED", edgeId=edge_id)
        for node_id in group.nodes:
            self._emit("NODE_REMOVED", nodeId=node_id)
        self._emit("NODE_ADDED", nodeId=composite.id, node=composite.to_dict())
        self._emit("GROUP_CREATED", group=group.to_dict())
        return group.id, composite

    def ungroup(self, composite_id: str) -> Optional[Tuple[List[Node], List[Edge]]]:
        composite = self.graph.get_node(composite_id)
        if not is_composite(composite):
            return None
        group_id = composite.data.get("groupId")
        result = ungroup(self.graph, composite_id, rng=self._rng)
        if result is None:
            return None
        nodes, edges = result

        self._emit("NODE_REMOVED", nodeId=composite_id)
        if group_id:
            self.delete_group(group_id)
        for node in nodes:
            self._emit("NODE_ADDED", nodeId=node.id, node=node.to_dict())
        for edge in edges:
            self._emit("EDGE_ADDED", edge=edge.to_dict())
        return nodes, edges

    def set_group_collapsed(self, composite_id: str, collapsed: bool) -> Optional[Node]:
        composite = self.graph.get_node(composite_id)
        if not is_composite(composite):
            return None
        group_id = composite.data.get("groupId")
        group = self.get_group(group_id) if group_id else None
        if group is not None:
            group.isCollapsed = collapsed
        return self.set_data_props_for_node(composite_id, {"isCollapsed": collapsed})

    # ------------------------------------------------------------------
    # Flow data
    # ------------------------------------------------------------------

    def load_flow(self, flow: Dict[str, Any]) -> None:
        """
        Replace the whole graph with *flow* ({nodes, edges, viewport, groups}).
        Node data is taken as-is; only node types are checked. Edges whose
        endpoints are missing are dropped.
        """
        nodes = [Node.from_dict(raw) for raw in flow.get("nodes") or [] if isinstance(raw, dict)]
        seen_ids = set()
        for node in nodes:
            if node.id in seen_ids:
                raise ValueError(f"Flow contains node id '{node.id}' more than once")
            seen_ids.add(node.id)

        self.graph.reset()
        for node in nodes:
            self.graph.add_node(node)
        for raw in flow.get("edges") or []:
            if not isinstance(raw, dict):
                continue
            source, target = raw.get("source"), raw.get("target")
            edge = Edge(
                str(raw.get("id") or Edge.make_id(source, raw.get("sourceHandle"), target, raw.get("targetHandle"))),
                source, raw.get("sourceHandle"), target, raw.get("targetHandle"),
            )
            if self.graph.get_edge(edge.id) is not None:
                logger.warning(f"load_flow: skipping second edge with id '{edge.id}'")
                continue
            self.graph.add_edge(edge)

        self.groups = [Group.from_dict(g) for g in flow.get("groups") or [] if isinstance(g, dict)]
        viewport = flow.get("viewport")
        self.viewport = dict(viewport) if isinstance(viewport, dict) else dict(DEFAULT_VIEWPORT)
        logger.info(f"Loaded flow with {len(self.graph.nodes)} nodes and {len(self.graph.edges)} edges")
        self._emit("FLOW_LOADED", nodeCount=len(self.graph.nodes), edgeCount=len(self.graph.edges))

    def to_flow_data(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.graph.nodes.values()],
            "edges": [e.to_dict() for e in self.graph.edges],
            "viewport": dict(self.viewport),
            "groups": [g.to_dict() for g in self.groups],
        }

    def extract_selection(self, node_ids: Iterable[str]) -> Dict[str, Any]:
        """Flow data holding only *node_ids* and the edges between them."""
        selected = set(node_ids)
        return {
            "nodes": [n.to_dict() for n in self.graph.nodes.values() if n.id in selected],
            "edges": [e.to_dict() for e in self.graph.edges if e.source in selected and e.target in selected],
            "viewport": dict(DEFAULT_VIEWPORT),
            "groups": [],
        }

    def reset(self) -> None:
        self.graph.reset()
        self.groups = []
        self.viewport = dict(DEFAULT_VIEWPORT)
