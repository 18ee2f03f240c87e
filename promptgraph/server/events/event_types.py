"""
Graph event shapes broadcast to UI clients.
All events are plain dicts so they can be emitted over Socket.IO without Pydantic overhead.
"""
from typing import Any, Dict, List, Literal, TypedDict, Union


class NodeAddedEvent(TypedDict):
    type: Literal["NODE_ADDED"]
    nodeId: str
    node: Dict[str, Any]


class NodeRemovedEvent(TypedDict):
    type: Literal["NODE_REMOVED"]
    nodeId: str


class NodeMovedEvent(TypedDict):
    type: Literal["NODE_MOVED"]
    nodeId: str
    position: Dict[str, float]


class NodeDataChangedEvent(TypedDict):
    type: Literal["NODE_DATA_CHANGED"]
    nodeId: str
    keys: List[str]


class EdgeAddedEvent(TypedDict):
    type: Literal["EDGE_ADDED"]
    edge: Dict[str, Any]


class EdgeRemovedEvent(TypedDict):
    type: Literal["EDGE_REMOVED"]
    edgeId: str


class GroupCreatedEvent(TypedDict):
    type: Literal["GROUP_CREATED"]
    group: Dict[str, Any]


class GroupRemovedEvent(TypedDict):
    type: Literal["GROUP_REMOVED"]
    groupId: str


class FlowLoadedEvent(TypedDict):
    type: Literal["FLOW_LOADED"]
    nodeCount: int
    edgeCount: int


GraphEvent = Union[
    NodeAddedEvent,
    NodeRemovedEvent,
    NodeMovedEvent,
    NodeDataChangedEvent,
    EdgeAddedEvent,
    EdgeRemovedEvent,
    GroupCreatedEvent,
    GroupRemovedEvent,
    FlowLoadedEvent,
]
