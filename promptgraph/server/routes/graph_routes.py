"""
Graph REST routes.

All routes are mounted under /api by main.py. Resolution errors
(duplicate variable, cycle, missing table column) come back as 409 with a
message naming the culprit; a too-small group selection comes back as 400
with an `alert` the editor shows as-is.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from promptgraph.core.Errors import GraphError, InsufficientSelection
from promptgraph.core.GraphPrimitives import Node
from promptgraph.core.GraphService import GraphService
from promptgraph.core.Types import NodeType
from promptgraph.server.serializers.graph_serializer import (
    serialize_graph,
    serialize_pulled,
    serialize_value,
)
from promptgraph.server.state import GraphState, get_graph_state

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service(state: GraphState = Depends(get_graph_state)) -> GraphService:
    return state.service


def _require_node(service: GraphService, node_id: str) -> Node:
    node = service.get_node(node_id)
    if node is None:
        raise HTTPException(status_code=404, detail="Node not found")
    return node


# ── GET /graph ────────────────────────────────────────────────────────────────

@router.get("/graph")
async def get_graph(service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    return serialize_graph(service)


# ── PUT /graph ────────────────────────────────────────────────────────────────

class FlowBody(BaseModel):
    nodes: List[Dict[str, Any]] = Field(default_factory=list)
    edges: List[Dict[str, Any]] = Field(default_factory=list)
    viewport: Optional[Dict[str, float]] = None
    groups: List[Dict[str, Any]] = Field(default_factory=list)


@router.put("/graph")
async def load_graph(body: FlowBody, service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    try:
        service.load_flow(body.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return serialize_graph(service)


# ── GET /node-types ───────────────────────────────────────────────────────────

@router.get("/node-types")
async def get_node_types() -> List[str]:
    return [t.value for t in NodeType]


# ── POST /nodes ───────────────────────────────────────────────────────────────

class CreateNodeBody(BaseModel):
    type: str
    id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[Dict[str, float]] = None


@router.post("/nodes", status_code=201)
async def create_node(body: CreateNodeBody, service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    try:
        if body.id:
            node = service.add_node(Node(body.id, body.type, data=body.data, position=body.position))
        else:
            node = service.add_node(body.type, body.type, data=body.data, position=body.position)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return node.to_dict()


# ── DELETE /nodes/:nodeId ─────────────────────────────────────────────────────

@router.delete("/nodes/{node_id}", status_code=204)
async def delete_node(node_id: str, service: GraphService = Depends(get_service)) -> Response:
    # Deleting a node that is already gone is not an error
    service.remove_node(node_id)
    return Response(status_code=204)


# ── PATCH /nodes/:nodeId/data ─────────────────────────────────────────────────

class NodeDataBody(BaseModel):
    data: Dict[str, Any]
    notify: bool = True


@router.patch("/nodes/{node_id}/data")
async def set_node_data(node_id: str, body: NodeDataBody,
                        service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    _require_node(service, node_id)
    node = service.set_data_props_for_node(node_id, body.data)
    refreshed = service.notify_downstream(node_id) if body.notify else []
    return {"node": node.to_dict(), "refreshed": refreshed}


# ── PUT /nodes/:nodeId/position ───────────────────────────────────────────────

class PositionBody(BaseModel):
    x: float
    y: float


@router.put("/nodes/{node_id}/position", status_code=204)
async def set_node_position(node_id: str, body: PositionBody,
                            service: GraphService = Depends(get_service)) -> Response:
    service.set_position(node_id, body.x, body.y)
    return Response(status_code=204)


# ── GET /nodes/:nodeId/output ─────────────────────────────────────────────────

@router.get("/nodes/{node_id}/output")
async def get_node_output(node_id: str, handle: Optional[str] = None,
                          service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    _require_node(service, node_id)
    try:
        values = service.output(node_id, handle, strict=True)
    except GraphError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return {"nodeId": node_id, "handle": handle, "output": serialize_value(values)}


# ── POST /nodes/:nodeId/pull ──────────────────────────────────────────────────

class PullBody(BaseModel):
    vars: Optional[List[str]] = None


@router.post("/nodes/{node_id}/pull")
async def pull_node_inputs(node_id: str, body: PullBody,
                           service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    node = _require_node(service, node_id)
    varnames = body.vars if body.vars is not None else node.declared_vars()
    try:
        pulled = service.pull_input_data(varnames, node_id)
    except GraphError as exc:
        logger.warning(f"pull on '{node_id}' failed: {exc}")
        raise HTTPException(status_code=409, detail=str(exc))
    return {"nodeId": node_id, "vars": serialize_pulled(pulled)}


# ── POST /edges ───────────────────────────────────────────────────────────────

class EdgeBody(BaseModel):
    source: str
    sourceHandle: Optional[str] = None
    target: str
    targetHandle: Optional[str] = None
    id: Optional[str] = None


@router.post("/edges", status_code=201)
async def add_edge(body: EdgeBody, service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    edge = service.connect(body.source, body.sourceHandle, body.target, body.targetHandle, edge_id=body.id)
    if edge is None:
        raise HTTPException(status_code=404, detail="Edge endpoint not found")
    return edge.to_dict()


# ── DELETE /edges/:edgeId ─────────────────────────────────────────────────────

@router.delete("/edges/{edge_id}", status_code=204)
async def delete_edge(edge_id: str, service: GraphService = Depends(get_service)) -> Response:
    service.remove_edge(edge_id)
    return Response(status_code=204)


# ── POST /groups ──────────────────────────────────────────────────────────────

class CreateGroupBody(BaseModel):
    name: str
    description: Optional[str] = None
    nodeIds: Optional[List[str]] = None


@router.post("/groups", status_code=201)
async def create_group(body: CreateGroupBody, service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    selected = body.nodeIds if body.nodeIds is not None else service.get_selected_nodes()
    try:
        group_id, composite = service.create_group(selected, body.name, body.description)
    except InsufficientSelection as exc:
        raise HTTPException(status_code=400, detail={"alert": str(exc)})
    return {"groupId": group_id, "node": composite.to_dict()}


# ── POST /groups/:nodeId/ungroup ──────────────────────────────────────────────

@router.post("/groups/{node_id}/ungroup")
async def ungroup(node_id: str, service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    try:
        result = service.ungroup(node_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if result is None:
        raise HTTPException(status_code=404, detail="Composite node not found")
    nodes, edges = result
    return {"nodes": [n.to_dict() for n in nodes], "edges": [e.to_dict() for e in edges]}


# ── PUT /groups/:nodeId/collapsed ─────────────────────────────────────────────

class CollapsedBody(BaseModel):
    isCollapsed: bool


@router.put("/groups/{node_id}/collapsed")
async def set_group_collapsed(node_id: str, body: CollapsedBody,
                              service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    node = service.set_group_collapsed(node_id, body.isCollapsed)
    if node is None:
        raise HTTPException(status_code=404, detail="Composite node not found")
    return node.to_dict()


# ── POST /selection/extract ───────────────────────────────────────────────────

class SelectionBody(BaseModel):
    nodeIds: List[str]


@router.post("/selection/extract")
async def extract_selection(body: SelectionBody, service: GraphService = Depends(get_service)) -> Dict[str, Any]:
    if len(set(body.nodeIds)) < 2:
        raise HTTPException(status_code=400, detail={"alert": "Select at least 2 nodes to create a flow"})
    return service.extract_selection(body.nodeIds)


# ── GET /llm-colors/:name ─────────────────────────────────────────────────────

@router.get("/llm-colors/{llm_name}")
async def get_llm_color(llm_name: str, state: GraphState = Depends(get_graph_state)) -> Dict[str, str]:
    return {"llm": llm_name, "color": state.colors.get_color_and_set_if_not_found(llm_name)}


@router.delete("/llm-colors", status_code=204)
async def reset_llm_colors(state: GraphState = Depends(get_graph_state)) -> Response:
    state.colors.reset()
    return Response(status_code=204)
