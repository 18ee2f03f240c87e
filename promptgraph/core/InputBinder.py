"""
Input binding: pull every value a node's template variables are bound to.

For each requested variable, every inbound edge targeting that variable is
resolved through the output resolver and the results are concatenated in edge
order. When the upstream node itself declares variables (data['vars']), those
are pulled too, recursively, so that the whole upstream closure is bound in a
single pass.

Two invariants hold over that closure:
  - variable names are unique ignoring case (DuplicateVariableName),
  - no node is re-entered while it is still being resolved (CyclicDependency).
Either violation aborts the pull; no partial result is returned.
"""
from typing import Dict, List, Sequence, Set, Tuple
import logging

from .Errors import CyclicDependency, DuplicateVariableName
from .GraphPrimitives import Graph
from .OutputResolver import ResolvedValue, resolve_output

logger = logging.getLogger(__name__)

PulledData = Dict[str, List[ResolvedValue]]


def _collect(graph: Graph,
             variable_names: Sequence[str],
             node_id: str,
             seen: Set[str],
             path: Tuple[str, ...],
             pulled: PulledData) -> None:
    for varname in variable_names:
        lowered = str(varname).lower()
        if lowered in seen:
            raise DuplicateVariableName(str(varname))
        seen.add(lowered)

        for edge in graph.get_incoming_edges(node_id, varname):
            # A connected variable always shows up, even if nothing flows yet.
            bucket = pulled.setdefault(varname, [])

            out = resolve_output(graph, edge.source, edge.source_handle) if edge.source_handle is not None else None
            if not out or not isinstance(out, list):
                logger.debug(f"pull: '{edge.source}.{edge.source_handle}' produced nothing for '{node_id}.{varname}'")
                continue
            bucket.extend(out)

            src_node = graph.get_node(edge.source)
            n_vars = src_node.declared_vars() if src_node is not None else []
            if not n_vars:
                continue
            if edge.source in path:
                raise CyclicDependency(path[path.index(edge.source):] + (edge.source,))
            logger.debug(f"pull: recursing into '{edge.source}' for vars {n_vars}")
            _collect(graph, n_vars, edge.source, seen, path + (edge.source,), pulled)


def pull_input_data(graph: Graph, variable_names: Sequence[str], target_node_id: str) -> PulledData:
    """
    Bind *variable_names* of node *target_node_id* to their upstream values.

    Returns a mapping from variable name to the concatenated list of values
    (bare strings or TemplateVarInfo) fed into it. Names without any inbound
    edge are absent from the mapping.

    Raises DuplicateVariableName or CyclicDependency for the whole pull.
    """
    pulled: PulledData = {}
    _collect(graph, list(variable_names), target_node_id, set(), (target_node_id,), pulled)
    return pulled


def get_immediate_input_node_types(graph: Graph, target_handles: Sequence[str], node_id: str) -> List[str]:
    """Types of the nodes wired straight into any of *target_handles* on *node_id*."""
    handles = set(target_handles)
    types: List[str] = []
    for edge in graph.input_edges_for_node(node_id):
        if isinstance(edge.target_handle, str) and edge.target_handle in handles:
            src_node = graph.get_node(edge.source)
            if src_node is not None:
                types.append(src_node.type.value)
    return types

