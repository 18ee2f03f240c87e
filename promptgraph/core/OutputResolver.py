"""
Output extraction: what value(s) a node's output socket currently produces.

Dispatches on the node variant:
  - project nodes expose their named attributes,
  - table nodes expose one column per socket (keyed by column header),
  - nodes holding `fields` expose those fields,
  - anything else stores its output inline under data[socket_key].

Resolution is a pure read of the graph.
"""
from typing import Any, Dict, List, Optional, Union
import logging

from .Errors import MissingTableColumn
from .GraphPrimitives import Graph, Node
from .Template import escape_braces
from .Types import ATTRIBUTE_SOCKET_PREFIX, ROW_UID_KEY, NodeType, TemplateVarInfo

logger = logging.getLogger(__name__)

ResolvedValue = Union[str, TemplateVarInfo, Any]


class TableColumn:
    __slots__ = ("key", "header")

    def __init__(self, key: str, header: str):
        self.key = key
        self.header = header

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["TableColumn"]:
        if not isinstance(raw, dict) or "key" not in raw:
            return None
        return cls(str(raw["key"]), str(raw.get("header", raw["key"])))


class TableData:
    """Typed view over a table node's data: its columns and the rows to output."""

    def __init__(self, columns: List[TableColumn], rows: List[Dict[str, Any]]):
        self.columns = columns
        self.rows = rows

    @classmethod
    def from_node(cls, node: Node) -> Optional["TableData"]:
        data = node.data
        if "columns" not in data or ("rows" not in data and "sel_rows" not in data):
            return None
        # A selected subset of rows, when present, takes precedence.
        rows = data.get("sel_rows")
        if rows is None:
            rows = data.get("rows")
        columns = [c for c in (TableColumn.from_dict(raw) for raw in data.get("columns") or []) if c is not None]
        return cls(columns, [r for r in rows or [] if isinstance(r, dict)])

    def column_for_header(self, header: str) -> Optional[TableColumn]:
        for col in self.columns:
            if col.header == header:
                return col
        return None

    def header_lookup(self) -> Dict[str, str]:
        return {c.key: c.header for c in self.columns}


def _cell_to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_blank(value: Any) -> bool:
    return not value or (isinstance(value, str) and value.strip() == "")


def is_empty_row(row: Dict[str, Any]) -> bool:
    """True when every cell except the row's internal id is blank."""
    return all(key == ROW_UID_KEY or _is_blank(value) for key, value in row.items())


def _resolve_project(node: Node, socket_key: Optional[str]) -> Optional[List[Any]]:
    attrs: Dict[str, Any] = node.data["projectAttributes"]
    if socket_key and socket_key.startswith(ATTRIBUTE_SOCKET_PREFIX):
        attr_name = socket_key[len(ATTRIBUTE_SOCKET_PREFIX):]
        value = attrs.get(attr_name)
        return [value] if value else None
    return list(attrs.values())


def _resolve_table(node: Node, socket_key: Optional[str], strict: bool) -> Optional[List[TemplateVarInfo]]:
    table = TableData.from_node(node)
    if table is None:
        return None

    src_col = table.column_for_header(socket_key) if socket_key is not None else None
    if src_col is None:
        logger.error(f"Could not find table column with source handle name {socket_key} on node '{node.id}'")
        if strict:
            raise MissingTableColumn(node.id, str(socket_key))
        return None

    # metavars are keyed by column header, the name users see
    headers = table.header_lookup()
    result: List[TemplateVarInfo] = []
    for row in table.rows:
        if is_empty_row(row):
            continue
        metavars = {
            headers.get(key, key): _cell_to_str(value)
            for key, value in row.items()
            if key != src_col.key and key != ROW_UID_KEY
        }
        text = escape_braces(_cell_to_str(row[src_col.key])) if src_col.key in row else ""
        result.append(TemplateVarInfo(text, metavars, row.get(ROW_UID_KEY)))
    return result


def _resolve_fields(node: Node) -> List[Any]:
    fields = node.data["fields"]
    if isinstance(fields, list):
        return fields
    if not isinstance(fields, dict):
        return []
    if "fields_visibility" in node.data:
        visibility = node.data.get("fields_visibility") or {}
        return [value for fid, value in fields.items() if visibility.get(fid) is not False]
    return list(fields.values())


def resolve_output(graph: Graph, node_id: str, socket_key: Optional[str] = None,
                   strict: bool = False) -> Optional[Union[List[ResolvedValue], Any]]:
    """
    Compute what output socket *socket_key* of node *node_id* currently produces.

    Returns None for an unknown node. For a table node whose columns do not
    include *socket_key* the result is None as well, unless *strict* is set,
    in which case MissingTableColumn is raised so the wiring error can be shown.
    """
    src_node = graph.get_node(node_id)
    if src_node is None:
        return None

    if src_node.type == NodeType.PROJECT and src_node.data.get("projectAttributes"):
        return _resolve_project(src_node, socket_key)

    if src_node.type == NodeType.TABLE:
        return _resolve_table(src_node, socket_key, strict)

    if "fields" in src_node.data:
        return _resolve_fields(src_node)

    # Output stored inline on 'data' under the same id as the handle
    if socket_key is None:
        return None
    return src_node.data.get(socket_key)
