from enum import Enum
from typing import Any, Dict, Optional


class NodeType(str, Enum):
    """Closed set of node variants the editor knows how to render."""
    TEXTFIELDS = "textfields"
    PROMPT = "prompt"
    CHAT = "chat"
    SIMPLEVAL = "simpleval"
    EVALUATOR = "evaluator"
    LLMEVAL = "llmeval"
    MULTIEVAL = "multieval"
    VIS = "vis"
    INSPECT = "inspect"
    SCRIPT = "script"
    CSV = "csv"
    TABLE = "table"
    COMMENT = "comment"
    JOIN = "join"
    SPLIT = "split"
    PROCESSOR = "processor"
    PROJECT = "project"
    TASK = "task"
    GROUP_NODE = "groupNode"
    DYNAMIC_PROMPT = "dynamicprompt"

    @staticmethod
    def validate(value: Any) -> bool:
        return coerce_node_type(value) is not None


def coerce_node_type(value: Any) -> Optional[NodeType]:
    if isinstance(value, NodeType):
        return value
    if not isinstance(value, str):
        return None
    try:
        return NodeType(value)
    except ValueError:
        return None


# Nodes whose cached display must be redrawn when an upstream node changes.
REFRESHABLE_NODE_TYPES = frozenset({
    NodeType.EVALUATOR,
    NodeType.PROCESSOR,
    NodeType.PROMPT,
    NodeType.INSPECT,
    NodeType.VIS,
    NodeType.LLMEVAL,
    NodeType.TEXTFIELDS,
    NodeType.CHAT,
    NodeType.SIMPLEVAL,
    NodeType.JOIN,
    NodeType.SPLIT,
    NodeType.PROJECT,
})

# Nodes that remember which node feeds them (data["input"]) on connect.
INPUT_TRACKING_NODE_TYPES = frozenset({
    NodeType.VIS,
    NodeType.INSPECT,
    NodeType.SIMPLEVAL,
})

# Reserved row key holding a table row's internal id.
ROW_UID_KEY = "__uid"

# Project nodes expose one output socket per attribute, named with this prefix.
ATTRIBUTE_SOCKET_PREFIX = "attribute-"


class TemplateVarInfo:
    """
    A resolved value travelling along an edge.

    `metavars` carries sibling values (e.g. the other columns of a table row)
    so downstream consumers can report where a value came from.
    `associate_id` lets the execution layer re-correlate values that were
    produced by the same source row.
    """
    __slots__ = ("text", "metavars", "associate_id")

    def __init__(self, text: str, metavars: Optional[Dict[str, str]] = None, associate_id: Optional[str] = None):
        self.text = text
        self.metavars = metavars if metavars is not None else {}
        self.associate_id = associate_id

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"text": self.text, "metavars": dict(self.metavars)}
        if self.associate_id is not None:
            result["associate_id"] = self.associate_id
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TemplateVarInfo):
            return NotImplemented
        return (self.text, self.metavars, self.associate_id) == (other.text, other.metavars, other.associate_id)

    def __repr__(self):
        return f"TemplateVarInfo({self.text!r}, metavars={self.metavars!r}, associate_id={self.associate_id!r})"
