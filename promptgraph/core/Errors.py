from typing import List, Sequence


class GraphError(ValueError):
    """Base class for errors raised by the graph engine."""


class DuplicateVariableName(GraphError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Duplicate variable name '{name}'. Template variables must be unique "
            f"(ignoring case) across a node and everything upstream of it; rename one of them."
        )


class CyclicDependency(GraphError):
    def __init__(self, path: Sequence[str]):
        self.path: List[str] = list(path)
        super().__init__(f"Cyclic variable dependency: {' -> '.join(self.path)}")


class MissingTableColumn(GraphError):
    def __init__(self, node_id: str, header: str):
        self.node_id = node_id
        self.header = header
        super().__init__(f"Could not find table column with source handle name '{header}' on node '{node_id}'")


class InsufficientSelection(GraphError):
    def __init__(self, count: int, minimum: int = 2):
        self.count = count
        self.minimum = minimum
        super().__init__(f"Select at least {minimum} nodes to create a group")


class UnknownNode(GraphError):
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node with id '{node_id}' does not exist")
