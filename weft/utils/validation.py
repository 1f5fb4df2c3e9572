"""Validation utilities for graph construction."""

from collections import Counter
from typing import List, Optional, Sequence

from weft.core.graph import (
    Connection,
    LogicalCategory,
    MolecularNode,
    NodeRecord,
    Port,
    find_node,
    inbound_connections,
)
from weft.utils.errors import GraphValidationError, InvalidNodeTypeError
from weft.utils.registry import NodeRegistry


def categories_compatible(output: LogicalCategory, target: LogicalCategory) -> bool:
    """Check whether a value of one logical category may flow into another.

    ANY is compatible with every category; VOID only with VOID.
    """
    if output == LogicalCategory.VOID or target == LogicalCategory.VOID:
        return output == target
    if output == LogicalCategory.ANY or target == LogicalCategory.ANY:
        return True
    return output == target


def check_connection(
    from_node: NodeRecord,
    from_port: Port,
    to_node: NodeRecord,
    to_port: Port,
    connections: Sequence[Connection] = (),
) -> None:
    """Check that a new connection between two ports is allowed.

    Args:
        from_node: Source node
        from_port: Output port on the source node
        to_node: Target node
        to_port: Input port on the target node
        connections: Connections already in the graph

    Raises:
        GraphValidationError: If the connection is not allowed
    """
    if from_node.id == to_node.id:
        raise GraphValidationError(f"Node '{from_node.id}' cannot connect to itself")

    if from_port.kind != to_port.kind:
        raise GraphValidationError(
            f"Cannot connect {from_port.kind.value} port '{from_port.name}' on "
            f"'{from_node.id}' to {to_port.kind.value} port '{to_port.name}' on '{to_node.id}'"
        )

    if not from_port.is_execution and not categories_compatible(
        from_port.category, to_port.category
    ):
        raise GraphValidationError(
            f"Category mismatch: '{from_port.name}' ({from_port.category.value}) -> "
            f"'{to_port.name}' ({to_port.category.value})"
        )

    # Multi-input nodes grow extra ports; every Data input still takes one connection.
    if not to_port.is_execution:
        if inbound_connections(list(connections), to_node.id, to_port.id):
            raise GraphValidationError(
                f"Input port '{to_port.name}' on '{to_node.id}' already has a connection"
            )


def can_connect(
    from_node: NodeRecord,
    from_port: Port,
    to_node: NodeRecord,
    to_port: Port,
    connections: Sequence[Connection] = (),
) -> bool:
    """Return True if :func:`check_connection` accepts the connection."""
    try:
        check_connection(from_node, from_port, to_node, to_port, connections)
    except GraphValidationError:
        return False
    return True


def validate_graph(
    nodes: List[NodeRecord],
    connections: List[Connection],
    registry: Optional[NodeRegistry] = None,
) -> None:
    """Validate graph structure.

    Checks for:
    - Unique node ids
    - Known operation types (when a registry is given)
    - Connections whose endpoints and ports exist
    - Matching port kinds and compatible categories
    - At most one inbound connection per single-input Data port

    Molecular sub-graphs are validated recursively.

    Raises:
        GraphValidationError: If validation fails
    """
    duplicates = [node_id for node_id, n in Counter(n.id for n in nodes).items() if n > 1]
    if duplicates:
        raise GraphValidationError(f"Duplicate node ids: {', '.join(sorted(duplicates))}")

    if registry is not None:
        for node in nodes:
            try:
                registry.get(node.operation_type)
            except InvalidNodeTypeError as e:
                raise GraphValidationError(f"Node '{node.id}': {e}") from e

    seen: List[Connection] = []
    for connection in connections:
        from_node = find_node(nodes, connection.from_node_id)
        to_node = find_node(nodes, connection.to_node_id)
        if from_node is None or to_node is None:
            missing = connection.from_node_id if from_node is None else connection.to_node_id
            raise GraphValidationError(
                f"Connection '{connection.id}' references unknown node '{missing}'"
            )

        from_port = from_node.get_output_port(connection.from_port_id)
        to_port = to_node.get_input_port(connection.to_port_id)
        if from_port is None or to_port is None:
            raise GraphValidationError(
                f"Connection '{connection.id}' references an unknown port"
            )

        check_connection(from_node, from_port, to_node, to_port, seen)
        seen.append(connection)

    for node in nodes:
        if isinstance(node, MolecularNode):
            validate_graph(node.sub_graph.nodes, node.sub_graph.connections, registry)
