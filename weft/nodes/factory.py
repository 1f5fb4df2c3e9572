"""Helpers for building nodes and connections in code.

The editor normally creates nodes; these helpers do the same for tests,
scripts and importers, using each definition's port generator and default
config.
"""

import uuid
from typing import Any, Dict, List, Optional, Union

from weft.core.graph import (
    AtomicNode,
    Connection,
    LogicalCategory,
    MolecularNode,
    NodeRecord,
    OperationType,
    SubGraph,
)
from weft.nodes.base import data_port
from weft.utils.errors import GraphValidationError
from weft.utils.registry import NodeRegistry

_default_registry: Optional[NodeRegistry] = None


def _registry(registry: Optional[NodeRegistry]) -> NodeRegistry:
    global _default_registry
    if registry is not None:
        return registry
    if _default_registry is None:
        _default_registry = NodeRegistry()
    return _default_registry


def _new_id(prefix: str) -> str:
    return f"{prefix.lower()}_{uuid.uuid4().hex[:8]}"


def _type_key(operation_type: Union[str, OperationType]) -> str:
    return operation_type.value if isinstance(operation_type, OperationType) else operation_type


def _apply_overrides(node: NodeRecord, overrides: Optional[Dict[str, Any]]) -> None:
    if not overrides:
        return
    by_id = dict(node.input_port_overrides)
    for port_name, value in overrides.items():
        port = node.find_input_port(port_name)
        if port is None:
            raise GraphValidationError(
                f"Node '{node.id}' has no input port named '{port_name}'"
            )
        by_id[port.id] = value
    node.config["input_port_overrides"] = by_id


def create_atomic_node(
    operation_type: Union[str, OperationType],
    node_id: Optional[str] = None,
    name: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    registry: Optional[NodeRegistry] = None,
) -> AtomicNode:
    """Create an atomic node with generated ports.

    Args:
        operation_type: Registered operation type
        node_id: Node id (generated when omitted)
        name: Display name (defaults to the definition name)
        config: Config merged over the definition's default config
        overrides: Literal input values keyed by input port name
        registry: Registry to read the definition from

    Returns:
        The new node

    Example:
        >>> five = create_atomic_node("VALUE_PROVIDER", "five", config={"value": 5})
        >>> add = create_atomic_node("ADDITION", "add", overrides={"Number 2": 7})
    """
    definition = _registry(registry).get(_type_key(operation_type))
    node_id = node_id or _new_id(definition.operation_type)
    merged = {**definition.default_config, **(config or {})}
    input_ports, output_ports = definition.port_generator(node_id, merged)
    node = AtomicNode(
        id=node_id,
        name=name or definition.name,
        operation_type=definition.operation_type,
        input_ports=input_ports,
        output_ports=output_ports,
        config=merged,
    )
    _apply_overrides(node, overrides)
    return node


def create_molecular_node(
    nodes: List[NodeRecord],
    connections: List[Connection],
    node_id: Optional[str] = None,
    name: str = "Molecular Node",
    config: Optional[Dict[str, Any]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> MolecularNode:
    """Create a hierarchical node whose ports mirror its sub-graph markers.

    Every INPUT_GRAPH marker becomes a Data input and every OUTPUT_GRAPH marker
    a Data output, named by the marker's ``external_port_name``.
    """
    node_id = node_id or _new_id("molecular")
    input_ports = []
    output_ports = []
    for marker in nodes:
        port_name = marker.config.get("external_port_name")
        category = marker.config.get("external_port_category", LogicalCategory.ANY)
        if marker.operation_type == OperationType.INPUT_GRAPH.value and port_name:
            input_ports.append(data_port(node_id, "in", port_name, category))
        elif marker.operation_type == OperationType.OUTPUT_GRAPH.value and port_name:
            output_ports.append(data_port(node_id, "out", port_name, category))
    node = MolecularNode(
        id=node_id,
        name=name,
        operation_type=OperationType.MOLECULAR.value,
        input_ports=input_ports,
        output_ports=output_ports,
        config=dict(config or {}),
        sub_graph=SubGraph(nodes=list(nodes), connections=list(connections)),
    )
    _apply_overrides(node, overrides)
    return node


def create_iterate_node(
    nodes: List[NodeRecord],
    connections: List[Connection],
    node_id: Optional[str] = None,
    name: Optional[str] = None,
    max_iterations: Optional[int] = None,
    overrides: Optional[Dict[str, Any]] = None,
    registry: Optional[NodeRegistry] = None,
) -> MolecularNode:
    """Create an ITERATE node around a loop body sub-graph.

    The body should contain a LOOP_ITEM node (its "Loop Body" output starts
    each iteration) and usually an ITERATION_RESULT node.
    """
    definition = _registry(registry).get(OperationType.ITERATE.value)
    node_id = node_id or _new_id(definition.operation_type)
    config = dict(definition.default_config)
    if max_iterations is not None:
        config["max_iterations"] = max_iterations
    input_ports, output_ports = definition.port_generator(node_id, config)
    node = MolecularNode(
        id=node_id,
        name=name or definition.name,
        operation_type=definition.operation_type,
        input_ports=input_ports,
        output_ports=output_ports,
        config=config,
        sub_graph=SubGraph(nodes=list(nodes), connections=list(connections)),
    )
    _apply_overrides(node, overrides)
    return node


def connect(
    from_node: NodeRecord,
    from_port_name: str,
    to_node: NodeRecord,
    to_port_name: str,
    connection_id: Optional[str] = None,
) -> Connection:
    """Build a connection between two ports addressed by name.

    Raises:
        GraphValidationError: If either port does not exist
    """
    from_port = from_node.find_output_port(from_port_name)
    if from_port is None:
        raise GraphValidationError(
            f"Node '{from_node.id}' has no output port named '{from_port_name}'"
        )
    to_port = to_node.find_input_port(to_port_name)
    if to_port is None:
        raise GraphValidationError(
            f"Node '{to_node.id}' has no input port named '{to_port_name}'"
        )
    return Connection(
        id=connection_id or f"{from_port.id}->{to_port.id}",
        from_node_id=from_node.id,
        from_port_id=from_port.id,
        to_node_id=to_node.id,
        to_port_id=to_port.id,
    )
