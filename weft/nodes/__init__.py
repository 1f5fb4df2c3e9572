"""Node definitions and helpers for building nodes."""

from weft.nodes.base import (
    NextHop,
    NodeDefinition,
    StepResult,
    data_port,
    exec_port,
    generate_port_id,
)
from weft.nodes.factory import (
    connect,
    create_atomic_node,
    create_iterate_node,
    create_molecular_node,
)

__all__ = [
    "NextHop",
    "NodeDefinition",
    "StepResult",
    "data_port",
    "exec_port",
    "generate_port_id",
    "connect",
    "create_atomic_node",
    "create_iterate_node",
    "create_molecular_node",
]
