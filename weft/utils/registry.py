"""Node definition registry.

This module provides the dispatch table that maps an operation type to its
:class:`~weft.nodes.base.NodeDefinition`. The engine looks definitions up here
instead of calling methods on node objects.
"""

import logging
from typing import Dict, Iterable, List, Optional

from weft.nodes.base import NodeDefinition
from weft.utils.errors import InvalidNodeTypeError

logger = logging.getLogger(__name__)


class NodeRegistry:
    """Registry of node definitions keyed by operation type.

    Built-in definitions are registered on construction. Applications add their
    own operation types, or replace built-ins, with :meth:`register`.

    Example:
        >>> registry = NodeRegistry()
        >>> registry.register(NodeDefinition(
        ...     operation_type="DOUBLE",
        ...     name="Double",
        ...     port_generator=double_ports,
        ...     resolve_outputs=resolve_double,
        ... ))
        >>> registry.get("DOUBLE").name
        'Double'
    """

    def __init__(self, include_builtins: bool = True):
        """Initialize registry.

        Args:
            include_builtins: Register the built-in node library
        """
        self._definitions: Dict[str, NodeDefinition] = {}

        if include_builtins:
            self._register_builtin_nodes()

    def _register_builtin_nodes(self) -> None:
        from weft.nodes import arithmetic, channels, core, data, flow, logic

        for module in (core, arithmetic, logic, data, flow, channels):
            self.register_all(module.DEFINITIONS)

    def register(self, definition: NodeDefinition) -> None:
        """Register a definition, replacing any existing one for its type."""
        if definition.operation_type in self._definitions:
            logger.warning(
                "Node definition for operation type '%s' is being overwritten.",
                definition.operation_type,
            )
        self._definitions[definition.operation_type] = definition

    def register_all(self, definitions: Iterable[NodeDefinition]) -> None:
        for definition in definitions:
            self.register(definition)

    def get(self, operation_type: str) -> NodeDefinition:
        """Get the definition for an operation type.

        Raises:
            InvalidNodeTypeError: If no definition is registered
        """
        definition = self._definitions.get(operation_type)
        if definition is None:
            available = ", ".join(sorted(self._definitions.keys()))
            raise InvalidNodeTypeError(
                f"Unknown operation type: '{operation_type}'. Available types: {available}"
            )
        return definition

    def find(self, operation_type: str) -> Optional[NodeDefinition]:
        return self._definitions.get(operation_type)

    def has(self, operation_type: str) -> bool:
        return operation_type in self._definitions

    def list_operation_types(self) -> List[str]:
        return list(self._definitions.keys())

    def __len__(self) -> int:
        return len(self._definitions)

    def __repr__(self) -> str:
        return f"NodeRegistry(definitions={len(self._definitions)})"
