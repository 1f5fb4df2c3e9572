"""Core graph records for Weft.

Nodes, ports and connections are passive records. The editor owns and mutates
them between passes; the engine only reads them.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class LogicalCategory(str, Enum):
    """Closed set of value tags carried by Data ports."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    ANY = "any"
    VOID = "void"


class PortKind(str, Enum):
    """Data ports carry values, Execution ports carry control pulses."""

    DATA = "data"
    EXECUTION = "execution"


class OperationType(str, Enum):
    """Operation types known to the built-in node library."""

    # Core
    VALUE_PROVIDER = "VALUE_PROVIDER"
    ASSIGN = "ASSIGN"
    BRANCH = "BRANCH"
    LOG_VALUE = "LOG_VALUE"
    COMMENT = "COMMENT"
    FRAME = "FRAME"

    # Math
    ADDITION = "ADDITION"
    SUBTRACT = "SUBTRACT"
    MULTIPLY = "MULTIPLY"
    DIVIDE = "DIVIDE"
    MODULO = "MODULO"
    RANDOM_NUMBER = "RANDOM_NUMBER"
    ROUND = "ROUND"
    FLOOR = "FLOOR"
    CEIL = "CEIL"

    # Logic
    LOGICAL_AND = "LOGICAL_AND"
    LOGICAL_OR = "LOGICAL_OR"
    LOGICAL_XOR = "LOGICAL_XOR"
    EQUALS = "EQUALS"
    GREATER_THAN = "GREATER_THAN"
    LESS_THAN = "LESS_THAN"
    IS_EMPTY = "IS_EMPTY"
    NOT = "NOT"
    SWITCH = "SWITCH"

    # Data structures
    CONCATENATE = "CONCATENATE"
    UNION = "UNION"
    TO_STRING = "TO_STRING"
    GET_ITEM_AT_INDEX = "GET_ITEM_AT_INDEX"
    COLLECTION_LENGTH = "COLLECTION_LENGTH"
    GET_PROPERTY = "GET_PROPERTY"
    SET_PROPERTY = "SET_PROPERTY"
    STRING_LENGTH = "STRING_LENGTH"
    SPLIT_STRING = "SPLIT_STRING"
    CONSTRUCT_OBJECT = "CONSTRUCT_OBJECT"

    # Flow control
    ON_EVENT = "ON_EVENT"
    STATE = "STATE"
    INPUT_GRAPH = "INPUT_GRAPH"
    OUTPUT_GRAPH = "OUTPUT_GRAPH"
    LOOP_ITEM = "LOOP_ITEM"
    ITERATION_RESULT = "ITERATION_RESULT"
    MOLECULAR = "MOLECULAR"
    ITERATE = "ITERATE"

    # Channels
    SEND_DATA = "SEND_DATA"
    RECEIVE_DATA = "RECEIVE_DATA"


# Nodes the stepper and resolver skip entirely.
ORGANIZATIONAL_TYPES = frozenset({OperationType.COMMENT.value, OperationType.FRAME.value})


class Port(BaseModel):
    """A typed connection point owned by exactly one node."""

    id: str
    name: str
    kind: PortKind = PortKind.DATA
    category: LogicalCategory = LogicalCategory.ANY
    description: Optional[str] = None

    @property
    def is_execution(self) -> bool:
        return self.kind == PortKind.EXECUTION


class Connection(BaseModel):
    """A directed wire from an output port to an input port."""

    model_config = ConfigDict(frozen=True)

    id: str
    from_node_id: str
    from_port_id: str
    to_node_id: str
    to_port_id: str


class NodeRecord(BaseModel):
    """Fields and port lookups shared by atomic and molecular nodes."""

    id: str
    name: str
    operation_type: str
    input_ports: List[Port] = Field(default_factory=list)
    output_ports: List[Port] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)

    def get_input_port(self, port_id: str) -> Optional[Port]:
        return next((p for p in self.input_ports if p.id == port_id), None)

    def get_output_port(self, port_id: str) -> Optional[Port]:
        return next((p for p in self.output_ports if p.id == port_id), None)

    def find_input_port(self, name: str) -> Optional[Port]:
        return next((p for p in self.input_ports if p.name == name), None)

    def find_output_port(self, name: str) -> Optional[Port]:
        return next((p for p in self.output_ports if p.name == name), None)

    def data_inputs(self) -> List[Port]:
        return [p for p in self.input_ports if p.kind == PortKind.DATA]

    @property
    def input_port_overrides(self) -> Dict[str, Any]:
        """Literal values keyed by input port id, set in the editor."""
        return self.config.get("input_port_overrides") or {}

    @property
    def is_organizational(self) -> bool:
        return self.operation_type in ORGANIZATIONAL_TYPES


class AtomicNode(NodeRecord):
    """A leaf node with no sub-graph."""

    kind: Literal["atomic"] = "atomic"


class SubGraph(BaseModel):
    """Nodes and connections owned by a molecular node."""

    nodes: List["Node"] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)


class MolecularNode(NodeRecord):
    """A node that owns a nested sub-graph.

    Hierarchical containers expose ports derived from INPUT_GRAPH and
    OUTPUT_GRAPH markers inside ``sub_graph``. The ITERATE specialization
    additionally reads ``config["max_iterations"]``.
    """

    kind: Literal["molecular"] = "molecular"
    sub_graph: SubGraph = Field(default_factory=SubGraph)


Node = Annotated[Union[AtomicNode, MolecularNode], Field(discriminator="kind")]

SubGraph.model_rebuild()


def find_node(nodes: List[NodeRecord], node_id: str) -> Optional[NodeRecord]:
    """Find a node by id in a node list."""
    return next((n for n in nodes if n.id == node_id), None)


def inbound_connections(
    connections: List[Connection], node_id: str, port_id: str
) -> List[Connection]:
    """Connections ending at the given input port, in stored order."""
    return [
        c for c in connections if c.to_node_id == node_id and c.to_port_id == port_id
    ]


def outbound_connections(
    connections: List[Connection], node_id: str, port_id: str
) -> List[Connection]:
    """Connections leaving the given output port, in stored order."""
    return [
        c
        for c in connections
        if c.from_node_id == node_id and c.from_port_id == port_id
    ]
