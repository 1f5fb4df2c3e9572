"""Node definition table entries and helpers shared by node modules.

A node definition is plain data plus function references, looked up by
operation type. There is no node class hierarchy: the engine dispatches on the
table entry's capabilities.

Definition contract:
    port_generator(node_id, config) -> (input_ports, output_ports)
    resolve_outputs(node, resolved_inputs, execution_context, meta, iteration)
        -> {output_port_id: value}
    process_step(node, triggered_port_id, nodes, connections, resolved_state,
                 meta, resolve) -> StepResult

Both callbacks may be plain functions or coroutines.
"""

import inspect
import math
import re
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from weft.core.graph import (
    Connection,
    LogicalCategory,
    NodeRecord,
    Port,
    PortKind,
    inbound_connections,
    outbound_connections,
)
from weft.utils.errors import InvalidInputTypeError, MissingInputError, NodeExecutionError

PortList = List[Port]
PortGenerator = Callable[[str, Dict[str, Any]], Tuple[PortList, PortList]]
ResolveFn = Callable[[str, str], Awaitable[Any]]
ResolveOutputs = Callable[..., Union[Dict[str, Any], Awaitable[Dict[str, Any]]]]
ProcessStep = Callable[..., Union["StepResult", Awaitable["StepResult"]]]


@dataclass
class NextHop:
    """One Execution connection to follow after a step.

    Attributes:
        port_id: Output port the pulse leaves through
        connection: Connection carrying the pulse
    """

    port_id: str
    connection: Connection


@dataclass
class StepResult:
    """Result returned by ``process_step``."""

    next_hops: List[NextHop] = field(default_factory=list)


@dataclass(frozen=True)
class NodeDefinition:
    """Table entry for one operation type.

    Attributes:
        operation_type: Key in the definition table
        name: Display name
        port_generator: Builds the default ports for a new node
        resolve_outputs: Computes Data outputs from resolved inputs
        process_step: Handles an Execution pulse (optional)
        description: Short help text
        default_config: Config a freshly created node starts with
        multi_input: Node grows extra Data inputs instead of accepting fan-in
        lazy_inputs: Data inputs read only by process_step, never resolved
            eagerly when another node pulls this node's outputs
        molecular: Node owns a sub-graph
    """

    operation_type: str
    name: str
    port_generator: PortGenerator
    resolve_outputs: Optional[ResolveOutputs] = None
    process_step: Optional[ProcessStep] = None
    description: str = ""
    default_config: Dict[str, Any] = field(default_factory=dict)
    multi_input: bool = False
    molecular: bool = False
    lazy_inputs: FrozenSet[str] = frozenset()

    @property
    def capabilities(self) -> FrozenSet[str]:
        tags = set()
        if self.resolve_outputs is not None:
            tags.add("resolve")
        if self.process_step is not None:
            tags.add("step")
        if self.multi_input:
            tags.add("multi_input")
        if self.molecular:
            tags.add("molecular")
        return frozenset(tags)


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if a callback returned a coroutine."""
    if inspect.isawaitable(value):
        return await value
    return value


# ----------------------------------------------------------------------
# Ports
# ----------------------------------------------------------------------


def generate_port_id(node_id: str, direction: str, name: str) -> str:
    """Deterministic port id, e.g. ``add1_in_number_1``."""
    slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    return f"{node_id}_{direction}_{slug}"


def data_port(
    node_id: str,
    direction: str,
    name: str,
    category: LogicalCategory = LogicalCategory.ANY,
    description: Optional[str] = None,
) -> Port:
    return Port(
        id=generate_port_id(node_id, direction, name),
        name=name,
        kind=PortKind.DATA,
        category=category,
        description=description,
    )


def exec_port(
    node_id: str, direction: str, name: str, description: Optional[str] = None
) -> Port:
    return Port(
        id=generate_port_id(node_id, direction, name),
        name=name,
        kind=PortKind.EXECUTION,
        category=LogicalCategory.VOID,
        description=description,
    )


def input_port_or_fail(node: NodeRecord, name: str) -> Port:
    port = node.find_input_port(name)
    if port is None:
        raise NodeExecutionError(node.id, f"Input port '{name}' not found on '{node.name}'")
    return port


def output_port_or_fail(node: NodeRecord, name: str) -> Port:
    port = node.find_output_port(name)
    if port is None:
        raise NodeExecutionError(node.id, f"Output port '{name}' not found on '{node.name}'")
    return port


def input_value(
    node: NodeRecord, name: str, resolved_inputs: Mapping[str, Any], default: Any = None
) -> Any:
    """Read a resolved Data input by port name inside ``resolve_outputs``."""
    value = resolved_inputs.get(input_port_or_fail(node, name).id)
    return default if value is None else value


def outputs(node: NodeRecord, values: Dict[str, Any]) -> Dict[str, Any]:
    """Map output port names to port ids for a ``resolve_outputs`` result."""
    return {output_port_or_fail(node, name).id: value for name, value in values.items()}


def exec_hops(
    node: NodeRecord, port_name: str, connections: List[Connection]
) -> List[NextHop]:
    """Next hops for every connection leaving a named Execution output."""
    port = output_port_or_fail(node, port_name)
    return [
        NextHop(port_id=port.id, connection=c)
        for c in outbound_connections(connections, node.id, port.id)
    ]


async def pull_input(
    node: NodeRecord,
    port_name: str,
    connections: List[Connection],
    resolve: ResolveFn,
    required: bool = False,
    default: Any = None,
) -> Any:
    """Resolve a node's own Data input from inside ``process_step``.

    A connected input is pulled through ``resolve`` as a nested sub-pass.
    Otherwise the literal override on the node is used.

    Raises:
        MissingInputError: If ``required`` and the input has no source
    """
    port = input_port_or_fail(node, port_name)
    inbound = inbound_connections(connections, node.id, port.id)
    if inbound:
        return await resolve(inbound[0].from_node_id, inbound[0].from_port_id)
    overrides = node.input_port_overrides
    if port.id in overrides:
        return overrides[port.id]
    if required:
        raise MissingInputError(node.id, port_name)
    return default


# ----------------------------------------------------------------------
# Value coercion
# ----------------------------------------------------------------------


def to_number(node_id: str, port_name: str, value: Any) -> Union[int, float]:
    """Coerce a resolved value to a number.

    Numeric strings are parsed; booleans and non-numeric values are rejected.

    Raises:
        InvalidInputTypeError: If the value is not numeric
    """
    if isinstance(value, bool):
        raise InvalidInputTypeError(node_id, port_name, "a number", value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            raise InvalidInputTypeError(node_id, port_name, "a number", value)
        return value
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise InvalidInputTypeError(node_id, port_name, "a number", value)
