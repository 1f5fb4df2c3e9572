"""Scopes, hierarchical sub-graphs and bounded loops.

A scope is the node and connection list a pass is currently working in, plus
the values pinned into it from outside (event payloads, sub-graph inputs, loop
results). The root graph is the outermost scope; every molecular node opens a
child scope over its sub-graph.

The :class:`ScopeExecutor` evaluates hierarchical nodes for the resolver and
drives ITERATE loops for the stepper. Loops never recurse on the Python stack:
each loop is a :class:`LoopFrame` on the stepper's explicit stack, so a pass
can pause inside an iteration and resume exactly there.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING, Union

from weft.core.events import EventEmitter, EventType, ExecutionEvent
from weft.core.graph import (
    Connection,
    MolecularNode,
    NodeRecord,
    OperationType,
    inbound_connections,
)
from weft.core.state import ExecutionMetaState, IterationData, ResolvedState
from weft.nodes.base import exec_hops, output_port_or_fail, pull_input
from weft.utils.config import DEFAULT_MAX_ITERATIONS
from weft.utils.errors import (
    InvalidInputTypeError,
    NodeExecutionError,
    TerminalReason,
    WeftError,
)

if TYPE_CHECKING:
    from weft.core.resolver import ResolveContext, ValueResolver
    from weft.nodes.base import NodeDefinition

logger = logging.getLogger(__name__)


@dataclass
class Scope:
    """Node list, connection list and pinned values of one graph level.

    Attributes:
        nodes: Nodes of this level
        connections: Connections of this level
        pins: Values fixed from outside, seeded into every memo of this scope
        owner_id: Molecular node that owns this level (None for the root)
        parent: Enclosing scope
        iteration: Current item and index for LOOP_ITEM nodes
        loop: Loop frame driving this scope, for ITERATE bodies
    """

    nodes: List[NodeRecord]
    connections: List[Connection]
    pins: ResolvedState = field(default_factory=dict)
    owner_id: Optional[str] = None
    parent: Optional["Scope"] = field(default=None, repr=False)
    iteration: Optional[IterationData] = None
    loop: Optional["LoopFrame"] = field(default=None, repr=False)

    @property
    def depth(self) -> int:
        return 0 if self.parent is None else self.parent.depth + 1

    def child(self, node: MolecularNode, pins: Optional[ResolvedState] = None) -> "Scope":
        return Scope(
            nodes=node.sub_graph.nodes,
            connections=node.sub_graph.connections,
            pins=dict(pins or {}),
            owner_id=node.id,
            parent=self,
        )


@dataclass
class PendingHop:
    """An Execution pulse waiting to arrive at a node input."""

    node_id: str
    port_id: str
    connection_id: Optional[str]
    scope: Scope = field(repr=False)


@dataclass
class LoopFrame:
    """Progress of one running ITERATE node."""

    node: MolecularNode
    items: List[Any]
    limit: int
    body_scope: Scope = field(repr=False)
    parent_scope: Scope = field(repr=False)
    index: int = 0
    results: List[Any] = field(default_factory=list)
    in_iteration: bool = False
    halted: bool = False
    saved_slot: Any = None


StackItem = Union[PendingHop, LoopFrame]


@dataclass
class FlowState:
    """Everything needed to continue an execution flow after a pause."""

    root: Scope
    stack: List[StackItem] = field(default_factory=list)
    resolved_state: ResolvedState = field(default_factory=dict)

    def push_hops(self, hops: List[PendingHop]) -> None:
        """Push hops so they are visited in the given order."""
        self.stack.extend(reversed(hops))


def pending_hops(node: NodeRecord, port_name: str, scope: Scope) -> List[PendingHop]:
    """Hops for every connection leaving a named Execution output."""
    return [
        PendingHop(
            node_id=hop.connection.to_node_id,
            port_id=hop.connection.to_port_id,
            connection_id=hop.connection.id,
            scope=scope,
        )
        for hop in exec_hops(node, port_name, scope.connections)
    ]


def _find_marker(nodes: List[NodeRecord], operation_type: str, port_name: str) -> Optional[NodeRecord]:
    return next(
        (
            n
            for n in nodes
            if n.operation_type == operation_type
            and n.config.get("external_port_name") == port_name
        ),
        None,
    )


class ScopeExecutor:
    """Evaluates molecular nodes and drives ITERATE loops.

    Example:
        >>> scopes = ScopeExecutor(resolver, event_emitter=emitter)
        >>> outputs = await scopes.resolve_molecular(node, definition, inputs, ctx)
    """

    def __init__(
        self,
        resolver: "ValueResolver",
        event_emitter: Optional[EventEmitter] = None,
        default_max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ):
        self.resolver = resolver
        self.events = event_emitter
        self.default_max_iterations = default_max_iterations

    async def _emit(self, event_type: EventType, meta: ExecutionMetaState, **kwargs) -> None:
        if self.events is not None:
            await self.events.emit(ExecutionEvent(type=event_type, pass_id=meta.pass_id, **kwargs))

    # ------------------------------------------------------------------
    # Hierarchical nodes
    # ------------------------------------------------------------------

    async def resolve_molecular(
        self,
        node: MolecularNode,
        definition: "NodeDefinition",
        resolved_inputs: Dict[str, Any],
        ctx: "ResolveContext",
    ) -> Dict[str, Any]:
        """Resolve every Data output of a hierarchical node.

        Each input value seeds the INPUT_GRAPH marker with the same external
        port name. Each output is the value wired into the OUTPUT_GRAPH marker
        with the same name. The sub-graph shares the caller's meta-state, so
        the depth counter and resolution trace continue across the boundary.

        Raises:
            NodeExecutionError: If the sub-graph fails to resolve
        """
        meta = ctx.meta
        if node.operation_type == OperationType.ITERATE.value:
            meta.debug("Iterate outputs are available after 'Start Iteration' runs.", node.id)
            return {}

        nodes = node.sub_graph.nodes
        pins: ResolvedState = {}
        for port in node.data_inputs():
            marker = _find_marker(nodes, OperationType.INPUT_GRAPH.value, port.name)
            if marker is None:
                meta.debug(f"No input marker for port '{port.name}'.", node.id)
                continue
            pins[(marker.id, output_port_or_fail(marker, "Value").id)] = resolved_inputs.get(port.id)

        child = ctx.scope.child(node, pins)
        sub_ctx = ctx.derive(child)
        values: Dict[str, Any] = {}
        for port in node.output_ports:
            if port.is_execution:
                continue
            marker = _find_marker(nodes, OperationType.OUTPUT_GRAPH.value, port.name)
            if marker is None:
                meta.debug(f"No output marker for port '{port.name}'.", node.id)
                continue
            value_port = marker.find_input_port("Value")
            inbound = inbound_connections(child.connections, marker.id, value_port.id)
            try:
                if inbound:
                    value = await self.resolver.resolve(
                        inbound[0].from_node_id, inbound[0].from_port_id, sub_ctx
                    )
                else:
                    value = marker.input_port_overrides.get(value_port.id)
            except WeftError as e:
                raise NodeExecutionError(
                    node.id,
                    f"sub-graph output '{port.name}' failed: {e}",
                    original_error=e,
                    reason=e.reason,
                ) from e
            values[port.id] = value
        return values

    # ------------------------------------------------------------------
    # Bounded loops
    # ------------------------------------------------------------------

    async def start_loop(
        self, node: MolecularNode, hop: PendingHop, flow: FlowState, meta: ExecutionMetaState
    ) -> None:
        """Handle a pulse on an ITERATE node's "Start Iteration" input.

        Raises:
            MissingInputError: If "Collection" has no source
            NodeExecutionError: If "Collection" is not an array
            InvalidInputTypeError: If "Max Iterations" is not a non-negative integer
        """
        scope = hop.scope
        pull = self.resolver.make_pull(scope, meta, flow.resolved_state)

        collection = await pull_input(node, "Collection", scope.connections, pull, required=True)
        if not isinstance(collection, (list, tuple)):
            raise NodeExecutionError(
                node.id,
                f"'Collection' must be an array, got {type(collection).__name__}",
                reason=TerminalReason.ERROR_INVALID_ITERATION_COLLECTION,
            )

        max_iterations = await pull_input(node, "Max Iterations", scope.connections, pull)
        if max_iterations is None:
            max_iterations = node.config.get("max_iterations", self.default_max_iterations)
        if isinstance(max_iterations, float) and max_iterations.is_integer():
            max_iterations = int(max_iterations)
        if (
            isinstance(max_iterations, bool)
            or not isinstance(max_iterations, int)
            or max_iterations < 0
        ):
            raise InvalidInputTypeError(
                node.id, "Max Iterations", "a non-negative integer", max_iterations
            )

        items = list(collection)
        limit = min(len(items), max_iterations, meta.max_steps)
        frame = LoopFrame(
            node=node,
            items=items,
            limit=limit,
            body_scope=scope.child(node),
            parent_scope=scope,
            saved_slot=meta.current_iteration_output,
        )
        frame.body_scope.loop = frame
        meta.current_iteration_output = None
        meta.info(f"Iterating over {len(items)} item(s), limit {limit}.", node.id)
        await self.advance_loop(frame, flow, meta)

    async def advance_loop(
        self, frame: LoopFrame, flow: FlowState, meta: ExecutionMetaState
    ) -> None:
        """Close the iteration that just ended and start the next one.

        Pushes the frame back onto the stack beneath the new iteration's hops,
        so the stepper returns here once the iteration has run to completion.
        """
        node = frame.node
        if frame.in_iteration:
            frame.in_iteration = False
            if not frame.halted:
                frame.results.append(meta.current_iteration_output)
                await self._emit(
                    EventType.ITERATION_COMPLETE,
                    meta,
                    node_id=node.id,
                    output=meta.current_iteration_output,
                    metadata={"index": frame.index},
                )
                frame.index += 1
            meta.current_iteration_output = None

        # The step ceiling covers the whole pass, including enclosing scopes.
        if frame.index < frame.limit and meta.step_count >= meta.max_steps:
            frame.halted = True

        if frame.halted or frame.index >= frame.limit:
            await self.finish_loop(frame, flow, meta)
            return

        body = frame.body_scope
        body.iteration = IterationData(
            item=frame.items[frame.index], index=frame.index, total=len(frame.items)
        )
        frame.in_iteration = True
        flow.stack.append(frame)

        hops: List[PendingHop] = []
        for loop_item in body.nodes:
            if loop_item.operation_type == OperationType.LOOP_ITEM.value:
                hops.extend(pending_hops(loop_item, "Loop Body", body))
        if not hops:
            meta.debug("Loop body has no LOOP_ITEM 'Loop Body' connection.", node.id)
        flow.push_hops(hops)
        await self._emit(
            EventType.ITERATION_START,
            meta,
            node_id=node.id,
            metadata={"index": frame.index, "total": len(frame.items)},
        )

    async def finish_loop(
        self, frame: LoopFrame, flow: FlowState, meta: ExecutionMetaState
    ) -> None:
        """Publish Results and Completed Status, then fire "Iteration Completed"."""
        node = frame.node
        processed = len(frame.results)
        completed = processed == len(frame.items) and not frame.halted

        if frame.halted:
            meta.warning(
                f"Iteration halted at the step ceiling ({meta.max_steps}) after "
                f"{processed} of {len(frame.items)} item(s).",
                node.id,
            )
        elif not completed:
            meta.warning(
                f"Iteration stopped at its limit ({frame.limit}) after {processed} of "
                f"{len(frame.items)} item(s).",
                node.id,
            )
        else:
            meta.info(f"Iteration completed over {processed} item(s).", node.id)

        pins = {
            (node.id, output_port_or_fail(node, "Results").id): list(frame.results),
            (node.id, output_port_or_fail(node, "Completed Status").id): completed,
        }
        frame.parent_scope.pins.update(pins)
        flow.resolved_state.update(pins)
        frame.body_scope.iteration = None
        meta.current_iteration_output = frame.saved_slot
        await self._emit(
            EventType.LOOP_COMPLETE,
            meta,
            node_id=node.id,
            output=list(frame.results),
            metadata={"completed": completed, "processed": processed, "total": len(frame.items)},
        )

        flow.push_hops(pending_hops(node, "Iteration Completed", frame.parent_scope))
