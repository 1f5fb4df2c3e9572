"""Imperative execution of Execution connections.

The stepper interprets a pass as an explicit stack of pending hops and loop
frames. Hops leaving a node are pushed in reverse connection order, giving a
depth-first walk in stored connection order. Because all progress lives in a
:class:`~weft.core.scope.FlowState`, a paused pass is resumed by running the
same stack again.
"""

import logging
from typing import List, Optional, TYPE_CHECKING

from weft.core.events import EventEmitter, EventType, ExecutionEvent
from weft.core.graph import OperationType, PortKind, find_node, outbound_connections
from weft.core.resolver import ValueResolver
from weft.core.scope import FlowState, LoopFrame, PendingHop, Scope
from weft.core.state import ExecutionMetaState, ExecutionStatus
from weft.nodes.base import NextHop, maybe_await
from weft.utils.errors import (
    ExecutionCancelledError,
    NodeExecutionError,
    StepLimitExceededError,
    TargetNotFoundError,
    TerminalReason,
    WeftError,
)

if TYPE_CHECKING:
    from weft.core.debug import DebugController

logger = logging.getLogger(__name__)


class ExecutionStepper:
    """Runs execution flows hop by hop.

    Example:
        >>> stepper = ExecutionStepper(resolver, event_emitter=emitter)
        >>> await stepper.run(flow, meta)
        >>> meta.status
        <ExecutionStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        resolver: ValueResolver,
        event_emitter: Optional[EventEmitter] = None,
        debugger: Optional["DebugController"] = None,
    ):
        self.resolver = resolver
        self.scopes = resolver.scopes
        self.registry = resolver.registry
        self.events = event_emitter
        self.debugger = debugger

    async def _emit(self, event_type: EventType, meta: ExecutionMetaState, **kwargs) -> None:
        if self.events is not None:
            await self.events.emit(ExecutionEvent(type=event_type, pass_id=meta.pass_id, **kwargs))

    async def run(self, flow: FlowState, meta: ExecutionMetaState) -> None:
        """Run the flow until its stack is empty, it pauses or it stops.

        Errors never escape: they are recorded on ``meta``.
        """
        while flow.stack and meta.is_running:
            item = flow.stack.pop()
            try:
                if isinstance(item, LoopFrame):
                    await self.scopes.advance_loop(item, flow, meta)
                    continue

                if self.debugger is not None and self.debugger.should_pause(item, meta):
                    flow.stack.append(item)
                    meta.continuation = flow
                    meta.pause(item.node_id, item)
                    return

                await self._step(item, flow, meta)
            except ExecutionCancelledError:
                if meta.status != ExecutionStatus.IDLE:
                    meta.cancel()
                return
            except WeftError as e:
                await self._fail(e, item, meta)
                return

        if meta.is_running:
            meta.complete()

    async def _fail(self, error: WeftError, item, meta: ExecutionMetaState) -> None:
        if isinstance(item, LoopFrame):
            node_id, scope = item.node.id, item.parent_scope
        else:
            node_id, scope = item.node_id, item.scope

        if scope.loop is not None:
            frame = scope.loop
            meta.error_log(str(error), node_id)
            error = NodeExecutionError(
                frame.node.id,
                f"iteration {frame.index} failed: {error}",
                original_error=error,
                reason=TerminalReason.ERROR_ITERATION_FAILED,
            )
            node_id = frame.node.id

        meta.fail(error, node_id)
        await self._emit(EventType.NODE_ERROR, meta, node_id=node_id, error=str(error))

    def _unwind_to_loop(self, flow: FlowState, scope: Scope) -> LoopFrame:
        frame = scope.loop
        while flow.stack:
            if flow.stack.pop() is frame:
                break
        return frame

    async def _step(self, hop: PendingHop, flow: FlowState, meta: ExecutionMetaState) -> None:
        meta.check_cancelled()

        if meta.step_count >= meta.max_steps:
            # Inside a loop body the ceiling halts the loop; the pass goes on.
            if hop.scope.loop is not None:
                frame = self._unwind_to_loop(flow, hop.scope)
                frame.halted = True
                await self.scopes.advance_loop(frame, flow, meta)
                return
            raise StepLimitExceededError(
                f"Maximum execution steps ({meta.max_steps}) exceeded at '{hop.node_id}'"
            )

        scope = hop.scope
        node = find_node(scope.nodes, hop.node_id)
        if node is None:
            raise TargetNotFoundError(f"Execution target node '{hop.node_id}' not found")
        if node.is_organizational:
            meta.debug("Skipping organizational node.", node.id)
            return

        meta.step_count += 1
        meta.execution_path.append(node.id)
        await self._emit(EventType.NODE_START, meta, node_id=node.id)

        definition = self.registry.get(node.operation_type)
        if node.operation_type == OperationType.ITERATE.value:
            await self.scopes.start_loop(node, hop, flow, meta)
            await self._emit(EventType.NODE_COMPLETE, meta, node_id=node.id)
            return

        if definition.molecular:
            meta.debug("Hierarchical node has no execution behavior; pulse ends here.", node.id)
            return

        if definition.process_step is None:
            next_hops = self._pass_through(node, scope)
        else:
            pull = self.resolver.make_pull(scope, meta, flow.resolved_state)
            try:
                result = await maybe_await(
                    definition.process_step(
                        node,
                        hop.port_id,
                        scope.nodes,
                        scope.connections,
                        flow.resolved_state,
                        meta,
                        pull,
                    )
                )
            except WeftError:
                raise
            except Exception as e:
                raise NodeExecutionError(node.id, str(e), original_error=e) from e
            next_hops = result.next_hops if result is not None else []

        await self._emit(
            EventType.NODE_COMPLETE, meta, node_id=node.id, output={"next_hops": len(next_hops)}
        )
        flow.push_hops(
            [
                PendingHop(
                    node_id=h.connection.to_node_id,
                    port_id=h.connection.to_port_id,
                    connection_id=h.connection.id,
                    scope=scope,
                )
                for h in next_hops
            ]
        )

    def _pass_through(self, node, scope: Scope) -> List[NextHop]:
        port = next((p for p in node.output_ports if p.kind == PortKind.EXECUTION), None)
        if port is None:
            return []
        return [
            NextHop(port_id=port.id, connection=c)
            for c in outbound_connections(scope.connections, node.id, port.id)
        ]
