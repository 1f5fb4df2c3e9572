"""Top-level dispatcher for evaluation passes.

This module implements the two entry points editors call: resolving a single
Data output on demand, and running the execution flow started by a named
event. It also exposes the debug operations (cancel, resume, step over, step
into) for the pass that is currently active.

Errors raised inside a pass never escape these entry points; they end up as
the pass status, terminal reason and log of the returned meta-state.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from weft.core.debug import DebugController
from weft.core.events import EventEmitter, EventType, ExecutionEvent
from weft.core.graph import Connection, NodeRecord, OperationType, find_node
from weft.core.resolver import ResolveContext, ValueResolver
from weft.core.scope import FlowState, PendingHop, Scope, pending_hops
from weft.core.state import (
    ExecutionMetaState,
    ExecutionStatus,
    ResolvedState,
    SteppingMode,
)
from weft.core.stepper import ExecutionStepper
from weft.core.store import GlobalStore
from weft.nodes.base import output_port_or_fail
from weft.utils.config import EngineConfig
from weft.utils.errors import TargetNotFoundError, TerminalReason, WeftError
from weft.utils.registry import NodeRegistry
from weft.utils.validation import validate_graph

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of :meth:`Executor.resolve_single_output`.

    Attributes:
        value: Resolved value (None if the pass failed)
        meta: Meta-state of the pass
        resolved_state: Every port value resolved during the pass
    """

    value: Any
    meta: ExecutionMetaState
    resolved_state: ResolvedState = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.meta.status == ExecutionStatus.COMPLETED


class Executor:
    """Dual-mode graph executor.

    Key features:
    - Lazy, memoized data resolution with a depth ceiling
    - Depth-first execution flows with a step ceiling
    - Hierarchical sub-graphs and bounded loops
    - Breakpoints, single-stepping and cooperative cancellation
    - A global store shared across passes

    Example:
        >>> executor = Executor()
        >>> result = await executor.resolve_single_output(
        ...     "add", "add_out_sum", nodes, connections, store
        ... )
        >>> result.value
        12
        >>> meta = await executor.start_execution_flow("start", None, nodes, connections, store)
        >>> meta.status
        <ExecutionStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        registry: Optional[NodeRegistry] = None,
        config: Optional[EngineConfig] = None,
        event_emitter: Optional[EventEmitter] = None,
        debugger: Optional[DebugController] = None,
    ):
        """Initialize executor.

        Args:
            registry: Node definitions (built-ins when omitted)
            config: Engine limits and switches
            event_emitter: Optional event emitter for pass and node events
            debugger: Breakpoint and stepping controller
        """
        self.registry = registry or NodeRegistry()
        self.config = config or EngineConfig()
        self.events = event_emitter or EventEmitter()
        self.debugger = debugger or DebugController()
        self.resolver = ValueResolver(
            self.registry,
            event_emitter=self.events,
            default_max_iterations=self.config.default_max_iterations,
        )
        self.stepper = ExecutionStepper(
            self.resolver, event_emitter=self.events, debugger=self.debugger
        )

    @property
    def active_meta(self) -> Optional[ExecutionMetaState]:
        return self.debugger.active_meta

    def _new_meta(self, store: Optional[GlobalStore]) -> ExecutionMetaState:
        return ExecutionMetaState(
            store=store if store is not None else GlobalStore(),
            max_cycle_depth=self.config.max_cycle_depth,
            max_steps=self.config.max_execution_steps,
        )

    async def _emit(self, event_type: EventType, meta: ExecutionMetaState, **kwargs) -> None:
        await self.events.emit(ExecutionEvent(type=event_type, pass_id=meta.pass_id, **kwargs))

    def _validate(self, nodes: List[NodeRecord], connections: List[Connection]) -> None:
        if self.config.validate_connections:
            validate_graph(nodes, connections, self.registry)

    # ------------------------------------------------------------------
    # Data resolution
    # ------------------------------------------------------------------

    async def resolve_single_output(
        self,
        node_id: str,
        port_id: str,
        nodes: List[NodeRecord],
        connections: List[Connection],
        store: Optional[GlobalStore] = None,
    ) -> ExecutionResult:
        """Resolve one Data output port in a fresh pass.

        Args:
            node_id: Target node
            port_id: Target Data output port
            nodes: Root graph nodes
            connections: Root graph connections
            store: Global store of the document

        Returns:
            ExecutionResult with the value, meta-state and resolved state
        """
        meta = self._new_meta(store)
        meta.start()
        scope = Scope(nodes=nodes, connections=connections)
        ctx = ResolveContext.for_scope(scope, meta)
        value = None
        previous = self.debugger.active_meta
        self.debugger.active_meta = meta
        await self._emit(EventType.PASS_START, meta, node_id=node_id)

        try:
            self._validate(nodes, connections)
            node = find_node(nodes, node_id)
            if node is None:
                raise TargetNotFoundError(f"Target node '{node_id}' not found")
            port = node.get_output_port(port_id)
            if port is None or port.is_execution:
                raise TargetNotFoundError(
                    f"Target port '{port_id}' is not a Data output of '{node_id}'",
                    reason=TerminalReason.ERROR_TARGET_PORT_NOT_FOUND,
                )
            value = await self.resolver.resolve(node_id, port_id, ctx)
            meta.check_cancelled()
            meta.complete(f"Resolved '{port.name}' of '{node.name}'.")
        except WeftError as e:
            if e.reason == TerminalReason.MANUAL_STOP:
                meta.cancel()
            else:
                meta.fail(e, node_id)
            value = None
        finally:
            self.debugger.active_meta = previous

        await self._emit_outcome(meta)
        return ExecutionResult(value=value, meta=meta, resolved_state=ctx.memo)

    # ------------------------------------------------------------------
    # Execution flows
    # ------------------------------------------------------------------

    async def start_execution_flow(
        self,
        event_name: str,
        payload: Any,
        nodes: List[NodeRecord],
        connections: List[Connection],
        store: Optional[GlobalStore] = None,
        resume_at_node_id: Optional[str] = None,
        mode: SteppingMode = SteppingMode.RUN,
    ) -> ExecutionMetaState:
        """Fire a named event and run the resulting execution flow.

        Every ON_EVENT node whose ``event_name`` matches receives ``payload``
        and fires its "Triggered" output, in node order.

        Args:
            event_name: Event to trigger
            payload: Value seeded into the matching nodes' "Payload" output
            nodes: Root graph nodes
            connections: Root graph connections
            store: Global store of the document
            resume_at_node_id: Continue the active pass if it is paused at this node
            mode: Stepping mode for the pass

        Returns:
            The meta-state of the pass
        """
        if resume_at_node_id is not None:
            active = self.active_meta
            if active is not None and active.is_paused and active.paused_node_id == resume_at_node_id:
                return await self._continue(active, mode)
            logger.info(
                "No pass paused at '%s'; starting a fresh pass for '%s'.",
                resume_at_node_id,
                event_name,
            )

        meta = self._new_meta(store)
        meta.stepping_mode = mode
        meta.start()
        self.debugger.begin(meta)
        await self._emit(EventType.PASS_START, meta, metadata={"event_name": event_name})

        try:
            self._validate(nodes, connections)
        except WeftError as e:
            meta.fail(e)
            await self._emit_outcome(meta)
            return meta

        root = Scope(nodes=nodes, connections=connections)
        flow = FlowState(root=root)
        hops: List[PendingHop] = []
        for node in nodes:
            if node.operation_type != OperationType.ON_EVENT.value:
                continue
            if node.config.get("event_name") != event_name:
                continue
            payload_port = output_port_or_fail(node, "Payload")
            root.pins[(node.id, payload_port.id)] = payload
            flow.resolved_state[(node.id, payload_port.id)] = payload
            meta.execution_path.append(node.id)
            meta.info(f"Event '{event_name}' triggered.", node.id)
            hops.extend(pending_hops(node, "Triggered", root))

        if not meta.execution_path:
            meta.debug(f"No ON_EVENT node listens for '{event_name}'.")
        flow.push_hops(hops)

        await self.stepper.run(flow, meta)
        await self._emit_outcome(meta)
        return meta

    async def _continue(self, meta: ExecutionMetaState, mode: SteppingMode) -> ExecutionMetaState:
        flow = meta.continuation
        if flow is None:
            logger.warning("Paused pass %s has no continuation.", meta.pass_id)
            return meta

        meta.stepping_mode = mode
        meta.status = ExecutionStatus.RUNNING
        meta.info(f"Resuming at '{meta.paused_node_id}' ({mode.value}).", meta.paused_node_id)
        meta.paused_node_id = None
        meta.pending_hop = None
        meta.continuation = None
        self.debugger.begin(meta, resuming=True)

        await self.stepper.run(flow, meta)
        await self._emit_outcome(meta)
        return meta

    async def _emit_outcome(self, meta: ExecutionMetaState) -> None:
        if meta.status == ExecutionStatus.COMPLETED:
            await self._emit(EventType.PASS_COMPLETE, meta, output=meta.execution_path)
        elif meta.status == ExecutionStatus.ERROR:
            await self._emit(EventType.PASS_ERROR, meta, error=meta.error)
        elif meta.status == ExecutionStatus.PAUSED:
            await self._emit(EventType.PASS_PAUSED, meta, node_id=meta.paused_node_id)
        elif meta.reason == TerminalReason.MANUAL_STOP:
            await self._emit(EventType.PASS_CANCELLED, meta)

    # ------------------------------------------------------------------
    # Debug operations
    # ------------------------------------------------------------------

    def _paused(self, meta: Optional[ExecutionMetaState]) -> Optional[ExecutionMetaState]:
        meta = meta or self.active_meta
        if meta is None or not meta.is_paused:
            logger.warning("No paused pass to continue.")
            return None
        return meta

    async def resume(self, meta: Optional[ExecutionMetaState] = None) -> Optional[ExecutionMetaState]:
        """Continue a paused pass with breakpoint checks."""
        meta = self._paused(meta)
        if meta is None:
            return None
        return await self._continue(meta, SteppingMode.RUN)

    async def step_over(self, meta: Optional[ExecutionMetaState] = None) -> Optional[ExecutionMetaState]:
        """Run the pending hop, then pause at the next hop of the same or an outer scope."""
        meta = self._paused(meta)
        if meta is None:
            return None
        return await self._continue(meta, SteppingMode.STEP_OVER)

    async def step_into(self, meta: Optional[ExecutionMetaState] = None) -> Optional[ExecutionMetaState]:
        """Run the pending hop, then pause at the very next hop."""
        meta = self._paused(meta)
        if meta is None:
            return None
        return await self._continue(meta, SteppingMode.STEP_INTO)

    async def force_continue(
        self, meta: Optional[ExecutionMetaState] = None
    ) -> Optional[ExecutionMetaState]:
        """Continue a paused pass ignoring breakpoints."""
        meta = self._paused(meta)
        if meta is None:
            return None
        return await self._continue(meta, SteppingMode.FORCE_CONTINUE)

    def cancel(self) -> bool:
        """Request cancellation of the active pass.

        A running pass stops at its next hop or resolution step; a paused pass
        returns to idle immediately.
        """
        return self.debugger.cancel()
