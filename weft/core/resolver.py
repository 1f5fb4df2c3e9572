"""Lazy, memoized resolution of Data output ports.

The resolver walks a node's upstream dependencies depth first, evaluates each
node at most once per pass and stores every output in the pass memo. The same
coroutine serves top-level requests, hierarchical sub-graphs and the nested
sub-passes that control-flow nodes start when they pull their own inputs.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from weft.core.events import EventEmitter
from weft.core.graph import NodeRecord, find_node, inbound_connections
from weft.core.scope import Scope, ScopeExecutor
from weft.core.state import ExecutionMetaState, ResolvedState
from weft.nodes.base import NodeDefinition, ResolveFn, maybe_await
from weft.utils.config import DEFAULT_MAX_ITERATIONS
from weft.utils.errors import (
    CycleDetectedError,
    NodeExecutionError,
    TargetNotFoundError,
    WeftError,
)
from weft.utils.registry import NodeRegistry

logger = logging.getLogger(__name__)


@dataclass
class ResolveContext:
    """Explicit context threaded through one resolution pass.

    Attributes:
        scope: Graph level being resolved
        meta: Meta-state receiving logs, trace and depth accounting
        memo: Resolved values keyed by (node_id, port_id)
        evaluated: Nodes whose outputs are already in the memo
    """

    scope: Scope
    meta: ExecutionMetaState
    memo: ResolvedState = field(default_factory=dict)
    evaluated: Set[str] = field(default_factory=set)

    @classmethod
    def for_scope(cls, scope: Scope, meta: ExecutionMetaState) -> "ResolveContext":
        """Fresh context whose memo starts from the scope's pinned values."""
        return cls(scope=scope, meta=meta, memo=dict(scope.pins))

    def derive(self, scope: Scope) -> "ResolveContext":
        """Context for a child scope sharing this context's meta-state."""
        return ResolveContext.for_scope(scope, self.meta)


class ValueResolver:
    """Resolves Data outputs on demand.

    Example:
        >>> resolver = ValueResolver(NodeRegistry())
        >>> ctx = ResolveContext.for_scope(Scope(nodes, connections), meta)
        >>> total = await resolver.resolve("add", "add_out_sum", ctx)
    """

    def __init__(
        self,
        registry: NodeRegistry,
        event_emitter: Optional[EventEmitter] = None,
        default_max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ):
        self.registry = registry
        self.scopes = ScopeExecutor(
            self, event_emitter=event_emitter, default_max_iterations=default_max_iterations
        )

    async def resolve(self, node_id: str, port_id: str, ctx: ResolveContext) -> Any:
        """Resolve one Data output port.

        Args:
            node_id: Node owning the port
            port_id: Output port to resolve
            ctx: Resolution context

        Returns:
            The resolved value, or None if the node produced nothing for the port

        Raises:
            CycleDetectedError: If the chain re-enters a node or exceeds the depth ceiling
            TargetNotFoundError: If the node does not exist in the scope
            NodeExecutionError: If a node callback fails
            ExecutionCancelledError: If the pass was cancelled
        """
        key = (node_id, port_id)
        if key in ctx.memo:
            return ctx.memo[key]
        await self._evaluate(node_id, ctx)
        return ctx.memo.get(key)

    async def _evaluate(self, node_id: str, ctx: ResolveContext) -> None:
        meta = ctx.meta
        meta.check_cancelled()
        if node_id in ctx.evaluated:
            return

        node = find_node(ctx.scope.nodes, node_id)
        if node is None:
            raise TargetNotFoundError(f"Node '{node_id}' not found")
        if node.is_organizational:
            ctx.evaluated.add(node_id)
            return

        if node_id in meta.visited_trace:
            trace = meta.visited_trace + [node_id]
            raise CycleDetectedError(f"Cycle detected: {' -> '.join(trace)}", trace)

        meta.visited_trace.append(node_id)
        meta.cycle_depth += 1
        try:
            if meta.cycle_depth > meta.max_cycle_depth:
                raise CycleDetectedError(
                    f"Maximum resolution depth ({meta.max_cycle_depth}) exceeded at "
                    f"'{node_id}': {' -> '.join(meta.visited_trace)}",
                    meta.visited_trace,
                )

            definition = self.registry.get(node.operation_type)
            resolved_inputs = await self._gather_inputs(node, definition, ctx)
            meta.check_cancelled()
            try:
                if definition.molecular:
                    values = await self.scopes.resolve_molecular(
                        node, definition, resolved_inputs, ctx
                    )
                elif definition.resolve_outputs is not None:
                    values = await maybe_await(
                        definition.resolve_outputs(
                            node, resolved_inputs, ctx.memo, meta, ctx.scope.iteration
                        )
                    )
                else:
                    values = {}
            except WeftError:
                raise
            except Exception as e:
                raise NodeExecutionError(node_id, str(e), original_error=e) from e

            for port_id, value in (values or {}).items():
                key = (node_id, port_id)
                if key not in ctx.scope.pins:
                    ctx.memo[key] = value
            ctx.evaluated.add(node_id)
            meta.execution_path.append(node_id)
        finally:
            meta.cycle_depth -= 1
            meta.visited_trace.pop()

    async def _gather_inputs(
        self, node: NodeRecord, definition: NodeDefinition, ctx: ResolveContext
    ) -> Dict[str, Any]:
        overrides = node.input_port_overrides
        resolved: Dict[str, Any] = {}
        for port in node.data_inputs():
            if port.name in definition.lazy_inputs:
                continue
            inbound = inbound_connections(ctx.scope.connections, node.id, port.id)
            if inbound:
                resolved[port.id] = await self.resolve(
                    inbound[0].from_node_id, inbound[0].from_port_id, ctx
                )
            else:
                resolved[port.id] = overrides.get(port.id)
        return resolved

    def make_pull(
        self, scope: Scope, meta: ExecutionMetaState, resolved_state: ResolvedState
    ) -> ResolveFn:
        """Build the ``resolve`` callback handed to ``process_step``.

        Each call runs a nested sub-pass with its own log, trace and memo. The
        memo starts from the scope's pins, so a node pulsed repeatedly sees
        current store values. Error entries of the sub-pass are merged into
        ``meta`` whether or not it succeeds.
        """

        async def pull(node_id: str, port_id: str) -> Any:
            sub = meta.nested()
            ctx = ResolveContext.for_scope(scope, sub)
            try:
                value = await self.resolve(node_id, port_id, ctx)
            finally:
                meta.merge_errors(sub)
            resolved_state.update(ctx.memo)
            return value

        return pull
