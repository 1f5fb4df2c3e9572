"""Core execution engine components."""

from weft.core.graph import (
    AtomicNode,
    Connection,
    LogicalCategory,
    MolecularNode,
    Node,
    NodeRecord,
    OperationType,
    Port,
    PortKind,
    SubGraph,
)
from weft.core.events import EventEmitter, EventType, ExecutionEvent
from weft.core.store import GlobalStore
from weft.core.state import (
    ExecutionMetaState,
    ExecutionStatus,
    IterationData,
    LogEntry,
    LogLevel,
    SteppingMode,
)
from weft.core.scope import FlowState, LoopFrame, PendingHop, Scope, ScopeExecutor
from weft.core.resolver import ResolveContext, ValueResolver
from weft.core.stepper import ExecutionStepper
from weft.core.debug import DebugController
from weft.core.executor import ExecutionResult, Executor

__all__ = [
    "AtomicNode",
    "Connection",
    "LogicalCategory",
    "MolecularNode",
    "Node",
    "NodeRecord",
    "OperationType",
    "Port",
    "PortKind",
    "SubGraph",
    "EventEmitter",
    "EventType",
    "ExecutionEvent",
    "GlobalStore",
    "ExecutionMetaState",
    "ExecutionStatus",
    "IterationData",
    "LogEntry",
    "LogLevel",
    "SteppingMode",
    "FlowState",
    "LoopFrame",
    "PendingHop",
    "Scope",
    "ScopeExecutor",
    "ResolveContext",
    "ValueResolver",
    "ExecutionStepper",
    "DebugController",
    "ExecutionResult",
    "Executor",
]
