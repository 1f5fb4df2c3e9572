"""
Weft: Dual-mode Graph Execution Engine

Evaluates graphs of typed nodes and ports two ways: Data outputs are resolved
lazily and memoized per pass, while Execution connections run as an imperative
control flow with branching, bounded loops, hierarchical sub-graphs, a global
store shared across passes, and breakpoints.

Example:
    >>> from weft import Executor, GlobalStore
    >>> from weft.nodes import connect, create_atomic_node
    >>>
    >>> five = create_atomic_node("VALUE_PROVIDER", "five", config={"value": 5})
    >>> seven = create_atomic_node("VALUE_PROVIDER", "seven", config={"value": 7})
    >>> add = create_atomic_node("ADDITION", "add")
    >>> connections = [
    ...     connect(five, "Value", add, "Number 1"),
    ...     connect(seven, "Value", add, "Number 2"),
    ... ]
    >>>
    >>> executor = Executor()
    >>> result = await executor.resolve_single_output(
    ...     "add", "add_out_sum", [five, seven, add], connections, GlobalStore()
    ... )
    >>> result.value
    12
"""

__version__ = "0.1.0"

# Core components
from weft.core.graph import (
    AtomicNode,
    Connection,
    LogicalCategory,
    MolecularNode,
    OperationType,
    Port,
    PortKind,
)
from weft.core.executor import Executor, ExecutionResult
from weft.core.events import EventEmitter, EventType, ExecutionEvent
from weft.core.state import ExecutionMetaState, ExecutionStatus, SteppingMode
from weft.core.store import GlobalStore
from weft.core.debug import DebugController

# Node registry
from weft.nodes.base import NodeDefinition, StepResult
from weft.utils.registry import NodeRegistry

# Backends
from weft.backends.base import StoreBackend
from weft.backends.memory import MemoryBackend
from weft.backends.sqlite import SQLiteBackend

# Config and errors
from weft.utils.config import EngineConfig
from weft.utils.errors import TerminalReason, WeftError

__all__ = [
    # Version
    "__version__",
    # Core
    "AtomicNode",
    "Connection",
    "LogicalCategory",
    "MolecularNode",
    "OperationType",
    "Port",
    "PortKind",
    "Executor",
    "ExecutionResult",
    "EventEmitter",
    "EventType",
    "ExecutionEvent",
    "ExecutionMetaState",
    "ExecutionStatus",
    "SteppingMode",
    "GlobalStore",
    "DebugController",
    # Registry
    "NodeDefinition",
    "StepResult",
    "NodeRegistry",
    # Backends
    "StoreBackend",
    "MemoryBackend",
    "SQLiteBackend",
    # Config and errors
    "EngineConfig",
    "TerminalReason",
    "WeftError",
]
