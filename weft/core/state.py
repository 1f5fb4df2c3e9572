"""Per-pass execution meta-state.

This module provides the record every pass carries: status, terminal reason,
log, depth and step counters, the resolution trace, the executed path, the
pause point and the handle to the shared global store.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from weft.core.store import GlobalStore
from weft.utils.config import MAX_CYCLE_DEPTH, MAX_EXECUTION_STEPS
from weft.utils.errors import ExecutionCancelledError, TerminalReason, WeftError

if TYPE_CHECKING:
    from weft.core.scope import FlowState, PendingHop

logger = logging.getLogger(__name__)

# Memo key for one output port: (node_id, port_id).
PortKey = Tuple[str, str]
ResolvedState = Dict[PortKey, Any]


class ExecutionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class LogLevel(str, Enum):
    INFO = "info"
    DEBUG = "debug"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


_PYTHON_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.SUCCESS: logging.INFO,
}


class SteppingMode(str, Enum):
    """How the stepper treats breakpoints while a flow runs.

    RUN honors breakpoints. STEP_OVER runs one hop and pauses at the next hop
    in the same or an outer scope. STEP_INTO runs one hop and pauses at the
    very next hop. FORCE_CONTINUE ignores breakpoints.
    """

    RUN = "run"
    STEP_OVER = "step_over"
    STEP_INTO = "step_into"
    FORCE_CONTINUE = "force_continue"


@dataclass
class LogEntry:
    """A timestamped, severity-tagged line in a pass log."""

    message: str
    level: LogLevel = LogLevel.INFO
    node_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "node_id": self.node_id,
            "message": self.message,
            "type": self.level.value,
        }


@dataclass
class IterationData:
    """Seed for LOOP_ITEM nodes during one ITERATE iteration."""

    item: Any
    index: int
    total: int

    @property
    def is_last(self) -> bool:
        return self.index == self.total - 1


@dataclass
class PassControl:
    """Flags shared by a pass and all of its nested sub-passes."""

    cancelled: bool = False


@dataclass
class ExecutionMetaState:
    """Runtime record for one resolution or execution-flow pass.

    A nested sub-pass (a control-flow node pulling its own Data input) gets its
    own meta-state through :meth:`nested`. It shares the store, the depth
    ceiling and the cancellation flag with its parent but keeps an isolated log
    and trace; :meth:`merge_errors` copies only its errors back.

    Attributes:
        store: Global store shared across passes
        max_cycle_depth: Ceiling for the resolution depth counter
        max_steps: Ceiling for node steps in an execution flow
        status: Current pass status
        reason: Terminal reason once the pass stops
        error: Message of the error that stopped the pass
        log: Append-only list of log entries
        cycle_depth: Current resolution depth
        visited_trace: Node ids on the current resolution chain
        execution_path: Node ids in the order they ran or were resolved
        step_count: Number of node steps taken by the stepper
        paused_node_id: Node the pass is paused before
        pending_hop: Hop that resumes the pass
        stepping_mode: Mode the stepper is running in
        current_iteration_output: Value committed by ITERATION_RESULT
        pass_id: Unique identifier for this pass
    """

    store: GlobalStore = field(default_factory=GlobalStore)
    max_cycle_depth: int = MAX_CYCLE_DEPTH
    max_steps: int = MAX_EXECUTION_STEPS
    status: ExecutionStatus = ExecutionStatus.IDLE
    reason: Optional[TerminalReason] = None
    error: Optional[str] = None
    log: List[LogEntry] = field(default_factory=list)
    cycle_depth: int = 0
    visited_trace: List[str] = field(default_factory=list)
    execution_path: List[str] = field(default_factory=list)
    step_count: int = 0
    paused_node_id: Optional[str] = None
    pending_hop: Optional["PendingHop"] = None
    stepping_mode: SteppingMode = SteppingMode.RUN
    current_iteration_output: Any = None
    pass_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    control: PassControl = field(default_factory=PassControl, repr=False)
    continuation: Optional["FlowState"] = field(default=None, repr=False)
    parent: Optional["ExecutionMetaState"] = field(default=None, repr=False)

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def add_log(
        self, level: LogLevel, message: str, node_id: Optional[str] = None
    ) -> LogEntry:
        entry = LogEntry(message=message, level=level, node_id=node_id)
        self.log.append(entry)
        logger.log(
            _PYTHON_LEVELS[level],
            "[%s] %s%s",
            self.pass_id[:8],
            f"{node_id}: " if node_id else "",
            message,
        )
        return entry

    def info(self, message: str, node_id: Optional[str] = None) -> LogEntry:
        return self.add_log(LogLevel.INFO, message, node_id)

    def debug(self, message: str, node_id: Optional[str] = None) -> LogEntry:
        return self.add_log(LogLevel.DEBUG, message, node_id)

    def warning(self, message: str, node_id: Optional[str] = None) -> LogEntry:
        return self.add_log(LogLevel.WARNING, message, node_id)

    def error_log(self, message: str, node_id: Optional[str] = None) -> LogEntry:
        return self.add_log(LogLevel.ERROR, message, node_id)

    def success(self, message: str, node_id: Optional[str] = None) -> LogEntry:
        return self.add_log(LogLevel.SUCCESS, message, node_id)

    @property
    def errors(self) -> List[LogEntry]:
        return [entry for entry in self.log if entry.level == LogLevel.ERROR]

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        self.status = ExecutionStatus.RUNNING
        self.reason = None
        self.error = None

    def complete(self, message: str = "Execution completed.") -> None:
        self.status = ExecutionStatus.COMPLETED
        self.reason = TerminalReason.SUCCESS
        self.paused_node_id = None
        self.pending_hop = None
        self.continuation = None
        self.success(message)

    def fail(self, error: WeftError, node_id: Optional[str] = None) -> None:
        """Record a terminal error: log it first, then change status."""
        self.error_log(str(error), node_id)
        self.status = ExecutionStatus.ERROR
        self.reason = error.reason
        self.error = str(error)
        self.paused_node_id = None
        self.pending_hop = None
        self.continuation = None

    def pause(self, node_id: str, hop: "PendingHop") -> None:
        self.status = ExecutionStatus.PAUSED
        self.paused_node_id = node_id
        self.pending_hop = hop
        self.info(f"Paused before node '{node_id}'.", node_id)

    def cancel(self) -> None:
        """Request cooperative cancellation and return the pass to idle."""
        self.control.cancelled = True
        if self.status in (ExecutionStatus.RUNNING, ExecutionStatus.PAUSED):
            self.warning("Execution stopped by user.")
            self.status = ExecutionStatus.IDLE
            self.reason = TerminalReason.MANUAL_STOP
            self.paused_node_id = None
            self.pending_hop = None
            self.continuation = None

    @property
    def cancelled(self) -> bool:
        return self.control.cancelled

    def check_cancelled(self) -> None:
        """Raise if cancellation was requested.

        Raises:
            ExecutionCancelledError: If the pass was cancelled
        """
        if self.control.cancelled:
            raise ExecutionCancelledError("Execution stopped manually.")

    @property
    def is_running(self) -> bool:
        return self.status == ExecutionStatus.RUNNING

    @property
    def is_paused(self) -> bool:
        return self.status == ExecutionStatus.PAUSED

    # ------------------------------------------------------------------
    # Nested sub-passes
    # ------------------------------------------------------------------

    def nested(self) -> "ExecutionMetaState":
        """Create the meta-state for a nested resolution sub-pass."""
        return ExecutionMetaState(
            store=self.store,
            max_cycle_depth=self.max_cycle_depth,
            max_steps=self.max_steps,
            status=ExecutionStatus.RUNNING,
            cycle_depth=self.cycle_depth,
            pass_id=self.pass_id,
            control=self.control,
            parent=self,
        )

    def merge_errors(self, sub: "ExecutionMetaState") -> None:
        """Copy the error entries of a finished sub-pass into this log."""
        for entry in sub.errors:
            self.log.append(entry)
        self.execution_path.extend(sub.execution_path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pass_id": self.pass_id,
            "status": self.status.value,
            "reason": self.reason.code if self.reason else None,
            "error": self.error,
            "log": [entry.to_dict() for entry in self.log],
            "execution_path": list(self.execution_path),
            "step_count": self.step_count,
            "paused_node_id": self.paused_node_id,
        }
