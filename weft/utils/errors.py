"""Custom error classes and terminal reason codes for Weft."""

from enum import Enum
from typing import List, Optional


class TerminalReason(str, Enum):
    """Coded explanation attached to a pass that stopped.

    The value is the human readable message recorded on the meta-state.
    """

    SUCCESS = "Execution completed successfully."
    ERROR_CYCLE_DETECTED = "Execution halted: Cycle detected exceeding max depth."
    ERROR_MAX_STEPS_EXCEEDED = "Execution halted: Maximum execution steps exceeded."
    ERROR_VALIDATION = "Execution halted: Input validation failed."
    ERROR_OPERATION_FAILED = "Execution halted: Node operation failed."
    ERROR_MISSING_INPUT = "Execution halted: Required input missing."
    ERROR_TARGET_NODE_NOT_FOUND = "Resolution failed: Target node not found."
    ERROR_TARGET_PORT_NOT_FOUND = "Resolution failed: Target port not found."
    MANUAL_STOP = "Execution stopped manually."
    ERROR_ITERATION_FAILED = (
        "Execution halted: An iteration within an ITERATE node failed."
    )
    ERROR_INVALID_ITERATION_COLLECTION = (
        "Execution halted: ITERATE node 'Collection' input is not an array."
    )
    ERROR_STATE_ID_MISSING = (
        "Execution halted: STATE node is missing a 'State ID' in its configuration."
    )
    ERROR_INVALID_INPUT_TYPE = "Execution halted: Invalid input type for operation."
    ERROR_CHANNEL_NAME_MISSING = (
        "Execution halted: SEND_DATA or RECEIVE_DATA node is missing a 'Channel Name'."
    )

    @property
    def code(self) -> str:
        return self.name


class WeftError(Exception):
    """Base exception for all Weft errors.

    Every error carries the terminal reason a pass should record when the
    error stops it.
    """

    reason: TerminalReason = TerminalReason.ERROR_OPERATION_FAILED

    def __init__(self, message: str, reason: Optional[TerminalReason] = None):
        if reason is not None:
            self.reason = reason
        super().__init__(message)


class GraphValidationError(WeftError):
    """Raised when graph validation fails."""

    reason = TerminalReason.ERROR_VALIDATION


class CycleDetectedError(WeftError):
    """Raised when data resolution cycles or exceeds the depth ceiling."""

    reason = TerminalReason.ERROR_CYCLE_DETECTED

    def __init__(self, message: str, trace: Optional[List[str]] = None):
        self.trace = list(trace or [])
        super().__init__(message)


class NodeExecutionError(WeftError):
    """Raised when a node callback fails."""

    def __init__(
        self,
        node_id: str,
        message: str,
        original_error: Exception = None,
        reason: Optional[TerminalReason] = None,
    ):
        self.node_id = node_id
        self.original_error = original_error
        super().__init__(f"Node '{node_id}' execution failed: {message}", reason)


class MissingInputError(NodeExecutionError):
    """Raised when a required Data input has neither a connection nor an override."""

    def __init__(self, node_id: str, port_name: str):
        self.port_name = port_name
        super().__init__(
            node_id,
            f"Required input '{port_name}' is not connected and has no value",
            reason=TerminalReason.ERROR_MISSING_INPUT,
        )


class InvalidInputTypeError(NodeExecutionError):
    """Raised when a resolved value fails a node's runtime type check."""

    def __init__(self, node_id: str, port_name: str, expected: str, value: object):
        self.port_name = port_name
        self.expected = expected
        self.value = value
        super().__init__(
            node_id,
            f"Input '{port_name}' must be {expected}, got {type(value).__name__}",
            reason=TerminalReason.ERROR_INVALID_INPUT_TYPE,
        )


class TargetNotFoundError(WeftError):
    """Raised when a requested node or port does not exist."""

    reason = TerminalReason.ERROR_TARGET_NODE_NOT_FOUND


class InvalidNodeTypeError(WeftError):
    """Raised when no definition is registered for an operation type."""

    pass


class ExecutionCancelledError(WeftError):
    """Raised inside a pass once cancellation has been requested."""

    reason = TerminalReason.MANUAL_STOP


class StepLimitExceededError(WeftError):
    """Raised when an execution flow runs past the step ceiling."""

    reason = TerminalReason.ERROR_MAX_STEPS_EXCEEDED


class ConfigurationError(WeftError):
    """Raised for malformed engine or node configuration."""

    pass
