"""Event system for observing passes as they run.

Editors subscribe to these events to highlight the running node, show the
paused node and refresh the log panel without polling the meta-state.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Lifecycle events emitted by the executor."""

    # Pass lifecycle
    PASS_START = "pass-start"
    PASS_COMPLETE = "pass-complete"
    PASS_ERROR = "pass-error"
    PASS_PAUSED = "pass-paused"
    PASS_CANCELLED = "pass-cancelled"

    # Node lifecycle (execution steps only, not data resolution)
    NODE_START = "node-start"
    NODE_COMPLETE = "node-complete"
    NODE_ERROR = "node-error"

    # Loops
    ITERATION_START = "iteration-start"
    ITERATION_COMPLETE = "iteration-complete"
    LOOP_COMPLETE = "loop-complete"


@dataclass
class ExecutionEvent:
    """A single lifecycle notification.

    Attributes:
        type: Kind of event
        pass_id: Identifier of the pass that emitted it
        node_id: Node the event concerns, if any
        output: Optional payload (e.g. next hop count, iteration results)
        error: Error message for error events
        timestamp: When the event was created
        metadata: Additional details
    """

    type: EventType
    pass_id: Optional[str] = None
    node_id: Optional[str] = None
    output: Optional[Any] = None
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to a JSON friendly dictionary."""
        payload: Dict[str, Any] = {
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.pass_id:
            payload["pass_id"] = self.pass_id
        if self.node_id:
            payload["node_id"] = self.node_id
        if self.output is not None:
            payload["output"] = self.output
        if self.error is not None:
            payload["error"] = self.error
        if self.metadata:
            payload["metadata"] = self.metadata
        return payload


class EventEmitter:
    """Event emitter for publishing execution events."""

    def __init__(self):
        self._listeners: List[Callable[[ExecutionEvent], Awaitable[None]]] = []

    def on(self, listener: Callable[[ExecutionEvent], Awaitable[None]]) -> None:
        """Register an event listener.

        Args:
            listener: Async function that receives ExecutionEvent objects
        """
        self._listeners.append(listener)

    def off(self, listener: Callable[[ExecutionEvent], Awaitable[None]]) -> None:
        """Remove an event listener.

        Args:
            listener: The listener function to remove
        """
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def emit(self, event: ExecutionEvent) -> None:
        """Emit an event to all listeners.

        A failing listener is logged and skipped; it never fails the pass.

        Args:
            event: The event to emit
        """
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception:
                logger.exception("Error in event listener for %s", event.type.value)

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
