"""Breakpoints and single-stepping for execution flows.

This module provides the debug controller the stepper consults before every
hop. Breakpoints are plain node ids; a pause records the paused node and the
pending hop on the meta-state, and resume continues from exactly that hop.
"""

import logging
from typing import Iterable, Optional, Set

from weft.core.scope import PendingHop
from weft.core.state import ExecutionMetaState, SteppingMode

logger = logging.getLogger(__name__)


class DebugController:
    """Breakpoint set and stepping session for the active pass.

    A stepping session starts whenever a pass starts or resumes. The first hop
    of a resumed session always runs, since it is the hop the pass paused
    before. After that:

    - RUN pauses at breakpoints
    - STEP_INTO pauses at the next hop
    - STEP_OVER pauses at the next hop in the same or an outer scope, and at
      breakpoints in nested scopes
    - FORCE_CONTINUE never pauses

    Example:
        >>> debugger = DebugController(breakpoints={"log"})
        >>> meta = await executor.start_execution_flow("start", None, nodes, connections, store)
        >>> meta.paused_node_id
        'log'
        >>> await executor.resume()
    """

    def __init__(self, breakpoints: Optional[Iterable[str]] = None):
        self.breakpoints: Set[str] = set(breakpoints or ())
        self.active_meta: Optional[ExecutionMetaState] = None
        self._skip_next = False
        self._anchor_depth: Optional[int] = None

    # ------------------------------------------------------------------
    # Breakpoints
    # ------------------------------------------------------------------

    def add_breakpoint(self, node_id: str) -> None:
        self.breakpoints.add(node_id)

    def remove_breakpoint(self, node_id: str) -> None:
        self.breakpoints.discard(node_id)

    def toggle_breakpoint(self, node_id: str) -> bool:
        """Toggle a breakpoint.

        Returns:
            True if the breakpoint is now set
        """
        if node_id in self.breakpoints:
            self.breakpoints.remove(node_id)
            return False
        self.breakpoints.add(node_id)
        return True

    def has_breakpoint(self, node_id: str) -> bool:
        return node_id in self.breakpoints

    def clear_breakpoints(self) -> None:
        self.breakpoints.clear()

    # ------------------------------------------------------------------
    # Stepping session
    # ------------------------------------------------------------------

    def begin(self, meta: ExecutionMetaState, resuming: bool = False) -> None:
        """Start a stepping session for ``meta``.

        Args:
            meta: Pass being started or resumed
            resuming: Run the paused hop without checking it again
        """
        self.active_meta = meta
        self._skip_next = resuming
        self._anchor_depth = None

    def should_pause(self, hop: PendingHop, meta: ExecutionMetaState) -> bool:
        """Decide whether the pass pauses before ``hop``.

        Returns False when the hop is about to run.
        """
        mode = meta.stepping_mode
        if mode == SteppingMode.FORCE_CONTINUE:
            return False

        if self._skip_next:
            self._skip_next = False
        elif self._anchor_depth is not None and mode == SteppingMode.STEP_INTO:
            return True
        elif (
            self._anchor_depth is not None
            and mode == SteppingMode.STEP_OVER
            and hop.scope.depth <= self._anchor_depth
        ):
            return True
        elif hop.node_id in self.breakpoints:
            return True

        if self._anchor_depth is None:
            self._anchor_depth = hop.scope.depth
        return False

    def cancel(self) -> bool:
        """Cancel the active pass.

        Returns:
            True if there was a pass to cancel
        """
        if self.active_meta is None:
            logger.debug("No active pass to cancel.")
            return False
        self.active_meta.cancel()
        return True
