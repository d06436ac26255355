"""Swap execution state machine.

A swap moves PENDING -> ORDERED -> SIGNED -> SUBMITTED -> SETTLED. Any
non-terminal state may move to FAILED. SETTLED and FAILED are terminal, and
there is no path back to an earlier phase, so a signed payload can never be
submitted twice by the same execution.
"""
from enum import Enum
from typing import List, Tuple


class SwapState(str, Enum):
    PENDING = "PENDING"
    ORDERED = "ORDERED"
    SIGNED = "SIGNED"
    SUBMITTED = "SUBMITTED"
    SETTLED = "SETTLED"
    FAILED = "FAILED"


# ---- Transition table ----

_SWAP_TRANSITIONS: dict[SwapState, list[SwapState]] = {
    SwapState.PENDING: [SwapState.ORDERED, SwapState.FAILED],
    SwapState.ORDERED: [SwapState.SIGNED, SwapState.FAILED],
    SwapState.SIGNED: [SwapState.SUBMITTED, SwapState.FAILED],
    SwapState.SUBMITTED: [SwapState.SETTLED, SwapState.FAILED],
    SwapState.SETTLED: [],  # terminal
    SwapState.FAILED: [],   # terminal
}

TERMINAL_SWAP_STATES = frozenset({SwapState.SETTLED, SwapState.FAILED})


def can_transition(current: SwapState, next_state: SwapState) -> bool:
    """Check if a swap transition is valid."""
    return next_state in _SWAP_TRANSITIONS.get(current, [])


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""
    def __init__(self, entity_id: str, current: str, attempted: str):
        self.entity_id = entity_id
        self.current = current
        self.attempted = attempted
        super().__init__(
            f"Invalid transition for {entity_id}: {current} -> {attempted}"
        )


class SwapLifecycle:
    """Tracks one execution through its states."""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        self.state = SwapState.PENDING
        self.history: List[Tuple[SwapState, SwapState]] = []
        # Last state reached before FAILED
        self.failed_from: SwapState | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_SWAP_STATES

    def advance(self, next_state: SwapState) -> None:
        if not can_transition(self.state, next_state):
            raise InvalidTransitionError(self.execution_id, self.state.value, next_state.value)
        if next_state == SwapState.FAILED:
            self.failed_from = self.state
        self.history.append((self.state, next_state))
        self.state = next_state

    def fail(self) -> SwapState:
        """Move to FAILED and return the phase that failed."""
        current = self.state
        self.advance(SwapState.FAILED)
        return current
