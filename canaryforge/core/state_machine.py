"""Deterministic pipeline state machine for a single run.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Terminal states (SKIPPED, DONE, FAILED) have no way out
- Every transition recorded in the release ledger, when one is attached
"""

from __future__ import annotations

import logging

from canaryforge.core.release_ledger import ReleaseLedger
from canaryforge.errors import InvalidTransitionError
from canaryforge.models.runs import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    PipelineState,
    StateTransition,
)

logger = logging.getLogger(__name__)


class PipelineStateMachine:
    """Tracks the state of one run and rejects illegal moves.

    Parameters
    ----------
    build_id:
        The run whose state this machine tracks.
    ledger:
        Optional ledger to record transitions into.
    """

    def __init__(self, build_id: int, ledger: ReleaseLedger | None = None) -> None:
        self._build_id = build_id
        self._ledger = ledger
        self._state = PipelineState.START
        self._history: list[StateTransition] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        """Return a copy of the transitions taken so far."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def can_transition(self, target: PipelineState) -> bool:
        return target in VALID_TRANSITIONS[self._state]

    def transition(self, target: PipelineState, reason: str = "") -> StateTransition:
        """Move to *target*, recording the transition.

        Raises ``InvalidTransitionError`` if the move is not allowed from
        the current state.
        """
        allowed = VALID_TRANSITIONS[self._state]
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition build {self._build_id} from "
                f"{self._state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        record = StateTransition(
            build_id=self._build_id,
            from_state=self._state,
            to_state=target,
            reason=reason,
        )
        if self._ledger is not None:
            self._ledger.record_transition(record)

        self._history.append(record)
        self._state = target
        logger.info(
            "build %d: %s -> %s%s",
            self._build_id,
            record.from_state.value,
            target.value,
            f" ({reason})" if reason else "",
        )
        return record

    def fail(self, reason: str) -> StateTransition:
        """Move to FAILED from any non-terminal state."""
        return self.transition(PipelineState.FAILED, reason=reason)
