"""Tests for the PipelineStateMachine — legal moves, terminal states, recording."""

from __future__ import annotations

import pytest

from canaryforge.core.release_ledger import ReleaseLedger
from canaryforge.core.state_machine import PipelineStateMachine
from canaryforge.errors import InvalidTransitionError
from canaryforge.models.ledger import EntryKind
from canaryforge.models.runs import PipelineState

HAPPY_PATH = [
    PipelineState.CLASSIFIED,
    PipelineState.GATING,
    PipelineState.GATED_OK,
    PipelineState.BUILDING,
    PipelineState.BUILT,
    PipelineState.PUBLISHING,
    PipelineState.PUBLISHED,
    PipelineState.PROMOTING,
    PipelineState.PROMOTED,
    PipelineState.COMMITTING,
    PipelineState.DONE,
]


class TestPipelineStateMachine:
    def test_starts_in_start(self):
        machine = PipelineStateMachine(42)
        assert machine.state == PipelineState.START
        assert not machine.is_terminal

    def test_happy_path(self):
        machine = PipelineStateMachine(42)
        for state in HAPPY_PATH:
            machine.transition(state)
        assert machine.state == PipelineState.DONE
        assert machine.is_terminal
        assert len(machine.history) == len(HAPPY_PATH)

    def test_skip_after_classification(self):
        machine = PipelineStateMachine(42)
        machine.transition(PipelineState.CLASSIFIED)
        record = machine.transition(PipelineState.SKIPPED, reason="only excluded paths changed")
        assert record.reason == "only excluded paths changed"
        assert machine.is_terminal

    def test_cannot_build_before_gates(self):
        machine = PipelineStateMachine(42)
        machine.transition(PipelineState.CLASSIFIED)
        machine.transition(PipelineState.GATING)
        with pytest.raises(InvalidTransitionError):
            machine.transition(PipelineState.BUILDING)
        assert machine.state == PipelineState.GATING

    def test_fail_from_any_non_terminal_state(self):
        for stop in range(len(HAPPY_PATH) - 1):
            machine = PipelineStateMachine(42)
            for state in HAPPY_PATH[:stop]:
                machine.transition(state)
            machine.fail("boom")
            assert machine.state == PipelineState.FAILED

    @pytest.mark.parametrize(
        "terminal", [PipelineState.SKIPPED, PipelineState.DONE, PipelineState.FAILED]
    )
    def test_terminal_states_are_final(self, terminal: PipelineState):
        machine = PipelineStateMachine(42)
        machine.transition(PipelineState.CLASSIFIED)
        if terminal == PipelineState.DONE:
            for state in HAPPY_PATH[1:]:
                machine.transition(state)
        else:
            machine.transition(terminal)
        with pytest.raises(InvalidTransitionError):
            machine.fail("again")

    def test_history_is_a_copy(self):
        machine = PipelineStateMachine(42)
        machine.transition(PipelineState.CLASSIFIED)
        machine.history.clear()
        assert len(machine.history) == 1

    def test_transitions_recorded_in_ledger(self, ledger: ReleaseLedger):
        machine = PipelineStateMachine(7, ledger=ledger)
        machine.transition(PipelineState.CLASSIFIED)
        machine.fail("gates unreachable")
        entries = ledger.get_build_entries(7)
        assert [e.subject for e in entries] == ["start->classified", "classified->failed"]
        assert all(e.kind == EntryKind.TRANSITION for e in entries)
        assert entries[-1].payload == {"reason": "gates unreachable"}

    def test_rejected_transition_not_recorded(self, ledger: ReleaseLedger):
        machine = PipelineStateMachine(7, ledger=ledger)
        with pytest.raises(InvalidTransitionError):
            machine.transition(PipelineState.DONE)
        assert ledger.get_build_entries(7) == []
