"""Ledger projection — a read-only, point-in-time view of one build.

The projection never keeps state of its own: every call re-reads the
release ledger and folds its entries into a frozen ``BuildTimeline``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from canaryforge.core.release_ledger import LedgerIntegrityError, ReleaseLedger
from canaryforge.models.ledger import EntryKind
from canaryforge.models.release import PromotionRecord
from canaryforge.models.runs import TERMINAL_STATES, PipelineState


class TimelineStep(BaseModel):
    """One state transition as recorded in the ledger."""

    model_config = ConfigDict(frozen=True)

    from_state: PipelineState
    to_state: PipelineState
    reason: str = ""
    timestamp_utc: datetime


class BuildTimeline(BaseModel):
    """Everything the ledger knows about one build."""

    model_config = ConfigDict(frozen=True)

    build_id: int
    steps: list[TimelineStep] = []
    promotions: list[PromotionRecord] = []
    chain_valid: bool = True
    chain_error: str = ""

    @property
    def final_state(self) -> PipelineState | None:
        return self.steps[-1].to_state if self.steps else None

    @property
    def finished(self) -> bool:
        return self.final_state in TERMINAL_STATES

    @property
    def failure_reason(self) -> str:
        for step in reversed(self.steps):
            if step.to_state == PipelineState.FAILED:
                return step.reason
        return ""


class LedgerProjection:
    """Builds ``BuildTimeline`` views from a ``ReleaseLedger``."""

    def __init__(self, ledger: ReleaseLedger) -> None:
        self._ledger = ledger

    def timeline(self, build_id: int) -> BuildTimeline:
        steps: list[TimelineStep] = []
        promotions: list[PromotionRecord] = []
        for entry in self._ledger.get_build_entries(build_id):
            if entry.kind == EntryKind.TRANSITION:
                from_state, to_state = entry.subject.split("->", 1)
                steps.append(
                    TimelineStep(
                        from_state=PipelineState(from_state),
                        to_state=PipelineState(to_state),
                        reason=entry.payload.get("reason", ""),
                        timestamp_utc=entry.timestamp_utc,
                    )
                )
            elif entry.kind == EntryKind.PROMOTION:
                promotions.append(PromotionRecord.model_validate(entry.payload))

        try:
            chain_valid, chain_error = self._ledger.verify_chain(build_id), ""
        except LedgerIntegrityError as exc:
            chain_valid, chain_error = False, str(exc)

        return BuildTimeline(
            build_id=build_id,
            steps=steps,
            promotions=promotions,
            chain_valid=chain_valid,
            chain_error=chain_error,
        )
