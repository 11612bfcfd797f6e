"""NotificationDispatcher — reports the outcome of a run to every sink.

Every run ends with exactly one call to ``notify``.  The notification is
fanned out to every registered sink; a failing sink is logged and skipped.
``notify`` never raises: a broken mail relay must not turn a successful
release into a failed one, nor hide the real cause of a failed one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from canaryforge.errors import NotifyError
from canaryforge.models.notifications import RunNotification
from canaryforge.models.runs import TERMINAL_STATES, PipelineState

if TYPE_CHECKING:
    from canaryforge.routing.sinks import BaseSink

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Routes run notifications to ALL configured sinks.

    Usage
    -----
    >>> dispatcher = NotificationDispatcher(job_name="socialecho")
    >>> dispatcher.register_sink(email_sink)
    >>> dispatcher.notify(PipelineState.DONE, build_id=42, run_url=url)
    """

    def __init__(self, job_name: str = "canaryforge") -> None:
        self.job_name = job_name
        self._sinks: list[BaseSink] = []

    # ------------------------------------------------------------------
    # Sink management
    # ------------------------------------------------------------------

    def register_sink(self, sink: BaseSink) -> None:
        """Register a sink.  Duplicate registration is ignored."""
        if sink not in self._sinks:
            self._sinks.append(sink)
            logger.info("Registered sink: %s", sink.sink_name)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def notify(
        self,
        outcome: PipelineState,
        build_id: int,
        run_url: str = "",
        detail: str = "",
    ) -> list[str]:
        """Send the terminal *outcome* of build *build_id* to every sink.

        Returns the names of the sinks that accepted the notification.
        Never raises.
        """
        if outcome not in TERMINAL_STATES:
            logger.error("notify() called with non-terminal state %s", outcome.value)
        notification = RunNotification(
            job_name=self.job_name,
            build_id=build_id,
            final_state=outcome,
            run_url=run_url,
            detail=detail,
        )
        return self.dispatch(notification)

    def dispatch(self, notification: RunNotification) -> list[str]:
        if not self._sinks:
            logger.warning(
                "No sinks registered; build #%d outcome %s not reported",
                notification.build_id,
                notification.status,
            )
            return []

        succeeded: list[str] = []
        for sink in self._sinks:
            try:
                sink.accept(notification)
                succeeded.append(sink.sink_name)
            except Exception as exc:  # noqa: BLE001
                error = exc if isinstance(exc, NotifyError) else NotifyError(str(exc))
                logger.error(
                    "Sink %s failed for build #%d: %s",
                    sink.sink_name,
                    notification.build_id,
                    error,
                )

        if len(succeeded) < len(self._sinks):
            logger.warning(
                "Build #%d: %d/%d sinks succeeded",
                notification.build_id,
                len(succeeded),
                len(self._sinks),
            )
        return succeeded
