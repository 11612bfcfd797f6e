"""Sink protocol for run notifications.

All sinks implement the ``BaseSink`` protocol: a ``sink_name`` property
and an ``accept(notification)`` method.  The dispatcher calls ``accept``
on every registered sink exactly once per run.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from canaryforge.models.notifications import RunNotification


@runtime_checkable
class BaseSink(Protocol):
    """Protocol that every notification sink must implement.

    Attributes
    ----------
    sink_name : str
        A unique human-readable identifier for this sink instance
        (e.g. ``"email"``, ``"local_file"``).
    """

    @property
    def sink_name(self) -> str:
        """Return the unique name of this sink."""
        ...

    def accept(self, notification: RunNotification) -> None:
        """Deliver *notification*.

        Sinks may raise; the dispatcher logs the failure and carries on
        with the remaining sinks.
        """
        ...
