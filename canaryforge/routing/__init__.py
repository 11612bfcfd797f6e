"""Run notification routing — dispatches the outcome of a run to all sinks.

Sinks are pluggable targets (email, local JSON files, or any object
implementing the ``BaseSink`` protocol).  The dispatcher fans each
notification out to every registered sink and never lets a sink failure
escape.
"""

from canaryforge.routing.dispatcher import NotificationDispatcher
from canaryforge.routing.sinks import BaseSink
from canaryforge.routing.sinks.email import EmailSink
from canaryforge.routing.sinks.local_file import LocalFileSink

__all__ = [
    "BaseSink",
    "EmailSink",
    "LocalFileSink",
    "NotificationDispatcher",
]
