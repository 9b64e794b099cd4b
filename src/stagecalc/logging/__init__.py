"""Structured event logging for stagecalc.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from stagecalc.logging.events import (
    EventLevel,
    EventType,
    StageCalcEvent,
    emit,
    emit_info,
    emit_warning,
    reset_sink,
    set_project_dir,
)
from stagecalc.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "StageCalcEvent",
    "emit",
    "emit_info",
    "emit_warning",
    "reset_sink",
    "set_project_dir",
]
