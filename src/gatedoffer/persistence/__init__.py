"""Persistence — append-only campaign event log."""

from gatedoffer.persistence.event_log import EventKind, EventLog, EventRecord

__all__ = ["EventKind", "EventLog", "EventRecord"]
