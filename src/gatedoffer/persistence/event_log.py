"""Campaign event log — the hash-chained audit trail of every campaign action.

Campaign creation, claims, distributions, recorded activity and admin
changes each append one record. Records are chained: every record hashes
its own content together with the hash of the record before it, so the
head hash commits to the whole history. Clients index the stream the way
they would index contract events (Created, Claimed, ...), and operators
reconcile issued rewards against broker funding from it.

With a storage path the log mirrors itself to a JSONL file, one record per
line. Reloading re-walks the chain and refuses the file on the first
replayed id, rewritten record or broken link.

Usage:
    log = EventLog(storage_path=Path("data/events.jsonl"))
    log.record(EventKind.CLAIMED, campaign_id, user, {"discount_rate": 0})
    log.events(EventKind.CLAIMED, subject_id=campaign_id)
    log.head_hash
"""

from __future__ import annotations

import enum
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from gatedoffer.crypto.hashing import keccak

CHAIN_START = "0x" + "00" * 32
_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class EventKind(str, enum.Enum):
    """What happened. Values are the persisted wire names."""
    REGISTRY_UPDATED = "registry_updated"
    CAMPAIGN_CREATED = "campaign_created"
    CLAIMED = "claimed"
    REWARD_CLAIMED = "reward_claimed"
    DISTRIBUTION_TRIGGERED = "distribution_triggered"
    ACTIVITY_RECORDED = "activity_recorded"
    CAMPAIGN_PAUSED = "campaign_paused"
    CAMPAIGN_UNPAUSED = "campaign_unpaused"
    DISCOUNT_ROOT_SET = "discount_root_set"
    ELIGIBILITY_CONFIG_SET = "eligibility_config_set"
    FEE_CONFIG_SET = "fee_config_set"


@dataclass(frozen=True)
class EventRecord:
    """One link of the chain.

    ``subject_id`` is the instance the event is about (campaign, activity,
    reward or the registry); ``actor_id`` is who caused it.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    subject_id: str
    actor_id: str
    payload: dict[str, Any]
    previous_hash: str
    event_hash: str

    @staticmethod
    def create(
        event_id: str,
        event_kind: EventKind,
        subject_id: str,
        actor_id: str,
        payload: dict[str, Any],
        timestamp: Optional[int] = None,
        previous_hash: str = CHAIN_START,
    ) -> EventRecord:
        when = (
            datetime.now(timezone.utc) if timestamp is None
            else datetime.fromtimestamp(timestamp, tz=timezone.utc)
        )
        fields = {
            "event_id": event_id,
            "event_kind": event_kind.value,
            "timestamp_utc": when.strftime(_TIME_FORMAT),
            "subject_id": subject_id,
            "actor_id": actor_id,
            "payload": payload,
            "previous_hash": previous_hash,
        }
        return EventRecord.from_dict({**fields, "event_hash": _link_hash(fields)})

    @staticmethod
    def from_dict(data: dict[str, Any]) -> EventRecord:
        return EventRecord(
            event_id=data["event_id"],
            event_kind=EventKind(data["event_kind"]),
            timestamp_utc=data["timestamp_utc"],
            subject_id=data["subject_id"],
            actor_id=data["actor_id"],
            payload=data["payload"],
            previous_hash=data["previous_hash"],
            event_hash=data["event_hash"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_kind": self.event_kind.value,
            "timestamp_utc": self.timestamp_utc,
            "subject_id": self.subject_id,
            "actor_id": self.actor_id,
            "payload": self.payload,
            "previous_hash": self.previous_hash,
            "event_hash": self.event_hash,
        }

    def verify(self) -> bool:
        """True if ``event_hash`` matches the record's content."""
        fields = self.to_dict()
        stored = fields.pop("event_hash")
        return stored == _link_hash(fields)


class EventLog:
    """Thread-safe, append-only, hash-chained event log."""

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._storage_path = storage_path
        self._records: list[EventRecord] = []
        self._ids: set[str] = set()
        self._lock = threading.Lock()
        if storage_path is not None and storage_path.exists():
            self._replay(storage_path)

    @property
    def count(self) -> int:
        return len(self._records)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._records[-1] if self._records else None

    @property
    def head_hash(self) -> str:
        """Hash of the newest record, or CHAIN_START for an empty log."""
        last = self.last_event
        return last.event_hash if last is not None else CHAIN_START

    def record(
        self,
        event_kind: EventKind,
        subject_id: str,
        actor_id: str,
        payload: dict[str, Any],
        timestamp: Optional[int] = None,
    ) -> EventRecord:
        """Build the next record (``evt_NNNNNNNN``) on top of the head and append it."""
        with self._lock:
            event = EventRecord.create(
                f"evt_{len(self._records) + 1:08d}",
                event_kind,
                subject_id,
                actor_id,
                payload,
                timestamp=timestamp,
                previous_hash=self.head_hash,
            )
            self._link(event)
        return event

    def append(self, event: EventRecord) -> None:
        """Append a record built elsewhere.

        Raises:
            ValueError: On a replayed id, a bad hash or a record that does
                not extend the current head.
        """
        with self._lock:
            self._link(event)

    def events(
        self,
        kind: Optional[EventKind] = None,
        subject_id: Optional[str] = None,
    ) -> list[EventRecord]:
        return [
            e for e in self._records
            if (kind is None or e.event_kind == kind)
            and (subject_id is None or e.subject_id == subject_id)
        ]

    def verify_chain(self) -> bool:
        previous = CHAIN_START
        for event in self._records:
            if event.previous_hash != previous or not event.verify():
                return False
            previous = event.event_hash
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _link(self, event: EventRecord, line: Optional[int] = None) -> None:
        where = f" (line {line})" if line is not None else ""
        if event.event_id in self._ids:
            raise ValueError(f"Duplicate event ID{where}: {event.event_id}")
        if not event.verify():
            raise ValueError(f"Integrity check failed{where}: event {event.event_id}")
        if event.previous_hash != self.head_hash:
            raise ValueError(
                f"Broken chain{where}: event {event.event_id} links to "
                f"{event.previous_hash}, head is {self.head_hash}"
            )
        self._records.append(event)
        self._ids.add(event.event_id)
        if line is None and self._storage_path is not None:
            with self._storage_path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

    def _replay(self, path: Path) -> None:
        with path.open("r", encoding="utf-8") as f:
            for number, raw in enumerate(f, 1):
                if raw.strip():
                    self._link(EventRecord.from_dict(json.loads(raw)), line=number)


def _link_hash(fields: dict[str, Any]) -> str:
    canonical = json.dumps(fields, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return "keccak:0x" + keccak(canonical).hex()
