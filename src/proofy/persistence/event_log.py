"""Append-only audit log — the record of every change made to a creation.

Every submission, invitation, signature, status change and anchor
produces an event that is appended here. Events are immutable once
written. Each event carries the SHA-256 of its canonical JSON form, so
a stored log can be re-verified line by line and any edit to a past
entry is detected on load.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from proofy.crypto.hashing import canonical_hash

log = logging.getLogger("proofy.event_log")


class EventKind(str, enum.Enum):
    """Classification of audit events."""
    CREATION_SUBMITTED = "creation_submitted"
    CREATION_TRANSITION = "creation_transition"
    INVITATION_SENT = "invitation_sent"
    INVITATION_VIEWED = "invitation_viewed"
    INVITATION_ACCEPTED = "invitation_accepted"
    INVITATION_REJECTED = "invitation_rejected"
    INVITATION_EXPIRED = "invitation_expired"
    CREATION_ANCHORED = "creation_anchored"
    ANCHOR_FAILED = "anchor_failed"


def _hashed_fields(
    event_id: str,
    event_kind: str,
    timestamp_utc: str,
    actor_id: str,
    subject_id: str,
    payload: dict[str, Any],
) -> dict[str, Any]:
    return {
        "event_id": event_id,
        "event_kind": event_kind,
        "timestamp_utc": timestamp_utc,
        "actor_id": actor_id,
        "subject_id": subject_id,
        "payload": payload,
    }


@dataclass(frozen=True)
class EventRecord:
    """A single immutable audit event.

    subject_id is the public id of the creation the event concerns.
    """
    event_id: str
    event_kind: EventKind
    timestamp_utc: str
    actor_id: str
    subject_id: str
    payload: dict[str, Any]
    event_hash: str  # sha256 of canonical JSON

    @staticmethod
    def create(
        event_kind: EventKind,
        actor_id: str,
        subject_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
        event_id: Optional[str] = None,
    ) -> EventRecord:
        """Create a new event record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        eid = event_id or f"evt_{uuid4().hex}"
        digest = canonical_hash(
            _hashed_fields(eid, event_kind.value, ts_str, actor_id, subject_id, payload)
        )
        return EventRecord(
            event_id=eid,
            event_kind=event_kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            subject_id=subject_id,
            payload=payload,
            event_hash=f"sha256:{digest}",
        )

    def to_dict(self) -> dict[str, Any]:
        data = _hashed_fields(
            self.event_id, self.event_kind.value, self.timestamp_utc,
            self.actor_id, self.subject_id, self.payload,
        )
        data["event_hash"] = self.event_hash
        return data


class EventLog:
    """Append-only event log with optional JSONL file persistence.

    Events can only be appended, never modified or deleted.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._event_ids: set[str] = set()
        self._storage_path = storage_path

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, event: EventRecord) -> None:
        """Append an event. Raises ValueError on a duplicate event_id."""
        if event.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {event.event_id}")

        self._events.append(event)
        self._event_ids.add(event.event_id)

        if self._storage_path:
            self._append_to_file(event)
        log.debug(
            "event_log.appended kind=%s subject=%s id=%s",
            event.event_kind.value, event.subject_id, event.event_id,
        )

    def record(
        self,
        event_kind: EventKind,
        actor_id: str,
        subject_id: str,
        payload: Optional[dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> EventRecord:
        """Create and append an event in one step."""
        event = EventRecord.create(
            event_kind, actor_id, subject_id, payload or {}, timestamp_utc=now
        )
        self.append(event)
        return event

    def events(
        self,
        kind: Optional[EventKind] = None,
        subject_id: Optional[str] = None,
    ) -> list[EventRecord]:
        """Return events, optionally filtered by kind and subject."""
        result = list(self._events)
        if kind is not None:
            result = [e for e in result if e.event_kind == kind]
        if subject_id is not None:
            result = [e for e in result if e.subject_id == subject_id]
        return result

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _append_to_file(self, event: EventRecord) -> None:
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load events from a JSONL file with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate event IDs.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                event_id = data["event_id"]

                if event_id in self._event_ids:
                    raise ValueError(
                        f"Duplicate event ID on recovery (line {line_num}): {event_id}"
                    )

                expected_hash = "sha256:" + canonical_hash(_hashed_fields(
                    event_id, data["event_kind"], data["timestamp_utc"],
                    data["actor_id"], data["subject_id"], data["payload"],
                ))
                if data["event_hash"] != expected_hash:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): event {event_id} "
                        f"stored hash {data['event_hash']} != computed {expected_hash}"
                    )

                event = EventRecord(
                    event_id=event_id,
                    event_kind=EventKind(data["event_kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    subject_id=data["subject_id"],
                    payload=data["payload"],
                    event_hash=data["event_hash"],
                )
                self._events.append(event)
                self._event_ids.add(event_id)
        log.info("event_log.loaded path=%s events=%d", path, len(self._events))
