"""Creation models — a registered work, its project type and lifecycle.

A creation is the persisted record produced by an accepted submission.
Its rights allocations are stored as opaque payload dicts; they are
interpreted only by the submission boundary.

Status lifecycle:
    PENDING → ANCHORED
    PENDING → PENDING_SIGNATURES → ANCHORED
    PENDING | PENDING_SIGNATURES → FAILED
    FAILED → PENDING            (retry after an anchoring failure)
ANCHORED is terminal.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


class ProjectType(str, enum.Enum):
    """Kind of work being registered."""
    MUSIC = "music"
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    OTHER = "other"


class CreationStatus(str, enum.Enum):
    PENDING = "pending"
    PENDING_SIGNATURES = "pending_signatures"
    ANCHORED = "anchored"
    FAILED = "failed"


CREATION_TRANSITIONS: dict[CreationStatus, frozenset] = {
    CreationStatus.PENDING: frozenset({
        CreationStatus.PENDING_SIGNATURES,
        CreationStatus.ANCHORED,
        CreationStatus.FAILED,
    }),
    CreationStatus.PENDING_SIGNATURES: frozenset({
        CreationStatus.ANCHORED,
        CreationStatus.FAILED,
    }),
    CreationStatus.FAILED: frozenset({CreationStatus.PENDING}),
    CreationStatus.ANCHORED: frozenset(),
}


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Creation:
    """A registered work.

    Mutable only through the service layer, which validates status
    transitions and logs every change.
    """
    public_id: str
    owner_id: str
    title: str
    file_hash: str
    project_type: ProjectType
    created_utc: datetime
    updated_utc: datetime
    description: str = ""
    status: CreationStatus = CreationStatus.PENDING
    authorship: Optional[dict[str, Any]] = None
    neighboring_rights: Optional[dict[str, Any]] = None
    cosignature_required: bool = False
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    anchored_utc: Optional[datetime] = None
    explorer_url: Optional[str] = None
    simulated: bool = False
    failure_reason: Optional[str] = None

    def can_transition(self, target: CreationStatus) -> bool:
        return target in CREATION_TRANSITIONS.get(self.status, frozenset())

    def transition(self, target: CreationStatus, now: datetime) -> None:
        """Move to target status. Raises ValueError on an invalid transition."""
        if not self.can_transition(target):
            allowed = ", ".join(sorted(s.value for s in CREATION_TRANSITIONS[self.status]))
            raise ValueError(
                f"Invalid creation transition: {self.status.value} → {target.value}. "
                f"Allowed from {self.status.value}: [{allowed}]"
            )
        self.status = target
        self.updated_utc = now

    def to_dict(self) -> dict[str, Any]:
        return {
            "public_id": self.public_id,
            "owner_id": self.owner_id,
            "title": self.title,
            "description": self.description,
            "file_hash": self.file_hash,
            "project_type": self.project_type.value,
            "status": self.status.value,
            "authorship": self.authorship,
            "neighboring_rights": self.neighboring_rights,
            "cosignature_required": self.cosignature_required,
            "created_utc": _ts(self.created_utc),
            "updated_utc": _ts(self.updated_utc),
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "anchored_utc": _ts(self.anchored_utc),
            "explorer_url": self.explorer_url,
            "simulated": self.simulated,
            "failure_reason": self.failure_reason,
        }

    def public_view(self) -> dict[str, Any]:
        """Projection safe to show to anyone holding the public id."""
        return {
            "public_id": self.public_id,
            "title": self.title,
            "description": self.description,
            "file_hash": self.file_hash,
            "project_type": self.project_type.value,
            "status": self.status.value,
            "authorship": self.authorship,
            "neighboring_rights": self.neighboring_rights,
            "created_utc": _ts(self.created_utc),
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "anchored_utc": _ts(self.anchored_utc),
            "explorer_url": self.explorer_url,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Creation:
        return Creation(
            public_id=data["public_id"],
            owner_id=data["owner_id"],
            title=data["title"],
            description=data.get("description", ""),
            file_hash=data["file_hash"],
            project_type=ProjectType(data["project_type"]),
            status=CreationStatus(data["status"]),
            authorship=data.get("authorship"),
            neighboring_rights=data.get("neighboring_rights"),
            cosignature_required=data.get("cosignature_required", False),
            created_utc=_parse_ts(data["created_utc"]),
            updated_utc=_parse_ts(data["updated_utc"]),
            tx_hash=data.get("tx_hash"),
            block_number=data.get("block_number"),
            anchored_utc=_parse_ts(data.get("anchored_utc")),
            explorer_url=data.get("explorer_url"),
            simulated=data.get("simulated", False),
            failure_reason=data.get("failure_reason"),
        )
