"""Proofy service — unified facade over the proof-of-authorship workflow.

This is the primary interface for programmatic access to Proofy. It
orchestrates:
- Submission (validation gate, public id, creation record)
- Co-signature (invitations, views, accept / reject responses)
- Finalization (signature gate, anchoring, status lifecycle)
- Persistence (audit event log, creation store)

All operations produce typed results. Validation failures never raise
out of the facade; they come back as ServiceResult(success=False).
Every state change is recorded in the audit log before the store is
saved.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from proofy.config import Settings
from proofy.crypto.anchor import Anchorer, simulated_anchorer
from proofy.errors import AnchorError, ProofyError
from proofy.models.creation import Creation, CreationStatus, ProjectType
from proofy.persistence.creation_store import CreationStore
from proofy.persistence.event_log import EventKind, EventLog
from proofy.signatures.tracker import InvitationStatus, SignatureTracker
from proofy.submission.validator import (
    SubmissionPolicy,
    SubmissionRequest,
    validate_submission,
)

log = logging.getLogger("proofy.service")

PUBLIC_ID_ALPHABET = string.ascii_letters + string.digits
PUBLIC_ID_LENGTH = 12
SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


def _fail(error: Union[str, Exception]) -> ServiceResult:
    return ServiceResult(success=False, errors=[str(error)])


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


class ProofyService:
    """Proof-of-authorship workflow facade.

    Usage:
        service = ProofyService()
        result = service.submit_creation(
            owner_id="user-1", title="Night Drive", project_type="music",
            file_hash=sha256_file(path), rights=ledger.to_submission_payload(),
            rights_confirmed=True,
        )
        public_id = result.data["public_id"]

        inv = service.invite_cosigner(public_id, "user-1", "bob@example.com", "composer", 30)
        service.respond_to_invitation(inv.data["token"], "bob@example.com", accept=True)
        service.finalize(public_id, "user-1")

    Persistence (optional):
        service = ProofyService.from_settings(Settings.from_env())
    """

    def __init__(
        self,
        event_log: Optional[EventLog] = None,
        store: Optional[CreationStore] = None,
        tracker: Optional[SignatureTracker] = None,
        anchorer: Optional[Anchorer] = None,
    ) -> None:
        self._event_log = event_log or EventLog()
        self._store = store or CreationStore()
        self._tracker = tracker or SignatureTracker()
        self._anchorer = anchorer or simulated_anchorer()
        self._tracker.restore(self._store.loaded_invitations())

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        anchorer: Optional[Anchorer] = None,
    ) -> ProofyService:
        """Create a service with durable persistence under settings.data_dir."""
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        return cls(
            event_log=EventLog(storage_path=settings.events_path),
            store=CreationStore(storage_path=settings.creations_path),
            tracker=SignatureTracker(ttl_days=settings.invitation_ttl_days),
            anchorer=anchorer or simulated_anchorer(settings.explorer_base_url),
        )

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_creation(
        self,
        owner_id: str,
        title: str,
        project_type: Union[str, ProjectType],
        file_hash: str,
        description: str = "",
        rights: Optional[dict[str, Any]] = None,
        rights_confirmed: bool = False,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Validate and persist a new creation.

        Music works must carry a reconciled authorship split and an
        explicit rights confirmation.
        """
        now = _now(now)
        try:
            pt = ProjectType(project_type)
        except ValueError:
            return _fail(f"Unknown project type: {project_type!r}")

        request = SubmissionRequest(
            owner_id=owner_id,
            title=title,
            project_type=pt,
            file_hash=file_hash,
            description=description,
            rights=rights,
            rights_confirmed=rights_confirmed,
        )
        try:
            submission = validate_submission(request, SubmissionPolicy.for_project_type(pt))
        except ProofyError as e:
            log.info("creation.rejected owner=%s project_type=%s reason=%s", owner_id, pt.value, e)
            return _fail(e)

        creation = Creation(
            public_id=self._new_public_id(),
            owner_id=submission.owner_id,
            title=submission.title,
            description=submission.description,
            file_hash=submission.file_hash,
            project_type=submission.project_type,
            authorship=submission.authorship,
            neighboring_rights=submission.neighboring_rights,
            created_utc=now,
            updated_utc=now,
        )
        self._store.put(creation)
        self._event_log.record(
            EventKind.CREATION_SUBMITTED, owner_id, creation.public_id,
            {
                "title": creation.title,
                "project_type": creation.project_type.value,
                "file_hash": creation.file_hash,
                "authorship": creation.authorship,
                "neighboring_rights": creation.neighboring_rights,
            },
            now=now,
        )
        self._persist()
        log.info(
            "creation.submitted public_id=%s project_type=%s owner=%s",
            creation.public_id, creation.project_type.value, owner_id,
        )
        return ServiceResult(
            success=True,
            data={"public_id": creation.public_id, "status": creation.status.value},
        )

    def get_creation(self, public_id: str) -> Optional[Creation]:
        return self._store.get(public_id)

    def list_creations(self, owner_id: str) -> list[Creation]:
        return self._store.for_owner(owner_id)

    def public_view(self, public_id: str) -> ServiceResult:
        creation = self._store.get(public_id)
        if creation is None:
            return _fail(f"Creation not found: {public_id}")
        return ServiceResult(success=True, data=creation.public_view())

    # ------------------------------------------------------------------
    # Co-signature
    # ------------------------------------------------------------------

    def invite_cosigner(
        self,
        public_id: str,
        owner_id: str,
        invitee_email: str,
        role_label: str,
        percentage: int,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Invite a rights holder to co-sign. Only the owner can invite."""
        now = _now(now)
        creation = self._store.get(public_id)
        if creation is None or creation.owner_id != owner_id:
            return _fail(f"Creation not found: {public_id}")
        if creation.status not in (CreationStatus.PENDING, CreationStatus.PENDING_SIGNATURES):
            return _fail(f"Cannot invite co-signers while creation is {creation.status.value}")

        self._expire_overdue(public_id, now)
        try:
            invitation = self._tracker.invite(
                public_id, invitee_email, role_label, percentage, now=now
            )
        except ProofyError as e:
            return _fail(e)

        creation.cosignature_required = True
        if creation.status is CreationStatus.PENDING:
            self._transition(creation, CreationStatus.PENDING_SIGNATURES, owner_id, now)
        else:
            creation.updated_utc = now
        self._event_log.record(
            EventKind.INVITATION_SENT, owner_id, public_id,
            {
                "invitation_id": invitation.invitation_id,
                "invitee_email": invitation.invitee_email,
                "role_label": invitation.role_label,
                "percentage": invitation.percentage,
                "expires_utc": invitation.expires_utc.isoformat(),
            },
            now=now,
        )
        self._persist()
        log.info(
            "invitation.sent public_id=%s invitation_id=%s",
            public_id, invitation.invitation_id,
        )
        return ServiceResult(
            success=True,
            data={
                "invitation_id": invitation.invitation_id,
                "token": invitation.token,
                "expires_utc": invitation.expires_utc.isoformat(),
            },
        )

    def view_invitation(self, token: str, now: Optional[datetime] = None) -> ServiceResult:
        """Open an invitation by token (marks it viewed on first access)."""
        now = _now(now)
        self._expire_for_token(token, now)
        try:
            before = self._tracker.get_by_token(token, now).status
            invitation = self._tracker.mark_viewed(token, now)
        except ProofyError as e:
            return _fail(e)

        if before is InvitationStatus.PENDING and invitation.status is InvitationStatus.VIEWED:
            self._event_log.record(
                EventKind.INVITATION_VIEWED, invitation.invitee_email, invitation.public_id,
                {"invitation_id": invitation.invitation_id},
                now=now,
            )
            self._persist()

        creation = self._store.get(invitation.public_id)
        data = _invitation_view(invitation.to_dict())
        if creation is not None:
            data["creation"] = creation.public_view()
        return ServiceResult(success=True, data=data)

    def respond_to_invitation(
        self,
        token: str,
        signer_email: str,
        accept: bool,
        rejection_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        now = _now(now)
        self._expire_for_token(token, now)
        try:
            invitation = self._tracker.respond(
                token, signer_email, accept, rejection_reason, now=now
            )
        except ProofyError as e:
            return _fail(e)

        kind = EventKind.INVITATION_ACCEPTED if accept else EventKind.INVITATION_REJECTED
        payload: dict[str, Any] = {"invitation_id": invitation.invitation_id}
        if not accept:
            payload["reason"] = invitation.rejection_reason
        self._event_log.record(kind, invitation.invitee_email, invitation.public_id, payload, now=now)

        creation = self._store.get(invitation.public_id)
        if creation is not None:
            creation.updated_utc = now
        self._persist()

        all_signed = self._tracker.all_signed(invitation.public_id)
        log.info(
            "invitation.%s public_id=%s invitation_id=%s all_signed=%s",
            invitation.status.value, invitation.public_id, invitation.invitation_id, all_signed,
        )
        return ServiceResult(
            success=True,
            data={"status": invitation.status.value, "all_signed": all_signed},
        )

    def signature_status(
        self,
        public_id: str,
        owner_id: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Invitation list and per-status counts for the owner."""
        now = _now(now)
        creation = self._store.get(public_id)
        if creation is None or creation.owner_id != owner_id:
            return _fail(f"Creation not found: {public_id}")

        self._expire_overdue(public_id, now)
        return ServiceResult(
            success=True,
            data={
                "public_id": public_id,
                "status": creation.status.value,
                "cosignature_required": creation.cosignature_required,
                "days_remaining": self._tracker.days_remaining(public_id, now),
                "stats": self._tracker.stats(public_id),
                "invitations": [
                    _invitation_view(inv.to_dict())
                    for inv in self._tracker.for_creation(public_id)
                ],
            },
        )

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def finalize(
        self,
        public_id: str,
        owner_id: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        """Anchor a creation's file hash once all co-signatures are in.

        Idempotent: an anchored creation returns its existing anchor.
        A failed anchor leaves the creation FAILED; finalizing again
        retries it.
        """
        now = _now(now)
        creation = self._store.get(public_id)
        if creation is None or creation.owner_id != owner_id:
            return _fail(f"Creation not found: {public_id}")

        if creation.status is CreationStatus.ANCHORED and creation.tx_hash:
            return ServiceResult(
                success=True,
                data={
                    "already_anchored": True,
                    "tx_hash": creation.tx_hash,
                    "explorer_url": creation.explorer_url,
                },
            )

        if creation.cosignature_required:
            self._expire_overdue(public_id, now)
            if not self._tracker.all_signed(public_id):
                stats = self._tracker.stats(public_id)
                return _fail(
                    f"Not all signatures received "
                    f"({stats[InvitationStatus.ACCEPTED.value]}/{stats['total']})"
                )

        if creation.status is CreationStatus.FAILED:
            self._transition(creation, CreationStatus.PENDING, owner_id, now)

        try:
            record = self._anchorer(
                creation.file_hash, creation.public_id, creation.project_type.value
            )
        except AnchorError as e:
            creation.failure_reason = str(e)
            self._transition(creation, CreationStatus.FAILED, SYSTEM_ACTOR, now)
            self._event_log.record(
                EventKind.ANCHOR_FAILED, SYSTEM_ACTOR, public_id, {"error": str(e)}, now=now
            )
            self._persist()
            log.warning("creation.anchor_failed public_id=%s error=%s", public_id, e)
            return _fail(f"Anchoring failed: {e}")

        creation.tx_hash = record.tx_hash
        creation.block_number = record.block_number
        creation.explorer_url = record.explorer_url
        creation.simulated = record.simulated
        creation.anchored_utc = now
        creation.failure_reason = None
        self._transition(creation, CreationStatus.ANCHORED, owner_id, now)
        self._event_log.record(
            EventKind.CREATION_ANCHORED, owner_id, public_id,
            {
                "file_hash": creation.file_hash,
                "tx_hash": record.tx_hash,
                "block_number": record.block_number,
                "chain": record.chain,
                "simulated": record.simulated,
            },
            now=now,
        )
        self._persist()
        log.info(
            "creation.anchored public_id=%s tx_hash=%s simulated=%s",
            public_id, record.tx_hash, record.simulated,
        )
        return ServiceResult(
            success=True,
            data={
                "already_anchored": False,
                "tx_hash": record.tx_hash,
                "block_number": record.block_number,
                "explorer_url": record.explorer_url,
                "simulated": record.simulated,
            },
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        counts = {s.value: 0 for s in CreationStatus}
        for creation in self._store.all():
            counts[creation.status.value] += 1
        return {
            "creations": {"total": self._store.count, **counts},
            "invitations": len(self._tracker.all_invitations()),
            "events": self._event_log.count,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(
        self,
        creation: Creation,
        target: CreationStatus,
        actor_id: str,
        now: datetime,
    ) -> None:
        previous = creation.status
        creation.transition(target, now)
        self._event_log.record(
            EventKind.CREATION_TRANSITION, actor_id, creation.public_id,
            {"from": previous.value, "to": target.value},
            now=now,
        )

    def _expire_overdue(self, public_id: str, now: datetime) -> None:
        """Expire overdue invitations of a creation and record each expiry."""
        expired = self._tracker.expire_overdue(public_id, now)
        for invitation in expired:
            self._event_log.record(
                EventKind.INVITATION_EXPIRED, SYSTEM_ACTOR, public_id,
                {
                    "invitation_id": invitation.invitation_id,
                    "expires_utc": invitation.expires_utc.isoformat(),
                },
                now=now,
            )
            log.info(
                "invitation.expired public_id=%s invitation_id=%s",
                public_id, invitation.invitation_id,
            )
        if expired:
            self._persist()

    def _expire_for_token(self, token: str, now: datetime) -> None:
        invitation = self._tracker.find_by_token(token)
        if invitation is not None:
            self._expire_overdue(invitation.public_id, now)

    def _new_public_id(self) -> str:
        while True:
            candidate = "".join(
                secrets.choice(PUBLIC_ID_ALPHABET) for _ in range(PUBLIC_ID_LENGTH)
            )
            if not self._store.contains(candidate):
                return candidate

    def _persist(self) -> None:
        self._store.save(self._tracker.all_invitations())


def _invitation_view(data: dict[str, Any]) -> dict[str, Any]:
    """Invitation dict without its secret token."""
    return {k: v for k, v in data.items() if k != "token"}
