"""Co-signature tracker — invitations for rights holders to approve a split.

Before a creation with several rights holders is anchored, the owner can
invite each co-holder to sign. Each invitation carries a one-time token
sent to the invitee; the invitee views the invitation, then accepts or
rejects it. Anchoring waits until every invitation is accepted.

The tracker is a pure state machine with no side effects. Event logging is
handled by the service layer.

State machine:
    PENDING → VIEWED        (invitee opened the link)
    PENDING → ACCEPTED      (signed without viewing first)
    PENDING → REJECTED
    VIEWED → ACCEPTED
    VIEWED → REJECTED
    PENDING | VIEWED → EXPIRED   (past expires_utc, applied lazily)
"""

from __future__ import annotations

import enum
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import uuid4

from proofy.errors import InvitationError
from proofy.models.rights import validate_percentage

DEFAULT_TTL_DAYS = 7


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


INVITATION_TRANSITIONS: dict[InvitationStatus, frozenset] = {
    InvitationStatus.PENDING: frozenset({
        InvitationStatus.VIEWED,
        InvitationStatus.ACCEPTED,
        InvitationStatus.REJECTED,
        InvitationStatus.EXPIRED,
    }),
    InvitationStatus.VIEWED: frozenset({
        InvitationStatus.ACCEPTED,
        InvitationStatus.REJECTED,
        InvitationStatus.EXPIRED,
    }),
    InvitationStatus.ACCEPTED: frozenset(),
    InvitationStatus.REJECTED: frozenset(),
    InvitationStatus.EXPIRED: frozenset(),
}

_OPEN = frozenset({InvitationStatus.PENDING, InvitationStatus.VIEWED})


@dataclass
class Invitation:
    """A request for one rights holder to co-sign a creation."""
    invitation_id: str
    public_id: str
    invitee_email: str
    role_label: str
    percentage: int
    token: str
    created_utc: datetime
    expires_utc: datetime
    status: InvitationStatus = InvitationStatus.PENDING
    viewed_utc: Optional[datetime] = None
    signed_utc: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status in _OPEN

    def to_dict(self) -> dict[str, Any]:
        return {
            "invitation_id": self.invitation_id,
            "public_id": self.public_id,
            "invitee_email": self.invitee_email,
            "role_label": self.role_label,
            "percentage": self.percentage,
            "status": self.status.value,
            "created_utc": self.created_utc.isoformat(),
            "expires_utc": self.expires_utc.isoformat(),
            "viewed_utc": self.viewed_utc.isoformat() if self.viewed_utc else None,
            "signed_utc": self.signed_utc.isoformat() if self.signed_utc else None,
            "rejection_reason": self.rejection_reason,
            "token": self.token,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Invitation:
        def _dt(key: str) -> Optional[datetime]:
            value = data.get(key)
            return datetime.fromisoformat(value) if value else None

        return Invitation(
            invitation_id=data["invitation_id"],
            public_id=data["public_id"],
            invitee_email=data["invitee_email"],
            role_label=data["role_label"],
            percentage=data["percentage"],
            token=data["token"],
            created_utc=datetime.fromisoformat(data["created_utc"]),
            expires_utc=datetime.fromisoformat(data["expires_utc"]),
            status=InvitationStatus(data["status"]),
            viewed_utc=_dt("viewed_utc"),
            signed_utc=_dt("signed_utc"),
            rejection_reason=data.get("rejection_reason"),
        )


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class SignatureTracker:
    """Manages co-signature invitations for creations.

    Usage:
        tracker = SignatureTracker(ttl_days=7)
        inv = tracker.invite("AbC123xyz789", "bob@example.com", "composer", 30)
        tracker.mark_viewed(inv.token)
        tracker.respond(inv.token, "bob@example.com", accept=True)
        tracker.all_signed("AbC123xyz789")   # True
    """

    def __init__(self, ttl_days: int = DEFAULT_TTL_DAYS) -> None:
        if ttl_days <= 0:
            raise ValueError("Invitation TTL must be positive")
        self._ttl = timedelta(days=ttl_days)
        self._invitations: dict[str, Invitation] = {}
        self._by_token: dict[str, str] = {}

    def invite(
        self,
        public_id: str,
        invitee_email: str,
        role_label: str,
        percentage: int,
        now: Optional[datetime] = None,
    ) -> Invitation:
        """Create a PENDING invitation. One open invitation per email per creation."""
        email = _normalize_email(invitee_email)
        if "@" not in email:
            raise InvitationError(f"Invalid invitee email: {invitee_email!r}")
        percentage = validate_percentage(percentage)
        if now is None:
            now = datetime.now(timezone.utc)

        self.expire_overdue(public_id, now)
        for existing in self.for_creation(public_id):
            active = existing.is_open or existing.status is InvitationStatus.ACCEPTED
            if existing.invitee_email == email and active:
                raise InvitationError(f"{email} is already invited to sign {public_id}")

        invitation = Invitation(
            invitation_id=f"inv_{uuid4().hex[:12]}",
            public_id=public_id,
            invitee_email=email,
            role_label=role_label,
            percentage=percentage,
            token=secrets.token_urlsafe(32),
            created_utc=now,
            expires_utc=now + self._ttl,
        )
        self._invitations[invitation.invitation_id] = invitation
        self._by_token[invitation.token] = invitation.invitation_id
        return invitation

    def restore(self, invitations: list[Invitation]) -> None:
        """Load previously persisted invitations. Raises on duplicate IDs."""
        for invitation in invitations:
            if invitation.invitation_id in self._invitations:
                raise ValueError(f"Duplicate invitation ID: {invitation.invitation_id}")
            self._invitations[invitation.invitation_id] = invitation
            self._by_token[invitation.token] = invitation.invitation_id

    def all_invitations(self) -> list[Invitation]:
        return list(self._invitations.values())

    def get_by_token(self, token: str, now: Optional[datetime] = None) -> Invitation:
        """Look up an invitation by token, expiring it first if overdue."""
        invitation_id = self._by_token.get(token)
        if invitation_id is None:
            raise InvitationError("Invitation not found")
        invitation = self._invitations[invitation_id]
        self._expire_if_overdue(invitation, now or datetime.now(timezone.utc))
        return invitation

    def find_by_token(self, token: str) -> Optional[Invitation]:
        """Look up an invitation by token without applying expiry."""
        invitation_id = self._by_token.get(token)
        return self._invitations.get(invitation_id) if invitation_id else None

    def mark_viewed(self, token: str, now: Optional[datetime] = None) -> Invitation:
        """Record the first view of a PENDING invitation. Later views are no-ops."""
        if now is None:
            now = datetime.now(timezone.utc)
        invitation = self.get_by_token(token, now)
        if invitation.status is InvitationStatus.PENDING:
            self._transition(invitation, InvitationStatus.VIEWED)
            invitation.viewed_utc = now
        return invitation

    def respond(
        self,
        token: str,
        signer_email: str,
        accept: bool,
        rejection_reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Invitation:
        """Accept or reject an open invitation.

        The signer must be the invitee. Expired or already answered
        invitations cannot be answered again.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        invitation = self.get_by_token(token, now)

        if invitation.status is InvitationStatus.EXPIRED:
            raise InvitationError("Invitation has expired")
        if not invitation.is_open:
            raise InvitationError(f"Invitation was already {invitation.status.value}")
        if _normalize_email(signer_email) != invitation.invitee_email:
            raise InvitationError("Invitation belongs to another email address")

        target = InvitationStatus.ACCEPTED if accept else InvitationStatus.REJECTED
        self._transition(invitation, target)
        invitation.signed_utc = now
        if not accept:
            invitation.rejection_reason = rejection_reason or ""
        return invitation

    def expire_overdue(self, public_id: str, now: Optional[datetime] = None) -> list[Invitation]:
        """Expire every open invitation of a creation past its deadline."""
        if now is None:
            now = datetime.now(timezone.utc)
        return [
            inv for inv in self.for_creation(public_id)
            if self._expire_if_overdue(inv, now)
        ]

    def for_creation(self, public_id: str) -> list[Invitation]:
        """Invitations of a creation, oldest first."""
        return sorted(
            (inv for inv in self._invitations.values() if inv.public_id == public_id),
            key=lambda inv: inv.created_utc,
        )

    def current_for_creation(self, public_id: str) -> list[Invitation]:
        """Latest invitation per invitee email, in order of first invitation.

        A re-invitation replaces the rejected or expired invitation sent
        earlier to the same email; only the replacement counts.
        """
        latest: dict[str, Invitation] = {}
        for inv in self.for_creation(public_id):
            latest[inv.invitee_email] = inv
        return list(latest.values())

    def all_signed(self, public_id: str) -> bool:
        """True when every current invitation of the creation is accepted.

        A creation without invitations has nothing outstanding.
        """
        return all(
            inv.status is InvitationStatus.ACCEPTED
            for inv in self.current_for_creation(public_id)
        )

    def stats(self, public_id: str) -> dict[str, int]:
        """Counts per status over the current invitations of a creation."""
        invitations = self.current_for_creation(public_id)
        counts = {status.value: 0 for status in InvitationStatus}
        for inv in invitations:
            counts[inv.status.value] += 1
        counts["total"] = len(invitations)
        return counts

    def days_remaining(self, public_id: str, now: Optional[datetime] = None) -> Optional[int]:
        """Whole days (rounded up) until the last open invitation expires."""
        if now is None:
            now = datetime.now(timezone.utc)
        open_invitations = [inv for inv in self.for_creation(public_id) if inv.is_open]
        if not open_invitations:
            return None
        remaining = max(inv.expires_utc for inv in open_invitations) - now
        seconds = max(0.0, remaining.total_seconds())
        return -(-int(seconds) // 86400)

    def _expire_if_overdue(self, invitation: Invitation, now: datetime) -> bool:
        if invitation.is_open and now >= invitation.expires_utc:
            self._transition(invitation, InvitationStatus.EXPIRED)
            return True
        return False

    @staticmethod
    def _transition(invitation: Invitation, target: InvitationStatus) -> None:
        if target not in INVITATION_TRANSITIONS[invitation.status]:
            raise InvitationError(
                f"Invalid invitation transition: {invitation.status.value} → {target.value}"
            )
        invitation.status = target
