"""Co-signature workflow."""

from proofy.signatures.tracker import Invitation, InvitationStatus, SignatureTracker

__all__ = ["Invitation", "InvitationStatus", "SignatureTracker"]
