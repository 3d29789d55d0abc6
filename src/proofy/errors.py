"""Proofy error taxonomy.

All errors are deterministic validation failures. None of them is
retried; they are surfaced to the editing user as messages.
"""

from __future__ import annotations


class ProofyError(Exception):
    """Base class for all Proofy errors."""


class LedgerError(ProofyError, ValueError):
    """Invalid operation on a rights ledger."""


class OutOfRangeError(LedgerError, IndexError):
    """Index does not point at a holder in the category's list."""


class InvalidFieldError(LedgerError):
    """Field (or category) not applicable to the requested category."""


class InvalidValueError(LedgerError):
    """Value has the wrong type or lies outside its allowed range."""


class LedgerFrozenError(LedgerError):
    """The ledger was submitted and can no longer be edited."""


class ReconciliationError(ProofyError, ValueError):
    """Authorship shares do not add up to exactly 100%."""

    def __init__(self, total: int) -> None:
        self.total = total
        super().__init__(f"Authorship total must equal 100%, currently {total}%")


class SubmissionError(ProofyError, ValueError):
    """A creation submission was rejected before persistence."""


class InvitationError(ProofyError, ValueError):
    """Invalid co-signature invitation operation."""


class AnchorError(ProofyError):
    """Anchoring a file hash failed."""
