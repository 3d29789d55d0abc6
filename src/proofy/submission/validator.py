"""Submission boundary — the gate between an editing session and persistence.

Nothing reaches the creation store without passing validate_submission().
The gate recomputes rights totals from the payload it receives instead
of trusting the client's own check, so a bypassed client cannot persist
an unreconciled split.

The reconciliation rule is a policy parameter. Only music works require
the authorship split to total 100% and an explicit rights confirmation;
for every other project type the authorship split is stored as given.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from proofy.errors import ReconciliationError, SubmissionError
from proofy.models.creation import ProjectType
from proofy.rights.ledger import RightsLedger

_HEX64 = re.compile(r"^[0-9a-f]{64}$")

MAX_TITLE_LENGTH = 200


@dataclass(frozen=True)
class SubmissionPolicy:
    """Which rights checks a submission must pass."""
    requires_reconciliation: bool = False
    requires_confirmation: bool = False

    @staticmethod
    def for_project_type(project_type: ProjectType) -> SubmissionPolicy:
        if project_type is ProjectType.MUSIC:
            return SubmissionPolicy(requires_reconciliation=True, requires_confirmation=True)
        return SubmissionPolicy()


@dataclass(frozen=True)
class SubmissionRequest:
    """A work submission as received from the editing client.

    ``rights`` is the ledger's submission payload:
    {"authorship": {...}, "neighboring_rights": {...}}. Either section
    may be absent.
    """
    owner_id: str
    title: str
    project_type: ProjectType
    file_hash: str
    description: str = ""
    rights: Optional[dict[str, Any]] = None
    rights_confirmed: bool = False


@dataclass(frozen=True)
class ValidatedSubmission:
    """A submission that passed the gate, with normalized fields."""
    owner_id: str
    title: str
    project_type: ProjectType
    file_hash: str
    description: str
    authorship: Optional[dict[str, Any]]
    neighboring_rights: Optional[dict[str, Any]]


def normalize_file_hash(file_hash: str) -> str:
    """Return a SHA-256 hex digest in lowercase without a 0x prefix."""
    if not isinstance(file_hash, str):
        raise SubmissionError("File hash is required")
    digest = file_hash.strip().lower()
    if digest.startswith("0x"):
        digest = digest[2:]
    if not _HEX64.match(digest):
        raise SubmissionError(
            f"File hash must be a 64-character SHA-256 hex digest, got {len(digest)} characters"
        )
    return digest


def check_rights(
    rights: Optional[dict[str, Any]],
    policy: SubmissionPolicy,
) -> RightsLedger:
    """Parse a rights payload and apply the reconciliation policy.

    The check runs on the normalized payload (placeholders dropped),
    which is exactly what gets persisted.
    """
    if rights is not None and not isinstance(rights, dict):
        raise SubmissionError("Rights payload must be an object")
    parsed = RightsLedger.from_payload(rights or {})
    normalized = RightsLedger.from_payload(parsed.to_submission_payload())
    if policy.requires_reconciliation and not normalized.is_reconciled():
        raise ReconciliationError(normalized.total_authorship_percentage())
    normalized.freeze()
    return normalized


def validate_submission(
    request: SubmissionRequest,
    policy: Optional[SubmissionPolicy] = None,
) -> ValidatedSubmission:
    """Validate a submission. Raises SubmissionError or ReconciliationError.

    Checks, in order:
    1. Owner, title, project type and file hash are present and well formed.
    2. Rights confirmation is set when the policy requires it.
    3. The authorship split reconciles when the policy requires it.
    """
    if policy is None:
        policy = SubmissionPolicy.for_project_type(request.project_type)

    if not isinstance(request.owner_id, str) or not request.owner_id.strip():
        raise SubmissionError("Owner is required")
    if request.title is not None and not isinstance(request.title, str):
        raise SubmissionError(f"Title must be a string, got {type(request.title).__name__}")
    if not isinstance(request.description or "", str):
        raise SubmissionError("Description must be a string")
    title = (request.title or "").strip()
    if not title:
        raise SubmissionError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise SubmissionError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    if not isinstance(request.project_type, ProjectType):
        raise SubmissionError("Project type is required")
    file_hash = normalize_file_hash(request.file_hash)

    if policy.requires_confirmation and not request.rights_confirmed:
        raise SubmissionError("Rights split must be confirmed before submission")

    ledger = check_rights(request.rights, policy)
    rights = request.rights or {}
    payload = ledger.to_submission_payload()

    return ValidatedSubmission(
        owner_id=request.owner_id,
        title=title,
        project_type=request.project_type,
        file_hash=file_hash,
        description=request.description or "",
        authorship=payload["authorship"] if rights.get("authorship") is not None else None,
        neighboring_rights=(
            payload["neighboring_rights"]
            if rights.get("neighboring_rights") is not None else None
        ),
    )
