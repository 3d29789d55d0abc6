"""Tests for the service facade — proves the submit, co-sign, anchor workflow."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from proofy.config import Settings
from proofy.crypto.anchor import AnchorRecord, simulate_anchor
from proofy.errors import AnchorError
from proofy.models.creation import CreationStatus
from proofy.persistence.event_log import EventKind
from proofy.rights.ledger import RightsLedger
from proofy.service import PUBLIC_ID_LENGTH, ProofyService

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
FILE_HASH = "ab" * 32
OWNER = "user-1"


def _reconciled_rights() -> dict:
    ledger = RightsLedger()
    ledger.add_authorship_holder("authors", 30)
    ledger.update_holder("authors", 0, "name", "Ada")
    ledger.add_authorship_holder("composers", 15)  # placeholder, dropped with its share
    ledger.remove_authorship_holder("composers", 0)
    ledger.add_neighboring_holder("producers")
    ledger.update_neighboring_holder("producers", 0, "name", "Studio X")
    return ledger.to_submission_payload()


def _submit(service: ProofyService, **overrides: object) -> str:
    fields = dict(
        owner_id=OWNER,
        title="Night Drive",
        project_type="music",
        file_hash=FILE_HASH,
        rights=_reconciled_rights(),
        rights_confirmed=True,
        now=NOW,
    )
    fields.update(overrides)
    result = service.submit_creation(**fields)  # type: ignore[arg-type]
    assert result.success, result.errors
    return result.data["public_id"]


class TestSubmission:
    def test_submit_music(self) -> None:
        service = ProofyService()
        public_id = _submit(service)

        assert len(public_id) == PUBLIC_ID_LENGTH
        assert public_id.isalnum()
        creation = service.get_creation(public_id)
        assert creation is not None
        assert creation.status is CreationStatus.PENDING
        assert creation.authorship["main_holder_percentage"] == 70
        assert creation.neighboring_rights["producers"] == [{"name": "Studio X", "percentage": 50}]
        assert service.event_log.events(kind=EventKind.CREATION_SUBMITTED)[0].subject_id == public_id

    def test_unreconciled_music_rejected(self) -> None:
        ledger = RightsLedger()
        ledger.add_authorship_holder("authors", 15)
        ledger.update_holder("authors", 0, "name", "Ada")
        ledger.update_holder("authors", 0, "percentage", 40)

        service = ProofyService()
        result = service.submit_creation(
            OWNER, "Night Drive", "music", FILE_HASH,
            rights=ledger.to_submission_payload(), rights_confirmed=True, now=NOW,
        )
        assert not result.success
        assert result.errors == ["Authorship total must equal 100%, currently 125%"]
        assert service.status()["creations"]["total"] == 0
        assert service.event_log.count == 0

    def test_unconfirmed_music_rejected(self) -> None:
        service = ProofyService()
        result = service.submit_creation(
            OWNER, "Night Drive", "music", FILE_HASH,
            rights=_reconciled_rights(), rights_confirmed=False, now=NOW,
        )
        assert not result.success
        assert "confirmed" in result.errors[0]

    def test_non_music_accepts_unreconciled_split(self) -> None:
        service = ProofyService()
        rights = {"authorship": {"main_holder_percentage": 10, "authors": [{"name": "A", "percentage": 95}]}}
        public_id = _submit(service, project_type="image", rights=rights, rights_confirmed=False)
        assert service.get_creation(public_id).authorship["main_holder_percentage"] == 10

    def test_unknown_project_type(self) -> None:
        result = ProofyService().submit_creation(OWNER, "x", "podcast", FILE_HASH, now=NOW)
        assert not result.success
        assert "Unknown project type" in result.errors[0]

    @pytest.mark.parametrize(
        "owner_id, title",
        [(OWNER, 123), (None, "Night Drive"), ("  ", "Night Drive")],
    )
    def test_malformed_fields_fail_cleanly(self, owner_id: object, title: object) -> None:
        service = ProofyService()
        result = service.submit_creation(owner_id, title, "image", FILE_HASH, now=NOW)  # type: ignore[arg-type]
        assert not result.success
        assert service.status()["creations"]["total"] == 0

    def test_public_view_and_listing(self) -> None:
        service = ProofyService()
        first = _submit(service)
        second = _submit(service, now=NOW + timedelta(minutes=5))

        assert [c.public_id for c in service.list_creations(OWNER)] == [second, first]
        view = service.public_view(first)
        assert view.success
        assert "owner_id" not in view.data
        assert not service.public_view("missing").success


class TestCoSignature:
    def test_invite_moves_to_pending_signatures(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        result = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW)

        assert result.success
        assert "token" in result.data
        creation = service.get_creation(public_id)
        assert creation.status is CreationStatus.PENDING_SIGNATURES
        assert creation.cosignature_required

    def test_only_owner_can_invite(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        result = service.invite_cosigner(public_id, "intruder", "bob@example.com", "composer", 30, now=NOW)
        assert not result.success
        assert service.get_creation(public_id).status is CreationStatus.PENDING

    def test_view_hides_token_and_records_event(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        token = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW).data["token"]

        first = service.view_invitation(token, now=NOW)
        second = service.view_invitation(token, now=NOW)
        assert first.success and second.success
        assert "token" not in first.data
        assert first.data["status"] == "viewed"
        assert first.data["creation"]["public_id"] == public_id
        assert len(service.event_log.events(kind=EventKind.INVITATION_VIEWED)) == 1

    def test_signature_status(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        service.invite_cosigner(public_id, OWNER, "a@example.com", "author", 20, now=NOW)
        service.invite_cosigner(public_id, OWNER, "b@example.com", "composer", 10, now=NOW)

        result = service.signature_status(public_id, OWNER, now=NOW + timedelta(days=1))
        assert result.success
        assert result.data["stats"]["total"] == 2
        assert result.data["stats"]["pending"] == 2
        assert result.data["days_remaining"] == 6
        assert all("token" not in inv for inv in result.data["invitations"])


class TestFinalize:
    def test_anchor_without_cosigners(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        result = service.finalize(public_id, OWNER, now=NOW)

        assert result.success
        assert result.data["simulated"]
        assert result.data["already_anchored"] is False
        creation = service.get_creation(public_id)
        assert creation.status is CreationStatus.ANCHORED
        assert creation.tx_hash == result.data["tx_hash"]
        assert creation.explorer_url.endswith(creation.tx_hash)

    def test_finalize_is_idempotent(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        first = service.finalize(public_id, OWNER, now=NOW)
        events = service.event_log.count
        again = service.finalize(public_id, OWNER, now=NOW + timedelta(hours=1))

        assert again.success
        assert again.data["already_anchored"] is True
        assert again.data["tx_hash"] == first.data["tx_hash"]
        assert service.event_log.count == events

    def test_waits_for_signatures(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        token = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW).data["token"]

        blocked = service.finalize(public_id, OWNER, now=NOW)
        assert not blocked.success
        assert blocked.errors == ["Not all signatures received (0/1)"]

        signed = service.respond_to_invitation(token, "bob@example.com", accept=True, now=NOW)
        assert signed.data == {"status": "accepted", "all_signed": True}
        assert service.finalize(public_id, OWNER, now=NOW).success

    def test_rejection_blocks_anchoring(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        token = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW).data["token"]
        service.respond_to_invitation(token, "bob@example.com", accept=False, rejection_reason="no", now=NOW)

        assert not service.finalize(public_id, OWNER, now=NOW).success
        rejected = service.event_log.events(kind=EventKind.INVITATION_REJECTED)
        assert rejected[0].payload["reason"] == "no"

    def test_reinvite_after_rejection_unblocks_anchoring(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        first = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW).data["token"]
        service.respond_to_invitation(first, "bob@example.com", accept=False, rejection_reason="split", now=NOW)
        assert not service.finalize(public_id, OWNER, now=NOW).success

        again = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 35, now=NOW)
        assert again.success
        signed = service.respond_to_invitation(again.data["token"], "bob@example.com", accept=True, now=NOW)
        assert signed.data == {"status": "accepted", "all_signed": True}

        assert service.finalize(public_id, OWNER, now=NOW).success
        assert service.get_creation(public_id).status is CreationStatus.ANCHORED
        assert len(service.signature_status(public_id, OWNER, now=NOW).data["invitations"]) == 2

    def test_reinvite_after_expiry_unblocks_anchoring(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW)

        later = NOW + timedelta(days=8)
        blocked = service.finalize(public_id, OWNER, now=later)
        assert blocked.errors == ["Not all signatures received (0/1)"]

        token = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=later).data["token"]
        signed = service.respond_to_invitation(token, "bob@example.com", accept=True, now=later)
        assert signed.data["all_signed"] is True
        assert service.finalize(public_id, OWNER, now=later).success

    def test_failed_anchor_then_retry(self) -> None:
        calls: list[str] = []

        def flaky(file_hash: str, public_id: str, project_type: str) -> AnchorRecord:
            calls.append(public_id)
            if len(calls) == 1:
                raise AnchorError("RPC unavailable")
            return simulate_anchor(file_hash, public_id, project_type, now=NOW)

        service = ProofyService(anchorer=flaky)
        public_id = _submit(service)

        failed = service.finalize(public_id, OWNER, now=NOW)
        assert failed.errors == ["Anchoring failed: RPC unavailable"]
        creation = service.get_creation(public_id)
        assert creation.status is CreationStatus.FAILED
        assert creation.failure_reason == "RPC unavailable"

        retried = service.finalize(public_id, OWNER, now=NOW)
        assert retried.success
        assert creation.status is CreationStatus.ANCHORED
        assert creation.failure_reason is None
        transitions = [
            (e.payload["from"], e.payload["to"])
            for e in service.event_log.events(kind=EventKind.CREATION_TRANSITION)
        ]
        assert transitions == [("pending", "failed"), ("failed", "pending"), ("pending", "anchored")]

    def test_cannot_invite_after_anchoring(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        service.finalize(public_id, OWNER, now=NOW)
        result = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW)
        assert not result.success
        assert "anchored" in result.errors[0]


class TestExpiry:
    def test_overdue_invitation_is_recorded_once(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        invitation_id = service.invite_cosigner(
            public_id, OWNER, "bob@example.com", "composer", 30, now=NOW
        ).data["invitation_id"]

        later = NOW + timedelta(days=8)
        first = service.signature_status(public_id, OWNER, now=later)
        service.signature_status(public_id, OWNER, now=later)

        assert first.data["stats"]["expired"] == 1
        expired = service.event_log.events(kind=EventKind.INVITATION_EXPIRED)
        assert len(expired) == 1
        assert expired[0].subject_id == public_id
        assert expired[0].payload["invitation_id"] == invitation_id

    def test_answering_expired_invitation_fails(self) -> None:
        service = ProofyService()
        public_id = _submit(service)
        token = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW).data["token"]

        result = service.respond_to_invitation(token, "bob@example.com", accept=True, now=NOW + timedelta(days=8))
        assert not result.success
        assert result.errors == ["Invitation has expired"]
        assert len(service.event_log.events(kind=EventKind.INVITATION_EXPIRED)) == 1
        assert service.event_log.events(kind=EventKind.INVITATION_ACCEPTED) == []

    def test_expiry_survives_restart(self, tmp_path: Path) -> None:
        settings = Settings(data_dir=tmp_path / "data")
        service = ProofyService.from_settings(settings)
        public_id = _submit(service)
        service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW)
        service.signature_status(public_id, OWNER, now=NOW + timedelta(days=8))

        restarted = ProofyService.from_settings(settings)
        status = restarted.signature_status(public_id, OWNER, now=NOW + timedelta(days=1))
        assert status.data["stats"]["expired"] == 1
        assert status.data["invitations"][0]["status"] == "expired"
        assert len(restarted.event_log.events(kind=EventKind.INVITATION_EXPIRED)) == 1


class TestPersistence:
    def test_state_survives_restart(self, tmp_path: Path) -> None:
        settings = Settings(data_dir=tmp_path / "data")
        service = ProofyService.from_settings(settings)
        public_id = _submit(service)
        token = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW).data["token"]

        restarted = ProofyService.from_settings(settings)
        assert restarted.get_creation(public_id).status is CreationStatus.PENDING_SIGNATURES
        assert restarted.respond_to_invitation(token, "bob@example.com", accept=True, now=NOW).success
        assert restarted.finalize(public_id, OWNER, now=NOW).success
        assert restarted.event_log.count == service.event_log.count + 3

    def test_status_counts(self) -> None:
        service = ProofyService()
        first = _submit(service)
        _submit(service)
        service.finalize(first, OWNER, now=NOW)

        status = service.status()
        assert status["creations"]["total"] == 2
        assert status["creations"]["anchored"] == 1
        assert status["creations"]["pending"] == 1
        assert status["events"] == service.event_log.count


@pytest.mark.parametrize("email", ["bob@example.com", " BOB@example.com "])
def test_signer_email_is_case_insensitive(email: str) -> None:
    service = ProofyService()
    public_id = _submit(service)
    token = service.invite_cosigner(public_id, OWNER, "bob@example.com", "composer", 30, now=NOW).data["token"]
    assert service.respond_to_invitation(token, email, accept=True, now=NOW).success
