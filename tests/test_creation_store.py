"""Tests for creations and the creation store."""

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from proofy.models.creation import Creation, CreationStatus, ProjectType
from proofy.persistence.creation_store import CreationStore
from proofy.signatures.tracker import SignatureTracker

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _creation(public_id: str = "AbC123xyz789", owner_id: str = "user-1", created: datetime = NOW) -> Creation:
    return Creation(
        public_id=public_id,
        owner_id=owner_id,
        title="Night Drive",
        file_hash="ab" * 32,
        project_type=ProjectType.MUSIC,
        created_utc=created,
        updated_utc=created,
        authorship={"main_holder_percentage": 100, "authors": [], "composers": [], "publishers": []},
    )


class TestCreationLifecycle:
    def test_happy_path(self) -> None:
        creation = _creation()
        creation.transition(CreationStatus.PENDING_SIGNATURES, NOW)
        creation.transition(CreationStatus.ANCHORED, NOW + timedelta(minutes=1))
        assert creation.status is CreationStatus.ANCHORED
        assert creation.updated_utc == NOW + timedelta(minutes=1)

    def test_failed_can_retry(self) -> None:
        creation = _creation()
        creation.transition(CreationStatus.FAILED, NOW)
        creation.transition(CreationStatus.PENDING, NOW)
        assert creation.status is CreationStatus.PENDING

    def test_anchored_is_terminal(self) -> None:
        creation = _creation()
        creation.transition(CreationStatus.ANCHORED, NOW)
        for target in CreationStatus:
            assert not creation.can_transition(target)
        with pytest.raises(ValueError, match="Invalid creation transition"):
            creation.transition(CreationStatus.PENDING, NOW)

    def test_public_view_hides_owner(self) -> None:
        view = _creation().public_view()
        assert "owner_id" not in view
        assert view["status"] == "pending"

    def test_dict_roundtrip(self) -> None:
        creation = _creation()
        creation.transition(CreationStatus.ANCHORED, NOW)
        creation.tx_hash = "0x" + "cd" * 32
        creation.anchored_utc = NOW
        assert Creation.from_dict(creation.to_dict()) == creation


class TestCreationStore:
    def test_for_owner_newest_first(self) -> None:
        store = CreationStore()
        store.put(_creation("A00000000001", created=NOW))
        store.put(_creation("A00000000002", created=NOW + timedelta(hours=1)))
        store.put(_creation("B00000000001", owner_id="user-2"))

        assert [c.public_id for c in store.for_owner("user-1")] == ["A00000000002", "A00000000001"]
        assert store.count == 3
        assert store.contains("B00000000001")
        assert store.get("missing") is None

    def test_save_and_reload(self, tmp_path: Path) -> None:
        path = tmp_path / "creations.json"
        tracker = SignatureTracker()
        invitation = tracker.invite("AbC123xyz789", "bob@example.com", "composer", 30, now=NOW)

        store = CreationStore(storage_path=path)
        store.put(_creation())
        store.save(tracker.all_invitations())
        assert list(tmp_path.glob("*.tmp")) == []

        reloaded = CreationStore(storage_path=path)
        assert reloaded.get("AbC123xyz789") == _creation()
        assert [i.token for i in reloaded.loaded_invitations()] == [invitation.token]

    def test_failed_write_keeps_previous_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "creations.json"
        store = CreationStore(storage_path=path)
        store.put(_creation())
        store.save()
        before = path.read_text(encoding="utf-8")

        def disk_full(fd: int) -> None:
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(os, "fsync", disk_full)
        store.put(_creation("A00000000002"))
        with pytest.raises(OSError):
            store.save()

        assert path.read_text(encoding="utf-8") == before
        assert list(tmp_path.glob("*.tmp")) == []
        assert CreationStore(storage_path=path).count == 1

    def test_in_memory_save_is_noop(self) -> None:
        store = CreationStore()
        store.put(_creation())
        store.save()
        assert store.count == 1

    def test_unsupported_version(self, tmp_path: Path) -> None:
        path = tmp_path / "creations.json"
        path.write_text(json.dumps({"version": 99, "creations": []}), encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported"):
            CreationStore(storage_path=path)

    def test_duplicate_public_id(self, tmp_path: Path) -> None:
        path = tmp_path / "creations.json"
        record = _creation().to_dict()
        path.write_text(
            json.dumps({"version": 1, "creations": [record, record], "invitations": []}),
            encoding="utf-8",
        )
        with pytest.raises(ValueError, match="Duplicate public ID"):
            CreationStore(storage_path=path)
