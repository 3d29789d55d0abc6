"""Creation store — durable registry of creations and their invitations.

State is held in memory and written back as a single JSON document on
every save. The write goes to a temporary file first and is then
renamed over the target, so a crash never leaves a half-written store.
The temporary file is flushed to disk before the rename and removed if
the write fails.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from proofy.models.creation import Creation
from proofy.signatures.tracker import Invitation

log = logging.getLogger("proofy.creation_store")

STORE_VERSION = 1


class CreationStore:
    """JSON-file backed creation registry.

    Usage:
        store = CreationStore(storage_path=data_dir / "creations.json")
        store.put(creation)
        store.save(invitations)
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._storage_path = storage_path
        self._creations: dict[str, Creation] = {}
        self._invitations: list[Invitation] = []

        if storage_path and storage_path.exists():
            self._load(storage_path)

    def put(self, creation: Creation) -> None:
        self._creations[creation.public_id] = creation

    def get(self, public_id: str) -> Optional[Creation]:
        return self._creations.get(public_id)

    def contains(self, public_id: str) -> bool:
        return public_id in self._creations

    def for_owner(self, owner_id: str) -> list[Creation]:
        """Creations of one owner, newest first."""
        return sorted(
            (c for c in self._creations.values() if c.owner_id == owner_id),
            key=lambda c: c.created_utc,
            reverse=True,
        )

    def all(self) -> list[Creation]:
        return list(self._creations.values())

    @property
    def count(self) -> int:
        return len(self._creations)

    def loaded_invitations(self) -> list[Invitation]:
        """Invitations read from disk at construction time."""
        return list(self._invitations)

    def save(self, invitations: Optional[list[Invitation]] = None) -> None:
        """Persist all creations (and the given invitations) to disk."""
        if invitations is not None:
            self._invitations = list(invitations)
        if not self._storage_path:
            return
        document = {
            "version": STORE_VERSION,
            "creations": [
                c.to_dict() for c in sorted(self._creations.values(), key=lambda c: c.public_id)
            ],
            "invitations": [
                inv.to_dict()
                for inv in sorted(self._invitations, key=lambda i: i.invitation_id)
            ],
        }
        content = json.dumps(document, indent=2, sort_keys=True, ensure_ascii=False)
        directory = self._storage_path.parent
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False
        ) as tmp:
            tmp_path = Path(tmp.name)
            try:
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            except OSError:
                tmp.close()
                tmp_path.unlink(missing_ok=True)
                raise
        os.replace(tmp_path, self._storage_path)

    def _load(self, path: Path) -> None:
        document = json.loads(path.read_text(encoding="utf-8"))
        version = document.get("version")
        if version != STORE_VERSION:
            raise ValueError(f"Unsupported creation store version: {version!r}")
        for data in document.get("creations", []):
            creation = Creation.from_dict(data)
            if creation.public_id in self._creations:
                raise ValueError(f"Duplicate public ID in store: {creation.public_id}")
            self._creations[creation.public_id] = creation
        self._invitations = [Invitation.from_dict(d) for d in document.get("invitations", [])]
        log.info(
            "creation_store.loaded path=%s creations=%d invitations=%d",
            path, len(self._creations), len(self._invitations),
        )
