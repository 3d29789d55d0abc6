"""Runtime settings, read from the environment and an optional .env file.

Variables:
    PROOFY_DATA_DIR              directory for events.jsonl and creations.json
    PROOFY_INVITATION_TTL_DAYS   co-signature invitation lifetime (days)
    PROOFY_EXPLORER_BASE_URL     prefix for transaction explorer links
    PROOFY_LOG_LEVEL             logging level name for the CLI

Values already present in the process environment win over the .env file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from proofy.crypto.anchor import DEFAULT_EXPLORER_BASE_URL
from proofy.signatures.tracker import DEFAULT_TTL_DAYS

DEFAULT_DATA_DIR = Path("data")
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    data_dir: Path = DEFAULT_DATA_DIR
    invitation_ttl_days: int = DEFAULT_TTL_DAYS
    explorer_base_url: str = DEFAULT_EXPLORER_BASE_URL
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def events_path(self) -> Path:
        return self.data_dir / "events.jsonl"

    @property
    def creations_path(self) -> Path:
        return self.data_dir / "creations.json"

    @staticmethod
    def from_mapping(env: Mapping[str, str]) -> Settings:
        """Build settings from a mapping of environment variables."""
        ttl_raw = env.get("PROOFY_INVITATION_TTL_DAYS", str(DEFAULT_TTL_DAYS))
        try:
            ttl = int(ttl_raw)
        except ValueError:
            raise ValueError(
                f"PROOFY_INVITATION_TTL_DAYS must be an integer, got {ttl_raw!r}"
            ) from None
        if ttl <= 0:
            raise ValueError(f"PROOFY_INVITATION_TTL_DAYS must be positive, got {ttl}")

        level = env.get("PROOFY_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown PROOFY_LOG_LEVEL: {level!r}")

        return Settings(
            data_dir=Path(env.get("PROOFY_DATA_DIR", str(DEFAULT_DATA_DIR))),
            invitation_ttl_days=ttl,
            explorer_base_url=env.get("PROOFY_EXPLORER_BASE_URL", DEFAULT_EXPLORER_BASE_URL),
            log_level=level,
        )

    @staticmethod
    def from_env(env_file: Optional[Path] = None) -> Settings:
        """Load .env (if present) into the environment, then read settings."""
        load_dotenv(env_file or find_dotenv(usecwd=True), override=False)
        return Settings.from_mapping(os.environ)
