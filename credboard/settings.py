"""Runtime configuration read from ``CREDBOARD_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .constants import DEFAULT_AUTHORITY_KEY, DEFAULT_MIN_LIVELINESS, USER_HASH_BYTES
from .ledger import LedgerParams

DEFAULT_STORE = "ledger.json"


@dataclass(frozen=True)
class Settings:
    store_path: str = DEFAULT_STORE
    authority_key: bytes = DEFAULT_AUTHORITY_KEY
    min_liveliness: int = DEFAULT_MIN_LIVELINESS
    description: str = "Untitled proposal"
    proposer: bytes = bytes(USER_HASH_BYTES)
    deadline: int = 0
    log_level: str = "WARNING"

    def ledger_params(self) -> LedgerParams:
        return LedgerParams(
            min_liveliness=self.min_liveliness,
            proposer=self.proposer,
            description=self.description,
            deadline=self.deadline,
        )


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    defaults = Settings()

    key_hex = env.get("CREDBOARD_AUTHORITY_KEY")
    proposer_hex = env.get("CREDBOARD_PROPOSER")
    try:
        return Settings(
            store_path=env.get("CREDBOARD_STORE", defaults.store_path),
            authority_key=bytes.fromhex(key_hex) if key_hex else defaults.authority_key,
            min_liveliness=int(env.get("CREDBOARD_MIN_LIVELINESS", defaults.min_liveliness)),
            description=env.get("CREDBOARD_DESCRIPTION", defaults.description),
            proposer=bytes.fromhex(proposer_hex) if proposer_hex else defaults.proposer,
            deadline=int(env.get("CREDBOARD_DEADLINE", defaults.deadline)),
            log_level=env.get("CREDBOARD_LOG_LEVEL", defaults.log_level).upper(),
        )
    except ValueError as exc:
        raise ValueError(f"Invalid CREDBOARD_* configuration: {exc}") from exc


__all__ = ["DEFAULT_STORE", "Settings", "load_settings"]
