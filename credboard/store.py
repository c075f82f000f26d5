"""JSON-backed persistence for a governance ledger."""

from __future__ import annotations

import json
import logging
import os
from typing import Dict

from .ledger import GovernanceLedger, LedgerParams, LedgerState
from .signer import SecretKeyProvider

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class LedgerStore:
    """Persist a single ledger's state to a JSON file."""

    def __init__(self, path: str) -> None:
        self.path = path

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def _load(self) -> Dict[str, object]:
        with open(self.path, "r", encoding="utf-8") as handle:
            return json.load(handle)

    def _save(self, payload: Dict[str, object]) -> None:
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        os.replace(tmp_path, self.path)

    def initialize(self, params: LedgerParams, provider: SecretKeyProvider) -> GovernanceLedger:
        if self.exists():
            raise ValueError(f"Ledger already exists at {self.path}")
        ledger = GovernanceLedger(params, provider)
        self.save(ledger)
        logger.info("initialized ledger at %s", self.path)
        return ledger

    def load(self, provider: SecretKeyProvider) -> GovernanceLedger:
        if not self.exists():
            raise FileNotFoundError(f"No ledger at {self.path}; run init first")
        payload = self._load()
        version = payload.get("version")
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported ledger format version: {version!r}")
        state = LedgerState.from_dict(payload["ledger"])  # type: ignore[arg-type]
        return GovernanceLedger.from_state(state, provider)

    def load_or_initialize(self, params: LedgerParams, provider: SecretKeyProvider) -> GovernanceLedger:
        if self.exists():
            return self.load(provider)
        return self.initialize(params, provider)

    def save(self, ledger: GovernanceLedger) -> None:
        self._save({"version": FORMAT_VERSION, "ledger": ledger.to_dict()})


__all__ = ["FORMAT_VERSION", "LedgerStore"]
