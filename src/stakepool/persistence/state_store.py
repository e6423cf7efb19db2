"""State store — JSON snapshot of the pool and, optionally, its asset.

The event log is the audit trail; the state store is what the service
loads on start-up so it does not have to replay history. The snapshot is
written whole on every mutation through a temporary file and an atomic
rename, so a crash mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

SNAPSHOT_VERSION = 1


class StateStore:
    """Whole-file JSON persistence for pool state."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path

    @property
    def exists(self) -> bool:
        return self._storage_path.exists()

    def save(
        self,
        pool_state: dict[str, Any],
        asset_state: Optional[dict[str, Any]] = None,
        incentive_state: Optional[dict[str, Any]] = None,
    ) -> None:
        document = {
            "version": SNAPSHOT_VERSION,
            "pool": pool_state,
            "asset": asset_state,
            "incentive": incentive_state,
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(document, f, sort_keys=True, indent=2)
        os.replace(tmp_path, self._storage_path)

    def load(self) -> Optional[dict[str, Any]]:
        """Return the stored document, or None if nothing has been saved."""
        if not self._storage_path.exists():
            return None
        with self._storage_path.open("r", encoding="utf-8") as f:
            document = json.load(f)
        version = document.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(
                f"Unsupported state snapshot version {version!r} "
                f"(expected {SNAPSHOT_VERSION})"
            )
        return document
