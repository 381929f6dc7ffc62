"""studio_engine.persistence

JSON-file save store.

One file per save key inside a directory. Saves refuse payloads that fail
the shape check; loads run schema migration and the same shape check.
Nothing here raises for I/O or decode problems: callers get a result object
with ok=False and an error string instead.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from studio_core.state import GameState, has_minimal_state_shape, state_from_mapping, state_to_dict

logger = logging.getLogger(__name__)

SAVE_SCHEMA_VERSION = 1

SAVE_KEYS: Dict[str, str] = {
    "autosave": "entropy.m3.autosave",
    "slot1": "entropy.m3.slot1",
    "slot2": "entropy.m3.slot2",
    "slot3": "entropy.m3.slot3",
}
SLOT_ORDER = ("slot1", "slot2", "slot3")


@dataclass(frozen=True)
class SaveResult:
    ok: bool
    key: Optional[str] = None
    bytes: int = 0
    error: Optional[str] = None


@dataclass(frozen=True)
class LoadResult:
    ok: bool
    key: Optional[str] = None
    state: Optional[GameState] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class SlotInfo:
    id: str
    storage_key: str
    exists: bool
    week: Optional[int] = None
    status: Optional[str] = None
    updated_at_iso: Optional[str] = None


def ensure_save_key(save_key: Optional[str]) -> str:
    if isinstance(save_key, str) and save_key:
        return save_key
    return SAVE_KEYS["autosave"]


def migrate_save_payload(payload: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """Bring a stored payload up to SAVE_SCHEMA_VERSION, or None if unsupported."""
    data = copy.deepcopy(dict(payload))
    meta = data.get("meta")
    if not isinstance(meta, dict):
        return None

    try:
        version = int(meta.get("schema_version") or 0)
    except (TypeError, ValueError):
        return None

    if version <= 0 or version > SAVE_SCHEMA_VERSION:
        return None
    if version < SAVE_SCHEMA_VERSION:
        meta["schema_version"] = SAVE_SCHEMA_VERSION
    return data


class JsonSaveStore:
    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if "/" in key or "\\" in key or key in (".", ".."):
            raise ValueError(f"invalid save key: {key!r}")
        return self.directory / f"{key}.json"

    def save(self, key: Optional[str], state: Union[GameState, Mapping[str, Any]]) -> SaveResult:
        payload = state_to_dict(state) if isinstance(state, GameState) else state
        if not has_minimal_state_shape(payload):
            logger.warning("Refusing to save state with invalid shape")
            return SaveResult(ok=False, error="Game state cannot be saved due to invalid shape.")

        resolved = ensure_save_key(key)
        try:
            serialized = json.dumps(payload, ensure_ascii=False)
            path = self._path(resolved)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(serialized, encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Could not save %s: %s", resolved, exc)
            return SaveResult(ok=False, key=resolved, error=str(exc))

        return SaveResult(ok=True, key=resolved, bytes=len(serialized))

    def load(self, key: Optional[str] = None) -> LoadResult:
        """Missing saves load as ok=True with state=None."""
        resolved = ensure_save_key(key)
        try:
            path = self._path(resolved)
            if not path.exists():
                return LoadResult(ok=True, key=resolved)
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Could not load %s: %s", resolved, exc)
            return LoadResult(ok=False, key=resolved, error=str(exc))

        migrated = migrate_save_payload(parsed) if isinstance(parsed, Mapping) else None
        if migrated is None or not has_minimal_state_shape(migrated):
            logger.warning("Stored payload %s does not match the save schema", resolved)
            return LoadResult(ok=False, key=resolved, error="Stored payload does not match expected save schema.")

        try:
            state = state_from_mapping(migrated)
        except (TypeError, ValueError, OverflowError) as exc:
            logger.warning("Stored payload %s has malformed values: %s", resolved, exc)
            return LoadResult(ok=False, key=resolved, error="Stored payload does not match expected save schema.")

        return LoadResult(ok=True, key=resolved, state=state)

    def delete(self, key: Optional[str] = None) -> SaveResult:
        resolved = ensure_save_key(key)
        try:
            self._path(resolved).unlink(missing_ok=True)
        except (OSError, ValueError) as exc:
            logger.warning("Could not delete %s: %s", resolved, exc)
            return SaveResult(ok=False, key=resolved, error=str(exc))
        return SaveResult(ok=True, key=resolved)

    def list_slots(self) -> List[SlotInfo]:
        slots: List[SlotInfo] = []
        for slot_id in SLOT_ORDER:
            storage_key = SAVE_KEYS[slot_id]
            result = self.load(storage_key)
            state = result.state if result.ok else None
            if state is None:
                slots.append(SlotInfo(id=slot_id, storage_key=storage_key, exists=False))
                continue
            slots.append(
                SlotInfo(
                    id=slot_id,
                    storage_key=storage_key,
                    exists=True,
                    week=state.run.week,
                    status=state.run.status,
                    updated_at_iso=state.meta.updated_at_iso,
                )
            )
        return slots
