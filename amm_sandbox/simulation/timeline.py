#!/usr/bin/env python3
"""
Operation Timeline

Append/cursor log of immutable pool snapshots. Committing while the cursor
sits behind the head discards the redo branch. All functions are pure and
return new TimelineState values; snapshots are shared by reference, which is
safe because pool states are frozen.

Works for both pool models; `model` selects the preset catalogue and the
snapshot codec.
"""

import json
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional, Tuple, Union

from ..core.serialization import (
    deserialize_pool_state, deserialize_v3_pool_state, serialize_pool_state, serialize_v3_pool_state
)
from ..core.types import OperationKind, PoolState, V3PoolState
from ..engine.amm_v2 import state_from_preset
from ..engine.amm_v3 import state_from_preset_v3
from ..engine.config import V2Presets, V3Presets

logger = logging.getLogger(__name__)

Snapshot = Union[PoolState, V3PoolState]

MODELS = ("v2", "v3")


@dataclass(frozen=True)
class TimelineEntry:
    id: int
    kind: OperationKind
    label: str
    snapshot: Snapshot
    created_at: int  # epoch milliseconds


@dataclass(frozen=True)
class TimelineState:
    selected_preset: str
    timeline: Tuple[TimelineEntry, ...]
    cursor: int
    next_id: int

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self.timeline) - 1


def _now_ms() -> int:
    return int(time.time() * 1000)


def _check_model(model: str):
    if model not in MODELS:
        raise ValueError(f"Unknown pool model '{model}', expected one of {MODELS}")


def init_timeline_state(preset_id: str, model: str = "v2") -> TimelineState:
    """Fresh timeline holding a single init entry built from a preset"""
    _check_model(model)
    if model == "v2":
        preset = V2Presets.get_preset_by_id(preset_id)
        snapshot = state_from_preset(preset["id"])
    else:
        preset = V3Presets.get_preset_by_id(preset_id)
        snapshot = state_from_preset_v3(preset["id"])

    entry = TimelineEntry(
        id=0,
        kind=OperationKind.INIT,
        label=f"Init ({preset['label']})",
        snapshot=snapshot,
        created_at=_now_ms(),
    )
    return TimelineState(selected_preset=preset["id"], timeline=(entry,), cursor=0, next_id=1)


def commit_entry(state: TimelineState, kind: OperationKind, label: str, snapshot: Snapshot) -> TimelineState:
    """Append a snapshot after the cursor, dropping any redo branch"""
    entry = TimelineEntry(
        id=state.next_id,
        kind=kind,
        label=label,
        snapshot=snapshot,
        created_at=_now_ms(),
    )
    timeline = state.timeline[:state.cursor + 1] + (entry,)
    logger.debug("Committed timeline entry %d (%s): %s", entry.id, kind.value, label)
    return replace(state, timeline=timeline, cursor=len(timeline) - 1, next_id=state.next_id + 1)


def current_snapshot(state: TimelineState) -> Snapshot:
    return state.timeline[state.cursor].snapshot


def undo_timeline(state: TimelineState) -> TimelineState:
    if state.cursor == 0:
        return state
    return replace(state, cursor=state.cursor - 1)


def redo_timeline(state: TimelineState) -> TimelineState:
    if state.cursor >= len(state.timeline) - 1:
        return state
    return replace(state, cursor=state.cursor + 1)


def jump_to_timeline(state: TimelineState, index: int) -> TimelineState:
    """Move the cursor to any entry; out-of-range indices leave the state unchanged"""
    if index < 0 or index >= len(state.timeline):
        return state
    return replace(state, cursor=index)


# =============================================================================
# Export / import
# =============================================================================

def export_timeline(state: TimelineState, model: str = "v2") -> str:
    """Serialize the whole timeline (every snapshot plus the cursor) to JSON text"""
    _check_model(model)
    serialize = serialize_pool_state if model == "v2" else serialize_v3_pool_state

    payload = {
        "model": model,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "selected_preset": state.selected_preset,
        "cursor": state.cursor,
        "timeline": [
            {
                "id": entry.id,
                "kind": entry.kind.value,
                "label": entry.label,
                "created_at": entry.created_at,
                "snapshot": serialize(entry.snapshot),
            }
            for entry in state.timeline
        ],
    }
    return json.dumps(payload, indent=2)


def _parse_timeline_payload(parsed: Any, model: str, fallback_preset: str) -> TimelineState:
    if not isinstance(parsed, dict):
        raise ValueError("Import payload must be a JSON object")

    payload_model = parsed.get("model")
    if payload_model and payload_model != model:
        raise ValueError(f"Import model mismatch: expected {model}, got {payload_model}")

    items = parsed.get("timeline")
    if not items:
        raise ValueError("Import payload has no timeline entries")

    deserialize = deserialize_pool_state if model == "v2" else deserialize_v3_pool_state
    entries = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"Timeline entry {index} must be an object")
        entry_id = item.get("id")
        entries.append(TimelineEntry(
            id=entry_id if isinstance(entry_id, int) and not isinstance(entry_id, bool) else index,
            kind=OperationKind(item.get("kind", OperationKind.IMPORT.value)),
            label=str(item.get("label", "")),
            snapshot=deserialize(item.get("snapshot")),
            created_at=int(item.get("created_at") or 0),
        ))

    cursor = parsed.get("cursor")
    if not isinstance(cursor, int) or isinstance(cursor, bool) or not 0 <= cursor < len(entries):
        cursor = len(entries) - 1

    return TimelineState(
        selected_preset=parsed.get("selected_preset") or fallback_preset,
        timeline=tuple(entries),
        cursor=cursor,
        next_id=max(max(entry.id for entry in entries), 0) + 1,
    )


def import_timeline(
    raw: str,
    model: str = "v2",
    fallback_preset: str = ""
) -> Tuple[bool, Optional[str], Optional[TimelineState]]:
    """
    Rebuild a timeline from exported JSON text

    Returns:
        (ok, error, state); state is None when the payload is rejected
    """
    _check_model(model)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Timeline import failed: invalid JSON payload")
        return False, "Import failed: invalid JSON payload", None

    try:
        state = _parse_timeline_payload(parsed, model, fallback_preset)
    except (ValueError, TypeError) as exc:
        logger.warning("Timeline import failed: %s", exc)
        return False, str(exc), None

    return True, None, state
