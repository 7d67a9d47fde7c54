#!/usr/bin/env python3
"""
Operation Timeline Tests

Commit/undo/redo/jump semantics and JSON export/import of the snapshot log.
"""

import sys
import os
import json
import pytest

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from amm_sandbox.core.fixed_point import SCALE
from amm_sandbox.core.types import OperationKind, SwapDirection
from amm_sandbox.engine.amm_v2 import apply_swap_exact_in, quote_swap_exact_in
from amm_sandbox.simulation.timeline import (
    commit_entry, current_snapshot, export_timeline, import_timeline, init_timeline_state,
    jump_to_timeline, redo_timeline, undo_timeline
)


def _swap(snapshot, amount=SCALE):
    return apply_swap_exact_in(snapshot, quote_swap_exact_in(snapshot, SwapDirection.X_TO_Y, amount))


class TestTimelineNavigation:
    """Cursor movement and branching"""

    def setup_method(self):
        self.state = init_timeline_state("deep")

    def test_init(self):
        assert len(self.state.timeline) == 1
        assert self.state.cursor == 0
        assert self.state.next_id == 1
        assert self.state.selected_preset == "deep"

        entry = self.state.timeline[0]
        assert entry.kind == OperationKind.INIT
        assert entry.label == "Init (Deep Pool)"
        assert entry.created_at > 0
        assert not self.state.can_undo
        assert not self.state.can_redo

    def test_unknown_preset_and_model(self):
        assert init_timeline_state("nope").selected_preset == "deep"
        assert init_timeline_state("nope", "v3").selected_preset == "balanced"

        with pytest.raises(ValueError):
            init_timeline_state("deep", "v4")

    def test_commit_advances_cursor(self):
        snapshot = _swap(current_snapshot(self.state))
        state = commit_entry(self.state, OperationKind.SWAP, "Swap", snapshot)

        assert state.cursor == 1
        assert state.next_id == 2
        assert state.timeline[1].id == 1
        assert current_snapshot(state) is snapshot
        assert state.can_undo
        assert len(self.state.timeline) == 1, "Commit must not mutate the previous timeline"

    def test_undo_redo(self):
        state = commit_entry(self.state, OperationKind.SWAP, "Swap", _swap(current_snapshot(self.state)))

        undone = undo_timeline(state)
        assert undone.cursor == 0
        assert undone.can_redo
        assert current_snapshot(undone) is current_snapshot(self.state)

        redone = redo_timeline(undone)
        assert redone.cursor == 1

        assert undo_timeline(self.state) is self.state
        assert redo_timeline(state) is state

    def test_commit_after_undo_discards_redo_branch(self):
        first = _swap(current_snapshot(self.state))
        state = commit_entry(self.state, OperationKind.SWAP, "Swap 1", first)
        state = commit_entry(state, OperationKind.SWAP, "Swap 2", _swap(first))
        state = undo_timeline(undo_timeline(state))

        branched = commit_entry(state, OperationKind.SWAP, "Swap 3", _swap(current_snapshot(state), 2 * SCALE))

        assert [entry.label for entry in branched.timeline] == ["Init (Deep Pool)", "Swap 3"]
        assert branched.timeline[-1].id == 3, "Ids keep increasing across branches"
        assert not branched.can_redo

    def test_jump(self):
        state = commit_entry(self.state, OperationKind.SWAP, "Swap", _swap(current_snapshot(self.state)))

        assert jump_to_timeline(state, 0).cursor == 0
        assert jump_to_timeline(state, 5) is state
        assert jump_to_timeline(state, -1) is state


class TestTimelineExport:
    """JSON export and import"""

    def setup_method(self):
        state = init_timeline_state("shallow")
        state = commit_entry(state, OperationKind.SWAP, "Swap ETH->USDC", _swap(current_snapshot(state)))
        self.state = undo_timeline(state)

    def test_export_payload(self):
        payload = json.loads(export_timeline(self.state))

        assert payload["model"] == "v2"
        assert payload["selected_preset"] == "shallow"
        assert payload["cursor"] == 0
        assert len(payload["timeline"]) == 2
        assert payload["timeline"][1]["kind"] == "swap"
        assert isinstance(payload["timeline"][1]["snapshot"]["reserve_x"], str)
        assert "exported_at" in payload

    def test_round_trip(self):
        ok, error, imported = import_timeline(export_timeline(self.state))

        assert ok, error
        assert imported.cursor == 0
        assert imported.next_id == 2
        assert imported.selected_preset == "shallow"
        assert [e.snapshot for e in imported.timeline] == [e.snapshot for e in self.state.timeline]
        assert [e.label for e in imported.timeline] == [e.label for e in self.state.timeline]

    def test_v3_round_trip(self):
        state = init_timeline_state("narrow", "v3")
        ok, error, imported = import_timeline(export_timeline(state, "v3"), "v3")

        assert ok, error
        assert current_snapshot(imported) == current_snapshot(state)

    def test_invalid_json(self):
        ok, error, imported = import_timeline("{not json")
        assert not ok
        assert error == "Import failed: invalid JSON payload"
        assert imported is None

    def test_model_mismatch(self):
        ok, error, _ = import_timeline(export_timeline(self.state), "v3")
        assert not ok
        assert "model mismatch" in error

    def test_empty_timeline(self):
        ok, error, _ = import_timeline(json.dumps({"model": "v2", "timeline": []}))
        assert not ok
        assert error == "Import payload has no timeline entries"

    def test_bad_snapshot(self):
        payload = json.loads(export_timeline(self.state))
        payload["timeline"][0]["snapshot"]["reserve_y"] = 42

        ok, error, _ = import_timeline(json.dumps(payload))
        assert not ok
        assert "reserve_y" in error

    def test_out_of_range_cursor_falls_back_to_head(self):
        payload = json.loads(export_timeline(self.state))
        payload["cursor"] = 99
        del payload["selected_preset"]

        ok, error, imported = import_timeline(json.dumps(payload), fallback_preset="deep")
        assert ok, error
        assert imported.cursor == 1
        assert imported.selected_preset == "deep"
