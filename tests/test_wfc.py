"""Tests for the WFC tile buffer."""

import asyncio
import logging
import math

import numpy as np
import pytest

from tilecollapse.enums import BufferState
from tilecollapse.errors import CollapseFailed, ContradictionError, NotReady
from tilecollapse.model.wfc import WFC, TileData, WFCOptions


def _resolved_types(wfc: WFC) -> list:
    return [tile.type for tile in wfc.tiles]


class TestBufferState:
    """Test the lifecycle of a buffer."""

    def test_new_buffer_is_unknown(self) -> None:
        """Test a buffer without rules cannot run."""
        wfc = WFC(WFCOptions(width=2, height=2, seed=1))
        assert wfc.buffer_state == BufferState.UNKNOWN
        with pytest.raises(NotReady) as excinfo:
            wfc.run()
        assert excinfo.value.state == BufferState.UNKNOWN
        assert wfc.buffer_state == BufferState.UNKNOWN

    def test_rules_make_buffer_ready(self, checkerboard_wfc: WFC) -> None:
        """Test registering rules moves the buffer to READY, removing them moves it back."""
        assert checkerboard_wfc.buffer_state == BufferState.READY
        checkerboard_wfc.reset_rules()
        assert checkerboard_wfc.buffer_state == BufferState.UNKNOWN

    def test_results_require_collapsed_buffer(self, checkerboard_wfc: WFC) -> None:
        """Test results cannot be read before the run finished."""
        with pytest.raises(NotReady):
            checkerboard_wfc.get_resolved_tile(0)
        with pytest.raises(NotReady):
            checkerboard_wfc.to_json()

    def test_failed_set_rules_keeps_previous_rules(self, checkerboard_wfc: WFC) -> None:
        """Test a rejected rule table leaves the previous rules and the READY state in place."""
        with pytest.raises(ValueError):
            checkerboard_wfc.set_rules({"B": {"up": ["A"]}, "C": {"sideways": ["C"]}})

        assert checkerboard_wfc.buffer_state == BufferState.READY
        assert list(checkerboard_wfc.rule_set.to_mapping()) == ["A", "B"]
        assert checkerboard_wfc.rule_set.get_rule("B").up == ("A",)
        checkerboard_wfc.run()
        assert checkerboard_wfc.rule_violations() == []

    def test_step_without_run(self, checkerboard_wfc: WFC) -> None:
        """Test stepping without a run in progress raises NotReady."""
        with pytest.raises(NotReady):
            checkerboard_wfc.step()

    def test_collapsed_buffer_cannot_rerun(self, checkerboard_wfc: WFC) -> None:
        """Test a collapsed buffer has to be reset before running again."""
        checkerboard_wfc.run()
        assert checkerboard_wfc.buffer_state == BufferState.COLLAPSED
        with pytest.raises(NotReady):
            checkerboard_wfc.run()

    def test_edits_blocked_while_collapsing(self, checkerboard_wfc: WFC, checkerboard_rules) -> None:
        """Test rules, weights and tiles cannot change during a run."""
        checkerboard_wfc.start()
        assert checkerboard_wfc.buffer_state == BufferState.COLLAPSING
        with pytest.raises(NotReady):
            checkerboard_wfc.set_rules(checkerboard_rules)
        with pytest.raises(NotReady):
            checkerboard_wfc.set_weight("A", 2)
        with pytest.raises(NotReady):
            checkerboard_wfc.set_tile_data("A", 3)

    def test_tiles_blocked_once_collapsed(self, checkerboard_wfc: WFC) -> None:
        """Test a collapsed grid cannot be pre-seeded until its tile data is reset."""
        checkerboard_wfc.run()
        with pytest.raises(NotReady):
            checkerboard_wfc.set_tile_data("A", 0)
        checkerboard_wfc.reset_tile_data()
        checkerboard_wfc.set_tile_data("A", 0)

    def test_reset_tile_data(self, checkerboard_wfc: WFC) -> None:
        """Test resetting the tile data keeps the rules and makes the buffer READY again, repeatedly."""
        checkerboard_wfc.run()
        checkerboard_wfc.reset_tile_data()
        checkerboard_wfc.reset_tile_data()

        assert checkerboard_wfc.buffer_state == BufferState.READY
        assert _resolved_types(checkerboard_wfc) == [None] * 4
        assert (checkerboard_wfc.width, checkerboard_wfc.height) == (2, 2)
        assert all(tile.entropy == math.inf for tile in checkerboard_wfc.tiles)
        assert checkerboard_wfc.start_with_random

    def test_reset_level(self, checkerboard_wfc: WFC) -> None:
        """Test resetting the level drops rules, weights and tiles, repeatedly."""
        checkerboard_wfc.set_weight("A", 4)
        checkerboard_wfc.run()
        checkerboard_wfc.reset_level()
        checkerboard_wfc.reset_level()

        assert checkerboard_wfc.buffer_state == BufferState.UNKNOWN
        assert checkerboard_wfc.tile_types == []
        assert (checkerboard_wfc.width, checkerboard_wfc.height) == (2, 2)
        assert len(checkerboard_wfc.rule_set) == 0
        assert checkerboard_wfc.weighting.to_mapping() == {}
        assert _resolved_types(checkerboard_wfc) == [None] * 4

    @pytest.mark.parametrize("width, height", [(0, 2), (2, 0)])
    def test_invalid_dimensions(self, width: int, height: int) -> None:
        """Test empty grids are rejected at construction."""
        with pytest.raises(ValueError):
            WFC(WFCOptions(width=width, height=height))


class TestRun:
    """Test complete runs."""

    def test_golden_checkerboard(self, checkerboard_wfc: WFC) -> None:
        """Test the exact resolution order and result of seed 1."""
        steps = [(step.index, checkerboard_wfc.tile_types[step.tile]) for step in checkerboard_wfc.steps()]

        assert steps == [(0, "A"), (2, "B"), (1, "B"), (3, "A")]
        assert checkerboard_wfc.to_json() == (
            b'[{"index":0,"type":"A"},{"index":1,"type":"B"},{"index":2,"type":"B"},{"index":3,"type":"A"}]'
        )
        assert checkerboard_wfc.tile_array().tolist() == [[0, 1], [1, 0]]

    def test_get_resolved_tile(self, checkerboard_wfc: WFC) -> None:
        """Test resolved tiles carry their type and entropy 0."""
        checkerboard_wfc.run()
        assert checkerboard_wfc.get_resolved_tile(1) == TileData(1, "B", 0, ())

    def test_same_seed_same_grid(self, terrain_rules) -> None:
        """Test two buffers with equal seeds and rules produce equal grids."""
        grids = []
        for _ in range(2):
            wfc = WFC(WFCOptions(width=10, height=7, seed=31337))
            wfc.set_rules(terrain_rules)
            wfc.run()
            grids.append(_resolved_types(wfc))
        assert grids[0] == grids[1]

    def test_rerun_after_reset_is_deterministic(self, terrain_wfc: WFC) -> None:
        """Test a run repeated after resetting the tile data reproduces the grid."""
        terrain_wfc.run()
        first = _resolved_types(terrain_wfc)
        terrain_wfc.reset_tile_data()
        terrain_wfc.run()
        assert _resolved_types(terrain_wfc) == first

    def test_seed_is_fixed_at_construction(self) -> None:
        """Test a buffer without explicit seed still reuses one seed for all runs."""
        wfc = WFC(WFCOptions(width=2, height=2))
        seed = wfc.seed
        wfc.set_rules({"A": {"up": ["A"], "down": ["A"], "left": ["A"], "right": ["A"]}})
        wfc.run()
        assert wfc.seed == seed
        assert 0 <= seed < 2**32

    def test_result_is_locally_consistent(self, terrain_wfc: WFC) -> None:
        """Test every cell is resolved and every neighbor pair obeys the rules."""
        terrain_wfc.run()
        assert None not in _resolved_types(terrain_wfc)
        assert terrain_wfc.rule_violations() == []
        assert (terrain_wfc.tile_array() >= 0).all()

    def test_partial_iteration_can_be_continued(self, checkerboard_wfc: WFC) -> None:
        """Test a run stopped by the caller stays in progress and can be finished with step()."""
        steps = checkerboard_wfc.steps()
        next(steps)
        next(steps)
        assert checkerboard_wfc.buffer_state == BufferState.COLLAPSING
        assert checkerboard_wfc.tile_array().tolist() == [[0, -1], [1, -1]]

        checkerboard_wfc.step()
        checkerboard_wfc.step()
        assert checkerboard_wfc.buffer_state == BufferState.COLLAPSED

    def test_run_async(self, terrain_wfc: WFC) -> None:
        """Test the async run produces the same grid as the synchronous one."""
        asyncio.run(terrain_wfc.run_async())
        async_result = _resolved_types(terrain_wfc)

        terrain_wfc.reset_tile_data()
        terrain_wfc.run()
        assert _resolved_types(terrain_wfc) == async_result

    def test_weights_bias_selection(self) -> None:
        """Test the second resolved cell of a 1x2 grid picks 'X' with probability 3/4 when 'X' weighs 3."""
        both = ["X", "Y"]
        rules = {"X": {"left": both, "right": both}, "Y": {"left": both, "right": both}}
        seeds = np.random.default_rng(0).integers(0, 2**32, size=2000)

        second_tiles = []
        for seed in seeds:
            wfc = WFC(WFCOptions(width=2, height=1, seed=int(seed)))
            wfc.set_rules(rules)
            wfc.set_weight("X", 3)
            steps = list(wfc.steps())
            second_tiles.append(wfc.tile_types[steps[1].tile])

        assert np.mean(np.array(second_tiles) == "X") == pytest.approx(0.75, abs=0.04)


class TestPreSeeding:
    """Test runs with pre-seeded tiles."""

    def test_preseeded_tile_is_kept(self, checkerboard_rules) -> None:
        """Test a pre-seeded cell keeps its type and the run grows around it."""
        wfc = WFC(WFCOptions(width=3, height=3, seed=4))
        wfc.set_rules(checkerboard_rules)
        wfc.set_tile_data({"type": "B"}, 4, seed_random_start=False)
        wfc.run()

        assert wfc.get_resolved_tile(4).type == "B"
        assert _resolved_types(wfc) == ["B", "A", "B", "A", "B", "A", "B", "A", "B"]

    def test_set_tiles_shapes(self, checkerboard_rules) -> None:
        """Test set_tiles accepts plain and nested dict entries."""
        wfc = WFC(WFCOptions(width=2, height=2, seed=2))
        wfc.set_rules(checkerboard_rules)
        wfc.set_tiles([{"index": 0, "type": "A"}, {"index": 3, "tile": {"type": "A"}}], seed_random_start=False)

        assert _resolved_types(wfc) == ["A", None, None, "A"]
        assert not wfc.start_with_random
        wfc.run()
        assert _resolved_types(wfc) == ["A", "B", "B", "A"]

    def test_fully_preseeded_grid(self, checkerboard_rules) -> None:
        """Test a grid without unresolved cells collapses as soon as it starts."""
        wfc = WFC(WFCOptions(width=2, height=1, seed=1))
        wfc.set_rules(checkerboard_rules)
        wfc.set_tiles({0: "A", 1: "B"})

        assert list(wfc.steps()) == []
        assert wfc.buffer_state == BufferState.COLLAPSED
        assert wfc.to_json() == b'[{"index":0,"type":"A"},{"index":1,"type":"B"}]'

    @pytest.mark.parametrize("bad_entry", [(99, "A"), (1, 2.5)])
    def test_failed_set_tiles_changes_nothing(self, checkerboard_wfc: WFC, bad_entry) -> None:
        """Test an invalid entry leaves every cell and the random start setting as they were."""
        with pytest.raises((IndexError, TypeError)):
            checkerboard_wfc.set_tiles([(0, "A"), bad_entry], seed_random_start=False)

        assert _resolved_types(checkerboard_wfc) == [None] * 4
        assert checkerboard_wfc.start_with_random
        assert checkerboard_wfc.tile_types == ["A", "B"]

    def test_no_start_and_no_anchor(self, checkerboard_wfc: WFC) -> None:
        """Test a run without starting cell and without anchors has nothing to grow from."""
        checkerboard_wfc.set_tiles([], seed_random_start=False)
        with pytest.raises(ContradictionError):
            checkerboard_wfc.run()


class TestFailures:
    """Test failed runs."""

    def test_undeclared_tile_type(self, undeclared_rules, caplog) -> None:
        """Test rules referencing a tile type without a rule end in a contradiction."""
        wfc = WFC(WFCOptions(width=3, height=3, seed=5))
        wfc.set_rules(undeclared_rules)

        with caplog.at_level(logging.ERROR, logger="tilecollapse"):
            with pytest.raises(ContradictionError) as excinfo:
                wfc.run()

        assert isinstance(excinfo.value, CollapseFailed)
        assert "aborted" in caplog.text
        assert wfc.buffer_state == BufferState.COLLAPSING

    def test_failed_run_requires_reset(self, undeclared_rules) -> None:
        """Test a failed buffer stays COLLAPSING until its tile data is reset."""
        wfc = WFC(WFCOptions(width=2, height=2, seed=5))
        wfc.set_rules(undeclared_rules)
        with pytest.raises(ContradictionError):
            wfc.run()

        with pytest.raises(NotReady):
            wfc.run()
        with pytest.raises(NotReady):
            wfc.step()
        with pytest.raises(NotReady):
            wfc.get_resolved_tile(0)

        wfc.reset_tile_data()
        assert wfc.buffer_state == BufferState.READY

    def test_contradicting_preseeds(self, checkerboard_rules) -> None:
        """Test pre-seeded tiles that contradict each other fail the run on start."""
        wfc = WFC(WFCOptions(width=3, height=1, seed=1))
        wfc.set_rules(checkerboard_rules)
        wfc.set_tiles({0: "A", 2: "B"}, seed_random_start=False)
        with pytest.raises(ContradictionError):
            wfc.run()
        assert wfc.buffer_state == BufferState.COLLAPSING
