"""
Board Geometry Test Suite

Sections:
    1. Lanes — count, sums, lengths, baskets
    2. Space mapping — endpoints, rounding, inverse lookup
    3. Tiles — every step exists, tile map agrees with checkpoints/deterrents
    4. Snap-down and anchors — gaps, retreat and advance targets
"""
import pytest

from board import (
    LANES, LANE_COUNT, MAX_SPACE, Tile,
    adjacent_lanes, advance_step, checkpoints, deterrents, in_board,
    lane_for_sum, retreat_step, snap_down, space_of, step_for_space,
    tile_at, tile_at_space, tile_exists, top_step,
)

LANE_INDICES = list(range(LANE_COUNT))


# ── 1. Lanes ─────────────────────────────────────────────────────────────────

class TestLanes:

    def test_eleven_lanes_by_ascending_sum(self):
        assert LANE_COUNT == 11
        assert [lane.sum for lane in LANES] == list(range(2, 13))

    def test_lengths_are_mirrored_around_seven(self):
        for index in LANE_INDICES:
            assert LANES[index].length == LANES[LANE_COUNT - 1 - index].length
        assert LANES[5].length == 8

    def test_baskets_sit_on_even_lanes(self):
        for lane in LANES:
            assert lane.basket == (lane.sum % 2 == 0)

    def test_lane_for_sum(self):
        assert lane_for_sum(2) == 0
        assert lane_for_sum(12) == 10
        assert lane_for_sum(1) is None
        assert lane_for_sum(13) is None

    def test_in_board(self):
        assert in_board(0) and in_board(10)
        assert not in_board(-1)
        assert not in_board(11)

    def test_adjacent_lanes_at_edges(self):
        assert adjacent_lanes(0) == [1]
        assert adjacent_lanes(10) == [9]
        assert adjacent_lanes(5) == [4, 6]


# ── 2. Space mapping ─────────────────────────────────────────────────────────

class TestSpaceMapping:

    @pytest.mark.parametrize("lane", LANE_INDICES)
    def test_first_and_top_steps_map_to_board_ends(self, lane):
        assert space_of(lane, 1) == 1
        assert space_of(lane, top_step(lane)) == MAX_SPACE

    def test_half_rounds_up(self):
        # 5-step lane: (2 - 1) * 10 / 4 = 2.5
        assert space_of(2, 2) == 4

    def test_spaces_strictly_increase_along_a_lane(self):
        for lane in LANE_INDICES:
            spaces = [space_of(lane, s) for s in range(1, top_step(lane) + 1)]
            assert spaces == sorted(set(spaces))

    def test_step_for_space_exact(self):
        assert step_for_space(0, 6) == 2
        assert step_for_space(4, 3) == 2

    def test_step_for_space_nearest_prefers_lower_step(self):
        # lane 5 has steps on spaces 2 and 4 but not 3
        assert step_for_space(5, 3) == 2


# ── 3. Tiles ─────────────────────────────────────────────────────────────────

class TestTiles:

    @pytest.mark.parametrize("lane", LANE_INDICES)
    def test_every_step_exists(self, lane):
        for step in range(1, top_step(lane) + 1):
            assert tile_exists(lane, step)

    @pytest.mark.parametrize("lane", LANE_INDICES)
    def test_off_lane_steps_are_gaps(self, lane):
        assert tile_at(lane, 0) is Tile.GAP
        assert tile_at(lane, top_step(lane) + 1) is Tile.GAP

    def test_out_of_range_space_is_gap(self):
        assert tile_at_space(3, 0) is Tile.GAP
        assert tile_at_space(3, 12) is Tile.GAP

    @pytest.mark.parametrize("lane", LANE_INDICES)
    def test_start_and_final_ends(self, lane):
        assert tile_at(lane, 1) is Tile.START
        assert tile_at(lane, top_step(lane)) is Tile.FINAL

    @pytest.mark.parametrize("lane", LANE_INDICES)
    def test_tile_map_matches_checkpoint_and_deterrent_steps(self, lane):
        lane_def = LANES[lane]
        safe = set(checkpoints(lane_def.length))
        hazards = set(deterrents(lane_def.length, lane_def.sum))
        for step in range(2, lane_def.length + 1):
            tile = tile_at(lane, step)
            assert (tile is Tile.DETERRENT) == (step in hazards)
            assert (tile in (Tile.CHECKPOINT, Tile.FINAL)) == (step in safe)

    def test_checkpoints(self):
        assert checkpoints(3) == [2, 3]
        assert checkpoints(4) == [2, 3, 4]
        assert checkpoints(8) == [2, 4, 7, 8]

    def test_deterrents_extra_on_six_and_eight(self):
        assert deterrents(7, 6) == [3, 5]
        assert deterrents(7, 8) == [3, 5]
        assert deterrents(8, 7) == [3, 6]

    def test_short_lanes_have_no_deterrents(self):
        assert deterrents(3, 2) == []

    def test_deterrents_never_overlap_checkpoints(self):
        for lane in LANES:
            assert not set(deterrents(lane.length, lane.sum)) & set(checkpoints(lane.length))


# ── 4. Snap-down and anchors ─────────────────────────────────────────────────

class TestSnapAndAnchors:

    def test_snap_down_through_gaps(self):
        assert snap_down(0, 10) == 6
        assert snap_down(0, 5) == 1

    def test_snap_down_clamps_to_board(self):
        assert snap_down(0, 20) == 11
        assert snap_down(0, -3) == 1

    @pytest.mark.parametrize("lane", LANE_INDICES)
    def test_retreat_always_finds_an_anchor(self, lane):
        for step in range(1, top_step(lane) + 1):
            assert retreat_step(lane, step) is not None

    def test_retreat_from_normal_tile(self):
        # lane 5: S C D C N D C F
        assert retreat_step(5, 5) == 4
        assert retreat_step(5, 3) == 2

    def test_retreat_skips_blocked_anchor(self):
        assert retreat_step(5, 5, blocked={(5, 4)}) == 2

    def test_retreat_returns_none_when_all_blocked(self):
        assert retreat_step(0, 1, blocked={(0, 1)}) is None

    def test_advance_to_next_anchor(self):
        assert advance_step(5, 5) == 7
        assert advance_step(5, 7) == 7
        assert advance_step(5, 5, blocked={(5, 7)}) == 8
