"""
Dice Tables Test Suite

Sections:
    1. Enumeration — outcome counts, histogram totals
    2. Hit probabilities — known values, symmetry
    3. Any-of queries — order, duplicates, empty and full sets
    4. Joint probabilities and concrete rolls
"""
import pytest

from dice_tables import (
    ALL_SUMS, HIT_PROBS, JOINT_PROBS, MASK_COUNTS, PAIR_INDICES, PAIRINGS,
    TOTAL_OUTCOMES,
    has_disjoint_pair, probability_any_sums, probability_joint,
    probability_sum_hit, sums_to_mask,
)
from game_engine import Roll


# ── 1. Enumeration ───────────────────────────────────────────────────────────

class TestEnumeration:

    def test_total_outcomes(self):
        assert TOTAL_OUTCOMES == 1296

    def test_mask_histogram_covers_every_outcome(self):
        assert sum(MASK_COUNTS) == TOTAL_OUTCOMES
        assert MASK_COUNTS[0] == 0

    def test_six_pairs_three_pairings(self):
        assert len(PAIR_INDICES) == 6
        assert len(PAIRINGS) == 3
        for first, second in PAIRINGS:
            assert set(first).isdisjoint(second)

    def test_sums_to_mask_ignores_out_of_range(self):
        assert sums_to_mask([2]) == 1
        assert sums_to_mask([12]) == 1 << 10
        assert sums_to_mask([1, 13]) == 0


# ── 2. Hit probabilities ─────────────────────────────────────────────────────

class TestHitProbabilities:

    def test_snake_eyes(self):
        # at least two 1s among four dice
        assert HIT_PROBS[2] == pytest.approx(171 / 1296)

    def test_symmetric_around_seven(self):
        for total in ALL_SUMS:
            assert HIT_PROBS[total] == pytest.approx(HIT_PROBS[14 - total])

    def test_seven_is_most_likely(self):
        assert max(ALL_SUMS, key=lambda s: HIT_PROBS[s]) == 7

    def test_unknown_sum_is_zero(self):
        assert probability_sum_hit(1) == 0.0
        assert probability_sum_hit(13) == 0.0


# ── 3. Any-of queries ────────────────────────────────────────────────────────

class TestAnySums:

    def test_empty_set_is_zero(self):
        assert probability_any_sums([]) == 0

    def test_every_sum_is_certain(self):
        assert probability_any_sums(range(2, 13)) == pytest.approx(1.0)

    def test_single_sum_matches_hit_table(self):
        for total in ALL_SUMS:
            assert probability_any_sums([total]) == pytest.approx(HIT_PROBS[total])

    def test_order_and_duplicates_do_not_matter(self):
        assert probability_any_sums([4, 8, 9]) == probability_any_sums([9, 4, 8, 8, 4])

    def test_union_is_at_least_each_part(self):
        both = probability_any_sums([6, 8])
        assert both >= HIT_PROBS[6]
        assert both >= HIT_PROBS[8]
        assert both <= HIT_PROBS[6] + HIT_PROBS[8]


# ── 4. Joint probabilities and concrete rolls ────────────────────────────────

class TestJoint:

    def test_joint_is_symmetric(self):
        for a in ALL_SUMS:
            for b in ALL_SUMS:
                assert JOINT_PROBS[(a, b)] == JOINT_PROBS[(b, a)]

    def test_two_and_twelve(self):
        # arrangements of 1, 1, 6, 6
        assert probability_joint(2, 12) == pytest.approx(6 / 1296)

    def test_double_snake_eyes(self):
        assert probability_joint(2, 2) == pytest.approx(1 / 1296)

    def test_joint_never_exceeds_either_hit(self):
        for a in ALL_SUMS:
            for b in ALL_SUMS:
                assert probability_joint(a, b) <= min(HIT_PROBS[a], HIT_PROBS[b]) + 1e-12

    def test_disjoint_pair_found(self):
        assert has_disjoint_pair(Roll.from_dice((1, 6, 1, 6)), 2, 12)
        assert has_disjoint_pair(Roll.from_dice((1, 1, 1, 6)), 2, 7)

    def test_overlapping_pairs_do_not_count(self):
        # the only 2 uses both 1s, and every 7 needs one of them
        assert not has_disjoint_pair(Roll.from_dice((1, 1, 6, 6)), 2, 7)

    def test_sum_not_rolled(self):
        assert not has_disjoint_pair(Roll.from_dice((3, 3, 3, 3)), 6, 7)
