"""
Dice Tables — Exact four-dice pair-sum probabilities for Swoop.

All constants are computed once at import time by enumerating the 6^4 = 1296
ordered outcomes. No randomness involved.

Constants:
    TOTAL_OUTCOMES — 1296
    ALL_SUMS       — (2, 3, ..., 12)
    PAIR_INDICES   — the six (i, j) dice index pairs
    PAIRINGS       — the three ways to split four dice into two disjoint pairs
    HIT_PROBS      — sum → P(some pair of dice shows that sum)
    JOINT_PROBS    — (a, b) → P(a and b both show on disjoint pairs)
    MASK_COUNTS    — histogram over 11-bit "which sums are showing" masks

Functions:
    probability_any_sums(sums) — P(at least one of the sums shows), memoized by mask
    probability_sum_hit(total)
    probability_joint(a, b)
    has_disjoint_pair(roll, a, b)
"""
import functools
import itertools

SUM_MIN = 2
SUM_MAX = 12
ALL_SUMS = tuple(range(SUM_MIN, SUM_MAX + 1))
TOTAL_OUTCOMES = 6 ** 4
MASK_SIZE = 1 << len(ALL_SUMS)

PAIR_INDICES = tuple(itertools.combinations(range(4), 2))

PAIRINGS = (
    ((0, 1), (2, 3)),
    ((0, 2), (1, 3)),
    ((0, 3), (1, 2)),
)


def sums_to_mask(sums) -> int:
    """Bitmask with bit (sum - 2) set for every in-range sum."""
    mask = 0
    for total in sums:
        if SUM_MIN <= total <= SUM_MAX:
            mask |= 1 << (total - SUM_MIN)
    return mask


# ── Enumeration ──────────────────────────────────────────────────────────────

def _build_tables():
    """Count hits, disjoint joint hits, and sum-masks over all 1296 outcomes."""
    hit_counts = {total: 0 for total in ALL_SUMS}
    joint_counts = {(a, b): 0 for a in ALL_SUMS for b in ALL_SUMS}
    mask_counts = [0] * MASK_SIZE

    for dice in itertools.product(range(1, 7), repeat=4):
        showing = {dice[i] + dice[j] for i, j in PAIR_INDICES}
        for total in showing:
            hit_counts[total] += 1
        mask_counts[sums_to_mask(showing)] += 1

        # Each ordered (a, b) is counted at most once per outcome
        joint_seen = set()
        for (a0, a1), (b0, b1) in PAIRINGS:
            sum_a = dice[a0] + dice[a1]
            sum_b = dice[b0] + dice[b1]
            joint_seen.add((sum_a, sum_b))
            joint_seen.add((sum_b, sum_a))
        for key in joint_seen:
            joint_counts[key] += 1

    return hit_counts, joint_counts, mask_counts


_HIT_COUNTS, _JOINT_COUNTS, MASK_COUNTS = _build_tables()

HIT_PROBS = {total: count / TOTAL_OUTCOMES for total, count in _HIT_COUNTS.items()}
JOINT_PROBS = {key: count / TOTAL_OUTCOMES for key, count in _JOINT_COUNTS.items()}


# ── Queries ──────────────────────────────────────────────────────────────────

@functools.lru_cache(maxsize=MASK_SIZE)
def _probability_for_mask(mask: int) -> float:
    if mask == 0:
        return 0.0
    total = sum(count for idx, count in enumerate(MASK_COUNTS) if idx & mask)
    return total / TOTAL_OUTCOMES


def probability_any_sums(sums) -> float:
    """Exact P(at least one of ``sums`` is showing on some pair of four dice).

    Order and duplicates in ``sums`` do not matter; out-of-range sums are ignored.
    """
    return _probability_for_mask(sums_to_mask(sums))


def probability_sum_hit(total: int) -> float:
    return HIT_PROBS.get(total, 0.0)


def probability_joint(sum_a: int, sum_b: int) -> float:
    """P(sum_a and sum_b both show on two disjoint pairs of the same roll)."""
    return JOINT_PROBS.get((sum_a, sum_b), 0.0)


def has_disjoint_pair(roll, sum_a: int, sum_b: int) -> bool:
    """True if ``roll`` shows sum_a and sum_b on pairs sharing no die."""
    for pa in roll.pairs:
        if pa.sum != sum_a:
            continue
        for pb in roll.pairs:
            if pb.sum != sum_b:
                continue
            if {pa.i, pa.j}.isdisjoint((pb.i, pb.j)):
                return True
    return False
