"""
Board geometry for Swoop — lanes, tiles, and the step/space coordinate systems.

Each of the eleven lanes (one per dice-pair sum 2..12) has its own number of
steps, but all lanes share an 11-point canonical "space" axis so positions can
be compared across lanes. Steps are what pieces stand on; spaces are what
pushes and swoops measure.

Constants:
    LANES        — Lane(sum, length, basket) for lane indices 0..10
    TILE_MAP     — 11×11 table: tile type by lane index and space
    MAX_SPACE    — 11
    ANCHOR_TILES — tiles a piece may retreat to when banking or busting
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class Tile(Enum):
    """Tile classification at a canonical space."""
    START = "Start"
    GAP = "Gap"
    CHECKPOINT = "Checkpoint"
    DETERRENT = "Deterrent"
    NORMAL = "Normal"
    FINAL = "Final"


@dataclass(frozen=True)
class Lane:
    """One track on the board, keyed by dice-pair sum."""
    sum: int
    length: int
    basket: bool

    @property
    def is_odd(self) -> bool:
        return self.sum % 2 == 1


LANES = (
    Lane(2, 3, True),
    Lane(3, 4, False),
    Lane(4, 5, True),
    Lane(5, 6, False),
    Lane(6, 7, True),
    Lane(7, 8, False),
    Lane(8, 7, True),
    Lane(9, 6, False),
    Lane(10, 5, True),
    Lane(11, 4, False),
    Lane(12, 3, True),
)

LANE_COUNT = len(LANES)
MAX_SPACE = 11

_SUM_TO_LANE = {lane.sum: index for index, lane in enumerate(LANES)}


# ── Tile map ─────────────────────────────────────────────────────────────────

def _row(codes_row):
    codes = {
        "S": Tile.START, "_": Tile.GAP, "C": Tile.CHECKPOINT,
        "D": Tile.DETERRENT, "N": Tile.NORMAL, "F": Tile.FINAL,
    }
    return tuple(codes[ch] for ch in codes_row)

_EDGE = _row("S____C____F")
_OUTER = _row("S__C___C__F")
_BASKET_MID = _row("S__C_D__C_F")
_ODD_MID = _row("S_C_D_C_C_F")
_INNER = _row("S_CD_C_DC_F")
_CENTER = _row("SC_DC_ND_CF")

TILE_MAP = (
    _EDGE, _OUTER, _BASKET_MID, _ODD_MID, _INNER, _CENTER,
    _INNER, _ODD_MID, _BASKET_MID, _OUTER, _EDGE,
)

ANCHOR_TILES = frozenset({Tile.START, Tile.CHECKPOINT, Tile.FINAL})


# ── Lookups ──────────────────────────────────────────────────────────────────

def lane_for_sum(total):
    """Lane index for a dice-pair sum, or None if no lane carries it."""
    return _SUM_TO_LANE.get(total)


def in_board(lane: int) -> bool:
    return 0 <= lane < LANE_COUNT


def top_step(lane: int) -> int:
    return LANES[lane].length


def space_of(lane: int, step: int) -> int:
    """Map a step on a lane onto the canonical 1..11 space axis.

    Rounds half up, so a 5-step lane puts step 2 on space 4 (not 3).
    """
    length = LANES[lane].length
    if length <= 1:
        return 1
    return 1 + math.floor((step - 1) * (MAX_SPACE - 1) / (length - 1) + 0.5)


def tile_at_space(lane: int, space: int) -> Tile:
    if not 1 <= space <= MAX_SPACE:
        return Tile.GAP
    return TILE_MAP[lane][space - 1]


def tile_at(lane: int, step: int) -> Tile:
    if not 1 <= step <= LANES[lane].length:
        return Tile.GAP
    return tile_at_space(lane, space_of(lane, step))


def tile_exists(lane: int, step: int) -> bool:
    return tile_at(lane, step) is not Tile.GAP


def snap_down(lane: int, space: int) -> int:
    """First non-gap space at or below ``space`` (clamped to the board).

    Returns 0 when there is none, which callers treat as "off the board".
    """
    space = max(1, min(MAX_SPACE, space))
    while space >= 1 and tile_at_space(lane, space) is Tile.GAP:
        space -= 1
    return space


def step_for_space(lane: int, space: int):
    """Step whose mapped space matches ``space``; else the nearest existing step.

    Distance ties go to the lower step. Returns None only for a lane with no
    existing steps, which the canonical board never has.
    """
    length = LANES[lane].length
    for step in range(1, length + 1):
        if space_of(lane, step) == space and tile_exists(lane, step):
            return step

    best_step = None
    best_distance = None
    for step in range(1, length + 1):
        if not tile_exists(lane, step):
            continue
        distance = abs(space_of(lane, step) - space)
        if best_distance is None or distance < best_distance:
            best_distance = distance
            best_step = step
    return best_step


# ── Step-indexed features ────────────────────────────────────────────────────

def checkpoints(length: int) -> list[int]:
    """Checkpoint steps for a lane of the given length, ascending."""
    marks = {2, length - 1, length}
    if length >= 6:
        marks.add(4)
    return sorted(s for s in marks if 1 <= s <= length)


def deterrents(length: int, lane_sum: int) -> list[int]:
    """Deterrent steps for a lane, ascending. Never overlaps checkpoints."""
    if length <= 3:
        return []
    marks = {3, length - 2}
    if lane_sum in (6, 8) and length >= 5:
        marks.add(5)
    safe = set(checkpoints(length))
    return sorted(s for s in marks if 1 <= s <= length and s not in safe)


def retreat_step(lane: int, step: int, blocked=None):
    """Nearest anchor step at or below ``step`` not in ``blocked``, or None."""
    blocked = blocked or ()
    for s in range(step, 0, -1):
        if tile_at(lane, s) in ANCHOR_TILES and (lane, s) not in blocked:
            return s
    return None


def advance_step(lane: int, step: int, blocked=None):
    """Nearest anchor step at or above ``step`` not in ``blocked``, or None."""
    blocked = blocked or ()
    for s in range(step, LANES[lane].length + 1):
        if tile_at(lane, s) in ANCHOR_TILES and (lane, s) not in blocked:
            return s
    return None


def adjacent_lanes(lane: int) -> list[int]:
    return [r for r in (lane - 1, lane + 1) if in_board(r)]
