"""
Swoop Game Engine - Pure game rules without presentation or transport dependencies

This module holds the game state, the dice roll, the action types, and every
state transition: moves with cascading pushes, token swoops, basket transfers,
banking and busting.

Rule functions (perform_move, bank, apply_bust, ensure_piece_for_sum, ...)
mutate the state they are given. apply_action() is the pure entry point: it
validates an action against a copy and returns the new state.
"""
from __future__ import annotations

import itertools
import random
from dataclasses import dataclass, field
from typing import ClassVar, Union

from board import (
    LANES, LANE_COUNT, MAX_SPACE, Tile,
    adjacent_lanes, advance_step, in_board, lane_for_sum, retreat_step,
    snap_down, space_of, step_for_space, tile_at, tile_at_space, tile_exists,
    top_step,
)

MIN_PLAYERS = 2
MAX_PLAYERS = 4
MAX_PIECES = 5
MAX_ACTIVE = 2
MAX_TOKENS = 2
VICTORY_TARGET = 2


class IllegalActionError(ValueError):
    """An action that would break a game invariant was applied."""


# ── State ───────────────────────────────────────────────────────────────────

@dataclass
class Piece:
    """A player's piece. ``basket_lane`` is the home lane of a carried basket."""
    lane: int
    step: int
    active: bool = False
    basket_lane: int | None = None

    @property
    def carrying(self) -> bool:
        return self.basket_lane is not None

    @property
    def position(self) -> tuple[int, int]:
        return (self.lane, self.step)

    @property
    def at_top(self) -> bool:
        return self.step == top_step(self.lane)

    def copy(self) -> Piece:
        return Piece(self.lane, self.step, self.active, self.basket_lane)


@dataclass
class Player:
    seat: int
    score: int = 0
    tokens: int = 0
    pieces: list[Piece] = field(default_factory=list)

    def active_count(self) -> int:
        return sum(1 for p in self.pieces if p.active)

    def pieces_on_lane(self, lane: int) -> list[Piece]:
        return [p for p in self.pieces if p.lane == lane]

    def index_of(self, piece: Piece) -> int:
        for idx, p in enumerate(self.pieces):
            if p is piece:
                return idx
        raise ValueError("piece does not belong to this player")

    def copy(self) -> Player:
        return Player(self.seat, self.score, self.tokens, [p.copy() for p in self.pieces])


@dataclass
class GameState:
    """Whole-board state. ``turn`` counts turns started so far."""
    players: list[Player]
    current: int = 0
    baskets: list[bool] = field(default_factory=lambda: [lane.basket for lane in LANES])
    turn: int = 0

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def current_player(self) -> Player:
        return self.players[self.current]

    def copy(self) -> GameState:
        return GameState(
            players=[pl.copy() for pl in self.players],
            current=self.current,
            baskets=list(self.baskets),
            turn=self.turn,
        )

    def piece_at(self, lane: int, step: int):
        """Return (seat, piece) standing on a cell, or None."""
        for pl in self.players:
            for pc in pl.pieces:
                if pc.lane == lane and pc.step == step:
                    return pl.seat, pc
        return None

    def is_occupied(self, lane: int, step: int) -> bool:
        return self.piece_at(lane, step) is not None

    def occupied_cells(self, exclude: Piece | None = None) -> set[tuple[int, int]]:
        return {pc.position for pl in self.players for pc in pl.pieces if pc is not exclude}


def new_game(player_count: int = MIN_PLAYERS) -> GameState:
    """Create a fresh game. The last seat starts with one swoop token."""
    if not MIN_PLAYERS <= player_count <= MAX_PLAYERS:
        raise ValueError(f"player_count must be {MIN_PLAYERS}..{MAX_PLAYERS}, got {player_count}")
    players = [Player(seat=i) for i in range(player_count)]
    players[-1].tokens = 1
    return GameState(players=players)


def winner(state: GameState, target: int = VICTORY_TARGET):
    """First seat whose score has reached target, or None."""
    for pl in state.players:
        if pl.score >= target:
            return pl.seat
    return None


# ── Dice ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Pair:
    """Two of the four dice (by index) and their sum."""
    i: int
    j: int
    sum: int


@dataclass(frozen=True)
class Roll:
    dice: tuple[int, ...]
    pairs: tuple[Pair, ...]

    @classmethod
    def from_dice(cls, dice) -> Roll:
        dice = tuple(dice)
        pairs = tuple(Pair(i, j, dice[i] + dice[j])
                      for i, j in itertools.combinations(range(len(dice)), 2))
        return cls(dice=dice, pairs=pairs)

    @property
    def sums(self) -> tuple[int, ...]:
        """Distinct pair sums, in pair order."""
        return tuple(dict.fromkeys(p.sum for p in self.pairs))

    def remaining_pair(self, pair) -> Pair | None:
        """The pair formed by the two dice not used by ``pair``."""
        used = {pair[0], pair[1]} if isinstance(pair, tuple) else {pair.i, pair.j}
        rest = [k for k in range(len(self.dice)) if k not in used]
        if len(rest) != 2:
            return None
        return Pair(rest[0], rest[1], self.dice[rest[0]] + self.dice[rest[1]])


def roll_dice(rng=random) -> Roll:
    """Roll four six-sided dice with the given random source."""
    return Roll.from_dice(rng.randint(1, 6) for _ in range(4))


# ── Actions ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MoveAction:
    """Use a rolled sum to move a piece on that sum's lane.

    With ``kind`` None the engine resolves the piece (ensure_piece_for_sum)
    and its default movement. Otherwise the move is explicit:
        "move"       — ``piece`` steps to ``target`` within its lane
        "free_swoop" — ``piece`` at the top step slides to an adjacent top step
        "spawn"      — a new piece enters at step 1 (``piece`` is None)
        "activate"   — ``piece`` at the top step activates in place
    ``pair`` records the dice used, for a follow-up move with the other two.
    """
    sum: int
    piece: int | None = None
    target: tuple[int, int] | None = None
    kind: str | None = None
    pair: tuple[int, int] | None = None
    reason: str = ""
    action_type: ClassVar[str] = "move"


@dataclass(frozen=True)
class SwoopAction:
    """Spend a swoop token to move ``piece`` sideways to ``target``."""
    piece: int
    target: tuple[int, int]
    reason: str = ""
    action_type: ClassVar[str] = "swoop"


@dataclass(frozen=True)
class TransferAction:
    """Hand the basket carried by piece ``source`` to neighbouring piece ``target``."""
    source: int
    target: int
    reason: str = ""
    action_type: ClassVar[str] = "transfer"


@dataclass(frozen=True)
class BankAction:
    reason: str = ""
    action_type: ClassVar[str] = "bank"


@dataclass(frozen=True)
class BustAction:
    reason: str = ""
    action_type: ClassVar[str] = "bust"


Action = Union[MoveAction, SwoopAction, TransferAction, BankAction, BustAction]


# ── Movement queries ────────────────────────────────────────────────────────

def in_lane_targets(piece: Piece) -> list[tuple[int, int]]:
    """Up and down neighbours of a piece within its own lane."""
    targets = []
    for step in (piece.step + 1, piece.step - 1):
        if tile_exists(piece.lane, step):
            targets.append((piece.lane, step))
    return targets


def top_step_swoops(state: GameState, piece: Piece) -> list[tuple[int, int]]:
    """Free sideways targets for a top-step piece: unoccupied adjacent top steps."""
    if not piece.at_top:
        return []
    targets = []
    for lane in adjacent_lanes(piece.lane):
        step = top_step(lane)
        if tile_exists(lane, step) and not state.is_occupied(lane, step):
            targets.append((lane, step))
    return targets


def move_targets(state: GameState, piece: Piece) -> list[tuple[int, int]]:
    """Every destination a rolled sum can send this piece to."""
    return in_lane_targets(piece) + top_step_swoops(state, piece)


def can_activate(player: Player, piece: Piece) -> bool:
    return piece.active or player.active_count() < MAX_ACTIVE


def can_spawn(state: GameState, player: Player, lane: int) -> bool:
    return (not player.pieces_on_lane(lane)
            and len(player.pieces) < MAX_PIECES
            and player.active_count() < MAX_ACTIVE
            and not state.is_occupied(lane, 1))


def viable_pieces(state: GameState, player: Player, lane: int) -> list[Piece]:
    """Pieces on a lane that could answer a roll of that lane's sum."""
    return [pc for pc in player.pieces_on_lane(lane)
            if can_activate(player, pc) and (pc.at_top or move_targets(state, pc))]


def can_move_on_sum(state: GameState, player: Player, total: int) -> bool:
    lane = lane_for_sum(total)
    if lane is None:
        return False
    if player.pieces_on_lane(lane):
        return bool(viable_pieces(state, player, lane))
    return can_spawn(state, player, lane)


def choose_best_piece(pieces: list[Piece]) -> Piece:
    """Prefer active pieces, then the one furthest up its lane."""
    return max(pieces, key=lambda pc: (pc.active, pc.step))


def swoop_pieces(player: Player) -> list[Piece]:
    """Pieces allowed to spend a token: active, and not a carrier already home."""
    return [pc for pc in player.pieces if pc.active and not (pc.carrying and pc.step == 1)]


def potential_swoops(state: GameState, piece: Piece) -> list[tuple[int, int]]:
    """Token swoop targets: same canonical space on an adjacent lane.

    Top-step pieces swoop to the adjacent lanes' top steps instead.
    """
    if piece.at_top:
        return top_step_swoops(state, piece)
    space = space_of(piece.lane, piece.step)
    targets = []
    for lane in adjacent_lanes(piece.lane):
        step = step_for_space(lane, space)
        if step is not None and tile_exists(lane, step):
            targets.append((lane, step))
    return targets


def can_swoop(state: GameState, player: Player) -> bool:
    if player.tokens <= 0:
        return False
    return any(potential_swoops(state, pc) for pc in swoop_pieces(player))


def has_checkpoint_swoop(state: GameState, player: Player) -> bool:
    """True if some token swoop would land on a Checkpoint tile."""
    if player.tokens <= 0:
        return False
    return any(tile_at(*target) is Tile.CHECKPOINT
               for pc in player.pieces if pc.active
               for target in potential_swoops(state, pc))


def transfer_targets(player: Player, source: Piece) -> list[Piece]:
    """Own non-carrying pieces adjacent to ``source`` (orthogonally or diagonally)."""
    targets = []
    for pc in player.pieces:
        if pc is source or pc.carrying:
            continue
        lane_diff = abs(pc.lane - source.lane)
        step_diff = abs(pc.step - source.step)
        if lane_diff == 0 and step_diff == 1:
            targets.append(pc)
        elif lane_diff == 1 and step_diff <= 1:
            targets.append(pc)
    return targets


# ── Mutating rules ──────────────────────────────────────────────────────────

def _pickup(state: GameState, piece: Piece) -> bool:
    lane = LANES[piece.lane]
    if lane.basket and state.baskets[piece.lane] and piece.at_top and not piece.carrying:
        piece.basket_lane = piece.lane
        state.baskets[piece.lane] = False
        return True
    return False


def _release_basket(state: GameState, piece: Piece) -> None:
    if piece.basket_lane is not None:
        state.baskets[piece.basket_lane] = True
        piece.basket_lane = None


def _remove_piece(state: GameState, seat: int, piece: Piece) -> None:
    """Take a piece out of play, returning any basket it carried."""
    _release_basket(state, piece)
    owner = state.players[seat]
    owner.pieces = [p for p in owner.pieces if p is not piece]


def _log_piece(state, log, event_type, piece):
    if log is not None:
        log.log_piece(state.turn, state.current, event_type, piece.lane, piece.step)


def ensure_piece_for_sum(state: GameState, total: int, log=None) -> Piece | None:
    """Resolve the current player's piece answering a rolled sum.

    Picks the best viable piece on the sum's lane (activating it if needed),
    or spawns a new active piece at step 1 when the player has none there.

    Returns:
        The responding piece, or None when the sum cannot be used.
    """
    player = state.current_player
    lane = lane_for_sum(total)
    if lane is None:
        return None

    if player.pieces_on_lane(lane):
        viable = viable_pieces(state, player, lane)
        if not viable:
            return None
        piece = choose_best_piece(viable)
        if not piece.active:
            piece.active = True
            _log_piece(state, log, "activate", piece)
        return piece

    if not can_spawn(state, player, lane):
        return None
    piece = Piece(lane=lane, step=1, active=True)
    player.pieces.append(piece)
    _log_piece(state, log, "spawn", piece)
    return piece


def _push_chain(state: GameState, origin, dest, pusher: Piece) -> None:
    """Displace whatever stands on ``dest`` along the origin→dest vector.

    The vector is fixed by the initiating move and applied unchanged down the
    chain. Each link hands a carried basket to a non-carrying pusher, then the
    chain continues from the displaced piece. Positions are written deepest
    first, so the mover lands only after every displaced piece has moved.
    """
    d_lane = dest[0] - origin[0]
    d_step = dest[1] - origin[1]
    d_space = space_of(*dest) - space_of(*origin)
    if d_lane == 0 and d_step == 0:
        return

    displaced = []  # (seat, piece, new position or None for removal)
    while True:
        hit = state.piece_at(*dest)
        if hit is None:
            break
        seat, occupant = hit
        if occupant.carrying and not pusher.carrying:
            pusher.basket_lane = occupant.basket_lane
            occupant.basket_lane = None

        lane2 = dest[0] + d_lane
        if not in_board(lane2):
            displaced.append((seat, occupant, None))
            break
        if d_lane == 0:
            step2 = dest[1] + d_step
            if not tile_exists(lane2, step2):
                displaced.append((seat, occupant, None))
                break
        else:
            space = max(1, min(MAX_SPACE, space_of(*dest) + d_space))
            if tile_at_space(lane2, space) is Tile.GAP:
                space = snap_down(lane2, space)
            if space < 1:
                displaced.append((seat, occupant, None))
                break
            step2 = step_for_space(lane2, space)

        displaced.append((seat, occupant, (lane2, step2)))
        dest, pusher = (lane2, step2), occupant

    for seat, occupant, position in reversed(displaced):
        if position is None:
            _remove_piece(state, seat, occupant)
        else:
            occupant.lane, occupant.step = position


def perform_move(state: GameState, piece: Piece, target: tuple[int, int]) -> None:
    """Move a piece with push resolution, then pick up a basket at the top."""
    _push_chain(state, piece.position, target, piece)
    piece.lane, piece.step = target
    _pickup(state, piece)


def _move_and_log(state, piece, target, event_type, log):
    origin = piece.position
    perform_move(state, piece, target)
    if log is not None:
        log.log_move(state.turn, state.current, event_type, origin, target, piece.carrying)


def _movement_event(piece: Piece, target) -> str:
    if target[0] != piece.lane:
        return "free_swoop"
    if piece.at_top and target[1] < piece.step:
        return "move_down"
    return "move"


def best_top_swoop_target(targets, piece: Piece):
    """Carriers head for basket lanes; everyone else for the higher sum."""
    if piece.carrying:
        basket_targets = [t for t in targets if LANES[t[0]].basket]
        if basket_targets:
            return basket_targets[0]
    return max(targets, key=lambda t: LANES[t[0]].sum)


def default_target(state: GameState, piece: Piece):
    """Movement a sum move gives a piece when no explicit target is chosen.

    A carrier at the top steps down; any other top-step piece takes a free
    swoop if one is open, else just stays activated (None). Elsewhere
    carriers head down and everyone else heads up.
    """
    if piece.at_top:
        if piece.carrying and tile_exists(piece.lane, piece.step - 1):
            return (piece.lane, piece.step - 1)
        swoops = top_step_swoops(state, piece)
        if swoops:
            return best_top_swoop_target(swoops, piece)
        return None
    options = in_lane_targets(piece)
    if not options:
        return None
    up = (piece.lane, piece.step + 1)
    down = (piece.lane, piece.step - 1)
    order = (down, up) if piece.carrying else (up, down)
    for choice in order:
        if choice in options:
            return choice
    return None


def resolve_deterrents(state: GameState, player: Player) -> None:
    """Remove the player's pieces standing on Deterrent tiles."""
    for pc in list(player.pieces):
        if tile_at(pc.lane, pc.step) is Tile.DETERRENT:
            _remove_piece(state, player.seat, pc)


def _enforce_token_policy(state: GameState) -> None:
    for pl in state.players:
        pl.tokens = max(0, min(MAX_TOKENS, pl.tokens))


def _end_turn(state: GameState, player: Player) -> None:
    for pc in player.pieces:
        pc.active = False
    _enforce_token_policy(state)
    state.current = (state.current + 1) % state.player_count


def _deliver(state: GameState, player: Player, piece: Piece) -> None:
    player.score += 1
    _remove_piece(state, player.seat, piece)


def bank(state: GameState, log=None) -> int:
    """End the current turn voluntarily.

    Top-step pieces pick up available baskets, carriers at step 1 deliver,
    other carriers stay put, and everything else retreats to the nearest
    free anchor at or below it (removed if none). Deterrent occupants are then
    removed, the player gains a token (capped), and play passes on.

    Returns:
        Number of baskets delivered.
    """
    player = state.current_player
    delivered = 0
    for pc in list(player.pieces):
        _pickup(state, pc)
        if pc.carrying:
            if pc.step == 1:
                _deliver(state, player, pc)
                delivered += 1
            continue
        dest = retreat_step(pc.lane, pc.step, state.occupied_cells(exclude=pc))
        if dest is None:
            _remove_piece(state, player.seat, pc)
        else:
            pc.step = dest

    resolve_deterrents(state, player)
    player.tokens = min(MAX_TOKENS, player.tokens + 1)
    if log is not None:
        log.log_bank(state.turn, state.current, delivered)
    _end_turn(state, player)
    return delivered


def apply_bust(state: GameState, log=None) -> int:
    """End the current turn with no legal action.

    Deterrent occupants are removed. Carriers advance to the nearest free
    anchor at or above them; non-carriers off an anchor retreat to the nearest
    free anchor below (removed if none). Carriers on step 1 still deliver. No
    token is gained.

    Returns:
        Number of baskets delivered.
    """
    player = state.current_player
    delivered = 0
    for pc in list(player.pieces):
        tile = tile_at(pc.lane, pc.step)
        if tile is Tile.DETERRENT:
            _remove_piece(state, player.seat, pc)
            continue
        if pc.carrying:
            dest = advance_step(pc.lane, pc.step, state.occupied_cells(exclude=pc))
            if dest is not None:
                pc.step = dest
            if pc.step == 1:
                _deliver(state, player, pc)
                delivered += 1
            continue
        if tile in (Tile.START, Tile.CHECKPOINT, Tile.FINAL):
            continue
        dest = retreat_step(pc.lane, pc.step, state.occupied_cells(exclude=pc))
        if dest is None:
            _remove_piece(state, player.seat, pc)
        else:
            pc.step = dest

    resolve_deterrents(state, player)
    if log is not None:
        log.log_bust(state.turn, state.current, delivered)
    _end_turn(state, player)
    return delivered


# ── Legal actions & application ─────────────────────────────────────────────

def legal_actions(state: GameState, roll: Roll) -> list[Action]:
    """All explicit moves and token swoops for the current player and roll.

    Returns [BustAction()] when nothing is playable.
    """
    player = state.current_player
    actions: list[Action] = []
    for total in roll.sums:
        lane = lane_for_sum(total)
        if lane is None:
            continue
        if player.pieces_on_lane(lane):
            for idx, pc in enumerate(player.pieces):
                if pc.lane != lane or not can_activate(player, pc):
                    continue
                for target in in_lane_targets(pc):
                    actions.append(MoveAction(total, idx, target, "move"))
                for target in top_step_swoops(state, pc):
                    actions.append(MoveAction(total, idx, target, "free_swoop"))
        elif can_spawn(state, player, lane):
            actions.append(MoveAction(total, None, (lane, 1), "spawn"))

    if player.tokens > 0:
        for idx, pc in enumerate(player.pieces):
            if pc.active and not (pc.carrying and pc.step == 1):
                for target in potential_swoops(state, pc):
                    actions.append(SwoopAction(idx, target))

    return actions or [BustAction()]


def _piece_by_index(player: Player, index) -> Piece:
    if not isinstance(index, int) or not 0 <= index < len(player.pieces):
        raise IllegalActionError(f"no piece at index {index!r}")
    return player.pieces[index]


def _apply_move(state: GameState, action: MoveAction, log) -> None:
    player = state.current_player
    lane = lane_for_sum(action.sum)
    if lane is None:
        raise IllegalActionError(f"no lane for sum {action.sum}")

    if action.kind is None:
        if not can_move_on_sum(state, player, action.sum):
            raise IllegalActionError(f"sum {action.sum} cannot move")
        count = len(player.pieces)
        piece = ensure_piece_for_sum(state, action.sum, log)
        if len(player.pieces) > count:
            return
        target = default_target(state, piece)
        if target is not None:
            _move_and_log(state, piece, target, _movement_event(piece, target), log)
        return

    if action.kind == "spawn":
        if not can_spawn(state, player, lane):
            raise IllegalActionError(f"cannot spawn on lane {lane}")
        piece = Piece(lane=lane, step=1, active=True)
        player.pieces.append(piece)
        _log_piece(state, log, "spawn", piece)
        return

    piece = _piece_by_index(player, action.piece)
    if piece.lane != lane:
        raise IllegalActionError(f"piece {action.piece} is not on the lane for sum {action.sum}")
    if not can_activate(player, piece):
        raise IllegalActionError("active piece limit reached")

    if action.kind == "move":
        allowed = in_lane_targets(piece)
    elif action.kind == "free_swoop":
        allowed = top_step_swoops(state, piece)
    elif action.kind == "activate":
        if not piece.at_top:
            raise IllegalActionError("only top-step pieces activate in place")
        allowed = []
    else:
        raise IllegalActionError(f"unknown move kind {action.kind!r}")

    target = tuple(action.target) if action.target is not None else None
    if action.kind != "activate" and target not in allowed:
        raise IllegalActionError(f"illegal target {action.target} for piece {action.piece}")

    if not piece.active:
        piece.active = True
        _log_piece(state, log, "activate", piece)
    if target is not None and action.kind != "activate":
        _move_and_log(state, piece, target, _movement_event(piece, target), log)


def _apply_swoop(state: GameState, action: SwoopAction, log) -> None:
    player = state.current_player
    if player.tokens <= 0:
        raise IllegalActionError("no swoop tokens")
    piece = _piece_by_index(player, action.piece)
    if not any(p is piece for p in swoop_pieces(player)):
        raise IllegalActionError(f"piece {action.piece} cannot swoop")
    target = tuple(action.target)
    if target not in potential_swoops(state, piece):
        raise IllegalActionError(f"illegal swoop target {action.target}")
    player.tokens -= 1
    _move_and_log(state, piece, target, "swoop", log)


def _apply_transfer(state: GameState, action: TransferAction, log) -> None:
    player = state.current_player
    source = _piece_by_index(player, action.source)
    target = _piece_by_index(player, action.target)
    if not source.carrying:
        raise IllegalActionError("transfer source is not carrying")
    if not any(t is target for t in transfer_targets(player, source)):
        raise IllegalActionError("transfer target is not adjacent or already carrying")
    target.basket_lane = source.basket_lane
    source.basket_lane = None
    if log is not None:
        log.log_transfer(state.turn, state.current, source.position, target.position)


def apply_action(state: GameState, action: Action, log=None) -> GameState:
    """Apply an action to a copy of ``state`` and return the copy.

    Raises:
        IllegalActionError: if the action breaks a game invariant.
    """
    new_state = state.copy()
    if isinstance(action, MoveAction):
        _apply_move(new_state, action, log)
    elif isinstance(action, SwoopAction):
        _apply_swoop(new_state, action, log)
    elif isinstance(action, TransferAction):
        _apply_transfer(new_state, action, log)
    elif isinstance(action, BankAction):
        bank(new_state, log)
    elif isinstance(action, BustAction):
        apply_bust(new_state, log)
    else:
        raise IllegalActionError(f"unknown action {action!r}")
    return new_state


# ── Snapshots ───────────────────────────────────────────────────────────────

def to_snapshot(state: GameState) -> dict:
    """JSON-ready dict of the whole game state."""
    return {
        "current": state.current,
        "turn": state.turn,
        "baskets": list(state.baskets),
        "players": [
            {
                "seat": pl.seat,
                "score": pl.score,
                "tokens": pl.tokens,
                "pieces": [
                    {
                        "lane": pc.lane,
                        "step": pc.step,
                        "active": pc.active,
                        "carrying": pc.carrying,
                        "basket_lane": pc.basket_lane,
                    }
                    for pc in pl.pieces
                ],
            }
            for pl in state.players
        ],
    }


def from_snapshot(data: dict) -> GameState:
    """Rebuild a GameState from to_snapshot() output.

    Raises:
        ValueError: if the snapshot is malformed or breaks a board invariant.
    """
    try:
        players = []
        for seat, pl in enumerate(data["players"]):
            pieces = []
            for pc in pl["pieces"]:
                lane, step = int(pc["lane"]), int(pc["step"])
                if not in_board(lane) or not tile_exists(lane, step):
                    raise ValueError(f"piece off the board at lane {lane} step {step}")
                basket_lane = pc.get("basket_lane")
                if basket_lane is None and pc.get("carrying"):
                    basket_lane = lane
                pieces.append(Piece(lane, step, bool(pc["active"]),
                                    None if basket_lane is None else int(basket_lane)))
            players.append(Player(seat=seat, score=int(pl["score"]),
                                  tokens=int(pl["tokens"]), pieces=pieces))
        state = GameState(
            players=players,
            current=int(data["current"]),
            baskets=[bool(b) for b in data["baskets"]],
            turn=int(data.get("turn", 0)),
        )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"malformed snapshot: {exc}") from exc

    if not MIN_PLAYERS <= state.player_count <= MAX_PLAYERS:
        raise ValueError(f"snapshot has {state.player_count} players")
    if not 0 <= state.current < state.player_count:
        raise ValueError(f"current seat {state.current} out of range")
    if len(state.baskets) != LANE_COUNT:
        raise ValueError("snapshot must carry one basket flag per lane")
    cells = [pc.position for pl in state.players for pc in pl.pieces]
    if len(cells) != len(set(cells)):
        raise ValueError("two pieces share a cell")
    for pl in state.players:
        if len(pl.pieces) > MAX_PIECES:
            raise ValueError(f"seat {pl.seat} has {len(pl.pieces)} pieces")
        if pl.active_count() > MAX_ACTIVE:
            raise ValueError(f"seat {pl.seat} has {pl.active_count()} active pieces")
        if not 0 <= pl.tokens <= MAX_TOKENS:
            raise ValueError(f"seat {pl.seat} has {pl.tokens} swoop tokens")
    carried = [pc.basket_lane for pl in state.players for pc in pl.pieces if pc.carrying]
    for lane, lane_def in enumerate(LANES):
        held = carried.count(lane) + int(state.baskets[lane])
        if held != (1 if lane_def.basket else 0):
            raise ValueError(f"basket of lane {lane} is carried or available {held} times")
    return state
