"""
Swoop AI — Strategy interface, game loop, and heuristic bot implementations.

Contains:
- Turn and game records (TurnStats, GameMetrics, GameResult)
- SwoopStrategy abstract base class
- play_turn() and play_game() game loop functions
- AggressiveStrategy, BalancedStrategy, ConservativeStrategy

Search-based strategies live in search.py.
"""
from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field

from board import LANES, deterrents
from game_engine import (
    VICTORY_TARGET,
    BankAction, BustAction, GameState, IllegalActionError, MoveAction, Player,
    Roll, SwoopAction, TransferAction,
    apply_action, can_move_on_sum, can_swoop, legal_actions, new_game,
    potential_swoops, roll_dice, swoop_pieces, transfer_targets, winner,
)

logger = logging.getLogger(__name__)

MAX_ROLLS_PER_TURN = 100


# ── Records ─────────────────────────────────────────────────────────────────

@dataclass
class TurnStats:
    """What has happened so far in the current turn."""
    actions: int = 0
    moves: int = 0
    swoops: int = 0
    rolls: int = 0
    delivered: int = 0


@dataclass
class GameMetrics:
    """Counters for a whole game, summed across seats unless noted."""
    player_count: int
    turns: int = 0
    turns_by_player: list[int] = field(default_factory=list)
    rolls: int = 0
    busts: int = 0
    banks: int = 0
    deliveries: int = 0
    transfers: int = 0
    swoops: int = 0

    def __post_init__(self):
        if not self.turns_by_player:
            self.turns_by_player = [0] * self.player_count

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class GameResult:
    winner: int
    final_scores: list[int]
    metrics: GameMetrics
    state: GameState
    capped: bool = False

    @property
    def turns(self) -> int:
        return self.metrics.turns


# ── Strategy Interface ──────────────────────────────────────────────────────

class SwoopStrategy(ABC):
    """Abstract base class for Swoop bots.

    Strategies may keep private scratch state on the instance; create one
    instance per seat per game.
    """

    name = "base"

    @abstractmethod
    def choose_action(self, state: GameState, roll: Roll, stats: TurnStats, rng) -> MoveAction | SwoopAction | BustAction:
        """Given a roll with at least one playable move, pick what to do.

        Args:
            state: Current game state (the acting seat is state.current)
            roll: The dice just rolled
            stats: This turn's running counters
            rng: The game's shared random source

        Returns:
            A MoveAction or SwoopAction legal for ``roll``, or BustAction to give up
        """
        ...

    @abstractmethod
    def should_bank(self, state: GameState, stats: TurnStats, rng) -> bool:
        """Decide whether to stop rolling and bank now."""
        ...

    def should_transfer(self, state: GameState, stats: TurnStats, rng) -> TransferAction | None:
        """Optionally hand a carried basket to a neighbouring piece before rolling."""
        return None


# ── Shared helpers ──────────────────────────────────────────────────────────

def usable_pairs(state: GameState, roll: Roll):
    """Dice pairs whose sum the current player can move on."""
    player = state.current_player
    return [p for p in roll.pairs if can_move_on_sum(state, player, p.sum)]


def ready_to_deliver(player: Player) -> bool:
    return any(pc.carrying and pc.step == 1 for pc in player.pieces)


def carrying_near_home(player: Player) -> bool:
    return any(pc.carrying and pc.step <= 2 for pc in player.pieces)


def random_swoop(state: GameState, rng, reason: str = "") -> SwoopAction | None:
    """Random eligible piece, then a random target for it."""
    player = state.current_player
    options = []
    for idx, pc in enumerate(player.pieces):
        if not any(p is pc for p in swoop_pieces(player)):
            continue
        targets = potential_swoops(state, pc)
        if targets:
            options.append((idx, targets))
    if player.tokens <= 0 or not options:
        return None
    idx, targets = rng.choice(options)
    return SwoopAction(idx, rng.choice(targets), reason=reason)


def lower_transfer(player: Player) -> TransferAction | None:
    """Hand a basket to the neighbour closest to home, if it is below the carrier."""
    for src_idx, source in enumerate(player.pieces):
        if not source.carrying:
            continue
        better = [t for t in transfer_targets(player, source) if t.step < source.step]
        if better:
            target = min(better, key=lambda t: t.step)
            return TransferAction(src_idx, player.index_of(target),
                                  reason="Pass basket closer to home")
    return None


# ── Game Loop ───────────────────────────────────────────────────────────────

def _finish_turn(state, action, stats, log, metrics):
    seat = state.current
    before = state.players[seat].score
    state = apply_action(state, action, log)
    delivered = state.players[seat].score - before
    stats.delivered += delivered
    if metrics is not None:
        if isinstance(action, BankAction):
            metrics.banks += 1
        else:
            metrics.busts += 1
        metrics.deliveries += delivered
        metrics.turns += 1
        metrics.turns_by_player[seat] += 1
    return state


def _record_action(action, stats, metrics):
    stats.actions += 1
    if isinstance(action, SwoopAction) or getattr(action, "kind", None) == "free_swoop":
        stats.swoops += 1
        if metrics is not None:
            metrics.swoops += 1
    else:
        stats.moves += 1


def _log_decision(log, state, action):
    if log is None:
        return
    details = {"reason": action.reason}
    if isinstance(action, MoveAction):
        details.update(sum=action.sum, kind=action.kind or "sum")
    elif isinstance(action, SwoopAction):
        details.update(piece=action.piece, target=list(action.target))
    log.log_decision(state.turn, state.current, action.action_type, **details)


def play_turn(state: GameState, strategies, rng=random, log=None, metrics: GameMetrics | None = None,
              max_rolls: int = MAX_ROLLS_PER_TURN) -> GameState:
    """Play one full turn for the seat in ``state.current``.

    Order: optional transfer, bank check, then roll until the strategy banks
    or the roll leaves nothing to do. When no move is playable a random token
    swoop is forced if possible, otherwise the turn busts. The bank check runs
    after every applied action. A turn that reaches ``max_rolls`` banks.

    Args:
        state: Game state at the start of a turn
        strategies: One strategy per seat
        rng: The game's shared random source (dice and decisions)
        log: Optional GameLog receiving every event
        metrics: Optional GameMetrics to accumulate into
        max_rolls: Roll cap for a single turn

    Returns:
        Game state after the turn has banked or busted (next seat to act)
    """
    seat = state.current
    strategy = strategies[seat]
    stats = TurnStats()
    state = state.copy()
    state.turn += 1
    if log is not None:
        log.log_turn_start(state.turn, seat)

    transfer = strategy.should_transfer(state, stats, rng)
    if transfer is not None:
        state = apply_action(state, transfer, log)
        stats.actions += 1
        if metrics is not None:
            metrics.transfers += 1

    if strategy.should_bank(state, stats, rng):
        return _finish_turn(state, BankAction(), stats, log, metrics)

    while True:
        roll = roll_dice(rng)
        stats.rolls += 1
        if metrics is not None:
            metrics.rolls += 1
        if log is not None:
            log.log_roll(state.turn, seat, roll.dice)

        options = legal_actions(state, roll)
        if not any(isinstance(a, MoveAction) for a in options):
            action = random_swoop(state, rng, reason="No playable pair")
            if action is None:
                return _finish_turn(state, BustAction(), stats, log, metrics)
        else:
            action = strategy.choose_action(state, roll, stats, rng)
            _log_decision(log, state, action)
            if isinstance(action, BustAction):
                return _finish_turn(state, action, stats, log, metrics)
            if isinstance(action, MoveAction) and action.sum not in roll.sums:
                raise IllegalActionError(f"sum {action.sum} was not rolled")

        state = apply_action(state, action, log)
        _record_action(action, stats, metrics)

        if isinstance(action, MoveAction) and action.pair is not None:
            second = roll.remaining_pair(action.pair)
            if second is not None and can_move_on_sum(state, state.current_player, second.sum):
                follow = MoveAction(second.sum, reason="Second pair")
                state = apply_action(state, follow, log)
                _record_action(follow, stats, metrics)

        if stats.rolls >= max_rolls or strategy.should_bank(state, stats, rng):
            return _finish_turn(state, BankAction(), stats, log, metrics)


def play_game(strategies, rng=random, target: int = VICTORY_TARGET, max_turns: int = 1000,
              log=None, game_index: int = 0) -> GameResult:
    """Play a complete game until a seat reaches ``target`` or the turn cap.

    At the cap the highest score wins; a tie is broken by drawing from ``rng``.

    Args:
        strategies: One strategy per seat (2-4)
        rng: The game's shared random source
        target: Score needed to win
        max_turns: Hard cap on total turns
        log: Optional GameLog
        game_index: Recorded in the log

    Returns:
        GameResult with the winner, final scores and metrics
    """
    state = new_game(len(strategies))
    metrics = GameMetrics(player_count=len(strategies))
    if log is not None:
        log.log_game_start(game_index, target, len(strategies))

    while winner(state, target) is None and metrics.turns < max_turns:
        state = play_turn(state, strategies, rng, log, metrics)

    won = winner(state, target)
    capped = won is None
    scores = [pl.score for pl in state.players]
    if capped:
        logger.warning("Game %d hit the %d-turn cap with scores %s", game_index, max_turns, scores)
        best = max(scores)
        leaders = [seat for seat, score in enumerate(scores) if score == best]
        won = rng.choice(leaders) if len(leaders) > 1 else leaders[0]

    if log is not None:
        log.log_game_end(state.turn, won, scores, capped)
    return GameResult(winner=won, final_scores=scores, metrics=metrics, state=state, capped=capped)


# ── AggressiveStrategy ──────────────────────────────────────────────────────

class AggressiveStrategy(SwoopStrategy):
    """Races the odd lanes: odd sums first, then the highest sum.

    Banks after any delivery, with a carrier home, after 3 actions, or as soon
    as two pieces are active and something has happened this turn.
    """

    name = "aggressive"

    def choose_action(self, state, roll, stats, rng):
        usable = usable_pairs(state, roll)
        if not usable:
            return BustAction(reason="No usable pair")
        chosen = min(usable, key=lambda p: (p.sum % 2 == 0, -p.sum))
        return MoveAction(chosen.sum, pair=(chosen.i, chosen.j),
                          reason=f"Odd-high preference picks {chosen.sum}")

    def should_bank(self, state, stats, rng):
        player = state.current_player
        if stats.delivered > 0 or ready_to_deliver(player):
            return True
        if stats.actions >= 3:
            return True
        return player.active_count() >= 2 and stats.actions >= 1

    def should_transfer(self, state, stats, rng):
        return lower_transfer(state.current_player)


# ── BalancedStrategy ────────────────────────────────────────────────────────

class BalancedStrategy(SwoopStrategy):
    """Coin-flips between chasing baskets (even sums) and the highest sum.

    Swoops 40% of the time when it could; banks with some random pressure.
    """

    name = "balanced"

    def choose_action(self, state, roll, stats, rng):
        usable = usable_pairs(state, roll)
        if not usable:
            return BustAction(reason="No usable pair")
        prefer_even = rng.random() < 0.5
        chosen = min(usable, key=lambda p: (prefer_even and p.sum % 2 == 1, -p.sum))
        if can_swoop(state, state.current_player) and rng.random() >= 0.6:
            swoop = random_swoop(state, rng, reason="Mixing in a swoop")
            if swoop is not None:
                return swoop
        label = "even-first" if prefer_even else "highest-sum"
        return MoveAction(chosen.sum, pair=(chosen.i, chosen.j),
                          reason=f"{label} preference picks {chosen.sum}")

    def should_bank(self, state, stats, rng):
        player = state.current_player
        if stats.delivered > 0 or ready_to_deliver(player):
            return True
        if carrying_near_home(player) and stats.actions >= 1:
            return True
        if stats.actions >= 4:
            return True
        return rng.random() < 0.10

    def should_transfer(self, state, stats, rng):
        player = state.current_player
        if not any(pc.carrying for pc in player.pieces):
            return None
        if rng.random() > 0.3:
            return None
        for src_idx, source in enumerate(player.pieces):
            if not source.carrying:
                continue
            targets = transfer_targets(player, source)
            if targets:
                target = rng.choice(targets)
                return TransferAction(src_idx, player.index_of(target), reason="Spread the risk")
        return None


# ── ConservativeStrategy ────────────────────────────────────────────────────

def _near_deterrent(lane: int, step: int) -> bool:
    lane_def = LANES[lane]
    return any(abs(d - step) <= 2 for d in deterrents(lane_def.length, lane_def.sum))


class ConservativeStrategy(SwoopStrategy):
    """Highest sum, always a move; banks the moment it holds a basket."""

    name = "conservative"

    def choose_action(self, state, roll, stats, rng):
        usable = usable_pairs(state, roll)
        if not usable:
            return BustAction(reason="No usable pair")
        chosen = max(usable, key=lambda p: p.sum)
        return MoveAction(chosen.sum, pair=(chosen.i, chosen.j),
                          reason=f"Highest sum {chosen.sum}")

    def should_bank(self, state, stats, rng):
        player = state.current_player
        if stats.delivered > 0 or ready_to_deliver(player):
            return True
        if any(pc.carrying for pc in player.pieces):
            return True
        return stats.actions >= 2

    def should_transfer(self, state, stats, rng):
        player = state.current_player
        for src_idx, source in enumerate(player.pieces):
            if not source.carrying or not _near_deterrent(source.lane, source.step):
                continue
            safer = [t for t in transfer_targets(player, source)
                     if not _near_deterrent(t.lane, t.step)]
            if safer:
                return TransferAction(src_idx, player.index_of(safer[0]),
                                      reason="Move basket away from a deterrent")
        return None
