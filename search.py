"""
Search-based Swoop bots — static evaluation, sampled continuation, and the
"pro" and "pusher" strategies.

evaluate_state() scores a position for one seat. evaluate_continuation()
averages the best reply over sampled future rolls, recursing to a fixed
depth; depth 0 is the static evaluation. Both strategies value every legal
action by its continuation and compare banking now against rolling on.

The pusher additionally commits, once per turn, to a "motif": a target sum
plus supporting sums, chosen from exact dice probabilities.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, replace

from ai import SwoopStrategy, carrying_near_home, lower_transfer, ready_to_deliver
from board import LANES, Tile, checkpoints, tile_at
from dice_tables import (
    ALL_SUMS, has_disjoint_pair, probability_any_sums, probability_joint,
    probability_sum_hit,
)
from game_engine import (
    BustAction, GameState, MoveAction, Piece, SwoopAction, TransferAction,
    apply_action, apply_bust, bank, can_move_on_sum, has_checkpoint_swoop,
    legal_actions, roll_dice, transfer_targets,
)

PRO_WEIGHTS = {
    "score": 1200,
    "token": 90,
    "token_reserve": 35,
    "delivery_ready": 450,
    "carry_base": 540,
    "carry_distance": 30,
    "outward_progress": 45,
    "even_lane": 40,
    "checkpoint_safety": 28,
    "deterrent": 220,
    "active_hazard": 75,
    "opponent_scale": 0.65,
    "basket_control": 50,
    "ready_pickup": 110,
    "odd_top_idle": 80,
}

PRO_SEARCH = {
    "depth": 1,
    "roll_samples": 24,
    "bank_samples": 36,
    "swoop_token_cost": 30,
    "bank_margin": 35,
    "token_margin_step": 55,
    "single_token_margin_step": 20,
    "checkpoint_sweep_margin": 25,
    "first_roll_full_tokens": 30,
    "noise": 0.25,
}

PUSHER_WEIGHTS = {
    "prob": 900,
    "access": 110,
    "primary": 160,
    "secondary": 110,
    "anchor": 90,
    "joint": 520,
    "adjacent_swoop": 260,
    "token_value": 80,
    "token_low": 55,
    "aggressive_token_relief": 45,
    "continue": 140,
    "stale": 160,
    "hazard": 170,
    "near_top": 85,
    "carry_near_home": 220,
    "recent_match": 95,
    "random_noise": 55,
}

PUSHER_SEARCH = {
    "depth": 1,
    "bank_samples": 28,
    "base_margin": 48,
    "token_margin_step": 30,
    "low_token_margin": 18,
    "short_risk_margin": -6,
    "long_risk_margin": 22,
    "aggressive_margin_shift": -40,
    "early_long_shift": -35,
    "long_turn_rolls": 5,
    "long_turn_margin": 6,
}


# ── Static evaluation ───────────────────────────────────────────────────────

def evaluate_piece(piece: Piece, is_self: bool) -> float:
    """Value of one piece. Opponent pieces are discounted by 20%."""
    w = PRO_WEIGHTS
    lane = LANES[piece.lane]
    tile = tile_at(piece.lane, piece.step)
    value = 0.0

    if piece.carrying:
        value += w["carry_base"] - (piece.step - 1) * w["carry_distance"]
        if piece.step == 1:
            value += w["delivery_ready"]
    else:
        dist_top = lane.length - piece.step
        value += w["outward_progress"] * piece.step
        if lane.basket:
            even = 1 if lane.sum % 2 == 0 else 0
            value += w["even_lane"] * (1 + even) - dist_top * w["outward_progress"]
        next_cp = next((c for c in checkpoints(lane.length) if c > piece.step), None)
        if next_cp is not None:
            value += w["checkpoint_safety"] * max(0.0, 1 - (next_cp - piece.step) * 0.3)
        if not lane.basket and lane.is_odd and piece.step == lane.length:
            value -= w["odd_top_idle"]

    if tile is Tile.DETERRENT:
        value -= w["deterrent"]
    if piece.active and tile not in (Tile.CHECKPOINT, Tile.FINAL):
        value -= w["active_hazard"] * 0.5

    return value if is_self else value * 0.8


def evaluate_state(state: GameState, seat: int) -> float:
    """Heuristic value of a position from ``seat``'s point of view."""
    w = PRO_WEIGHTS
    me = state.players[seat]
    opponents = [pl for pl in state.players if pl.seat != seat]
    max_opp = max((pl.score for pl in opponents), default=0)

    value = (me.score - max_opp) * w["score"] + me.tokens * w["token"]
    value += sum(evaluate_piece(pc, True) for pc in me.pieces)
    value -= w["opponent_scale"] * sum(evaluate_piece(pc, False)
                                       for pl in opponents for pc in pl.pieces)

    for index, lane in enumerate(LANES):
        if not lane.basket:
            continue
        if not state.baskets[index]:
            if any(pc.lane == index and pc.carrying for pc in me.pieces):
                value += w["basket_control"]
            elif any(pc.lane == index and pc.carrying for pl in opponents for pc in pl.pieces):
                value -= w["basket_control"]
        else:
            mine = next((pc for pc in me.pieces if pc.lane == index), None)
            if mine is not None:
                dist = max(0, lane.length - mine.step)
                value += w["ready_pickup"] - dist * w["outward_progress"] * 0.5
    return value


# ── Continuation search ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Candidate:
    """A legal action with its estimated continuation value."""
    action: MoveAction | SwoopAction
    value: float


def swoop_token_cost(tokens: int) -> float:
    """Search penalty for spending a token; free when sitting on a full reserve."""
    reserve = PRO_WEIGHTS["token_reserve"] if tokens >= 2 else 0
    return max(0, PRO_SEARCH["swoop_token_cost"] - reserve)


def score_candidates(state: GameState, roll, seat: int, depth: int, rng,
                     samples: int = PRO_SEARCH["roll_samples"]) -> list[Candidate]:
    """Value every legal move and swoop for ``roll`` by its continuation."""
    cost = swoop_token_cost(state.players[seat].tokens)
    candidates = []
    for action in legal_actions(state, roll):
        if isinstance(action, BustAction):
            continue
        value = evaluate_continuation(apply_action(state, action), seat, depth, rng, samples)
        if isinstance(action, SwoopAction):
            value -= cost
        candidates.append(Candidate(action, value))
    return candidates


def evaluate_continuation(state: GameState, seat: int, depth: int, rng,
                          samples: int = PRO_SEARCH["roll_samples"]) -> float:
    """Mean best-reply value over ``samples`` sampled rolls, ``depth`` plies deep."""
    if depth <= 0:
        return evaluate_state(state, seat)
    total = 0.0
    for _ in range(samples):
        total += evaluate_roll_outcome(state, seat, roll_dice(rng), depth - 1, rng, samples)
    return total / samples


def evaluate_roll_outcome(state: GameState, seat: int, roll, depth: int, rng,
                          samples: int = PRO_SEARCH["roll_samples"]) -> float:
    """Value of the best reply to ``roll``, or of busting when there is none."""
    base = state.copy()
    base.current = seat
    candidates = score_candidates(base, roll, seat, depth, rng, samples)
    if not candidates:
        apply_bust(base)
        return evaluate_state(base, seat)
    return max(c.value for c in candidates)


def simulate_bank_value(state: GameState, seat: int) -> float:
    clone = state.copy()
    bank(clone)
    return evaluate_state(clone, seat)


# ── ProStrategy ─────────────────────────────────────────────────────────────

class ProStrategy(SwoopStrategy):
    """One-ply Monte-Carlo search over every legal move and swoop.

    Each action is valued by the mean best reply over sampled future rolls,
    plus a little noise. Banks when the value of banking now, plus a margin
    that shrinks as the token reserve grows, reaches the value of rolling on.
    """

    name = "pro"

    def __init__(self, depth: int = PRO_SEARCH["depth"],
                 roll_samples: int = PRO_SEARCH["roll_samples"],
                 bank_samples: int = PRO_SEARCH["bank_samples"],
                 noise: float = PRO_SEARCH["noise"]):
        self.depth = depth
        self.roll_samples = roll_samples
        self.bank_samples = bank_samples
        self.noise = noise

    def choose_action(self, state, roll, stats, rng):
        seat = state.current
        candidates = score_candidates(state, roll, seat, self.depth, rng, self.roll_samples)
        if not candidates:
            return BustAction(reason="Nothing to search")
        best = None
        best_score = None
        for cand in candidates:
            score = cand.value + (rng.random() - 0.5) * self.noise
            if best_score is None or score > best_score:
                best, best_score = cand, score
        return replace(best.action, reason=f"Search value {best.value:.1f}")

    def bank_margin(self, state, stats) -> float:
        s = PRO_SEARCH
        player = state.current_player
        margin = s["bank_margin"]
        if player.tokens >= 2:
            margin -= s["token_margin_step"]
        elif player.tokens == 1:
            margin -= s["single_token_margin_step"]
        if has_checkpoint_swoop(state, player):
            margin -= s["checkpoint_sweep_margin"]
        if stats.actions == 0 and player.tokens >= 2:
            margin -= s["first_roll_full_tokens"]
        return margin

    def should_bank(self, state, stats, rng):
        seat = state.current
        if stats.delivered > 0 or ready_to_deliver(state.current_player):
            return True
        ev_bank = simulate_bank_value(state, seat)
        ev_continue = evaluate_continuation(state, seat, self.depth, rng, self.bank_samples)
        return ev_bank + self.bank_margin(state, stats) >= ev_continue

    def should_transfer(self, state, stats, rng):
        return lower_transfer(state.current_player)


# ── Motifs ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Motif:
    """A per-turn plan over dice sums, with its exact probabilities."""
    key: str
    priority: int
    primary: tuple[int, ...]
    secondary: tuple[int, ...]
    horizon: tuple[int, int]
    risk: str                        # "short", "medium" or "long"
    category: str | None
    all_sums: frozenset
    combos: tuple[tuple[int, int], ...]
    hit_prob: float
    joint_prob: float
    primary_prob: float


def expand_motif(key, priority, primary, secondary, horizon, risk, category=None) -> Motif:
    """Attach hit, joint and primary probabilities to a motif definition."""
    all_sums = frozenset(s for s in (*primary, *secondary) if s in ALL_SUMS)
    combos = tuple((p, s) for p in primary for s in secondary if p != s)
    joint = sum(probability_joint(a, b) for a, b in combos) / len(combos) if combos else 0.0
    primary_prob = sum(probability_sum_hit(s) for s in primary) / len(primary) if primary else 0.0
    return Motif(
        key=key, priority=priority, primary=tuple(primary), secondary=tuple(secondary),
        horizon=tuple(horizon), risk=risk, category=category, all_sums=all_sums,
        combos=combos, hit_prob=probability_any_sums(all_sums),
        joint_prob=joint, primary_prob=primary_prob,
    )


def _all_but(total):
    return tuple(s for s in ALL_SUMS if s != total)


MOTIFS = (
    expand_motif("odd_corridor", 0, (4,), (8, 9), (2, 3), "short", "odd"),
    expand_motif("five_nine", 1, (5,), (9,), (2, 3), "short", "odd"),
    expand_motif("four_six", 2, (4,), (6,), (1, 2), "medium"),
    expand_motif("four_ten", 3, (4,), (10,), (1, 2), "medium"),
    expand_motif("two_any", 4, (2,), _all_but(2), (1, 2), "medium"),
    expand_motif("three_any", 5, (3,), _all_but(3), (1, 2), "medium"),
    expand_motif("eleven_any", 6, (11,), _all_but(11), (1, 2), "medium"),
    expand_motif("twelve_any", 7, (12,), _all_but(12), (1, 2), "medium"),
    expand_motif("seven_anchor", 8, (7,), (4, 5, 6, 8, 9, 10), (2, 5), "long", "anchor"),
)


@dataclass
class MotifRun:
    """A motif committed to for one turn, with its attempt budget."""
    motif: Motif
    max_attempts: int
    selected_turn: int
    attempts: int = 0
    rolls: int = 0

    @property
    def in_window(self) -> bool:
        return self.attempts < self.max_attempts


def _score_context(state: GameState, seat: int):
    me = state.players[seat]
    max_opp = max((pl.score for pl in state.players if pl.seat != seat), default=0)
    total = sum(pl.score for pl in state.players)
    return me, max_opp, total <= 1


def decide_aggression(state: GameState, seat: int, rng) -> bool:
    """Draw this turn's aggression; trailing and late-game raise the odds."""
    me, max_opp, _ = _score_context(state, seat)
    tilt = 0.25
    if me.score < max_opp:
        tilt += 0.18
    if me.score > max_opp:
        tilt -= 0.10
    if sum(pl.score for pl in state.players) >= 4:
        tilt += 0.06
    tilt = max(0.05, min(0.85, tilt))
    return rng.random() < tilt


def motif_score(state: GameState, seat: int, motif: Motif, aggressive: bool) -> float:
    w = PUSHER_WEIGHTS
    me, max_opp, early = _score_context(state, seat)
    tokens = me.tokens

    score = motif.hit_prob * w["prob"]
    score += motif.primary_prob * w["primary"] * 0.4
    score += motif.joint_prob * w["joint"] * 0.25
    score += w["access"] * sum(1 for s in motif.all_sums if can_move_on_sum(state, me, s))

    if motif.category == "odd":
        score += 85
    elif motif.category == "anchor":
        score += 40
    score += {"short": 65, "medium": 25, "long": -25}[motif.risk]

    if tokens >= 2:
        score += w["token_value"] * 0.9
    if tokens == 0:
        score -= w["token_low"]
    if motif.risk == "long" and tokens == 0:
        score -= 120
    if motif.risk == "long" and early:
        score -= 60

    if aggressive:
        if motif.risk != "short":
            score += 90
        score += motif.hit_prob * 120

    if me.score < max_opp:
        score += 70
    if me.score - max_opp >= 1:
        score -= 35

    for pc in me.pieces:
        lane = LANES[pc.lane]
        if lane.sum not in motif.all_sums:
            continue
        if not pc.carrying and pc.step >= lane.length - 1:
            score += w["near_top"]
        if pc.carrying and pc.step <= 2:
            score += w["carry_near_home"] * 0.5
        if tile_at(pc.lane, pc.step) is Tile.DETERRENT:
            score -= w["hazard"]

    return score - motif.priority * 12


def select_motif(state: GameState, seat: int, rng, aggressive: bool) -> MotifRun:
    """Pick the best-scoring motif and draw its attempt budget from its horizon."""
    best = max(MOTIFS, key=lambda m: motif_score(state, seat, m, aggressive))
    low, high = best.horizon
    span = max(0, high - low)
    draw = rng.randrange(span + 1) if span else 0
    return MotifRun(motif=best, max_attempts=low + draw, selected_turn=state.turn)


def action_lane_sum(action) -> int:
    """Sum of the lane an action ends on."""
    if action.target is not None:
        return LANES[action.target[0]].sum
    return action.sum


def action_piece(state: GameState, seat: int, action) -> Piece | None:
    index = action.piece
    pieces = state.players[seat].pieces
    if isinstance(index, int) and 0 <= index < len(pieces):
        return pieces[index]
    return None


# ── PusherStrategy ──────────────────────────────────────────────────────────

class PusherStrategy(SwoopStrategy):
    """Motif-driven opportunist.

    Commits to a motif at the start of each turn and biases the search
    value of every action toward lanes in that motif, toward disjoint
    primary/secondary hits in the same roll, and away from stale plans.
    """

    name = "pusher"

    def __init__(self, depth: int = PUSHER_SEARCH["depth"],
                 roll_samples: int = PRO_SEARCH["roll_samples"],
                 bank_samples: int = PUSHER_SEARCH["bank_samples"]):
        self.depth = depth
        self.roll_samples = roll_samples
        self.bank_samples = bank_samples
        self.turn_id = None
        self.run: MotifRun | None = None
        self.aggressive = False
        self.recent_sums = deque(maxlen=4)
        self.rolls_this_turn = 0

    def ensure_turn_state(self, state: GameState, rng) -> MotifRun | None:
        """Reset the scratchpad and pick a motif the first time a turn is seen."""
        if self.turn_id == state.turn:
            return self.run
        self.turn_id = state.turn
        self.rolls_this_turn = 0
        self.recent_sums.clear()
        self.aggressive = decide_aggression(state, state.current, rng)
        self.run = select_motif(state, state.current, rng, self.aggressive)
        return self.run

    def alignment_score(self, state, seat, action, run, roll, stats) -> float:
        w = PUSHER_WEIGHTS
        if run is None:
            return 0.0
        motif = run.motif
        lane_sum = action_lane_sum(action)
        is_primary = lane_sum in motif.primary
        is_secondary = lane_sum in motif.secondary
        stage = 1.0 if run.in_window else -0.6
        score = 0.0

        if lane_sum in motif.all_sums:
            score += motif.hit_prob * w["prob"] * stage * (1 if is_primary else 0.65)
        if is_primary:
            score += w["primary"] * stage
        if is_secondary:
            score += w["secondary"] * stage
        if motif.category == "anchor" and is_primary:
            score += w["anchor"]

        if is_primary or is_secondary:
            best_joint = 0.0
            for a, b in motif.combos:
                if lane_sum not in (a, b):
                    continue
                other = b if a == lane_sum else a
                if has_disjoint_pair(roll, lane_sum, other):
                    best_joint = max(best_joint, probability_joint(lane_sum, other))
            score += best_joint * w["joint"]

        piece = action_piece(state, seat, action)
        if piece is not None:
            lane = LANES[piece.lane]
            if not piece.carrying and piece.step >= lane.length - 1:
                score += w["near_top"]
            if piece.carrying and piece.step <= 2:
                score += w["carry_near_home"]
            if tile_at(piece.lane, piece.step) is Tile.DETERRENT:
                score -= w["hazard"]

        recent = self.recent_sums[-1] if self.recent_sums else None
        if recent is not None and abs(recent - lane_sum) <= 1:
            score += w["recent_match"]

        if isinstance(action, SwoopAction):
            if stats.actions >= 3 and recent is not None and abs(recent - lane_sum) == 1:
                score += w["adjacent_swoop"] * (1 + motif.hit_prob)
            if state.players[seat].tokens <= 1:
                score -= w["token_low"] * 0.5
            if self.aggressive:
                score += w["aggressive_token_relief"]

        if not run.in_window:
            score -= w["stale"]
        return score

    def choose_action(self, state, roll, stats, rng):
        seat = state.current
        run = self.ensure_turn_state(state, rng)
        self.rolls_this_turn += 1

        candidates = score_candidates(state, roll, seat, self.depth, rng, self.roll_samples)
        if not candidates:
            if run is not None:
                run.attempts += 1
            return BustAction(reason="Nothing to search")

        best = None
        best_score = None
        for cand in candidates:
            score = cand.value + self.alignment_score(state, seat, cand.action, run, roll, stats)
            if self.aggressive:
                score += 35
            if run is not None and run.motif.risk == "long" and run.in_window:
                score += PUSHER_WEIGHTS["continue"]
            score += (rng.random() - 0.5) * PUSHER_WEIGHTS["random_noise"]
            if best_score is None or score > best_score:
                best, best_score = cand, score

        self.recent_sums.append(action_lane_sum(best.action))
        if run is not None:
            run.attempts += 1
            run.rolls += 1
        motif_key = run.motif.key if run is not None else "none"
        return replace(best.action, reason=f"Motif {motif_key}, score {best_score:.1f}")

    def bank_margin(self, state, stats, run) -> float:
        s = PUSHER_SEARCH
        me, max_opp, early = _score_context(state, state.current)
        margin = s["base_margin"]
        if me.tokens >= 2:
            margin -= s["token_margin_step"]
        if me.tokens == 0:
            margin += s["low_token_margin"]
        if run is not None:
            if run.motif.risk == "short":
                margin += s["short_risk_margin"]
            if run.motif.risk == "long":
                margin += s["long_risk_margin"]
            if run.in_window:
                margin -= 15
        if self.aggressive:
            margin += s["aggressive_margin_shift"]
        if early and me.tokens == 0 and run is not None and run.motif.risk == "long":
            margin += s["early_long_shift"]
        if me.score < max_opp:
            margin -= 10
        extra_rolls = self.rolls_this_turn - s["long_turn_rolls"]
        if extra_rolls > 0:
            margin += extra_rolls * s["long_turn_margin"]
        return margin

    def should_bank(self, state, stats, rng):
        seat = state.current
        run = self.ensure_turn_state(state, rng)
        me, _, early = _score_context(state, seat)
        long_hold = early and me.tokens == 0 and run is not None and run.motif.risk == "long"

        if stats.delivered > 0 or ready_to_deliver(me):
            return True
        if carrying_near_home(me) and stats.actions >= 1 and not long_hold:
            return True
        if long_hold and run.in_window:
            return False

        ev_bank = simulate_bank_value(state, seat)
        ev_continue = evaluate_continuation(state, seat, self.depth, rng, self.bank_samples)
        return ev_bank + self.bank_margin(state, stats, run) >= ev_continue

    def should_transfer(self, state, stats, rng):
        run = self.ensure_turn_state(state, rng)
        me = state.current_player
        best = None
        best_score = 0
        for src_idx, source in enumerate(me.pieces):
            if not source.carrying:
                continue
            for target in transfer_targets(me, source):
                score = (source.step - target.step) * 110
                if target.step == 1:
                    score += 320
                if run is not None and LANES[target.lane].sum in run.motif.all_sums:
                    score += 140
                if tile_at(source.lane, source.step) is Tile.DETERRENT:
                    score += 180
                if tile_at(target.lane, target.step) is Tile.CHECKPOINT:
                    score += 60
                if score > best_score:
                    best_score = score
                    best = TransferAction(src_idx, me.index_of(target), reason="Motif hand-off")
        return best
