"""Game log for Swoop — records every event of a game for replay and analytics.

Pure data, never read back by the engine. Event types:
    game_start, turn_start, roll, decision, move, move_down, free_swoop,
    swoop, activate, spawn, transfer, bust, bank, game_end
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

EVENT_TYPES = (
    "game_start", "turn_start", "roll", "decision",
    "move", "move_down", "free_swoop", "swoop",
    "activate", "spawn", "transfer", "bust", "bank", "game_end",
)

MOVEMENT_EVENTS = frozenset({"move", "move_down", "free_swoop", "swoop"})


@dataclass
class LogEntry:
    """A single logged game event."""
    turn: int                                   # turn counter, 0 before the first turn
    player_index: int | None                    # None for game-level events
    event_type: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {"type": self.event_type, "player": self.player_index, "turn": self.turn}
        data.update(self.details)
        return data


class GameLog:
    """Accumulates LogEntry records during a game."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    def _append(self, turn, player_index, event_type, **details) -> None:
        self.entries.append(LogEntry(
            turn=turn,
            player_index=player_index,
            event_type=event_type,
            details=details,
        ))

    def log_game_start(self, game_index: int, target: int, player_count: int) -> None:
        self._append(0, None, "game_start",
                     game_index=game_index, target=target, player_count=player_count)

    def log_turn_start(self, turn: int, player_index: int) -> None:
        self._append(turn, player_index, "turn_start")

    def log_roll(self, turn: int, player_index: int, dice: tuple[int, ...]) -> None:
        """Record a four-dice roll."""
        self._append(turn, player_index, "roll", dice=list(dice))

    def log_decision(self, turn: int, player_index: int, decision: str, **details) -> None:
        """Record what a strategy chose (move, swoop, bust) before it is applied."""
        self._append(turn, player_index, "decision", decision=decision, **details)

    def log_move(self, turn: int, player_index: int, event_type: str,
                 origin: tuple[int, int], dest: tuple[int, int], carrying: bool) -> None:
        """Record a piece relocation: move, move_down, free_swoop or swoop."""
        if event_type not in MOVEMENT_EVENTS:
            raise ValueError(f"not a movement event: {event_type!r}")
        self._append(turn, player_index, event_type,
                     origin=list(origin), dest=list(dest), carrying=carrying)

    def log_piece(self, turn: int, player_index: int, event_type: str,
                  lane: int, step: int) -> None:
        """Record a piece being spawned or activated."""
        if event_type not in ("spawn", "activate"):
            raise ValueError(f"not a piece event: {event_type!r}")
        self._append(turn, player_index, event_type, lane=lane, step=step)

    def log_transfer(self, turn: int, player_index: int,
                     origin: tuple[int, int], dest: tuple[int, int]) -> None:
        self._append(turn, player_index, "transfer", origin=list(origin), dest=list(dest))

    def log_bust(self, turn: int, player_index: int, delivered: int) -> None:
        self._append(turn, player_index, "bust", delivered=delivered)

    def log_bank(self, turn: int, player_index: int, delivered: int) -> None:
        self._append(turn, player_index, "bank", delivered=delivered)

    def log_game_end(self, turn: int, winner: int, final_scores: list[int], capped: bool) -> None:
        self._append(turn, None, "game_end",
                     winner=winner, final_scores=list(final_scores), capped=capped)

    def get_turn_entries(self, turn: int, player_index: int | None = None) -> list[LogEntry]:
        """Return all entries for a turn, optionally restricted to one player."""
        return [e for e in self.entries
                if e.turn == turn and (player_index is None or e.player_index == player_index)]

    def get_entries(self, event_type: str) -> list[LogEntry]:
        """Return only entries of one event type."""
        return [e for e in self.entries if e.event_type == event_type]

    def count_by_type(self) -> Counter:
        return Counter(e.event_type for e in self.entries)

    def to_dicts(self) -> list[dict]:
        return [e.to_dict() for e in self.entries]

    def clear(self) -> None:
        """Remove all entries."""
        self.entries = []
