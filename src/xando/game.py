"""Core rules, outcome evaluation and round state for X&O (3x3 Tic-Tac-Toe)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Player = str  # "X" or "O"
EMPTY = " "
PLAYERS: Tuple[Player, Player] = ("X", "O")

WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


def other(player: Player) -> Player:
    return "O" if player == "X" else "X"


# ---------- Outcome ----------


class Status(str, Enum):
    WIN = "win"
    DRAW = "draw"
    IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class Outcome:
    status: Status
    winner: Optional[Player] = None
    line: Tuple[int, ...] = ()

    @property
    def finished(self) -> bool:
        return self.status is not Status.IN_PROGRESS


IN_PROGRESS = Outcome(Status.IN_PROGRESS)
DRAW = Outcome(Status.DRAW)


def evaluate(cells: Sequence[str]) -> Outcome:
    """Classify a 9-cell board as a win, a draw, or still in progress.

    Lines are checked in ``WINNING_LINES`` order and the first complete one
    is reported, so malformed boards with two complete lines still get a
    deterministic answer. The board is never modified.
    """
    for line in WINNING_LINES:
        a, b, c = line
        v = cells[a]
        if v != EMPTY and v == cells[b] == cells[c]:
            return Outcome(Status.WIN, winner=v, line=line)
    if all(c != EMPTY for c in cells):
        return DRAW
    return IN_PROGRESS


def empty_cells(cells: Sequence[str]) -> List[int]:
    return [i for i, c in enumerate(cells) if c == EMPTY]


# ---------- Round ----------


@dataclass(frozen=True)
class Move:
    index: int
    player: Player


@dataclass
class TicTacToeGame:
    # Server-internal: 'X', 'O', or ' ' (space) for empty
    cells: List[str] = field(default_factory=lambda: [EMPTY] * 9)
    current_player: Player = "X"
    history: List[Move] = field(default_factory=list)
    outcome: Outcome = IN_PROGRESS

    def __post_init__(self) -> None:
        if self.current_player not in PLAYERS:
            raise ValueError(f"Unknown player {self.current_player!r}")

    # ---- API used by UI & AI ----

    @property
    def winner(self) -> Optional[Player]:
        return self.outcome.winner

    @property
    def drawn(self) -> bool:
        return self.outcome.status is Status.DRAW

    @property
    def finished(self) -> bool:
        return self.outcome.finished

    def available_moves(self) -> List[int]:
        if self.finished:
            return []
        return empty_cells(self.cells)

    def play_move(self, index: int) -> Outcome:
        """Place the current player's mark on ``index`` and advance the turn."""
        if self.finished:
            raise ValueError("Round already finished")
        if not 0 <= index < 9:
            raise ValueError(f"Cell index {index} is out of range")
        if self.cells[index] != EMPTY:
            raise ValueError("Cell already occupied")

        player = self.current_player
        self.cells[index] = player
        self.history.append(Move(index=index, player=player))
        self.outcome = evaluate(self.cells)
        if not self.finished:
            self.current_player = other(player)
        logger.debug("%s played cell %d -> %s", player, index, self.outcome.status.value)
        return self.outcome

    def undo(self) -> Move:
        """Take back the last move and hand the turn back to whoever made it."""
        if self.finished:
            raise ValueError("Round already finished")
        if not self.history:
            raise ValueError("Nothing to undo")
        last = self.history.pop()
        self.cells[last.index] = EMPTY
        self.current_player = last.player
        self.outcome = IN_PROGRESS
        return last

    def clone(self) -> "TicTacToeGame":
        return TicTacToeGame(
            cells=self.cells.copy(),
            current_player=self.current_player,
            history=list(self.history),
            outcome=self.outcome,
        )


# ---------- Scores ----------


@dataclass
class ScoreBoard:
    x: int = 0
    o: int = 0
    draws: int = 0

    def record(self, outcome: Outcome) -> None:
        if outcome.status is Status.WIN:
            if outcome.winner == "X":
                self.x += 1
            else:
                self.o += 1
        elif outcome.status is Status.DRAW:
            self.draws += 1

    def reset(self) -> None:
        self.x = self.o = self.draws = 0

    def as_dict(self) -> dict:
        return {"X": self.x, "O": self.o, "D": self.draws}
