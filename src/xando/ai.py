"""Minimax search and AI opponents for X&O."""

from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .game import EMPTY, Player, Status, TicTacToeGame, empty_cells, evaluate, other

logger = logging.getLogger(__name__)

WIN_SCORE = 10

# (cells, side to move) -> (best index, score); lives for one search call only
Table = Dict[Tuple[Tuple[str, ...], Player], Tuple[Optional[int], int]]


@contextmanager
def _placed(cells: List[str], index: int, player: Player) -> Iterator[None]:
    """Temporarily put ``player`` on ``index``; the cell is emptied on exit."""
    cells[index] = player
    try:
        yield
    finally:
        cells[index] = EMPTY


def _minimax(
    cells: List[str], to_move: Player, maximizer: Player, table: Table
) -> Tuple[Optional[int], int]:
    outcome = evaluate(cells)
    if outcome.status is Status.WIN:
        return None, WIN_SCORE if outcome.winner == maximizer else -WIN_SCORE
    if outcome.status is Status.DRAW:
        return None, 0

    key = (tuple(cells), to_move)
    hit = table.get(key)
    if hit is not None:
        return hit

    maximizing = to_move == maximizer
    best_index: Optional[int] = None
    best_score = 0
    # Strict comparison keeps the lowest index among equal scores
    for index in empty_cells(cells):
        with _placed(cells, index, to_move):
            _, score = _minimax(cells, other(to_move), maximizer, table)
        if (
            best_index is None
            or (maximizing and score > best_score)
            or (not maximizing and score < best_score)
        ):
            best_index, best_score = index, score

    table[key] = (best_index, best_score)
    return best_index, best_score


def search(cells: Sequence[str], player: Player) -> Optional[Tuple[int, int]]:
    """Return ``(index, score)`` of the best move for ``player``.

    ``player`` is both the side to move and the side being maximized: a
    forced win scores +10, a forced loss -10 and a draw 0. Returns ``None``
    when the board is already decided or has no empty cell. The caller's
    board is never modified.
    """
    work = list(cells)
    if evaluate(work).finished:
        return None
    index, score = _minimax(work, player, player, {})
    if index is None:
        return None
    return index, score


def best_move(cells: Sequence[str], player: Player) -> Optional[int]:
    result = search(cells, player)
    return None if result is None else result[0]


# ---------- Players ----------


@dataclass
class MinimaxAI:
    """Perfect-play opponent ("hard")."""

    player: Player

    def choose(self, game: TicTacToeGame) -> int:
        if game.current_player != self.player:
            raise ValueError("It is not this AI player's turn")
        result = search(game.cells, self.player)
        if result is None:
            raise RuntimeError("No valid moves available")
        index, score = result
        logger.debug("minimax picked cell %d (score %d) for %s", index, score, self.player)
        return index


@dataclass
class RandomAI:
    """Uniformly random opponent ("easy")."""

    player: Player
    seed: Optional[int] = None
    _rng: random.Random = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def choose(self, game: TicTacToeGame) -> int:
        if game.current_player != self.player:
            raise ValueError("It is not this AI player's turn")
        moves = game.available_moves()
        if not moves:
            raise RuntimeError("No valid moves available")
        return self._rng.choice(moves)


DIFFICULTIES = {"easy": RandomAI, "hard": MinimaxAI}


def make_ai(difficulty: str, player: Player):
    try:
        cls = DIFFICULTIES[difficulty]
    except KeyError as exc:
        raise ValueError(f"Unknown difficulty {difficulty!r}") from exc
    return cls(player=player)
