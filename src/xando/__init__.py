"""X&O package exposing game logic, AI helpers, and the web application."""

from .ai import MinimaxAI, RandomAI, best_move
from .game import TicTacToeGame, evaluate
from .ui import app

__all__ = ["TicTacToeGame", "MinimaxAI", "RandomAI", "app", "best_move", "evaluate"]
