"""FastAPI-powered web UI for playing X&O in the browser."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ai import MinimaxAI, RandomAI, make_ai
from .game import PLAYERS, ScoreBoard, TicTacToeGame

logger = logging.getLogger(__name__)

AIPlayer = Union[MinimaxAI, RandomAI]

GAME_MODES: Tuple[str, ...] = ("pvp", "ai-easy", "ai-hard")
FIRST_PLAYERS: Tuple[str, ...] = ("human", "ai")
AI_PLAYER = "O"
AI_THINK_DELAY: Dict[str, float] = {"easy": 0.22, "hard": 0.42}


@dataclass
class GameSession:
    """Container for a running match: current round, opponent and scores."""

    game: TicTacToeGame
    mode: str
    first: str
    ai: Optional[AIPlayer]
    scores: ScoreBoard = field(default_factory=ScoreBoard)
    ai_pending: bool = False
    # Bumped on every new round so stale AI tasks can tell they are stale
    round_id: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def difficulty(self) -> Optional[str]:
        return self.mode.split("-", 1)[1] if self.mode.startswith("ai-") else None


SESSIONS: Dict[str, GameSession] = {}
app = FastAPI(title="X&O", description="Tic-tac-toe played in the browser")


def _validate_mode(value: str) -> str:
    if value not in GAME_MODES:
        raise ValueError(
            f"Unsupported mode {value!r}. Choose one of {', '.join(GAME_MODES)}."
        )
    return value


def _validate_first(value: str) -> str:
    if value not in FIRST_PLAYERS:
        raise ValueError(
            f"Unsupported first player {value!r}. "
            f"Choose one of {', '.join(FIRST_PLAYERS)}."
        )
    return value


class NewGameRequest(BaseModel):
    """Request payload for starting a new game."""

    mode: str = Field(default="ai-hard", description="pvp, ai-easy or ai-hard")
    first: str = Field(default="human", description="Who opens the round in AI modes")

    @field_validator("mode")
    @classmethod
    def ensure_supported_mode(cls, value: str) -> str:
        return _validate_mode(value)

    @field_validator("first")
    @classmethod
    def ensure_supported_first(cls, value: str) -> str:
        return _validate_first(value)


class NewRoundRequest(BaseModel):
    """Optional settings change when starting the next round."""

    mode: Optional[str] = None
    first: Optional[str] = None

    @field_validator("mode")
    @classmethod
    def ensure_supported_mode(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _validate_mode(value)

    @field_validator("first")
    @classmethod
    def ensure_supported_first(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _validate_first(value)


class MoveRequest(BaseModel):
    """Request payload for submitting a move on an existing game."""

    model_config = ConfigDict(populate_by_name=True)

    cell_index: int = Field(alias="cellIndex", ge=0, le=8)


def _configure(session: GameSession, mode: str, first: str) -> None:
    session.mode = mode
    session.first = first
    difficulty = session.difficulty
    session.ai = make_ai(difficulty, AI_PLAYER) if difficulty else None


def _start_round(session: GameSession) -> bool:
    """Reset the board; return True if the AI must open the round."""

    ai_opens = session.ai is not None and session.first == "ai"
    session.game = TicTacToeGame(current_player=session.ai.player if ai_opens else "X")
    session.round_id += 1
    session.ai_pending = ai_opens
    return ai_opens


def _create_session(mode: str, first: str) -> Tuple[str, GameSession, bool]:
    """Create a new game session and register it for later access."""

    session = GameSession(game=TicTacToeGame(), mode=mode, first=first, ai=None)
    _configure(session, mode, first)
    ai_opens = _start_round(session)
    session_id = uuid.uuid4().hex
    SESSIONS[session_id] = session
    logger.info("created game %s (mode=%s, first=%s)", session_id, mode, first)
    return session_id, session, ai_opens


def _get_session(game_id: str) -> GameSession:
    try:
        return SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc


def _record_if_finished(game_id: str, session: GameSession) -> None:
    game = session.game
    if not game.finished:
        return
    session.scores.record(game.outcome)
    logger.info(
        "game %s round finished: %s",
        game_id,
        f"{game.winner} wins" if game.winner else "draw",
    )


def _schedule_ai(
    game_id: str, session: GameSession, background_tasks: Optional[BackgroundTasks]
) -> None:
    if background_tasks is not None:
        background_tasks.add_task(_run_ai_turn, game_id, session.round_id)


def _run_ai_turn(game_id: str, round_id: int) -> None:
    session = SESSIONS.get(game_id)
    if not session:
        return

    time.sleep(max(0.0, AI_THINK_DELAY.get(session.difficulty or "", 0.0)))

    with session.lock:
        if session.round_id != round_id:
            # A newer round owns ai_pending now
            return
        try:
            if not session.ai:
                return
            game = session.game
            if game.finished or game.current_player != session.ai.player:
                return
            cell_index = session.ai.choose(game)
            game.play_move(cell_index)
            logger.debug("game %s: AI played cell %d", game_id, cell_index)
            _record_if_finished(game_id, session)
        finally:
            session.ai_pending = False


def _serialize_session(game_id: str, session: GameSession) -> Dict[str, object]:
    with session.lock:
        game = session.game
        move_log = [
            {"player": move.player, "cellIndex": move.index} for move in game.history
        ]
        state: Dict[str, object] = {
            "id": game_id,
            "mode": session.mode,
            "first": session.first,
            "cells": [c if c in PLAYERS else "" for c in game.cells],
            "currentPlayer": game.current_player,
            "winner": game.winner,
            "winningLine": list(game.outcome.line),
            "drawn": game.drawn,
            "finished": game.finished,
            "availableMoves": game.available_moves(),
            "moveLog": move_log,
            "scores": session.scores.as_dict(),
            "aiPlayer": session.ai.player if session.ai else None,
            "aiPending": session.ai_pending,
        }
        if move_log:
            state["lastMove"] = move_log[-1]
        return state


def _apply_player_move(
    game_id: str,
    session: GameSession,
    cell_index: int,
    background_tasks: Optional[BackgroundTasks] = None,
) -> None:
    should_schedule_ai = False
    with session.lock:
        game = session.game
        if game.finished:
            raise HTTPException(status_code=400, detail="Round already finished")

        if session.ai_pending:
            raise HTTPException(status_code=400, detail="AI is completing its move")

        if session.ai and game.current_player == session.ai.player:
            raise HTTPException(status_code=400, detail="Wait for the AI to move")

        try:
            game.play_move(cell_index)
        except ValueError as exc:
            logger.debug("game %s: rejected move %d: %s", game_id, cell_index, exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        _record_if_finished(game_id, session)

        should_schedule_ai = bool(
            session.ai
            and not game.finished
            and game.current_player == session.ai.player
        )
        if should_schedule_ai:
            session.ai_pending = True

    if should_schedule_ai:
        _schedule_ai(game_id, session, background_tasks)


def _undo(session: GameSession) -> None:
    game = session.game
    if session.ai_pending:
        raise HTTPException(status_code=400, detail="AI is completing its move")
    if game.finished:
        raise HTTPException(status_code=400, detail="Round already finished")

    ai = session.ai
    if ai is None:
        try:
            game.undo()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return

    # Roll back to the human's turn: the AI reply, then the human move
    if not any(move.player != ai.player for move in game.history):
        raise HTTPException(status_code=400, detail="Nothing to undo")
    while True:
        move = game.undo()
        if move.player != ai.player:
            break


@app.post("/api/game")
def create_game(
    request: NewGameRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    game_id, session, ai_opens = _create_session(request.mode, request.first)
    if ai_opens:
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    _apply_player_move(game_id, session, request.cell_index, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/undo")
def undo_move(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        _undo(session)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/new")
def new_round(
    game_id: str,
    background_tasks: BackgroundTasks,
    request: Optional[NewRoundRequest] = None,
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        if request is not None and (request.mode or request.first):
            _configure(
                session, request.mode or session.mode, request.first or session.first
            )
        ai_opens = _start_round(session)
    if ai_opens:
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/reset")
def reset_game(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        session.scores.reset()
        ai_opens = _start_round(session)
    if ai_opens:
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/", response_class=HTMLResponse)
def index() -> str:
    return HTML_PAGE


HTML_PAGE = """<!DOCTYPE html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <title>X&amp;O</title>
    <style>
      :root {
        color-scheme: light;
        font-family: system-ui, -apple-system, BlinkMacSystemFont, \"Segoe UI\", sans-serif;
      }
      body {
        margin: 0;
        min-height: 100vh;
        display: flex;
        justify-content: center;
        padding: 2rem 1rem;
        background: #f6efe4;
        color: #3b2a1a;
      }
      main {
        width: min(420px, 100%);
      }
      h1 {
        text-align: center;
        margin: 0 0 1rem;
      }
      .controls {
        display: flex;
        flex-wrap: wrap;
        gap: 0.5rem;
        justify-content: center;
        margin-bottom: 1rem;
      }
      .board {
        display: grid;
        grid-template-columns: repeat(3, 1fr);
        gap: 0.4rem;
        margin: 0 auto 1rem;
      }
      .cell {
        aspect-ratio: 1 / 1;
        font-size: 2.4rem;
        font-weight: 700;
        border-radius: 10px;
        border: 2px solid #c49a6c;
        background: #fffaf2;
        cursor: pointer;
      }
      .cell:disabled {
        cursor: default;
      }
      .cell.x {
        color: #8b5f3b;
      }
      .cell.o {
        color: #c49a6c;
      }
      .cell.win {
        background: #ffd166;
      }
      #status,
      #message,
      .scores {
        text-align: center;
        margin-bottom: 0.75rem;
      }
      #message {
        color: #b00020;
        min-height: 1.25rem;
      }
      .scores span {
        margin: 0 0.6rem;
        font-weight: 600;
      }
    </style>
  </head>
  <body>
    <main>
      <h1>X&amp;O</h1>
      <div class=\"controls\">
        <select id=\"mode\" aria-label=\"Mode\">
          <option value=\"pvp\">Two players</option>
          <option value=\"ai-easy\">vs AI (easy)</option>
          <option value=\"ai-hard\" selected>vs AI (hard)</option>
        </select>
        <select id=\"first\" aria-label=\"First move\">
          <option value=\"human\" selected>You start</option>
          <option value=\"ai\">AI starts</option>
        </select>
      </div>
      <div class=\"controls\">
        <button id=\"undoBtn\" type=\"button\">Undo</button>
        <button id=\"newBtn\" type=\"button\">New round</button>
        <button id=\"resetBtn\" type=\"button\">Reset scores</button>
      </div>
      <div id=\"status\">Loading…</div>
      <div id=\"message\" role=\"status\"></div>
      <div id=\"board\" class=\"board\"></div>
      <div class=\"scores\">
        <span>X: <b id=\"scoreX\">0</b></span>
        <span>O: <b id=\"scoreO\">0</b></span>
        <span>Draws: <b id=\"scoreD\">0</b></span>
      </div>
    </main>
    <script>
      const boardEl = document.getElementById('board');
      const statusEl = document.getElementById('status');
      const messageEl = document.getElementById('message');
      const modeEl = document.getElementById('mode');
      const firstEl = document.getElementById('first');
      let gameId = null;
      let gameState = null;
      let pollHandle = null;

      async function call(path, body) {
        const response = await fetch(path, {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: body ? JSON.stringify(body) : undefined,
        });
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          throw new Error(payload.detail || 'Request failed');
        }
        return payload;
      }

      function schedulePoll() {
        if (pollHandle !== null) return;
        pollHandle = window.setTimeout(async () => {
          pollHandle = null;
          const response = await fetch(`/api/game/${gameId}`);
          if (response.ok) setState(await response.json());
        }, 250);
      }

      function setState(data) {
        gameId = data.id;
        gameState = data;
        render();
        if (data.aiPending && !data.finished) schedulePoll();
      }

      function render() {
        boardEl.innerHTML = '';
        const winning = new Set(gameState.winningLine);
        const humanTurn = !gameState.aiPending && gameState.currentPlayer !== gameState.aiPlayer;
        gameState.cells.forEach((value, index) => {
          const cell = document.createElement('button');
          cell.type = 'button';
          cell.className = 'cell';
          cell.textContent = value;
          if (value) cell.classList.add(value.toLowerCase());
          if (winning.has(index)) cell.classList.add('win');
          cell.setAttribute('aria-label', `cell ${index + 1} ${value || 'empty'}`);
          cell.disabled = !!value || gameState.finished || !humanTurn;
          cell.addEventListener('click', () => act(`/api/game/${gameId}/move`, { cellIndex: index }));
          boardEl.appendChild(cell);
        });
        document.getElementById('scoreX').textContent = gameState.scores.X;
        document.getElementById('scoreO').textContent = gameState.scores.O;
        document.getElementById('scoreD').textContent = gameState.scores.D;
        if (gameState.winner) {
          statusEl.textContent = `${gameState.winner} wins!`;
        } else if (gameState.drawn) {
          statusEl.textContent = "It's a draw";
        } else if (gameState.aiPending) {
          statusEl.textContent = 'AI is thinking…';
        } else {
          statusEl.textContent = `Player ${gameState.currentPlayer}'s turn`;
        }
      }

      async function act(path, body) {
        messageEl.textContent = '';
        try {
          setState(await call(path, body));
        } catch (error) {
          messageEl.textContent = error.message;
        }
      }

      function settings() {
        return { mode: modeEl.value, first: firstEl.value };
      }

      document.getElementById('undoBtn').addEventListener('click', () => act(`/api/game/${gameId}/undo`));
      document.getElementById('newBtn').addEventListener('click', () => act(`/api/game/${gameId}/new`, settings()));
      document.getElementById('resetBtn').addEventListener('click', () => act(`/api/game/${gameId}/reset`));
      modeEl.addEventListener('change', () => act(`/api/game/${gameId}/new`, settings()));
      firstEl.addEventListener('change', () => act(`/api/game/${gameId}/new`, settings()));

      act('/api/game', settings());
    </script>
  </body>
</html>
"""
