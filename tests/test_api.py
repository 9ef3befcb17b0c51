"""Tests for the FastAPI X&O interface."""

from __future__ import annotations

from fastapi.testclient import TestClient

from xando import ui
from xando.ui import app


client = TestClient(app)
ui.AI_THINK_DELAY = {"easy": 0.0, "hard": 0.0}


def _new_game(**payload):
    response = client.post("/api/game", json=payload)
    assert response.status_code == 200
    return response.json()


def _move(game_id, cell_index):
    return client.post(f"/api/game/{game_id}/move", json={"cellIndex": cell_index})


def test_index_serves_page():
    response = client.get("/")
    assert response.status_code == 200
    assert "<title>X&amp;O</title>" in response.text


def test_create_game_and_first_move():
    payload = _new_game(mode="ai-hard")
    assert payload["currentPlayer"] == "X"
    assert payload["moveLog"] == []
    assert payload["cells"] == [""] * 9
    assert payload["aiPlayer"] == "O"

    game_id = payload["id"]
    move_response = _move(game_id, 0)
    assert move_response.status_code == 200
    state = move_response.json()
    assert state["moveLog"][0] == {"player": "X", "cellIndex": 0}
    assert state["cells"][0] == "X"
    assert state["currentPlayer"] == "O"
    assert state["aiPending"] is True

    follow_up = client.get(f"/api/game/{game_id}")
    assert follow_up.status_code == 200
    final_state = follow_up.json()
    assert final_state["currentPlayer"] == "X"
    assert final_state["aiPending"] is False
    assert final_state["moveLog"][-1]["player"] == "O"
    # Corner opening is answered in the centre
    assert final_state["cells"][4] == "O"


def test_ai_opens_when_asked():
    payload = _new_game(mode="ai-easy", first="ai")
    assert payload["currentPlayer"] == "O"
    assert payload["aiPending"] is True

    state = client.get(f"/api/game/{payload['id']}").json()
    assert state["currentPlayer"] == "X"
    assert [m["player"] for m in state["moveLog"]] == ["O"]


def test_move_rejected_while_ai_pending():
    payload = _new_game(mode="ai-hard", first="ai")
    session = ui.SESSIONS[payload["id"]]
    # Freeze the session as if the AI task had not run yet
    session.ai_pending = True
    response = _move(payload["id"], 8)
    assert response.status_code == 400
    assert response.json()["detail"] == "AI is completing its move"


def test_move_rejected_on_ai_turn():
    game_id = _new_game(mode="ai-hard")["id"]
    session = ui.SESSIONS[game_id]
    session.game.play_move(4)
    assert session.game.current_player == "O"
    assert session.ai_pending is False

    response = _move(game_id, 0)
    assert response.status_code == 400
    assert response.json()["detail"] == "Wait for the AI to move"
    assert session.game.cells[0] == " "


def test_undo_rejected_while_ai_pending():
    game_id = _new_game(mode="ai-hard")["id"]
    _move(game_id, 0)
    session = ui.SESSIONS[game_id]
    session.ai_pending = True

    response = client.post(f"/api/game/{game_id}/undo")
    assert response.status_code == 400
    assert response.json()["detail"] == "AI is completing its move"
    assert len(session.game.history) == 2


def test_stale_ai_task_does_not_move_in_new_round():
    game_id = _new_game(mode="ai-hard")["id"]
    session = ui.SESSIONS[game_id]
    old_round_id = session.round_id

    assert client.post(f"/api/game/{game_id}/new").status_code == 200
    session.game.play_move(4)
    ui._run_ai_turn(game_id, old_round_id)

    assert [(m.index, m.player) for m in session.game.history] == [(4, "X")]
    assert session.game.current_player == "O"


def test_invalid_move_rejected():
    game_id = _new_game(mode="pvp")["id"]

    assert _move(game_id, 0).status_code == 200
    duplicate_move = _move(game_id, 0)
    assert duplicate_move.status_code == 400
    assert duplicate_move.json()["detail"]


def test_out_of_range_cell_rejected():
    game_id = _new_game(mode="pvp")["id"]
    assert _move(game_id, 9).status_code == 422


def test_rejects_unsupported_mode():
    response = client.post("/api/game", json={"mode": "ai-impossible"})
    assert response.status_code == 422


def test_missing_game_returns_404():
    assert client.get("/api/game/missing").status_code == 404


def test_pvp_win_updates_scores():
    game_id = _new_game(mode="pvp")["id"]
    for index in (0, 3, 1, 4):
        assert _move(game_id, index).status_code == 200
    state = _move(game_id, 2).json()
    assert state["winner"] == "X"
    assert state["winningLine"] == [0, 1, 2]
    assert state["finished"] is True
    assert state["availableMoves"] == []
    assert state["scores"] == {"X": 1, "O": 0, "D": 0}

    assert _move(game_id, 8).status_code == 400


def test_new_round_keeps_scores_and_reset_clears_them():
    game_id = _new_game(mode="pvp")["id"]
    for index in (0, 3, 1, 4, 2):
        _move(game_id, index)

    fresh = client.post(f"/api/game/{game_id}/new").json()
    assert fresh["cells"] == [""] * 9
    assert fresh["winner"] is None
    assert fresh["scores"]["X"] == 1

    cleared = client.post(f"/api/game/{game_id}/reset").json()
    assert cleared["scores"] == {"X": 0, "O": 0, "D": 0}


def test_new_round_can_switch_mode():
    game_id = _new_game(mode="pvp")["id"]
    state = client.post(f"/api/game/{game_id}/new", json={"mode": "ai-easy"}).json()
    assert state["mode"] == "ai-easy"
    assert state["aiPlayer"] == "O"
    assert state["first"] == "human"


def test_pvp_undo():
    game_id = _new_game(mode="pvp")["id"]
    _move(game_id, 4)
    _move(game_id, 0)
    state = client.post(f"/api/game/{game_id}/undo").json()
    assert state["cells"][0] == ""
    assert state["currentPlayer"] == "O"
    assert len(state["moveLog"]) == 1


def test_undo_with_empty_history_rejected():
    game_id = _new_game(mode="pvp")["id"]
    assert client.post(f"/api/game/{game_id}/undo").status_code == 400


def test_ai_undo_returns_to_human_turn():
    game_id = _new_game(mode="ai-hard")["id"]
    _move(game_id, 0)
    assert len(client.get(f"/api/game/{game_id}").json()["moveLog"]) == 2

    state = client.post(f"/api/game/{game_id}/undo").json()
    assert state["moveLog"] == []
    assert state["cells"] == [""] * 9
    assert state["currentPlayer"] == "X"


def test_ai_opening_move_cannot_be_undone():
    game_id = _new_game(mode="ai-hard", first="ai")["id"]
    assert len(client.get(f"/api/game/{game_id}").json()["moveLog"]) == 1
    assert client.post(f"/api/game/{game_id}/undo").status_code == 400
