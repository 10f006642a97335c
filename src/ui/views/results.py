"""Results page — victory screen and final standings."""

from __future__ import annotations

import html

import streamlit as st

from src.engine.base import GameError, GamePhase
from src.services.game_service import GameService
from src.ui.live import unwatch_lobby
from src.ui.session import (
    current_user,
    db_retry,
    get_service,
    leave_current_lobby,
)
from src.ui.themes.animations import render_victory_animation

_MEDALS = {1: "1st", 2: "2nd", 3: "3rd"}


def render_results_page() -> None:
    """Render the results / victory page."""
    ss = st.session_state
    lobby_id = ss.get("lobby_id")
    user = current_user()

    if not lobby_id or not user:
        ss["page"] = "home"
        st.rerun()
        return

    service = get_service()
    snap = db_retry(service.get_snapshot, lobby_id)
    if snap is None:
        st.error("Lobby not found.")
        ss["page"] = "home"
        return

    # The host may already have started over
    if snap.phase == GamePhase.WAITING:
        ss["page"] = "lobby_waiting"
        st.rerun()
        return

    standings = db_retry(service.get_standings, lobby_id)
    winners = [s for s in standings if s.rank == 1]

    if len(winners) == 1:
        render_victory_animation(winners[0].username)
    elif winners:
        st.title("It's a tie!")
        st.caption(" & ".join(w.username for w in winners))
    else:
        st.title("Game Over")

    # Final standings
    st.subheader("Final Standings")

    for row in standings:
        is_me = row.user_id == user["id"]
        medal = _MEDALS.get(row.rank, f"{row.rank}th")
        name = html.escape(row.username)
        if is_me:
            name += " (You)"

        style = "font-weight:700;" if row.rank == 1 else ""
        st.markdown(
            f'<div class="player-row" style="{style}">'
            f'<span class="name">{medal} — {name}</span>'
            f'<span class="score">{row.score} pts &middot; {row.correct_guesses} correct</span>'
            f"</div>",
            unsafe_allow_html=True,
        )

    st.divider()

    # Action buttons
    col1, col2 = st.columns(2)
    is_host = snap.lobby.host_user_id == user["id"]

    with col1:
        if is_host:
            if st.button("Play Again", type="primary", use_container_width=True):
                _play_again(service, lobby_id, user["id"])
        else:
            st.caption("Waiting for the host to start another game...")

    with col2:
        if st.button("Return Home", use_container_width=True):
            _return_home(lobby_id)

    if not is_host:
        _poll_for_restart(lobby_id)


def _play_again(service: GameService, lobby_id: str, user_id: str) -> None:
    """Reset the lobby for a new game."""
    try:
        db_retry(service.play_again, lobby_id, user_id)
    except GameError as e:
        st.error(str(e))
        return
    ss = st.session_state
    ss["page"] = "lobby_waiting"
    st.rerun()


def _return_home(lobby_id: str) -> None:
    """Leave the lobby and go home."""
    unwatch_lobby(lobby_id)
    leave_current_lobby()
    st.rerun()


@st.fragment(run_every=3)
def _poll_for_restart(lobby_id: str) -> None:
    """Follow the host back to the waiting room."""
    try:
        session = db_retry(get_service().sessions.get, lobby_id)
    except Exception:
        return
    if session is not None and session.game_phase == GamePhase.WAITING:
        st.session_state["page"] = "lobby_waiting"
        st.rerun(scope="app")
