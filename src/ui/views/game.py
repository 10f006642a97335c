"""Game page — the track player, guess buttons, reveal and scoreboard."""

from __future__ import annotations

import streamlit as st

from src.engine.base import GameError, GamePhase, RoundResult
from src.engine.game import GameEngine
from src.services.game_service import GameService, GameSnapshot, seconds_until
from src.ui.components.guess_panel import render_guess_buttons, render_track_player
from src.ui.components.scoreboard import render_scoreboard
from src.ui.live import change_counter, watch_lobby
from src.ui.session import (
    clear_lobby_state,
    current_user,
    db_retry,
    get_service,
    leave_current_lobby,
)
from src.ui.themes.animations import (
    render_countdown,
    render_reveal_banner,
    render_score_popup,
)


def render_game_page() -> None:
    """Render the main game page."""
    ss = st.session_state
    lobby_id = ss.get("lobby_id")
    user = current_user()

    if not lobby_id or not user:
        ss["page"] = "home"
        st.rerun()
        return

    service = get_service()
    try:
        db_retry(service.tick, lobby_id)
        snap = db_retry(service.get_snapshot, lobby_id)
    except Exception as exc:
        st.error(
            f"Connection error — please refresh the page. ({type(exc).__name__})"
        )
        # Show lobby code so player can rejoin if session is lost
        _show_lobby_code_hint()
        return

    if snap is None:
        st.error("Lobby no longer exists.")
        clear_lobby_state()
        st.rerun()
        return

    # Redirect if game finished or reset
    if snap.phase == GamePhase.FINISHED:
        ss["page"] = "results"
        st.rerun()
        return
    if snap.phase == GamePhase.WAITING:
        ss["page"] = "lobby_waiting"
        st.rerun()
        return

    watch_lobby(lobby_id)
    session = snap.session
    settings = snap.lobby.game_settings

    # --- Layout: game area (3) | scoreboard (1) ---
    game_col, score_col = st.columns([3, 1])

    with score_col:
        # Lobby code for reconnection
        st.caption(f"Lobby: **{snap.lobby.code}**")
        guessed = (
            {g.voter_user_id for g in snap.guesses}
            if snap.phase == GamePhase.PLAYING
            else None
        )
        render_scoreboard(
            standings=GameEngine.compute_standings(p.model_dump() for p in snap.players),
            my_user_id=user["id"],
            guessed=guessed,
            total_rounds=session.total_rounds,
        )
        if st.button("Leave Game", use_container_width=True):
            leave_current_lobby()
            st.rerun()

    with game_col:
        st.subheader(f"Round {session.round_number} of {session.total_rounds}")
        current = snap.current_round

        if current is None:
            st.info("Dealing the tracks...")
        elif snap.phase == GamePhase.PLAYING:
            render_track_player(current.track_info, current.round_number)
            my_guess = snap.guess_of(user["id"])
            choice = render_guess_buttons(
                snap.players,
                current.round_number,
                my_guess.guessed_user_id if my_guess else None,
            )
            if choice:
                _handle_guess(service, lobby_id, user["id"], current.round_number, choice)
        else:
            _render_reveal(service, snap, user["id"])

    # Polling fragment for multiplayer sync
    _poll_game_state(lobby_id, settings.round_duration, settings.reveal_duration)


# === Action Handlers ===


def _handle_guess(
    service: GameService,
    lobby_id: str,
    user_id: str,
    round_number: int,
    guessed_user_id: str,
) -> None:
    """Lock in a guess."""
    try:
        db_retry(service.submit_guess, lobby_id, user_id, round_number, guessed_user_id)
    except GameError as e:
        st.warning(str(e))
        return
    st.rerun()


def _render_reveal(service: GameService, snap: GameSnapshot, user_id: str) -> None:
    """Show whose track it was and how everybody guessed."""
    ss = st.session_state
    round_number = snap.session.round_number
    try:
        result: RoundResult = db_retry(service.get_round_result, str(snap.lobby.id), round_number)
    except GameError:
        st.info("Tallying the guesses...")
        return

    names = {p.user_id: p.username for p in snap.players}
    owner_name = names.get(result.owner_id) or result.track.owner_name or "Someone"
    mine = next((o for o in result.outcomes if o.voter_id == user_id), None)

    render_track_player(result.track, round_number, revealed=True)
    render_reveal_banner(owner_name, None if mine is None else mine.is_correct)

    if mine is not None and mine.is_correct and ss.get("_revealed_round") != round_number:
        render_score_popup(mine.points)
    ss["_revealed_round"] = round_number

    for outcome in result.outcomes:
        mark = "✅" if outcome.is_correct else "❌"
        st.markdown(
            f"- {mark} **{names.get(outcome.voter_id, outcome.voter_id)}** guessed "
            f"{names.get(outcome.guessed_id, outcome.guessed_id)}"
        )
    for voter in sorted(result.missing_voters):
        if voter in names:
            st.markdown(f"- ⏱️ **{names[voter]}** didn't guess")


# === Helpers ===


def _show_lobby_code_hint() -> None:
    """Show the lobby code so a player can rejoin after losing their session."""
    code = st.session_state.get("lobby_code")
    if code:
        st.info(f"Your lobby code is **{code}**. Rejoin from the home page.")


@st.fragment(run_every=1)
def _poll_game_state(lobby_id: str, round_duration: int, reveal_duration: int) -> None:
    """Advance timers and watch for other players every second.

    Draws the countdown, calls ``tick`` so rounds close and open without a
    server timer, and triggers a full-app rerun when the session changes,
    a guess comes in or a realtime event arrives.
    """
    ss = st.session_state
    service = get_service()
    try:
        session = db_retry(service.tick, lobby_id)
    except Exception:
        return  # Silently skip this poll cycle on connection error
    if session is None:
        return

    guesses = 0
    if session.game_phase == GamePhase.PLAYING:
        render_countdown(seconds_until(session.round_ends_at), round_duration)
        current = service.rounds.get(lobby_id, session.round_number)
        if current is not None:
            guesses = service.guesses.count_for_round(str(current.id))
    elif session.game_phase == GamePhase.VOTING and reveal_duration:
        left = seconds_until(session.next_round_at)
        if session.round_number >= session.total_rounds:
            st.caption(f"Final results in {left}s...")
        else:
            st.caption(f"Next round in {left}s...")

    key = (session.version, guesses, change_counter(lobby_id))
    prev = ss.get("_last_version")
    ss["_last_version"] = key
    if prev is not None and prev != key:
        st.rerun(scope="app")
