"""Lobby component — create/join lobbies and waiting room."""

from __future__ import annotations

import html

import streamlit as st

from src.engine.base import GameError, LobbySettings, TimeRange
from src.services.game_service import GameSnapshot
from src.spotify.errors import SpotifyAuthError
from src.ui.session import (
    current_user,
    db_retry,
    enter_lobby,
    get_service,
    leave_current_lobby,
    spotify_client,
)

_TIME_RANGE_LABELS = {
    TimeRange.SHORT_TERM: "Last 4 weeks",
    TimeRange.MEDIUM_TERM: "Last 6 months",
    TimeRange.LONG_TERM: "All time",
}


def render_lobby() -> None:
    """Render the lobby creation/joining UI and waiting room."""
    ss = st.session_state

    # If already in a lobby waiting room, show that instead
    if ss.get("page") == "lobby_waiting":
        _render_waiting_room()
        return

    tab_create, tab_join = st.tabs(["Create Lobby", "Join Lobby"])

    with tab_create:
        _render_create_form()

    with tab_join:
        _render_join_form()


def _settings_inputs(current: LobbySettings, disabled: bool = False) -> dict:
    """Widgets for the host-editable settings. Returns the chosen values."""
    col1, col2 = st.columns(2)
    with col1:
        rounds = st.number_input(
            "Rounds", LobbySettings.MIN_ROUNDS, LobbySettings.MAX_ROUNDS,
            value=current.rounds, disabled=disabled,
        )
        round_duration = st.slider(
            "Seconds per round", LobbySettings.MIN_DURATION, LobbySettings.MAX_DURATION,
            value=current.round_duration, step=5, disabled=disabled,
        )
        reveal_duration = st.slider(
            "Reveal pause (seconds)", 0, LobbySettings.MAX_REVEAL,
            value=current.reveal_duration, disabled=disabled,
        )
    with col2:
        tracks_per_player = st.slider(
            "Top tracks per player", LobbySettings.MIN_TRACKS, LobbySettings.MAX_TRACKS,
            value=current.tracks_per_player, step=5, disabled=disabled,
        )
        time_range = st.selectbox(
            "Top tracks from",
            options=list(TimeRange),
            index=list(TimeRange).index(current.time_range),
            format_func=_TIME_RANGE_LABELS.get,
            disabled=disabled,
        )
        require_preview = st.checkbox(
            "Only tracks with a 30s preview",
            value=current.require_preview,
            disabled=disabled,
        )
    return {
        "rounds": int(rounds),
        "round_duration": int(round_duration),
        "tracks_per_player": int(tracks_per_player),
        "time_range": time_range.value,
        "reveal_duration": int(reveal_duration),
        "require_preview": bool(require_preview),
    }


def _render_create_form() -> None:
    user = current_user()

    with st.form("create_lobby_form"):
        name = st.text_input(
            "Lobby Name",
            max_chars=60,
            placeholder=f"{user['display_name']}'s lobby",
        )
        settings = _settings_inputs(LobbySettings())
        submitted = st.form_submit_button("Create Lobby", type="primary")

    if submitted:
        try:
            lobby, _ = db_retry(
                get_service().create_lobby,
                host_user_id=user["id"],
                username=user["display_name"],
                name=name,
                settings=settings,
                avatar_url=user.get("avatar_url"),
            )
        except (GameError, ValueError) as e:
            st.error(str(e))
            return
        except Exception as e:
            st.error(f"Failed to create lobby: {e}")
            return
        enter_lobby(str(lobby.id), lobby.code)
        st.rerun()


def _render_join_form() -> None:
    user = current_user()

    with st.form("join_lobby_form"):
        code = st.text_input(
            "Lobby Code",
            max_chars=6,
            placeholder="e.g. ABC234",
        )
        submitted = st.form_submit_button("Join Lobby", type="primary")

    if submitted:
        try:
            lobby, _ = db_retry(
                get_service().join_lobby,
                code,
                user["id"],
                user["display_name"],
                user.get("avatar_url"),
            )
        except (GameError, ValueError) as e:
            st.error(str(e))
            return
        except Exception as e:
            st.error(f"Failed to join lobby: {e}")
            return
        page = "game" if lobby.status == "playing" else "lobby_waiting"
        enter_lobby(str(lobby.id), lobby.code, page)
        st.rerun()


def _render_waiting_room() -> None:
    ss = st.session_state
    lobby_id = ss.get("lobby_id")
    if not lobby_id:
        ss["page"] = "home"
        st.rerun()
        return

    st.subheader("Waiting Room")

    # Lobby code display
    st.markdown(
        f'<div class="lobby-code">{ss.get("lobby_code", "")}</div>',
        unsafe_allow_html=True,
    )
    st.caption("Share this code with friends to join.")

    # Dynamic content in a polling fragment so it auto-refreshes
    _waiting_room_live(lobby_id)

    st.divider()
    if st.button("Leave Lobby", use_container_width=True):
        leave_current_lobby()
        st.rerun()


@st.fragment(run_every=3)
def _waiting_room_live(lobby_id: str) -> None:
    """Live-updating player list, ready toggle, settings and start button."""
    ss = st.session_state
    user = current_user()
    service = get_service()

    try:
        snap: GameSnapshot | None = db_retry(service.get_snapshot, lobby_id)
    except Exception:
        st.caption("Reconnecting...")
        return
    if snap is None:
        st.error("Lobby no longer exists.")
        ss["page"] = "home"
        st.rerun(scope="app")
        return

    # Detect game started (by host in another session, or another tab)
    if snap.lobby.status == "playing":
        ss["page"] = "game"
        st.rerun(scope="app")
        return

    lobby = snap.lobby
    is_host = lobby.host_user_id == user["id"]
    me = snap.player(user["id"])
    if me is None:
        st.warning("You are no longer in this lobby.")
        ss["page"] = "home"
        st.rerun(scope="app")
        return

    # Player list (re-fetched every poll)
    st.markdown(f"**{html.escape(lobby.name)}** &middot; Players ({len(snap.players)}/{lobby.max_players}):")
    for p in snap.players:
        badge = ""
        if p.user_id == lobby.host_user_id:
            badge = '<span class="host-badge">Host</span>'
        ready = '<span class="ready-badge">Ready</span>' if p.is_ready else ""
        you = " (You)" if p.user_id == user["id"] else ""
        st.markdown(
            f'<div class="player-list-item">{html.escape(p.username)}{you} {badge} {ready}</div>',
            unsafe_allow_html=True,
        )

    settings = lobby.game_settings
    st.divider()

    # Ready toggle collects the player's top tracks
    if me.is_ready:
        st.success(f"Ready with {len(me.tracks)} tracks.")
        if st.button("Not Ready", use_container_width=True):
            _set_ready(lobby_id, user["id"], False)
    elif st.button("I'm Ready", type="primary", use_container_width=True):
        _set_ready(lobby_id, user["id"], True, settings)

    with st.expander("Game Settings", expanded=is_host):
        if is_host:
            with st.form("settings_form"):
                chosen = _settings_inputs(settings)
                if st.form_submit_button("Save Settings"):
                    try:
                        db_retry(service.update_settings, lobby_id, user["id"], chosen)
                        st.rerun(scope="app")
                    except (GameError, ValueError) as e:
                        st.error(str(e))
            st.caption("Changing the track count or time range asks everyone to ready up again.")
        else:
            _settings_inputs(settings, disabled=True)

    # Host controls
    if is_host:
        all_ready = all(p.is_ready for p in snap.players)
        can_start = len(snap.players) >= 2 and all_ready
        if st.button(
            "Start Game",
            disabled=not can_start,
            type="primary",
            use_container_width=True,
        ):
            try:
                db_retry(service.start_game, lobby_id, user["id"])
            except GameError as e:
                st.error(str(e))
                return
            ss["page"] = "game"
            st.rerun(scope="app")

        if len(snap.players) < 2:
            st.caption("Need at least 2 players to start.")
        elif not all_ready:
            st.caption("Waiting for everyone to get ready.")
    else:
        st.info("Waiting for the host to start the game...")


def _set_ready(
    lobby_id: str,
    user_id: str,
    ready: bool,
    settings: LobbySettings | None = None,
) -> None:
    service = get_service()
    try:
        if ready and settings is not None:
            with st.spinner("Reading your top tracks..."):
                tracks = spotify_client().fetch_top_tracks(
                    limit=settings.tracks_per_player,
                    time_range=settings.time_range,
                )
            db_retry(service.set_ready, lobby_id, user_id, True, tracks)
        else:
            db_retry(service.set_ready, lobby_id, user_id, ready)
    except SpotifyAuthError as e:
        st.error(f"{e} Use the sidebar to log out and back in.")
        return
    except GameError as e:
        st.error(str(e))
        return
    st.rerun(scope="app")
