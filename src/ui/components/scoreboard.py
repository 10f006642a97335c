"""Scoreboard component — player rankings and guess status."""

from __future__ import annotations

import html

import streamlit as st

from src.engine.base import PlayerStanding


def render_scoreboard(
    standings: list[PlayerStanding],
    my_user_id: str,
    guessed: set[str] | None = None,
    total_rounds: int = 0,
) -> None:
    """Render the scoreboard panel.

    Args:
        standings: Ranked players.
        my_user_id: The local player's Spotify ID.
        guessed: Players who have locked in a guess this round; None hides
            the indicator.
        total_rounds: Rounds in this game, for the title.
    """
    parts = ['<div class="scoreboard">']
    title = "Scoreboard"
    if total_rounds:
        title += f" &mdash; {total_rounds} rounds"
    parts.append(f'<div class="scoreboard-title">{title}</div>')

    for row in standings:
        is_me = row.user_id == my_user_id
        row_classes = ["player-row"]
        if is_me:
            row_classes.append("is-me")

        name_display = html.escape(row.username)
        if is_me:
            name_display += " (You)"

        status = ""
        if guessed is not None:
            status = (
                '<span class="guess-status done">&#10003;</span>'
                if row.user_id in guessed
                else '<span class="guess-status">&hellip;</span>'
            )

        parts.append(
            f'<div class="{" ".join(row_classes)}">'
            f'<span class="name">{row.rank}. {name_display}{status}</span>'
            f'<span class="score">{row.score}</span>'
            f"</div>"
        )

    parts.append("</div>")
    st.markdown("".join(parts), unsafe_allow_html=True)
