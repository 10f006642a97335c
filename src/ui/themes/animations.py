"""CSS injection and HTML animation helpers for the party theme."""

import html
from pathlib import Path

import streamlit as st


def load_css() -> None:
    """Inject the app's CSS theme."""
    css_path = Path(__file__).parent / "whose_track.css"
    css_text = css_path.read_text(encoding="utf-8")
    st.markdown(f"<style>{css_text}</style>", unsafe_allow_html=True)


def render_countdown(seconds_left: int, total: int) -> None:
    """Render the round timer bar."""
    pct = 0 if total <= 0 else max(0, min(100, int(seconds_left * 100 / total)))
    urgent = " urgent" if seconds_left <= 5 else ""
    st.markdown(
        f'<div class="countdown{urgent}">'
        f'<div class="countdown-bar" style="width:{pct}%"></div>'
        f'<span class="countdown-label">{seconds_left}s</span>'
        f"</div>",
        unsafe_allow_html=True,
    )


def render_reveal_banner(owner_name: str, correct: bool | None) -> None:
    """Render the owner reveal with a pop animation.

    Args:
        owner_name: Whose track it was.
        correct: Whether the local player guessed right; None if they
            did not guess.
    """
    if correct is None:
        verdict, css = "You didn't guess in time.", "missed"
    elif correct:
        verdict, css = "You got it!", "correct"
    else:
        verdict, css = "Not this time.", "wrong"
    st.markdown(
        f'<div class="reveal-banner {css}">'
        f"<h2>It was {html.escape(owner_name)}'s track!</h2>"
        f"<p>{verdict}</p>"
        "</div>",
        unsafe_allow_html=True,
    )


def render_victory_animation(name: str) -> None:
    """Render the victory overlay with glow animation."""
    st.markdown(
        '<div class="victory-overlay">'
        '<span class="crown">&#127911;</span>'
        f"<h1>{html.escape(name)} Wins!</h1>"
        "<p>Knows their friends' music best.</p>"
        "</div>",
        unsafe_allow_html=True,
    )


def render_score_popup(points: int) -> None:
    """Render an animated score popup."""
    st.markdown(
        f'<div class="score-popup">+{points}</div>',
        unsafe_allow_html=True,
    )
