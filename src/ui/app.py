"""Whose Track? — Streamlit Application Entrypoint."""

from __future__ import annotations

import streamlit as st

from src.config.logging import configure_logging
from src.config.settings import get_settings

_RULES = """\
**Goal:** Most points after the last round wins!

- Each round plays a track from one player's Spotify top list.
- Pick whose list it came from before time runs out.
- Correct guess = **10 pts**.
- The round ends when everyone has guessed or the timer hits zero.
- The owner is revealed, then the next round starts automatically.
"""


def _render_sidebar(page: str) -> None:
    """Account info, in-game rules and logout."""
    from src.ui.session import current_user, logout

    user = current_user()
    with st.sidebar:
        if user:
            if user.get("avatar_url"):
                st.image(user["avatar_url"], width=64)
            st.markdown(f"**{user['display_name']}**")
            if st.button("Log out", use_container_width=True):
                logout()
                st.rerun()
        if page == "game":
            st.divider()
            st.markdown("### Rules")
            st.markdown(_RULES)


def main() -> None:
    """Application entrypoint. Must call ``st.set_page_config`` first."""
    st.set_page_config(
        page_title="Whose Track?",
        page_icon="🎧",
        layout="wide",
        initial_sidebar_state="collapsed",
    )

    configure_logging(get_settings().log_level)

    from src.ui.themes import load_css
    load_css()

    # Session state defaults
    if "page" not in st.session_state:
        st.session_state["page"] = "home"

    # Everything but the login page needs a Spotify account
    if "user" not in st.session_state:
        from src.ui.views.login import render_login_page
        render_login_page()
        return

    # Page routing (lazy imports to avoid circular deps)
    page = st.session_state["page"]

    if page == "home" or page == "lobby_waiting":
        from src.ui.views.home import render_home_page
        render_home_page()
    elif page == "game":
        from src.ui.views.game import render_game_page
        render_game_page()
    elif page == "results":
        from src.ui.views.results import render_results_page
        render_results_page()
    else:
        st.session_state["page"] = "home"
        st.rerun()

    _render_sidebar(page)


if __name__ == "__main__":
    main()
