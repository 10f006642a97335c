"""Party theme for Whose Track?."""

from src.ui.themes.animations import (
    load_css,
    render_countdown,
    render_reveal_banner,
    render_score_popup,
    render_victory_animation,
)

__all__ = [
    "load_css",
    "render_countdown",
    "render_reveal_banner",
    "render_score_popup",
    "render_victory_animation",
]
