"""UI components for Whose Track?."""

from src.ui.components.guess_panel import render_guess_buttons, render_track_player
from src.ui.components.lobby import render_lobby
from src.ui.components.scoreboard import render_scoreboard

__all__ = [
    "render_guess_buttons",
    "render_lobby",
    "render_scoreboard",
    "render_track_player",
]
