"""
Whose Track? Database Layer.

Supabase integration for lobbies, players, game sessions, rounds, guesses
and linked Spotify accounts.
"""

from src.database.accounts import AccountManager
from src.database.client import get_supabase_client
from src.database.game_state import GameStateManager
from src.database.guesses import GuessManager
from src.database.lobby import LobbyManager
from src.database.models import GameState, Guess, Lobby, Player, Round, SpotifyAccount
from src.database.player import PlayerManager
from src.database.rounds import RoundManager

__all__ = [
    "get_supabase_client",
    "AccountManager",
    "GameState",
    "GameStateManager",
    "Guess",
    "GuessManager",
    "Lobby",
    "LobbyManager",
    "Player",
    "PlayerManager",
    "Round",
    "RoundManager",
    "SpotifyAccount",
]
