"""
Whose Track? - Game Service

Orchestrates lobbies, rounds and guesses on top of the database managers
and the pure game engine.

Round timing is lazy: deadlines live in the ``game_sessions`` row and any
client may call ``tick`` to close an expired round or start the next one.
Every phase change is a compare-and-set on the session version, and only
the client that wins it performs the follow-up writes. Player totals are
always recomputed from the ``guesses`` table, so running a resolution twice
gives the same result.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from supabase import Client

from src.config.settings import Settings, get_settings
from src.database.client import get_supabase_client
from src.database.game_state import GameStateManager
from src.database.guesses import GuessManager
from src.database.lobby import LobbyManager
from src.database.models import GameState, Guess, Lobby, Player, Round
from src.database.player import PlayerManager
from src.database.rounds import RoundManager
from src.engine.base import (
    GamePhase,
    GuessRejectedError,
    LobbySettings,
    LobbyStatus,
    NotEnoughTracksError,
    PlayerStanding,
    RoundPlan,
    RoundResult,
    Track,
)
from src.engine.distribution import distribute_rounds
from src.engine.game import GameEngine
from src.engine.validators import (
    validate_lobby_code,
    validate_player_count,
    validate_settings,
    validate_username,
)
from src.services.errors import (
    GameError,
    LobbyClosedError,
    LobbyFullError,
    LobbyNotFoundError,
    NotReadyError,
    PermissionDeniedError,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class GameSnapshot:
    """Everything a client needs to draw one lobby."""
    lobby: Lobby
    players: list[Player]
    session: GameState | None
    current_round: Round | None = None
    guesses: list[Guess] = field(default_factory=list)

    @property
    def phase(self) -> GamePhase:
        if self.session is None:
            return GamePhase.WAITING
        return self.session.game_phase

    def player(self, user_id: str) -> Player | None:
        return next((p for p in self.players if p.user_id == user_id), None)

    def guess_of(self, user_id: str) -> Guess | None:
        return next((g for g in self.guesses if g.voter_user_id == user_id), None)


class GameService:
    """
    Lobby and round operations for one Supabase project.

    Args:
        client: Supabase client (defaults to the cached app client)
        settings: App settings (defaults to the cached settings)
    """

    def __init__(
        self,
        client: Client | None = None,
        settings: Settings | None = None,
    ) -> None:
        client = client or get_supabase_client()
        self.settings = settings or get_settings()
        self.lobbies = LobbyManager(client)
        self.players = PlayerManager(client)
        self.sessions = GameStateManager(client)
        self.rounds = RoundManager(client)
        self.guesses = GuessManager(client)

    # -- Lookups -------------------------------------------------------------

    def _require_lobby(self, lobby_id: str) -> Lobby:
        lobby = self.lobbies.get_by_id(lobby_id)
        if lobby is None:
            raise LobbyNotFoundError("This lobby no longer exists.")
        return lobby

    def _require_host(self, lobby: Lobby, user_id: str) -> None:
        if lobby.host_user_id != user_id:
            raise PermissionDeniedError("Only the host can do that.")

    def _require_session(self, lobby_id: str) -> GameState:
        session = self.sessions.get(lobby_id)
        if session is None:
            raise LobbyNotFoundError("This lobby has no game.")
        return session

    # -- Lobby lifecycle -------------------------------------------------------

    def create_lobby(
        self,
        host_user_id: str,
        username: str,
        name: str | None = None,
        settings: Mapping[str, Any] | LobbySettings | None = None,
        avatar_url: str | None = None,
    ) -> tuple[Lobby, Player]:
        """Create a lobby and seat the host as its first player."""
        username = validate_username(username)
        game_settings = validate_settings(settings)
        lobby_name = (name or "").strip() or f"{username}'s lobby"

        lobby = self.lobbies.create(
            name=lobby_name[:60],
            host_user_id=host_user_id,
            settings=game_settings.to_dict(),
            max_players=self.settings.max_players,
        )
        player = self.players.join(str(lobby.id), host_user_id, username, avatar_url)
        self.sessions.create(str(lobby.id))
        logger.info("Lobby %s (%s) created by %s", lobby.code, lobby.id, host_user_id)
        return lobby, player

    def join_lobby(
        self,
        code: str,
        user_id: str,
        username: str,
        avatar_url: str | None = None,
    ) -> tuple[Lobby, Player]:
        """
        Join a lobby by its code.

        A player already in the lobby gets their existing membership back,
        even mid-game.

        Raises:
            ValueError: If the code is malformed
            LobbyNotFoundError: If no lobby has this code
            LobbyClosedError: If the game has already started
            LobbyFullError: If the lobby is full
        """
        code = validate_lobby_code(code)
        username = validate_username(username)

        lobby = self.lobbies.get_by_code(code)
        if lobby is None:
            raise LobbyNotFoundError(f"No lobby with code {code}.")
        lobby_id = str(lobby.id)

        existing = self.players.get_by_user(lobby_id, user_id)
        if existing is not None:
            return lobby, existing

        if lobby.status != LobbyStatus.WAITING.value:
            raise LobbyClosedError("That game has already started.")
        if self.players.count_in_lobby(lobby_id) >= lobby.max_players:
            raise LobbyFullError(f"Lobby {code} is full.")

        player = self.players.join(lobby_id, user_id, username, avatar_url)

        # Two joins can pass the check together; the later one backs out.
        if self.players.count_in_lobby(lobby_id) > lobby.max_players:
            self.players.remove(lobby_id, user_id)
            raise LobbyFullError(f"Lobby {code} is full.")

        logger.info("%s joined lobby %s", user_id, code)
        return lobby, player

    def leave_lobby(self, lobby_id: str, user_id: str) -> Lobby | None:
        """
        Remove a player.

        Hosting passes to the earliest-joined remaining player. The lobby is
        deleted when nobody is left, and a running game ends when fewer than
        two players remain.

        If the leaver owns the round being played, that round closes at once;
        their later rounds are skipped when the next round is dealt.

        Returns:
            The lobby after the change, or None if it was deleted
        """
        lobby = self._require_lobby(lobby_id)
        if not self.players.remove(lobby_id, user_id):
            return lobby

        remaining = self.players.list_by_lobby(lobby_id)
        if not remaining:
            self.lobbies.delete(lobby_id)
            logger.info("Lobby %s deleted (last player left)", lobby.code)
            return None

        if lobby.host_user_id == user_id:
            lobby = self.lobbies.set_host(lobby_id, remaining[0].user_id)
            logger.info(
                "Host of lobby %s passed from %s to %s",
                lobby.code, user_id, remaining[0].user_id,
            )

        if len(remaining) < 2 and lobby.status == LobbyStatus.PLAYING.value:
            self._finish_early(lobby)
            lobby = self._require_lobby(lobby_id)
        elif lobby.status == LobbyStatus.PLAYING.value:
            self._close_if_owner_left(lobby_id, user_id)
        return lobby

    def _close_if_owner_left(self, lobby_id: str, user_id: str) -> None:
        session = self.sessions.get(lobby_id)
        if session is None or session.game_phase != GamePhase.PLAYING:
            return
        current = self.rounds.get(lobby_id, session.round_number)
        if current is not None and current.owner_user_id == user_id:
            self._close_round(lobby_id, session, utcnow())

    def _finish_early(self, lobby: Lobby) -> None:
        """End a running game that lost its opponents."""
        lobby_id = str(lobby.id)
        for _ in range(3):
            session = self.sessions.get(lobby_id)
            if session is None or session.game_phase in (
                GamePhase.WAITING, GamePhase.FINISHED
            ):
                return
            if self.sessions.compare_and_set(
                lobby_id,
                session.version,
                {"phase": GamePhase.FINISHED.value, "next_round_at": None},
            ) is not None:
                self.lobbies.update_status(lobby_id, LobbyStatus.FINISHED.value)
                self._recompute_totals(lobby_id)
                logger.info("Game in lobby %s ended early", lobby.code)
                return

    def update_settings(
        self,
        lobby_id: str,
        user_id: str,
        changes: Mapping[str, Any],
    ) -> Lobby:
        """
        Change game settings (host only, before the game starts).

        Tracks are collected when a player readies up, so changing how many
        are read or from which time range un-readies everybody.
        """
        lobby = self._require_lobby(lobby_id)
        self._require_host(lobby, user_id)
        if lobby.status != LobbyStatus.WAITING.value:
            raise LobbyClosedError("Settings are locked once the game starts.")
        current = lobby.game_settings
        new_settings = validate_settings(changes, base=current)
        updated = self.lobbies.update_settings(lobby_id, new_settings.to_dict())
        if (new_settings.tracks_per_player, new_settings.time_range) != (
            current.tracks_per_player, current.time_range
        ):
            self.players.clear_ready(lobby_id)
            logger.info("Track settings changed in lobby %s; players un-readied", lobby.code)
        return updated

    def set_ready(
        self,
        lobby_id: str,
        user_id: str,
        ready: bool,
        tracks: Iterable[Track] | None = None,
    ) -> Player:
        """
        Toggle a player's ready flag.

        Args:
            lobby_id: The lobby
            user_id: The player
            ready: New flag value
            tracks: The player's freshly collected top tracks; stored when given

        Raises:
            NotEnoughTracksError: If a player readies up without any tracks
        """
        lobby = self._require_lobby(lobby_id)
        if lobby.status != LobbyStatus.WAITING.value:
            raise LobbyClosedError("The game has already started.")
        player = self.players.get_by_user(lobby_id, user_id)
        if player is None:
            raise LobbyNotFoundError("You are not in this lobby.")

        stored: list[dict] | None = None
        if tracks is not None:
            stored = [t.with_owner(user_id, player.username).to_dict() for t in tracks]
        if ready and not (stored if stored is not None else player.tracks):
            raise NotEnoughTracksError(
                "We couldn't find any top tracks on your Spotify account."
            )
        return self.players.set_ready(lobby_id, user_id, ready, stored)

    # -- Game flow -------------------------------------------------------------

    def start_game(
        self,
        lobby_id: str,
        user_id: str,
        now: datetime | None = None,
        rng: random.Random | None = None,
    ) -> GameState:
        """
        Deal the rounds and open round 1.

        Raises:
            PermissionDeniedError: If the caller is not the host
            LobbyClosedError: If a game is already running
            NotReadyError: If there are too few players or someone is not ready
            NotEnoughTracksError: If the players' tracks cannot fill a game
        """
        now = now or utcnow()
        lobby = self._require_lobby(lobby_id)
        self._require_host(lobby, user_id)
        if lobby.status != LobbyStatus.WAITING.value:
            raise LobbyClosedError("The game has already started.")

        players = self.players.list_by_lobby(lobby_id)
        try:
            validate_player_count(len(players), 2, lobby.max_players)
        except ValueError as exc:
            raise NotReadyError(str(exc)) from exc
        waiting_on = [p.username for p in players if not p.is_ready]
        if waiting_on:
            raise NotReadyError(f"Waiting for {', '.join(waiting_on)} to get ready.")

        settings = lobby.game_settings
        plans = distribute_rounds(
            {p.user_id: p.top_tracks for p in players},
            settings.rounds,
            rng=rng,
            require_preview=settings.require_preview,
        )

        session = self.sessions.get(lobby_id) or self.sessions.create(lobby_id)
        GameEngine.transition(session.game_phase, GamePhase.PLAYING)
        won = self.sessions.compare_and_set(lobby_id, session.version, {
            "phase": GamePhase.PLAYING.value,
            "round_number": 1,
            "total_rounds": len(plans),
            "round_started_at": now,
            "round_ends_at": GameEngine.round_deadline(now, settings),
            "next_round_at": None,
        })
        if won is None:
            raise LobbyClosedError("The game has already started.")

        self.rounds.delete_by_lobby(lobby_id)
        self.rounds.create_many(lobby_id, plans)
        self.rounds.open(lobby_id, 1, now)
        self.lobbies.update_status(lobby_id, LobbyStatus.PLAYING.value)
        logger.info(
            "Game started in lobby %s: %d rounds, %d players",
            lobby.code, len(plans), len(players),
        )
        return won

    def submit_guess(
        self,
        lobby_id: str,
        user_id: str,
        round_number: int,
        guessed_user_id: str,
        now: datetime | None = None,
    ) -> Guess:
        """
        Lock in a guess for the current round.

        Closes the round when this was the last expected guess.

        Raises:
            GuessRejectedError: If the round is not accepting this guess
            DuplicateGuessError: If the player already guessed this round
        """
        now = now or utcnow()
        session = self._require_session(lobby_id)
        players = self.players.list_by_lobby(lobby_id)
        GameEngine.check_guess(
            phase=session.game_phase,
            current_round=session.round_number,
            round_number=round_number,
            ends_at=session.round_ends_at,
            now=now,
            voter_id=user_id,
            guessed_id=guessed_user_id,
            member_ids=[p.user_id for p in players],
            grace_seconds=self.settings.guess_grace_seconds,
        )
        current = self.rounds.get(lobby_id, round_number)
        if current is None or current.status != "open":
            raise GuessRejectedError("This round is not open yet.")

        outcome = GameEngine.score_guess(
            user_id,
            guessed_user_id,
            current.owner_user_id,
            self.settings.points_per_correct,
        )
        guess = self.guesses.insert(str(current.id), lobby_id, round_number, outcome, now)
        logger.debug("Guess in lobby %s round %d by %s", lobby_id, round_number, user_id)

        count = self.guesses.count_for_round(str(current.id))
        if GameEngine.should_close_round(
            session.game_phase, count, len(players), session.round_ends_at, now,
            self.settings.guess_grace_seconds,
        ):
            self._close_round(lobby_id, session, now)
        return guess

    def tick(self, lobby_id: str, now: datetime | None = None) -> GameState | None:
        """
        Advance the game if a deadline has passed.

        Closes the current round once its timer (plus grace) ran out or
        everyone guessed, and starts the next round once the reveal is over.
        Safe to call from every client on every poll.

        Returns:
            The session after any change, or None if the lobby has no session
        """
        now = now or utcnow()
        session = self.sessions.get(lobby_id)
        if session is None:
            return None

        phase = session.game_phase
        if phase == GamePhase.PLAYING:
            current = self.rounds.get(lobby_id, session.round_number)
            if current is None:
                return session
            if GameEngine.should_close_round(
                phase,
                self.guesses.count_for_round(str(current.id)),
                self.players.count_in_lobby(lobby_id),
                session.round_ends_at,
                now,
                self.settings.guess_grace_seconds,
            ):
                return self._close_round(lobby_id, session, now) or self.sessions.get(lobby_id)
        elif phase == GamePhase.VOTING:
            if GameEngine.should_advance(phase, session.next_round_at, now):
                return self._advance(lobby_id, session, now) or self.sessions.get(lobby_id)
        return session

    def _close_round(
        self,
        lobby_id: str,
        session: GameState,
        now: datetime,
    ) -> GameState | None:
        """Close the current round. Returns None if another client did it first."""
        GameEngine.transition(session.game_phase, GamePhase.VOTING)
        settings = self._require_lobby(lobby_id).game_settings
        won = self.sessions.compare_and_set(lobby_id, session.version, {
            "phase": GamePhase.VOTING.value,
            "next_round_at": GameEngine.reveal_deadline(now, settings),
        })
        if won is None:
            return None

        self.rounds.close(lobby_id, session.round_number, now)
        self._recompute_totals(lobby_id)
        logger.info("Round %d closed in lobby %s", session.round_number, lobby_id)
        return won

    def _advance(
        self,
        lobby_id: str,
        session: GameState,
        now: datetime,
    ) -> GameState | None:
        """
        Open the next round or finish. Returns None if another client did it first.

        Pending rounds dealt from players who have since left are dropped
        here, and the rounds after them move up.
        """
        members = {p.user_id for p in self.players.list_by_lobby(lobby_id)}
        upcoming = [
            r for r in self.rounds.list_by_lobby(lobby_id)
            if r.status == "pending" and r.round_number > session.round_number
        ]
        dropped = [r for r in upcoming if r.owner_user_id not in members]
        total_rounds = session.total_rounds - len(dropped)

        target = GameEngine.next_phase_after_reveal(session.round_number, total_rounds)
        GameEngine.transition(session.game_phase, target)

        if target == GamePhase.FINISHED:
            won = self.sessions.compare_and_set(lobby_id, session.version, {
                "phase": GamePhase.FINISHED.value,
                "total_rounds": total_rounds,
                "next_round_at": None,
            })
            if won is None:
                return None
            self.lobbies.update_status(lobby_id, LobbyStatus.FINISHED.value)
            self._recompute_totals(lobby_id)
            logger.info("Game finished in lobby %s", lobby_id)
            return won

        settings = self._require_lobby(lobby_id).game_settings
        next_round = session.round_number + 1
        won = self.sessions.compare_and_set(lobby_id, session.version, {
            "phase": GamePhase.PLAYING.value,
            "round_number": next_round,
            "total_rounds": total_rounds,
            "round_started_at": now,
            "round_ends_at": GameEngine.round_deadline(now, settings),
            "next_round_at": None,
        })
        if won is None:
            return None
        if dropped:
            self._drop_rounds(lobby_id, session.round_number, upcoming, dropped)
        self.rounds.open(lobby_id, next_round, now)
        logger.info("Round %d started in lobby %s", next_round, lobby_id)
        return won

    def _drop_rounds(
        self,
        lobby_id: str,
        played_through: int,
        upcoming: list[Round],
        dropped: list[Round],
    ) -> None:
        """Delete ``dropped`` and close the gaps they leave in the numbering."""
        self.rounds.delete_many([str(r.id) for r in dropped])
        gone = {str(r.id) for r in dropped}
        kept = sorted(
            (r for r in upcoming if str(r.id) not in gone),
            key=lambda r: r.round_number,
        )
        # Ascending order keeps (lobby_id, round_number) unique at every step.
        for number, rnd in enumerate(kept, start=played_through + 1):
            if rnd.round_number != number:
                self.rounds.renumber(str(rnd.id), number)
        logger.info(
            "Dropped %d rounds of departed players in lobby %s", len(dropped), lobby_id
        )

    def _recompute_totals(self, lobby_id: str) -> None:
        """Rewrite every player's score from the guesses of closed rounds."""
        closed_at = {
            str(r.id): r.ended_at
            for r in self.rounds.list_by_lobby(lobby_id)
            if r.status == "closed" and r.ended_at is not None
        }
        counted = [
            g.model_dump()
            for g in self.guesses.list_for_lobby(lobby_id)
            if str(g.round_id) in closed_at and g.submitted_at <= closed_at[str(g.round_id)]
        ]
        players = self.players.list_by_lobby(lobby_id)
        totals = GameEngine.tally_totals(counted, [p.user_id for p in players])
        for player in players:
            score, correct = totals[player.user_id]
            if (score, correct) != (player.total_score, player.correct_guesses):
                self.players.update_score(lobby_id, player.user_id, score, correct)

    # -- Reads -----------------------------------------------------------------

    def get_snapshot(self, lobby_id: str) -> GameSnapshot | None:
        """Read the lobby, its players, session and current round in one go."""
        lobby = self.lobbies.get_by_id(lobby_id)
        if lobby is None:
            return None
        players = self.players.list_by_lobby(lobby_id)
        session = self.sessions.get(lobby_id)

        current: Round | None = None
        guesses: list[Guess] = []
        if session is not None and session.round_number > 0:
            current = self.rounds.get(lobby_id, session.round_number)
            if current is not None:
                guesses = self.guesses.list_for_round(str(current.id))
        return GameSnapshot(
            lobby=lobby,
            players=players,
            session=session,
            current_round=current,
            guesses=guesses,
        )

    def get_round_result(self, lobby_id: str, round_number: int) -> RoundResult:
        """
        Tally a closed round.

        Raises:
            GameError: If the round does not exist or is still open
        """
        played = self.rounds.get(lobby_id, round_number)
        if played is None:
            raise GameError(f"Round {round_number} does not exist.")
        if played.status != "closed" or played.ended_at is None:
            raise GameError(f"Round {round_number} is still in progress.")

        ended_at = played.ended_at
        guesses = [
            (g.voter_user_id, g.guessed_user_id)
            for g in self.guesses.list_for_round(str(played.id))
            if g.submitted_at <= ended_at
        ]
        members = [p.user_id for p in self.players.list_by_lobby(lobby_id)]
        return GameEngine.resolve_round(
            RoundPlan(round_number=round_number, track=played.track_info),
            guesses,
            expected_voters=members,
            points_per_correct=self.settings.points_per_correct,
        )

    def get_standings(self, lobby_id: str) -> list[PlayerStanding]:
        players = self.players.list_by_lobby(lobby_id)
        return GameEngine.compute_standings(p.model_dump() for p in players)

    def play_again(self, lobby_id: str, user_id: str) -> GameState:
        """
        Return a finished lobby to the waiting room (host only).

        Clears the old rounds and guesses and zeroes every score.
        """
        lobby = self._require_lobby(lobby_id)
        self._require_host(lobby, user_id)
        session = self._require_session(lobby_id)
        GameEngine.transition(session.game_phase, GamePhase.WAITING)

        won = self.sessions.compare_and_set(lobby_id, session.version, {
            "phase": GamePhase.WAITING.value,
            "round_number": 0,
            "total_rounds": 0,
            "round_started_at": None,
            "round_ends_at": None,
            "next_round_at": None,
        })
        if won is None:
            return self._require_session(lobby_id)

        self.rounds.delete_by_lobby(lobby_id)
        self.players.reset_for_new_game(lobby_id)
        self.lobbies.update_status(lobby_id, LobbyStatus.WAITING.value)
        logger.info("Lobby %s reset for a new game", lobby.code)
        return won


def seconds_until(moment: datetime | None, now: datetime | None = None) -> int:
    """Whole seconds until ``moment`` (for countdowns)."""
    return GameEngine.seconds_left(moment, now or utcnow())
