"""
Whose Track? - Game Engine Base Classes

This module defines the foundational data structures and enums used throughout
the game engine. Data classes are frozen; engine functions return new instances instead of
mutating their inputs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class LobbyStatus(Enum):
    """Lifecycle of a lobby row."""
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class GamePhase(Enum):
    """Phases of a game session.

    PLAYING means the current round is open and accepting guesses.
    VOTING means guesses are closed and the tally is on screen.
    """
    WAITING = "waiting"
    PLAYING = "playing"
    VOTING = "voting"
    FINISHED = "finished"


class TimeRange(Enum):
    """Spotify top-items windows."""
    SHORT_TERM = "short_term"    # ~4 weeks
    MEDIUM_TERM = "medium_term"  # ~6 months
    LONG_TERM = "long_term"      # ~1 year


class GameError(Exception):
    """Base class for errors a player can be shown."""


class InvalidTransitionError(GameError, ValueError):
    """Raised when a phase change is not allowed by the state machine."""

    def __init__(self, current: GamePhase, target: GamePhase) -> None:
        super().__init__(
            f"Cannot move game from '{current.value}' to '{target.value}'."
        )
        self.current = current
        self.target = target


class NotEnoughTracksError(GameError, ValueError):
    """Raised when the players' pools cannot fill a game."""


class GuessRejectedError(GameError, ValueError):
    """Raised when a guess violates the round rules."""


class DuplicateGuessError(GuessRejectedError):
    """Raised when a player guesses twice in the same round."""


@dataclass(frozen=True)
class Track:
    """
    A single Spotify track belonging to one player's top list.

    Attributes:
        id: Spotify track ID
        name: Track title
        artists: Artist names in credit order
        album: Album name
        image_url: Album art (largest available), if any
        preview_url: 30 second MP3 preview, if Spotify provides one
        spotify_url: Link to open the track in Spotify
        owner_id: Spotify user ID of the player whose top track this is
        owner_name: Display name of that player
    """
    id: str
    name: str
    artists: tuple[str, ...] = ()
    album: str = ""
    image_url: str | None = None
    preview_url: str | None = None
    spotify_url: str | None = None
    owner_id: str = ""
    owner_name: str = ""

    @property
    def artist_line(self) -> str:
        return ", ".join(self.artists)

    @property
    def embed_url(self) -> str:
        return f"https://open.spotify.com/embed/track/{self.id}"

    def with_owner(self, owner_id: str, owner_name: str) -> "Track":
        return Track(
            id=self.id,
            name=self.name,
            artists=self.artists,
            album=self.album,
            image_url=self.image_url,
            preview_url=self.preview_url,
            spotify_url=self.spotify_url,
            owner_id=owner_id,
            owner_name=owner_name,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for a jsonb column."""
        return {
            "id": self.id,
            "name": self.name,
            "artists": list(self.artists),
            "album": self.album,
            "image_url": self.image_url,
            "preview_url": self.preview_url,
            "spotify_url": self.spotify_url,
            "owner_id": self.owner_id,
            "owner_name": self.owner_name,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Track":
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            artists=tuple(data.get("artists") or ()),
            album=data.get("album", ""),
            image_url=data.get("image_url"),
            preview_url=data.get("preview_url"),
            spotify_url=data.get("spotify_url"),
            owner_id=data.get("owner_id", ""),
            owner_name=data.get("owner_name", ""),
        )


@dataclass(frozen=True)
class LobbySettings:
    """
    Host-configurable game settings.

    Attributes:
        rounds: Number of rounds to play (capped by available tracks)
        round_duration: Seconds a round accepts guesses
        tracks_per_player: Top tracks collected from each player
        time_range: Spotify top-tracks window
        reveal_duration: Seconds the tally stays up before the next round
        require_preview: Only use tracks that have a preview URL
    """
    rounds: int = 10
    round_duration: int = 30
    tracks_per_player: int = 20
    time_range: TimeRange = TimeRange.SHORT_TERM
    reveal_duration: int = 5
    require_preview: bool = False

    MIN_ROUNDS = 1
    MAX_ROUNDS = 50
    MIN_DURATION = 10
    MAX_DURATION = 120
    MIN_TRACKS = 5
    MAX_TRACKS = 50
    MAX_REVEAL = 30

    def __post_init__(self) -> None:
        """Validate ranges."""
        if not self.MIN_ROUNDS <= self.rounds <= self.MAX_ROUNDS:
            raise ValueError(
                f"Rounds must be between {self.MIN_ROUNDS} and {self.MAX_ROUNDS}."
            )
        if not self.MIN_DURATION <= self.round_duration <= self.MAX_DURATION:
            raise ValueError(
                f"Round duration must be between {self.MIN_DURATION} and "
                f"{self.MAX_DURATION} seconds."
            )
        if not self.MIN_TRACKS <= self.tracks_per_player <= self.MAX_TRACKS:
            raise ValueError(
                f"Tracks per player must be between {self.MIN_TRACKS} and "
                f"{self.MAX_TRACKS}."
            )
        if not 0 <= self.reveal_duration <= self.MAX_REVEAL:
            raise ValueError(
                f"Reveal duration must be between 0 and {self.MAX_REVEAL} seconds."
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "rounds": self.rounds,
            "round_duration": self.round_duration,
            "tracks_per_player": self.tracks_per_player,
            "time_range": self.time_range.value,
            "reveal_duration": self.reveal_duration,
            "require_preview": self.require_preview,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "LobbySettings":
        """Build settings from a jsonb value, falling back to defaults."""
        data = data or {}
        defaults = cls()
        return cls(
            rounds=int(data.get("rounds", defaults.rounds)),
            round_duration=int(data.get("round_duration", defaults.round_duration)),
            tracks_per_player=int(
                data.get("tracks_per_player", defaults.tracks_per_player)
            ),
            time_range=TimeRange(data.get("time_range", defaults.time_range.value)),
            reveal_duration=int(data.get("reveal_duration", defaults.reveal_duration)),
            require_preview=bool(data.get("require_preview", defaults.require_preview)),
        )


@dataclass(frozen=True)
class RoundPlan:
    """One planned round: which track plays and whose it is."""
    round_number: int
    track: Track

    @property
    def owner_id(self) -> str:
        return self.track.owner_id


@dataclass(frozen=True)
class GuessOutcome:
    """
    A single scored guess.

    Attributes:
        voter_id: Who guessed
        guessed_id: Whose track they said it was
        is_correct: Whether the guess matched the owner
        points: Points awarded for this guess
    """
    voter_id: str
    guessed_id: str
    is_correct: bool
    points: int


@dataclass(frozen=True)
class RoundResult:
    """
    Complete tally of a closed round.

    Attributes:
        round_number: Round this tally belongs to
        track: The track that played
        outcomes: Scored guesses in submission order
        missing_voters: Expected voters who never guessed
    """
    round_number: int
    track: Track
    outcomes: tuple[GuessOutcome, ...]
    missing_voters: frozenset[str] = field(default_factory=frozenset)

    @property
    def owner_id(self) -> str:
        return self.track.owner_id

    @property
    def correct_voters(self) -> tuple[str, ...]:
        return tuple(o.voter_id for o in self.outcomes if o.is_correct)

    @property
    def points_by_voter(self) -> dict[str, int]:
        return {o.voter_id: o.points for o in self.outcomes}

    def __str__(self) -> str:
        lines = [
            f"Round {self.round_number}: '{self.track.name}' "
            f"belonged to {self.track.owner_name or self.owner_id}"
        ]
        for o in self.outcomes:
            mark = "correct" if o.is_correct else "wrong"
            lines.append(f"  - {o.voter_id} guessed {o.guessed_id} ({mark}, +{o.points})")
        return "\n".join(lines)


@dataclass(frozen=True)
class PlayerStanding:
    """A row of the leaderboard."""
    rank: int
    user_id: str
    username: str
    score: int
    correct_guesses: int
