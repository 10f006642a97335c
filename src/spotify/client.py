"""
Whose Track? - Spotify Web API Client

Fetches a player's profile and top tracks with spotipy.
"""

import logging
from typing import Any, Callable

import spotipy
from spotipy.exceptions import SpotifyException

from src.engine.base import TimeRange, Track
from src.spotify.errors import SpotifyAuthError, SpotifyFetchError

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
MAX_TOP_TRACKS = 100

Refresher = Callable[[dict], dict]


def track_from_item(item: dict[str, Any]) -> Track | None:
    """Map a Web API track object to a Track. Returns None for local files."""
    track_id = item.get("id")
    if not track_id:
        return None
    album = item.get("album") or {}
    images = album.get("images") or []
    return Track(
        id=track_id,
        name=item.get("name", ""),
        artists=tuple(a.get("name", "") for a in item.get("artists") or ()),
        album=album.get("name", ""),
        image_url=images[0]["url"] if images else None,
        preview_url=item.get("preview_url"),
        spotify_url=(item.get("external_urls") or {}).get("spotify"),
    )


class SpotifyClient:
    """
    Per-user Web API access.

    Args:
        token_info: spotipy token dict for the user
        refresher: Called with the current token on a 401; returns a new one
        on_refresh: Called with the new token after a refresh so it can be stored
    """

    def __init__(
        self,
        token_info: dict,
        refresher: Refresher | None = None,
        on_refresh: Callable[[dict], None] | None = None,
    ) -> None:
        self.token_info = token_info
        self._refresher = refresher
        self._on_refresh = on_refresh
        self._sp = spotipy.Spotify(auth=token_info["access_token"])

    def _refresh(self) -> None:
        if self._refresher is None:
            raise SpotifyAuthError("Session expired. Please log in again.")
        self.token_info = self._refresher(self.token_info)
        self._sp = spotipy.Spotify(auth=self.token_info["access_token"])
        if self._on_refresh is not None:
            self._on_refresh(self.token_info)

    def _call(self, method: str, **kwargs: Any) -> Any:
        """Call a spotipy method, refreshing once on 401."""
        try:
            return getattr(self._sp, method)(**kwargs)
        except SpotifyException as exc:
            if exc.http_status != 401:
                raise SpotifyFetchError(
                    f"Spotify request failed ({exc.http_status}).", exc.http_status
                ) from exc
            logger.info("Spotify returned 401 for %s, refreshing token", method)

        self._refresh()
        try:
            return getattr(self._sp, method)(**kwargs)
        except SpotifyException as exc:
            raise SpotifyFetchError(
                f"Spotify request failed ({exc.http_status}).", exc.http_status
            ) from exc

    def current_profile(self) -> dict[str, Any]:
        """Return id, display_name, email and avatar_url of the user."""
        me = self._call("current_user")
        images = me.get("images") or []
        return {
            "id": me["id"],
            "display_name": me.get("display_name") or me["id"],
            "email": me.get("email"),
            "avatar_url": images[0]["url"] if images else None,
        }

    def fetch_top_tracks(
        self,
        limit: int = 20,
        time_range: TimeRange = TimeRange.SHORT_TERM,
    ) -> list[Track]:
        """
        Fetch the user's top tracks.

        Args:
            limit: How many tracks to collect (capped at 100)
            time_range: Spotify top-items window

        Returns:
            Up to ``limit`` tracks in Spotify's ranking order, without duplicates

        Raises:
            SpotifyFetchError: If a page request fails
            SpotifyAuthError: If the token cannot be refreshed
        """
        wanted = max(0, min(limit, MAX_TOP_TRACKS))
        tracks: list[Track] = []
        seen: set[str] = set()
        offset = 0
        while len(tracks) < wanted:
            page_size = min(PAGE_SIZE, wanted - offset)
            if page_size <= 0:
                break
            page = self._call(
                "current_user_top_tracks",
                limit=page_size,
                offset=offset,
                time_range=time_range.value,
            )
            items = (page or {}).get("items") or []
            for item in items:
                track = track_from_item(item)
                if track is not None and track.id not in seen:
                    seen.add(track.id)
                    tracks.append(track)
            if len(items) < page_size:
                break
            offset += page_size

        logger.info("Fetched %d top tracks (%s)", len(tracks), time_range.value)
        return tracks[:wanted]
