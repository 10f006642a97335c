"""
Whose Track? - Track Distribution

Turns every player's top tracks into a fixed sequence of rounds. Each
player gets an equal share of the rounds (integer division, remainder to
random players), players with short pools hand their surplus to the others,
and no track is ever played twice.

All functions are pure; randomness comes from an injectable ``random.Random``.
"""

import heapq
import random
from collections import Counter, deque
from typing import Mapping, Sequence

from src.engine.base import NotEnoughTracksError, RoundPlan, Track


def build_track_pools(
    tracks_by_player: Mapping[str, Sequence[Track]],
    require_preview: bool = False,
) -> dict[str, list[Track]]:
    """
    Clean each player's tracks into a usable pool.

    Drops tracks without an ID, repeats within one player's list, tracks
    that appear in more than one player's list (nobody could tell whose
    it is) and, if requested, tracks without a preview URL.

    Args:
        tracks_by_player: Player user ID -> that player's top tracks
        require_preview: Only keep tracks with a preview URL

    Returns:
        Player user ID -> cleaned pool, with ``owner_id`` set to the player
    """
    deduped: dict[str, list[Track]] = {}
    for player_id, tracks in tracks_by_player.items():
        seen: set[str] = set()
        pool: list[Track] = []
        for track in tracks:
            if not track.id or track.id in seen:
                continue
            seen.add(track.id)
            pool.append(track)
        deduped[player_id] = pool

    shared = Counter(t.id for pool in deduped.values() for t in pool)

    pools: dict[str, list[Track]] = {}
    for player_id, pool in deduped.items():
        pools[player_id] = [
            t.with_owner(player_id, t.owner_name)
            for t in pool
            if shared[t.id] == 1 and (t.preview_url or not require_preview)
        ]
    return pools


def allocate_quotas(
    pool_sizes: Mapping[str, int],
    total_rounds: int,
    rng: random.Random,
) -> dict[str, int]:
    """
    Decide how many rounds each player's tracks fill.

    Rounds are split with integer division over the players that still
    have spare tracks; the remainder goes to the players with the fewest
    rounds so far, ties broken at random. A player whose pool runs out is
    capped and the leftover is split again among the rest.

    Args:
        pool_sizes: Player user ID -> number of usable tracks
        total_rounds: Requested number of rounds
        rng: Random source for remainder tie-breaks

    Returns:
        Player user ID -> number of rounds. Sums to
        ``min(total_rounds, sum(pool_sizes.values()))``.
    """
    if total_rounds < 0:
        raise ValueError(f"Total rounds cannot be negative, got {total_rounds}.")

    quotas = {player_id: 0 for player_id in pool_sizes}
    remaining = min(total_rounds, sum(max(s, 0) for s in pool_sizes.values()))

    while remaining > 0:
        open_players = [
            p for p in sorted(pool_sizes) if quotas[p] < pool_sizes[p]
        ]
        rng.shuffle(open_players)
        # Stable sort: lowest quota first, random order among equals
        open_players.sort(key=lambda p: quotas[p])

        share, extra = divmod(remaining, len(open_players))
        for idx, player_id in enumerate(open_players):
            want = share + (1 if idx < extra else 0)
            give = min(want, pool_sizes[player_id] - quotas[player_id])
            quotas[player_id] += give
            remaining -= give

    return quotas


def spread_owners(tracks: Sequence[Track]) -> list[Track]:
    """
    Reorder so the same owner does not play twice in a row where avoidable.

    Walks the list once; when a track repeats the previous owner, the
    nearest later track with a different owner is swapped in.
    """
    ordered = list(tracks)
    for i in range(1, len(ordered)):
        prev_owner = ordered[i - 1].owner_id
        if ordered[i].owner_id != prev_owner:
            continue
        for j in range(i + 1, len(ordered)):
            if ordered[j].owner_id != prev_owner:
                ordered[i], ordered[j] = ordered[j], ordered[i]
                break
    return ordered


def distribute_rounds(
    tracks_by_player: Mapping[str, Sequence[Track]],
    total_rounds: int,
    rng: random.Random | None = None,
    require_preview: bool = False,
) -> list[RoundPlan]:
    """
    Build the full round sequence for a game.

    Args:
        tracks_by_player: Player user ID -> that player's top tracks
        total_rounds: Requested number of rounds
        rng: Random source (defaults to a fresh ``random.Random``)
        require_preview: Only use tracks with a preview URL

    Returns:
        Numbered round plans. Fewer than ``total_rounds`` when the pools
        are too small to fill the game.

    Raises:
        NotEnoughTracksError: If fewer than two players have usable tracks
    """
    rng = rng or random.Random()
    pools = build_track_pools(tracks_by_player, require_preview=require_preview)

    contributing = [p for p, pool in pools.items() if pool]
    if not contributing:
        raise NotEnoughTracksError("No playable tracks were collected.")
    if len(contributing) < 2:
        raise NotEnoughTracksError(
            "At least two players need playable tracks to start a game."
        )

    quotas = allocate_quotas(
        {p: len(pool) for p, pool in pools.items()}, total_rounds, rng
    )

    selected: list[Track] = []
    for player_id in sorted(pools):
        selected.extend(rng.sample(pools[player_id], quotas[player_id]))

    rng.shuffle(selected)
    selected = spread_owners(selected)

    return [
        RoundPlan(round_number=idx, track=track)
        for idx, track in enumerate(selected, start=1)
    ]
