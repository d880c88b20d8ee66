"""Impostor selection for a round."""

from __future__ import annotations

import random
from collections.abc import Sequence

from .models import Role


def shuffled(items: Sequence[str], rng: random.Random) -> list[str]:
    """Fisher-Yates shuffle returning a new list; every permutation is equally likely."""
    result = list(items)
    for index in range(len(result) - 1, 0, -1):
        swap_index = rng.randint(0, index)
        result[index], result[swap_index] = result[swap_index], result[index]
    return result


def assign_roles(player_ids: Sequence[str], impostor_count: int, rng: random.Random | None = None) -> dict[str, Role]:
    """Map every id to a role, choosing exactly ``impostor_count`` impostors uniformly at random.

    ``impostor_count`` must already be clamped to ``1 <= k <= len(player_ids) // 2``.
    Passing a seeded ``rng`` makes the assignment reproducible.
    """
    if len(set(player_ids)) != len(player_ids):
        raise ValueError("player ids must be unique")
    if not 1 <= impostor_count <= len(player_ids) // 2:
        raise ValueError(f"impostor count {impostor_count} out of range for {len(player_ids)} players")

    order = shuffled(player_ids, rng if rng is not None else random.Random())
    impostors = set(order[:impostor_count])
    return {player_id: Role.IMPOSTOR if player_id in impostors else Role.INNOCENT for player_id in player_ids}
