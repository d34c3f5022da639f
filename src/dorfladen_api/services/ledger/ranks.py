"""Customer ranks derived from lifetime points."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Rank:
    name: str
    emoji: str
    min_points: int


RANKS: tuple[Rank, ...] = (
    Rank("Dorfladen-Neuling", "🥔", 0),
    Rank("Stammkunde von Eggenthal", "🥖", 500),
    Rank("Schnäppchenjäger", "🧅", 3000),
    Rank("Regalräuber", "🧀", 5000),
    Rank("Eggenthal-Legende", "🐄", 10000),
)


def rank_for_points(total_points: int) -> Rank:
    current = RANKS[0]
    for rank in RANKS:
        if total_points >= rank.min_points:
            current = rank
    return current


def next_rank(total_points: int) -> Rank | None:
    for rank in RANKS:
        if rank.min_points > total_points:
            return rank
    return None


def points_to_next_rank(total_points: int) -> int | None:
    """Points still needed for the next rank, or ``None`` at the top."""

    upcoming = next_rank(total_points)
    if upcoming is None:
        return None
    return upcoming.min_points - total_points


__all__ = ["RANKS", "Rank", "next_rank", "points_to_next_rank", "rank_for_points"]
