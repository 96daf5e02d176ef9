"""
Dense-rank leaderboard.

Ranks are computed on every read from the current point totals and never
stored. Equal totals share a rank and the next lower total gets the next
integer, so a board reads 1, 1, 2, 2, 2, 3 rather than 1, 1, 3, 3, 3, 6.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

from sevadar.db import DbClient, ProfileRecord

LEADERBOARD_LIMIT = 100
HOME_WIDGET_LIMIT = 10


@dataclass
class LeaderboardEntry:
    user_id: str
    points: int
    display_name: str = ""
    village: str = ""
    avatar_url: Optional[str] = None
    rank: int = 0

    @classmethod
    def from_profile(cls, profile: ProfileRecord) -> "LeaderboardEntry":
        return cls(
            user_id=profile.id,
            points=profile.points,
            display_name=profile.full_name,
            village=profile.village,
            avatar_url=profile.avatar_url,
        )

    def as_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "village": self.village,
            "avatar_url": self.avatar_url,
            "points": self.points,
            "rank": self.rank,
        }


def dense_rank(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """
    Annotates a points-descending sequence with dense ranks.

    The input must already be ordered by points, highest first; no sorting
    happens here. Returns copies, the inputs are left untouched.
    """
    ranked: List[LeaderboardEntry] = []
    rank = 0
    previous_points = None
    for entry in entries:
        if previous_points is None or entry.points < previous_points:
            rank += 1
        previous_points = entry.points
        ranked.append(replace(entry, rank=rank))
    return ranked


def get_leaderboard(db: DbClient, limit: int = LEADERBOARD_LIMIT) -> List[LeaderboardEntry]:
    """Top non-admin profiles by points, ranked."""
    profiles = db.top_profiles(limit=limit)
    return dense_rank(LeaderboardEntry.from_profile(p) for p in profiles)


def rank_of(db: DbClient, profile: ProfileRecord) -> Optional[int]:
    """Dense rank of `profile` among all non-admins, or None for admins."""
    if profile.is_admin:
        return None
    return db.count_distinct_points_above(profile.points) + 1
