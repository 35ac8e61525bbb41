"""Discussion and leaderboard data models."""

from .models import (
    Comment,
    Dimension,
    Discussion,
    DiscussionStatus,
    ModelAggregate,
    Participant,
    Round,
    Vote,
    utc_now_iso,
)

__all__ = [
    "Comment",
    "Dimension",
    "Discussion",
    "DiscussionStatus",
    "ModelAggregate",
    "Participant",
    "Round",
    "Vote",
    "utc_now_iso",
]
