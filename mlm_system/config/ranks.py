"""
Rank (downline depth) filter configuration.

Presets are the quick filters of the structure view; buckets are the
admin list filters ("0".."10" exact, "10-20".."90-100" with exclusive
lower bound, "100+").
"""
from typing import Dict, NamedTuple, Optional
import logging

logger = logging.getLogger(__name__)


class RankRange(NamedTuple):
    """Inclusive rank range."""
    min: int
    max: int

    def contains(self, rank: int) -> bool:
        return self.min <= rank <= self.max


RANK_PRESETS: Dict[str, Optional[RankRange]] = {
    "all": None,
    "high": RankRange(20, 999),
    "medium": RankRange(5, 19),
    "low": RankRange(1, 4),
}

EXACT_RANK_BUCKET_MAX = 10
OPEN_BUCKET_FLOOR = 100


def rank_range_for_preset(preset: str) -> Optional[RankRange]:
    """
    Translate a structure-view preset into a rank range.

    Args:
        preset: all, high, medium or low

    Returns:
        RankRange, or None for "all" and unknown presets
    """
    if preset not in RANK_PRESETS:
        logger.warning(f"Unknown rank preset '{preset}', showing all ranks")
    return RANK_PRESETS.get(preset)


def rank_matches_bucket(rank: int, bucket: str) -> bool:
    """
    Check a rank against an admin list bucket.

    Empty or unknown buckets match everything.
    """
    bucket = (bucket or "").strip()
    if not bucket:
        return True

    if bucket.isdigit() and int(bucket) <= EXACT_RANK_BUCKET_MAX:
        return rank == int(bucket)

    if bucket.endswith("+") and bucket[:-1].isdigit():
        return rank > int(bucket[:-1])

    low, sep, high = bucket.partition("-")
    if sep and low.isdigit() and high.isdigit():
        return int(low) < rank <= int(high)

    logger.warning(f"Unknown rank bucket '{bucket}', not filtering")
    return True
