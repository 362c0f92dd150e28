# mlm_system/services/rank_service.py
"""
Rank calculation service for the referral forest.

Rank is the depth of a member's downline: 0 without recruits, otherwise
1 + the highest rank among direct recruits. Team size is the number of
members below. Both are computed once per member snapshot in a single
post-order pass and shared through maps; renderers read the maps, they
never recurse on their own.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
import logging

from mlm_system.config.ranks import rank_matches_bucket

logger = logging.getLogger(__name__)

_END = object()


@dataclass(frozen=True)
class RankMismatch:
    """Stored rank differs from the recalculated one. Both are kept."""
    memberID: str
    storedRank: int
    calculatedRank: int


class RankService:
    """Service for deriving ranks and team sizes from a member snapshot."""

    def __init__(self, members: Iterable):
        self.members: Dict[str, object] = {member.memberID: member for member in members}
        self._ranks: Optional[Dict[str, int]] = None
        self._teamSizes: Optional[Dict[str, int]] = None

    def _team(self, memberId: str) -> Tuple[str, ...]:
        member = self.members.get(memberId)
        return tuple(member.team or ()) if member is not None else ()

    def _calculate(self) -> None:
        """
        Fill rank and team size maps in one iterative post-order walk.

        Recruits that are missing from the snapshot count as rank 0 and add
        nothing to team size. A recruit that is already on the current path
        (sponsor cycle) is treated the same way and logged.
        """
        ranks: Dict[str, int] = {}
        sizes: Dict[str, int] = {}

        for startId in self.members:
            if startId in ranks:
                continue

            onPath = {startId}
            # frame: [memberId, recruits iterator, best recruit rank, team size]
            stack = [[startId, iter(self._team(startId)), -1, 0]]

            while stack:
                frame = stack[-1]
                memberId = frame[0]
                recruitId = next(frame[1], _END)

                if recruitId is _END:
                    stack.pop()
                    onPath.discard(memberId)
                    ranks[memberId] = frame[2] + 1 if self._team(memberId) else 0
                    sizes[memberId] = frame[3]
                    if stack:
                        parent = stack[-1]
                        parent[2] = max(parent[2], ranks[memberId])
                        parent[3] += 1 + sizes[memberId]
                    continue

                if recruitId in onPath:
                    logger.warning(f"Cycle detected: {recruitId} is in its own downline (via {memberId})")
                    frame[2] = max(frame[2], 0)
                    continue

                if recruitId in ranks:
                    frame[2] = max(frame[2], ranks[recruitId])
                    frame[3] += 1 + sizes[recruitId]
                    continue

                if recruitId not in self.members:
                    logger.warning(f"Recruit {recruitId} of member {memberId} not found")
                    frame[2] = max(frame[2], 0)
                    continue

                onPath.add(recruitId)
                stack.append([recruitId, iter(self._team(recruitId)), -1, 0])

        self._ranks = ranks
        self._teamSizes = sizes
        logger.debug(f"Calculated ranks for {len(ranks)} members")

    # ═══════════════════════════════════════════════════════════════════════
    # MAPS
    # ═══════════════════════════════════════════════════════════════════════

    def calculateRanks(self) -> Dict[str, int]:
        """
        Rank of every member of the snapshot.

        Returns:
            Map memberID -> rank (computed on first call, then reused)
        """
        if self._ranks is None:
            self._calculate()
        return self._ranks

    def calculateTeamSizes(self) -> Dict[str, int]:
        """
        Total downline size of every member of the snapshot.

        Returns:
            Map memberID -> number of descendants
        """
        if self._teamSizes is None:
            self._calculate()
        return self._teamSizes

    def getRank(self, memberId: str) -> int:
        return self.calculateRanks().get(memberId, 0)

    def getTeamSize(self, memberId: str) -> int:
        return self.calculateTeamSizes().get(memberId, 0)

    @property
    def maxRank(self) -> int:
        ranks = [rank for memberId, rank in self.calculateRanks().items()
                 if not self.members[memberId].isAdmin]
        return max(ranks, default=0)

    # ═══════════════════════════════════════════════════════════════════════
    # CHECKS AND FILTERS
    # ═══════════════════════════════════════════════════════════════════════

    def checkRank(self, memberId: str) -> Optional[RankMismatch]:
        """
        Compare stored and calculated rank of one member.

        Returns:
            RankMismatch if they differ, None otherwise
        """
        member = self.members.get(memberId)
        if member is None or member.isAdmin:
            return None

        storedRank = member.level or 0
        calculatedRank = self.getRank(memberId)

        if storedRank == calculatedRank:
            return None

        return RankMismatch(memberID=memberId, storedRank=storedRank, calculatedRank=calculatedRank)

    def findRankMismatches(self) -> List[RankMismatch]:
        """
        Members whose stored rank is out of date.

        Nothing is corrected here; see scripts/recalculate_ranks.py.
        """
        mismatches = [
            mismatch for mismatch in map(self.checkRank, self.members)
            if mismatch is not None
        ]

        if mismatches:
            logger.warning(f"{len(mismatches)} members have a stored rank different from calculated")

        return mismatches

    def filterByRank(self, bucket: str) -> List:
        """
        Members whose rank falls into an admin list bucket.

        Args:
            bucket: "", "0".."10", "10-20".."90-100" or "100+"

        Returns:
            Non-admin members in snapshot order
        """
        members = [member for member in self.members.values() if not member.isAdmin]
        if not bucket:
            return members

        filtered = [
            member for member in members
            if rank_matches_bucket(self.getRank(member.memberID), bucket)
        ]

        logger.info(f"Filtered {len(members)} members to {len(filtered)} by rank '{bucket}'")
        return filtered
