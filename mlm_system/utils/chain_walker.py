# mlm_system/utils/chain_walker.py
"""
Safe referral chain walking over a member snapshot.
Prevents infinite loops and validates chain integrity.
"""
from typing import Callable, Dict, Iterable, List, Optional, Set
import logging

logger = logging.getLogger(__name__)


class ReferralChainError(Exception):
    """Referral forest integrity error."""

    def __init__(self, message: str, memberId: str, partialPath: Optional[List[str]] = None):
        super().__init__(message)
        self.memberId = memberId
        self.partialPath = partialPath or []


class OrphanedMemberError(ReferralChainError):
    """A sponsor reference points to a member that does not exist."""
    pass


class SponsorCycleError(ReferralChainError):
    """A member is (directly or indirectly) its own sponsor."""
    pass


class ChainWalker:
    """
    Safe utilities for walking sponsor chains of a member snapshot.
    Prevents infinite loops and validates chain integrity.
    """

    def __init__(self, members: Iterable):
        self.members: Dict[str, object] = {member.memberID: member for member in members}

    def get(self, memberId: str):
        return self.members.get(memberId)

    def walk_upline(
            self,
            startId: str,
            callback: Callable[[object, int], bool],
            max_depth: int = 50,
            strict: bool = False
    ) -> int:
        """
        Walk up the sponsor chain, calling callback for each sponsor.

        Args:
            startId: Starting member ID
            callback: Function(sponsor, level) -> continue_walking (bool)
            max_depth: Maximum number of sponsors to visit
            strict: Raise on dangling sponsor or cycle instead of stopping

        Returns:
            Number of sponsors processed

        Raises:
            OrphanedMemberError: strict and a sponsor is missing
            SponsorCycleError: strict and the chain loops
        """
        current = self.members.get(startId)
        if current is None:
            if strict:
                raise OrphanedMemberError(f"Member {startId} not found", startId)
            logger.warning(f"Member {startId} not found")
            return 0

        level = 1
        processed = 0
        visited = {startId}
        path = [startId]

        while current.sponsorID and level <= max_depth:
            sponsorId = current.sponsorID

            # Check for cycles
            if sponsorId in visited:
                message = f"Cycle detected at member {sponsorId} (walking up from {startId})"
                if strict:
                    raise SponsorCycleError(message, sponsorId, list(reversed(path)))
                logger.error(message)
                break

            sponsor = self.members.get(sponsorId)
            if sponsor is None:
                message = f"Sponsor not found: memberID={sponsorId} for member {current.memberID}"
                if strict:
                    raise OrphanedMemberError(message, current.memberID, list(reversed(path)))
                logger.warning(message)
                break

            visited.add(sponsorId)
            path.append(sponsorId)

            should_continue = callback(sponsor, level)
            processed += 1

            if not should_continue:
                break

            current = sponsor
            level += 1

        if level > max_depth and current.sponsorID:
            logger.debug(f"Max depth ({max_depth}) reached starting from member {startId}")

        return processed

    def get_upline_chain(self, memberId: str, max_depth: int = 50) -> List:
        """
        Get sponsors of a member, nearest first.

        Args:
            memberId: Starting member
            max_depth: Maximum number of sponsors

        Returns:
            List of members from direct sponsor towards the root
        """
        chain = []

        def collect(sponsor, level):
            chain.append(sponsor)
            return True

        self.walk_upline(memberId, collect, max_depth)
        return chain

    def find_path(self, memberId: str) -> List[str]:
        """
        Path of member IDs from the root down to memberId.

        Raises:
            OrphanedMemberError: memberId or one of its sponsors is missing
            SponsorCycleError: the sponsor chain loops
        """
        chain = []

        def collect(sponsor, level):
            chain.append(sponsor.memberID)
            return True

        self.walk_upline(memberId, collect, max_depth=len(self.members) + 1, strict=True)
        return list(reversed(chain)) + [memberId]

    def validate_forest(self) -> Dict[str, Set[str]]:
        """
        Find members whose chains do not reach a root.

        Returns:
            {"orphans": members with a dangling sponsor in their chain,
             "cycles": members whose chain loops}
        """
        orphans: Set[str] = set()
        cycles: Set[str] = set()

        for memberId in self.members:
            try:
                self.find_path(memberId)
            except OrphanedMemberError:
                orphans.add(memberId)
            except SponsorCycleError:
                cycles.add(memberId)

        if orphans:
            logger.warning(f"Found {len(orphans)} members with dangling sponsors: {sorted(orphans)}")
        if cycles:
            logger.error(f"Found {len(cycles)} members in sponsor cycles: {sorted(cycles)}")
        if not orphans and not cycles:
            logger.info("Referral forest is consistent")

        return {"orphans": orphans, "cycles": cycles}
