# mlm_system/services/tree_service.py
"""
Structure view state over one member snapshot.

Holds the expanded set, search and rank filter; ranks and team sizes are
computed once per snapshot by RankService and reused for every flatten.
Loading a new snapshot (reload) drops all derived state.
"""
from typing import Dict, Iterable, List, Optional, Set
import logging

from mlm_system.config.ranks import RankRange, rank_range_for_preset
from mlm_system.services.rank_service import RankService
from mlm_system.utils.chain_walker import ReferralChainError
from mlm_system.utils.tree_utils import (
    TreeNode,
    count_visible_nodes,
    default_expanded_ids,
    expand_path_to_member,
    flatten_tree,
    search_members,
)

logger = logging.getLogger(__name__)


class TreeViewState:
    """Expandable, filterable view of the referral forest."""

    def __init__(self, members: Iterable, expandedIds: Optional[Set[str]] = None):
        self.searchQuery = ""
        self.rankRange: Optional[RankRange] = None
        self.highlightedId: Optional[str] = None
        self.searchResults: List[str] = []
        self.currentResultIndex = 0
        self._load(members, expandedIds)

    def _load(self, members: Iterable, expandedIds: Optional[Set[str]]) -> None:
        self.members = list(members)
        self.rankService = RankService(self.members)
        self.ranks = self.rankService.calculateRanks()
        if expandedIds is None:
            expandedIds = default_expanded_ids(self.members)
        self.expandedIds = set(expandedIds)
        self._nodes: Optional[List[TreeNode]] = None

    def reload(self, members: Iterable) -> None:
        """
        Replace the snapshot after a refetch.

        Expanded members that still exist stay expanded; search is rerun.
        """
        members = list(members)
        known = {member.memberID for member in members}
        self._load(members, {memberId for memberId in self.expandedIds if memberId in known})
        if self.searchQuery:
            self.setSearch(self.searchQuery)
        logger.info(f"Tree view reloaded with {len(self.members)} members")

    # ═══════════════════════════════════════════════════════════════════════
    # ROWS
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def nodes(self) -> List[TreeNode]:
        """Visible rows; recomputed only after expand/collapse/filter changes."""
        if self._nodes is None:
            self._nodes = flatten_tree(
                self.members,
                self.expandedIds,
                self.ranks,
                self.searchQuery,
                self.rankRange
            )
        return self._nodes

    def _invalidate(self) -> None:
        self._nodes = None

    def stats(self) -> Dict[str, int]:
        """Header numbers of the structure view."""
        counts = count_visible_nodes(self.nodes, self.rankService.calculateTeamSizes())
        return {
            "total": sum(1 for member in self.members if not member.isAdmin),
            "visible": counts["visible"],
            "collapsed": counts["collapsed"],
            "expanded": len(self.expandedIds),
            "maxRank": self.rankService.maxRank,
        }

    # ═══════════════════════════════════════════════════════════════════════
    # EXPAND / COLLAPSE
    # ═══════════════════════════════════════════════════════════════════════

    def toggle(self, memberId: str) -> bool:
        """
        Flip one member between expanded and collapsed.

        Returns:
            True if the member is expanded afterwards
        """
        if memberId in self.expandedIds:
            self.collapse(memberId)
            return False
        self.expand(memberId)
        return True

    def expand(self, memberId: str) -> None:
        if memberId not in self.expandedIds:
            self.expandedIds.add(memberId)
            self._invalidate()

    def collapse(self, memberId: str) -> None:
        if memberId in self.expandedIds:
            self.expandedIds.discard(memberId)
            self._invalidate()

    def expandAll(self) -> None:
        self.expandedIds = {member.memberID for member in self.members if member.team}
        self._invalidate()

    def collapseAll(self) -> None:
        self.expandedIds = set()
        self._invalidate()

    def reveal(self, memberId: str) -> bool:
        """
        Expand every ancestor of a member and highlight it.

        Returns:
            False if the member's sponsor chain is broken
        """
        try:
            self.expandedIds = expand_path_to_member(memberId, self.members, self.expandedIds)
        except ReferralChainError as e:
            logger.warning(f"Cannot reveal member {memberId}: {e}")
            return False

        self.highlightedId = memberId
        self._invalidate()
        return True

    # ═══════════════════════════════════════════════════════════════════════
    # FILTERS AND SEARCH
    # ═══════════════════════════════════════════════════════════════════════

    def setRankRange(self, rankRange: Optional[RankRange]) -> None:
        self.rankRange = rankRange
        self._invalidate()

    def setRankPreset(self, preset: str) -> None:
        """Apply a quick filter: all, high, medium or low."""
        self.setRankRange(rank_range_for_preset(preset))

    def setSearch(self, query: str) -> List[str]:
        """
        Search members and jump to the first match.

        Search never hides rows, it only drives navigation.

        Returns:
            IDs of all matching members
        """
        self.searchQuery = query or ""
        self.searchResults = search_members(self.members, self.searchQuery)
        self.currentResultIndex = 0

        if self.searchResults:
            self.reveal(self.searchResults[0])
        else:
            self.highlightedId = None

        return self.searchResults

    def _moveResult(self, step: int) -> Optional[str]:
        if not self.searchResults:
            return None
        self.currentResultIndex = (self.currentResultIndex + step) % len(self.searchResults)
        memberId = self.searchResults[self.currentResultIndex]
        self.reveal(memberId)
        return memberId

    def nextResult(self) -> Optional[str]:
        return self._moveResult(1)

    def previousResult(self) -> Optional[str]:
        return self._moveResult(-1)
