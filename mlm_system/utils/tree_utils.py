# mlm_system/utils/tree_utils.py
"""
Referral forest flattening for the structure view.

The view renders one row per visible member. Rows come from a pre-order
walk of the forest that only descends into expanded members; the rank
filter hides rows but never stops the walk, search never hides rows.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set
import logging

from mlm_system.config.ranks import RankRange
from mlm_system.utils.chain_walker import ChainWalker

logger = logging.getLogger(__name__)


@dataclass
class TreeNode:
    """One visible row of the flattened forest."""
    id: str
    member: object
    depth: int
    hasChildren: bool
    childrenCount: int
    isExpanded: bool
    parentId: Optional[str]
    path: List[str] = field(default_factory=list)  # root -> this member
    # Position among siblings, drives connector lines
    isFirstSibling: bool = True
    isLastSibling: bool = True
    isOnlySibling: bool = True
    totalSiblings: int = 1
    siblingIndex: int = 0


def get_roots(members: Iterable) -> List:
    """Members without a sponsor, admins excluded, in source order."""
    return [member for member in members if not member.sponsorID and not member.isAdmin]


def sort_by_registration(members: Iterable) -> List:
    """Oldest first, members without a timestamp last."""
    return sorted(members, key=lambda member: (member.registeredAt is None, member.registeredAt or 0))


def matches_search(member, query: str) -> bool:
    """
    Case-insensitive match on full name, email, id and phone.

    An empty query matches everything.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return True

    full_name = f"{member.firstname or ''} {member.surname or ''}".lower()
    haystacks = (
        full_name,
        (member.email or "").lower(),
        (member.memberID or "").lower(),
        (member.phone or "").lower(),
    )
    return any(needle in value for value in haystacks)


def search_members(members: Iterable, query: str) -> List[str]:
    """
    IDs of members matching a search query, admins excluded.

    Used to navigate the view, not to filter it.
    """
    if not (query or "").strip():
        return []
    return [
        member.memberID for member in members
        if not member.isAdmin and matches_search(member, query)
    ]


def flatten_tree(
        members: List,
        expanded_ids: Set[str],
        ranks: Dict[str, int],
        search_query: Optional[str] = None,
        rank_range: Optional[RankRange] = None
) -> List[TreeNode]:
    """
    Flatten the visible part of the forest into display rows.

    Args:
        members: Full member snapshot
        expanded_ids: Members whose recruits are shown
        ranks: Precomputed rank map (RankService.calculateRanks)
        search_query: Highlight only; never hides rows
        rank_range: Inclusive rank filter; hides rows, keeps walking

    Returns:
        Rows in depth-first pre-order, roots in source order and recruits
        in team order
    """
    by_id = {member.memberID: member for member in members}
    rows: List[TreeNode] = []

    if search_query:
        logger.debug(f"Flattening with search '{search_query}' (highlight only)")

    def visible(member_id: str) -> bool:
        if rank_range is None:
            return True
        return rank_range.contains(ranks.get(member_id, 0))

    roots = get_roots(members)
    # frame: (member_id, depth, parent_id, ancestor path, sibling index, sibling count)
    stack = [
        (root.memberID, 0, None, [], index, len(roots))
        for index, root in reversed(list(enumerate(roots)))
    ]

    while stack:
        member_id, depth, parent_id, path, sibling_index, total_siblings = stack.pop()

        member = by_id.get(member_id)
        if member is None or member.isAdmin:
            continue

        if member_id in path:
            logger.error(f"Cycle detected at member {member_id}, subtree skipped")
            continue

        team = list(member.team or ())
        is_expanded = member_id in expanded_ids
        node_path = path + [member_id]

        if visible(member_id):
            rows.append(TreeNode(
                id=member_id,
                member=member,
                depth=depth,
                hasChildren=bool(team),
                childrenCount=len(team),
                isExpanded=is_expanded,
                parentId=parent_id,
                path=node_path,
                isFirstSibling=sibling_index == 0,
                isLastSibling=sibling_index == total_siblings - 1,
                isOnlySibling=total_siblings == 1,
                totalSiblings=total_siblings,
                siblingIndex=sibling_index,
            ))

        if is_expanded and team:
            for index in reversed(range(len(team))):
                stack.append((team[index], depth + 1, member_id, node_path, index, len(team)))

    return rows


def find_path_to_member(member_id: str, members: Iterable) -> List[str]:
    """
    IDs from the root down to member_id.

    Raises:
        OrphanedMemberError: a sponsor in the chain does not exist
        SponsorCycleError: the sponsor chain loops
    """
    return ChainWalker(members).find_path(member_id)


def expand_path_to_member(member_id: str, members: Iterable, current_expanded: Set[str]) -> Set[str]:
    """
    Expanded set that makes member_id visible.

    All ancestors are added; the member's own subtree stays as it was.
    The input set is not modified.
    """
    path = find_path_to_member(member_id, members)
    expanded = set(current_expanded)
    expanded.update(path[:-1])
    return expanded


def default_expanded_ids(members: List, root_limit: int = 10, child_limit: int = 5) -> Set[str]:
    """Initial expanded set: the first roots and their first recruits."""
    expanded = set()
    for root in get_roots(members)[:root_limit]:
        expanded.add(root.memberID)
        expanded.update(list(root.team or ())[:child_limit])
    return expanded


def count_visible_nodes(rows: List[TreeNode], team_sizes: Optional[Dict[str, int]] = None) -> Dict[str, int]:
    """
    Row statistics for the view header.

    The collapsed count is approximate: a collapsed row adds its whole
    downline size, admins under it included, and rows hidden by the rank
    filter add nothing.

    Args:
        rows: Output of flatten_tree
        team_sizes: RankService.calculateTeamSizes(); without it hidden
            members under collapsed rows are not counted

    Returns:
        {"total", "visible", "collapsed"}
    """
    collapsed = 0
    if team_sizes is not None:
        collapsed = sum(
            team_sizes.get(row.id, 0) for row in rows
            if row.hasChildren and not row.isExpanded
        )

    return {
        "total": len(rows) + collapsed,
        "visible": len(rows),
        "collapsed": collapsed,
    }
