#!/usr/bin/env python3
"""
Display the referral structure.

Shows the member forest with calculated ranks, team sizes and integrity
warnings.

Usage:
    python scripts/show_tree.py [--root-id MEMBER_ID] [--max-depth DEPTH]
                                [--preset all|high|medium|low] [--search TEXT]
                                [--rest ADMIN_ID] [--stats]
"""

import sys
import os
import argparse
import asyncio

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_db_session_ctx
from services.member_source import DatabaseMemberSource, RestMemberSource
from mlm_system.services.tree_service import TreeViewState
from mlm_system.utils.chain_walker import ChainWalker

import logging

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


async def load_members(rest_admin_id=None):
    """Fetch the member snapshot from the backend or the local database."""
    if rest_admin_id:
        async with RestMemberSource(adminUserId=rest_admin_id) as source:
            return await source.fetch_members()

    with get_db_session_ctx() as session:
        return await DatabaseMemberSource(session).fetch_members()


def print_tree(view, root_id=None, max_depth=None):
    """Print ASCII tree of the visible rows."""
    # is_last flag per depth of the current row's ancestors
    last_flags = []
    printing = root_id is None
    root_depth = 0

    print("\n" + "=" * 80)
    print("REFERRAL STRUCTURE")
    print("=" * 80)
    print("\nLegend:")
    print("  [rank] = Calculated rank (downline depth)")
    print("  (+N) = Members below a collapsed row")
    print("  ⚠️ = Stored rank differs from calculated")
    print("  🔎 = Search match")
    print("\n" + "=" * 80 + "\n")

    team_sizes = view.rankService.calculateTeamSizes()

    for row in view.nodes:
        if root_id is not None:
            if row.id == root_id:
                printing = True
                root_depth = row.depth
            elif printing and row.depth <= root_depth:
                break
        if not printing:
            continue

        depth = row.depth - root_depth
        if max_depth is not None and depth > max_depth:
            continue

        del last_flags[depth:]
        prefix = "".join("    " if is_last else "│   " for is_last in last_flags[1:])
        connector = "" if depth == 0 else ("└─ " if row.isLastSibling else "├─ ")
        last_flags.append(row.isLastSibling)

        member = row.member
        name = f"{member.firstname or ''} {member.surname or ''}".strip() or "-"
        collapsed = f" (+{team_sizes.get(row.id, 0)})" if row.hasChildren and not row.isExpanded else ""
        mismatch = "⚠️ " if view.rankService.checkRank(row.id) else ""
        match = "🔎 " if row.id in view.searchResults else ""

        print(
            f"{prefix}{connector}{match}{mismatch}{name} (ID:{row.id}) "
            f"[{view.ranks.get(row.id, 0)}]{collapsed}"
        )

    print("\n" + "=" * 80 + "\n")


def print_statistics(view):
    """Print structure statistics."""
    stats = view.stats()
    rank_service = view.rankService
    integrity = ChainWalker(view.members).validate_forest()

    print("\n" + "=" * 80)
    print("STRUCTURE STATISTICS")
    print("=" * 80 + "\n")

    print(f"Total members:  {stats['total']}")
    print(f"Visible rows:   {stats['visible']}")
    print(f"Collapsed:      {stats['collapsed']}")
    print(f"Max rank:       {stats['maxRank']}")

    print("\nMembers by rank:")
    for bucket in ("0", "1", "2", "3", "4", "5", "5-10", "10-20", "20+"):
        count = len(rank_service.filterByRank(bucket))
        if count:
            print(f"  {bucket:8} {count:4}")

    mismatches = rank_service.findRankMismatches()
    print(f"\nStored rank out of date: {len(mismatches)}")
    for mismatch in mismatches[:20]:
        print(f"  {mismatch.memberID}: stored {mismatch.storedRank}, calculated {mismatch.calculatedRank}")

    print(f"\nDangling sponsors: {len(integrity['orphans'])}")
    print(f"Sponsor cycles:    {len(integrity['cycles'])}")

    print("\n" + "=" * 80 + "\n")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Display referral structure')
    parser.add_argument('--root-id', help='Member ID to start from (default: whole forest)')
    parser.add_argument('--max-depth', type=int, help='Maximum depth to display')
    parser.add_argument('--preset', default='all', help='Rank filter: all, high, medium, low')
    parser.add_argument('--search', help='Highlight members matching text')
    parser.add_argument('--rest', metavar='ADMIN_ID',
                        help='Fetch members from the backend as this admin')
    parser.add_argument('--stats', action='store_true', help='Show statistics only')
    args = parser.parse_args()

    # Initialize config
    Config.initialize_from_env()
    Config.validate_critical_keys(include_rest=bool(args.rest))
    logging.getLogger().setLevel(Config.get(Config.LOG_LEVEL, "WARNING"))

    members = asyncio.run(load_members(args.rest))
    view = TreeViewState(members)
    view.expandAll()
    view.setRankPreset(args.preset)

    if args.search and not view.setSearch(args.search):
        print(f"❌ Nothing matches '{args.search}'")

    if args.root_id and view.rankService.members.get(args.root_id) is None:
        print(f"❌ Member {args.root_id} not found!")
        return

    if not args.stats:
        print_tree(view, args.root_id, args.max_depth)
    print_statistics(view)


if __name__ == "__main__":
    main()
