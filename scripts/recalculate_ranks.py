#!/usr/bin/env python3
"""
Recalculate member ranks and store them.

Stored levels drift from the real downline depth whenever the structure
changes. This script lists the mismatches and, with --apply, writes the
calculated ranks back.

Usage:
    python scripts/recalculate_ranks.py           # Dry run
    python scripts/recalculate_ranks.py --apply
"""

import sys
import os
import argparse
import asyncio

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_db_session_ctx
from services.member_registry import MemberRegistry
from services.member_source import DatabaseMemberSource
from mlm_system.services.rank_service import RankService

import logging

logging.basicConfig(level=logging.WARNING)


def main():
    """Recalculate ranks."""
    parser = argparse.ArgumentParser(description='Recalculate stored member ranks')
    parser.add_argument('--apply', action='store_true', help='Write calculated ranks to the database')
    args = parser.parse_args()

    Config.initialize_from_env()
    logging.getLogger().setLevel(Config.get(Config.LOG_LEVEL, "WARNING"))

    with get_db_session_ctx() as session:
        members = asyncio.run(DatabaseMemberSource(session).fetch_members())
        rank_service = RankService(members)
        mismatches = rank_service.findRankMismatches()

        print("\n" + "=" * 80)
        print("RANK RECALCULATION")
        print("=" * 80 + "\n")
        print(f"Members checked: {len(members)}")
        print(f"Out of date:     {len(mismatches)}\n")

        for mismatch in mismatches:
            print(f"  {mismatch.memberID:12} stored {mismatch.storedRank:3} -> calculated {mismatch.calculatedRank:3}")

        if not mismatches:
            print("✅ All stored ranks are up to date")
        elif args.apply:
            updated = MemberRegistry(session).apply_ranks(rank_service.calculateRanks())
            print(f"\n✅ Updated {updated} member(s)")
        else:
            print("\nDry run, use --apply to store calculated ranks")

        print("\n" + "=" * 80 + "\n")


if __name__ == "__main__":
    main()
