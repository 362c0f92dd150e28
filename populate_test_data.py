# populate_test_data.py
"""
Test database population script.
Creates a realistic referral forest and product catalog for testing.

Usage:
    python populate_test_data.py [--yes] [--seed N]

WARNING: This will DROP and recreate the database!
"""

import sys
import os
import argparse
import random
from decimal import Decimal

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import Config
from core.db import get_db_session_ctx, setup_database, drop_all_tables
from models.member import Member
from models.product import Product
from services.member_registry import MemberRegistry
from mlm_system.services.rank_service import RankService
from mlm_system.utils.chain_walker import ChainWalker
from mlm_system.records import MemberRecord

import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ================================================================================
# CONFIGURATION
# ================================================================================

TEST_CONFIG = {
    "roots": [
        {"firstname": "Анна", "surname": "Корнева", "email": "anna@test.com", "phone": "+79990000001"},
        {"firstname": "Dennis", "surname": "Schmidt", "email": "dennis@test.com", "phone": "+49150000002"},
    ],
    "admin": {"firstname": "Admin", "surname": "Hydrolab", "email": "admin@test.com"},

    # IDs handed out manually, never by the sequence
    "reserved_ids": [7, 77, 100],

    "member_count": 40,
    "tree_depth_max": 6,
    "branches_per_member": [0, 1, 1, 2, 3],

    "products": [
        {
            "sku": "H2-1", "name": "Hydrogen Generator H2-1",
            "prices": ["6500", "4900", "4000", "3500", "3300"],
        },
        {
            "sku": "H2-3", "name": "Hydrogen Station H2-3",
            "prices": ["18000", "13500", "11700", "10500", "9900"],
        },
        # Legacy product: no ladder, commission table only
        {
            "sku": "H2-1", "name": "Hydrogen Generator H2-1 (2023)",
            "prices": [None, None, None, None, None],
            "legacyCommission": {"d0": 1600, "d1": 900, "d2": 500, "d3": 200},
        },
    ],
}


# ================================================================================
# MAIN SCRIPT
# ================================================================================

def main():
    """Main population script."""
    parser = argparse.ArgumentParser(description='Populate test database')
    parser.add_argument('--yes', action='store_true', help='Do not ask for confirmation')
    parser.add_argument('--seed', type=int, help='Random seed for a reproducible forest')
    args = parser.parse_args()

    print("\n" + "=" * 80)
    print("🚨 TEST DATABASE POPULATION SCRIPT")
    print("=" * 80)
    print("\n⚠️  WARNING: This will DROP and recreate the entire database!")
    print("⚠️  All existing data will be LOST!")
    print("\n")

    if not args.yes:
        confirm = input("Type 'YES' to continue: ")
        if confirm != "YES":
            print("❌ Aborted.")
            return

    if args.seed is not None:
        random.seed(args.seed)

    print("\n🔄 Starting database population...\n")

    # STEP 1: Initialize config
    print("📋 Step 1: Loading configuration...")
    Config.initialize_from_env()
    print("✓ Configuration loaded\n")

    # STEP 2: Drop and recreate database
    print("💣 Step 2: Dropping existing database...")
    drop_all_tables()
    print("✓ Database dropped\n")

    print("🗂️  Step 3: Creating tables...")
    setup_database()
    print("✓ Tables created\n")

    # STEP 4: Products
    print("📦 Step 4: Creating products...")
    product_count = create_products()
    print(f"✓ Created {product_count} products\n")

    # STEP 5: Members
    print("👥 Step 5: Creating referral forest...")
    member_count = create_forest()
    print(f"✓ Created {member_count} members\n")

    # STEP 6: Validate chain integrity and store ranks
    print("🔍 Step 6: Validating chains and storing ranks...")
    validate_and_rank()
    print("✓ Chain validation passed\n")

    print("\n" + "=" * 80)
    print("✅ DATABASE POPULATION COMPLETED!")
    print("=" * 80)
    print("\nView the structure with: python scripts/show_tree.py\n")


# ================================================================================
# STEP IMPLEMENTATIONS
# ================================================================================

def create_products():
    """Create ladder and legacy products."""
    with get_db_session_ctx() as session:
        for config in TEST_CONFIG["products"]:
            prices = [Decimal(price) if price else None for price in config["prices"]]
            session.add(Product(
                sku=config["sku"],
                name=config["name"],
                priceRetail=prices[0],
                price1=prices[1],
                price2=prices[2],
                price3=prices[3],
                price4=prices[4],
                legacyCommission=config.get("legacyCommission"),
            ))
        return len(TEST_CONFIG["products"])


def create_forest():
    """Create roots, an admin and random downlines under the roots."""
    with get_db_session_ctx() as session:
        registry = MemberRegistry(session, reservedIds=TEST_CONFIG["reserved_ids"])

        admin = TEST_CONFIG["admin"]
        registry.register_member(isAdmin=True, **admin)

        current_level = [registry.register_member(**root) for root in TEST_CONFIG["roots"]]
        created = len(current_level) + 1

        for depth in range(1, TEST_CONFIG["tree_depth_max"] + 1):
            next_level = []

            for parent in current_level:
                for _ in range(random.choice(TEST_CONFIG["branches_per_member"])):
                    if created >= TEST_CONFIG["member_count"]:
                        break

                    number = created + 1
                    member = registry.register_member(
                        sponsorId=parent.memberID,
                        firstname=f"Partner{number}",
                        surname=f"Level{depth}",
                        email=f"partner{number}@test.com",
                        phone=f"+7999{number:07d}",
                    )
                    member.balance = Decimal(random.choice([0, 0, 150, 900, 2500]))
                    next_level.append(member)
                    created += 1

            if not next_level or created >= TEST_CONFIG["member_count"]:
                break

            current_level = next_level

        logger.info(f"✓ Created {created} members")
        return created


def validate_and_rank():
    """Validate that all chains reach a root and store calculated ranks."""
    with get_db_session_ctx() as session:
        members = [MemberRecord.from_model(member) for member in session.query(Member).all()]

        integrity = ChainWalker(members).validate_forest()
        if integrity["orphans"] or integrity["cycles"]:
            raise Exception(f"Forest integrity check failed: {integrity}")

        ranks = RankService(members).calculateRanks()
        MemberRegistry(session).apply_ranks(ranks)

        logger.info(f"✓ All chains valid, max rank {max(ranks.values(), default=0)}")


if __name__ == "__main__":
    main()
