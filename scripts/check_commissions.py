#!/usr/bin/env python3
"""
Check commissions for products.

Displays the guest and partner commission breakdown of each product,
validates its price ladder and, with --member, the payouts of a sale.

Usage:
    python scripts/check_commissions.py                 # All active products
    python scripts/check_commissions.py --sku H2-1
    python scripts/check_commissions.py --sku H2-1 --member 007 [--partner]
"""

import sys
import os
import argparse
import asyncio

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_db_session_ctx
from services.member_source import DatabaseMemberSource
from mlm_system.services.commission_service import CommissionService
from mlm_system.utils.chain_walker import ChainWalker

import logging

logging.basicConfig(level=logging.WARNING)


async def load_snapshot(include_archived):
    with get_db_session_ctx() as session:
        source = DatabaseMemberSource(session)
        products = await source.fetch_products(includeArchived=include_archived)
        members = await source.fetch_members()
    return products, members


def print_breakdown(breakdown):
    balanced_marker = "✅" if breakdown.isBalanced else "⚠️"
    print(
        f"  {breakdown.path.value:8} "
        + " ".join(f"{level}={amount:>9.2f}" for level, amount in breakdown.asDict().items())
        + f"  company={breakdown.company_amount:>9.2f}"
        f"  base={breakdown.base_price:>9.2f} {balanced_marker}  [{breakdown.source.value}]"
    )


def check_product(service, product):
    prices = service.getProductPrices(product)

    print(f"\n{product.name or '-'} (SKU: {product.sku or '-'})")
    print(f"  Retail: ${prices['retail']}  Partner: ${prices['partner']}")

    print_breakdown(service.computeCommissions(product, isPartnerPurchase=False))
    print_breakdown(service.computeCommissions(product, isPartnerPurchase=True))

    income = service.calculateIncome(product)
    print(f"  Income potential: ${income['total']}")

    errors = service.validatePriceLadder(product)
    if errors:
        for error in errors:
            print(f"  ❌ {error}")
    else:
        print("  ✅ Price ladder valid")

    return not errors


def print_order(service, product, member_id, is_partner):
    order = service.calculateOrder(product, is_partner, member_id)

    print("\n" + "=" * 80)
    print("ORDER PAYOUTS")
    print("=" * 80)
    print(f"\n{'Partner' if is_partner else 'Guest'} sale of {product.sku} by {member_id}")
    print(f"Price: ${order.price}")

    if not order.payouts:
        print("\n❌ No payouts for this sale")
        return

    print("-" * 80)
    for payout in order.payouts:
        print(f"{payout.level}: {payout.memberID:12} ${payout.amount:>9.2f}")
    print("-" * 80)
    print(f"Total paid: ${order.totalPaid}")


def main():
    """Check commissions."""
    parser = argparse.ArgumentParser(description='Check product commissions')
    parser.add_argument('--sku', help='Only check this SKU')
    parser.add_argument('--member', help='Seller (guest sale) or buyer (partner sale) to compute payouts for')
    parser.add_argument('--partner', action='store_true', help='Partner purchase instead of guest sale')
    parser.add_argument('--archived', action='store_true', help='Include archived products')
    args = parser.parse_args()

    Config.initialize_from_env()
    logging.getLogger().setLevel(Config.get(Config.LOG_LEVEL, "WARNING"))

    products, members = asyncio.run(load_snapshot(args.archived))
    if args.sku:
        products = [product for product in products if product.sku == args.sku]

    if not products:
        print("❌ No products found")
        return

    service = CommissionService(ChainWalker(members), defaultSku=Config.get(Config.DEFAULT_SKU))

    print("\n" + "=" * 80)
    print("COMMISSION CHECK")
    print("=" * 80)

    invalid = [product.sku for product in products if not check_product(service, product)]

    print("\n" + "=" * 80)
    if invalid:
        print(f"\n⚠️  {len(invalid)} of {len(products)} product(s) have ladder problems: {', '.join(map(str, invalid))}")
    else:
        print(f"\n✅ All {len(products)} product(s) valid")

    if args.member:
        print_order(service, products[0], args.member, args.partner)

    print("\n" + "=" * 80 + "\n")


if __name__ == "__main__":
    main()
