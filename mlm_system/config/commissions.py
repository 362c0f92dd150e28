"""
Commission plan constants.

Default tables exist only for products created before the price ladder
(legacy products); new products derive their commissions from prices.
"""
from decimal import Decimal
from enum import Enum
from typing import Dict


class PurchasePath(Enum):
    """Who buys: a guest at retail price or a partner at partner price."""
    GUEST = "guest"
    PARTNER = "partner"


class CommissionSource(Enum):
    """Which branch of the decision path produced a breakdown."""
    LADDER = "ladder"
    PRODUCT_TABLE = "product_table"
    LEGACY_TABLE = "legacy_table"
    SKU_DEFAULT = "sku_default"
    GLOBAL_DEFAULT = "global_default"


# Levels paid by the plan: L0 (seller) and three upline lines
COMMISSION_LEVELS = ("L0", "L1", "L2", "L3")

# SKU assumed when a product carries none
FALLBACK_SKU = "H2-1"

# Per-SKU commission tables, {d0, d1, d2, d3} = {L0, L1, L2, L3}
SKU_DEFAULT_COMMISSIONS: Dict[str, Dict[str, Decimal]] = {
    "H2-1": {"L0": Decimal("1600"), "L1": Decimal("900"), "L2": Decimal("500"), "L3": Decimal("200")},
    "H2-3": {"L0": Decimal("4500"), "L1": Decimal("1800"), "L2": Decimal("1200"), "L3": Decimal("600")},
}

# Used when the SKU is unknown
GLOBAL_DEFAULT_COMMISSIONS: Dict[str, Decimal] = SKU_DEFAULT_COMMISSIONS[FALLBACK_SKU]

# Per-SKU default prices for products without a ladder
SKU_DEFAULT_PRICES: Dict[str, Dict[str, Decimal]] = {
    "H2-1": {"retail": Decimal("6500"), "partner": Decimal("4900")},
    "H2-3": {"retail": Decimal("18000"), "partner": Decimal("13500")},
}

GLOBAL_DEFAULT_PRICES: Dict[str, Decimal] = SKU_DEFAULT_PRICES[FALLBACK_SKU]

# Reconciliation tolerance for ladder sums
RECONCILIATION_TOLERANCE = Decimal("0.01")
