# mlm_system/services/commission_service.py
"""
Commission calculation service - price ladder to per-level commissions.

A product's ladder P0 (retail) >= P1 (partner) >= P2 >= P3 >= P_company
is decomposed into the amounts paid to the seller (L0) and three upline
lines (L1..L3):

    guest:   L0 = P0 - P1, L1 = P1 - P2, L2 = P2 - P3, L3 = P3 - P_company
    partner: L0 = 0,       L1..L3 as above

A deeper price that is missing or zero truncates the level to 0, it never
falls through to a default. Products with no ladder at all are legacy and
go through an explicit fallback chain, tagged with CommissionSource.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional
import logging

from mlm_system.config.commissions import (
    COMMISSION_LEVELS,
    FALLBACK_SKU,
    GLOBAL_DEFAULT_COMMISSIONS,
    GLOBAL_DEFAULT_PRICES,
    RECONCILIATION_TOLERANCE,
    SKU_DEFAULT_COMMISSIONS,
    SKU_DEFAULT_PRICES,
    CommissionSource,
    PurchasePath,
)
from mlm_system.utils.chain_walker import ChainWalker

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a raw price/commission value to Decimal.

    None, empty strings, garbage and non-finite numbers become 0.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not result.is_finite():
        return ZERO
    return result


def _positive_difference(higher: Decimal, lower: Decimal) -> Decimal:
    return max(ZERO, higher - lower)


@dataclass(frozen=True)
class PriceLadder:
    """Coerced price ladder of a product."""
    retail: Decimal
    partner: Decimal
    level2: Decimal
    level3: Decimal
    company: Decimal

    @classmethod
    def from_product(cls, product: Any) -> "PriceLadder":
        return cls(
            retail=to_decimal(getattr(product, "priceRetail", None)),
            partner=to_decimal(getattr(product, "price1", None)),
            level2=to_decimal(getattr(product, "price2", None)),
            level3=to_decimal(getattr(product, "price3", None)),
            company=to_decimal(getattr(product, "price4", None)),
        )

    @property
    def isPresent(self) -> bool:
        """Ladder exists only when both retail and partner prices are positive."""
        return self.retail > 0 and self.partner > 0


@dataclass(frozen=True)
class CommissionBreakdown:
    """Per-level commissions of one sale; never mutated."""
    path: PurchasePath
    level0: Decimal
    level1: Decimal
    level2: Decimal
    level3: Decimal
    base_price: Decimal
    company_amount: Decimal
    source: CommissionSource

    @property
    def isPartner(self) -> bool:
        return self.path is PurchasePath.PARTNER

    @property
    def levels(self) -> tuple:
        return self.level0, self.level1, self.level2, self.level3

    @property
    def total(self) -> Decimal:
        """Sum of all commission levels."""
        return sum(self.levels, ZERO)

    @property
    def isBalanced(self) -> bool:
        """Levels plus company residual reconcile with the base price."""
        return abs(self.total + self.company_amount - self.base_price) <= RECONCILIATION_TOLERANCE

    def asDict(self) -> Dict[str, Decimal]:
        return dict(zip(COMMISSION_LEVELS, self.levels))

    def toBackendFormat(self) -> Dict[str, Decimal]:
        """Legacy {d0, d1, d2, d3} shape expected by old order handlers."""
        return {f"d{index}": amount for index, amount in enumerate(self.levels)}


@dataclass(frozen=True)
class Payout:
    """Commission owed to one member for one sale."""
    memberID: str
    level: str
    amount: Decimal


@dataclass
class OrderCalculation:
    """Price paid by the buyer and payouts up the chain."""
    price: Decimal
    breakdown: CommissionBreakdown
    payouts: List[Payout] = field(default_factory=list)

    @property
    def totalPaid(self) -> Decimal:
        return sum((payout.amount for payout in self.payouts), ZERO)


class CommissionService:
    """Service for calculating MLM commissions from product price ladders."""

    def __init__(self, walker: Optional[ChainWalker] = None, defaultSku: str = FALLBACK_SKU):
        self.walker = walker
        self.defaultSku = defaultSku

    # ═══════════════════════════════════════════════════════════════════════
    # BREAKDOWN
    # ═══════════════════════════════════════════════════════════════════════

    def computeCommissions(self, product: Any, isPartnerPurchase: bool = False) -> CommissionBreakdown:
        """
        Compute the commission breakdown of a product for one purchase path.

        Args:
            product: Product (ORM row or ProductRecord)
            isPartnerPurchase: True if the buyer is an existing partner

        Returns:
            CommissionBreakdown tagged with the branch that produced it
        """
        path = PurchasePath.PARTNER if isPartnerPurchase else PurchasePath.GUEST
        ladder = PriceLadder.from_product(product)

        if ladder.isPresent:
            breakdown = self._fromLadder(ladder, path)
            self._reconcile(product, breakdown)
            return breakdown

        return self._fromFallback(product, path)

    def _fromLadder(self, ladder: PriceLadder, path: PurchasePath) -> CommissionBreakdown:
        level1 = _positive_difference(ladder.partner, ladder.level2) if ladder.level2 > 0 else ZERO
        level2 = (
            _positive_difference(ladder.level2, ladder.level3)
            if ladder.level2 > 0 and ladder.level3 > 0 else ZERO
        )
        level3 = (
            _positive_difference(ladder.level3, ladder.company)
            if ladder.level3 > 0 and ladder.company > 0 else ZERO
        )

        if path is PurchasePath.GUEST:
            level0 = _positive_difference(ladder.retail, ladder.partner)
            basePrice = ladder.retail
        else:
            # Partner already got the P0-P1 discount, no seller commission
            level0 = ZERO
            basePrice = ladder.partner

        return CommissionBreakdown(
            path=path,
            level0=level0,
            level1=level1,
            level2=level2,
            level3=level3,
            base_price=basePrice,
            company_amount=ladder.company,
            source=CommissionSource.LADDER,
        )

    def _reconcile(self, product: Any, breakdown: CommissionBreakdown) -> None:
        """Log (never raise) a ladder that does not add up to its base price."""
        if breakdown.isBalanced:
            return
        logger.warning(
            f"Commission ladder mismatch for sku={getattr(product, 'sku', None)} "
            f"({breakdown.path.value}): levels {breakdown.total} + company "
            f"{breakdown.company_amount} != price {breakdown.base_price}"
        )

    # ═══════════════════════════════════════════════════════════════════════
    # LEGACY FALLBACK CHAIN
    # Products created before the price ladder existed. Do not extend.
    # ═══════════════════════════════════════════════════════════════════════

    def _skuOf(self, product: Any) -> str:
        return getattr(product, "sku", None) or self.defaultSku

    def _defaultTable(self, sku: str) -> tuple:
        if sku in SKU_DEFAULT_COMMISSIONS:
            return SKU_DEFAULT_COMMISSIONS[sku], CommissionSource.SKU_DEFAULT
        return GLOBAL_DEFAULT_COMMISSIONS, CommissionSource.GLOBAL_DEFAULT

    def _productTable(self, product: Any, path: PurchasePath) -> tuple:
        """
        Pick the commission table attached to the product, if any.

        Returns:
            (table with L0..L3 keys, source) or (None, None)
        """
        commission = getattr(product, "commission", None)
        if isinstance(commission, Mapping) and commission:
            table = commission.get(path.value) or {}
            return dict(table), CommissionSource.PRODUCT_TABLE

        legacy = getattr(product, "legacyCommission", None)
        if isinstance(legacy, Mapping) and legacy:
            table = {f"L{index}": legacy.get(f"d{index}") for index in range(len(COMMISSION_LEVELS))}
            return table, CommissionSource.LEGACY_TABLE

        return None, None

    def _fromFallback(self, product: Any, path: PurchasePath) -> CommissionBreakdown:
        sku = self._skuOf(product)
        defaults, defaultSource = self._defaultTable(sku)

        table, source = self._productTable(product, path)
        if table is None:
            table, source = defaults, defaultSource

        amounts = {}
        for level in COMMISSION_LEVELS:
            # Missing cells come from the SKU table, explicit zeros stay zero
            raw = table.get(level)
            amounts[level] = max(ZERO, to_decimal(defaults[level] if raw is None else raw))

        if path is PurchasePath.PARTNER:
            amounts["L0"] = ZERO

        prices = self.getProductPrices(product)
        basePrice = prices["partner"] if path is PurchasePath.PARTNER else prices["retail"]
        total = sum(amounts.values(), ZERO)
        companyAmount = basePrice - total

        if companyAmount < 0:
            logger.warning(
                f"Commission table for sku={sku} ({path.value}) pays {total}, "
                f"more than price {basePrice}"
            )

        logger.debug(f"Legacy commissions for sku={sku} ({path.value}) from {source.value}")

        return CommissionBreakdown(
            path=path,
            level0=amounts["L0"],
            level1=amounts["L1"],
            level2=amounts["L2"],
            level3=amounts["L3"],
            base_price=basePrice,
            company_amount=companyAmount,
            source=source,
        )

    # ═══════════════════════════════════════════════════════════════════════
    # PRICES AND VALIDATION
    # ═══════════════════════════════════════════════════════════════════════

    def getProductPrices(self, product: Any) -> Dict[str, Decimal]:
        """
        Get retail and partner prices, falling back to SKU defaults.

        Returns:
            {"retail": Decimal, "partner": Decimal}
        """
        sku = self._skuOf(product)
        defaults = SKU_DEFAULT_PRICES.get(sku, GLOBAL_DEFAULT_PRICES)
        ladder = PriceLadder.from_product(product)

        return {
            "retail": ladder.retail if ladder.retail > 0 else defaults["retail"],
            "partner": ladder.partner if ladder.partner > 0 else defaults["partner"],
        }

    def validatePriceLadder(self, product: Any) -> List[str]:
        """
        Check a product's price ladder the way the admin editor does.

        Args:
            product: Product to check

        Returns:
            List of human-readable problems (empty if the ladder is valid)
        """
        ladder = PriceLadder.from_product(product)
        errors = []

        if ladder.retail <= 0 and ladder.partner <= 0:
            return errors

        steps = [
            ("Retail price", ladder.retail, "partner price", ladder.partner),
            ("Partner price", ladder.partner, "level 2 price", ladder.level2),
            ("Level 2 price", ladder.level2, "level 3 price", ladder.level3),
            ("Level 3 price", ladder.level3, "company price", ladder.company),
        ]
        for upperName, upper, lowerName, lower in steps:
            if upper > 0 and lower > 0 and lower > upper:
                errors.append(f"{upperName} ({upper}) must not be lower than {lowerName} ({lower})")

        if not ladder.isPresent:
            errors.append("Retail and partner prices must both be set")
            return errors

        guest = self._fromLadder(ladder, PurchasePath.GUEST)
        partner = self._fromLadder(ladder, PurchasePath.PARTNER)

        if guest.total > ladder.retail:
            errors.append(f"Guest commissions ({guest.total}) exceed retail price ({ladder.retail})")
        if partner.total > ladder.partner:
            errors.append(f"Partner commissions ({partner.total}) exceed partner price ({ladder.partner})")

        for breakdown in (guest, partner):
            if not breakdown.isBalanced:
                errors.append(
                    f"{breakdown.path.value.capitalize()} commissions {breakdown.total} + company "
                    f"{breakdown.company_amount} do not add up to {breakdown.base_price}"
                )

        return errors

    # ═══════════════════════════════════════════════════════════════════════
    # ORDERS
    # ═══════════════════════════════════════════════════════════════════════

    def calculateOrder(
            self,
            product: Any,
            isPartnerPurchase: bool,
            memberId: Optional[str] = None
    ) -> OrderCalculation:
        """
        Calculate the price and payouts for one sale.

        Guest sale: memberId is the seller, who gets L0; the seller's
        sponsors get L1..L3. Partner sale: memberId is the buyer, whose
        sponsors get L1..L3.

        Args:
            product: Product sold
            isPartnerPurchase: True if the buyer is a partner
            memberId: Seller (guest sale) or buyer (partner sale)

        Returns:
            OrderCalculation with zero payouts and missing uplines skipped
        """
        breakdown = self.computeCommissions(product, isPartnerPurchase)
        prices = self.getProductPrices(product)
        price = prices["partner"] if isPartnerPurchase else prices["retail"]

        order = OrderCalculation(price=price, breakdown=breakdown)

        if not memberId:
            return order

        if not isPartnerPurchase and breakdown.level0 > 0:
            order.payouts.append(Payout(memberID=memberId, level="L0", amount=breakdown.level0))

        upline = []
        if self.walker is not None:
            upline = self.walker.get_upline_chain(memberId, max_depth=len(COMMISSION_LEVELS) - 1)
        else:
            logger.warning("CommissionService has no member snapshot, upline payouts skipped")

        for level, sponsor in enumerate(upline, start=1):
            amount = breakdown.levels[level]
            if amount > 0:
                order.payouts.append(Payout(memberID=sponsor.memberID, level=f"L{level}", amount=amount))

        logger.info(
            f"Order sku={self._skuOf(product)} ({breakdown.path.value}) by {memberId}: "
            f"price {price}, {len(order.payouts)} payouts, total {order.totalPaid}"
        )

        return order

    def calculateIncome(self, product: Any) -> Dict[str, Decimal]:
        """
        Income potential shown on catalog cards.

        Returns:
            d0 (guest seller) + d1..d3 (partner lines) and their total
        """
        guest = self.computeCommissions(product, isPartnerPurchase=False)
        partner = self.computeCommissions(product, isPartnerPurchase=True)

        income = {
            "d0": guest.level0,
            "d1": partner.level1,
            "d2": partner.level2,
            "d3": partner.level3,
        }
        income["total"] = sum(income.values(), ZERO)
        return income
