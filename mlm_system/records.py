# mlm_system/records.py
"""
Immutable snapshot records consumed by the tree and commission code.

Attribute names match the ORM models, so ORM rows can be passed wherever
a record is expected.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class MemberRecord:
    """One member of the referral forest."""
    memberID: str
    sponsorID: Optional[str] = None
    team: Tuple[str, ...] = ()
    teamCount: int = 0
    level: int = 0
    balance: Decimal = Decimal("0")
    registeredAt: Optional[datetime] = None
    isAdmin: bool = False
    firstname: Optional[str] = None
    surname: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def fullName(self) -> str:
        return f"{self.firstname or ''} {self.surname or ''}".strip()

    @classmethod
    def from_model(cls, member) -> "MemberRecord":
        """Detach an ORM Member into a snapshot record."""
        team = tuple(str(member_id) for member_id in (member.team or []))
        return cls(
            memberID=str(member.memberID),
            sponsorID=str(member.sponsorID) if member.sponsorID else None,
            team=team,
            teamCount=member.teamCount if member.teamCount is not None else len(team),
            level=member.level or 0,
            balance=Decimal(str(member.balance or 0)),
            registeredAt=member.registeredAt,
            isAdmin=bool(member.isAdmin),
            firstname=member.firstname,
            surname=member.surname,
            email=member.email,
            phone=member.phone,
        )


@dataclass(frozen=True)
class ProductRecord:
    """Product snapshot; prices are kept raw and coerced by the engine."""
    sku: Optional[str] = None
    name: Optional[str] = None
    priceRetail: Any = None
    price1: Any = None
    price2: Any = None
    price3: Any = None
    price4: Any = None
    commission: Optional[Dict[str, Dict[str, Any]]] = None
    legacyCommission: Optional[Dict[str, Any]] = None

    @classmethod
    def from_model(cls, product) -> "ProductRecord":
        return cls(
            sku=product.sku,
            name=product.name,
            priceRetail=product.priceRetail,
            price1=product.price1,
            price2=product.price2,
            price3=product.price3,
            price4=product.price4,
            commission=product.commission,
            legacyCommission=product.legacyCommission,
        )
