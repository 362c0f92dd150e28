# services/member_source.py
"""
Member and product sources.

The MLM core only works on in-memory snapshots; this module is the fetch
layer that produces them, either from the local database or from the
backend REST functions.

Usage:
    source = DatabaseMemberSource(session)
    members = await source.fetch_members()

    async with RestMemberSource(adminUserId="001") as source:
        members = await source.fetch_members()
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp
from sqlalchemy.orm import Session

from config import Config
from mlm_system.records import MemberRecord, ProductRecord
from mlm_system.services.commission_service import to_decimal
from models.member import Member
from models.product import Product

logger = logging.getLogger(__name__)


class MemberSourceError(Exception):
    """Snapshot could not be fetched."""
    pass


# ═══════════════════════════════════════════════════════════════════════════
# PAYLOAD MAPPING
# Backend records use Russian field names, newer ones English aliases.
# ═══════════════════════════════════════════════════════════════════════════

def _first(payload: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable registration timestamp: {value!r}")
        return None


def member_from_payload(payload: Dict[str, Any]) -> MemberRecord:
    """
    Map one backend user record to a MemberRecord.

    Args:
        payload: User dict as returned by /admin/users

    Returns:
        MemberRecord
    """
    team = tuple(str(member_id) for member_id in (_first(payload, "команда", "team") or []))
    sponsorId = _first(payload, "спонсорId", "sponsorId", "спонсор")
    teamCount = _first(payload, "teamCount")

    try:
        level = int(_first(payload, "уровень", "level") or 0)
    except (TypeError, ValueError):
        level = 0

    return MemberRecord(
        memberID=str(payload["id"]),
        sponsorID=str(sponsorId) if sponsorId else None,
        team=team,
        teamCount=int(teamCount) if teamCount is not None else len(team),
        level=level,
        balance=to_decimal(_first(payload, "баланс", "balance")),
        registeredAt=_parse_timestamp(_first(payload, "зарегистрирован", "registeredAt")),
        isAdmin=bool(payload.get("isAdmin")) or "admin" in (payload.get("type"), payload.get("__type")),
        firstname=_first(payload, "имя", "firstname"),
        surname=_first(payload, "фамилия", "surname"),
        email=payload.get("email"),
        phone=_first(payload, "телефон", "phone"),
    )


def product_from_payload(payload: Dict[str, Any]) -> ProductRecord:
    """
    Map one backend product record to a ProductRecord.

    Prices stay raw; the commission engine coerces them.
    """
    return ProductRecord(
        sku=payload.get("sku"),
        name=_first(payload, "название", "name"),
        priceRetail=_first(payload, "цена_розница", "розничнаяЦена", "retail_price"),
        price1=_first(payload, "цена1", "партнёрскаяЦена", "partner_price"),
        price2=payload.get("цена2"),
        price3=payload.get("цена3"),
        price4=payload.get("цена4"),
        commission=payload.get("commission"),
        legacyCommission=payload.get("комиссии"),
    )


# ═══════════════════════════════════════════════════════════════════════════
# DATABASE SOURCE
# ═══════════════════════════════════════════════════════════════════════════

class DatabaseMemberSource:
    """Snapshots from the local database."""

    def __init__(self, session: Session):
        self.session = session

    async def fetch_members(self) -> List[MemberRecord]:
        """All members in registration order."""
        members = self.session.query(Member).order_by(Member.registeredAt, Member.memberID).all()
        logger.debug(f"Loaded {len(members)} members from database")
        return [MemberRecord.from_model(member) for member in members]

    async def fetch_roots(self) -> List[MemberRecord]:
        """Members without a sponsor, admins excluded."""
        roots = self.session.query(Member).filter(
            Member.sponsorID.is_(None),
            Member.isAdmin.is_(False)
        ).order_by(Member.registeredAt, Member.memberID).all()
        return [MemberRecord.from_model(member) for member in roots]

    async def fetch_children(self, parentId: str) -> List[MemberRecord]:
        """Direct recruits of parentId, admins excluded."""
        children = self.session.query(Member).filter(
            Member.sponsorID == parentId,
            Member.isAdmin.is_(False)
        ).order_by(Member.registeredAt, Member.memberID).all()
        return [MemberRecord.from_model(member) for member in children]

    async def fetch_products(self, includeArchived: bool = False) -> List[ProductRecord]:
        query = self.session.query(Product)
        if not includeArchived:
            query = query.filter(Product.isArchived.is_(False))
        return [ProductRecord.from_model(product) for product in query.order_by(Product.productID).all()]


# ═══════════════════════════════════════════════════════════════════════════
# REST SOURCE
# ═══════════════════════════════════════════════════════════════════════════

class RestMemberSource:
    """
    Snapshots from the backend edge function.

    The backend has no per-node endpoint: children are cut from the full
    user list, which is fetched once per source instance.
    """

    def __init__(
            self,
            adminUserId: Optional[str] = None,
            baseUrl: Optional[str] = None,
            anonKey: Optional[str] = None,
            timeout: Optional[float] = None
    ):
        self.baseUrl = baseUrl or Config.functions_url()
        self.anonKey = anonKey or Config.get(Config.SUPABASE_ANON_KEY)
        self.adminUserId = adminUserId
        self.timeout = aiohttp.ClientTimeout(total=timeout or Config.get(Config.REQUEST_TIMEOUT, 10))
        self._session: Optional[aiohttp.ClientSession] = None
        self._members: Optional[List[MemberRecord]] = None

    async def __aenter__(self) -> "RestMemberSource":
        self._session = aiohttp.ClientSession(timeout=self.timeout, headers=self._headers())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.anonKey:
            headers["Authorization"] = f"Bearer {self.anonKey}"
        if self.adminUserId:
            headers["X-User-Id"] = self.adminUserId
        return headers

    async def _get(self, path: str) -> Dict[str, Any]:
        if self._session is None:
            raise MemberSourceError("RestMemberSource used outside 'async with'")

        url = f"{self.baseUrl}{path}"
        try:
            async with self._session.get(url) as response:
                data = await response.json(content_type=None)
                if response.status != 200:
                    error = data.get("error") if isinstance(data, dict) else None
                    logger.warning(f"GET {path} returned status {response.status}: {error}")
                    raise MemberSourceError(f"GET {path} failed with status {response.status}: {error}")
                return data
        except aiohttp.ClientError as e:
            logger.warning(f"GET {path} client error: {e}")
            raise MemberSourceError(f"GET {path} failed: {e}") from e

    async def fetch_members(self, refresh: bool = False) -> List[MemberRecord]:
        """Full user list, cached for the lifetime of the source."""
        if self._members is None or refresh:
            data = await self._get("/admin/users")
            self._members = [member_from_payload(user) for user in data.get("users", [])]
            logger.info(f"Fetched {len(self._members)} members from backend")
        return self._members

    async def fetch_roots(self) -> List[MemberRecord]:
        members = await self.fetch_members()
        return [member for member in members if not member.sponsorID and not member.isAdmin]

    async def fetch_children(self, parentId: str) -> List[MemberRecord]:
        members = await self.fetch_members()
        return [member for member in members if member.sponsorID == parentId and not member.isAdmin]

    async def fetch_products(self, includeArchived: bool = False) -> List[ProductRecord]:
        data = await self._get("/products")
        products = [
            product_from_payload(item) for item in data.get("products", [])
            if includeArchived or not item.get("в_архиве")
        ]
        logger.info(f"Fetched {len(products)} products from backend")
        return products
