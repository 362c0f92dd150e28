# tests/test_member_source.py
"""
Tests for snapshot sources: payload mapping, database and REST.

The REST source is exercised against a local aiohttp test server.

Run:
    pytest tests/test_member_source.py -v
"""
import asyncio
from datetime import datetime
from decimal import Decimal

import pytest
from aiohttp import web
from aiohttp import test_utils

from mlm_system.services.commission_service import CommissionService
from models.member import Member
from models.product import Product
from services.member_source import (
    DatabaseMemberSource,
    MemberSourceError,
    RestMemberSource,
    member_from_payload,
    product_from_payload,
)

USERS_PAYLOAD = {
    "users": [
        {"id": "001", "имя": "Анна", "фамилия": "Корнева", "команда": ["002", "003"],
         "уровень": 1, "баланс": "1500.50", "зарегистрирован": "2024-01-01T10:00:00Z"},
        {"id": "002", "спонсорId": "001", "имя": "Иван", "email": "ivan@test.com"},
        {"id": "003", "sponsorId": "001", "firstname": "Olga", "team": []},
        {"id": "ceo", "type": "admin", "имя": "Admin"},
    ]
}

PRODUCTS_PAYLOAD = {
    "products": [
        {"sku": "H2-1", "название": "Generator", "цена_розница": 6500, "цена1": 4900,
         "цена2": 4000, "цена3": 3500, "цена4": 3300},
        {"sku": "H2-0", "название": "Old", "в_архиве": True},
    ]
}


# =============================================================================
# TEST CLASS: payload mapping
# =============================================================================

class TestPayloadMapping:
    """Backend records to snapshot records."""

    def test_member_with_cyrillic_fields(self):
        member = member_from_payload(USERS_PAYLOAD["users"][0])

        assert member.memberID == "001"
        assert member.sponsorID is None
        assert member.team == ("002", "003")
        assert member.teamCount == 2
        assert member.level == 1
        assert member.balance == Decimal("1500.50")
        assert member.registeredAt.year == 2024
        assert member.fullName == "Анна Корнева"
        assert not member.isAdmin

    def test_sponsor_aliases(self):
        assert member_from_payload(USERS_PAYLOAD["users"][1]).sponsorID == "001"
        assert member_from_payload(USERS_PAYLOAD["users"][2]).sponsorID == "001"

    def test_admin_type(self):
        assert member_from_payload(USERS_PAYLOAD["users"][3]).isAdmin

    def test_bad_values_degrade(self):
        member = member_from_payload({"id": 7, "уровень": "high", "зарегистрирован": "yesterday"})

        assert member.memberID == "7"
        assert member.level == 0
        assert member.registeredAt is None
        assert member.balance == 0

    def test_product(self):
        product = product_from_payload(PRODUCTS_PAYLOAD["products"][0])

        assert product.sku == "H2-1"
        assert product.name == "Generator"
        breakdown = CommissionService().computeCommissions(product)
        assert breakdown.level0 == Decimal("1600")


# =============================================================================
# TEST CLASS: database source
# =============================================================================

class TestDatabaseMemberSource:
    """Snapshots from SQLAlchemy models."""

    @pytest.fixture
    def populated(self, session):
        session.add_all([
            Member(memberID="001", team=["002", "003"], registeredAt=datetime(2024, 1, 1)),
            Member(memberID="003", sponsorID="001", registeredAt=datetime(2024, 1, 3)),
            Member(memberID="002", sponsorID="001", registeredAt=datetime(2024, 1, 2)),
            Member(memberID="ceo", isAdmin=True, registeredAt=datetime(2023, 1, 1)),
            Product(sku="H2-1", priceRetail=Decimal("6500"), price1=Decimal("4900")),
            Product(sku="H2-0", isArchived=True),
        ])
        session.flush()
        return DatabaseMemberSource(session)

    def test_members_in_registration_order(self, populated):
        members = asyncio.run(populated.fetch_members())

        assert [member.memberID for member in members] == ["ceo", "001", "002", "003"]
        assert members[1].team == ("002", "003")

    def test_roots_and_children(self, populated):
        roots = asyncio.run(populated.fetch_roots())
        children = asyncio.run(populated.fetch_children("001"))

        assert [member.memberID for member in roots] == ["001"]
        assert [member.memberID for member in children] == ["002", "003"]

    def test_products_skip_archived(self, populated):
        products = asyncio.run(populated.fetch_products())
        everything = asyncio.run(populated.fetch_products(includeArchived=True))

        assert [product.sku for product in products] == ["H2-1"]
        assert len(everything) == 2


# =============================================================================
# TEST CLASS: REST source
# =============================================================================

def make_app(seen_headers, status=200):
    async def users(request):
        seen_headers.append(dict(request.headers))
        if status != 200:
            return web.json_response({"error": "Forbidden"}, status=status)
        return web.json_response(USERS_PAYLOAD)

    async def products(request):
        return web.json_response(PRODUCTS_PAYLOAD)

    app = web.Application()
    app.router.add_get("/admin/users", users)
    app.router.add_get("/products", products)
    return app


async def run_against(app, scenario):
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        base_url = f"http://{server.host}:{server.port}"
        async with RestMemberSource(adminUserId="001", baseUrl=base_url, anonKey="anon", timeout=5) as source:
            return await scenario(source)
    finally:
        await server.close()


class TestRestMemberSource:
    """Snapshots from the backend REST functions."""

    def test_fetch_members_once(self):
        seen = []

        async def scenario(source):
            members = await source.fetch_members()
            roots = await source.fetch_roots()
            children = await source.fetch_children("001")
            return members, roots, children

        members, roots, children = asyncio.run(run_against(make_app(seen), scenario))

        assert len(members) == 4
        assert [member.memberID for member in roots] == ["001"]
        assert [member.memberID for member in children] == ["002", "003"]
        assert len(seen) == 1
        assert seen[0]["Authorization"] == "Bearer anon"
        assert seen[0]["X-User-Id"] == "001"

    def test_products_skip_archived(self):
        async def scenario(source):
            return await source.fetch_products()

        products = asyncio.run(run_against(make_app([]), scenario))

        assert [product.sku for product in products] == ["H2-1"]

    def test_error_status_raises(self):
        async def scenario(source):
            return await source.fetch_members()

        with pytest.raises(MemberSourceError):
            asyncio.run(run_against(make_app([], status=403), scenario))

    def test_outside_context_manager(self):
        source = RestMemberSource(baseUrl="http://localhost", anonKey="anon")

        with pytest.raises(MemberSourceError):
            asyncio.run(source.fetch_members())
