# tests/conftest.py
"""
Pytest configuration and shared fixtures.

Run:
    pytest tests -v
"""
from decimal import Decimal
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from config import Config
from models import Base
from mlm_system.records import MemberRecord, ProductRecord

# =============================================================================
# CONSTANTS
# =============================================================================

REGISTERED_FROM = datetime(2024, 1, 1, 12, 0, 0)

# Ladder used across commission tests: P0 >= P1 >= P2 >= P3 >= P_company
LADDER_PRICES = {
    'priceRetail': Decimal("6500"),
    'price1': Decimal("4900"),
    'price2': Decimal("4000"),
    'price3': Decimal("3500"),
    'price4': Decimal("3300"),
}


# =============================================================================
# CONFIG
# =============================================================================

@pytest.fixture(autouse=True)
def clean_config():
    """Each test starts with an empty configuration."""
    Config.reset()
    yield
    Config.reset()


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create database session for each test."""
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# SNAPSHOT BUILDERS
# =============================================================================

def build_forest(structure, admins=(), **overrides):
    """
    Build MemberRecords from {member_id: [recruit ids]}.

    Sponsors are derived from the structure; registration order follows
    the dict order. Members that only appear as recruits are created as
    leaves.
    """
    sponsors = {}
    order = []
    for member_id, team in structure.items():
        if member_id not in order:
            order.append(member_id)
        for recruit_id in team:
            sponsors[recruit_id] = member_id
            if recruit_id not in order:
                order.append(recruit_id)

    members = []
    for index, member_id in enumerate(order):
        fields = {
            'memberID': member_id,
            'sponsorID': sponsors.get(member_id),
            'team': tuple(structure.get(member_id, ())),
            'teamCount': len(structure.get(member_id, ())),
            'registeredAt': REGISTERED_FROM + timedelta(days=index),
            'isAdmin': member_id in admins,
            'firstname': f"Name{member_id}",
            'surname': f"Surname{member_id}",
            'email': f"{member_id.lower()}@test.com",
        }
        fields.update(overrides.get(member_id, {}))
        members.append(MemberRecord(**fields))

    return members


@pytest.fixture
def forest():
    """Fixture access to build_forest."""
    return build_forest


@pytest.fixture
def chain_members():
    """Four-generation chain A -> B -> C -> D."""
    return build_forest({'A': ['B'], 'B': ['C'], 'C': ['D']})


@pytest.fixture
def ladder_product():
    """Fully specified, non-increasing price ladder."""
    return ProductRecord(sku="H2-1", name="Generator", **LADDER_PRICES)
