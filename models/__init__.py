"""
Database models for the Hydrolab MLM core.
Import all models here for easy access.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Core models
from models.member import Member
from models.product import Product
from models.counter import Counter

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Core
    'Member',
    'Product',
    'Counter',
]
