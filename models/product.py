# models/product.py
"""
Product model - sellable SKU with its price ladder.

Ladder: priceRetail (P0) >= price1 (P1) >= price2 (P2) >= price3 (P3) >= price4 (company).
Products created before the ladder existed carry only a commission table.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, Boolean, JSON
from models.base import Base, AuditMixin


class Product(Base, AuditMixin):
    __tablename__ = 'products'

    productID = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String, nullable=False, index=True)
    name = Column(String)

    # Price ladder
    priceRetail = Column(DECIMAL(12, 2), nullable=True)  # P0, guest price
    price1 = Column(DECIMAL(12, 2), nullable=True)  # P1, partner price
    price2 = Column(DECIMAL(12, 2), nullable=True)  # P2, 1st line price
    price3 = Column(DECIMAL(12, 2), nullable=True)  # P3, 2nd line price
    price4 = Column(DECIMAL(12, 2), nullable=True)  # company base price

    # Pre-computed tables for legacy products:
    # commission = {"guest": {"L0": .., "L3": ..}, "partner": {"L1": .., "L3": ..}}
    # legacyCommission = {"d0": .., "d1": .., "d2": .., "d3": ..}
    commission = Column(JSON, nullable=True)
    legacyCommission = Column(JSON, nullable=True)

    isArchived = Column(Boolean, default=False)

    def __repr__(self):
        return f"<Product(sku={self.sku}, retail={self.priceRetail}, partner={self.price1})>"
