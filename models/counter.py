# models/counter.py
"""
Persisted state for SequenceGenerator.
"""
from sqlalchemy import Column, Integer, String, JSON
from models.base import Base, AuditMixin


class Counter(Base, AuditMixin):
    __tablename__ = 'counters'

    name = Column(String, primary_key=True)
    value = Column(Integer, nullable=False, default=0)
    freedIds = Column(JSON, default=list)

    def __repr__(self):
        return f"<Counter(name={self.name}, value={self.value})>"
