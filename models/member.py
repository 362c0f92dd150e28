# models/member.py
"""
Member model - a partner in the referral forest.

The sponsor link and the ordered team list are both stored, mirroring the
backend records: sponsorID points up, team lists direct recruits in
recruitment order. Stored `level` is the last persisted rank and may drift
from the rank recalculated by RankService.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime, Boolean, JSON
from models.base import Base, AuditMixin, _get_current_time


class Member(Base, AuditMixin):
    __tablename__ = 'members'

    # Business ID, e.g. "001", "1042"
    memberID = Column(String, primary_key=True)

    # Referral links
    sponsorID = Column(String, nullable=True, index=True)
    team = Column(JSON, default=list)  # ordered list of direct recruit IDs
    teamCount = Column(Integer, default=0)  # denormalized len(team)

    # Stored rank (see RankService.findRankMismatches)
    level = Column(Integer, default=0)

    balance = Column(DECIMAL(12, 2), default=0)
    registeredAt = Column(DateTime, default=_get_current_time, index=True)
    isAdmin = Column(Boolean, default=False)

    # Display / search fields
    firstname = Column(String, nullable=True)
    surname = Column(String, nullable=True)
    email = Column(String, nullable=True, index=True)
    phone = Column(String, nullable=True)

    def __repr__(self):
        return f"<Member(memberID={self.memberID}, sponsor={self.sponsorID}, team={self.teamCount})>"
