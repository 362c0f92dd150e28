# services/member_registry.py
"""
Member registration and structure writes.

Keeps both referral links consistent: a new member gets sponsorID, and is
appended to the sponsor's team in recruitment order.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from core.sequence import MEMBER_ID_SEQUENCE, SequenceGenerator, format_member_id
from models.member import Member

logger = logging.getLogger(__name__)


class MemberRegistry:
    """
    Service for adding members to and removing them from the forest.

    Responsibilities:
    - ID assignment through the persisted member sequence
    - sponsor team list maintenance
    - writing recalculated ranks back to stored levels
    """

    def __init__(self, session: Session, reservedIds: Optional[Iterable[int]] = None):
        self.session = session
        self.sequence = SequenceGenerator(session, MEMBER_ID_SEQUENCE, reserved=reservedIds)

    def register_member(
            self,
            sponsorId: Optional[str] = None,
            firstname: Optional[str] = None,
            surname: Optional[str] = None,
            email: Optional[str] = None,
            phone: Optional[str] = None,
            isAdmin: bool = False
    ) -> Member:
        """
        Create a member under a sponsor, or as a root without one.

        Raises:
            ValueError: If sponsorId is given but no such member exists
        """
        sponsor = None
        if sponsorId is not None:
            sponsor = self.session.get(Member, sponsorId)
            if sponsor is None:
                raise ValueError(f"Sponsor {sponsorId} not found")

        memberId = format_member_id(self.sequence.next_value())
        member = Member(
            memberID=memberId,
            sponsorID=sponsorId,
            team=[],
            teamCount=0,
            level=0,
            registeredAt=datetime.now(timezone.utc),
            isAdmin=isAdmin,
            firstname=firstname,
            surname=surname,
            email=email,
            phone=phone,
        )
        self.session.add(member)

        if sponsor is not None:
            sponsor.team = list(sponsor.team or []) + [memberId]
            sponsor.teamCount = len(sponsor.team)
            flag_modified(sponsor, 'team')

        self.session.flush()
        logger.info(f"New member registered: memberID={memberId}, sponsor={sponsorId}")
        return member

    def remove_member(self, memberId: str) -> bool:
        """
        Delete a member without recruits and free its ID.

        Returns:
            False if the member does not exist or still has a team
        """
        member = self.session.get(Member, memberId)
        if member is None:
            return False

        if member.team:
            logger.warning(f"Member {memberId} still has {len(member.team)} recruits, not removed")
            return False

        if member.sponsorID:
            sponsor = self.session.get(Member, member.sponsorID)
            if sponsor is not None:
                sponsor.team = [recruitId for recruitId in (sponsor.team or []) if recruitId != memberId]
                sponsor.teamCount = len(sponsor.team)
                flag_modified(sponsor, 'team')

        self.session.delete(member)
        if memberId.isdigit():
            self.sequence.release(int(memberId))

        self.session.flush()
        logger.info(f"Member {memberId} removed")
        return True

    def apply_ranks(self, ranks: Dict[str, int]) -> int:
        """
        Store recalculated ranks as member levels.

        Returns:
            Number of members whose stored level changed
        """
        updated = 0
        for member in self.session.query(Member).all():
            rank = ranks.get(member.memberID)
            if rank is None or member.isAdmin or member.level == rank:
                continue
            logger.debug(f"Member {member.memberID}: level {member.level} -> {rank}")
            member.level = rank
            updated += 1

        self.session.flush()
        logger.info(f"Stored level updated for {updated} members")
        return updated
