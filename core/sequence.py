# core/sequence.py
"""
Persisted ID sequences.

Replaces ad-hoc global counters: callers receive a SequenceGenerator
bound to a session and a counter name, so state lives in the `counters`
table and is passed explicitly.

Usage:
    with get_db_session_ctx() as session:
        ids = SequenceGenerator(session, "memberId", reserved=[7, 100])
        new_id = format_member_id(ids.next_value())
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from models.counter import Counter

logger = logging.getLogger(__name__)

MEMBER_ID_SEQUENCE = "memberId"


def format_member_id(value: int) -> str:
    """Format member ID: 001-999 padded, 1000+ as is."""
    return str(value).zfill(3) if value <= 999 else str(value)


class SequenceGenerator:
    """
    Monotonic counter with a pool of freed values.

    next_value() hands out the smallest freed value first, then increments
    the counter. Reserved values are never handed out.
    """

    def __init__(self, session: Session, name: str, reserved: Optional[Iterable[int]] = None):
        self.session = session
        self.name = name
        self.reserved = set(reserved or [])

    def _get_counter(self) -> Counter:
        counter = self.session.get(Counter, self.name)
        if counter is None:
            counter = Counter(name=self.name, value=0, freedIds=[])
            self.session.add(counter)
            self.session.flush()
            logger.info(f"Created sequence '{self.name}'")
        return counter

    def current(self) -> int:
        """Last value produced by the counter (freed values aside)."""
        return self._get_counter().value

    def freed(self) -> List[int]:
        return sorted(self._get_counter().freedIds or [])

    def next_value(self) -> int:
        """
        Get the next available value.

        Returns:
            Smallest non-reserved freed value, or the next counter value
            that is not reserved
        """
        counter = self._get_counter()

        available = sorted(
            value for value in (counter.freedIds or [])
            if value not in self.reserved
        )
        if available:
            value = available[0]
            counter.freedIds = [v for v in counter.freedIds if v != value]
            flag_modified(counter, 'freedIds')
            self.session.flush()
            logger.debug(f"Sequence '{self.name}': reusing freed value {value}")
            return value

        value = counter.value
        while True:
            value += 1
            if value not in self.reserved:
                break

        counter.value = value
        self.session.flush()
        logger.debug(f"Sequence '{self.name}': generated {value}")
        return value

    def release(self, value: int) -> None:
        """
        Return a value to the freed pool so it can be handed out again.

        Values above the counter were never issued and are ignored.
        """
        counter = self._get_counter()

        if value <= 0 or value > counter.value:
            logger.warning(f"Sequence '{self.name}': cannot release unissued value {value}")
            return

        freed = list(counter.freedIds or [])
        if value in freed:
            return

        freed.append(value)
        counter.freedIds = freed
        flag_modified(counter, 'freedIds')
        self.session.flush()
        logger.debug(f"Sequence '{self.name}': released {value}")
