# tests/test_sequence.py
"""
Tests for the persisted ID sequence.

Run:
    pytest tests/test_sequence.py -v
"""
from core.sequence import SequenceGenerator, format_member_id
from models.counter import Counter


class TestFormatMemberId:

    def test_padding(self):
        assert format_member_id(1) == "001"
        assert format_member_id(42) == "042"
        assert format_member_id(999) == "999"
        assert format_member_id(1000) == "1000"


class TestSequenceGenerator:
    """Counter with freed and reserved values."""

    def test_counter_created_on_first_use(self, session):
        sequence = SequenceGenerator(session, "memberId")

        assert sequence.current() == 0
        assert session.get(Counter, "memberId") is not None

    def test_values_increase(self, session):
        sequence = SequenceGenerator(session, "memberId")

        assert [sequence.next_value() for _ in range(3)] == [1, 2, 3]
        assert sequence.current() == 3

    def test_reserved_values_are_skipped(self, session):
        sequence = SequenceGenerator(session, "memberId", reserved=[2, 3])

        assert [sequence.next_value() for _ in range(3)] == [1, 4, 5]

    def test_freed_values_are_reused_smallest_first(self, session):
        """
        TEST: Released values come back before the counter moves on.
        """
        sequence = SequenceGenerator(session, "memberId")
        for _ in range(5):
            sequence.next_value()

        sequence.release(4)
        sequence.release(2)
        sequence.release(2)

        assert sequence.freed() == [2, 4]
        assert sequence.next_value() == 2
        assert sequence.next_value() == 4
        assert sequence.next_value() == 6

    def test_reserved_freed_value_is_not_reused(self, session):
        SequenceGenerator(session, "memberId").next_value()
        SequenceGenerator(session, "memberId").release(1)

        sequence = SequenceGenerator(session, "memberId", reserved=[1])

        assert sequence.next_value() == 2

    def test_unissued_values_cannot_be_released(self, session):
        sequence = SequenceGenerator(session, "memberId")
        sequence.next_value()

        sequence.release(10)
        sequence.release(0)

        assert sequence.freed() == []

    def test_sequences_are_independent(self, session):
        members = SequenceGenerator(session, "memberId")
        orders = SequenceGenerator(session, "orderId")

        members.next_value()
        members.next_value()

        assert orders.next_value() == 1

    def test_state_is_persisted(self, session):
        SequenceGenerator(session, "memberId").next_value()
        session.commit()

        assert SequenceGenerator(session, "memberId").next_value() == 2
