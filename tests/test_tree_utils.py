# tests/test_tree_utils.py
"""
Tests for referral forest flattening and path finding.

Run:
    pytest tests/test_tree_utils.py -v
"""
import pytest

from mlm_system.config.ranks import RankRange
from mlm_system.services.rank_service import RankService
from mlm_system.utils.chain_walker import OrphanedMemberError, SponsorCycleError
from mlm_system.utils.tree_utils import (
    count_visible_nodes,
    default_expanded_ids,
    expand_path_to_member,
    find_path_to_member,
    flatten_tree,
    get_roots,
    search_members,
    sort_by_registration,
)


def ids(rows):
    return [row.id for row in rows]


@pytest.fixture
def three_roots(forest):
    """
    R1 -> (A -> (A1, A2), B)
    R2 -> C
    R3
    """
    return forest({'R1': ['A', 'B'], 'A': ['A1', 'A2'], 'R2': ['C'], 'R3': []})


# =============================================================================
# TEST CLASS: flatten
# =============================================================================

class TestFlatten:
    """Visible rows of the forest."""

    def test_nothing_expanded_returns_roots_in_order(self, three_roots):
        """
        TEST: Empty expanded set.

        Verify: exactly the roots, in source order, none expanded.
        """
        rows = flatten_tree(three_roots, set(), {})

        assert ids(rows) == ['R1', 'R2', 'R3']
        assert all(row.depth == 0 and not row.isExpanded for row in rows)
        assert rows[0].hasChildren and rows[0].childrenCount == 2
        assert not rows[2].hasChildren

    def test_expanded_rows_in_pre_order(self, three_roots):
        rows = flatten_tree(three_roots, {'R1', 'A', 'R2'}, {})

        assert ids(rows) == ['R1', 'A', 'A1', 'A2', 'B', 'R2', 'C', 'R3']
        assert [row.depth for row in rows] == [0, 1, 2, 2, 1, 0, 1, 0]

    def test_collapsed_parent_hides_expanded_child(self, three_roots):
        """
        TEST: A is expanded but its parent R1 is not.
        """
        rows = flatten_tree(three_roots, {'A'}, {})

        assert ids(rows) == ['R1', 'R2', 'R3']

    def test_parent_and_path(self, three_roots):
        rows = {row.id: row for row in flatten_tree(three_roots, {'R1', 'A'}, {})}

        assert rows['A1'].parentId == 'A'
        assert rows['A1'].path == ['R1', 'A', 'A1']
        assert rows['R1'].parentId is None

    def test_sibling_metadata(self, three_roots):
        """
        TEST: Connector metadata from the position in the sponsor's team.
        """
        rows = {row.id: row for row in flatten_tree(three_roots, {'R1', 'R2'}, {})}

        assert rows['A'].isFirstSibling and not rows['A'].isLastSibling
        assert rows['B'].isLastSibling and rows['B'].siblingIndex == 1
        assert rows['C'].isOnlySibling and rows['C'].totalSiblings == 1
        assert rows['R3'].isLastSibling and rows['R3'].totalSiblings == 3

    def test_rank_filter_keeps_walking_into_hidden_parent(self, forest):
        """
        TEST: 3-level chain, middle member filtered out.

        Verify: the hidden member's in-range child is still emitted.
        """
        members = forest({'TOP': ['MID'], 'MID': ['LOW'], 'LOW': ['LEAF']})
        ranks = RankService(members).calculateRanks()
        # TOP=3, MID=2, LOW=1, LEAF=0

        rows = flatten_tree(members, {'TOP', 'MID', 'LOW'}, ranks, rank_range=RankRange(1, 1))
        assert ids(rows) == ['LOW']

        rows = flatten_tree(members, {'TOP', 'MID', 'LOW'}, ranks, rank_range=RankRange(0, 1))
        assert 'MID' not in ids(rows)
        assert ids(rows) == ['LOW', 'LEAF']

    def test_search_never_filters(self, three_roots):
        rows = flatten_tree(three_roots, {'R1'}, {}, search_query="NameB")

        assert ids(rows) == ['R1', 'A', 'B', 'R2', 'R3']

    def test_admins_excluded(self, forest):
        members = forest({'ADM': [], 'R1': ['X']}, admins={'ADM', 'X'})

        rows = flatten_tree(members, {'R1'}, {})

        assert ids(rows) == ['R1']

    def test_missing_recruit_is_skipped(self, forest):
        members = forest({'R1': ['A', 'GHOST']})
        members = [member for member in members if member.memberID != 'GHOST']

        rows = flatten_tree(members, {'R1'}, {})

        assert ids(rows) == ['R1', 'A']

    def test_team_cycle_does_not_loop(self, forest):
        """
        TEST: B lists its own ancestor R1 as a recruit.
        """
        members = forest({'R1': ['B'], 'B': ['R1']}, R1={'sponsorID': None})

        rows = flatten_tree(members, {'R1', 'B'}, {})

        assert ids(rows) == ['R1', 'B']


# =============================================================================
# TEST CLASS: paths
# =============================================================================

class TestPaths:
    """Root-to-member paths and reveal."""

    def test_four_generation_path(self, chain_members):
        assert find_path_to_member('D', chain_members) == ['A', 'B', 'C', 'D']

    def test_root_path(self, chain_members):
        assert find_path_to_member('A', chain_members) == ['A']

    def test_dangling_sponsor_raises(self, forest):
        members = forest({'A': ['B']}, A={'sponsorID': 'GONE'})

        with pytest.raises(OrphanedMemberError) as exc_info:
            find_path_to_member('B', members)

        assert exc_info.value.memberId == 'A'
        assert exc_info.value.partialPath == ['A', 'B']

    def test_unknown_member_raises(self, chain_members):
        with pytest.raises(OrphanedMemberError):
            find_path_to_member('NOPE', chain_members)

    def test_cycle_raises(self, forest):
        members = forest({'A': ['B'], 'B': ['A']})

        with pytest.raises(SponsorCycleError):
            find_path_to_member('A', members)

    def test_expand_path_then_flatten_shows_member_once(self, chain_members):
        """
        TEST: Reveal D starting from a collapsed forest.
        """
        expanded = expand_path_to_member('D', chain_members, set())

        assert expanded == {'A', 'B', 'C'}
        assert ids(flatten_tree(chain_members, expanded, {})).count('D') == 1

    def test_expand_path_keeps_existing_and_input(self, chain_members):
        current = {'X'}

        expanded = expand_path_to_member('C', chain_members, current)

        assert expanded == {'X', 'A', 'B'}
        assert current == {'X'}


# =============================================================================
# TEST CLASS: helpers
# =============================================================================

class TestHelpers:
    """Search, defaults and statistics."""

    def test_get_roots_skips_admins(self, forest):
        members = forest({'R1': [], 'ADM': []}, admins={'ADM'})

        assert [member.memberID for member in get_roots(members)] == ['R1']

    def test_search_matches_name_email_id_phone(self, forest):
        members = forest(
            {'R1': ['A', 'B']},
            A={'firstname': 'Ольга', 'surname': 'Смирнова'},
            B={'phone': '+7 999 123'},
        )

        assert search_members(members, 'ольга смир') == ['A']
        assert search_members(members, '999') == ['B']
        assert search_members(members, 'r1@TEST') == ['R1']
        assert search_members(members, '   ') == []

    def test_search_skips_admins(self, forest):
        members = forest({'R1': [], 'ADM': []}, admins={'ADM'})

        assert search_members(members, 'name') == ['R1']

    def test_default_expanded_ids(self, forest):
        structure = {f'R{index}': [f'R{index}C{child}' for child in range(7)] for index in range(12)}
        members = forest(structure)

        expanded = default_expanded_ids(members)

        assert 'R0' in expanded and 'R9' in expanded and 'R10' not in expanded
        assert 'R0C4' in expanded and 'R0C5' not in expanded
        assert len(expanded) == 10 * 6

    def test_count_visible_nodes(self, three_roots):
        rows = flatten_tree(three_roots, {'R1'}, {})
        team_sizes = RankService(three_roots).calculateTeamSizes()

        counts = count_visible_nodes(rows, team_sizes)

        # Visible: R1, A, B, R2, R3; collapsed below A (2) and R2 (1)
        assert counts == {"total": 8, "visible": 5, "collapsed": 3}

    def test_count_visible_nodes_is_approximate(self, forest):
        """
        TEST: Admin hidden under a collapsed row, rank filter hiding a row.

        Verify: the admin counts as collapsed, the filtered row counts
                nowhere.
        """
        members = forest({'R1': ['A', 'ADM'], 'R2': []}, admins={'ADM'})
        team_sizes = RankService(members).calculateTeamSizes()

        collapsed = count_visible_nodes(flatten_tree(members, set(), {}), team_sizes)
        filtered = count_visible_nodes(
            flatten_tree(members, set(), {'R1': 1, 'R2': 0}, rank_range=RankRange(1, 10)),
            team_sizes
        )

        assert collapsed == {"total": 4, "visible": 2, "collapsed": 2}
        assert filtered == {"total": 3, "visible": 1, "collapsed": 2}

    def test_count_visible_nodes_without_sizes(self, three_roots):
        rows = flatten_tree(three_roots, set(), {})

        assert count_visible_nodes(rows) == {"total": 3, "visible": 3, "collapsed": 0}

    def test_sort_by_registration(self, forest):
        members = forest({'A': [], 'B': [], 'C': []}, A={'registeredAt': None})

        assert [member.memberID for member in sort_by_registration(members)] == ['B', 'C', 'A']
