"""
Unit tests for thread reconstruction.

Tests cover:
- Parent resolution (item_id, secondary_item_id fallback, orphans)
- Moderation of top-level posts only
- Child display ordering and nested replies
- Idempotence and non-mutation of the flat store
- Cycle and depth guards
"""

import pytest

from gread_feed.schemas.activity import ActivityRecord
from gread_feed.services.decoder import decode_page
from gread_feed.services.moderation import ModerationFilter
from gread_feed.services.thread_reconstructor import (
    iter_thread,
    ordered_children,
    reconstruct,
    resolve_parent_id,
)


def ids(records):
    return [record.id for record in records]


def find(forest, record_id):
    for record, _ in iter_thread(forest):
        if record.id == record_id:
            return record
    return None


class TestParentResolution:
    """Test comment parent lookup."""

    def test_prefers_item_id(self):
        lookup = {1: ActivityRecord(id=1), 2: ActivityRecord(id=2)}
        comment = ActivityRecord(id=3, type="activity_comment", item_id=1, secondary_item_id=2)

        assert resolve_parent_id(comment, lookup) == 1

    def test_falls_back_to_secondary_item_id(self):
        lookup = {5: ActivityRecord(id=5)}
        comment = ActivityRecord(id=3, type="activity_comment", item_id=99, secondary_item_id=5)

        assert resolve_parent_id(comment, lookup) == 5

    def test_never_self(self):
        comment = ActivityRecord(id=3, type="activity_comment", item_id=3, secondary_item_id=None)

        assert resolve_parent_id(comment, {3: comment}) is None


class TestReconstruct:
    """Test forest building."""

    def test_fallback_parent_attaches_under_post(self, make_post, make_comment):
        store = decode_page([make_post(5), make_comment(10, item_id=99, secondary_item_id=5)])

        forest = reconstruct(store, ModerationFilter())

        assert ids(forest) == [5]
        assert ids(forest[0].children) == [10]

    def test_orphan_excluded_everywhere(self, make_post, make_comment):
        store = decode_page([make_post(1), make_comment(10, item_id=98, secondary_item_id=99)])

        forest = reconstruct(store, ModerationFilter())

        assert ids(forest) == [1]
        assert forest[0].children == []
        assert find(forest, 10) is None

    def test_only_posts_at_top_level(self, make_post, make_comment):
        store = decode_page([
            make_post(1),
            make_comment(2, item_id=1),
            {"id": 3, "type": "new_member", "user_id": 4},
            make_post(4),
        ])

        forest = reconstruct(store, ModerationFilter())

        assert ids(forest) == [1, 4]

    def test_preserves_flat_store_order(self, make_post):
        store = decode_page([make_post(30), make_post(10), make_post(20)])

        assert ids(reconstruct(store, ModerationFilter())) == [30, 10, 20]

    def test_blocked_post_hidden_and_restored(self, make_post):
        store = decode_page([make_post(1, user_id=7), make_post(2, user_id=8)])

        blocked = reconstruct(store, ModerationFilter.from_ids(blocked=[7]))
        unblocked = reconstruct(store, ModerationFilter())

        assert ids(blocked) == [2]
        assert ids(unblocked) == [1, 2]

    def test_muted_post_hidden(self, make_post):
        store = decode_page([make_post(1, user_id=7), make_post(2, user_id=8)])

        forest = reconstruct(store, ModerationFilter.from_ids(muted=[8]))

        assert ids(forest) == [1]

    def test_unattributed_post_visible(self, make_post):
        store = decode_page([make_post(1, user_id=None)])

        forest = reconstruct(store, ModerationFilter.from_ids(blocked=[1], muted=[2]))

        assert ids(forest) == [1]

    def test_comments_from_blocked_authors_kept(self, make_post, make_comment):
        """Moderation applies to top-level posts, not nested comments."""
        store = decode_page([make_post(1, user_id=1), make_comment(2, item_id=1, user_id=7)])

        forest = reconstruct(store, ModerationFilter.from_ids(blocked=[7]))

        assert ids(forest[0].children) == [2]

    def test_nested_replies(self, make_post, make_comment):
        store = decode_page([
            make_post(1),
            make_comment(2, item_id=1),
            make_comment(3, item_id=2),
            make_comment(4, item_id=3),
        ])

        forest = reconstruct(store, ModerationFilter())

        assert [(r.id, level) for r, level in iter_thread(forest)] == [
            (1, 0), (2, 1), (3, 2), (4, 3),
        ]

    def test_child_arriving_before_parent(self, make_post, make_comment):
        store = decode_page([make_comment(3, item_id=2), make_comment(2, item_id=1), make_post(1)])

        forest = reconstruct(store, ModerationFilter())

        assert ids(forest[0].children) == [2]
        assert ids(forest[0].children[0].children) == [3]

    def test_idempotent(self, make_post, make_comment):
        store = decode_page([
            make_post(1),
            make_comment(2, item_id=1, date="2024-01-02"),
            make_comment(3, item_id=1, date="2024-01-01"),
            make_post(4, user_id=7),
        ])
        moderation = ModerationFilter.from_ids(muted=[7])

        first = reconstruct(store, moderation)
        second = reconstruct(store, moderation)

        assert first == second
        assert first[0] is not second[0]

    def test_flat_store_not_mutated(self, make_post, make_comment):
        store = decode_page([make_post(1), make_comment(2, item_id=1)])

        reconstruct(store, ModerationFilter())
        reconstruct(store, ModerationFilter())

        assert all(record.children == [] for record in store)

    def test_rebuild_does_not_duplicate_children(self, make_post, make_comment):
        store = decode_page([make_post(1), make_comment(2, item_id=1)])

        reconstruct(store, ModerationFilter())
        forest = reconstruct(store, ModerationFilter())

        assert ids(forest[0].children) == [2]

    def test_empty_store(self):
        assert reconstruct([], ModerationFilter()) == []


class TestCycleGuards:
    """Malformed parent links must not hang or leak into the forest."""

    def test_two_comment_cycle_excluded(self, make_post, make_comment):
        store = decode_page([
            make_post(1),
            make_comment(10, item_id=11),
            make_comment(11, item_id=10),
        ])

        forest = reconstruct(store, ModerationFilter())

        assert ids(forest) == [1]
        assert forest[0].children == []
        assert list(iter_thread(forest)) == [(forest[0], 0)]

    def test_depth_bound(self, make_post, make_comment):
        raw = [make_post(1)] + [make_comment(i, item_id=i - 1) for i in range(2, 8)]
        store = decode_page(raw)

        forest = reconstruct(store, ModerationFilter(), max_depth=3)

        assert [r.id for r, _ in iter_thread(forest)] == [1, 2, 3, 4]


class TestOrdering:
    """Test display ordering of children."""

    def test_children_sorted_by_date_string(self, make_post, make_comment):
        store = decode_page([
            make_post(1),
            make_comment(2, item_id=1, date="2024-01-02"),
            make_comment(3, item_id=1, date="2024-01-01"),
            make_comment(4, item_id=1, date="2024-01-03"),
        ])

        forest = reconstruct(store, ModerationFilter())

        assert ids(forest[0].children) == [2, 3, 4]
        assert [c.date_recorded for c in ordered_children(forest[0])] == [
            "2024-01-01", "2024-01-02", "2024-01-03",
        ]

    def test_missing_date_sorts_first_and_ties_keep_arrival(self, make_post, make_comment):
        store = decode_page([
            make_post(1),
            make_comment(2, item_id=1, date="2024-01-01"),
            make_comment(3, item_id=1, date="2024-01-01"),
            make_comment(4, item_id=1, date=None),
        ])

        forest = reconstruct(store, ModerationFilter())

        assert ids(ordered_children(forest[0])) == [4, 2, 3]

    @pytest.mark.parametrize("max_depth,expected", [(0, [1]), (1, [1, 2])])
    def test_iter_thread_respects_max_depth(self, make_post, make_comment, max_depth, expected):
        store = decode_page([make_post(1), make_comment(2, item_id=1), make_comment(3, item_id=2)])
        forest = reconstruct(store, ModerationFilter())

        assert [r.id for r, _ in iter_thread(forest, max_depth=max_depth)] == expected
