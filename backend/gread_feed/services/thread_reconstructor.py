"""
Thread reconstruction: flat activity store to a forest of threaded posts.

The backend returns posts and comments intermixed in one flat, server
ordered list. Comments point at their parent through two candidate fields
(item_id, then secondary_item_id). reconstruct() rebuilds the whole forest
on every call from fresh copies of the stored records, so a moderation
change or a new page never leaves stale children behind.

Records are addressed by id through a lookup table; there are no parent
back-pointers. Ancestor chains are walked with a visited set and a depth
bound, so malformed data with parent cycles cannot loop forever.
"""

import logging
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from gread_feed.schemas.activity import ActivityRecord
from gread_feed.services.moderation import ModerationFilter

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64


def resolve_parent_id(
    record: ActivityRecord,
    lookup: Dict[int, ActivityRecord]
) -> Optional[int]:
    """
    Resolve a comment's parent id.

    item_id wins when it names a known record, otherwise secondary_item_id
    is tried. A record never parents itself. None means orphaned.
    """
    for candidate in (record.item_id, record.secondary_item_id):
        if candidate is not None and candidate != record.id and candidate in lookup:
            return candidate
    return None


def _ancestry_is_bounded(
    record_id: int,
    parents: Dict[int, Optional[int]],
    max_depth: int
) -> bool:
    """
    Walk up from `record_id` until a non-comment root or an orphan.

    Returns False when the chain revisits a record (cycle) or grows past
    max_depth.
    """
    visited = {record_id}
    current = parents[record_id]
    depth = 1

    while current is not None:
        if current in visited:
            return False
        if depth > max_depth:
            return False
        visited.add(current)

        if current not in parents:
            # Reached a post (or another non-comment record)
            return True

        current = parents[current]
        depth += 1

    return True


def reconstruct(
    flat_store: Sequence[ActivityRecord],
    moderation: ModerationFilter,
    max_depth: int = DEFAULT_MAX_DEPTH
) -> List[ActivityRecord]:
    """
    Build the rendered forest from the accumulated flat store.

    Steps:
    1. Copy every record with empty children into an id lookup table
    2. Resolve each comment's parent (item_id, else secondary_item_id)
    3. Attach comments to their parent copy in flat-store order; orphans,
       cycles and over-deep chains are left out
    4. Keep activity_update records whose author passes `moderation`, in
       flat-store order

    Only top-level posts are moderated; nested comments are kept whoever
    wrote them. Children are attached in arrival order; use
    ordered_children() for display order.

    Args:
        flat_store: Deduplicated records in arrival order
        moderation: Current moderation snapshot
        max_depth: Deepest comment nesting kept

    Returns:
        Top-level posts, each a fresh copy carrying its comment tree.
        Records in `flat_store` are not modified.
    """
    lookup: Dict[int, ActivityRecord] = {}
    for record in flat_store:
        if record.id not in lookup:
            lookup[record.id] = record.model_copy(update={"children": []})

    parents: Dict[int, Optional[int]] = {
        record_id: resolve_parent_id(node, lookup)
        for record_id, node in lookup.items()
        if node.is_comment
    }

    orphaned = 0
    cyclic = 0
    for record_id, parent_id in parents.items():
        if parent_id is None:
            orphaned += 1
            continue
        if not _ancestry_is_bounded(record_id, parents, max_depth):
            cyclic += 1
            continue
        lookup[parent_id].children.append(lookup[record_id])

    if orphaned or cyclic:
        logger.debug(
            f"Excluded {orphaned} orphaned and {cyclic} cyclic/over-deep comments"
        )

    return [
        node
        for node in lookup.values()
        if node.is_post and moderation.is_visible(node.user_id)
    ]


def ordered_children(record: ActivityRecord) -> List[ActivityRecord]:
    """
    Children in display order: oldest first by date_recorded.

    Timestamps are compared as plain strings; a missing one sorts first.
    Ties keep arrival order.
    """
    return sorted(record.children, key=lambda child: child.date_recorded or "")


def iter_thread(
    forest: Sequence[ActivityRecord],
    max_depth: int = DEFAULT_MAX_DEPTH
) -> Iterator[Tuple[ActivityRecord, int]]:
    """
    Yield (record, indent_level) pairs in display order.

    Top-level posts have level 0, their comments level 1, replies level 2
    and so on. Levels beyond max_depth are not descended into.
    """
    for post in forest:
        stack: List[Tuple[ActivityRecord, int]] = [(post, 0)]
        while stack:
            record, level = stack.pop()
            yield record, level
            if level < max_depth:
                for child in reversed(ordered_children(record)):
                    stack.append((child, level + 1))
