"""Coalescing of adjacent nodes.

One generic algorithm serves two purposes: merging inline nodes that carry
the same mark, and grouping consecutive list items into lists.
"""

from dataclasses import replace
from typing import Callable, List, Sequence, TypeVar

from lark_md.mdast import (
    SEQ_AUTO,
    List as ListNode,
    ListItem,
    Node,
    is_parent,
)

T = TypeVar('T')

MERGEABLE_PHRASING_TYPES = frozenset({'emphasis', 'strong', 'delete', 'text', 'inlineCode'})


def merge_adjacent(
    items: Sequence[T],
    same_group: Callable[[T, T], bool],
    combine: Callable[[List[T]], T],
) -> List[T]:
    """Reduce every maximal run of same-group neighbours with ``combine``.

    Each item is compared to its immediate predecessor only, so a run may
    chain (1, 2, 3 under a "+1" rule) without every member matching the
    first one. Runs of a single item are passed through unchanged.
    """
    merged: List[T] = []
    index = 0
    while index < len(items):
        next_index = index + 1
        while next_index < len(items) and same_group(items[next_index - 1], items[next_index]):
            next_index += 1

        run = list(items[index:next_index])
        merged.append(combine(run) if len(run) > 1 else run[0])
        index = next_index

    return merged


# Phrasing content


def _same_phrasing(node: Node, next_node: Node) -> bool:
    if node.type == 'link' and next_node.type == 'link':
        return node.url == next_node.url

    if node.type in MERGEABLE_PHRASING_TYPES:
        return node.type == next_node.type

    return False


def _combine_phrasing(nodes: List[Node]) -> Node:
    head = nodes[0]
    if is_parent(head):
        # Concatenating two wrappers can put equal grandchildren side by side.
        children = [child for node in nodes for child in node.children]
        return replace(head, children=merge_phrasing_contents(children))

    return replace(head, value=''.join(node.value for node in nodes))


def merge_phrasing_contents(nodes: Sequence[Node]) -> List[Node]:
    """Merge adjacent inline nodes of the same kind (links only on equal URLs)."""
    return merge_adjacent(nodes, _same_phrasing, _combine_phrasing)


# List items


def list_item_kind(item: ListItem) -> str:
    if isinstance(item.checked, bool):
        return 'todo'
    if item.data is not None and item.seq is not None:
        return 'ordered'
    return 'bullet'


def is_compatible_seq(seq, next_seq) -> bool:
    """Ordered items continue each other on ``n, n + 1`` or when either is auto."""
    if seq == SEQ_AUTO or next_seq == SEQ_AUTO:
        return True
    return next_seq == seq + 1


def _same_list(node: Node, next_node: Node) -> bool:
    if not (isinstance(node, ListItem) and isinstance(next_node, ListItem)):
        return False

    kind = list_item_kind(node)
    if kind != list_item_kind(next_node):
        return False
    if kind == 'ordered':
        return is_compatible_seq(node.seq, next_node.seq)
    return True


def _list_start(items: List[ListItem]) -> int:
    for offset, item in enumerate(items):
        if item.seq != SEQ_AUTO:
            return max(item.seq - offset, 0)
    return 1


def _combine_list(nodes: List[ListItem]) -> ListNode:
    if list_item_kind(nodes[0]) == 'ordered':
        return ListNode(children=list(nodes), ordered=True, start=_list_start(nodes))
    return ListNode(children=list(nodes))


def merge_list_items(nodes: Sequence[Node]) -> List[Node]:
    """Group consecutive compatible list items into ``list`` nodes.

    A lone list item still becomes a one-item list, since ``listItem`` is
    only valid inside a list.
    """
    return [
        _combine_list([node]) if isinstance(node, ListItem) else node
        for node in merge_adjacent(nodes, _same_list, _combine_list)
    ]
