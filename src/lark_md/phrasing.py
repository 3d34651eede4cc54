"""Compile styled text runs into nested inline Markdown nodes."""

from typing import Dict, List, Sequence
from urllib.parse import unquote

from lark_md.blocks import Operation
from lark_md.mdast import Delete, Emphasis, InlineCode, InlineMath, Link, Node, Strong, Text
from lark_md.merge import merge_phrasing_contents

# Attribute name -> mark (node type) it wraps the run in.
MARK_ATTRIBUTES = {
    'italic': 'emphasis',
    'bold': 'strong',
    'strikethrough': 'delete',
    'link': 'link',
}


def _marks_of(operation: Operation) -> List[str]:
    return [MARK_ATTRIBUTES[name] for name in operation.attributes if name in MARK_ATTRIBUTES]


def _span_length(operations: Sequence[Operation], marks: Sequence[List[str]], index: int, mark: str) -> int:
    """Characters covered by the contiguous run of operations around ``index`` carrying ``mark``."""
    length = 0
    start = index
    while start >= 0 and mark in marks[start]:
        length += len(operations[start].insert)
        start -= 1
    end = index + 1
    while end < len(marks) and mark in marks[end]:
        length += len(operations[end].insert)
        end += 1
    return length


def _leaf(operation: Operation) -> Node:
    attributes = operation.attributes
    if 'inlineCode' in attributes:
        return InlineCode(value=operation.insert)

    # The equation source ends with a synthetic terminator.
    equation = attributes.get('equation')
    if isinstance(equation, str) and len(equation) > 1:
        return InlineMath(value=equation[:-1])

    return Text(value=operation.insert)


def _wrap(mark: str, node: Node, attributes: Dict) -> Node:
    if mark == 'link':
        return Link(url=unquote(str(attributes.get('link') or '')), children=[node])
    if mark == 'emphasis':
        return Emphasis(children=[node])
    if mark == 'strong':
        return Strong(children=[node])
    return Delete(children=[node])


def compile_runs(ops: Sequence[Operation]) -> List[Node]:
    """Turn a block's operations into phrasing content.

    Marks spanning more text become outer wrappers: for each operation the
    marks are sorted by the length of the contiguous run of operations that
    share them, shortest (innermost) first. Ties keep attribute order.
    Adjacent nodes of the same kind are merged afterwards.
    """
    operations = [op for op in ops if not op.attributes.get('fixEnter')]
    marks = [_marks_of(op) for op in operations]

    nodes = []
    for index, operation in enumerate(operations):
        ordered_marks = sorted(
            marks[index],
            key=lambda mark: _span_length(operations, marks, index, mark)
        )

        node = _leaf(operation)
        for mark in ordered_marks:
            node = _wrap(mark, node, operation.attributes)
        nodes.append(node)

    return merge_phrasing_contents(nodes)
