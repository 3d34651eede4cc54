"""Markdown AST nodes (mdast shape) and content-category predicates."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, ClassVar, Optional, Union

from lark_md.blocks import ImageSources

SEQ_AUTO = "auto"


class Node:
    """Base class of all mdast nodes."""
    type: ClassVar[str] = ""


class Parent(Node):
    """A node that owns ``children``."""


class Literal(Node):
    """A node that owns a string ``value``."""


class MediaReference(Node):
    """A node whose ``url`` points at fetched media once resolved.

    ``url`` starts out empty; ``resolve`` moves the node to resolved exactly
    once.
    """

    @property
    def resolved(self) -> bool:
        return bool(self.url)

    def resolve(self, url: str):
        if self.resolved:
            raise ValueError(f"{self.type} already resolved to {self.url!r}")
        self.url = url


@dataclass
class ImageData:
    name: str
    token: str
    fetch_sources: Callable[[], Awaitable[Optional[ImageSources]]] = field(repr=False)


@dataclass
class FileData:
    name: str
    token: str
    # (cancel_token) -> bytes
    fetch: Callable[..., Awaitable[bytes]] = field(repr=False)


@dataclass
class ListItemData:
    seq: Union[int, str]


# Phrasing content


@dataclass
class Text(Literal):
    value: str = ""
    type: ClassVar[str] = "text"


@dataclass
class InlineCode(Literal):
    value: str = ""
    type: ClassVar[str] = "inlineCode"


@dataclass
class InlineMath(Literal):
    value: str = ""
    type: ClassVar[str] = "inlineMath"


@dataclass
class Emphasis(Parent):
    children: list[Node] = field(default_factory=list)
    type: ClassVar[str] = "emphasis"


@dataclass
class Strong(Parent):
    children: list[Node] = field(default_factory=list)
    type: ClassVar[str] = "strong"


@dataclass
class Delete(Parent):
    children: list[Node] = field(default_factory=list)
    type: ClassVar[str] = "delete"


@dataclass
class Link(Parent, MediaReference):
    url: str = ""
    children: list[Node] = field(default_factory=list)
    title: Optional[str] = None
    data: Optional[FileData] = field(default=None, compare=False)
    type: ClassVar[str] = "link"


@dataclass
class Image(MediaReference):
    url: str = ""
    alt: str = ""
    title: Optional[str] = None
    data: Optional[ImageData] = field(default=None, compare=False)
    type: ClassVar[str] = "image"


# Block content


@dataclass
class Root(Parent):
    children: list[Node] = field(default_factory=list)
    type: ClassVar[str] = "root"


@dataclass
class Paragraph(Parent):
    children: list[Node] = field(default_factory=list)
    type: ClassVar[str] = "paragraph"


@dataclass
class Heading(Parent):
    depth: int = 1
    children: list[Node] = field(default_factory=list)
    type: ClassVar[str] = "heading"


@dataclass
class Code(Literal):
    value: str = ""
    lang: Optional[str] = None
    type: ClassVar[str] = "code"


@dataclass
class Blockquote(Parent):
    children: list[Node] = field(default_factory=list)
    type: ClassVar[str] = "blockquote"


@dataclass
class ListItem(Parent):
    children: list[Node] = field(default_factory=list)
    checked: Optional[bool] = None
    spread: bool = False
    data: Optional[ListItemData] = None
    type: ClassVar[str] = "listItem"

    @property
    def seq(self) -> Optional[Union[int, str]]:
        return self.data.seq if self.data else None


@dataclass
class List(Parent):
    children: list[ListItem] = field(default_factory=list)
    ordered: Optional[bool] = None
    start: Optional[int] = None
    spread: bool = False
    type: ClassVar[str] = "list"


@dataclass
class Table(Parent):
    children: list["TableRow"] = field(default_factory=list)
    align: Optional[list[Optional[str]]] = None
    type: ClassVar[str] = "table"


@dataclass
class TableRow(Parent):
    children: list["TableCell"] = field(default_factory=list)
    type: ClassVar[str] = "tableRow"


@dataclass
class TableCell(Parent):
    children: list[Node] = field(default_factory=list)
    type: ClassVar[str] = "tableCell"


@dataclass
class ThematicBreak(Node):
    type: ClassVar[str] = "thematicBreak"


PHRASING_TYPES = frozenset({
    'break', 'delete', 'emphasis', 'footnoteReference', 'html', 'image',
    'imageReference', 'inlineCode', 'inlineMath', 'link', 'linkReference',
    'strong', 'text',
})

BLOCK_TYPES = frozenset({
    'blockquote', 'code', 'heading', 'html', 'list', 'math', 'paragraph',
    'table', 'thematicBreak',
})

DEFINITION_TYPES = frozenset({'definition', 'footnoteDefinition'})


def is_parent(node: Any) -> bool:
    return isinstance(node, Parent)


def is_phrasing_content(node: Node) -> bool:
    return node.type in PHRASING_TYPES


def is_block_content(node: Node) -> bool:
    return node.type in BLOCK_TYPES


def is_definition_content(node: Node) -> bool:
    return node.type in DEFINITION_TYPES


def is_blockquote_content(node: Node) -> bool:
    return is_block_content(node) or is_definition_content(node)


def is_root_content(node: Node) -> bool:
    return node.type != 'root'


def is_table_cell(node: Node) -> bool:
    return node.type == 'tableCell'
