"""Lark docx block model, as exported from the host page.

The block tree is read-only input. Blocks keep the raw host ``snapshot``
mapping and expose typed accessors for the kind-specific fields the
transformer needs.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

HEADING_PATTERN = re.compile(r'^heading([1-9])$')


class BlockType(str, Enum):
    """Block kinds.

    See https://open.feishu.cn/document/client-docs/docs-add-on/06-data-structure/BlockType
    """
    PAGE = "page"
    BITABLE = "bitable"
    CALLOUT = "callout"
    CHAT_CARD = "chat_card"
    CODE = "code"
    DIAGRAM = "diagram"
    DIVIDER = "divider"
    FILE = "file"
    GRID = "grid"
    GRID_COLUMN = "grid_column"
    HEADING1 = "heading1"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    HEADING4 = "heading4"
    HEADING5 = "heading5"
    HEADING6 = "heading6"
    HEADING7 = "heading7"
    HEADING8 = "heading8"
    HEADING9 = "heading9"
    IFRAME = "iframe"
    IMAGE = "image"
    ISV = "isv"
    MINDNOTE = "mindnote"
    BULLET = "bullet"
    ORDERED = "ordered"
    TODO = "todo"
    QUOTE = "quote"
    QUOTE_CONTAINER = "quote_container"
    SHEET = "sheet"
    TABLE = "table"
    CELL = "table_cell"
    TEXT = "text"
    VIEW = "view"
    SYNCED_SOURCE = "synced_source"
    WHITEBOARD = "whiteboard"
    FALLBACK = "fallback"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BlockType":
        """Map a host type string to a BlockType; unknown values become FALLBACK."""
        try:
            return cls(value)
        except ValueError:
            return cls.FALLBACK


@dataclass
class Operation:
    """One styled run of inserted text."""
    insert: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        return cls(insert=data.get('insert', ''), attributes=dict(data.get('attributes') or {}))


@dataclass
class ZoneState:
    """Packaged text content of a block: full plain text plus its runs."""
    all_text: str = ""
    ops: List[Operation] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ZoneState":
        content = data.get('content') or {}
        return cls(
            all_text=data.get('allText', ''),
            ops=[Operation.from_dict(op) for op in content.get('ops', [])]
        )


@dataclass
class ImageSources:
    """Where the bytes of an image can be read from.

    ``content`` is set when the host hands over encoded bytes directly
    (whiteboard snapshots); otherwise ``src`` is read by the exporter.
    """
    src: str = ""
    origin_src: str = ""
    content: Optional[bytes] = None


@dataclass
class Bitmap:
    """Raw RGBA pixel buffer returned by the host whiteboard renderer."""
    width: int
    height: int
    pixels: bytes


@dataclass
class ImageInfo:
    token: str
    name: str
    caption: str = ""
    width: int = 0
    height: int = 0
    mime_type: str = ""


@dataclass
class FileInfo:
    token: str
    name: str


ImageFetcher = Callable[[str], Awaitable[Optional[ImageSources]]]
# (token, cancel_token) -> bytes
FileFetcher = Callable[..., Awaitable[bytes]]
BitmapFetcher = Callable[[], Awaitable[Optional[Bitmap]]]


@dataclass
class Block:
    """A node of the docx block tree."""
    type: BlockType
    children: List["Block"] = field(default_factory=list)
    zone_state: Optional[ZoneState] = None
    snapshot: Dict[str, Any] = field(default_factory=dict)
    language: str = ""
    image_fetcher: Optional[ImageFetcher] = field(default=None, repr=False, compare=False)
    file_fetcher: Optional[FileFetcher] = field(default=None, repr=False, compare=False)
    bitmap_fetcher: Optional[BitmapFetcher] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Block":
        """Build a block tree from the host JSON shape."""
        snapshot = dict(data.get('snapshot') or {})
        block_type = BlockType.parse(data.get('type') or snapshot.get('type'))
        zone_state = data.get('zoneState')

        return cls(
            type=block_type,
            children=[cls.from_dict(child) for child in data.get('children') or []],
            zone_state=ZoneState.from_dict(zone_state) if zone_state else None,
            snapshot=snapshot,
            language=data.get('language') or snapshot.get('language') or ""
        )

    def walk(self):
        """Yield this block and all descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    @property
    def is_pending(self) -> bool:
        return self.snapshot.get('type') == 'pending'

    @property
    def ops(self) -> List[Operation]:
        return self.zone_state.ops if self.zone_state else []

    @property
    def all_text(self) -> str:
        return self.zone_state.all_text if self.zone_state else ""

    @property
    def depth(self) -> int:
        """Heading depth from the kind's numeric suffix (0 for non-headings)."""
        match = HEADING_PATTERN.match(self.type.value)
        return int(match.group(1)) if match else 0

    @property
    def seq(self) -> str:
        return str(self.snapshot.get('seq', ''))

    @property
    def done(self) -> bool:
        return bool(self.snapshot.get('done'))

    @property
    def columns_id(self) -> List[str]:
        return list(self.snapshot.get('columns_id') or [])

    @property
    def image(self) -> ImageInfo:
        data = self.snapshot.get('image') or {}
        caption = (data.get('caption') or {}).get('text') or {}
        texts = (caption.get('initialAttributedTexts') or {}).get('text') or {}
        return ImageInfo(
            token=data.get('token', ''),
            name=data.get('name', ''),
            caption=texts.get('0', ''),
            width=data.get('width', 0),
            height=data.get('height', 0),
            mime_type=data.get('mimeType', '')
        )

    @property
    def file(self) -> FileInfo:
        data = self.snapshot.get('file') or {}
        return FileInfo(token=data.get('token', ''), name=data.get('name', ''))

    @property
    def whiteboard_token(self) -> str:
        return (self.snapshot.get('whiteboard') or {}).get('token', '')
