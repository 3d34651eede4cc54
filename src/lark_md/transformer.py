"""Compile a docx block tree into a Markdown AST."""

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from loguru import logger

from lark_md.blocks import Block, BlockType
from lark_md.mdast import (
    SEQ_AUTO,
    Blockquote,
    Code,
    FileData,
    Heading,
    Image,
    ImageData,
    Link,
    ListItem,
    ListItemData,
    Node,
    Paragraph,
    Root,
    Table,
    TableCell,
    TableRow,
    Text,
    ThematicBreak,
    is_block_content,
    is_blockquote_content,
    is_phrasing_content,
    is_root_content,
    is_table_cell,
)
from lark_md.media import fetch_image_sources, fetch_whiteboard_sources, media_filename
from lark_md.merge import merge_list_items
from lark_md.phrasing import compile_runs

NUMERIC_SEQ = re.compile(r'^\d+$')

HEADING_TYPES = frozenset({
    BlockType.HEADING1, BlockType.HEADING2, BlockType.HEADING3,
    BlockType.HEADING4, BlockType.HEADING5, BlockType.HEADING6,
})

PARAGRAPH_TYPES = frozenset({
    BlockType.TEXT, BlockType.HEADING7, BlockType.HEADING8, BlockType.HEADING9,
})

LIST_ITEM_TYPES = frozenset({BlockType.BULLET, BlockType.ORDERED, BlockType.TODO})

QUOTE_TYPES = frozenset({BlockType.QUOTE_CONTAINER, BlockType.CALLOUT})


@dataclass
class TransformResult:
    root: Root
    images: List[Image] = field(default_factory=list)
    files: List[Link] = field(default_factory=list)


def strip_synthetic(text: str) -> str:
    """Drop the synthetic line terminator the editor appends to block text."""
    return text[:-1] if text.endswith('\n') else text


def parse_seq(raw: str):
    return int(raw) if NUMERIC_SEQ.match(raw) else SEQ_AUTO


def flatten_synced(blocks: Iterable[Block]) -> List[Block]:
    """Splice the children of synced-source blocks into their parent's list."""
    flattened = []
    for block in blocks:
        if block.type == BlockType.SYNCED_SOURCE:
            flattened.extend(flatten_synced(block.children))
        else:
            flattened.append(block)
    return flattened


class Transformer:
    """Walk a block tree and build the matching mdast tree.

    The transformer tracks the parent node being filled (images are only
    wrapped in a paragraph outside table cells) and collects the image and
    file nodes it creates. That state lives for a single ``transform`` call.
    """

    def __init__(self, whiteboard: bool = False):
        self.whiteboard = whiteboard
        self._parent: Optional[Node] = None
        self._images: List[Image] = []
        self._files: List[Link] = []

    def _reset(self):
        self._parent = None
        self._images = []
        self._files = []

    def transform(self, block: Block) -> TransformResult:
        """Transform ``block`` (normally the page block) into a Markdown root."""
        self._reset()
        try:
            node = self._transform(block)
            if node is None:
                root = Root()
            elif isinstance(node, Root):
                root = node
            else:
                root = Root(children=merge_list_items([node]))

            logger.debug("Transformed {} block into {} top-level nodes ({} images, {} files)",
                         block.type.value, len(root.children), len(self._images), len(self._files))
            return TransformResult(root=root, images=self._images, files=self._files)
        finally:
            self._reset()

    def _transform_parent(self, block: Block, node: Node,
                          finish: Callable[[List[Node]], List[Node]]) -> Node:
        previous = self._parent
        self._parent = node
        try:
            children = [self._transform(child) for child in flatten_synced(block.children)]
            node.children = finish([child for child in children if child is not None])
        finally:
            self._parent = previous
        return node

    def _wrap_inline(self, node: Node) -> Node:
        if isinstance(self._parent, TableCell):
            return node
        return Paragraph(children=[node])

    def _transform(self, block: Block) -> Optional[Node]:
        block_type = block.type

        if block_type == BlockType.PAGE:
            return self._transform_parent(
                block, Root(),
                lambda nodes: [node for node in merge_list_items(nodes) if is_root_content(node)]
            )

        elif block_type in QUOTE_TYPES:
            return self._transform_parent(
                block, Blockquote(),
                lambda nodes: [node for node in merge_list_items(nodes) if is_blockquote_content(node)]
            )

        elif block_type == BlockType.DIVIDER:
            return ThematicBreak()

        elif block_type in HEADING_TYPES:
            return Heading(depth=block.depth, children=compile_runs(block.ops))

        elif block_type in PARAGRAPH_TYPES:
            return Paragraph(children=compile_runs(block.ops))

        elif block_type == BlockType.CODE:
            return Code(lang=block.language.lower() or None, value=strip_synthetic(block.all_text))

        elif block_type in LIST_ITEM_TYPES:
            return self._transform_list_item(block)

        elif block_type == BlockType.IMAGE:
            return self._transform_image(block)

        elif block_type == BlockType.WHITEBOARD:
            if not self.whiteboard:
                logger.debug("Skipping whiteboard block (whiteboard export disabled)")
                return None
            return self._transform_whiteboard(block)

        elif block_type == BlockType.FILE:
            return self._transform_file(block)

        elif block_type == BlockType.TABLE:
            return self._transform_table(block)

        elif block_type == BlockType.CELL:
            return self._transform_parent(
                block, TableCell(),
                lambda nodes: [
                    child
                    for node in nodes
                    for child in (node.children if isinstance(node, Paragraph) else [node])
                    if is_phrasing_content(child)
                ]
            )

        logger.debug("Dropping unsupported block: {}", block_type.value)
        return None

    def _transform_list_item(self, block: Block) -> ListItem:
        item = ListItem(spread=False)
        if block.type == BlockType.TODO:
            item.checked = block.done
        elif block.type == BlockType.ORDERED:
            item.data = ListItemData(seq=parse_seq(block.seq))

        paragraph = Paragraph(children=compile_runs(block.ops))
        return self._transform_parent(
            block, item,
            lambda nodes: [paragraph] + [node for node in merge_list_items(nodes) if is_block_content(node)]
        )

    def _transform_image(self, block: Block) -> Node:
        info = block.image
        image = Image(
            url="",
            alt=strip_synthetic(info.caption),
            data=ImageData(
                name=media_filename(info.name or info.token, info.mime_type),
                token=info.token,
                fetch_sources=lambda: fetch_image_sources(block)
            )
        )
        self._images.append(image)
        return self._wrap_inline(image)

    def _transform_whiteboard(self, block: Block) -> Node:
        token = block.whiteboard_token or f"whiteboard-{len(self._images) + 1}"
        image = Image(
            url="",
            alt="",
            data=ImageData(
                name=f"{token}.png",
                token=token,
                fetch_sources=lambda: fetch_whiteboard_sources(block)
            )
        )
        self._images.append(image)
        return self._wrap_inline(image)

    def _transform_file(self, block: Block) -> Node:
        info = block.file

        async def fetch(cancel=None) -> bytes:
            if block.file_fetcher is None:
                raise LookupError(f"No source for file {info.name or info.token}")
            return await block.file_fetcher(info.token, cancel)

        link = Link(
            url="",
            children=[Text(value=info.name)],
            data=FileData(name=media_filename(info.name or info.token, fallback="file"),
                          token=info.token, fetch=fetch)
        )
        self._files.append(link)
        return self._wrap_inline(link)

    def _transform_table(self, block: Block) -> Table:
        columns = len(block.columns_id)

        def rows(nodes: List[Node]) -> List[Node]:
            cells = [node for node in nodes if is_table_cell(node)]
            if columns == 0:
                return []
            return [TableRow(children=cells[i:i + columns]) for i in range(0, len(cells), columns)]

        return self._transform_parent(block, Table(), rows)
