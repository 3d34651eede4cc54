"""Document models for lark-md."""

from dataclasses import dataclass, field
from typing import List, Optional

from lark_md.blocks import Block, BlockType
from lark_md.mdast import Root
from lark_md.transformer import TransformResult, Transformer


@dataclass
class Document:
    """A docx page as exported from the host, plus its metadata."""
    root: Optional[Block]
    title: str = "doc"
    language: str = "en"

    def is_supported(self) -> bool:
        """Check if the root is a docx page."""
        return self.root is not None and self.root.type == BlockType.PAGE

    def is_ready(self) -> bool:
        """Check that no top-level block is still loading."""
        return self.root is not None and not any(block.is_pending for block in self.root.children)

    def pending_blocks(self) -> List[Block]:
        if self.root is None:
            return []
        return [block for block in self.root.children if block.is_pending]

    def into_markdown_ast(self, transformer: Optional[Transformer] = None) -> TransformResult:
        """Transform the page into a Markdown AST (empty root if unsupported)."""
        if not self.is_supported():
            return TransformResult(root=Root())
        return (transformer or Transformer()).transform(self.root)


@dataclass
class MediaFailure:
    """A referenced image or file that could not be downloaded."""
    kind: str               # image or file
    name: str
    error: str


@dataclass
class ExportResult:
    """Result of an export: a blob plus its suggested file name."""
    filename: str
    content: bytes
    markdown: str
    failures: List[MediaFailure] = field(default_factory=list)
    cancelled: List[str] = field(default_factory=list)
    media_count: int = 0

    @property
    def is_archive(self) -> bool:
        return self.filename.endswith('.zip')
