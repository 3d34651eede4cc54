"""lark-md - Export Lark docx documents as Markdown."""

__version__ = "0.1.0"

from lark_md.converter import MarkdownConverter
from lark_md.document import Document, ExportResult
from lark_md.exporter import ArchiveAssembler, export_document
from lark_md.transformer import TransformResult, Transformer

__all__ = [
    "ArchiveAssembler",
    "Document",
    "ExportResult",
    "MarkdownConverter",
    "TransformResult",
    "Transformer",
    "export_document",
]
