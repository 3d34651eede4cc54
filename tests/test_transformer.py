"""Tests for the block tree to Markdown AST transformer."""

from factories import block, file, image, op, page, table, text

from lark_md.mdast import (
    SEQ_AUTO,
    Blockquote,
    Code,
    Heading,
    Image,
    Link,
    List,
    ListItem,
    Paragraph,
    Root,
    Table,
    TableCell,
    TableRow,
    Text,
    ThematicBreak,
)
from lark_md.transformer import Transformer, flatten_synced, parse_seq, strip_synthetic


def transform(root, **options):
    return Transformer(**options).transform(root)


class TestHelpers:
    """Tests for transformer helpers."""

    def test_strip_synthetic(self):
        assert strip_synthetic("const\n") == "const"
        assert strip_synthetic("a\n\n") == "a\n"
        assert strip_synthetic("plain") == "plain"
        assert strip_synthetic("") == ""

    def test_parse_seq(self):
        assert parse_seq("3") == 3
        assert parse_seq("auto") == SEQ_AUTO
        assert parse_seq("") == SEQ_AUTO
        assert parse_seq("a") == SEQ_AUTO

    def test_flatten_synced(self):
        inner = [text("text", "a"), text("text", "b")]
        flattened = flatten_synced([block("synced_source", *inner), text("text", "c")])
        assert [b.all_text for b in flattened] == ["a\n", "b\n", "c\n"]


class TestLeafBlocks:
    """Tests for blocks that map to a single node."""

    def test_adjacent_dividers_not_merged(self):
        result = transform(page(block("divider"), block("divider")))
        assert result.root == Root(children=[ThematicBreak(), ThematicBreak()])

    def test_heading(self):
        result = transform(page(text("heading2", "Title")))
        assert result.root.children == [Heading(depth=2, children=[Text(value="Title")])]

    def test_deep_heading_becomes_paragraph(self):
        result = transform(page(text("heading7", "Deep"), text("heading9", "Deeper")))
        assert result.root.children == [
            Paragraph(children=[Text(value="Deep")]),
            Paragraph(children=[Text(value="Deeper")]),
        ]

    def test_text_paragraph_with_marks(self):
        result = transform(page(block("text", ops=[op("a "), op("b", bold=True)])))
        paragraph = result.root.children[0]
        assert isinstance(paragraph, Paragraph)
        assert paragraph.children[0] == Text(value="a ")
        assert paragraph.children[1].type == "strong"

    def test_code_trims_synthetic_newline(self):
        result = transform(page(block("code", ops=[op("const")], language="JavaScript")))
        assert result.root.children == [Code(value="const", lang="javascript")]

    def test_code_keeps_inner_newlines(self):
        result = transform(page(block("code", ops=[op("a\n\nb\n")])))
        assert result.root.children == [Code(value="a\n\nb\n", lang=None)]

    def test_unsupported_blocks_dropped(self):
        result = transform(page(
            text("text", "kept"),
            block("bitable"),
            block("mindnote"),
            block("something_new"),
            block("diagram"),
        ))
        assert result.root.children == [Paragraph(children=[Text(value="kept")])]

    def test_non_page_root_is_wrapped(self):
        result = transform(text("text", "alone"))
        assert result.root == Root(children=[Paragraph(children=[Text(value="alone")])])

    def test_unsupported_root_gives_empty_root(self):
        assert transform(block("bitable")).root == Root()


class TestLists:
    """Tests for list items and list grouping."""

    def test_grouping(self):
        result = transform(page(
            text("bullet", "a"),
            text("bullet", "b"),
            text("ordered", "c", seq="2"),
            text("ordered", "d", seq="3"),
            text("todo", "e", done=False),
        ))
        lists = result.root.children
        assert len(lists) == 3
        assert [len(node.children) for node in lists] == [2, 2, 1]
        assert lists[0].ordered is None
        assert lists[1].ordered is True
        assert lists[1].start == 2
        assert lists[2].children[0].checked is False

    def test_item_first_child_is_paragraph(self):
        result = transform(page(text("bullet", "a")))
        item = result.root.children[0].children[0]
        assert item == ListItem(children=[Paragraph(children=[Text(value="a")])], spread=False)

    def test_auto_seq(self):
        result = transform(page(text("ordered", "a", seq="auto"), text("ordered", "b", seq="auto")))
        numbers = result.root.children[0]
        assert [item.seq for item in numbers.children] == [SEQ_AUTO, SEQ_AUTO]
        assert numbers.start == 1

    def test_todo_done(self):
        result = transform(page(text("todo", "done", done=True)))
        assert result.root.children[0].children[0].checked is True

    def test_nested_items(self):
        result = transform(page(
            text("bullet", "parent", text("bullet", "child one"), text("bullet", "child two")),
        ))
        item = result.root.children[0].children[0]
        assert item.children[0] == Paragraph(children=[Text(value="parent")])

        nested = item.children[1]
        assert isinstance(nested, List)
        assert len(nested.children) == 2

    def test_nested_block_content_kept(self):
        result = transform(page(
            text("ordered", "step", block("code", ops=[op("run")]), seq="1"),
        ))
        item = result.root.children[0].children[0]
        assert item.children[1] == Code(value="run", lang=None)


class TestContainers:
    """Tests for quote containers, callouts and synced blocks."""

    def test_quote_container(self):
        result = transform(page(block("quote_container", text("text", "a"), text("text", "b"))))
        assert result.root.children == [
            Blockquote(children=[
                Paragraph(children=[Text(value="a")]),
                Paragraph(children=[Text(value="b")]),
            ])
        ]

    def test_callout_is_blockquote(self):
        result = transform(page(block("callout", text("text", "note"))))
        assert isinstance(result.root.children[0], Blockquote)

    def test_lists_kept_inside_blockquote(self):
        result = transform(page(block("quote_container", text("bullet", "a"), text("bullet", "b"))))
        quote = result.root.children[0]
        assert len(quote.children) == 1
        assert isinstance(quote.children[0], List)

    def test_synced_source_spliced(self):
        result = transform(page(
            text("bullet", "a"),
            block("synced_source", text("bullet", "b"), text("text", "c")),
        ))
        bullets, paragraph = result.root.children
        assert len(bullets.children) == 2
        assert paragraph == Paragraph(children=[Text(value="c")])


class TestTables:
    """Tests for tables and cells."""

    def test_cells_chunked_by_columns(self):
        cells = [block("table_cell", text("text", value)) for value in "abcd"]
        result = transform(page(table(2, *cells)))

        assert result.root.children == [
            Table(children=[
                TableRow(children=[
                    TableCell(children=[Text(value="a")]),
                    TableCell(children=[Text(value="b")]),
                ]),
                TableRow(children=[
                    TableCell(children=[Text(value="c")]),
                    TableCell(children=[Text(value="d")]),
                ]),
            ])
        ]

    def test_zero_columns(self):
        cells = [block("table_cell", text("text", "a"))]
        result = transform(page(table(0, *cells)))
        assert result.root.children == [Table()]

    def test_cell_keeps_only_phrasing(self):
        cell = block("table_cell", text("text", "a"), block("divider"), text("bullet", "b"))
        result = transform(page(table(1, cell)))
        assert result.root.children[0].children[0].children[0] == TableCell(children=[Text(value="a")])

    def test_cell_paragraphs_flattened(self):
        cell = block("table_cell", text("text", "a"), text("text", "b"))
        result = transform(page(table(1, cell)))
        assert result.root.children[0].children[0].children[0].children == [
            Text(value="a"), Text(value="b")
        ]


class TestMedia:
    """Tests for image, whiteboard and file references."""

    def test_image_wrapped_in_paragraph(self):
        result = transform(page(image(caption="A cat\n")))

        paragraph = result.root.children[0]
        assert isinstance(paragraph, Paragraph)
        node = paragraph.children[0]
        assert isinstance(node, Image)
        assert node.alt == "A cat"
        assert node.url == ""
        assert not node.resolved
        assert node.data.name == "a.png"
        assert node.data.token == "tok"
        assert result.images == [node]

    def test_image_in_table_cell_not_wrapped(self):
        result = transform(page(table(1, block("table_cell", image()))))
        cell = result.root.children[0].children[0].children[0]
        assert isinstance(cell.children[0], Image)
        assert len(result.images) == 1

    def test_image_in_blockquote_wrapped(self):
        result = transform(page(block("quote_container", image())))
        assert isinstance(result.root.children[0].children[0], Paragraph)

    def test_image_name_from_mime_type(self):
        result = transform(page(image(token="boxabc", name="", mime_type="image/jpeg")))
        assert result.images[0].data.name.startswith("boxabc.")

    def test_images_in_traversal_order(self):
        result = transform(page(
            image(token="1", name="one.png"),
            block("quote_container", image(token="2", name="two.png")),
            table(1, block("table_cell", image(token="3", name="three.png"))),
        ))
        assert [node.data.token for node in result.images] == ["1", "2", "3"]

    def test_file_link(self):
        result = transform(page(file(name="report.pdf")))

        link = result.root.children[0].children[0]
        assert isinstance(link, Link)
        assert link.url == ""
        assert link.children == [Text(value="report.pdf")]
        assert link.data.name == "report.pdf"
        assert result.files == [link]

    def test_whiteboard_disabled_by_default(self):
        board = block("whiteboard", whiteboard={'token': 'wb1'})
        result = transform(page(board))
        assert result.root.children == []
        assert result.images == []

    def test_whiteboard_enabled(self):
        board = block("whiteboard", whiteboard={'token': 'wb1'})
        result = transform(page(board), whiteboard=True)
        assert [node.data.name for node in result.images] == ["wb1.png"]


class TestTransformerState:
    """Per-call state is reset between transforms."""

    def test_images_not_shared_between_calls(self):
        transformer = Transformer()
        first = transformer.transform(page(image(token="1")))
        second = transformer.transform(page(image(token="2")))

        assert [node.data.token for node in first.images] == ["1"]
        assert [node.data.token for node in second.images] == ["2"]
        assert first.root is not second.root

    def test_state_cleared_after_call(self):
        transformer = Transformer()
        transformer.transform(page(image(), file()))
        assert transformer._images == []
        assert transformer._files == []
        assert transformer._parent is None

    def test_input_not_mutated(self):
        root = page(text("bullet", "a"), block("synced_source", text("text", "b")))
        transform(root)
        assert [child.type.value for child in root.children] == ["bullet", "synced_source"]
