"""Tests for rendering Markdown ASTs to text."""

import pytest

from factories import op

from lark_md.converter import MarkdownConverter, escape_line_start, escape_lines, escape_text
from lark_md.mdast import (
    Blockquote,
    Code,
    Delete,
    Emphasis,
    Heading,
    Image,
    InlineCode,
    InlineMath,
    Link,
    List,
    ListItem,
    ListItemData,
    Paragraph,
    Root,
    Strong,
    Table,
    TableCell,
    TableRow,
    Text,
    ThematicBreak,
)
from lark_md.phrasing import compile_runs


@pytest.fixture
def converter():
    return MarkdownConverter()


def para(*children):
    return Paragraph(children=list(children))


def item(value, **options):
    return ListItem(children=[para(Text(value=value))], **options)


def render(converter, *nodes):
    return converter.ast_to_markdown(Root(children=list(nodes)))


class TestEscaping:
    """Tests for text escaping helpers."""

    def test_inline_markers(self):
        assert escape_text("*star* [x] `c` ~s~") == "\\*star\\* \\[x\\] \\`c\\` \\~s\\~"

    def test_backslash(self):
        assert escape_text("a\\b") == "a\\\\b"

    def test_underscore_inside_words_kept(self):
        assert escape_text("snake_case") == "snake_case"
        assert escape_text("_x_") == "\\_x\\_"

    def test_line_start(self):
        assert escape_line_start("# not a heading") == "\\# not a heading"
        assert escape_line_start("> not a quote") == "\\> not a quote"
        assert escape_line_start("- not a list") == "\\- not a list"
        assert escape_line_start("1. not a list") == "1\\. not a list"
        assert escape_line_start("#hashtag") == "#hashtag"
        assert escape_line_start("2024 was") == "2024 was"

    def test_raw_html_start(self):
        assert escape_text("a <b>c</b> <!-- x -->") == "a \\<b>c\\</b> \\<!-- x -->"
        assert escape_text("1 < 2 <3") == "1 < 2 <3"

    def test_entities(self):
        assert escape_text("&amp; &#123; & co") == "\\&amp; \\&#123; & co"

    def test_leading_indentation_encoded(self):
        assert escape_line_start("    indented") == "&#x20;   indented"
        assert escape_line_start("\tindented") == "&#x9;indented"

    def test_setext_underline(self):
        assert escape_line_start("---") == "\\---"
        assert escape_line_start("===") == "\\==="

    def test_every_line_escaped(self):
        assert escape_lines("intro\n# not a heading\n2. item") == "intro\n\\# not a heading\n2\\. item"


class TestBlocks:
    """Tests for block-level rendering."""

    def test_empty_root(self, converter):
        assert render(converter) == ""

    def test_paragraphs(self, converter):
        assert render(converter, para(Text(value="a")), para(Text(value="b"))) == "a\n\nb\n"

    def test_heading(self, converter):
        assert render(converter, Heading(depth=2, children=[Text(value="Title")])) == "## Title\n"

    def test_code_block(self, converter):
        assert render(converter, Code(value="const", lang="javascript")) == "```javascript\nconst\n```\n"

    def test_code_block_without_lang(self, converter):
        assert render(converter, Code(value="x")) == "```\nx\n```\n"

    def test_code_block_fence_longer_than_content(self, converter):
        assert render(converter, Code(value="```")) == "````\n```\n````\n"

    def test_thematic_break(self, converter):
        assert render(converter, para(Text(value="a")), ThematicBreak()) == "a\n\n***\n"

    def test_blockquote(self, converter):
        quote = Blockquote(children=[para(Text(value="a")), para(Text(value="b"))])
        assert render(converter, quote) == "> a\n>\n> b\n"

    def test_phrasing_at_root_gets_paragraph(self, converter):
        assert render(converter, Text(value="loose")) == "loose\n"


class TestLists:
    """Tests for list rendering."""

    def test_bullet_list(self, converter):
        assert render(converter, List(children=[item("a"), item("b")])) == "- a\n- b\n"

    def test_ordered_list_start(self, converter):
        numbers = List(children=[item("a"), item("b")], ordered=True, start=3)
        assert render(converter, numbers) == "3. a\n4. b\n"

    def test_task_list(self, converter):
        tasks = List(children=[item("done", checked=True), item("todo", checked=False)])
        assert render(converter, tasks) == "- [x] done\n- [ ] todo\n"

    def test_nested_list(self, converter):
        parent = ListItem(children=[para(Text(value="a")), List(children=[item("b")])])
        assert render(converter, List(children=[parent])) == "- a\n  - b\n"

    def test_adjacent_lists_alternate_markers(self, converter):
        first = List(children=[item("a")])
        second = List(children=[item("b")])
        assert render(converter, first, second) == "- a\n\n* b\n"

    def test_adjacent_ordered_lists_alternate_markers(self, converter):
        first = List(children=[item("a", data=ListItemData(seq=1))], ordered=True, start=1)
        second = List(children=[item("b", data=ListItemData(seq=5))], ordered=True, start=5)
        assert render(converter, first, second) == "1. a\n\n5) b\n"


class TestTables:
    """Tests for pipe tables."""

    def test_table(self, converter):
        def row(*values):
            return TableRow(children=[TableCell(children=[Text(value=v)]) for v in values])

        table = Table(children=[row("a", "b"), row("c", "d")])
        assert render(converter, table) == "| a | b |\n| - | - |\n| c | d |\n"

    def test_pipe_escaped(self, converter):
        table = Table(children=[TableRow(children=[TableCell(children=[Text(value="a|b")])])])
        assert render(converter, table) == "| a\\|b |\n| - |\n"

    def test_empty_table(self, converter):
        assert render(converter, Table()) == ""


class TestInline:
    """Tests for inline rendering."""

    def test_marks(self, converter):
        node = Strong(children=[Text(value="a"), Emphasis(children=[Text(value="b")])])
        assert render(converter, para(node)) == "**a*b***\n"

    def test_strikethrough(self, converter):
        assert render(converter, para(Delete(children=[Text(value="gone")]))) == "~~gone~~\n"

    def test_inline_code(self, converter):
        assert render(converter, para(InlineCode(value="x"))) == "`x`\n"
        assert render(converter, para(InlineCode(value="a`b"))) == "``a`b``\n"

    def test_inline_math_double_dollar(self, converter):
        assert render(converter, para(InlineMath(value="x^2"))) == "$$x^2$$\n"

    def test_link(self, converter):
        link = Link(url="https://example.com", children=[Text(value="site")])
        assert render(converter, para(link)) == "[site](https://example.com)\n"

    def test_link_with_space_in_url(self, converter):
        link = Link(url="files/my report.pdf", children=[Text(value="report")])
        assert render(converter, para(link)) == "[report](<files/my report.pdf>)\n"

    def test_resolved_image(self, converter):
        image = Image(url="images/a.png", alt="A cat")
        assert render(converter, para(image)) == "![A cat](images/a.png)\n"

    def test_unresolved_image(self, converter):
        assert render(converter, para(Image())) == "![]()\n"


class TestStructurePreserved:
    """Plain text must not turn into other Markdown constructs."""

    def test_marker_after_soft_break(self, converter):
        assert render(converter, para(Text(value="intro\n# not a heading"))) == "intro\n\\# not a heading\n"
        assert render(converter, para(Text(value="a\n- b"))) == "a\n\\- b\n"

    def test_marker_after_soft_break_in_list_item(self, converter):
        tight = List(children=[item("a\n> b")])
        assert render(converter, tight) == "- a\n  \\> b\n"

    def test_bang_before_link(self, converter):
        link = Link(url="http://x", children=[Text(value="site")])
        assert render(converter, para(Text(value="Wow!"), link)) == "Wow\\![site](http://x)\n"

    def test_bang_before_image_kept(self, converter):
        image = Image(url="images/a.png", alt="a")
        assert render(converter, para(Text(value="Wow!"), image)) == "Wow!![a](images/a.png)\n"

    def test_inline_html_escaped(self, converter):
        assert render(converter, para(Text(value="a <b>c</b>"))) == "a \\<b>c\\</b>\n"

    def test_indented_text_not_code(self, converter):
        assert render(converter, para(Text(value="    indented"))) == "&#x20;   indented\n"


class TestDelimiterWhitespace:
    """Edge whitespace stays outside emphasis markers."""

    def test_trailing_space_in_strong(self, converter):
        nodes = compile_runs([op("hello ", bold=True), op("world")])
        assert render(converter, para(*nodes)) == "**hello** world\n"

    def test_spaces_around_emphasis(self, converter):
        nodes = [Text(value="x"), Emphasis(children=[Text(value=" a ")]), Text(value="y")]
        assert render(converter, para(*nodes)) == "x *a* y\n"

    def test_trailing_space_in_strikethrough(self, converter):
        nodes = [Delete(children=[Text(value="gone ")]), Text(value="x")]
        assert render(converter, para(*nodes)) == "~~gone~~ x\n"

    def test_whitespace_only_wrapper_dropped(self, converter):
        nodes = [Text(value="a"), Strong(children=[Text(value=" ")]), Text(value="b")]
        assert render(converter, para(*nodes)) == "a b\n"

    def test_nested_wrappers(self, converter):
        nodes = [Strong(children=[Text(value="a "), Emphasis(children=[Text(value="b ")])]), Text(value="c")]
        assert render(converter, para(*nodes)) == "**a *b*** c\n"
