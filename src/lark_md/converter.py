"""Render Markdown ASTs to GitHub-flavoured Markdown text.

The AST is lowered to mistune tokens and rendered by a mistune
``MarkdownRenderer`` extended with strikethrough, task list items, pipe
tables and ``$$`` inline math.
"""

import re
from typing import Any, Dict, List, Optional

from loguru import logger
from mistune.core import BlockState
from mistune.renderers.markdown import MarkdownRenderer

from lark_md import mdast as md

Token = Dict[str, Any]

INLINE_ESCAPE_PATTERN = re.compile(r'([\\`*\[\]~])')
UNDERSCORE_PATTERN = re.compile(r'(?<![0-9A-Za-z])_|_(?![0-9A-Za-z])')
HTML_START_PATTERN = re.compile(r'<(?=[A-Za-z/!?])')
ENTITY_PATTERN = re.compile(r'&(?=#?[0-9A-Za-z]+;)')
BLOCK_MARKER_PATTERN = re.compile(r'^(#{1,6}|>|[-+])(\s|$)')
ORDERED_MARKER_PATTERN = re.compile(r'^(\d+)([.)])(\s|$)')
UNDERLINE_PATTERN = re.compile(r'^(=+|-+)[ \t]*$')
INDENT_ENTITIES = {' ': '&#x20;', '\t': '&#x9;'}

ALTERNATE_BULLETS = {'-': '*', '*': '-', '.': ')', ')': '.'}


def escape_text(text: str) -> str:
    """Escape characters that would start inline Markdown syntax or raw HTML."""
    text = INLINE_ESCAPE_PATTERN.sub(r'\\\1', text)
    text = UNDERSCORE_PATTERN.sub(r'\\_', text)
    text = HTML_START_PATTERN.sub(r'\\<', text)
    return ENTITY_PATTERN.sub(r'\\&', text)


def escape_line_start(text: str) -> str:
    """Keep a line from being read as a heading, quote, list item or code block."""
    if text[:1] in INDENT_ENTITIES:
        return INDENT_ENTITIES[text[0]] + text[1:]
    if BLOCK_MARKER_PATTERN.match(text) or UNDERLINE_PATTERN.match(text):
        return '\\' + text
    match = ORDERED_MARKER_PATTERN.match(text)
    if match:
        digits = match.group(1)
        return digits + '\\' + text[len(digits):]
    return text


def escape_lines(text: str) -> str:
    return '\n'.join(escape_line_start(line) for line in text.split('\n'))


def _longest_run(text: str, char: str) -> int:
    return max((len(run) for run in re.findall(re.escape(char) + '+', text)), default=0)


class GfmMarkdownRenderer(MarkdownRenderer):
    """mistune Markdown renderer with the GFM and math extensions used by exports."""

    def render_children(self, token: Token, state: BlockState) -> str:
        out = ''
        for child in token.get('children', []):
            # "!" right before a link would turn it into an image.
            if child['type'] == 'link' and out.endswith('!'):
                out = out[:-1] + '\\!'
            out += self.render_token(child, state)
        return out

    def _delimit(self, marker: str, token: Token, state: BlockState) -> str:
        """Wrap children in ``marker``, keeping edge whitespace outside it.

        ``** a **`` is not emphasis; a whitespace-only run drops the marker.
        """
        text = self.render_children(token, state)
        content = text.strip()
        if not content:
            return text
        lead = text[:len(text) - len(text.lstrip())]
        trail = text[len(text.rstrip()):]
        return lead + marker + content + trail

    def emphasis(self, token: Token, state: BlockState) -> str:
        return self._delimit('*', token, state)

    def strong(self, token: Token, state: BlockState) -> str:
        return self._delimit('**', token, state)

    def text(self, token: Token, state: BlockState) -> str:
        return escape_text(token['raw'])

    def codespan(self, token: Token, state: BlockState) -> str:
        code = token['raw']
        fence = '`' * (_longest_run(code, '`') + 1)
        if code.startswith('`') or code.endswith('`'):
            code = f' {code} '
        return fence + code + fence

    def strikethrough(self, token: Token, state: BlockState) -> str:
        return self._delimit('~~', token, state)

    def link(self, token: Token, state: BlockState) -> str:
        # Unresolved media keeps an empty destination: never an autolink.
        attrs = token['attrs']
        url = attrs.get('url') or ''
        if re.search(r'[\s()<>]', url):
            url = '<' + url.replace('<', '%3C').replace('>', '%3E') + '>'
        out = '[' + self.render_children(token, state) + '](' + url
        title = attrs.get('title')
        if title:
            out += ' "' + title.replace('"', '\\"') + '"'
        return out + ')'

    def image(self, token: Token, state: BlockState) -> str:
        return '!' + self.link(token, state)

    def inline_math(self, token: Token, state: BlockState) -> str:
        return '$$' + token['raw'] + '$$'

    def paragraph(self, token: Token, state: BlockState) -> str:
        return escape_lines(self.render_children(token, state)) + '\n\n'

    def block_text(self, token: Token, state: BlockState) -> str:
        return escape_lines(self.render_children(token, state)) + '\n'

    def thematic_break(self, token: Token, state: BlockState) -> str:
        return '***\n\n'

    def block_code(self, token: Token, state: BlockState) -> str:
        code = token['raw']
        if code and not code.endswith('\n'):
            code += '\n'
        fence = '`' * max(3, _longest_run(code, '`') + 1)
        info = token.get('attrs', {}).get('info') or ''
        return fence + info + '\n' + code + fence + '\n\n'

    def block_quote(self, token: Token, state: BlockState) -> str:
        text = self.render_children(token, state).strip('\n')
        lines = ['> ' + line if line else '>' for line in text.split('\n')]
        return '\n'.join(lines) + '\n\n'

    def list(self, token: Token, state: BlockState) -> str:
        attrs = token['attrs']
        ordered = attrs.get('ordered', False)
        number = attrs.get('start', 1)
        bullet = token.get('bullet') or ('.' if ordered else '-')

        items = []
        for item in token['children']:
            marker = f"{number}{bullet} " if ordered else f"{bullet} "
            number += 1

            body = self.render_children(item, state).strip('\n')
            if item['type'] == 'task_list_item':
                body = ('[x] ' if item['attrs']['checked'] else '[ ] ') + body

            lines = body.split('\n')
            indent = ' ' * len(marker)
            rendered = (marker + lines[0]).rstrip() + '\n'
            for line in lines[1:]:
                rendered += (indent + line if line else '') + '\n'
            items.append(rendered)

        separator = '' if token.get('tight', True) else '\n'
        return separator.join(items) + '\n'

    def table(self, token: Token, state: BlockState) -> str:
        rows = [
            [self._render_table_cell(cell, state) for cell in row['children']]
            for row in token['children']
        ]
        width = max((len(row) for row in rows), default=0)
        if width == 0:
            return ''

        rows = [row + [''] * (width - len(row)) for row in rows]
        lines = [self._table_line(rows[0]), self._table_line(['-'] * width)]
        lines.extend(self._table_line(row) for row in rows[1:])
        return '\n'.join(lines) + '\n\n'

    def _render_table_cell(self, cell: Token, state: BlockState) -> str:
        text = self.render_children(cell, state)
        return text.replace('|', '\\|').replace('\n', ' ').strip()

    @staticmethod
    def _table_line(cells: List[str]) -> str:
        return '| ' + ' | '.join(cells) + ' |'


class MarkdownConverter:
    """Convert Markdown ASTs to Markdown text."""

    def __init__(self):
        self.renderer = GfmMarkdownRenderer()

    def ast_to_markdown(self, root: md.Root) -> str:
        """Render a root node; the result ends with a single newline unless empty."""
        tokens = self._block_tokens(root.children)
        markdown = self.renderer.render_tokens(tokens, BlockState()).strip('\n')
        logger.debug("Rendered {} top-level nodes to {} characters of markdown",
                     len(root.children), len(markdown))
        return markdown + '\n' if markdown else ''

    def _block_tokens(self, nodes: List[md.Node], tight: bool = False) -> List[Token]:
        tokens = []
        previous: Optional[Token] = None
        for node in nodes:
            token = self._block_token(node, tight)
            if token is None:
                continue

            # Adjacent lists of the same kind only stay apart with a different marker.
            if (token['type'] == 'list' and previous is not None and previous['type'] == 'list'
                    and previous['attrs']['ordered'] == token['attrs']['ordered']):
                token['bullet'] = ALTERNATE_BULLETS[previous['bullet']]

            tokens.append(token)
            previous = token
        return tokens

    def _block_token(self, node: md.Node, tight: bool) -> Optional[Token]:
        if isinstance(node, md.Paragraph):
            return {
                'type': 'block_text' if tight else 'paragraph',
                'children': self._inline_tokens(node.children),
            }

        elif isinstance(node, md.Heading):
            return {
                'type': 'heading',
                'attrs': {'level': node.depth},
                'children': self._inline_tokens(node.children),
            }

        elif isinstance(node, md.Code):
            return {'type': 'block_code', 'raw': node.value, 'attrs': {'info': node.lang or ''}}

        elif isinstance(node, md.Blockquote):
            return {'type': 'block_quote', 'children': self._block_tokens(node.children)}

        elif isinstance(node, md.List):
            ordered = bool(node.ordered)
            return {
                'type': 'list',
                'attrs': {'ordered': ordered, 'start': node.start if node.start is not None else 1},
                'tight': not node.spread,
                'bullet': '.' if ordered else '-',
                'children': [self._list_item_token(item, not node.spread) for item in node.children],
            }

        elif isinstance(node, md.Table):
            return {
                'type': 'table',
                'children': [
                    {
                        'type': 'table_row',
                        'children': [
                            {'type': 'table_cell', 'children': self._inline_tokens(cell.children)}
                            for cell in row.children
                        ],
                    }
                    for row in node.children
                ],
            }

        elif isinstance(node, md.ThematicBreak):
            return {'type': 'thematic_break'}

        elif md.is_phrasing_content(node):
            return self._block_token(md.Paragraph(children=[node]), tight)

        logger.debug("Skipping node without a markdown rendering: {}", node.type)
        return None

    def _list_item_token(self, item: md.ListItem, tight: bool) -> Token:
        if item.checked is None:
            return {'type': 'list_item', 'children': self._block_tokens(item.children, tight)}
        return {
            'type': 'task_list_item',
            'attrs': {'checked': item.checked},
            'children': self._block_tokens(item.children, tight),
        }

    def _inline_tokens(self, nodes: List[md.Node]) -> List[Token]:
        tokens = []
        for node in nodes:
            if isinstance(node, md.Text):
                tokens.append({'type': 'text', 'raw': node.value})
            elif isinstance(node, md.InlineCode):
                tokens.append({'type': 'codespan', 'raw': node.value})
            elif isinstance(node, md.InlineMath):
                tokens.append({'type': 'inline_math', 'raw': node.value})
            elif isinstance(node, md.Emphasis):
                tokens.append({'type': 'emphasis', 'children': self._inline_tokens(node.children)})
            elif isinstance(node, md.Strong):
                tokens.append({'type': 'strong', 'children': self._inline_tokens(node.children)})
            elif isinstance(node, md.Delete):
                tokens.append({'type': 'strikethrough', 'children': self._inline_tokens(node.children)})
            elif isinstance(node, md.Link):
                attrs = {'url': node.url}
                if node.title:
                    attrs['title'] = node.title
                tokens.append({'type': 'link', 'attrs': attrs, 'children': self._inline_tokens(node.children)})
            elif isinstance(node, md.Image):
                attrs = {'url': node.url}
                if node.title:
                    attrs['title'] = node.title
                tokens.append({'type': 'image', 'attrs': attrs, 'children': [{'type': 'text', 'raw': node.alt}]})
            else:
                logger.debug("Skipping inline node without a markdown rendering: {}", node.type)
        return tokens
