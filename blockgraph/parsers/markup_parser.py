"""Static markup parser: html-root plus one html-element block per tag."""

from __future__ import annotations

import logging
import re
from html.parser import HTMLParser
from pathlib import PurePosixPath

from blockgraph.models import (
    FileKind,
    HtmlElementBlock,
    HtmlRootBlock,
    ImportKind,
    ImportRecord,
    PropType,
    PropValue,
)
from blockgraph.parsers.base import BaseParser, LineIndex, ParsedFile

logger = logging.getLogger(__name__)

_VOID_TAGS = {
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
}

_TAG_OPEN_RE = re.compile(r"^<\s*[^\s/>]+|/?>$")
_ATTR_RE = re.compile(
    r"""([^\s/>=]+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+)))?"""
)


def raw_attrs(start_tag: str) -> list[tuple[str, str | None]]:
    """Attributes of ``<tag ...>`` exactly as written: no case folding, no entity decoding."""
    body = _TAG_OPEN_RE.sub("", start_tag)
    attrs: list[tuple[str, str | None]] = []
    for match in _ATTR_RE.finditer(body):
        name, double, single, bare = match.groups()
        value = next((v for v in (double, single, bare) if v is not None), None)
        attrs.append((name, value))
    return attrs


class _MarkupNode:
    """A located tag in an HTML document."""

    __slots__ = ("tag", "attrs", "start", "end", "children")

    def __init__(self, tag: str, attrs: list[tuple[str, str | None]], start: int):
        self.tag = tag
        self.attrs = attrs
        self.start = start
        self.end = start
        self.children: list[_MarkupNode] = []


class _MarkupTreeBuilder(HTMLParser):
    """HTMLParser subclass that builds a tag tree with character offsets."""

    def __init__(self, text: str):
        super().__init__(convert_charrefs=True)
        self.lines = LineIndex(text)
        self.text = text
        self.root = _MarkupNode("#document", [], 0)
        self._stack: list[_MarkupNode] = [self.root]

    def _offset(self) -> int:
        line, col = self.getpos()
        return self.lines.offset(line, col + 1)

    def _open(self, tag: str) -> _MarkupNode:
        # HTMLParser lowercases attribute names and decodes entities; keep the source text
        start_tag = self.get_starttag_text() or ""
        node = _MarkupNode(tag, raw_attrs(start_tag), self._offset())
        node.end = node.start + len(start_tag)
        self._stack[-1].children.append(node)
        return node

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]):
        node = self._open(tag)
        if tag not in _VOID_TAGS:
            self._stack.append(node)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]):
        self._open(tag)

    def handle_endtag(self, tag: str):
        open_tags = [n.tag for n in self._stack[1:]]
        if tag not in open_tags:
            return
        start = self._offset()
        close = self.text.find(">", start)
        end = len(self.text) if close == -1 else close + 1
        # Elements left open inside this one end where the closing tag starts
        while self._stack[-1].tag != tag:
            self._stack.pop().end = start
        self._stack.pop().end = end

    def finish(self) -> _MarkupNode:
        self.close()
        while len(self._stack) > 1:
            self._stack.pop().end = len(self.text)
        self.root.end = len(self.text)
        return self.root


def extract_html_props(attrs: list[tuple[str, str | None]]) -> dict[str, PropValue]:
    props: dict[str, PropValue] = {}
    for key, value in attrs:
        name = "className" if key.lower() == "class" else key
        if value is None:
            props[name] = PropValue(PropType.BOOLEAN, "true")
        else:
            props[name] = PropValue(PropType.STRING, value)
    return props


class MarkupParser(BaseParser):
    file_kind = FileKind.MARKUP

    def parse(self, source: str) -> ParsedFile:
        result = self._result()
        builder = _MarkupTreeBuilder(source)
        builder.feed(source)
        document = builder.finish()
        lines = builder.lines

        end_line, end_col = lines.position(len(source))
        root = HtmlRootBlock(
            id=self.ids.next("html-root", PurePosixPath(self.rel_path).name),
            name="HTML Document",
            file_path=self.file_path,
            rel_path=self.rel_path,
            source_code=source,
            start_line=1,
            start_col=1,
            end_line=end_line,
            end_col=end_col,
        )
        result.blocks.append(root)
        result.syntax_nodes[root.id] = document

        def emit(node: _MarkupNode, parent_id: str) -> None:
            for child in node.children:
                start_line, start_col = lines.position(child.start)
                end_line, end_col = lines.position(child.end)
                block = HtmlElementBlock(
                    id=self.ids.next("html-element", child.tag),
                    name=child.tag,
                    file_path=self.file_path,
                    rel_path=self.rel_path,
                    source_code=source[child.start:child.end],
                    start_line=start_line,
                    end_line=end_line,
                    start_col=start_col,
                    end_col=end_col,
                    parent_id=parent_id,
                    props=extract_html_props(child.attrs),
                )
                result.blocks.append(block)
                result.syntax_nodes[block.id] = child
                parents[parent_id].children_ids.append(block.id)
                parents[block.id] = block
                self._collect_import(child, result)
                emit(child, block.id)

        parents = {root.id: root}
        emit(document, root.id)
        root.imports = list(result.imports)

        logger.debug("%s: %d html blocks", self.rel_path, len(result.blocks))
        return result

    @staticmethod
    def _collect_import(node: _MarkupNode, result: ParsedFile) -> None:
        attrs = {k.lower(): v for k, v in node.attrs}
        if node.tag == "link" and "stylesheet" in (attrs.get("rel") or "").lower().split():
            href = attrs.get("href")
            if href:
                result.imports.append(ImportRecord(source=href, kind=ImportKind.NONE))
        elif node.tag == "script" and attrs.get("src"):
            result.imports.append(ImportRecord(source=attrs["src"], kind=ImportKind.NONE))
