"""Stylesheet parser: one css-class block per (rule, class name) pair."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from blockgraph.models import CssClassBlock, FileKind, ImportKind, ImportRecord
from blockgraph.parsers.base import BaseParser, LineIndex, ParsedFile

logger = logging.getLogger(__name__)

_CLASS_RE = re.compile(r"\.(-?[_a-zA-Z][\w-]*)")
_COMMENT_RE = re.compile(r"/\*.*?\*/", re.DOTALL)
_STRING_RE = re.compile(r""""(?:\\.|[^"\\])*"|'(?:\\.|[^'\\])*'""")
_IMPORT_RE = re.compile(
    r"""^@import\s+(?:url\(\s*)?["']?([^"')\s;]+)""",
    re.IGNORECASE,
)


@dataclass
class _Rule:
    start: int  # first significant character of the prelude
    open_index: int
    close_index: int


@dataclass
class _Statement:
    start: int
    end: int  # index of the terminating ';'


def scan_rules(text: str) -> tuple[list[_Rule], list[_Statement]]:
    """Find top-level brace pairs and ';'-terminated statements.

    Braces inside strings and comments are ignored. Unclosed braces never
    produce a rule.
    """
    rules: list[_Rule] = []
    statements: list[_Statement] = []
    stack: list[tuple[int, int]] = []
    rule_start: int | None = None
    quote: str | None = None
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if quote is not None:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue

        if ch == "/" and text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
            continue

        if ch in "\"'":
            quote = ch
            if not stack and rule_start is None:
                rule_start = i
        elif ch == "{":
            start = rule_start if rule_start is not None else i
            stack.append((i, start))
            rule_start = None
        elif ch == "}":
            if stack:
                open_index, start = stack.pop()
                if not stack:
                    rules.append(_Rule(start, open_index, i))
            rule_start = None
        elif ch == ";":
            if not stack and rule_start is not None:
                statements.append(_Statement(rule_start, i))
            if not stack:
                rule_start = None
        elif not stack and rule_start is None and not ch.isspace():
            rule_start = i
        i += 1

    return rules, statements


def selector_classes(prelude: str) -> list[str]:
    """Distinct class names of a selector, in order of appearance."""
    cleaned = _STRING_RE.sub('""', _COMMENT_RE.sub(" ", prelude))
    names: list[str] = []
    for m in _CLASS_RE.finditer(cleaned):
        if m.group(1) not in names:
            names.append(m.group(1))
    return names


class StyleParser(BaseParser):
    file_kind = FileKind.STYLE

    def parse(self, source: str) -> ParsedFile:
        result = self._result()
        lines = LineIndex(source)
        rules, statements = scan_rules(source)

        for stmt in statements:
            m = _IMPORT_RE.match(source[stmt.start:stmt.end])
            if m:
                result.imports.append(ImportRecord(source=m.group(1), kind=ImportKind.NONE))

        for rule in rules:
            prelude = source[rule.start:rule.open_index]
            if prelude.lstrip().startswith("@"):
                continue

            # Swallow one trailing newline so removing the rule leaves no blank line
            end = rule.close_index + 1
            if source.startswith("\r\n", end):
                end += 2
            elif source.startswith("\n", end):
                end += 1

            start_line, start_col = lines.position(rule.start)
            end_line, end_col = lines.position(end)
            rule_text = source[rule.start:rule.close_index + 1]
            declarations = source[rule.open_index + 1:rule.close_index].strip()
            selector = _COMMENT_RE.sub(" ", prelude).strip()

            for class_name in selector_classes(prelude):
                result.blocks.append(CssClassBlock(
                    id=self.ids.next("css-class", class_name),
                    name=class_name,
                    file_path=self.file_path,
                    rel_path=self.rel_path,
                    source_code=rule_text,
                    start_line=start_line,
                    end_line=end_line,
                    start_col=start_col,
                    end_col=end_col,
                    selector=selector,
                    declarations=declarations,
                    metadata={"rule_start_index": rule.start},
                ))

        logger.debug("%s: %d css-class blocks", self.rel_path, len(result.blocks))
        return result
