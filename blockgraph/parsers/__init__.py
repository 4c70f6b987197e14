"""Parser registry and dispatcher."""

from __future__ import annotations

from pathlib import Path

from blockgraph.models import EngineConfig, FileKind
from blockgraph.parsers.base import BaseParser, ParsedFile
from blockgraph.parsers.language_map import classify_path
from blockgraph.parsers.markup_parser import MarkupParser
from blockgraph.parsers.style_parser import StyleParser


def parser_for(kind: FileKind) -> type[BaseParser]:
    """Return the parser class handling ``kind``."""
    if kind == FileKind.COMPONENT:
        # tree-sitter is only needed once a component source shows up
        from blockgraph.parsers.component_parser import ComponentParser
        return ComponentParser
    if kind == FileKind.MARKUP:
        return MarkupParser
    return StyleParser


def parse_file(
    path: Path,
    project_root: Path,
    config: EngineConfig | None = None,
    source: str | None = None,
) -> ParsedFile | None:
    """Parse one file, or return None when no parser handles its extension.

    When ``source`` is given it is used instead of reading ``path``.
    """
    config = config or EngineConfig(project_root=project_root)
    kind = classify_path(path, config)
    if kind is None:
        return None
    rel_path = path.resolve().relative_to(project_root.resolve()).as_posix()
    parser = parser_for(kind)(path.resolve(), rel_path, config)
    if source is None:
        return parser.parse_path(path)
    return parser.parse(source)


__all__ = ["BaseParser", "ParsedFile", "parse_file", "parser_for"]
