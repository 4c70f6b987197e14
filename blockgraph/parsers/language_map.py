"""Shared extension-to-file-kind mapping for the parsers and the engine."""

from __future__ import annotations

from pathlib import Path

from blockgraph.models import EngineConfig, FileKind

# Maps component-source extension -> tree-sitter grammar name
EXT_TO_GRAMMAR: dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}


def classify_path(path: Path, config: EngineConfig) -> FileKind | None:
    """Return the file kind for ``path`` or None when no parser handles it."""
    suffix = path.suffix.lower()
    if suffix in config.component_extensions:
        return FileKind.COMPONENT
    if suffix in config.markup_extensions:
        return FileKind.MARKUP
    if suffix in config.style_extensions:
        return FileKind.STYLE
    return None


def grammar_for(path: Path) -> str:
    return EXT_TO_GRAMMAR.get(path.suffix.lower(), "tsx")
