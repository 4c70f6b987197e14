"""Abstract base parser and shared position helpers."""

from __future__ import annotations

import abc
import bisect
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from blockgraph.ids import IdAllocator
from blockgraph.models import Block, EngineConfig, FileKind, ImportRecord


@dataclass
class ParsedFile:
    """Everything one parser run produced for one file."""
    file_path: str
    rel_path: str
    file_kind: FileKind
    blocks: list[Block] = field(default_factory=list)
    imports: list[ImportRecord] = field(default_factory=list)
    # block id -> parser-specific node, kept out of the blocks themselves
    syntax_nodes: dict[str, Any] = field(default_factory=dict)
    skipped: bool = False
    error: str | None = None


class LineIndex:
    """Maps character offsets of a text to 1-based (line, column) pairs."""

    def __init__(self, text: str):
        self.text = text
        self._line_starts = [0] + [i + 1 for i, ch in enumerate(text) if ch == "\n"]

    def position(self, offset: int) -> tuple[int, int]:
        line_idx = bisect.bisect_right(self._line_starts, offset) - 1
        return line_idx + 1, offset - self._line_starts[line_idx] + 1

    def offset(self, line: int, col: int) -> int:
        return self._line_starts[line - 1] + col - 1

    @property
    def line_count(self) -> int:
        return len(self._line_starts)


class BaseParser(abc.ABC):
    """Base class for the per-file-kind parsers."""

    file_kind: FileKind

    def __init__(self, file_path: Path, rel_path: str, config: EngineConfig | None = None):
        self.file_path = file_path.as_posix()
        self.rel_path = rel_path.replace("\\", "/")
        self.config = config or EngineConfig()
        self.ids = IdAllocator(self.rel_path)

    @abc.abstractmethod
    def parse(self, source: str) -> ParsedFile:
        """Parse one file's text and return its blocks."""

    def parse_path(self, path: Path) -> ParsedFile:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return self._skipped(f"unreadable: {e}")
        return self.parse(source)

    def _result(self) -> ParsedFile:
        return ParsedFile(
            file_path=self.file_path,
            rel_path=self.rel_path,
            file_kind=self.file_kind,
        )

    def _skipped(self, reason: str) -> ParsedFile:
        result = self._result()
        result.skipped = True
        result.error = reason
        return result
