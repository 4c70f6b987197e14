"""Data models for the block graph."""

from __future__ import annotations

import copy
import enum
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, ClassVar


class FileKind(enum.Enum):
    COMPONENT = "component-source"
    MARKUP = "static-markup"
    STYLE = "style-sheet"


class BlockKind(enum.Enum):
    COMPONENT = "component"
    ELEMENT = "element"
    COMPONENT_INSTANCE = "component-instance"
    HTML_ROOT = "html-root"
    HTML_ELEMENT = "html-element"
    CSS_CLASS = "css-class"
    OBJECT = "object"


class PropType(enum.Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    EXPRESSION = "expression"
    OBJECT = "object"
    COMPONENT = "component"


class ImportKind(enum.Enum):
    DEFAULT = "default"
    NAMED = "named"
    NAMESPACE = "namespace"
    NONE = "none"  # side-effect import: import './a.css'


@dataclass
class PropValue:
    type: PropType
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type.value, "value": self.value}


@dataclass(frozen=True)
class ImportRecord:
    """One bound name of an import statement (or a bare side-effect import)."""
    source: str
    kind: ImportKind
    local_name: str = ""
    imported_name: str = ""

    def __str__(self) -> str:
        return f"{self.source}|{self.kind.value}|{self.local_name}"

    def to_dict(self) -> dict[str, str]:
        return {
            "source": self.source,
            "kind": self.kind.value,
            "local_name": self.local_name,
            "imported_name": self.imported_name,
        }


@dataclass
class SourceRange:
    start_line: int = 0
    start_col: int = 0
    end_line: int = 0
    end_col: int = 0


@dataclass
class ComponentUsage:
    """Snapshot of one call site of a component definition."""
    usage_id: str
    file_path: str
    rel_path: str
    start_line: int = 0
    end_line: int = 0
    start_col: int = 0
    end_col: int = 0
    parent_id: str | None = None
    props: dict[str, PropValue] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "usage_id": self.usage_id,
            "file_path": self.file_path,
            "rel_path": self.rel_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "start_col": self.start_col,
            "end_col": self.end_col,
            "parent_id": self.parent_id,
            "props": {k: v.to_dict() for k, v in self.props.items()},
        }


@dataclass
class Block:
    """A graph node. Concrete variants set ``kind``."""
    id: str
    name: str
    file_path: str
    rel_path: str
    source_code: str = ""
    start_line: int = 0
    end_line: int = 0
    start_col: int = 0
    end_col: int = 0
    parent_id: str | None = None
    children_ids: list[str] = field(default_factory=list)
    uses: list[str] = field(default_factory=list)
    used_in: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[BlockKind]

    @property
    def source_range(self) -> SourceRange:
        return SourceRange(self.start_line, self.start_col, self.end_line, self.end_col)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "props":
                value = {k: v.to_dict() for k, v in value.items()}
            elif f.name == "imports":
                value = [imp.to_dict() for imp in value]
            elif f.name == "usages":
                value = [u.to_dict() for u in value]
            elif isinstance(value, (list, dict)):
                value = copy.deepcopy(value)
            data[f.name] = value
        return data


@dataclass
class ComponentBlock(Block):
    kind: ClassVar[BlockKind] = BlockKind.COMPONENT
    args: dict[str, str] = field(default_factory=dict)
    imports: list[ImportRecord] = field(default_factory=list)
    is_exported: bool = False
    usages: list[ComponentUsage] = field(default_factory=list)

    @property
    def is_default_export(self) -> bool:
        return bool(self.metadata.get("is_default_export"))


@dataclass
class ElementBlock(Block):
    kind: ClassVar[BlockKind] = BlockKind.ELEMENT
    props: dict[str, PropValue] = field(default_factory=dict)

    @property
    def class_names(self) -> list[str]:
        prop = self.props.get("className") or self.props.get("class")
        if prop is None or prop.type != PropType.STRING:
            return []
        return prop.value.split()


@dataclass
class ComponentInstanceBlock(ElementBlock):
    kind: ClassVar[BlockKind] = BlockKind.COMPONENT_INSTANCE
    ref_id: str | None = None

    @classmethod
    def from_element(cls, element: ElementBlock, ref_id: str) -> ComponentInstanceBlock:
        """Build the resolved variant of ``element``; the element itself is untouched."""
        values = {f.name: copy.copy(getattr(element, f.name)) for f in fields(ElementBlock)}
        return cls(**values, ref_id=ref_id)

    def to_element(self) -> ElementBlock:
        values = {f.name: copy.copy(getattr(self, f.name)) for f in fields(ElementBlock)}
        return ElementBlock(**values)

    def usage_snapshot(self) -> ComponentUsage:
        return ComponentUsage(
            usage_id=self.id,
            file_path=self.file_path,
            rel_path=self.rel_path,
            start_line=self.start_line,
            end_line=self.end_line,
            start_col=self.start_col,
            end_col=self.end_col,
            parent_id=self.parent_id,
            props=dict(self.props),
        )


@dataclass
class HtmlRootBlock(Block):
    kind: ClassVar[BlockKind] = BlockKind.HTML_ROOT
    imports: list[ImportRecord] = field(default_factory=list)


@dataclass
class HtmlElementBlock(Block):
    kind: ClassVar[BlockKind] = BlockKind.HTML_ELEMENT
    props: dict[str, PropValue] = field(default_factory=dict)

    @property
    def class_names(self) -> list[str]:
        prop = self.props.get("className")
        if prop is None or prop.type != PropType.STRING:
            return []
        return prop.value.split()


@dataclass
class CssClassBlock(Block):
    kind: ClassVar[BlockKind] = BlockKind.CSS_CLASS
    selector: str = ""
    declarations: str = ""

    @property
    def cascade_key(self) -> int:
        """Declaration position used to order rules of one file."""
        index = self.metadata.get("rule_start_index")
        if isinstance(index, int):
            return index
        return self.start_line * 1_000_000 + self.start_col


@dataclass
class ObjectBlock(Block):
    kind: ClassVar[BlockKind] = BlockKind.OBJECT


# Blocks that can carry className tokens and take part in style linking
STYLEABLE_TYPES = (ElementBlock, HtmlElementBlock)


@dataclass
class ProjectTree:
    """Result of a project parse."""
    blocks: dict[str, Block] = field(default_factory=dict)
    roots: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "blocks": {block_id: block.to_dict() for block_id, block in self.blocks.items()},
            "roots": list(self.roots),
            "skipped": list(self.skipped),
        }


@dataclass
class EngineConfig:
    """Configuration for the block graph engine."""
    project_root: Path = field(default_factory=lambda: Path("."))
    skip_dirs: list[str] = field(default_factory=lambda: [
        "node_modules", ".git", "__pycache__", "build", "dist",
        ".next", ".venv", "venv", "env", ".turbo", "coverage",
    ])
    component_extensions: tuple[str, ...] = (".js", ".jsx", ".mjs", ".ts", ".tsx")
    markup_extensions: tuple[str, ...] = (".html", ".htm")
    style_extensions: tuple[str, ...] = (".css", ".scss")
    # Tried in order after the literal path when resolving an import specifier
    resolve_extensions: tuple[str, ...] = (
        ".tsx", ".ts", ".jsx", ".js", ".mjs", ".css", ".scss",
    )
    # Specifier prefix -> directory relative to project_root, e.g. {"@": "src"}
    path_aliases: dict[str, str] = field(default_factory=dict)
    tolerate_syntax_errors: bool = False
