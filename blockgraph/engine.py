"""Project-level facade: parse, resolve, edit, reparse."""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from blockgraph.graph import BlockGraph, ModuleResolver, resolve_styles, resolve_usages
from blockgraph.models import (
    Block,
    ComponentBlock,
    ComponentInstanceBlock,
    CssClassBlock,
    EngineConfig,
    ProjectTree,
    PropValue,
    SourceRange,
)
from blockgraph.mutators import (
    DeleteResult,
    InsertResult,
    delete_subtree,
    insert_component_instance,
    move_block,
    set_prop,
)
from blockgraph.parsers import ParsedFile, parse_file
from blockgraph.parsers.language_map import classify_path

logger = logging.getLogger(__name__)


class BlockEngine:
    """Owns one block graph for one project root."""

    def __init__(self, project_root: Path | str, config: EngineConfig | None = None):
        self.project_root = Path(project_root).resolve()
        self.config = replace(config or EngineConfig(), project_root=self.project_root)
        self.graph = BlockGraph()
        self.resolver = ModuleResolver(self.config)
        # block id -> tree-sitter node / markup node of the current parse
        self.syntax_nodes: dict[str, Any] = {}
        self.skipped: list[str] = []

    # ── Discovery ────────────────────────────────────────────

    def _should_skip(self, path: Path) -> bool:
        for part in path.relative_to(self.project_root).parts[:-1]:
            for pattern in self.config.skip_dirs:
                if fnmatch.fnmatch(part, pattern):
                    return True
        return False

    def discover_files(self) -> list[Path]:
        """All parseable files under the project root, sorted."""
        files: list[Path] = []
        for path in sorted(self.project_root.rglob("*")):
            if path.is_dir() or self._should_skip(path):
                continue
            if classify_path(path, self.config) is not None:
                files.append(path)
        return files

    # ── Loading ──────────────────────────────────────────────

    def _reset(self) -> None:
        self.graph = BlockGraph()
        self.resolver.clear()
        self.syntax_nodes = {}
        self.skipped = []

    def _ingest(self, result: ParsedFile | None) -> None:
        if result is None:
            return
        if result.skipped:
            logger.warning("Skipped %s: %s", result.rel_path, result.error)
            self.skipped.append(result.rel_path)
            return
        for block in result.blocks:
            self.graph.add(block)
        self.graph.file_imports[result.file_path] = list(result.imports)
        self.syntax_nodes.update(result.syntax_nodes)

    def _resolve(self) -> None:
        resolve_usages(self.graph, self.resolver)
        resolve_styles(self.graph, self.resolver)

    def load_project(self) -> ProjectTree:
        """Parse every file under the root and run both resolution passes."""
        self._reset()
        files = self.discover_files()
        for path in files:
            self._ingest(parse_file(path, self.project_root, self.config))
        self._resolve()
        logger.info("Loaded %d files, %d blocks (%d skipped)",
                    len(files), len(self.graph), len(self.skipped))
        return self.tree()

    async def load_project_async(self) -> ProjectTree:
        """Same as :meth:`load_project` with file I/O moved off the event loop."""
        files = await asyncio.to_thread(self.discover_files)
        self._reset()
        for path in files:
            try:
                source = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                rel_path = path.relative_to(self.project_root).as_posix()
                logger.warning("Skipped %s: unreadable: %s", rel_path, e)
                self.skipped.append(rel_path)
                continue
            self._ingest(parse_file(path, self.project_root, self.config, source=source))
        self._resolve()
        return self.tree()

    def reparse_file(self, path: Path | str, source: str | None = None) -> ProjectTree:
        """Replace one file's blocks with a fresh parse and re-resolve.

        A missing file just has its blocks removed.
        """
        path = Path(path)
        if not path.is_absolute():
            path = self.project_root / path
        path = path.resolve()
        file_path = path.as_posix()

        self._drop_file(file_path)
        rel_path = path.relative_to(self.project_root).as_posix()
        if rel_path in self.skipped:
            self.skipped.remove(rel_path)
        self.resolver.clear()

        if source is not None or path.is_file():
            self._ingest(parse_file(path, self.project_root, self.config, source=source))
        self._resolve()
        return self.tree()

    def _drop_file(self, file_path: str) -> None:
        # Rendered subtrees go through the regular delete so definitions
        # elsewhere lose their usages
        for component in self.graph.components_in_file(file_path):
            for child_id in list(component.children_ids):
                if child_id in self.graph:
                    delete_subtree(self.graph, child_id)

        for block in self.graph.blocks_in_file(file_path):
            if isinstance(block, ComponentBlock):
                self._revert_instances(block)
            self.graph.detach(block.id)
            self.graph.remove(block.id)
            self.syntax_nodes.pop(block.id, None)

        for block_id in [b for b in self.syntax_nodes if b not in self.graph]:
            del self.syntax_nodes[block_id]
        self.graph.file_imports.pop(file_path, None)

    def _revert_instances(self, component: ComponentBlock) -> None:
        """Turn instances of a definition that is going away back into elements."""
        for usage in component.usages:
            instance = self.graph.get(usage.usage_id)
            if not isinstance(instance, ComponentInstanceBlock):
                continue
            self.graph.unlink(instance.id, component.id)
            self.graph.replace(instance.to_element())
        component.usages = []

    # ── Queries ──────────────────────────────────────────────

    def tree(self) -> ProjectTree:
        return self.graph.to_tree(self.skipped)

    def get(self, block_id: str) -> Block | None:
        return self.graph.get(block_id)

    def syntax_node(self, block_id: str) -> Any:
        return self.syntax_nodes.get(block_id)

    def styles_for(self, block_id: str) -> list[Block]:
        block = self.graph.require(block_id)
        return [b for b in map(self.graph.get, block.uses) if isinstance(b, CssClassBlock)]

    # ── Edits ────────────────────────────────────────────────

    def delete_subtree(self, root_id: str) -> DeleteResult:
        result = delete_subtree(self.graph, root_id)
        for block_id in result.removed_block_ids:
            self.syntax_nodes.pop(block_id, None)
        return result

    def insert_component_instance(
        self,
        parent_id: str,
        component_id: str,
        index: int | None = None,
        props: dict[str, PropValue | str] | None = None,
        position: SourceRange | None = None,
    ) -> InsertResult:
        result = insert_component_instance(self.graph, parent_id, component_id, index, props, position)
        resolve_styles(self.graph, self.resolver)
        return result

    def move_block(self, block_id: str, new_parent_id: str, index: int | None = None) -> Block:
        return move_block(self.graph, block_id, new_parent_id, index)

    def update_prop(self, block_id: str, name: str, value: PropValue | str | None) -> Block:
        block = set_prop(self.graph, block_id, name, value)
        if name in ("className", "class"):
            resolve_styles(self.graph, self.resolver)
        return block
