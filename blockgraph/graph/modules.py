"""Module specifier resolution and the file-level import graph."""

from __future__ import annotations

import logging
from pathlib import Path

import networkx as nx

from blockgraph.graph.store import BlockGraph
from blockgraph.models import EngineConfig, FileKind
from blockgraph.parsers.language_map import classify_path

logger = logging.getLogger(__name__)

_REMOTE_PREFIXES = ("http://", "https://", "//", "data:")


class ModuleResolver:
    """Turns an import specifier into an absolute POSIX file path.

    Tries the literal path, then each of ``resolve_extensions`` appended,
    then ``index.<ext>`` inside a directory. Bare package specifiers
    (``react``) never resolve, except in markup and stylesheets where a bare
    reference is relative to the referencing file.
    """

    def __init__(self, config: EngineConfig):
        self.config = config
        self.project_root = Path(config.project_root).resolve()
        self._cache: dict[tuple[str, str], str | None] = {}

    def clear(self) -> None:
        self._cache.clear()

    def resolve(self, specifier: str, from_file: str) -> str | None:
        from_dir = Path(from_file).parent.as_posix()
        key = (specifier, from_dir)
        if key not in self._cache:
            self._cache[key] = self._resolve(specifier, from_file)
            if self._cache[key] is None:
                logger.debug("Unresolved import %r from %s", specifier, from_file)
        return self._cache[key]

    def _resolve(self, specifier: str, from_file: str) -> str | None:
        specifier = specifier.split("?")[0].split("#")[0]
        if not specifier or specifier.startswith(_REMOTE_PREFIXES):
            return None
        base = self._base_path(specifier, Path(from_file))
        if base is None:
            return None

        candidates = [base]
        candidates.extend(Path(f"{base}{ext}") for ext in self.config.resolve_extensions)
        candidates.extend(base / f"index{ext}" for ext in self.config.resolve_extensions)
        for candidate in candidates:
            if candidate.is_file():
                return candidate.resolve().as_posix()
        return None

    def _base_path(self, specifier: str, from_file: Path) -> Path | None:
        if specifier in (".", "..") or specifier.startswith(("./", "../")):
            return from_file.parent / specifier

        # Longest alias first so "@/x" wins over "@"
        for alias in sorted(self.config.path_aliases, key=len, reverse=True):
            if specifier == alias or specifier.startswith(alias.rstrip("/") + "/"):
                rest = specifier[len(alias):].lstrip("/")
                return self.project_root / self.config.path_aliases[alias] / rest

        if specifier.startswith("/"):
            return self.project_root / specifier.lstrip("/")

        if classify_path(from_file, self.config) in (FileKind.MARKUP, FileKind.STYLE):
            return from_file.parent / specifier
        return None


def build_module_graph(graph: BlockGraph, resolver: ModuleResolver) -> nx.DiGraph:
    """Directed graph of files, one edge per resolved import in source order."""
    modules = nx.DiGraph()
    for file_path, records in graph.file_imports.items():
        if file_path not in modules:
            modules.add_node(file_path, kind=classify_path(Path(file_path), resolver.config))
        for order, record in enumerate(records):
            target = resolver.resolve(record.source, file_path)
            if target is None or modules.has_edge(file_path, target):
                continue
            if target not in modules:
                modules.add_node(target, kind=classify_path(Path(target), resolver.config))
            modules.add_edge(file_path, target, order=order, specifier=record.source)
    return modules


def style_load_order(modules: nx.DiGraph, root_file: str) -> list[str]:
    """Stylesheets reachable from ``root_file`` in cascade order.

    Imports are followed depth-first in source order and each stylesheet is
    kept at first reach. A stylesheet comes after the sheets it ``@import``s,
    which is exactly where it lands in a DFS postorder once script files are
    dropped.
    """
    if root_file not in modules:
        return []
    return [
        node for node in nx.dfs_postorder_nodes(modules, root_file)
        if modules.nodes[node].get("kind") == FileKind.STYLE
    ]
