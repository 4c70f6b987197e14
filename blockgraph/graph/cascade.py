"""Style-cascade resolution.

For every cascade root (an html document, or an exported top-level
component) the stylesheets reachable through its imports are folded into one
class-name -> rule map, later rules winning, and the root's rendered tree is
linked against it. A component rendered by another root is linked once per
root; identical edges collapse.
"""

from __future__ import annotations

import logging

import networkx as nx

from blockgraph.graph.modules import ModuleResolver, build_module_graph, style_load_order
from blockgraph.graph.store import BlockGraph
from blockgraph.models import (
    STYLEABLE_TYPES,
    Block,
    ComponentInstanceBlock,
    CssClassBlock,
)

logger = logging.getLogger(__name__)


def effective_class_map(graph: BlockGraph, load_order: list[str]) -> dict[str, CssClassBlock]:
    by_file: dict[str, list[CssClassBlock]] = {}
    for block in graph.of_type(CssClassBlock):
        by_file.setdefault(block.file_path, []).append(block)

    winners: dict[str, CssClassBlock] = {}
    for file_path in load_order:
        for block in sorted(by_file.get(file_path, []), key=lambda b: b.cascade_key):
            winners[block.name] = block
    return winners


def cascade_roots(graph: BlockGraph) -> list[Block]:
    return [graph.blocks[block_id] for block_id in graph.roots()]


def clear_style_links(graph: BlockGraph) -> None:
    for rule in graph.of_type(CssClassBlock):
        for user_id in list(rule.used_in):
            graph.unlink(user_id, rule.id)


def link_rendered_tree(graph: BlockGraph, root: Block, class_map: dict[str, CssClassBlock]) -> int:
    """Link className tokens under ``root`` to their winning rules."""
    linked = 0
    visited: set[str] = set()
    stack = [root.id]
    while stack:
        block_id = stack.pop()
        if block_id in visited:
            continue
        visited.add(block_id)
        block = graph.get(block_id)
        if block is None:
            continue

        if isinstance(block, STYLEABLE_TYPES):
            for token in block.class_names:
                rule = class_map.get(token)
                if rule is not None and rule.id not in block.uses:
                    graph.link(block.id, rule.id)
                    linked += 1
        if isinstance(block, ComponentInstanceBlock) and block.ref_id:
            stack.append(block.ref_id)
        stack.extend(reversed(block.children_ids))
    return linked


def resolve_styles(
    graph: BlockGraph,
    resolver: ModuleResolver,
    modules: nx.DiGraph | None = None,
    reset: bool = True,
) -> int:
    """Run the cascade for every root. Returns the number of links made."""
    if reset:
        clear_style_links(graph)
    if modules is None:
        modules = build_module_graph(graph, resolver)

    linked = 0
    roots = cascade_roots(graph)
    for root in roots:
        order = style_load_order(modules, root.file_path)
        if not order:
            continue
        linked += link_rendered_tree(graph, root, effective_class_map(graph, order))

    logger.info("Linked %d class tokens from %d cascade roots", linked, len(roots))
    return linked
