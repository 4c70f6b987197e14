"""Re-parenting of elements within one file."""

from __future__ import annotations

import logging

from blockgraph.errors import InvalidOperandError, NotFoundError
from blockgraph.graph.store import BlockGraph
from blockgraph.models import ComponentBlock, ComponentInstanceBlock, ElementBlock

logger = logging.getLogger(__name__)


def move_block(graph: BlockGraph, block_id: str, new_parent_id: str, index: int | None = None) -> ElementBlock:
    block = graph.get(block_id)
    if block is None:
        raise NotFoundError(f"Block not found: {block_id}")
    new_parent = graph.get(new_parent_id)
    if new_parent is None:
        raise NotFoundError(f"Parent block not found: {new_parent_id}")
    if not isinstance(block, ElementBlock):
        raise InvalidOperandError(f"Only elements can be moved, {block_id} is a {block.kind.value}")
    if not isinstance(new_parent, (ElementBlock, ComponentBlock)) or new_parent.name == "#text":
        raise InvalidOperandError(f"{new_parent_id} cannot take children")
    if new_parent.file_path != block.file_path:
        raise InvalidOperandError("Blocks can only be moved within their own file")
    if new_parent_id in graph.subtree(block_id):
        raise InvalidOperandError(f"Cannot move {block_id} into its own subtree")

    old_parent = graph.get(block.parent_id)
    if old_parent is not None:
        old_parent.children_ids = [c for c in old_parent.children_ids if c != block_id]

    count = len(new_parent.children_ids)
    at = count if index is None else max(0, min(index, count))
    new_parent.children_ids.insert(at, block_id)
    block.parent_id = new_parent_id

    if isinstance(block, ComponentInstanceBlock):
        definition = graph.get(block.ref_id)
        if isinstance(definition, ComponentBlock):
            for usage in definition.usages:
                if usage.usage_id == block_id:
                    usage.parent_id = new_parent_id

    logger.debug("Moved %s under %s at %d", block_id, new_parent_id, at)
    return block
