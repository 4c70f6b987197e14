"""Subtree deletion with usage, style-link and import cleanup."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from blockgraph.errors import NotFoundError
from blockgraph.graph.store import BlockGraph
from blockgraph.models import (
    ComponentBlock,
    ComponentInstanceBlock,
    ElementBlock,
    ImportRecord,
    PropType,
)

logger = logging.getLogger(__name__)


@dataclass
class DeleteResult:
    removed_block_ids: list[str] = field(default_factory=list)
    cleaned_imports: list[ImportRecord] = field(default_factory=list)


def _referenced_names(graph: BlockGraph, file_path: str, excluded: set[str]) -> set[str]:
    """Names rendered or passed as component/object props outside ``excluded``."""
    names: set[str] = set()
    for block in graph.blocks_in_file(file_path):
        if block.id in excluded or not isinstance(block, ElementBlock):
            continue
        names.add(block.name)
        member = block.metadata.get("member_expression")
        if member:
            names.add(member.split(".")[0])
        for prop in block.props.values():
            if prop.type in (PropType.COMPONENT, PropType.OBJECT):
                names.add(prop.value)
    return names


def delete_subtree(graph: BlockGraph, root_id: str) -> DeleteResult:
    """Delete ``root_id`` and everything under it.

    Components are never deleted here, only their usages. Imports of rendered
    components that nothing else in the file references anymore are removed
    from the file and from every component declared in it.
    """
    root = graph.get(root_id)
    if root is None:
        raise NotFoundError(f"Block not found: {root_id}")
    owner = graph.enclosing_component(root_id)
    if owner is None:
        raise NotFoundError(f"Block {root_id} has no enclosing component")

    subtree_ids = [
        block_id for block_id in graph.subtree(root_id)
        if not isinstance(graph.get(block_id), ComponentBlock)
    ]
    removed = set(subtree_ids)
    instances = [
        block for block in map(graph.get, subtree_ids)
        if isinstance(block, ComponentInstanceBlock)
    ]

    # Imports to drop
    file_path = owner.file_path
    still_used = _referenced_names(graph, file_path, removed)
    orphaned = {inst.name for inst in instances} - still_used
    file_records = graph.file_imports.get(file_path, [])
    cleaned: list[ImportRecord] = [r for r in file_records if r.local_name in orphaned]
    for component in graph.components_in_file(file_path):
        for record in component.imports:
            if record.local_name in orphaned and record not in cleaned:
                cleaned.append(record)

    # Usages on definitions
    for inst in instances:
        definition = graph.get(inst.ref_id)
        if isinstance(definition, ComponentBlock):
            definition.usages = [u for u in definition.usages if u.usage_id != inst.id]

    for block_id in subtree_ids:
        graph.detach(block_id)
    for block_id in subtree_ids:
        graph.remove(block_id)
    for block in graph:
        if any(child_id in removed for child_id in block.children_ids):
            block.children_ids = [c for c in block.children_ids if c not in removed]

    if cleaned:
        if file_path in graph.file_imports:
            graph.file_imports[file_path] = [r for r in file_records if r not in cleaned]
        for component in graph.components_in_file(file_path):
            component.imports = [r for r in component.imports if r not in cleaned]
        logger.info("Removed unused imports from %s: %s", owner.rel_path, ", ".join(map(str, cleaned)))

    logger.debug("Deleted %d blocks under %s", len(subtree_ids), root_id)
    return DeleteResult(removed_block_ids=subtree_ids, cleaned_imports=cleaned)
