"""Component instance insertion with usage wiring and import injection."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import PurePosixPath

from blockgraph.errors import InvalidOperandError, NotFoundError
from blockgraph.graph.store import BlockGraph
from blockgraph.ids import generate_id
from blockgraph.models import (
    ComponentBlock,
    ComponentInstanceBlock,
    ElementBlock,
    ImportKind,
    ImportRecord,
    PropType,
    PropValue,
    SourceRange,
)

logger = logging.getLogger(__name__)


@dataclass
class InsertResult:
    instance_id: str
    added_import: ImportRecord | None = None


def relative_specifier(from_file: str, target_file: str) -> str:
    """``./components/Card`` style specifier from one file to another."""
    target = PurePosixPath(target_file)
    rel = os.path.relpath(target.with_suffix("").as_posix(), PurePosixPath(from_file).parent.as_posix())
    rel = rel.replace(os.sep, "/")
    return rel if rel.startswith(".") else f"./{rel}"


def _coerce_props(props: dict[str, PropValue | str] | None) -> dict[str, PropValue]:
    coerced: dict[str, PropValue] = {}
    for name, value in (props or {}).items():
        coerced[name] = value if isinstance(value, PropValue) else PropValue(PropType.STRING, str(value))
    return coerced


def _render_tag(name: str, props: dict[str, PropValue]) -> str:
    parts = [name]
    for key, prop in props.items():
        if prop.type == PropType.STRING:
            parts.append(f'{key}="{prop.value}"')
        elif prop.type == PropType.BOOLEAN and prop.value == "true":
            parts.append(key)
        else:
            parts.append(f"{key}={{{prop.value}}}")
    return f"<{' '.join(parts)} />"


def _next_instance_id(graph: BlockGraph, rel_path: str, name: str) -> str:
    ordinal = 0
    while True:
        block_id = generate_id(rel_path, "inserted-instance", name, ordinal)
        if block_id not in graph:
            return block_id
        ordinal += 1


def insert_component_instance(
    graph: BlockGraph,
    parent_id: str,
    component_id: str,
    index: int | None = None,
    props: dict[str, PropValue | str] | None = None,
    position: SourceRange | None = None,
) -> InsertResult:
    """Render ``component_id`` as a child of ``parent_id``.

    ``index`` is clamped to the parent's child count; ``None`` appends.
    The owning component's file gains an import for the target unless it
    already has one or both live in the same file.
    """
    parent = graph.get(parent_id)
    if parent is None:
        raise NotFoundError(f"Parent block not found: {parent_id}")
    target = graph.get(component_id)
    if target is None:
        raise NotFoundError(f"Component not found: {component_id}")
    if not isinstance(target, ComponentBlock):
        raise InvalidOperandError(f"{component_id} is a {target.kind.value}, not a component")
    if not isinstance(parent, (ElementBlock, ComponentBlock)) or parent.name == "#text":
        raise InvalidOperandError(f"{parent_id} cannot take component children")
    owner = graph.enclosing_component(parent_id, include_self=True)
    if owner is None:
        raise NotFoundError(f"Block {parent_id} has no enclosing component")

    instance_props = _coerce_props(props)
    position = position or SourceRange()
    instance = ComponentInstanceBlock(
        id=_next_instance_id(graph, owner.rel_path, target.name),
        name=target.name,
        file_path=owner.file_path,
        rel_path=owner.rel_path,
        source_code=_render_tag(target.name, instance_props),
        start_line=position.start_line,
        end_line=position.end_line,
        start_col=position.start_col,
        end_col=position.end_col,
        parent_id=parent.id,
        props=instance_props,
        ref_id=target.id,
        metadata={"inserted": True},
    )

    count = len(parent.children_ids)
    at = count if index is None else max(0, min(index, count))
    graph.add(instance)
    parent.children_ids.insert(at, instance.id)
    graph.link(instance.id, target.id)
    target.usages.append(instance.usage_snapshot())

    added = _ensure_import(graph, owner, target)
    logger.debug("Inserted %s into %s at %d", target.name, parent_id, at)
    return InsertResult(instance_id=instance.id, added_import=added)


def _ensure_import(graph: BlockGraph, owner: ComponentBlock, target: ComponentBlock) -> ImportRecord | None:
    if target.file_path == owner.file_path:
        return None

    file_records = graph.file_imports.setdefault(owner.file_path, [])
    siblings = graph.components_in_file(owner.file_path)
    known = list(file_records) + [r for comp in siblings for r in comp.imports]
    if any(r.local_name == target.name and r.kind != ImportKind.NONE for r in known):
        return None

    if target.is_default_export:
        record = ImportRecord(relative_specifier(owner.file_path, target.file_path),
                              ImportKind.DEFAULT, target.name, "default")
    else:
        record = ImportRecord(relative_specifier(owner.file_path, target.file_path),
                              ImportKind.NAMED, target.name, target.name)
    file_records.append(record)
    for comp in siblings:
        comp.imports.append(record)
    logger.info("Added import %s to %s", record, owner.rel_path)
    return record
