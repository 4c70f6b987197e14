"""Usage resolution: capitalized elements become component instances."""

from __future__ import annotations

import logging

from blockgraph.graph.modules import ModuleResolver
from blockgraph.graph.store import BlockGraph
from blockgraph.models import (
    ComponentBlock,
    ComponentInstanceBlock,
    ElementBlock,
    ImportKind,
    PropType,
    PropValue,
)

logger = logging.getLogger(__name__)


def build_import_map(graph: BlockGraph, file_path: str, resolver: ModuleResolver) -> dict[str, str]:
    """Local name -> component id for everything ``file_path`` can render."""
    mapping = {comp.name: comp.id for comp in graph.components_in_file(file_path)}

    for record in graph.file_imports.get(file_path, []):
        if record.kind not in (ImportKind.DEFAULT, ImportKind.NAMED):
            continue
        target = resolver.resolve(record.source, file_path)
        if target is None:
            continue
        candidates = graph.components_in_file(target)
        if record.kind == ImportKind.DEFAULT:
            match = next((c for c in candidates if c.is_default_export), None)
        else:
            named = [c for c in candidates if c.name == record.imported_name]
            match = next((c for c in named if c.is_exported), named[0] if named else None)
        if match is None:
            logger.debug("%s: no component %r in %s", file_path, record.imported_name, target)
            continue
        mapping[record.local_name] = match.id
    return mapping


def _refine_object_props(element: ElementBlock, mapping: dict[str, str]) -> None:
    for name, prop in list(element.props.items()):
        if prop.type == PropType.OBJECT and prop.value in mapping:
            element.props[name] = PropValue(PropType.COMPONENT, prop.value)


def resolve_usages(graph: BlockGraph, resolver: ModuleResolver) -> int:
    """Wire every resolvable capitalized element to its definition.

    Elements that are already instances are left alone, so a second run
    changes nothing. Returns the number of new instances.
    """
    files = sorted({comp.file_path for comp in graph.of_type(ComponentBlock)})
    created = 0

    for file_path in files:
        mapping = build_import_map(graph, file_path, resolver)
        for component in graph.components_in_file(file_path):
            for block_id in graph.subtree(component.id):
                element = graph.get(block_id)
                if not isinstance(element, ElementBlock):
                    continue
                _refine_object_props(element, mapping)
                if isinstance(element, ComponentInstanceBlock):
                    continue
                if not element.name[:1].isupper():
                    continue
                ref_id = mapping.get(element.name)
                definition = graph.get(ref_id)
                if not isinstance(definition, ComponentBlock):
                    logger.debug("%s: unresolved tag <%s>", element.rel_path, element.name)
                    continue

                instance = ComponentInstanceBlock.from_element(element, definition.id)
                graph.replace(instance)
                graph.link(instance.id, definition.id)
                definition.usages.append(instance.usage_snapshot())
                created += 1

    logger.info("Resolved %d component instances across %d files", created, len(files))
    return created
