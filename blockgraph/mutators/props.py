"""Element property edits."""

from __future__ import annotations

from blockgraph.errors import InvalidOperandError, NotFoundError
from blockgraph.graph.store import BlockGraph
from blockgraph.models import (
    STYLEABLE_TYPES,
    Block,
    ComponentBlock,
    ComponentInstanceBlock,
    PropType,
    PropValue,
)


def set_prop(graph: BlockGraph, block_id: str, name: str, value: PropValue | str | None) -> Block:
    """Set (or with ``None`` remove) a prop; plain strings become string props.

    An instance's call-site snapshot on its definition follows the edit.
    """
    block = graph.get(block_id)
    if block is None:
        raise NotFoundError(f"Block not found: {block_id}")
    if not isinstance(block, STYLEABLE_TYPES) or block.name == "#text":
        raise InvalidOperandError(f"{block_id} is a {block.kind.value} and has no props")

    if value is None:
        block.props.pop(name, None)
    elif isinstance(value, PropValue):
        block.props[name] = value
    else:
        block.props[name] = PropValue(PropType.STRING, str(value))

    if isinstance(block, ComponentInstanceBlock):
        definition = graph.get(block.ref_id)
        if isinstance(definition, ComponentBlock):
            for usage in definition.usages:
                if usage.usage_id == block_id:
                    usage.props = dict(block.props)
    return block
