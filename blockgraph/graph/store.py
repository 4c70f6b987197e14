"""Block arena: every block keyed by id, edges stored as ids."""

from __future__ import annotations

from typing import Iterator, TypeVar

from blockgraph.errors import NotFoundError
from blockgraph.models import (
    Block,
    ComponentBlock,
    HtmlRootBlock,
    ImportRecord,
    ProjectTree,
)

B = TypeVar("B", bound=Block)


class BlockGraph:
    """In-memory block graph.

    ``children_ids``/``parent_id`` form the tree part; ``uses``/``used_in`` form
    the reference part and are always kept symmetric through :meth:`link` and
    :meth:`unlink`. ``file_imports`` holds the import records of every parsed
    file, keyed by absolute POSIX path.
    """

    def __init__(self):
        self.blocks: dict[str, Block] = {}
        self.file_imports: dict[str, list[ImportRecord]] = {}

    def __contains__(self, block_id: object) -> bool:
        return block_id in self.blocks

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(list(self.blocks.values()))

    def get(self, block_id: str | None) -> Block | None:
        if block_id is None:
            return None
        return self.blocks.get(block_id)

    def require(self, block_id: str) -> Block:
        block = self.blocks.get(block_id)
        if block is None:
            raise NotFoundError(f"Block not found: {block_id}")
        return block

    def add(self, block: Block) -> None:
        self.blocks[block.id] = block

    def replace(self, block: Block) -> None:
        """Swap in a new variant of an existing block (same id)."""
        if block.id not in self.blocks:
            raise NotFoundError(f"Block not found: {block.id}")
        self.blocks[block.id] = block

    def remove(self, block_id: str) -> Block | None:
        return self.blocks.pop(block_id, None)

    def of_type(self, cls: type[B]) -> list[B]:
        return [b for b in self.blocks.values() if isinstance(b, cls)]

    def blocks_in_file(self, file_path: str) -> list[Block]:
        return [b for b in self.blocks.values() if b.file_path == file_path]

    def components_in_file(self, file_path: str) -> list[ComponentBlock]:
        return [
            b for b in self.blocks.values()
            if isinstance(b, ComponentBlock) and b.file_path == file_path
        ]

    def find_components(self, name: str) -> list[ComponentBlock]:
        return [b for b in self.of_type(ComponentBlock) if b.name == name]

    # ── Tree ─────────────────────────────────────────────────

    def ancestors(self, block_id: str) -> Iterator[Block]:
        seen = {block_id}
        block = self.get(block_id)
        while block is not None and block.parent_id is not None and block.parent_id not in seen:
            seen.add(block.parent_id)
            block = self.get(block.parent_id)
            if block is not None:
                yield block

    def enclosing_component(self, block_id: str, include_self: bool = False) -> ComponentBlock | None:
        """Nearest ``component`` ancestor of a block."""
        block = self.get(block_id)
        if include_self and isinstance(block, ComponentBlock):
            return block
        for ancestor in self.ancestors(block_id):
            if isinstance(ancestor, ComponentBlock):
                return ancestor
        return None

    def subtree(self, root_id: str) -> list[str]:
        """Preorder ids under ``root_id``, root included.

        Never enters another component's body: instance children are the
        markup passed at the call site, and component blocks below the root
        are not followed.
        """
        order: list[str] = []
        stack = [root_id]
        seen: set[str] = set()
        while stack:
            block_id = stack.pop()
            if block_id in seen:
                continue
            block = self.get(block_id)
            if block is None:
                continue
            if block_id != root_id and isinstance(block, ComponentBlock):
                continue
            seen.add(block_id)
            order.append(block_id)
            stack.extend(reversed(block.children_ids))
        return order

    # ── Reference edges ──────────────────────────────────────

    def link(self, source_id: str, target_id: str) -> None:
        source = self.require(source_id)
        target = self.require(target_id)
        if target_id not in source.uses:
            source.uses.append(target_id)
        if source_id not in target.used_in:
            target.used_in.append(source_id)

    def unlink(self, source_id: str, target_id: str) -> None:
        source = self.get(source_id)
        target = self.get(target_id)
        if source is not None and target_id in source.uses:
            source.uses.remove(target_id)
        if target is not None and source_id in target.used_in:
            target.used_in.remove(source_id)

    def detach(self, block_id: str) -> None:
        """Drop every reference edge touching ``block_id``."""
        block = self.get(block_id)
        if block is None:
            return
        for target_id in list(block.uses):
            self.unlink(block_id, target_id)
        for source_id in list(block.used_in):
            self.unlink(source_id, block_id)

    # ── Output ───────────────────────────────────────────────

    def roots(self) -> list[str]:
        """Exported top-level components and html documents."""
        return [
            b.id for b in self.blocks.values()
            if b.parent_id is None
            and (isinstance(b, HtmlRootBlock) or (isinstance(b, ComponentBlock) and b.is_exported))
        ]

    def to_tree(self, skipped: list[str] | None = None) -> ProjectTree:
        return ProjectTree(
            blocks=dict(self.blocks),
            roots=self.roots(),
            skipped=list(skipped or []),
        )
