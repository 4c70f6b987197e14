"""Deterministic block identity."""

from __future__ import annotations

import hashlib
import re


def generate_id(rel_path: str, kind: str, name: str = "", ordinal: int = 0) -> str:
    """Build a block id from file, kind and the block's position among its kind.

    The same file parsed twice yields the same ids as long as its structure
    is unchanged.
    """
    normalized = rel_path.replace("\\", "/")
    clean_path = re.sub(r"[/.]", "_", normalized)
    clean_name = re.sub(r"[^a-zA-Z0-9]", "_", name) or "anon"
    digest = hashlib.sha1(f"{normalized}|{kind}|{ordinal}".encode("utf-8")).hexdigest()[:8]
    return f"{clean_path}__{kind}__{clean_name}_{digest}"


class IdAllocator:
    """Hands out ids for one file, counting ordinals per kind."""

    def __init__(self, rel_path: str):
        self.rel_path = rel_path
        self._counters: dict[str, int] = {}

    def next(self, kind: str, name: str = "") -> str:
        ordinal = self._counters.get(kind, 0)
        self._counters[kind] = ordinal + 1
        return generate_id(self.rel_path, kind, name, ordinal)
