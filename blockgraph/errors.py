"""Errors raised by structural graph operations.

Parser-level misses (skipped files, unresolved tags or class tokens) are never
raised; they only show up as missing blocks or edges.
"""

from __future__ import annotations


class BlockGraphError(Exception):
    """Base class for graph operation failures."""


class NotFoundError(BlockGraphError):
    """Unknown block id, missing file, or missing enclosing component/parent."""


class InvalidOperandError(BlockGraphError):
    """A block exists but has the wrong kind for the requested operation."""
