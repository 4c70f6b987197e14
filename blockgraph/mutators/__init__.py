"""Structural graph edits.

Each mutator checks all of its preconditions before touching the graph, so a
call that raises leaves the graph exactly as it was.
"""

from blockgraph.mutators.delete import DeleteResult, delete_subtree
from blockgraph.mutators.insert import InsertResult, insert_component_instance
from blockgraph.mutators.move import move_block
from blockgraph.mutators.props import set_prop

__all__ = [
    "DeleteResult",
    "InsertResult",
    "delete_subtree",
    "insert_component_instance",
    "move_block",
    "set_prop",
]
