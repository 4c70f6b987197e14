"""Block arena and the cross-file resolution passes."""

from blockgraph.graph.cascade import cascade_roots, effective_class_map, resolve_styles
from blockgraph.graph.modules import ModuleResolver, build_module_graph, style_load_order
from blockgraph.graph.store import BlockGraph
from blockgraph.graph.usages import build_import_map, resolve_usages

__all__ = [
    "BlockGraph",
    "ModuleResolver",
    "build_import_map",
    "build_module_graph",
    "cascade_roots",
    "effective_class_map",
    "resolve_styles",
    "resolve_usages",
    "style_load_order",
]
