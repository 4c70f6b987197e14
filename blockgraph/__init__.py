"""blockgraph: a structural, editable model of a UI project's source."""

__version__ = "0.1.0"
