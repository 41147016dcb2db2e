"""Graph traversal package."""
from .base import GraphTraversal, GraphTraversalPluginBase
from .._constants import EXT_GRAPH_TRAVERSAL

from scitrera_app_framework import Variables, get_extension


def get_graph_traversal(v: Variables = None) -> GraphTraversal:
    """Get the graph traversal instance."""
    return get_extension(EXT_GRAPH_TRAVERSAL, v)


__all__ = (
    'GraphTraversal',
    'GraphTraversalPluginBase',
    'get_graph_traversal',
    'EXT_GRAPH_TRAVERSAL',
)
