"""Context service package."""
from .base import ContextService, ContextServicePluginBase
from .._constants import EXT_CONTEXT_SERVICE

from scitrera_app_framework import Variables, get_extension


def get_context_service(v: Variables = None) -> ContextService:
    """Get the context service instance."""
    return get_extension(EXT_CONTEXT_SERVICE, v)


__all__ = (
    'ContextService',
    'ContextServicePluginBase',
    'get_context_service',
    'EXT_CONTEXT_SERVICE',
)
