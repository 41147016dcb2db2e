"""Context assembler package."""
from .base import ContextAssembler, ContextAssemblerPluginBase
from .._constants import EXT_CONTEXT_ASSEMBLER

from scitrera_app_framework import Variables, get_extension


def get_context_assembler(v: Variables = None) -> ContextAssembler:
    """Get the context assembler instance."""
    return get_extension(EXT_CONTEXT_ASSEMBLER, v)


__all__ = (
    'ContextAssembler',
    'ContextAssemblerPluginBase',
    'get_context_assembler',
    'EXT_CONTEXT_ASSEMBLER',
)
