"""Temporal fact service package."""
from scitrera_app_framework import Variables, get_extension

from .base import TemporalFactService, TemporalFactServicePluginBase
from .._constants import EXT_TEMPORAL_SERVICE


def get_temporal_service(v: Variables = None) -> TemporalFactService:
    """Get the temporal fact service instance."""
    return get_extension(EXT_TEMPORAL_SERVICE, v)


__all__ = (
    'TemporalFactService',
    'TemporalFactServicePluginBase',
    'get_temporal_service',
    'EXT_TEMPORAL_SERVICE',
)
