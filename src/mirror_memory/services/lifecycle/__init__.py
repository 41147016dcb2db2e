"""Memory lifecycle manager package."""
from scitrera_app_framework import Variables, get_extension

from .base import (
    CleanupResult,
    DecayResult,
    DecaySettings,
    LifecycleManager,
    LifecycleManagerPluginBase,
    MaintenanceResult,
)
from .._constants import EXT_LIFECYCLE_MANAGER


def get_lifecycle_manager(v: Variables = None) -> LifecycleManager:
    """Get the lifecycle manager instance."""
    return get_extension(EXT_LIFECYCLE_MANAGER, v)


__all__ = (
    'LifecycleManager',
    'LifecycleManagerPluginBase',
    'DecaySettings',
    'DecayResult',
    'CleanupResult',
    'MaintenanceResult',
    'get_lifecycle_manager',
    'EXT_LIFECYCLE_MANAGER',
)
