"""Lifecycle decision provider package."""
from .base import DecisionProvider, DecisionProviderPluginBase
from .._constants import EXT_DECISION_PROVIDER

from scitrera_app_framework import Variables, get_extension


def get_decision_provider(v: Variables = None) -> DecisionProvider:
    """Get the decision provider instance."""
    return get_extension(EXT_DECISION_PROVIDER, v)


__all__ = (
    'DecisionProvider',
    'DecisionProviderPluginBase',
    'get_decision_provider',
    'EXT_DECISION_PROVIDER',
)
