"""Task classifier package."""
from .base import TaskClassifier, TaskClassifierPluginBase
from .._constants import EXT_TASK_CLASSIFIER

from scitrera_app_framework import Variables, get_extension


def get_task_classifier(v: Variables = None) -> TaskClassifier:
    """Get the task classifier instance."""
    return get_extension(EXT_TASK_CLASSIFIER, v)


__all__ = (
    'TaskClassifier',
    'TaskClassifierPluginBase',
    'get_task_classifier',
    'EXT_TASK_CLASSIFIER',
)
