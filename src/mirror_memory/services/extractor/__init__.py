"""Text extractor package."""
from .base import TextExtractor, TextExtractorPluginBase
from .._constants import EXT_TEXT_EXTRACTOR

from scitrera_app_framework import Variables, get_extension


def get_text_extractor(v: Variables = None) -> TextExtractor:
    """Get the text extractor instance."""
    return get_extension(EXT_TEXT_EXTRACTOR, v)


__all__ = (
    'TextExtractor',
    'TextExtractorPluginBase',
    'get_text_extractor',
    'EXT_TEXT_EXTRACTOR',
)
