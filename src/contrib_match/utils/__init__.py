"""Utility modules for contribution search."""

from .logging_config import setup_logging
from .text_processing import clean_text

__all__ = ["clean_text", "setup_logging"]
