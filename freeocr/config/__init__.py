"""Configuration module for the FreeOCR relay."""

from .settings import Settings

# Import all constants
from .constants import *

__all__ = [
    "Settings",
]
