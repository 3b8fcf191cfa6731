"""
Utilities module - small helpers shared by services.
"""

from pixel_tavern.utils import json_helpers

__all__ = ["json_helpers"]
