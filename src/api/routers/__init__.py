"""
API Routers package.
"""

from . import story, images

__all__ = ["story", "images"]
