"""
Illustrated story generator.

Text generation, response parsing and illustration for short genre stories.
"""

__version__ = "1.0.0"
