"""
Abstract base classes for the storage engine.
"""

from todostore.interfaces.sorted_source import SortedSource

__all__ = ["SortedSource"]
