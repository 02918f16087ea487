"""
Embedded, ordered, byte-keyed storage engine.
"""

from todostore.engine.store import ScanCursor, Store

__all__ = ["Store", "ScanCursor"]
