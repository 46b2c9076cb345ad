"""
Tree-to-filesystem synchronization.

Key Components:
- TreeSyncEngine: Applies instance mutations to the tree and mirrors the
  result onto the sync directory
- SyncEngineMetrics: Counters for applied instances and file operations

The engine is the only component that drives both the TreeManager and the
FileWriter; all cross-component effects go through it.
"""

from .engine import TreeSyncEngine, SyncEngineMetrics

__all__ = [
    "TreeSyncEngine",
    "SyncEngineMetrics",
]
