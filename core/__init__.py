"""
studio-sync core package

Mirrors a live editor instance tree onto the local filesystem and rebuilds it
from disk on cold start.
"""

__version__ = "1.0.0"

from .models import InstanceData, NodeKind, TreeNode, UpdateResult, SyncConfig
from .tree import TreeManager
from .fs import FileWriter, ScriptNaming, SourcemapGenerator
from .snapshot import SnapshotBuilder
from .sync import TreeSyncEngine

__all__ = [
    "InstanceData",
    "NodeKind",
    "TreeNode",
    "UpdateResult",
    "SyncConfig",
    "TreeManager",
    "FileWriter",
    "ScriptNaming",
    "SourcemapGenerator",
    "SnapshotBuilder",
    "TreeSyncEngine"
]
