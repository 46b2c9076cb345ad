"""
studio-sync - Mirror a live editor instance tree onto the local filesystem.

Keeps script instances written as source files under a sync directory and
rebuilds the instance tree from that directory on cold start.
"""

__version__ = "1.0.0"

# Package imports for convenient access
from core.models.instances import InstanceData, TreeNode, UpdateResult
from core.models.config import SyncConfig
from core.sync.engine import TreeSyncEngine

__all__ = [
    "InstanceData",
    "TreeNode",
    "UpdateResult",
    "SyncConfig",
    "TreeSyncEngine",
    "__version__",
]
