"""
Core data models for studio-sync

Pydantic models for instance records and configuration, plus the
dataclasses used by the in-memory tree.
"""

from .instances import (
    InstanceData,
    NodeKind,
    TreeNode,
    TreeStats,
    UpdateResult,
    is_script_class,
)
from .config import SyncConfig, GlobalSettings

__all__ = [
    # Instances
    "InstanceData",
    "NodeKind",
    "TreeNode",
    "TreeStats",
    "UpdateResult",
    "is_script_class",

    # Configuration
    "SyncConfig",
    "GlobalSettings"
]
