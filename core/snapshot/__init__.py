"""
Cold-start reconstruction of the instance tree from a directory.
"""

from .builder import SnapshotBuilder, ScriptCandidate

__all__ = ["SnapshotBuilder", "ScriptCandidate"]
