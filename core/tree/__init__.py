"""
Canonical in-memory instance tree.
"""

from .manager import TreeManager

__all__ = ["TreeManager"]
