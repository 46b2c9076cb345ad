"""
Filesystem side of the sync: naming rules, file writer and sourcemap.
"""

from .naming import ScriptNaming, sanitize_name, short_id
from .writer import FileWriter, FileMapping
from .sourcemap import SourcemapGenerator

__all__ = [
    "ScriptNaming",
    "sanitize_name",
    "short_id",
    "FileWriter",
    "FileMapping",
    "SourcemapGenerator",
]
