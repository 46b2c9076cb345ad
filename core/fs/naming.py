"""
Script file naming rules.

Single source of truth for how an instance name and class map to a file name
and back. The file writer applies these rules; the snapshot builder inverts
them.
"""

import hashlib
import re
import string
from typing import Dict, Optional, Tuple

from ..models.config import SyncConfig
from ..models.instances import NodeKind

# Characters that are invalid or ambiguous in file and directory names
_UNSAFE_CHARS = re.compile(r'[<>:"|?*/\\\x00-\x1f]')
PLACEHOLDER = "_"
COLLISION_SEPARATOR = "__"
SHORT_ID_LENGTH = 8


def sanitize_name(name: str) -> str:
    """Replace filesystem-unsafe characters with a placeholder"""
    sanitized = _UNSAFE_CHARS.sub(PLACEHOLDER, name)
    # Empty and relative-directory names would not produce a real segment
    if sanitized in ("", ".", ".."):
        return PLACEHOLDER * max(len(sanitized), 1)
    return sanitized


def short_id(guid: str) -> str:
    """
    Derive the 8-hex-character tag used to disambiguate colliding files.

    Uses the first hex digits of the identity so the tag is recognisable;
    identities with too few hex digits fall back to a digest. Either way the
    result depends only on the identity.
    """
    hex_chars = "".join(ch for ch in guid if ch in string.hexdigits)
    if len(hex_chars) >= SHORT_ID_LENGTH:
        return hex_chars[:SHORT_ID_LENGTH].lower()
    return hashlib.sha256(guid.encode('utf-8')).hexdigest()[:SHORT_ID_LENGTH]


class ScriptNaming:
    """Class-specific file decoration built from the sync configuration"""

    def __init__(self, config: Optional[SyncConfig] = None):
        config = config or SyncConfig()
        self.extension = config.script_extension
        self.legacy_extensions = tuple(
            ext for ext in config.legacy_extensions if ext != self.extension
        )
        self.suffix_module_scripts = config.suffix_module_scripts

        self._suffixes: Dict[NodeKind, Optional[str]] = {
            NodeKind.SCRIPT: config.server_suffix,
            NodeKind.LOCAL_SCRIPT: config.client_suffix,
            NodeKind.MODULE_SCRIPT: config.module_suffix if config.suffix_module_scripts else None,
        }
        # Reverse lookup used when classifying files; the module suffix is
        # always recognised even when it is not written.
        self._kinds_by_suffix: Dict[str, NodeKind] = {
            config.server_suffix: NodeKind.SCRIPT,
            config.client_suffix: NodeKind.LOCAL_SCRIPT,
            config.module_suffix: NodeKind.MODULE_SCRIPT,
        }

    @property
    def recognized_extensions(self) -> Tuple[str, ...]:
        return (self.extension,) + self.legacy_extensions

    def suffix_for(self, class_name: str) -> Optional[str]:
        return self._suffixes.get(NodeKind.from_class_name(class_name))

    def script_file_name(self, name: str, class_name: str) -> str:
        """File name for a script: ``name[.suffix].ext``"""
        base = sanitize_name(name)
        suffix = self.suffix_for(class_name)
        if suffix:
            base = f"{base}.{suffix}"
        return f"{base}{self.extension}"

    def disambiguated_file_name(self, name: str, guid: str) -> str:
        """File name used when another identity owns the canonical path"""
        return f"{sanitize_name(name)}{COLLISION_SEPARATOR}{short_id(guid)}{self.extension}"

    def matching_extension(self, file_name: str) -> Optional[str]:
        lowered = file_name.lower()
        for ext in self.recognized_extensions:
            if lowered.endswith(ext) and len(file_name) > len(ext):
                return ext
        return None

    def is_script_file(self, file_name: str) -> bool:
        return self.matching_extension(file_name) is not None

    def classify_file(self, file_name: str) -> Optional[Tuple[str, str]]:
        """
        Infer (class_name, name) from a script file name.

        Legacy extensions are normalised to the primary one before the class
        suffix is stripped. Files without a suffix are module scripts.

        Returns:
            Tuple of class name and logical name, or None for other files
        """
        ext = self.matching_extension(file_name)
        if ext is None:
            return None

        normalized = file_name[:-len(ext)] + self.extension
        base = normalized[:-len(self.extension)]

        for suffix, kind in self._kinds_by_suffix.items():
            marker = f".{suffix}"
            if base.endswith(marker) and len(base) > len(marker):
                return kind.value, base[:-len(marker)]

        if not base:
            return None
        return NodeKind.MODULE_SCRIPT.value, base
