"""
Filesystem writer.

Mirrors script nodes of the canonical tree onto files under a base directory,
keeping an identity <-> file path mapping for every file it owns.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

import aiofiles

from ..models.config import SyncConfig
from ..models.instances import TreeNode
from .naming import ScriptNaming, sanitize_name

logger = logging.getLogger(__name__)


def normalize_path(path: Union[str, Path]) -> Path:
    """Absolute, normalized path without resolving symlinks"""
    return Path(os.path.abspath(path))


@dataclass(frozen=True)
class FileMapping:
    """A file currently owned by the writer"""
    guid: str
    file_path: Path
    class_name: str


class FileWriter:
    """
    Writes the virtual tree to the filesystem.

    Features:
    - Deterministic file path per script node
    - Stable, identity-derived names for colliding paths
    - Batched writes with per-file failure isolation
    - Move handling with pruning of emptied directories
    - Orphan file deletion after a full resync
    """

    def __init__(
        self,
        base_dir: Optional[Union[str, Path]] = None,
        config: Optional[SyncConfig] = None,
        naming: Optional[ScriptNaming] = None
    ):
        """
        Initialize the file writer.

        Args:
            base_dir: Directory that receives the files (default: config.sync_dir)
            config: Sync configuration
            naming: Naming rules (default: built from config)

        Raises:
            OSError: If the base directory cannot be created
        """
        self.config = config or SyncConfig()
        self.naming = naming or ScriptNaming(self.config)
        self._base_dir = normalize_path(base_dir if base_dir is not None else self.config.sync_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

        self._mappings: Dict[str, FileMapping] = {}
        self._path_to_guid: Dict[Path, str] = {}

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def write_tree(self, nodes: Union[Mapping[str, TreeNode], Iterable[TreeNode]]) -> int:
        """
        Full resync: forget all mappings and write every script node.

        Returns:
            Number of files written
        """
        logger.info("Writing tree to filesystem...")

        self._mappings.clear()
        self._path_to_guid.clear()

        values = nodes.values() if isinstance(nodes, Mapping) else nodes
        script_nodes = [node for node in values if node.is_script]
        written = await self.write_batch(script_nodes)

        logger.info(f"Wrote {len(written)} scripts to filesystem")
        return len(written)

    async def write_batch(self, nodes: Iterable[TreeNode]) -> List[Path]:
        """
        Write several scripts at once.

        Paths are resolved against both existing mappings and the batch
        itself, so two nodes colliding inside one batch still disambiguate.
        A failure on one file is logged and does not stop the others.

        Returns:
            Paths that were written successfully
        """
        writes: List[Tuple[TreeNode, Path]] = []
        dirs_to_create: Set[Path] = set()
        batch_path_to_guid: Dict[Path, str] = {}

        for node in nodes:
            if not node.is_script or node.source is None:
                continue
            file_path = self._resolve_file_path(node, batch_path_to_guid)
            writes.append((node, file_path))
            dirs_to_create.add(file_path.parent)
            batch_path_to_guid[file_path] = node.guid

        for directory in sorted(dirs_to_create, key=lambda p: len(str(p))):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.error(f"Failed to create directory {directory}: {e}")

        written: List[Path] = []
        for node, file_path in writes:
            try:
                await self._write_file(file_path, node.source)
            except OSError as e:
                logger.error(f"Failed to write script {file_path}: {e}")
                continue

            self._record_mapping(node, file_path)
            written.append(file_path)
            logger.info(f"Wrote script: {self.get_relative_path(file_path)}")

        return written

    async def write_script(self, node: TreeNode) -> Optional[Path]:
        """
        Write or update a single script.

        If the script's canonical path changed since its last write, the old
        file is removed and emptied parent directories are pruned.

        Returns:
            The written path, or None if nothing was written
        """
        if not node.is_script:
            return None

        # Empty sources are real files; only never-synced sources are skipped
        if node.source is None:
            return None

        previous = self._mappings.get(node.guid)
        file_path = self.get_file_path(node)

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            await self._write_file(file_path, node.source)
        except OSError as e:
            logger.error(f"Failed to write script {file_path}: {e}")
            return None

        if previous is not None and previous.file_path != file_path:
            self._remove_stale_file(previous.file_path, node.guid)

        self._record_mapping(node, file_path)
        logger.info(f"Wrote script: {self.get_relative_path(file_path)}")
        return file_path

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    def delete_script(self, guid: str) -> bool:
        """
        Delete the file owned by an identity.

        Returns:
            True if the mapping existed and its file is gone
        """
        mapping = self._mappings.get(guid)
        if mapping is None:
            logger.debug(f"No file mapped for GUID: {guid}")
            return False

        try:
            self._unlink(mapping.file_path)
        except OSError as e:
            logger.error(f"Failed to delete script {mapping.file_path}: {e}")
            return False

        self._forget(guid)
        return True

    def delete_file_path(self, file_path: Union[str, Path]) -> bool:
        """Delete a file by path even if no mapping exists for it"""
        normalized = normalize_path(file_path)
        try:
            self._unlink(normalized)
        except OSError as e:
            logger.error(f"Failed to delete script {normalized}: {e}")
            return False

        guid = self._path_to_guid.get(normalized)
        if guid is not None:
            self._forget(guid)
        return True

    def delete_orphans(self) -> List[Path]:
        """
        Remove script files under the base directory that no mapping owns.

        Returns:
            Paths of the deleted files
        """
        removed: List[Path] = []
        for dirpath, _dirnames, filenames in os.walk(self._base_dir):
            for file_name in filenames:
                if not self.naming.is_script_file(file_name):
                    continue
                file_path = normalize_path(os.path.join(dirpath, file_name))
                if file_path in self._path_to_guid:
                    continue
                try:
                    file_path.unlink()
                except OSError as e:
                    logger.error(f"Failed to delete orphan {file_path}: {e}")
                    continue
                removed.append(file_path)
                logger.info(f"Deleted orphan: {self.get_relative_path(file_path)}")

        if removed:
            self.cleanup_empty_directories()
        return removed

    # ------------------------------------------------------------------
    # Directory pruning
    # ------------------------------------------------------------------

    def cleanup_empty_directories(self) -> int:
        """
        Remove every empty directory below the base directory.

        Returns:
            Number of directories removed
        """
        removed = 0
        for dirpath, _dirnames, _filenames in os.walk(self._base_dir, topdown=False):
            directory = normalize_path(dirpath)
            if directory == self._base_dir:
                continue
            try:
                if not any(directory.iterdir()):
                    directory.rmdir()
                    removed += 1
            except OSError as e:
                logger.warning(f"Cannot remove directory {directory}: {e}")

        if removed:
            logger.debug(f"Removed {removed} empty directories")
        return removed

    def cleanup_parents_if_empty(self, start_dir: Union[str, Path]) -> None:
        """Walk up from a directory removing it and its ancestors while empty"""
        current = normalize_path(start_dir)

        while current != self._base_dir and self._base_dir in current.parents:
            try:
                if current.exists():
                    if any(current.iterdir()):
                        break
                    current.rmdir()
                    logger.debug(f"Removed empty directory: {self.get_relative_path(current)}")
            except OSError as e:
                logger.warning(f"Cannot remove directory {current}: {e}")
                break
            current = current.parent

    # ------------------------------------------------------------------
    # Paths and mappings
    # ------------------------------------------------------------------

    def get_file_path(self, node: TreeNode) -> Path:
        """Get the filesystem path for a node"""
        return self._resolve_file_path(node)

    def get_mapping(self, guid: str) -> Optional[FileMapping]:
        return self._mappings.get(guid)

    def get_guid_by_path(self, file_path: Union[str, Path]) -> Optional[str]:
        return self._path_to_guid.get(normalize_path(file_path))

    def get_all_mappings(self) -> Dict[str, FileMapping]:
        return self._mappings

    def get_relative_path(self, file_path: Union[str, Path]) -> str:
        """Get path relative to base directory"""
        return os.path.relpath(file_path, self._base_dir)

    def _resolve_file_path(
        self,
        node: TreeNode,
        batch_path_to_guid: Optional[Dict[Path, str]] = None
    ) -> Path:
        # Scripts become files inside their parent's directory; every other
        # node maps to a directory named after its full path.
        dir_segments = node.path[:-1] if node.is_script else node.path
        directory = self._base_dir.joinpath(*(sanitize_name(s) for s in dir_segments))
        if not node.is_script:
            return directory

        desired = directory / self.naming.script_file_name(node.name, node.class_name)

        owner = self._path_to_guid.get(desired)
        batch_owner = batch_path_to_guid.get(desired) if batch_path_to_guid else None
        if (owner is not None and owner != node.guid) or (
            batch_owner is not None and batch_owner != node.guid
        ):
            unique = directory / self.naming.disambiguated_file_name(node.name, node.guid)
            logger.debug(
                f"Path collision for {node.display_path}, using {self.get_relative_path(unique)}"
            )
            return unique

        return desired

    def _record_mapping(self, node: TreeNode, file_path: Path) -> None:
        previous = self._mappings.get(node.guid)
        if previous is not None and self._path_to_guid.get(previous.file_path) == node.guid:
            del self._path_to_guid[previous.file_path]

        displaced = self._path_to_guid.get(file_path)
        if displaced is not None and displaced != node.guid:
            self._mappings.pop(displaced, None)

        self._mappings[node.guid] = FileMapping(
            guid=node.guid,
            file_path=file_path,
            class_name=node.class_name
        )
        self._path_to_guid[file_path] = node.guid

    def _forget(self, guid: str) -> None:
        mapping = self._mappings.pop(guid, None)
        if mapping is not None and self._path_to_guid.get(mapping.file_path) == guid:
            del self._path_to_guid[mapping.file_path]

    def _remove_stale_file(self, old_path: Path, guid: str) -> None:
        owner = self._path_to_guid.get(old_path)
        if owner == guid:
            del self._path_to_guid[old_path]
        elif owner is not None:
            # Another identity has taken over the old location
            return

        try:
            if old_path.exists():
                old_path.unlink()
                logger.info(f"Removed previous file: {self.get_relative_path(old_path)}")
        except OSError as e:
            logger.warning(f"Failed to remove previous file {old_path}: {e}")
            return

        self.cleanup_parents_if_empty(old_path.parent)

    def _unlink(self, file_path: Path) -> None:
        if file_path.exists() or file_path.is_symlink():
            file_path.unlink()
            logger.info(f"Deleted script: {self.get_relative_path(file_path)}")

    async def _write_file(self, file_path: Path, content: str) -> None:
        async with aiofiles.open(file_path, 'w', encoding='utf-8', newline='') as f:
            await f.write(content)
