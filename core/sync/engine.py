"""
Tree Synchronization Engine.

Central coordinator that applies inbound instance mutations to the canonical
tree and forces the filesystem mirror to match the result.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from ..models.config import SyncConfig
from ..models.instances import InstanceData, TreeNode, UpdateResult, is_script_class
from ..tree.manager import TreeManager
from ..fs.naming import ScriptNaming
from ..fs.writer import FileWriter
from ..fs.sourcemap import SourcemapGenerator
from ..snapshot.builder import SnapshotBuilder

logger = logging.getLogger(__name__)


@dataclass
class SyncEngineMetrics:
    """Counters for the synchronization engine."""

    # Tree operations
    instances_applied: int = 0
    instances_deleted: int = 0
    snapshots_applied: int = 0

    # File operations
    files_written: int = 0
    files_deleted: int = 0
    orphans_deleted: int = 0
    write_failures: int = 0

    last_snapshot_at: Optional[datetime] = None


class TreeSyncEngine:
    """
    Single mutator for the tree and its filesystem mirror.

    Callers are expected to serialize calls (one event at a time); the engine
    itself holds no locks. Every operation turns the TreeManager's change
    descriptor into the matching FileWriter calls.
    """

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        tree: Optional[TreeManager] = None,
        writer: Optional[FileWriter] = None,
        sourcemap: Optional[SourcemapGenerator] = None
    ):
        """
        Initialize the synchronization engine.

        Args:
            config: Sync configuration
            tree: Tree manager (default: a new empty tree)
            writer: File writer (default: writes into config.sync_dir)
            sourcemap: Sourcemap generator (default: config.sourcemap_path, if set)
        """
        self.config = config or SyncConfig()
        self.naming = ScriptNaming(self.config)
        self.tree = tree or TreeManager()
        self.writer = writer or FileWriter(self.config.sync_dir, self.config, self.naming)
        if sourcemap is None and self.config.sourcemap_path is not None:
            sourcemap = SourcemapGenerator(self.config.sourcemap_path)
        self.sourcemap = sourcemap
        self.metrics = SyncEngineMetrics()

        logger.info(f"Initialized TreeSyncEngine for {self.writer.base_dir}")

    async def apply_instance(self, instance: InstanceData) -> UpdateResult:
        """
        Apply one created or changed instance.

        Args:
            instance: Incoming instance record

        Returns:
            The TreeManager change descriptor
        """
        result = self.tree.upsert(instance)
        node = result.node
        self.metrics.instances_applied += 1

        if node.is_script:
            if result.is_new or result.moved or result.class_changed or instance.source is not None:
                await self._write(node)
        elif result.prev_class_name is not None and is_script_class(result.prev_class_name):
            self._delete_files([node])

        if result.moved:
            # Every script below a renamed or moved node changes location
            for script in self.tree.get_descendant_scripts(node.guid):
                await self._write(script)

        if result.is_new or result.moved or result.class_changed:
            await self.refresh_sourcemap()

        return result

    async def update_source(self, guid: str, source: str) -> Optional[Path]:
        """Update a script's source and rewrite its file"""
        self.tree.update_script_source(guid, source)
        node = self.tree.get_node(guid)
        if node is None or not node.is_script:
            return None
        return await self._write(node)

    async def delete_instance(self, guid: str) -> Optional[TreeNode]:
        """
        Delete an instance, its subtree, and every file the subtree owns.

        Returns:
            The deleted subtree root, or None if the identity is unknown
        """
        node = self.tree.get_node(guid)
        if node is None:
            logger.debug(f"Delete ignored for unknown instance: {guid}")
            return None

        # Collect scripts before the subtree's links are severed
        scripts = ([node] if node.is_script else []) + self.tree.get_descendant_scripts(guid)

        deleted = self.tree.delete_instance(guid)
        self.metrics.instances_deleted += 1
        self._delete_files(scripts)

        await self.refresh_sourcemap()
        return deleted

    async def apply_full_snapshot(
        self,
        instances: Sequence[InstanceData],
        delete_orphans: Optional[bool] = None
    ) -> int:
        """
        Replace the tree with a snapshot and resync the filesystem.

        Args:
            instances: Complete instance list
            delete_orphans: Override for config.delete_orphans_on_connect

        Returns:
            Number of script files written
        """
        self.tree.apply_full_snapshot(instances)
        written = await self.writer.write_tree(self.tree.get_all_nodes())
        self.metrics.files_written += written
        self.metrics.snapshots_applied += 1
        self.metrics.last_snapshot_at = datetime.now()

        if delete_orphans is None:
            delete_orphans = self.config.delete_orphans_on_connect
        if delete_orphans:
            orphans = self.writer.delete_orphans()
            self.metrics.orphans_deleted += len(orphans)
            if orphans:
                logger.info(f"Deleted {len(orphans)} orphaned files")

        await self.refresh_sourcemap()
        return written

    async def seed_from_directory(
        self,
        source_dir: Optional[Union[str, Path]] = None,
        dest_prefix: Sequence[str] = ()
    ) -> List[InstanceData]:
        """
        Cold start: rebuild the tree from a directory and normalize its files.

        Args:
            source_dir: Directory to read (default: the sync directory)
            dest_prefix: Path segments prepended to every instance

        Returns:
            The instance list that was applied

        Raises:
            OSError: If the source directory cannot be scanned; nothing is
                changed on disk in that case
        """
        builder = SnapshotBuilder.from_config(
            self.config,
            source_dir=source_dir if source_dir is not None else self.writer.base_dir,
            dest_prefix=dest_prefix
        )
        instances = await builder.build()

        delete_orphans = None
        if builder.skipped_files or builder.skipped_dirs:
            # Unread files and unscanned directories would look like orphans
            logger.warning(
                f"{len(builder.skipped_files)} script files and "
                f"{len(builder.skipped_dirs)} directories could not be read; "
                f"skipping orphan deletion"
            )
            delete_orphans = False

        await self.apply_full_snapshot(instances, delete_orphans=delete_orphans)
        return instances

    async def refresh_sourcemap(self) -> bool:
        if self.sourcemap is None:
            return False
        return await self.sourcemap.write(self.tree, self.writer)

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics"""
        stats = asdict(self.tree.get_stats())
        stats["mapped_files"] = len(self.writer.get_all_mappings())
        stats.update(asdict(self.metrics))
        return stats

    async def _write(self, node: TreeNode) -> Optional[Path]:
        if node.source is None:
            return None
        path = await self.writer.write_script(node)
        if path is None:
            self.metrics.write_failures += 1
        else:
            self.metrics.files_written += 1
        return path

    def _delete_files(self, scripts: Sequence[TreeNode]) -> None:
        directories: Set[Path] = set()
        for script in scripts:
            mapping = self.writer.get_mapping(script.guid)
            if mapping is None:
                continue
            if self.writer.delete_script(script.guid):
                self.metrics.files_deleted += 1
                directories.add(mapping.file_path.parent)

        # Deepest first so a parent is only checked once its children are gone
        for directory in sorted(directories, key=lambda p: len(p.parts), reverse=True):
            self.writer.cleanup_parents_if_empty(directory)
