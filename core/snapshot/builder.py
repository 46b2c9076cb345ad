"""
Filesystem snapshot builder.

Reconstructs the flat instance list from a directory of script files by
inverting the file writer's naming rules. Used to seed the tree on cold
start.
"""

import asyncio
import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

import aiofiles

from ..models.config import SyncConfig
from ..models.instances import InstanceData
from ..fs.naming import ScriptNaming

logger = logging.getLogger(__name__)

FOLDER_CLASS_NAME = "Folder"


@dataclass
class ScriptCandidate:
    """A recognized script file found during the walk"""
    file_path: Path
    dir_segments: Tuple[str, ...]
    class_name: str
    name: str


class SnapshotBuilder:
    """
    Walks a source directory and produces instance records.

    Files are visited before subdirectories at every level, in name order,
    so the output is deterministic apart from the generated identities.
    """

    def __init__(
        self,
        source_dir: Union[str, Path],
        naming: Optional[ScriptNaming] = None,
        dest_prefix: Sequence[str] = (),
        skip_symlinks: bool = True,
        max_concurrent_reads: int = 32
    ):
        """
        Initialize the snapshot builder.

        Args:
            source_dir: Directory to reconstruct the tree from
            naming: Naming rules to invert (default: SyncConfig defaults)
            dest_prefix: Path segments prepended to every instance path
            skip_symlinks: Ignore symlinked files and directories
            max_concurrent_reads: Upper bound on overlapping file reads
        """
        self.source_dir = Path(os.path.abspath(source_dir))
        self.naming = naming or ScriptNaming()
        self.dest_prefix: Tuple[str, ...] = tuple(dest_prefix)
        self.skip_symlinks = skip_symlinks
        self.max_concurrent_reads = max(1, max_concurrent_reads)

        # Recognized script files that could not be read during the last build
        self.skipped_files: List[Path] = []
        # Subdirectories that could not be scanned during the last build
        self.skipped_dirs: List[Path] = []

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        source_dir: Optional[Union[str, Path]] = None,
        dest_prefix: Sequence[str] = ()
    ) -> 'SnapshotBuilder':
        return cls(
            source_dir=source_dir if source_dir is not None else config.sync_dir,
            naming=ScriptNaming(config),
            dest_prefix=dest_prefix,
            skip_symlinks=config.skip_symlinks,
            max_concurrent_reads=config.max_concurrent_reads
        )

    async def build(self) -> List[InstanceData]:
        """
        Build the instance list.

        Returns:
            Instances sorted by path depth, shallow first

        Raises:
            OSError: If the source directory itself cannot be scanned
        """
        start_time = time.perf_counter()
        self.skipped_files = []
        self.skipped_dirs = []

        candidates = self._walk()

        semaphore = asyncio.Semaphore(self.max_concurrent_reads)
        sources = await asyncio.gather(
            *(self._read_source(candidate.file_path, semaphore) for candidate in candidates)
        )

        loaded = []
        for candidate, source in zip(candidates, sources):
            if source is None:
                self.skipped_files.append(candidate.file_path)
            else:
                loaded.append((candidate, source))
        script_paths: Set[Tuple[str, ...]] = {
            self.dest_prefix + candidate.dir_segments + (candidate.name,)
            for candidate, _ in loaded
        }

        results: List[InstanceData] = []
        folders: Dict[Tuple[str, ...], InstanceData] = {}

        for candidate, source in loaded:
            self._ensure_folders(candidate.dir_segments, script_paths, folders, results)
            results.append(InstanceData(
                guid=self._make_guid(),
                class_name=candidate.class_name,
                name=candidate.name,
                path=list(self.dest_prefix + candidate.dir_segments + (candidate.name,)),
                source=source
            ))

        results.sort(key=lambda instance: len(instance.path))

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Snapshot of {self.source_dir}: {len(loaded)} scripts, "
            f"{len(folders)} folders in {duration_ms:.1f}ms"
        )
        return results

    def _walk(self) -> List[ScriptCandidate]:
        """Depth-first walk collecting recognized script files"""
        candidates: List[ScriptCandidate] = []
        visited: Set[str] = set()
        stack: List[Tuple[Path, Tuple[str, ...]]] = [(self.source_dir, ())]

        while stack:
            directory, segments = stack.pop()

            real = os.path.realpath(directory)
            if real in visited:
                logger.debug(f"Skipping already visited directory: {directory}")
                continue
            visited.add(real)

            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                if directory == self.source_dir:
                    logger.error(f"Cannot scan source directory {directory}: {e}")
                    raise
                logger.warning(f"Cannot scan directory {directory}: {e}")
                self.skipped_dirs.append(directory)
                continue

            subdirectories: List[os.DirEntry] = []
            for entry in entries:
                try:
                    if entry.is_symlink() and self.skip_symlinks:
                        logger.debug(f"Skipping symlink during snapshot: {entry.path}")
                        continue

                    if entry.is_dir():
                        subdirectories.append(entry)
                    elif entry.is_file():
                        classified = self.naming.classify_file(entry.name)
                        if classified is None:
                            continue
                        class_name, name = classified
                        candidates.append(ScriptCandidate(
                            file_path=Path(entry.path),
                            dir_segments=segments,
                            class_name=class_name,
                            name=name
                        ))
                except OSError as e:
                    logger.warning(f"Skipping entry {entry.path}: {e}")
                    if self.naming.is_script_file(entry.name):
                        self.skipped_files.append(Path(entry.path))
                    else:
                        self.skipped_dirs.append(Path(entry.path))

            # Reversed so the stack pops subdirectories in name order
            for entry in reversed(subdirectories):
                stack.append((Path(entry.path), segments + (entry.name,)))

        return candidates

    def _ensure_folders(
        self,
        dir_segments: Tuple[str, ...],
        script_paths: Set[Tuple[str, ...]],
        folders: Dict[Tuple[str, ...], InstanceData],
        results: List[InstanceData]
    ) -> None:
        """Synthesize one Folder per ancestor directory not owned by a script"""
        for depth in range(1, len(dir_segments) + 1):
            full = self.dest_prefix + dir_segments[:depth]
            if full in script_paths or full in folders:
                continue
            folder = InstanceData(
                guid=self._make_guid(),
                class_name=FOLDER_CLASS_NAME,
                name=dir_segments[depth - 1],
                path=list(full)
            )
            folders[full] = folder
            results.append(folder)

    async def _read_source(self, file_path: Path, semaphore: asyncio.Semaphore) -> Optional[str]:
        async with semaphore:
            try:
                async with aiofiles.open(file_path, 'r', encoding='utf-8', newline='') as f:
                    return await f.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Cannot read script {file_path}: {e}")
                return None

    @staticmethod
    def _make_guid() -> str:
        return uuid.uuid4().hex
