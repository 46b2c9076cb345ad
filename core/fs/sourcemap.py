"""
Sourcemap generation.

Describes the mirrored tree as nested JSON (name, className, filePaths,
children) so editor tooling can map files back to instances.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import aiofiles

from ..models.instances import TreeNode, ROOT_CLASS_NAME, ROOT_NAME
from ..tree.manager import TreeManager
from .writer import FileWriter, normalize_path

logger = logging.getLogger(__name__)


class SourcemapGenerator:
    """Builds and writes the sourcemap for a tree and its written files"""

    def __init__(self, sourcemap_path: Union[str, Path]):
        self.sourcemap_path = normalize_path(sourcemap_path)

    def build(self, tree: TreeManager, writer: FileWriter) -> Dict[str, Any]:
        """
        Build the nested sourcemap starting at the synthetic root.

        Nodes that are not reachable from the root (orphans) are omitted.
        """
        root = tree.get_root()
        if root is None:
            return {"name": ROOT_NAME, "className": ROOT_CLASS_NAME}

        root_entry = self._entry(root, writer)
        stack: List[Tuple[TreeNode, Dict[str, Any]]] = [(root, root_entry)]
        while stack:
            node, entry = stack.pop()
            children = sorted(tree.get_children(node.guid), key=lambda n: (n.name, n.guid))
            if not children:
                continue
            entry["children"] = []
            for child in children:
                child_entry = self._entry(child, writer)
                entry["children"].append(child_entry)
                stack.append((child, child_entry))

        return root_entry

    async def write(self, tree: TreeManager, writer: FileWriter) -> bool:
        """Write the sourcemap atomically; returns False on failure"""
        data = self.build(tree, writer)
        temp_file = self.sourcemap_path.with_name(self.sourcemap_path.name + ".tmp")

        try:
            self.sourcemap_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_file, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(data, indent=2, ensure_ascii=False))
            os.replace(temp_file, self.sourcemap_path)
        except OSError as e:
            logger.error(f"Failed to write sourcemap {self.sourcemap_path}: {e}")
            return False

        logger.debug(f"Wrote sourcemap to {self.sourcemap_path}")
        return True

    def _entry(self, node: TreeNode, writer: FileWriter) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"name": node.name, "className": node.class_name}
        file_path = self._file_path_for(node, writer)
        if file_path is not None:
            entry["filePaths"] = [file_path]
        return entry

    def _file_path_for(self, node: TreeNode, writer: FileWriter) -> Optional[str]:
        mapping = writer.get_mapping(node.guid)
        if mapping is None:
            return None
        relative = os.path.relpath(mapping.file_path, self.sourcemap_path.parent)
        return Path(relative).as_posix()
