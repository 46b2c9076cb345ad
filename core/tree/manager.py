"""
In-memory tree manager.

Owns the canonical mirror of the editor's instance tree. Nodes are kept in an
identity-keyed arena with a secondary index by full path; every mutation goes
through this class so both indices stay consistent across renames and moves.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.instances import (
    InstanceData,
    TreeNode,
    TreeStats,
    UpdateResult,
    ROOT_GUID,
    ROOT_CLASS_NAME,
    ROOT_NAME,
)

logger = logging.getLogger(__name__)

PathKey = Tuple[str, ...]


class TreeManager:
    """
    Manages the in-memory representation of the editor's instance tree.

    Features:
    - O(1) lookup by identity and by exact path
    - Incremental upserts that keep descendant paths consistent after
      renames and moves
    - Authoritative full-snapshot replacement
    - Iterative subtree deletion and traversal (no recursion limits)
    """

    def __init__(self):
        self._nodes: Dict[str, TreeNode] = {}
        self._path_index: Dict[PathKey, str] = {}  # path -> guid
        self._root: Optional[TreeNode] = None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert(self, instance: InstanceData) -> UpdateResult:
        """
        Create or update a node from an instance record.

        Args:
            instance: Incoming instance record

        Returns:
            Change descriptor describing what happened to the node
        """
        new_path = tuple(instance.path)
        existing = self._nodes.get(instance.guid)

        if existing is None:
            node = TreeNode(
                guid=instance.guid,
                class_name=instance.class_name,
                name=instance.name,
                path=new_path,
                source=instance.source
            )
            self._nodes[node.guid] = node
            self._reparent(node)
            self._index_subtree(node)

            logger.info(f"Created instance: {node.display_path}")
            return UpdateResult(node=node, is_new=True)

        prev_path = existing.path
        prev_name = existing.name
        prev_class_name = existing.class_name
        path_changed = prev_path != new_path
        name_changed = prev_name != instance.name

        if path_changed:
            self._unindex_subtree(existing)

        existing.class_name = instance.class_name
        existing.name = instance.name
        existing.path = new_path
        if instance.source is not None:
            existing.source = instance.source

        if path_changed or name_changed:
            self._reparent(existing)
            self._recalculate_child_paths(existing)
            self._index_subtree(existing)

        logger.info(f"Updated instance: {existing.display_path}")
        return UpdateResult(
            node=existing,
            path_changed=path_changed,
            name_changed=name_changed,
            is_new=False,
            prev_path=prev_path,
            prev_name=prev_name,
            prev_class_name=prev_class_name
        )

    def apply_full_snapshot(self, instances: Sequence[InstanceData]) -> None:
        """
        Replace the whole tree with a snapshot.

        All nodes are created and indexed first, then linked to the node at
        their parent path, so the input order does not matter. A node whose
        parent path is absent stays registered but unattached.
        """
        logger.info(f"Processing full snapshot: {len(instances)} instances")

        self._nodes.clear()
        self._path_index.clear()
        self._root = None

        created: List[TreeNode] = []
        for instance in instances:
            node = TreeNode(
                guid=instance.guid,
                class_name=instance.class_name,
                name=instance.name,
                path=tuple(instance.path),
                source=instance.source
            )
            self._nodes[node.guid] = node
            self._path_index[node.path] = node.guid
            created.append(node)
            logger.debug(f"Created node: {node.display_path}")

        for node in created:
            if self._nodes.get(node.guid) is not node:
                # Shadowed by a later record with the same identity
                continue
            self._attach(node)

        logger.info(f"Tree built: {len(self._nodes)} nodes")

    def delete_instance(self, guid: str) -> Optional[TreeNode]:
        """
        Delete a node and its whole subtree.

        Args:
            guid: Identity of the subtree root

        Returns:
            The detached subtree root, or None if the identity is unknown
        """
        node = self._nodes.get(guid)
        if node is None:
            logger.debug(f"Delete ignored for missing node: {guid}")
            return None

        parent = self._nodes.get(node.parent) if node.parent else None
        if parent is not None:
            parent.children.discard(guid)

        successor: Optional[TreeNode] = None
        stack = [node]
        while stack:
            current = stack.pop()
            stack.extend(
                self._nodes[child_guid]
                for child_guid in current.children
                if child_guid in self._nodes
            )

            if current is node:
                successor = self._unindex_path(current, fallback_parent=parent)
            else:
                self._unindex_path(current)
            self._nodes.pop(current.guid, None)

            current.children.clear()
            current.parent = None

        if successor is not None:
            self._fill_subtree_index(successor)

        if node is self._root:
            self._root = None

        logger.info(f"Deleted instance: {node.display_path}")
        return node

    def update_script_source(self, guid: str, source: str) -> None:
        """Update script source only"""
        node = self._nodes.get(guid)
        if node is None:
            logger.warning(f"Script not found for GUID: {guid}")
            return

        node.source = source
        logger.debug(f"Updated script source: {node.display_path}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_node(self, guid: str) -> Optional[TreeNode]:
        return self._nodes.get(guid)

    def find_node_by_path(self, path: Iterable[str]) -> Optional[TreeNode]:
        guid = self._path_index.get(tuple(path))
        return self._nodes.get(guid) if guid is not None else None

    def get_root(self) -> Optional[TreeNode]:
        return self._root

    def get_all_nodes(self) -> Dict[str, TreeNode]:
        """Get all nodes keyed by identity (read-only view by convention)"""
        return self._nodes

    def get_script_nodes(self) -> List[TreeNode]:
        return [node for node in self._nodes.values() if node.is_script]

    def get_children(self, guid: str) -> List[TreeNode]:
        node = self._nodes.get(guid)
        if node is None:
            return []
        return [self._nodes[child] for child in node.children if child in self._nodes]

    def get_descendant_scripts(self, guid: str) -> List[TreeNode]:
        """
        Collect every script below a node, excluding the node itself.

        Args:
            guid: Identity of the subtree root

        Returns:
            Script nodes in depth-first order; empty for unknown identities
        """
        start = self._nodes.get(guid)
        if start is None:
            return []

        scripts: List[TreeNode] = []
        stack = [start]
        while stack:
            current = stack.pop()
            for child_guid in current.children:
                child = self._nodes.get(child_guid)
                if child is None:
                    continue
                if child.is_script:
                    scripts.append(child)
                stack.append(child)
        return scripts

    def get_stats(self) -> TreeStats:
        """Get tree statistics"""
        return TreeStats(
            total_nodes=len(self._nodes),
            script_nodes=len(self.get_script_nodes()),
            max_depth=max((len(node.path) for node in self._nodes.values()), default=0)
        )

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, guid: object) -> bool:
        return guid in self._nodes

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_root(self) -> TreeNode:
        if self._root is None:
            self._root = TreeNode(
                guid=ROOT_GUID,
                class_name=ROOT_CLASS_NAME,
                name=ROOT_NAME,
                path=()
            )
            self._nodes[ROOT_GUID] = self._root
            self._path_index[()] = ROOT_GUID
        return self._root

    def _attach(self, node: TreeNode) -> bool:
        """Link a node under the node at its parent path"""
        if len(node.path) == 1:
            parent = self._ensure_root()
        else:
            parent = self.find_node_by_path(node.path[:-1])
            if parent is None or parent is node:
                logger.warning(f"Parent not found for {node.display_path}")
                return False

        parent.children.add(node.guid)
        node.parent = parent.guid
        return True

    def _reparent(self, node: TreeNode) -> None:
        """Detach from the current parent and attach by path"""
        if node.parent is not None:
            old_parent = self._nodes.get(node.parent)
            if old_parent is not None:
                old_parent.children.discard(node.guid)
            node.parent = None

        if not self._attach(node):
            logger.warning(f"Node left detached after re-parenting: {node.display_path}")

    def _recalculate_child_paths(self, node: TreeNode) -> None:
        """Rebuild every descendant path from its parent's path"""
        stack = [node]
        while stack:
            current = stack.pop()
            for child_guid in current.children:
                child = self._nodes.get(child_guid)
                if child is None:
                    continue
                child.path = current.path + (child.name,)
                stack.append(child)

    def _iter_subtree(self, node: TreeNode) -> List[TreeNode]:
        result = []
        stack = [node]
        while stack:
            current = stack.pop()
            result.append(current)
            stack.extend(
                self._nodes[child_guid]
                for child_guid in current.children
                if child_guid in self._nodes
            )
        return result

    def _index_subtree(self, node: TreeNode) -> None:
        for current in self._iter_subtree(node):
            previous = self._path_index.get(current.path)
            if previous is not None and previous != current.guid:
                logger.debug(
                    f"Path {current.display_path} now resolves to {current.guid} (was {previous})"
                )
            self._path_index[current.path] = current.guid

    def _unindex_subtree(self, node: TreeNode) -> None:
        parent = self._nodes.get(node.parent) if node.parent is not None else None
        successor = self._unindex_path(node, fallback_parent=parent)
        for current in self._iter_subtree(node):
            if current is not node:
                self._unindex_path(current)

        if successor is not None:
            # The sibling's descendants share the vacated paths
            self._fill_subtree_index(successor)

    def _fill_subtree_index(self, node: TreeNode) -> None:
        """Index a subtree's paths that currently have no owner"""
        for current in self._iter_subtree(node):
            self._path_index.setdefault(current.path, current.guid)

    def _unindex_path(
        self,
        node: TreeNode,
        fallback_parent: Optional[TreeNode] = None
    ) -> Optional[TreeNode]:
        """
        Drop a node's path entry if it owns it.

        When a sibling outside the affected subtree shares the name, the path
        entry is handed to that sibling instead of disappearing.

        Returns:
            The sibling that took over the entry, if any
        """
        if self._path_index.get(node.path) != node.guid:
            return None
        del self._path_index[node.path]

        if fallback_parent is None:
            return None

        for sibling_guid in fallback_parent.children:
            sibling = self._nodes.get(sibling_guid)
            if sibling is not None and sibling is not node and sibling.path == node.path:
                self._path_index[node.path] = sibling.guid
                return sibling
        return None
