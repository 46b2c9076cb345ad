"""
Instance and tree node models.

Defines the flat instance record exchanged with the transport layer, the
in-memory tree node, and the change descriptor returned by tree updates.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator


class NodeKind(Enum):
    """Closed set of node kinds derived from a class name"""
    SCRIPT = "Script"
    LOCAL_SCRIPT = "LocalScript"
    MODULE_SCRIPT = "ModuleScript"
    FOLDER = "Folder"
    ROOT = "DataModel"
    CONTAINER = "Container"  # Any other class (services, models, parts...)

    @classmethod
    def from_class_name(cls, class_name: str) -> 'NodeKind':
        """Classify a raw class name; unknown names are containers"""
        return _KIND_BY_CLASS_NAME.get(class_name, cls.CONTAINER)

    @property
    def is_script(self) -> bool:
        """Whether nodes of this kind carry source and map to a file"""
        return self in SCRIPT_KINDS


_KIND_BY_CLASS_NAME: Dict[str, NodeKind] = {
    "Script": NodeKind.SCRIPT,
    "LocalScript": NodeKind.LOCAL_SCRIPT,
    "ModuleScript": NodeKind.MODULE_SCRIPT,
    "Folder": NodeKind.FOLDER,
    "DataModel": NodeKind.ROOT,
}

SCRIPT_KINDS = frozenset({NodeKind.SCRIPT, NodeKind.LOCAL_SCRIPT, NodeKind.MODULE_SCRIPT})

ROOT_GUID = "root"
ROOT_CLASS_NAME = "DataModel"
ROOT_NAME = "game"


def is_script_class(class_name: str) -> bool:
    """Check if a class name denotes a script"""
    return NodeKind.from_class_name(class_name).is_script


class InstanceData(BaseModel):
    """
    Flat, identity-tagged description of one instance.

    This is the payload shape for inbound tree mutations and the output of
    the snapshot builder. ``source`` is ``None`` when the content has never
    been synced, which is different from an empty script.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True
    )

    guid: str = Field(min_length=1)
    class_name: str = Field(alias="className", min_length=1)
    name: str
    path: List[str]
    source: Optional[str] = None

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: List[str]) -> List[str]:
        """Instances always live below the root"""
        if not v:
            raise ValueError('Instance path must contain at least one segment')
        return v

    @property
    def kind(self) -> NodeKind:
        return NodeKind.from_class_name(self.class_name)

    @property
    def is_script(self) -> bool:
        return self.kind.is_script

    def to_wire(self) -> Dict[str, object]:
        """Serialize using the transport's camelCase field names"""
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(eq=False)
class TreeNode:
    """
    A vertex of the canonical tree.

    Links to the parent and children are stored as identities; the nodes
    themselves live in the TreeManager's identity-keyed arena.
    """
    guid: str
    class_name: str
    name: str
    path: Tuple[str, ...]
    source: Optional[str] = None
    parent: Optional[str] = None
    children: Set[str] = field(default_factory=set)

    @property
    def kind(self) -> NodeKind:
        return NodeKind.from_class_name(self.class_name)

    @property
    def is_script(self) -> bool:
        return self.kind.is_script

    @property
    def display_path(self) -> str:
        return "/".join(self.path)

    def to_instance(self) -> InstanceData:
        """Convert back to the flat record shape"""
        return InstanceData(
            guid=self.guid,
            class_name=self.class_name,
            name=self.name,
            path=list(self.path),
            source=self.source
        )


@dataclass
class UpdateResult:
    """Change descriptor returned by TreeManager.upsert"""
    node: TreeNode
    path_changed: bool = False
    name_changed: bool = False
    is_new: bool = False
    prev_path: Optional[Tuple[str, ...]] = None
    prev_name: Optional[str] = None
    prev_class_name: Optional[str] = None

    @property
    def class_changed(self) -> bool:
        return self.prev_class_name is not None and self.prev_class_name != self.node.class_name

    @property
    def moved(self) -> bool:
        return self.path_changed or self.name_changed


@dataclass
class TreeStats:
    """Summary counters for a tree"""
    total_nodes: int = 0
    script_nodes: int = 0
    max_depth: int = 0
