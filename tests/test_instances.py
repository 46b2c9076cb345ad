"""
Unit tests for instance and tree node models.

Tests record validation, wire serialization, and class-name classification.
"""

import pytest
from pydantic import ValidationError

from core.models.instances import (
    InstanceData, NodeKind, TreeNode, UpdateResult, is_script_class
)


class TestNodeKind:
    """Test class name classification"""

    def test_script_classes(self):
        """Test the three script classes are recognized"""
        assert NodeKind.from_class_name("Script") is NodeKind.SCRIPT
        assert NodeKind.from_class_name("LocalScript") is NodeKind.LOCAL_SCRIPT
        assert NodeKind.from_class_name("ModuleScript") is NodeKind.MODULE_SCRIPT

        for class_name in ("Script", "LocalScript", "ModuleScript"):
            assert is_script_class(class_name)

    def test_unknown_classes_are_containers(self):
        """Test arbitrary class names map to containers"""
        assert NodeKind.from_class_name("ReplicatedStorage") is NodeKind.CONTAINER
        assert NodeKind.from_class_name("Model") is NodeKind.CONTAINER
        assert not is_script_class("Model")

    def test_folder_and_root(self):
        """Test folder and root classes"""
        assert NodeKind.from_class_name("Folder") is NodeKind.FOLDER
        assert NodeKind.from_class_name("DataModel") is NodeKind.ROOT
        assert not NodeKind.FOLDER.is_script


class TestInstanceData:
    """Test InstanceData model"""

    def test_accepts_field_names_and_aliases(self):
        """Test both snake_case and wire camelCase are accepted"""
        by_name = InstanceData(guid="g1", class_name="Script", name="Main", path=["Main"])
        by_alias = InstanceData.model_validate(
            {"guid": "g1", "className": "Script", "name": "Main", "path": ["Main"]}
        )

        assert by_name == by_alias
        assert by_alias.class_name == "Script"
        assert by_alias.source is None

    def test_empty_path_rejected(self):
        """Test instances must have at least one path segment"""
        with pytest.raises(ValidationError):
            InstanceData(guid="g1", class_name="Folder", name="X", path=[])

    def test_to_wire_omits_missing_source(self):
        """Test wire format uses aliases and skips undefined source"""
        instance = InstanceData(guid="g1", class_name="Folder", name="X", path=["X"])
        wire = instance.to_wire()

        assert wire == {"guid": "g1", "className": "Folder", "name": "X", "path": ["X"]}

    def test_to_wire_keeps_empty_source(self):
        """Test an empty source is a real value"""
        instance = InstanceData(
            guid="g1", class_name="ModuleScript", name="M", path=["M"], source=""
        )
        assert instance.to_wire()["source"] == ""


class TestTreeNode:
    """Test TreeNode dataclass"""

    def test_to_instance_round_trip(self):
        """Test conversion back to the record shape"""
        node = TreeNode(
            guid="g1",
            class_name="LocalScript",
            name="Client",
            path=("StarterPlayer", "Client"),
            source="print('hi')"
        )
        instance = node.to_instance()

        assert instance.path == ["StarterPlayer", "Client"]
        assert instance.is_script
        assert node.display_path == "StarterPlayer/Client"

    def test_update_result_flags(self):
        """Test derived change flags"""
        node = TreeNode(guid="g1", class_name="LocalScript", name="A", path=("A",))
        result = UpdateResult(node=node, name_changed=True, prev_class_name="Script")

        assert result.moved
        assert result.class_changed
        assert not UpdateResult(node=node, is_new=True).class_changed
