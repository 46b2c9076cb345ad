"""
Tests for SnapshotBuilder.

Validates reconstruction of the instance list from a directory of script
files, including folder synthesis, legacy extensions and symlink handling.
"""

import os
import pytest
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

from core.models.config import SyncConfig
from core.snapshot.builder import SnapshotBuilder


def by_path(instances):
    return {tuple(instance.path): instance for instance in instances}


class TestSnapshotBuilder:
    """Test suite for SnapshotBuilder."""

    def setup_method(self):
        """Set up test fixtures"""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.source_dir = self.temp_dir / "src"
        self.source_dir.mkdir()

    def teardown_method(self):
        """Clean up test fixtures"""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write(self, relative: str, content: str = "--") -> Path:
        path = self.source_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    @pytest.mark.asyncio
    async def test_folder_and_scripts(self):
        """Test a directory with two scripts yields one folder and two scripts"""
        self.write("a/b.server.luau", "print('b')")
        self.write("a/c.module.luau", "return {}")

        instances = await SnapshotBuilder(self.source_dir).build()
        found = by_path(instances)

        assert len(instances) == 3
        assert found[("a",)].class_name == "Folder"
        assert found[("a",)].source is None
        assert found[("a", "b")].class_name == "Script"
        assert found[("a", "b")].source == "print('b')"
        assert found[("a", "c")].class_name == "ModuleScript"
        assert found[("a", "c")].name == "c"
        assert instances[0].path == ["a"]

    @pytest.mark.asyncio
    async def test_class_inference(self):
        """Test suffixes and legacy extensions map to classes"""
        self.write("server.server.luau")
        self.write("client.client.luau")
        self.write("plain.luau")
        self.write("legacy.server.lua")
        self.write("old.lua")

        found = by_path(await SnapshotBuilder(self.source_dir).build())

        assert found[("server",)].class_name == "Script"
        assert found[("client",)].class_name == "LocalScript"
        assert found[("plain",)].class_name == "ModuleScript"
        assert found[("legacy",)].class_name == "Script"
        assert found[("old",)].class_name == "ModuleScript"

    @pytest.mark.asyncio
    async def test_non_script_files_ignored(self):
        """Test directories without scripts produce no instances"""
        self.write("docs/README.md", "# docs")
        self.write("assets/data.json", "{}")

        instances = await SnapshotBuilder(self.source_dir).build()

        assert instances == []

    @pytest.mark.asyncio
    async def test_nested_folders_created_once(self):
        """Test every ancestor directory becomes exactly one folder"""
        self.write("x/y/z/one.luau")
        self.write("x/y/two.luau")
        self.write("x/three.luau")

        instances = await SnapshotBuilder(self.source_dir).build()
        folders = [tuple(i.path) for i in instances if i.class_name == "Folder"]

        assert sorted(folders) == [("x",), ("x", "y"), ("x", "y", "z")]
        assert len(instances) == 6

    @pytest.mark.asyncio
    async def test_script_owns_directory_of_same_name(self):
        """Test a directory matching a script is not duplicated as a folder"""
        self.write("a/b.server.luau")
        self.write("a/b/c.luau")

        found = by_path(await SnapshotBuilder(self.source_dir).build())

        assert set(found) == {("a",), ("a", "b"), ("a", "b", "c")}
        assert found[("a", "b")].class_name == "Script"

    @pytest.mark.asyncio
    async def test_sorted_by_depth(self):
        """Test parents always precede their children"""
        self.write("deep/er/est/leaf.luau")
        self.write("top.luau")

        instances = await SnapshotBuilder(self.source_dir).build()
        depths = [len(i.path) for i in instances]

        assert depths == sorted(depths)

    @pytest.mark.asyncio
    async def test_dest_prefix(self):
        """Test the prefix is prepended to every instance path"""
        self.write("a/b.server.luau")

        builder = SnapshotBuilder(self.source_dir, dest_prefix=("ServerScriptService",))
        found = by_path(await builder.build())

        assert set(found) == {("ServerScriptService", "a"), ("ServerScriptService", "a", "b")}

    @pytest.mark.asyncio
    async def test_identities_unique(self):
        """Test every instance gets a fresh identity"""
        for i in range(20):
            self.write(f"dir{i % 3}/s{i}.luau")

        instances = await SnapshotBuilder(self.source_dir).build()
        guids = [i.guid for i in instances]

        assert len(set(guids)) == len(guids)
        assert all(len(g) == 32 for g in guids)

    @pytest.mark.asyncio
    async def test_source_preserved_exactly(self):
        """Test empty files and CRLF line endings are kept"""
        self.write("empty.luau", "")
        (self.source_dir / "crlf.luau").write_bytes(b"a\r\nb")

        found = by_path(await SnapshotBuilder(self.source_dir).build())

        assert found[("empty",)].source == ""
        assert found[("crlf",)].source == "a\r\nb"

    @pytest.mark.asyncio
    async def test_unreadable_file_skipped(self):
        """Test undecodable files are reported and left out"""
        bad = self.source_dir / "bad.luau"
        bad.write_bytes(b"\xff\xfe\xfa")
        self.write("good.luau")

        builder = SnapshotBuilder(self.source_dir)
        found = by_path(await builder.build())

        assert set(found) == {("good",)}
        assert builder.skipped_files == [bad]

    @pytest.mark.asyncio
    async def test_symlinks_skipped(self):
        """Test symlinked directories are ignored by default"""
        self.write("real/a.luau")
        try:
            os.symlink(self.source_dir / "real", self.source_dir / "link")
        except (OSError, NotImplementedError):
            pytest.skip("Symlinks not supported on this platform")

        skipping = by_path(await SnapshotBuilder(self.source_dir).build())
        following = by_path(await SnapshotBuilder(self.source_dir, skip_symlinks=False).build())

        assert ("link", "a") not in skipping
        assert ("real", "a") in skipping
        # The target is visited once even when followed
        assert len([p for p in following if p[-1] == "a"]) == 1

    @pytest.mark.asyncio
    async def test_from_config(self):
        """Test builder settings come from the sync configuration"""
        self.write("Main.lua")
        config = SyncConfig(
            sync_dir=self.source_dir,
            script_extension=".lua",
            legacy_extensions=[],
            max_concurrent_reads=2
        )

        builder = SnapshotBuilder.from_config(config)
        found = by_path(await builder.build())

        assert builder.source_dir == self.source_dir
        assert builder.max_concurrent_reads == 2
        assert found[("Main",)].class_name == "ModuleScript"

    @pytest.mark.asyncio
    async def test_missing_directory(self):
        """Test a missing source directory raises instead of looking empty"""
        builder = SnapshotBuilder(self.temp_dir / "missing")

        with pytest.raises(OSError):
            await builder.build()

    @pytest.mark.asyncio
    async def test_unscannable_subdirectory_recorded(self):
        """Test subdirectories that cannot be listed are reported"""
        self.write("ok/a.luau")
        self.write("locked/b.luau")
        locked = self.source_dir / "locked"
        real_scandir = os.scandir

        def failing_scandir(path):
            if Path(path) == locked:
                raise PermissionError(13, "Permission denied", str(path))
            return real_scandir(path)

        builder = SnapshotBuilder(self.source_dir)
        with patch("core.snapshot.builder.os.scandir", side_effect=failing_scandir):
            found = by_path(await builder.build())

        assert set(found) == {("ok",), ("ok", "a")}
        assert builder.skipped_dirs == [locked]
        assert builder.skipped_files == []
