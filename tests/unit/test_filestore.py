"""Unit tests for atomic file writes and path safety."""

import os

import pytest

from foundry import filestore
from foundry.errors import InvalidInputError, StorageUnavailableError
from foundry.security import PathGuard, check_content, check_filename


class TestWriteFileSafe:
    """Test cases for write_file_safe."""

    def test_creates_file(self, tmp_path):
        target = tmp_path / "notes.md"

        filestore.write_file_safe(target, "hello\n")

        assert target.read_text(encoding="utf-8") == "hello\n"
        assert not filestore.backup_path(target).exists()

    def test_overwrite_keeps_backup(self, tmp_path):
        target = tmp_path / "notes.md"
        target.write_text("old", encoding="utf-8")

        filestore.write_file_safe(target, "new")

        assert target.read_text(encoding="utf-8") == "new"
        assert (tmp_path / "notes.md.bak").read_text(encoding="utf-8") == "old"

    def test_leaves_no_temp_files(self, tmp_path):
        filestore.write_file_safe(tmp_path / "a.md", "x")

        assert sorted(os.listdir(tmp_path)) == ["a.md"]

    def test_missing_parent_is_storage_error(self, tmp_path):
        with pytest.raises(StorageUnavailableError):
            filestore.write_file_safe(tmp_path / "missing" / "a.md", "x")

    def test_failed_rename_keeps_original(self, tmp_path, monkeypatch):
        target = tmp_path / "spec.md"
        target.write_text("original", encoding="utf-8")

        def broken_replace(src, dst):
            raise OSError("rename failed")

        monkeypatch.setattr(filestore.os, "replace", broken_replace)

        with pytest.raises(StorageUnavailableError):
            filestore.write_file_safe(target, "replacement")

        assert target.read_text(encoding="utf-8") == "original"
        assert not [name for name in os.listdir(tmp_path) if name.endswith(".tmp")]

    def test_unicode_round_trip(self, tmp_path):
        target = tmp_path / "vision.md"

        filestore.write_file_safe(target, "Café — naïve ✓")

        assert filestore.read_file(target) == "Café — naïve ✓"

    def test_file_exists_only_for_files(self, tmp_path):
        filestore.write_file_safe(tmp_path / "a.md", "x")

        assert filestore.file_exists(tmp_path / "a.md")
        assert not filestore.file_exists(tmp_path / "missing.md")
        assert not filestore.file_exists(tmp_path)


class TestStructures:
    """Project and spec directory creation."""

    def test_project_structure(self, tmp_path):
        project_dir = filestore.create_project_structure(tmp_path / "demo-app", "v", "t", "s")

        assert (project_dir / "specs").is_dir()
        assert (project_dir / "tech-stack.md").read_text(encoding="utf-8") == "t"

    def test_spec_structure_refuses_existing_directory(self, tmp_path):
        spec_dir = tmp_path / "20240101_000000_auth"
        filestore.create_spec_structure(spec_dir, "s", "t", "n")

        with pytest.raises(FileExistsError):
            filestore.create_spec_structure(spec_dir, "s", "t", "n")

        assert (spec_dir / "task-list.md").read_text(encoding="utf-8") == "t"


class TestPathGuard:
    """Test cases for PathGuard."""

    def test_resolves_inside_root(self, tmp_path):
        guard = PathGuard(tmp_path)

        assert guard.resolve("demo-app/specs") == (tmp_path / "demo-app" / "specs").resolve()

    @pytest.mark.parametrize("path", ["../etc", "demo/../../x", "/etc/passwd", "C:\\windows", "a\0b", ""])
    def test_rejects_unsafe_paths(self, tmp_path, path):
        with pytest.raises(InvalidInputError):
            PathGuard(tmp_path).resolve(path)

    def test_rejects_deep_paths(self, tmp_path):
        with pytest.raises(InvalidInputError) as excinfo:
            PathGuard(tmp_path, max_depth=2).resolve("a/b/c")

        assert "exceeds maximum allowed depth" in excinfo.value.message

    def test_rejects_symlink_escape(self, tmp_path):
        root = tmp_path / "root"
        root.mkdir()
        outside = tmp_path / "outside"
        outside.mkdir()
        (root / "link").symlink_to(outside)

        with pytest.raises(InvalidInputError):
            PathGuard(root).resolve("link/file.md")


class TestContentChecks:
    """Test cases for filename and content checks."""

    @pytest.mark.parametrize("name", ["CON", "nul.md", "run.sh", "tool.PY"])
    def test_rejected_filenames(self, name):
        with pytest.raises(InvalidInputError):
            check_filename(name)

    def test_accepted_filename(self):
        assert check_filename("task-list.md") == "task-list.md"

    def test_nul_bytes_rejected(self):
        with pytest.raises(InvalidInputError):
            check_content("a\0b")

    def test_long_lines_rejected(self):
        with pytest.raises(InvalidInputError) as excinfo:
            check_content("ok\n" + "x" * 10_001)

        assert "Line 2" in excinfo.value.message
