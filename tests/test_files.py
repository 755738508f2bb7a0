"""Tests for local file operations."""

import os
import tempfile
from pathlib import Path

import pytest

from gitops_runner.errors import InvalidArgument, IOFailure
from gitops_runner.integrations.files import (
    LocalFileStore,
    clean_previous_instances,
    is_valid_directory_name,
    is_valid_file_name,
    validate_file_path,
)


@pytest.fixture
def tmp_dir():
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


class TestNameValidation:
    def test_valid_file_names(self):
        assert is_valid_file_name("locked-branches")
        assert is_valid_file_name("report_task.v2.txt")

    def test_invalid_file_names(self):
        for name in ("a/b", "a;b", "a b|c", "$HOME", "x*"):
            assert not is_valid_file_name(name), name

    def test_valid_directory_names(self):
        assert is_valid_directory_name("/var/lib/jenkins/workspace/app@2")
        assert is_valid_directory_name(Path("/tmp/job-1"))

    def test_invalid_directory_names(self):
        assert not is_valid_directory_name("/tmp//job")
        assert not is_valid_directory_name("/tmp/$(rm -rf)")

    def test_empty_names(self):
        with pytest.raises(InvalidArgument):
            is_valid_file_name("")
        with pytest.raises(InvalidArgument):
            is_valid_directory_name("")

    def test_validate_file_path(self):
        assert validate_file_path("/tmp/locks/branches") == Path("/tmp/locks/branches")
        with pytest.raises(InvalidArgument):
            validate_file_path("/tmp/locks/bran;ches")


class TestLocalFileStore:
    def test_read_missing_file(self, tmp_dir):
        assert LocalFileStore().read_lines(tmp_dir / "missing") == []

    def test_write_then_read(self, tmp_dir):
        store = LocalFileStore()
        path = tmp_dir / "nested" / "branches"
        store.write_lines(path, ["develop", "master"])
        assert path.read_text() == "develop\nmaster\n"
        assert store.read_lines(path) == ["develop", "master"]
        assert store.exists(path)

    def test_read_ignores_blank_lines(self, tmp_dir):
        path = tmp_dir / "branches"
        path.write_text("develop\n\n  master  \n\n")
        assert LocalFileStore().read_lines(path) == ["develop", "master"]

    def test_write_empty(self, tmp_dir):
        store = LocalFileStore()
        path = tmp_dir / "branches"
        store.write_lines(path, ["develop"])
        store.write_lines(path, [])
        assert path.read_text() == ""
        assert store.read_lines(path) == []

    def test_write_leaves_no_temp_files(self, tmp_dir):
        LocalFileStore().write_lines(tmp_dir / "branches", ["develop"])
        assert [p.name for p in tmp_dir.iterdir()] == ["branches"]

    def test_read_directory_raises_io_failure(self, tmp_dir):
        with pytest.raises(IOFailure):
            LocalFileStore().read_lines(tmp_dir)

    def test_write_into_file_parent_raises_io_failure(self, tmp_dir):
        blocker = tmp_dir / "blocker"
        blocker.write_text("")
        with pytest.raises(IOFailure):
            LocalFileStore().write_lines(blocker / "branches", ["develop"])

    def test_clear_directory(self, tmp_dir):
        workspace = tmp_dir / "workspace"
        (workspace / "src" / "pkg").mkdir(parents=True)
        (workspace / "src" / "pkg" / "mod.py").write_text("")
        (workspace / ".git").mkdir()
        (workspace / "file.txt").write_text("x")
        os.symlink(tmp_dir, workspace / "link")

        LocalFileStore().clear_directory(workspace)

        assert workspace.is_dir()
        assert list(workspace.iterdir()) == []
        assert tmp_dir.exists()

    def test_clear_missing_directory(self, tmp_dir):
        LocalFileStore().clear_directory(tmp_dir / "missing")
        assert not (tmp_dir / "missing").exists()

    def test_clear_invalid_directory_name(self, tmp_dir):
        with pytest.raises(InvalidArgument):
            LocalFileStore().clear_directory(f"{tmp_dir}//workspace")


class TestCleanPreviousInstances:
    def test_removes_siblings_only(self, tmp_dir):
        for name in ("42", "43", "44"):
            (tmp_dir / name / "data").mkdir(parents=True)
        (tmp_dir / "notes.txt").write_text("keep")

        removed = clean_previous_instances(tmp_dir, tmp_dir / "44")

        assert removed == [tmp_dir / "42", tmp_dir / "43"]
        assert sorted(p.name for p in tmp_dir.iterdir()) == ["44", "notes.txt"]

    def test_missing_parent(self, tmp_dir):
        assert clean_previous_instances(tmp_dir / "missing", tmp_dir / "missing" / "1") == []
