# ============================================================================
# test_filesystem.py -- Tests for the Filesystem Collaborator
# ============================================================================
#
# COVERS:
#   TestCopy        -- guarded copy of files and folders
#   TestMove        -- same-device rename and the cross-device fallback
#   TestJsonHelpers -- atomic JSON write, tolerant JSON read
#   TestRemoval     -- missing paths are not errors
#
# WHAT WE MOCK:
#   LocalFileSystem.rename, to simulate EXDEV ("Invalid cross-device
#   link") and permission failures. Everything else uses real files.
#
# INTERNET ACCESS: NONE
# ============================================================================

import errno
import json
from unittest.mock import patch

import pytest

from scenevault.core.filesystem import LocalFileSystem


@pytest.fixture
def fs():
    return LocalFileSystem()


class TestCopy:

    def test_copies_file_and_creates_parents(self, fs, tmp_path):
        src = tmp_path / "in" / "photo.png"
        src.parent.mkdir()
        src.write_bytes(b"\x89PNG")
        dst = tmp_path / "out" / "deep" / "photo.png"

        fs.copy(src, dst)

        assert dst.read_bytes() == b"\x89PNG"
        assert src.exists()

    def test_refuses_existing_destination(self, fs, tmp_path):
        src = tmp_path / "a.txt"
        dst = tmp_path / "b.txt"
        src.write_text("new", encoding="utf-8")
        dst.write_text("old", encoding="utf-8")

        with pytest.raises(FileExistsError):
            fs.copy(src, dst)
        assert dst.read_text(encoding="utf-8") == "old"

    def test_copies_directory_recursively(self, fs, tmp_path):
        src = tmp_path / "bundle"
        (src / "sub").mkdir(parents=True)
        (src / "sub" / "frame.png").write_bytes(b"f")
        dst = tmp_path / "copy" / "bundle"

        fs.copy(src, dst)

        assert (dst / "sub" / "frame.png").read_bytes() == b"f"

    def test_missing_source(self, fs, tmp_path):
        with pytest.raises(FileNotFoundError):
            fs.copy(tmp_path / "nope.png", tmp_path / "out.png")

    def test_failed_copystat_removes_partial_copy(self, fs, tmp_path):
        src = tmp_path / "a.png"
        src.write_bytes(b"png")
        dst = tmp_path / "out" / "a.png"

        with patch("scenevault.core.filesystem.shutil.copystat",
                   side_effect=PermissionError(errno.EPERM, "Operation not permitted")):
            with pytest.raises(PermissionError):
                fs.copy(src, dst)

        assert not dst.exists()
        assert src.read_bytes() == b"png"

    def test_failed_directory_copy_removes_partial_copy(self, fs, tmp_path):
        src = tmp_path / "bundle"
        src.mkdir()
        (src / "clip.mp4").write_bytes(b"v")
        dst = tmp_path / "out" / "bundle"

        def half_copy(source, destination, dirs_exist_ok=False):
            destination.mkdir(parents=True)
            (destination / "clip.mp4").write_bytes(b"")
            raise OSError(errno.ENOSPC, "No space left on device")

        with patch("scenevault.core.filesystem.shutil.copytree", side_effect=half_copy):
            with pytest.raises(OSError):
                fs.copy(src, dst)

        assert not dst.exists()
        assert (src / "clip.mp4").read_bytes() == b"v"

    def test_directory_copy_refuses_existing_destination(self, fs, tmp_path):
        src = tmp_path / "bundle"
        src.mkdir()
        dst = tmp_path / "taken"
        dst.mkdir()
        (dst / "keep.txt").write_text("keep", encoding="utf-8")

        with pytest.raises(FileExistsError):
            fs.copy(src, dst)
        assert (dst / "keep.txt").read_text(encoding="utf-8") == "keep"


class TestMove:

    def test_same_device_move(self, fs, tmp_path):
        src = tmp_path / "a.txt"
        src.write_text("x", encoding="utf-8")
        dst = tmp_path / "b.txt"

        fs.move(src, dst)

        assert not src.exists()
        assert dst.read_text(encoding="utf-8") == "x"

    def test_cross_device_falls_back_to_copy_then_delete(self, fs, tmp_path):
        src = tmp_path / "a.txt"
        src.write_text("x", encoding="utf-8")
        dst = tmp_path / "other-drive" / "a.txt"
        dst.parent.mkdir()

        exdev = OSError(errno.EXDEV, "Invalid cross-device link")
        with patch.object(fs, "rename", side_effect=exdev) as rename:
            fs.move(src, dst)

        rename.assert_called_once()
        assert not src.exists()
        assert dst.read_text(encoding="utf-8") == "x"

    def test_cross_device_directory_move(self, fs, tmp_path):
        src = tmp_path / "bundle"
        src.mkdir()
        (src / "clip.mp4").write_bytes(b"v")
        dst = tmp_path / "other-drive" / "bundle"
        dst.parent.mkdir()

        with patch.object(fs, "rename", side_effect=OSError(errno.EXDEV, "Invalid cross-device link")):
            fs.move(src, dst)

        assert not src.exists()
        assert (dst / "clip.mp4").read_bytes() == b"v"

    def test_other_errors_propagate_without_fallback(self, fs, tmp_path):
        src = tmp_path / "a.txt"
        src.write_text("x", encoding="utf-8")
        dst = tmp_path / "b.txt"

        with patch.object(fs, "rename", side_effect=PermissionError(errno.EACCES, "Permission denied")):
            with pytest.raises(PermissionError):
                fs.move(src, dst)

        assert src.exists()
        assert not dst.exists()

    def test_refuses_existing_destination(self, fs, tmp_path):
        src = tmp_path / "a.txt"
        dst = tmp_path / "b.txt"
        src.write_text("new", encoding="utf-8")
        dst.write_text("old", encoding="utf-8")

        with pytest.raises(FileExistsError):
            fs.move(src, dst)
        assert src.exists()
        assert dst.read_text(encoding="utf-8") == "old"

    def test_cross_device_undeletable_source_removes_copy(self, fs, tmp_path):
        src = tmp_path / "a.txt"
        src.write_text("x", encoding="utf-8")
        dst = tmp_path / "other-drive" / "a.txt"
        dst.parent.mkdir()

        with patch.object(fs, "rename", side_effect=OSError(errno.EXDEV, "Invalid cross-device link")), \
                patch.object(fs, "remove_tree", side_effect=PermissionError(errno.EACCES, "Permission denied")):
            with pytest.raises(PermissionError):
                fs.move(src, dst)

        assert src.read_text(encoding="utf-8") == "x"
        assert not dst.exists()


class TestJsonHelpers:

    def test_atomic_write_leaves_no_temp_file(self, fs, tmp_path):
        path = tmp_path / "scenes" / ".scene-order.json"

        fs.write_json_atomic(path, [{"order": 1, "sceneName": "01-开场"}])

        assert json.loads(path.read_text(encoding="utf-8")) == [{"order": 1, "sceneName": "01-开场"}]
        assert "01-开场" in path.read_text(encoding="utf-8")
        assert fs.list_names(path.parent) == [".scene-order.json"]

    def test_atomic_write_replaces_existing(self, fs, tmp_path):
        path = tmp_path / "m.json"
        fs.write_json_atomic(path, {"v": 1})
        fs.write_json_atomic(path, {"v": 2})
        assert fs.read_json(path) == {"v": 2}

    def test_read_json_default_on_missing_or_invalid(self, fs, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")

        assert fs.read_json(tmp_path / "missing.json", {}) == {}
        assert fs.read_json(bad, {"fallback": True}) == {"fallback": True}


class TestRemoval:

    def test_remove_tree_handles_files_folders_and_missing(self, fs, tmp_path):
        folder = tmp_path / "d"
        (folder / "e").mkdir(parents=True)
        (folder / "e" / "f.txt").write_text("x", encoding="utf-8")
        single = tmp_path / "g.txt"
        single.write_text("x", encoding="utf-8")

        fs.remove_tree(folder)
        fs.remove_tree(single)
        fs.remove_tree(tmp_path / "never-existed")

        assert not folder.exists()
        assert not single.exists()

    def test_list_names_of_missing_folder(self, fs, tmp_path):
        assert fs.list_names(tmp_path / "nope") == []
