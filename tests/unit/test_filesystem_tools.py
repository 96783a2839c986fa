"""Unit tests for the sandboxed filesystem tools."""

import pytest

from verity_server.tools import filesystem
from verity_server.tools.errors import InvalidArgument, PathNotAllowed, RootNotConfigured


@pytest.fixture
def root(tmp_path):
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "readme.md").write_text("line1\nline2\nline3\n", encoding="utf-8")
    (tmp_path / "top.txt").write_text("top", encoding="utf-8")
    return tmp_path


class TestPathValidation:
    @pytest.mark.parametrize("path", ["/etc/passwd", "../outside.txt", "docs/../../x", "C:/windows"])
    def test_escapes_are_rejected(self, root, path):
        with pytest.raises(PathNotAllowed):
            filesystem.validate_path_under_root(root.resolve(), path)

    def test_symlink_escape_is_rejected(self, root, tmp_path_factory):
        outside = tmp_path_factory.mktemp("outside")
        (root / "link").symlink_to(outside, target_is_directory=True)

        with pytest.raises(PathNotAllowed):
            filesystem.validate_path_under_root(root.resolve(), "link/secret.txt")

    def test_relative_path_resolves_under_root(self, root):
        resolved = filesystem.validate_path_under_root(root.resolve(), "docs/readme.md")

        assert resolved == (root / "docs" / "readme.md").resolve()

    def test_missing_root(self):
        with pytest.raises(RootNotConfigured):
            filesystem.read_file("  ", "a.txt")


class TestReadFile:
    def test_reads_whole_file(self, root):
        assert filesystem.read_file(str(root), "docs/readme.md") == "line1\nline2\nline3\n"

    def test_head_and_tail(self, root):
        assert filesystem.read_file(str(root), "docs/readme.md", head=2) == "line1\nline2"
        assert filesystem.read_file(str(root), "docs/readme.md", tail=1) == "line3"

    def test_missing_file(self, root):
        with pytest.raises(InvalidArgument):
            filesystem.read_file(str(root), "nope.txt")

    def test_binary_file(self, root):
        (root / "blob.bin").write_bytes(b"\xff\xfe\x00\x81")

        with pytest.raises(InvalidArgument):
            filesystem.read_file(str(root), "blob.bin")

    def test_too_large(self, root):
        (root / "big.txt").write_text("a" * (filesystem.MAX_FILE_SIZE_BYTES + 1), encoding="utf-8")

        with pytest.raises(InvalidArgument):
            filesystem.read_file(str(root), "big.txt")


class TestWriteFile:
    def test_writes_and_creates_parents(self, root):
        result = filesystem.write_file(str(root), "notes/new/today.md", "héllo")

        assert (root / "notes" / "new" / "today.md").read_text(encoding="utf-8") == "héllo"
        assert result == "Wrote 6 bytes to notes/new/today.md"

    def test_overwrites_existing(self, root):
        filesystem.write_file(str(root), "top.txt", "new")

        assert (root / "top.txt").read_text(encoding="utf-8") == "new"

    def test_refuses_directory_target(self, root):
        with pytest.raises(InvalidArgument):
            filesystem.write_file(str(root), "docs", "x")

    def test_refuses_escape(self, root):
        with pytest.raises(PathNotAllowed):
            filesystem.write_file(str(root), "../escape.txt", "x")


class TestListDir:
    def test_lists_one_level(self, root):
        assert filesystem.list_dir(str(root), ".") == "docs/\ntop.txt"

    def test_lists_nested(self, root):
        assert filesystem.list_dir(str(root), ".", depth=2) == "docs/\ndocs/readme.md\ntop.txt"

    def test_empty_directory(self, root):
        (root / "empty").mkdir()

        assert filesystem.list_dir(str(root), "empty") == "(empty)"

    def test_not_a_directory(self, root):
        with pytest.raises(InvalidArgument):
            filesystem.list_dir(str(root), "top.txt")
