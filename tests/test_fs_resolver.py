"""Tests for link target existence checks."""

import os
import tempfile
from pathlib import Path

import pytest

from mdck.adapters.fs_resolver import FsResolver, is_broken
from mdck.core.model import ClassifiedLink


def link(path: str, relative: bool = True) -> ClassifiedLink:
    return ClassifiedLink(path=path, fragment=None, is_relative=relative, offset=0)


def test_relative_path_is_joined_to_parent():
    """Test that relative paths resolve against the parent directory."""
    resolver = FsResolver()
    assert resolver.locate(link("a/b.md"), Path("/docs")) == Path("/docs/a/b.md")


def test_absolute_path_is_used_as_is():
    """Test that absolute paths are never joined with the parent."""
    resolver = FsResolver()
    location = resolver.locate(link("/definitely/missing/path", relative=False), Path("/docs"))
    assert location == Path("/definitely/missing/path")


def test_existing_file_and_directory_are_not_broken():
    """Test that both files and directories satisfy existence."""
    with tempfile.TemporaryDirectory() as tmpdir:
        parent = Path(tmpdir)
        (parent / "ok.md").write_text("hi")
        (parent / "sub").mkdir()

        assert not is_broken(link("ok.md"), parent)
        assert not is_broken(link("sub"), parent)
        assert not is_broken(link("sub/"), parent)
        assert not is_broken(link("./sub/../ok.md"), parent)
        assert is_broken(link("missing.md"), parent)


def test_empty_relative_path_is_parent():
    """Test that an anchor-only link resolves to the existing parent."""
    with tempfile.TemporaryDirectory() as tmpdir:
        assert not is_broken(link(""), Path(tmpdir))


def test_absolute_missing_path_is_broken():
    """Test absolute targets."""
    with tempfile.TemporaryDirectory() as tmpdir:
        target = Path(tmpdir) / "there.md"
        target.write_text("x")

        assert not is_broken(link(str(target), relative=False), Path("/nowhere"))
        assert is_broken(link("/definitely/missing/path", relative=False), Path(tmpdir))


def test_nul_byte_counts_as_missing():
    """Test that an unstattable path is reported rather than raising."""
    with tempfile.TemporaryDirectory() as tmpdir:
        assert is_broken(link("bad\x00name.md"), Path(tmpdir))


def test_permission_denied_counts_as_missing(monkeypatch):
    """Test that an access error while checking a target reports it as broken."""
    with tempfile.TemporaryDirectory() as tmpdir:
        parent = Path(tmpdir)
        (parent / "locked.md").write_text("x")

        def deny(path, *args, **kwargs):
            raise PermissionError(13, "Permission denied", str(path))

        with monkeypatch.context() as m:
            m.setattr(os, "stat", deny)
            assert FsResolver().exists(parent / "locked.md") is False
            assert is_broken(link("locked.md"), parent)


def test_unreadable_directory_hides_its_files():
    """Test a target below a directory the user may not search."""
    if os.name != "posix" or os.geteuid() == 0:
        pytest.skip("root ignores directory permissions")
    with tempfile.TemporaryDirectory() as tmpdir:
        parent = Path(tmpdir)
        locked = parent / "locked"
        locked.mkdir()
        (locked / "a.md").write_text("x")
        locked.chmod(0)
        try:
            assert is_broken(link("locked/a.md"), parent)
        finally:
            locked.chmod(0o755)


def test_dangling_symlink_is_broken():
    """Test that symlinks are followed."""
    with tempfile.TemporaryDirectory() as tmpdir:
        parent = Path(tmpdir)
        try:
            os.symlink(parent / "gone.md", parent / "link.md")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")
        assert is_broken(link("link.md"), parent)


def test_is_broken_uses_given_resolver():
    """Test that is_broken delegates to the resolver it is given."""

    class Everything(FsResolver):
        def exists(self, location: Path) -> bool:
            return True

    assert not is_broken(link("nope.md"), Path("/nowhere"), Everything())
