"""Tests for the filesystem backend."""

import io
import os

import pytest

from mcx._channel import Channel
from mcx._headers import ATTRS_KEY
from mcx.client import PART_SUFFIX, ContentDescriptor, DirOpt, FSClient
from mcx.client.fs import parse_attrs
from mcx.exceptions import (
    BackendError,
    InvalidArgumentError,
    NotFoundError,
    NotSupportedError,
)


def _names(root, contents):
    return [os.path.relpath(c.url, root) for c in contents]


def _remove(ctx, client, paths, **kwargs):
    ch = Channel()
    for p in paths:
        ch.send(ContentDescriptor(url=p))
    ch.close()
    return list(client.remove(ctx, ch, **kwargs))


class TestStat:
    def test_file(self, ctx, fs_tree):
        d = FSClient(str(fs_tree / "a.txt")).stat(ctx)
        assert d.size == 5
        assert not d.is_dir
        assert d.metadata["Content-Type"] == "text/plain"
        assert d.time is not None and d.time.tzinfo is not None

    def test_directory(self, ctx, fs_tree):
        d = FSClient(str(fs_tree)).stat(ctx)
        assert d.is_dir
        assert d.size == 0
        assert "Content-Type" not in d.metadata

    def test_missing(self, ctx, tmp_path):
        with pytest.raises(NotFoundError):
            FSClient(str(tmp_path / "nope")).stat(ctx)

    def test_unknown_extension(self, ctx, tmp_path):
        f = tmp_path / "blob.zzzunknown"
        f.write_bytes(b"x")
        assert FSClient(str(f)).stat(ctx).metadata["Content-Type"] == "application/octet-stream"

    def test_preserve_attrs(self, ctx, fs_tree):
        os.chmod(fs_tree / "a.txt", 0o640)
        d = FSClient(str(fs_tree / "a.txt")).stat(ctx, preserve=True)
        attrs = parse_attrs(d.metadata[ATTRS_KEY])
        assert attrs["mode"] == "640"
        assert set(attrs) == {"atime", "ctime", "gid", "mode", "mtime", "uid"}

    def test_incomplete(self, ctx, tmp_path):
        (tmp_path / ("f.bin" + PART_SUFFIX)).write_bytes(b"half")
        d = FSClient(str(tmp_path / "f.bin")).stat(ctx, incomplete=True)
        assert d.url.endswith(PART_SUFFIX)
        assert d.size == 4


class TestList:
    def test_flat_sorted_with_dirs(self, ctx, fs_tree):
        got = list(FSClient(str(fs_tree)).list(ctx))
        assert _names(fs_tree, got) == ["a.txt", "b.log", "sub"]
        assert [c.is_dir for c in got] == [False, False, True]

    def test_recursive_suppresses_dirs(self, ctx, fs_tree):
        got = list(FSClient(str(fs_tree)).list(ctx, recursive=True))
        assert _names(fs_tree, got) == ["a.txt", "b.log", os.path.join("sub", "c.txt")]

    def test_dir_first(self, ctx, fs_tree):
        got = list(FSClient(str(fs_tree)).list(ctx, recursive=True, dir_opt=DirOpt.FIRST))
        assert _names(fs_tree, got)[2:] == ["sub", os.path.join("sub", "c.txt")]

    def test_dir_last(self, ctx, fs_tree):
        got = list(FSClient(str(fs_tree)).list(ctx, recursive=True, dir_opt=DirOpt.LAST))
        assert _names(fs_tree, got)[2:] == [os.path.join("sub", "c.txt"), "sub"]

    def test_single_file(self, ctx, fs_tree):
        got = list(FSClient(str(fs_tree / "a.txt")).list(ctx))
        assert len(got) == 1 and got[0].size == 5

    def test_missing_root_in_band(self, ctx, tmp_path):
        got = list(FSClient(str(tmp_path / "nope")).list(ctx))
        assert len(got) == 1
        assert isinstance(got[0].error, NotFoundError)

    def test_incomplete_only(self, ctx, fs_tree):
        (fs_tree / ("d.bin" + PART_SUFFIX)).write_bytes(b"x")
        normal = _names(fs_tree, FSClient(str(fs_tree)).list(ctx, recursive=True))
        partial = _names(fs_tree, FSClient(str(fs_tree)).list(ctx, recursive=True, incomplete=True))
        assert "d.bin" + PART_SUFFIX not in normal
        assert partial == ["d.bin" + PART_SUFFIX]

    def test_cancelled_stops(self, ctx, fs_tree):
        ctx.cancel()
        assert list(FSClient(str(fs_tree)).list(ctx, recursive=True)) == []


class TestPut:
    def test_writes_and_creates_parents(self, ctx, tmp_path):
        dest = tmp_path / "x" / "y" / "out.bin"
        n = FSClient(str(dest)).put(ctx, io.BytesIO(b"payload"), 7, {})
        assert n == 7
        assert dest.read_bytes() == b"payload"
        assert not (dest.parent / ("out.bin" + PART_SUFFIX)).exists()

    def test_unknown_size(self, ctx, tmp_path):
        dest = tmp_path / "out.bin"
        assert FSClient(str(dest)).put(ctx, io.BytesIO(b"abc"), -1, {}) == 3

    def test_short_read_fails(self, ctx, tmp_path):
        dest = tmp_path / "out.bin"
        with pytest.raises(BackendError, match="Unexpected EOF"):
            FSClient(str(dest)).put(ctx, io.BytesIO(b"abc"), 10, {})
        assert not dest.exists()

    def test_directory_target(self, ctx, tmp_path):
        with pytest.raises(InvalidArgumentError):
            FSClient(str(tmp_path) + "/").put(ctx, io.BytesIO(b""), 0, {})

    def test_applies_preserved_attrs(self, ctx, tmp_path):
        dest = tmp_path / "out.bin"
        attrs = "atime:1000000000#mtime:1000000000#mode:600"
        FSClient(str(dest)).put(ctx, io.BytesIO(b"x"), 1, {ATTRS_KEY: attrs})
        st = os.stat(dest)
        assert int(st.st_mtime) == 1000000000
        assert st.st_mode & 0o777 == 0o600

    def test_copy(self, ctx, fs_tree, tmp_path):
        dest = tmp_path / "copy.txt"
        FSClient(str(dest)).copy(ctx, str(fs_tree / "a.txt"), 5)
        assert dest.read_text() == "alpha"

    def test_get(self, ctx, fs_tree):
        with FSClient(str(fs_tree / "b.log")).get(ctx) as f:
            assert f.read() == b"bravo"


class TestLocking:
    def test_retention_not_supported(self, ctx, fs_tree):
        with pytest.raises(NotSupportedError):
            FSClient(str(fs_tree / "a.txt")).put_retention(ctx, "GOVERNANCE", None)

    def test_legal_hold_not_supported(self, ctx, fs_tree):
        with pytest.raises(NotSupportedError):
            FSClient(str(fs_tree / "a.txt")).put_legal_hold(ctx, "ON")


class TestRemove:
    def test_removes_and_prunes(self, ctx, fs_tree):
        client = FSClient(str(fs_tree))
        errors = _remove(ctx, client, [str(fs_tree / "sub" / "c.txt"), str(fs_tree / "a.txt")])
        assert errors == []
        assert not (fs_tree / "a.txt").exists()
        assert not (fs_tree / "sub").exists()
        assert fs_tree.exists()

    def test_missing_reported(self, ctx, fs_tree):
        errors = _remove(ctx, FSClient(str(fs_tree)), [str(fs_tree / "ghost")])
        assert len(errors) == 1
        assert isinstance(errors[0], NotFoundError)

    def test_continues_after_failure(self, ctx, fs_tree):
        errors = _remove(ctx, FSClient(str(fs_tree)),
                         [str(fs_tree / "ghost"), str(fs_tree / "b.log")])
        assert len(errors) == 1
        assert not (fs_tree / "b.log").exists()

    def test_incomplete(self, ctx, tmp_path):
        part = tmp_path / ("f.bin" + PART_SUFFIX)
        part.write_bytes(b"x")
        errors = _remove(ctx, FSClient(str(tmp_path)), [str(tmp_path / "f.bin")], incomplete=True)
        assert errors == []
        assert not part.exists()

    def test_empty_directory(self, ctx, tmp_path):
        d = tmp_path / "empty"
        d.mkdir()
        assert _remove(ctx, FSClient(str(d)), [str(d) + "/"]) == []
        assert not d.exists()
