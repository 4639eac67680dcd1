"""Tests for the bulk remove pipeline."""

import pytest

from mcx._age import AgeFilter
from mcx._exclude import ExcludeFilter
from mcx.exceptions import (
    BackendError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionError,
)
from mcx.remove import check_rm_syntax, remove_recursive, remove_single

from conftest import NOW


@pytest.fixture
def aged(backends):
    """Three objects under s3/bucket/prefix/ aged 10, 95 and 200 days."""
    s3 = backends["s3"]
    s3.add("/bucket/prefix/new", b"1", age_days=10)
    s3.add("/bucket/prefix/old", b"22", age_days=95)
    s3.add("/bucket/prefix/ancient", b"333", age_days=200)
    s3.add("/bucket/other", b"x", age_days=500)
    return s3


def _removed(backend):
    return sorted(c[1] for c in backend.calls if c[0] == "remove")


# ---------------------------------------------------------------------------
# Recursive removal
# ---------------------------------------------------------------------------

class TestRemoveRecursive:
    def test_older_than(self, ctx, registry, aged):
        age = AgeFilter.parse(older_than="90d", now=NOW)
        result = remove_recursive(ctx, "s3/bucket/prefix/", registry=registry, age=age)
        assert result.ok
        assert aged.count("remove") == 2
        assert _removed(aged) == ["/bucket/prefix/ancient", "/bucket/prefix/old"]
        assert "/bucket/prefix/new" in aged.objects

    def test_newer_than(self, ctx, registry, aged):
        age = AgeFilter.parse(newer_than="30d", now=NOW)
        remove_recursive(ctx, "s3/bucket/prefix/", registry=registry, age=age)
        assert _removed(aged) == ["/bucket/prefix/new"]

    def test_removes_everything_below(self, ctx, registry, aged):
        result = remove_recursive(ctx, "s3/bucket/prefix", registry=registry)
        assert result.ok
        assert len(result.removed) == 3
        assert aged.count("remove") == 3
        assert list(aged.objects) == ["/bucket/other"]

    def test_on_remove_gets_aliased_keys(self, ctx, registry, aged):
        seen = []
        remove_recursive(ctx, "s3/bucket/prefix/", registry=registry,
                         on_remove=lambda key, content: seen.append(key))
        assert seen == ["s3/bucket/prefix/ancient", "s3/bucket/prefix/new",
                        "s3/bucket/prefix/old"]

    def test_fake_makes_no_calls(self, ctx, registry, aged):
        age = AgeFilter.parse(older_than="90d", now=NOW)
        fake = remove_recursive(ctx, "s3/bucket/prefix/", registry=registry, age=age, fake=True)
        assert aged.count("remove") == 0
        assert len(aged.objects) == 4

        real = remove_recursive(ctx, "s3/bucket/prefix/", registry=registry, age=age)
        assert [c.url for c in fake.removed] == [c.url for c in real.removed]

    def test_exclude(self, ctx, registry, backends):
        s3 = backends["s3"]
        s3.add("/bucket/p/keep.log")
        s3.add("/bucket/p/drop.txt")
        s3.add("/bucket/p/tmp/x.txt")
        exclude = ExcludeFilter(patterns=["*.log", "tmp/"])
        remove_recursive(ctx, "s3/bucket/p/", registry=registry, exclude=exclude)
        assert _removed(s3) == ["/bucket/p/drop.txt"]

    def test_permission_error_continues(self, ctx, registry, aged):
        aged.remove_errors["/bucket/prefix/new"] = PermissionDeniedError(
            "AccessDenied", path="/bucket/prefix/new")
        result = remove_recursive(ctx, "s3/bucket/prefix/", registry=registry)
        assert aged.count("remove") == 3
        assert not result.aborted
        assert not result.ok
        assert len(result.errors) == 1
        assert isinstance(result.errors[0], PermissionDeniedError)

    def test_backend_error_aborts(self, ctx, registry, aged):
        aged.remove_errors["/bucket/prefix/ancient"] = BackendError("boom")
        result = remove_recursive(ctx, "s3/bucket/prefix/", registry=registry)
        assert result.aborted
        assert any(isinstance(e, BackendError) for e in result.errors)

    def test_listing_permission_error_skipped(self, ctx, registry, backends):
        s3 = backends["s3"]
        s3.add("/bucket/p/a")
        s3.add("/bucket/p/c")
        s3.list_errors = [("/bucket/p/b", PermissionDeniedError("denied"))]
        result = remove_recursive(ctx, "s3/bucket/p/", registry=registry)
        assert _removed(s3) == ["/bucket/p/a", "/bucket/p/c"]
        assert not result.aborted
        assert len(result.errors) == 1

    def test_listing_error_aborts(self, ctx, registry, backends):
        s3 = backends["s3"]
        s3.add("/bucket/p/a")
        s3.add("/bucket/p/c")
        s3.list_errors = [("/bucket/p/b", BackendError("network"))]
        result = remove_recursive(ctx, "s3/bucket/p/", registry=registry)
        assert _removed(s3) == ["/bucket/p/a"]
        assert result.aborted
        assert result.errors[0].alias == "s3"

    def test_incomplete_not_supported(self, ctx, registry, aged):
        result = remove_recursive(ctx, "s3/bucket/prefix/", registry=registry, incomplete=True)
        assert not result.ok
        assert aged.count("remove") == 0

    def test_cancelled_context(self, ctx, registry, aged):
        ctx.cancel()
        result = remove_recursive(ctx, "s3/bucket/prefix/", registry=registry)
        assert result.aborted
        assert aged.count("remove") == 0

    def test_filesystem(self, ctx, registry, fs_tree):
        result = remove_recursive(ctx, str(fs_tree), registry=registry,
                                  exclude=ExcludeFilter(patterns=["*.log"]))
        assert result.ok
        assert sorted(p.name for p in fs_tree.iterdir()) == ["b.log"]


# ---------------------------------------------------------------------------
# Single removal
# ---------------------------------------------------------------------------

class TestRemoveSingle:
    def test_object(self, ctx, registry, aged):
        result = remove_single(ctx, "s3/bucket/other", registry=registry)
        assert result.ok
        assert _removed(aged) == ["/bucket/other"]

    def test_missing(self, ctx, registry, aged):
        result = remove_single(ctx, "s3/bucket/ghost", registry=registry)
        assert not result.ok
        assert isinstance(result.errors[0], NotFoundError)

    def test_missing_with_force(self, ctx, registry, aged):
        result = remove_single(ctx, "s3/bucket/ghost", registry=registry, force=True)
        assert result.ok
        assert result.removed == []

    def test_age_filtered(self, ctx, registry, aged):
        age = AgeFilter.parse(newer_than="1d", now=NOW)
        result = remove_single(ctx, "s3/bucket/other", registry=registry, age=age)
        assert result.ok
        assert aged.count("remove") == 0

    def test_fake(self, ctx, registry, aged):
        seen = []
        result = remove_single(ctx, "s3/bucket/other", registry=registry, fake=True,
                               on_remove=lambda key, content: seen.append(key))
        assert seen == ["s3/bucket/other"]
        assert len(result.removed) == 1
        assert aged.count("remove") == 0

    def test_permission_error(self, ctx, registry, aged):
        aged.remove_errors["/bucket/other"] = PermissionDeniedError("denied")
        result = remove_single(ctx, "s3/bucket/other", registry=registry)
        assert not result.ok
        assert not result.aborted

    def test_filesystem_file(self, ctx, registry, fs_tree):
        result = remove_single(ctx, str(fs_tree / "a.txt"), registry=registry)
        assert result.ok
        assert not (fs_tree / "a.txt").exists()


# ---------------------------------------------------------------------------
# Safety gating
# ---------------------------------------------------------------------------

class TestCheckRmSyntax:
    def test_object_needs_nothing(self, ctx, registry, aged):
        check_rm_syntax(ctx, ["s3/bucket/other"], registry=registry)

    def test_directory_needs_recursive(self, ctx, registry, aged):
        with pytest.raises(PreconditionError, match="--recursive"):
            check_rm_syntax(ctx, ["s3/bucket/prefix"], registry=registry)

    def test_recursive_needs_force(self, ctx, registry, aged):
        with pytest.raises(PreconditionError, match="--force"):
            check_rm_syntax(ctx, ["s3/bucket/prefix"], recursive=True, registry=registry)

    def test_recursive_with_force(self, ctx, registry, aged):
        check_rm_syntax(ctx, ["s3/bucket/prefix"], recursive=True, force=True,
                        registry=registry)

    def test_namespace_needs_dangerous(self, ctx, registry, aged):
        with pytest.raises(PreconditionError, match="site-wide"):
            check_rm_syntax(ctx, ["s3"], recursive=True, force=True, registry=registry)

    def test_namespace_without_force(self, ctx, registry, aged):
        with pytest.raises(PreconditionError, match="site-wide"):
            check_rm_syntax(ctx, ["s3/"], recursive=True, registry=registry)

    def test_namespace_dangerous(self, ctx, registry, aged):
        check_rm_syntax(ctx, ["s3"], recursive=True, force=True, dangerous=True,
                        registry=registry)

    def test_no_targets(self, ctx, registry):
        with pytest.raises(PreconditionError, match="No removal target"):
            check_rm_syntax(ctx, [], registry=registry)

    def test_stdin_needs_force(self, ctx, registry):
        with pytest.raises(PreconditionError, match="--force"):
            check_rm_syntax(ctx, [], stdin=True, registry=registry)
        check_rm_syntax(ctx, [], stdin=True, force=True, registry=registry)

    def test_filesystem_root_not_namespace(self, ctx, registry, tmp_path):
        f = tmp_path / "f.txt"
        f.write_text("x")
        check_rm_syntax(ctx, [str(f)], recursive=True, force=True, registry=registry)
