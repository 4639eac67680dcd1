"""Shared fixtures for mcx tests."""

import io
from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner

from mcx._context import background
from mcx.client import Client, ContentDescriptor, FSClient
from mcx.exceptions import InvalidArgumentError, NotFoundError, NotSupportedError
from mcx.location import AliasConfig, AliasRegistry


NOW = datetime.now(timezone.utc).replace(microsecond=0)


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class FakeBackend:
    """Objects keyed by ``/bucket/key`` plus a log of every client call."""

    def __init__(self):
        self.objects = {}
        self.calls = []
        self.remove_errors = {}
        self.list_errors = []
        self.retention = {}
        self.legal_hold = {}

    def add(self, path, data=b"", *, age_days=0, metadata=None):
        self.objects[path] = {
            "data": data,
            "time": NOW - timedelta(days=age_days),
            "metadata": dict(metadata or {"Content-Type": "application/octet-stream"}),
        }

    def count(self, op):
        return sum(1 for c in self.calls if c[0] == op)

    def descriptor(self, path):
        obj = self.objects[path]
        return ContentDescriptor(url=path, time=obj["time"], size=len(obj["data"]),
                                 metadata=dict(obj["metadata"]))


class FakeClient(Client):
    """A :class:`Client` over a :class:`FakeBackend`."""

    def __init__(self, backend, alias, path):
        super().__init__(alias, path)
        self.backend = backend

    def _prefix(self):
        return self.url.rstrip("/") + "/"

    def stat(self, ctx, *, incomplete=False, preserve=False, sse=None):
        self.backend.calls.append(("stat", self.url, sse))
        if self.url in ("", "/"):
            raise InvalidArgumentError("Bucket name cannot be empty", alias=self.alias)
        if self.url in self.backend.objects:
            return self.backend.descriptor(self.url)
        prefix = self._prefix()
        if any(p.startswith(prefix) for p in self.backend.objects):
            return ContentDescriptor(url=prefix, is_dir=True)
        raise NotFoundError("Object does not exist", alias=self.alias, path=self.url)

    def list(self, ctx, *, recursive=False, incomplete=False, fetch_meta=False, dir_opt=None):
        self.backend.calls.append(("list", self.url))
        if self.url in self.backend.objects:
            yield self.backend.descriptor(self.url)
            return
        prefix = self._prefix()
        failures = list(self.backend.list_errors)
        seen = set()
        for path in sorted(self.backend.objects):
            if ctx.cancelled:
                return
            if not path.startswith(prefix):
                continue
            while failures and failures[0][0] < path:
                fpath, err = failures.pop(0)
                yield ContentDescriptor.failure(fpath, err)
            rest = path[len(prefix):]
            if not recursive and "/" in rest:
                sub = prefix + rest.split("/", 1)[0] + "/"
                if sub not in seen:
                    seen.add(sub)
                    yield ContentDescriptor(url=sub, is_dir=True)
                continue
            yield self.backend.descriptor(path)
        for fpath, err in failures:
            yield ContentDescriptor.failure(fpath, err)

    def get(self, ctx, sse=None):
        self.backend.calls.append(("get", self.url, sse))
        if self.url not in self.backend.objects:
            raise NotFoundError("Object does not exist", alias=self.alias, path=self.url)
        return io.BytesIO(self.backend.objects[self.url]["data"])

    def put(self, ctx, reader, size, metadata, *, progress=None, sse=None,
            md5=False, disable_multipart=False):
        data = reader.read() if size < 0 else reader.read(size)
        self.backend.calls.append(("put", self.url, size, dict(metadata), sse))
        self.backend.objects[self.url] = {"data": data, "time": NOW, "metadata": dict(metadata)}
        return len(data)

    def copy(self, ctx, source, size, *, progress=None, src_sse=None, tgt_sse=None,
             metadata=None, disable_multipart=False):
        self.backend.calls.append(("copy", source, self.url, dict(metadata or {})))
        data = self.backend.objects[source]["data"]
        self.backend.objects[self.url] = {"data": data, "time": NOW,
                                          "metadata": dict(metadata or {})}

    def put_retention(self, ctx, mode, until, bypass_governance=False):
        self.backend.calls.append(("put_retention", self.url, mode, until, bypass_governance))
        self.backend.retention[self.url] = (mode, until)

    def put_legal_hold(self, ctx, hold):
        self.backend.calls.append(("put_legal_hold", self.url, hold))
        self.backend.legal_hold[self.url] = hold

    def _remove(self, ctx, contents, *, incomplete, is_bucket, bypass_governance):
        if incomplete:
            yield NotSupportedError("no incomplete uploads", alias=self.alias)
            return
        for content in contents:
            path = content.url
            self.backend.calls.append(("remove", path))
            err = self.backend.remove_errors.get(path)
            if err is not None:
                yield err
                continue
            self.backend.objects.pop(path, None)


@pytest.fixture
def backends():
    """One :class:`FakeBackend` per alias: ``s3`` and ``dst``."""
    return {"s3": FakeBackend(), "dst": FakeBackend()}


@pytest.fixture
def registry(backends):
    """Alias registry whose S3 aliases resolve to :class:`FakeClient` instances."""
    aliases = {name: AliasConfig(f"https://{name}.example.com") for name in backends}

    def factory(location):
        if location.is_fs:
            return FSClient(location.url, location.alias)
        return FakeClient(backends[location.alias], location.alias, location.path)

    return AliasRegistry(aliases, client_factory=factory)


@pytest.fixture
def ctx():
    c = background()
    yield c
    c.cancel()


# ---------------------------------------------------------------------------
# CLI fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def fs_tree(tmp_path):
    """A directory with a.txt, b.log and sub/c.txt."""
    root = tmp_path / "tree"
    (root / "sub").mkdir(parents=True)
    (root / "a.txt").write_text("alpha")
    (root / "b.log").write_text("bravo")
    (root / "sub" / "c.txt").write_text("charlie")
    return root
