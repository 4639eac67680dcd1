"""S3-compatible object store backend built on the minio SDK."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Iterator
from urllib.parse import urlparse

from minio import Minio
from minio.commonconfig import REPLACE, ComposeSource, CopySource
from minio.deleteobjects import DeleteObject
from minio.error import MinioException, S3Error
from minio.retention import Retention
from urllib3.exceptions import HTTPError

from .._headers import (
    CONTENT_TYPE,
    DEFAULT_CONTENT_TYPE,
    LOCK_LEGAL_HOLD,
    LOCK_MODE,
    LOCK_RETAIN_UNTIL,
    USER_META_PREFIX,
    canonical_header_key,
)
from ..exceptions import (
    BackendError,
    InvalidArgumentError,
    MCXError,
    NotFoundError,
    NotSupportedError,
    PermissionDeniedError,
    RetentionConflictError,
)
from ..retention import parse_rfc3339
from ._io import ProgressReader
from ._types import ContentDescriptor, DirOpt
from .base import Client

if TYPE_CHECKING:
    from ..location import AliasConfig

logger = logging.getLogger(__name__)

# Largest object a single PUT or server-side copy may carry.
MAX_SINGLE_PART = 5 * 1024 ** 3
# Part size used when the length is unknown.
STREAM_PART_SIZE = 64 * 1024 ** 2
# Keys per DeleteObjects request.
DELETE_BATCH = 1000

_NOT_FOUND_CODES = frozenset({
    "NoSuchKey", "NoSuchBucket", "NoSuchVersion", "NoSuchUpload", "ResourceNotFound",
})
_PERMISSION_CODES = frozenset({"AccessDenied", "AllAccessDisabled"})

_STORED_HEADERS = frozenset({
    "Content-Type", "Cache-Control", "Content-Encoding", "Content-Disposition",
    "Content-Language", "Expires", "X-Amz-Storage-Class",
    LOCK_MODE, LOCK_RETAIN_UNTIL, LOCK_LEGAL_HOLD,
})


def _s3_error(exc: S3Error, alias: str, path: str) -> MCXError:
    """Map a minio S3Error onto the mcx taxonomy."""
    msg = f"{exc.code}: {exc.message}" if exc.message else str(exc.code)
    if exc.code in _NOT_FOUND_CODES:
        return NotFoundError(msg, alias=alias, path=path)
    if exc.code in _PERMISSION_CODES:
        return PermissionDeniedError(msg, alias=alias, path=path)
    return BackendError(msg, alias=alias, path=path)


@contextmanager
def _translate(alias: str, path: str):
    """Re-raise SDK failures as :class:`MCXError` subclasses."""
    try:
        yield
    except S3Error as exc:
        raise _s3_error(exc, alias, path) from exc
    except (MinioException, HTTPError) as exc:
        raise BackendError(str(exc), alias=alias, path=path) from exc
    except ValueError as exc:
        raise InvalidArgumentError(str(exc), alias=alias, path=path) from exc


def _object_path(url: str, config: AliasConfig) -> str:
    """The ``/bucket/key`` part of *url*, taken verbatim after the endpoint."""
    endpoint = config.url.rstrip("/")
    if url.startswith(endpoint):
        return url[len(endpoint):]
    return url


def _split_path(path: str) -> tuple[str, str]:
    """Split ``/bucket/key`` into ``(bucket, key)``."""
    bucket, _, key = path.lstrip("/").partition("/")
    return bucket, key


def _ssec(entry):
    """SSE-C object for reads and copy sources; SSE-S3 needs nothing there."""
    if entry is None or entry.is_sse_s3:
        return None
    return entry.sse()


def _sse(entry):
    return None if entry is None else entry.sse()


def _stored_metadata(headers) -> dict[str, str]:
    result = {}
    for k, v in headers.items():
        key = canonical_header_key(k)
        if key in _STORED_HEADERS or key.startswith(USER_META_PREFIX):
            result[key] = v
    return result



def _pop_lock_headers(metadata: dict[str, str]) -> tuple[Retention | None, bool]:
    """Remove retention/legal-hold pseudo-headers and return SDK values."""
    mode = metadata.pop(LOCK_MODE, "") or ""
    until = metadata.pop(LOCK_RETAIN_UNTIL, "") or ""
    hold = metadata.pop(LOCK_LEGAL_HOLD, "") or ""
    retention = None
    if mode and until:
        try:
            retention = Retention(mode.upper(), parse_rfc3339(until))
        except ValueError as exc:
            raise InvalidArgumentError(f"Invalid retention {mode!r} until {until!r}: {exc}")
    return retention, hold.upper() == "ON"


def new_minio(config: AliasConfig) -> Minio:
    """Create the SDK client for an alias."""
    parsed = urlparse(config.url)
    if parsed.path not in ("", "/"):
        raise InvalidArgumentError(f"Invalid endpoint {config.url!r}: must not include a path")
    return Minio(
        parsed.netloc,
        access_key=config.access_key or None,
        secret_key=config.secret_key or None,
        session_token=config.session_token or None,
        secure=parsed.scheme == "https",
        region=config.region or None,
    )


class S3ObjectReader:
    """Read stream over a GET response; exposes the response metadata."""

    def __init__(self, response, url: str):
        self._response = response
        self.url = url

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            return self._response.read()
        return self._response.read(size)

    def seekable(self) -> bool:
        return False

    def close(self) -> None:
        self._response.close()
        self._response.release_conn()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def descriptor(self) -> ContentDescriptor:
        """Descriptor built from the GET response headers."""
        headers = self._response.headers
        modified = headers.get("Last-Modified")
        return ContentDescriptor(
            url=self.url,
            time=parsedate_to_datetime(modified) if modified else None,
            size=int(headers.get("Content-Length", 0) or 0),
            etag=(headers.get("ETag") or "").strip('"'),
            metadata=_stored_metadata(headers),
        )


class S3Client(Client):
    """Bucket/key addressing against one S3-compatible endpoint."""

    def __init__(self, alias: str, url: str, config: AliasConfig, *, api: Minio | None = None):
        super().__init__(alias, url)
        self.config = config
        self._api = api if api is not None else new_minio(config)
        self.bucket, self.key = _split_path(_object_path(url, config))

    @property
    def path(self) -> str:
        """Backend-native path ``/bucket/key``."""
        if not self.bucket:
            return "/"
        return f"/{self.bucket}/{self.key}"

    def _object_descriptor(self, obj) -> ContentDescriptor:
        metadata = _stored_metadata(obj.metadata or {})
        if obj.content_type:
            metadata.setdefault(CONTENT_TYPE, obj.content_type)
        desc = ContentDescriptor(
            url=f"/{obj.bucket_name}/{obj.object_name}",
            time=obj.last_modified,
            size=obj.size or 0,
            storage_class=obj.storage_class or metadata.get("X-Amz-Storage-Class", ""),
            etag=(obj.etag or "").strip('"'),
            metadata=metadata,
        )
        desc.retention_mode = metadata.get(LOCK_MODE, "")
        desc.legal_hold = metadata.get(LOCK_LEGAL_HOLD, "")
        return desc

    def _listed_descriptor(self, obj) -> ContentDescriptor:
        return ContentDescriptor(
            url=f"/{obj.bucket_name}/{obj.object_name}",
            time=obj.last_modified,
            size=obj.size or 0,
            is_dir=bool(obj.is_dir),
            storage_class=obj.storage_class or "",
            etag=(obj.etag or "").strip('"'),
            metadata=dict(obj.metadata or {}),
        )

    def _require_object(self) -> None:
        if not self.bucket:
            raise InvalidArgumentError("Bucket name cannot be empty", alias=self.alias, path=self.path)
        if not self.key or self.key.endswith("/"):
            raise InvalidArgumentError("Object name cannot be empty", alias=self.alias, path=self.path)

    # --- Metadata ---

    def stat(self, ctx, *, incomplete=False, preserve=False, sse=None) -> ContentDescriptor:
        if incomplete:
            raise NotSupportedError("Incomplete uploads are not listed by this backend",
                                    alias=self.alias, path=self.path)
        if not self.bucket:
            raise InvalidArgumentError("Bucket name cannot be empty", alias=self.alias, path=self.path)
        if not self.key:
            with _translate(self.alias, self.path):
                exists = self._api.bucket_exists(self.bucket)
            if not exists:
                raise NotFoundError("Bucket does not exist", alias=self.alias, path=self.path)
            return ContentDescriptor(url=f"/{self.bucket}/", is_dir=True)

        if not self.key.endswith("/"):
            try:
                with _translate(self.alias, self.path):
                    obj = self._api.stat_object(self.bucket, self.key, ssec=_ssec(sse))
                return self._object_descriptor(obj)
            except NotFoundError:
                pass

        prefix = self.key.rstrip("/") + "/"
        with _translate(self.alias, self.path):
            for _ in self._api.list_objects(self.bucket, prefix=prefix, recursive=False):
                return ContentDescriptor(url=f"/{self.bucket}/{prefix}", is_dir=True)
        raise NotFoundError("Object does not exist", alias=self.alias, path=self.path)

    def _iter_objects(self, ctx, bucket, prefix, recursive, fetch_meta) -> Iterator[ContentDescriptor]:
        try:
            it = iter(self._api.list_objects(bucket, prefix=prefix or None, recursive=recursive,
                                             include_user_meta=fetch_meta))
            while not ctx.cancelled:
                try:
                    obj = next(it)
                except StopIteration:
                    return
                yield self._listed_descriptor(obj)
        except S3Error as exc:
            yield ContentDescriptor.failure(f"/{bucket}/{prefix}", _s3_error(exc, self.alias, f"/{bucket}/{prefix}"))
        except (MinioException, HTTPError) as exc:
            yield ContentDescriptor.failure(
                f"/{bucket}/{prefix}", BackendError(str(exc), alias=self.alias, path=f"/{bucket}/{prefix}"))

    def list(self, ctx, *, recursive=False, incomplete=False, fetch_meta=False,
             dir_opt=DirOpt.NONE) -> Iterator[ContentDescriptor]:
        if incomplete:
            yield ContentDescriptor.failure(self.path, NotSupportedError(
                "Incomplete uploads are not listed by this backend", alias=self.alias, path=self.path))
            return
        if not self.bucket:
            yield from self._list_namespace(ctx, recursive, fetch_meta, dir_opt)
            return

        prefix = self.key
        if prefix and not prefix.endswith("/"):
            # An exact object name sorts before every longer name sharing it.
            for first in self._iter_objects(ctx, self.bucket, prefix, False, fetch_meta):
                if not first.ok:
                    yield first
                    return
                if first.url == self.path and not first.is_dir:
                    yield first
                    if not recursive:
                        return
                break
            prefix += "/"
        yield from self._iter_objects(ctx, self.bucket, prefix, recursive, fetch_meta)

    def _list_namespace(self, ctx, recursive, fetch_meta, dir_opt) -> Iterator[ContentDescriptor]:
        try:
            with _translate(self.alias, "/"):
                buckets = self._api.list_buckets()
        except MCXError as exc:
            yield ContentDescriptor.failure("/", exc)
            return
        for b in buckets:
            if ctx.cancelled:
                return
            desc = ContentDescriptor(url=f"/{b.name}/", time=b.creation_date, is_dir=True)
            if not recursive:
                yield desc
                continue
            if dir_opt == DirOpt.FIRST:
                yield desc
            yield from self._iter_objects(ctx, b.name, "", True, fetch_meta)
            if dir_opt == DirOpt.LAST and not ctx.cancelled:
                yield desc

    # --- I/O ---

    def get(self, ctx, sse=None) -> S3ObjectReader:
        self._require_object()
        with _translate(self.alias, self.path):
            response = self._api.get_object(self.bucket, self.key, ssec=_ssec(sse))
        return S3ObjectReader(response, self.path)

    def put(self, ctx, reader, size, metadata, *, progress=None, sse=None,
            md5=False, disable_multipart=False) -> int:
        self._require_object()
        meta = dict(metadata or {})
        content_type = meta.pop(CONTENT_TYPE, DEFAULT_CONTENT_TYPE)
        retention, legal_hold = _pop_lock_headers(meta)

        part_size = 0
        if disable_multipart:
            if size < 0 or size > MAX_SINGLE_PART:
                raise InvalidArgumentError(
                    "Single part upload requires a known size of at most 5 GiB",
                    alias=self.alias, path=self.path)
            part_size = MAX_SINGLE_PART
        elif size < 0:
            part_size = STREAM_PART_SIZE

        data = ProgressReader(reader, progress)
        with _translate(self.alias, self.path):
            self._api.put_object(
                self.bucket, self.key, data, size,
                content_type=content_type,
                metadata=meta or None,
                sse=_sse(sse),
                part_size=part_size,
                retention=retention,
                legal_hold=legal_hold,
            )
        logger.debug("uploaded %s (%d bytes)", self.path, data.count)
        return data.count

    def copy(self, ctx, source, size, *, progress=None, src_sse=None, tgt_sse=None,
             metadata=None, disable_multipart=False) -> None:
        self._require_object()
        src_bucket, src_key = _split_path(source)
        meta = dict(metadata or {})
        retention, legal_hold = _pop_lock_headers(meta)

        if (src_bucket, src_key) == (self.bucket, self.key) and not meta:
            raise RetentionConflictError(
                "Copying an object onto itself needs a metadata change",
                alias=self.alias, path=self.path)

        with _translate(self.alias, self.path):
            if size > MAX_SINGLE_PART:
                if disable_multipart:
                    raise InvalidArgumentError(
                        "Objects larger than 5 GiB need a multipart copy",
                        alias=self.alias, path=self.path)
                self._api.compose_object(
                    self.bucket, self.key,
                    [ComposeSource(src_bucket, src_key, ssec=_ssec(src_sse))],
                    sse=_sse(tgt_sse), metadata=meta or None,
                    retention=retention, legal_hold=legal_hold,
                )
            else:
                self._api.copy_object(
                    self.bucket, self.key,
                    CopySource(src_bucket, src_key, ssec=_ssec(src_sse)),
                    sse=_sse(tgt_sse), metadata=meta or None,
                    metadata_directive=REPLACE if meta else None,
                    retention=retention, legal_hold=legal_hold,
                )
        if progress is not None:
            progress.update(size)

    # --- Object locking ---

    def put_retention(self, ctx, mode, until, bypass_governance=False) -> None:
        self._require_object()
        if not mode or until is None:
            raise InvalidArgumentError("Retention needs a mode and a retain-until date",
                                       alias=self.alias, path=self.path)
        if bypass_governance:
            logger.warning("governance bypass is not sent by the SDK for retention updates: %s",
                           self.path)
        with _translate(self.alias, self.path):
            self._api.set_object_retention(self.bucket, self.key, Retention(mode.upper(), until))

    def put_legal_hold(self, ctx, hold) -> None:
        self._require_object()
        status = (hold or "").upper()
        with _translate(self.alias, self.path):
            if status == "ON":
                self._api.enable_object_legal_hold(self.bucket, self.key)
            elif status == "OFF":
                self._api.disable_object_legal_hold(self.bucket, self.key)
            else:
                raise InvalidArgumentError(f"Invalid legal hold {hold!r}", alias=self.alias, path=self.path)

    # --- Removal ---

    def _delete_batch(self, bucket: str, names: list[str], bypass_governance: bool) -> Iterator[MCXError]:
        try:
            for err in self._api.remove_objects(bucket, [DeleteObject(n) for n in names],
                                                bypass_governance_mode=bypass_governance):
                path = f"/{bucket}/{err.name}"
                if err.code in _NOT_FOUND_CODES:
                    yield NotFoundError(f"{err.code}: {err.message}", alias=self.alias, path=path)
                elif err.code in _PERMISSION_CODES:
                    yield PermissionDeniedError(f"{err.code}: {err.message}", alias=self.alias, path=path)
                else:
                    yield BackendError(f"{err.code}: {err.message}", alias=self.alias, path=path)
        except S3Error as exc:
            yield _s3_error(exc, self.alias, f"/{bucket}/")
        except (MinioException, HTTPError) as exc:
            yield BackendError(str(exc), alias=self.alias, path=f"/{bucket}/")

    def _remove(self, ctx, contents, *, incomplete, is_bucket, bypass_governance) -> Iterator[MCXError]:
        if incomplete:
            yield NotSupportedError("Removing incomplete uploads is not supported by this backend",
                                    alias=self.alias, path=self.path)
            return
        batch: list[str] = []
        batch_bucket = ""
        buckets: list[str] = []
        for content in contents:
            bucket, key = _split_path(content.url)
            if not key:
                if bucket and bucket not in buckets:
                    buckets.append(bucket)
                continue
            if batch and (bucket != batch_bucket or len(batch) >= DELETE_BATCH):
                yield from self._delete_batch(batch_bucket, batch, bypass_governance)
                batch = []
            batch_bucket = bucket
            batch.append(key)
        if ctx.cancelled:
            return
        if batch:
            yield from self._delete_batch(batch_bucket, batch, bypass_governance)
        if is_bucket:
            if self.bucket and self.bucket not in buckets:
                buckets.append(self.bucket)
            for bucket in buckets:
                try:
                    with _translate(self.alias, f"/{bucket}/"):
                        self._api.remove_bucket(bucket)
                except MCXError as exc:
                    yield exc
