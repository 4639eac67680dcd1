"""Backend clients: one contract, a filesystem and an object-store variant."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ._io import LimitedReader, Progress, ProgressReader, is_random_access, is_std_stream
from ._types import ContentDescriptor, DirOpt
from .base import Client
from .fs import PART_SUFFIX, FSClient
from .s3 import S3Client, S3ObjectReader

if TYPE_CHECKING:
    from ..location import AliasConfig

__all__ = [
    "Client", "ContentDescriptor", "DirOpt", "FSClient", "S3Client", "S3ObjectReader",
    "Progress", "ProgressReader", "LimitedReader", "PART_SUFFIX",
    "is_random_access", "is_std_stream", "new_client_from_alias",
]


def new_client_from_alias(alias: str, url: str, config: AliasConfig | None) -> Client:
    """Return the client for a resolved location.

    Without a host config the location is a filesystem path.
    """
    if config is None:
        return FSClient(url, alias)
    return S3Client(alias, url, config)
