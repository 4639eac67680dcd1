from ._context import Context, background
from .exceptions import (
    MCXError, NotFoundError, PermissionDeniedError, InvalidArgumentError,
    PreconditionError, BackendError, RetentionConflictError, NotSupportedError,
)
from .encryption import EncryptionKeyEntry, KeyRegistry, load_encryption_keys, parse_encryption_keys, resolve_key
from .location import AliasConfig, AliasRegistry, Location, is_container_like
from .client import Client, ContentDescriptor, DirOpt, FSClient, S3Client, new_client_from_alias
from .remove import RemoveResult, check_rm_syntax, remove_recursive, remove_single
from .copy import TransferRequest, TransferResult, prepare_copy_urls, upload_source_to_target

__all__ = [
    "Context", "background",
    "MCXError", "NotFoundError", "PermissionDeniedError", "InvalidArgumentError",
    "PreconditionError", "BackendError", "RetentionConflictError", "NotSupportedError",
    "EncryptionKeyEntry", "KeyRegistry", "load_encryption_keys", "parse_encryption_keys",
    "resolve_key",
    "AliasConfig", "AliasRegistry", "Location", "is_container_like",
    "Client", "ContentDescriptor", "DirOpt", "FSClient", "S3Client", "new_client_from_alias",
    "RemoveResult", "check_rm_syntax", "remove_recursive", "remove_single",
    "TransferRequest", "TransferResult", "prepare_copy_urls", "upload_source_to_target",
]
