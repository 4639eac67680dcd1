"""Copy objects between filesystem paths and object stores.

Same-alias copies are delegated to the backend (server-side copy); other
copies stream through this process.  Metadata layers merge with later
layers winning: stored < source user < target stored < target user.
"""

from ._types import CopyType, TransferRequest, TransferResult
from ._metadata import filter_metadata, merge_metadata, parse_attrs
from ._io import SNIFF_SIZE, get_source_stream, probe_content_type
from ._ops import (
    copy_source_to_target,
    get_all_metadata,
    put_target_retention,
    put_target_stream,
    upload_source_to_target,
)
from ._plan import guess_copy_type, prepare_copy_urls

__all__ = [
    # Types
    "CopyType", "TransferRequest", "TransferResult",
    # Pipeline
    "upload_source_to_target", "prepare_copy_urls", "guess_copy_type",
    "get_source_stream", "put_target_stream", "copy_source_to_target",
    "put_target_retention", "get_all_metadata",
    # Metadata
    "filter_metadata", "merge_metadata", "parse_attrs", "probe_content_type",
    "SNIFF_SIZE",
]
