"""Utility modules for the result refinement pipeline.

This package contains helpers that support the refinement stages but
are not part of the scoring logic: path resolution and file metadata.
"""

from .file_utils import read_modified_time, get_modified_time
from .path_utils import PathResolver, normalize_identity

__all__ = [
    "read_modified_time",
    "get_modified_time",
    "PathResolver",
    "normalize_identity",
]
