"""Path utility functions for resolving result identities.

This module provides path resolution for result identities, which are
usually workspace-relative paths reported by the retrieval engine.
"""

from pathlib import Path, PurePosixPath
from typing import Optional


def normalize_identity(path: str) -> str:
    """Normalize a result identity for pattern matching.

    Backslashes become forward slashes and a leading ``./`` is stripped.

    Example:
        >>> normalize_identity(".\\\\memory\\\\2024-01-15.md")
        'memory/2024-01-15.md'
    """
    normalized = path.replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


class PathResolver:
    """Path resolver mapping result identities to absolute filesystem paths.

    Relative identities are resolved against the base path; absolute
    identities are used as given. Without a base path only absolute
    identities can be resolved.

    Example:
        >>> resolver = PathResolver(Path("/workspace"))
        >>> resolver.resolve("memory/notes.md")
        PosixPath('/workspace/memory/notes.md')
        >>> PathResolver(None).resolve("memory/notes.md") is None
        True
    """

    def __init__(self, base_path: Optional[Path] = None):
        """Initialize the path resolver.

        Args:
            base_path: Root path that relative identities are resolved against
        """
        self.base_path = Path(base_path).resolve() if base_path is not None else None

    def resolve(self, identity: str) -> Optional[Path]:
        """Convert a result identity to an absolute path.

        Args:
            identity: Result path, relative to the base path or absolute

        Returns:
            Resolved absolute path, or None when the identity is relative
            and no base path is configured
        """
        if not identity:
            return None

        rel_path = Path(identity)
        if rel_path.is_absolute() or PurePosixPath(identity).is_absolute():
            return rel_path
        if self.base_path is None:
            return None
        return self.base_path / rel_path
