"""Hybrid search result model shared by the refinement stages.

Stages accept ``HybridSearchResult`` instances, plain dicts with the same
keys, namedtuples, or any other object exposing the same attributes. Entries are
never mutated; score updates produce a new entry of the same type.
"""

import copy
import dataclasses
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class HybridSearchResult:
    """Single hit produced by the hybrid (keyword + vector) retrieval engine.

    Attributes:
        path: Workspace-relative (or absolute) path of the source content
        score: Relevance score on the retrieval engine's scale
        snippet: Text snippet the hit represents
        source: Corpus partition the hit came from (e.g. "memory", "sessions")
        start_line: First line of the snippet in the source file
        end_line: Last line of the snippet in the source file
    """
    path: str
    score: float
    snippet: str = field(default="")
    source: str = field(default="memory")
    start_line: int = field(default=1)
    end_line: Optional[int] = field(default=None)


def get_field(entry: Any, name: str, default: Any = None) -> Any:
    """Read a field from a dict-like or attribute-style result entry."""
    if isinstance(entry, Mapping):
        return entry.get(name, default)
    return getattr(entry, name, default)


def with_score(entry: Any, score: float) -> Any:
    """Return a copy of ``entry`` with ``score`` replaced."""
    if dataclasses.is_dataclass(entry) and not isinstance(entry, type):
        return dataclasses.replace(entry, score=score)
    if isinstance(entry, Mapping):
        return {**entry, "score": score}
    if isinstance(entry, tuple) and hasattr(entry, "_replace"):
        return entry._replace(score=score)
    updated = copy.copy(entry)
    setattr(updated, "score", score)
    return updated
