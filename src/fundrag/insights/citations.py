"""Citation extraction and grounding checks.

Parses [1], [2], [3,4], [1-3] from model output and maps them back to the
numbered sources that were placed in the prompt.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from fundrag.errors import GroundingError
from fundrag.insights.prompts import Source

# Matches [1], [2], [3,4], [1-3], etc.
_CITATION_RE = re.compile(r"\[(\d+(?:\s*[,\-]\s*\d+)*)\]")

# Upper bound on the sources a single range marker like [1-3] can expand to.
_MAX_RANGE = 200


def cited_indices(text: str) -> set[int]:
    """Return every source number referenced by a bracket marker.

    Date-like text such as ``[2024-03-31]`` and descending ranges such as
    ``[3-1]`` are not markers and contribute nothing.
    """
    indices: set[int] = set()
    for match in _CITATION_RE.finditer(text):
        for part in match.group(1).split(","):
            bounds = [int(p) for p in part.split("-")]
            if len(bounds) == 1:
                indices.add(bounds[0])
            elif len(bounds) == 2 and bounds[1] >= bounds[0]:
                start, end = bounds
                indices.update(range(start, min(end, start + _MAX_RANGE) + 1))
    return indices


def extract_citations(text: str, sources: Sequence[Source]) -> list[Source]:
    """Return the sources cited in ``text``, in source order."""
    cited = cited_indices(text)
    return [s for s in sources if s.index in cited]


def enforce_citations(text: str, sources: Sequence[Source]) -> list[Source]:
    """Require at least one marker that points at a supplied source.

    Raises:
        GroundingError: ``sources`` is non-empty and ``text`` cites none of them.
    """
    cited = extract_citations(text, sources)
    if sources and not cited:
        raise GroundingError(
            "Model response does not cite the supplied context",
            details={"sources": len(sources)},
        )
    return cited
