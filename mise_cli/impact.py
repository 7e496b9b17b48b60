"""Change-impact analysis over the reverse dependency graph."""

from __future__ import annotations

import logging
import posixpath
from typing import Iterable, List, Mapping, Optional

from .graph import REVERSE, DependencyGraph
from .models import Anchor, ChangeSet, Diagnostic, ImpactResult

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Canonical root-relative form: forward slashes, no ``./`` prefix."""
    cleaned = posixpath.normpath(path.replace("\\", "/"))
    return "" if cleaned == "." else cleaned


def _dedupe(paths: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for path in paths:
        norm = normalize_path(path)
        if norm and norm not in seen:
            seen.add(norm)
            ordered.append(norm)
    return ordered


def analyze_impact(
    change_set: ChangeSet,
    graph: DependencyGraph,
    anchor_index: Optional[Mapping[str, Anchor]] = None,
    max_depth: int = 3,
    diagnostics: Iterable[Diagnostic] = (),
) -> ImpactResult:
    """Compute the files and anchors affected by *change_set*.

    Changed files are the BFS seeds.  Dependents at depth 1 are direct
    impacts; depths ``2..max_depth`` are transitive.  A file reachable at
    several depths is reported once, at its minimum depth, so the three
    lists never overlap.  Changed files absent from the graph are kept
    as-is and simply have no dependents.

    Raises:
        ValueError: if *max_depth* is smaller than 1.
    """
    if max_depth < 1:
        raise ValueError(f"max_depth must be >= 1, got {max_depth}")

    changed = _dedupe(change_set.files)
    traversal = graph.traverse(changed, direction=REVERSE, max_depth=max_depth)

    direct = list(traversal.at(1))
    transitive: List[str] = []
    for depth in range(2, len(traversal.levels)):
        transitive.extend(traversal.at(depth))
    transitive.sort()

    affected_files = set(changed) | set(direct) | set(transitive)
    anchors = sorted(
        anchor_id
        for anchor_id, anchor in (anchor_index or {}).items()
        if normalize_path(anchor.path) in affected_files
    )

    if traversal.truncated:
        logger.info("Impact traversal stopped at max depth %d with dependents remaining", max_depth)

    return ImpactResult(
        changed_files=changed,
        direct_impacts=direct,
        transitive_impacts=transitive,
        affected_anchors=anchors,
        diagnostics=list(diagnostics),
        source=change_set.source.description,
        max_depth=max_depth,
        depth_limit_reached=traversal.truncated,
    )
