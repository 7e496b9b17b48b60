"""Project analysis driver: list, extract, resolve, build.

Extraction runs in a thread pool; each worker returns its own reference list
and the results are merged and resolved in a single serial pass in sorted
path order, so the built graph does not depend on scheduling.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .config_manager import DepsConfig
from .extractors import extract_imports, supports_language
from .graph import DependencyGraph, build_graph
from .models import (
    CycleDetected,
    DependencyEdge,
    Diagnostic,
    ImportReference,
    Language,
    ParseSkipped,
    SourceFile,
)
from .resolver import PathResolver
from .scanner import list_source_files

logger = logging.getLogger(__name__)


class ExtractionCache:
    """In-memory extraction results keyed by (content SHA-1, language).

    References are stored without their origin so identical files at
    different paths share an entry.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, Language], List[Tuple[str, int, str]]] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(data: bytes, language: Language) -> Tuple[str, Language]:
        return hashlib.sha1(data).hexdigest(), language

    def get(self, key: Tuple[str, Language], origin: str) -> Optional[List[ImportReference]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            self.hits += 1
        return [ImportReference(spec, origin, line, kind) for spec, line, kind in entry]

    def put(self, key: Tuple[str, Language], refs: List[ImportReference]) -> None:
        with self._lock:
            self._entries[key] = [(r.specifier, r.line, r.kind) for r in refs]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass
class ProjectAnalysis:
    root: Path
    files: List[SourceFile]
    graph: DependencyGraph
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def cycles(self) -> List[CycleDetected]:
        return [d for d in self.diagnostics if isinstance(d, CycleDetected)]

    @property
    def paths(self) -> List[str]:
        return [f.path for f in self.files]


ExtractOutcome = Union[List[ImportReference], ParseSkipped]


def _decode(data: bytes) -> Optional[str]:
    if b"\x00" in data:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _extract_file(root: Path, source: SourceFile, cache: Optional[ExtractionCache]) -> ExtractOutcome:
    try:
        data = (root / source.path).read_bytes()
    except OSError as exc:
        return ParseSkipped(source.path, f"unreadable: {exc.strerror or exc}")

    key = ExtractionCache.key(data, source.language) if cache is not None else None
    if cache is not None:
        cached = cache.get(key, source.path)
        if cached is not None:
            return cached

    content = _decode(data)
    if content is None:
        return ParseSkipped(source.path, "not valid UTF-8 text")
    try:
        refs = extract_imports(content, source.language, source.path)
    except Exception as exc:  # extractor bugs become ParseSkipped
        logger.debug("Extractor failed on %s", source.path, exc_info=True)
        return ParseSkipped(source.path, f"extractor error: {exc}")

    if cache is not None:
        cache.put(key, refs)
    return refs


def analyze_files(
    root: Path,
    files: Sequence[SourceFile],
    config: Optional[DepsConfig] = None,
    cache: Optional[ExtractionCache] = None,
) -> ProjectAnalysis:
    """Extract, resolve and build the graph for an already-listed file set."""
    cfg = config or DepsConfig()
    ordered = sorted(files, key=lambda f: f.path)
    targets = [f for f in ordered if supports_language(f.language)]

    outcomes: List[ExtractOutcome]
    if cfg.workers > 1 and len(targets) > 1:
        with ThreadPoolExecutor(max_workers=cfg.workers) as pool:
            outcomes = list(pool.map(lambda f: _extract_file(root, f, cache), targets))
    else:
        outcomes = [_extract_file(root, f, cache) for f in targets]

    resolver = PathResolver([f.path for f in ordered], cfg)
    diagnostics: List[Diagnostic] = []
    edges: List[DependencyEdge] = []

    for source, outcome in zip(targets, outcomes):
        if isinstance(outcome, ParseSkipped):
            logger.info("Skipped %s: %s", outcome.file, outcome.reason)
            diagnostics.append(outcome)
            continue
        for ref in outcome:
            resolution = resolver.resolve(ref)
            if resolution.path is not None:
                edges.append(DependencyEdge(source.path, resolution.path))
            elif resolution.diagnostic is not None:
                diagnostics.append(resolution.diagnostic)

    graph, cycles = build_graph([f.path for f in targets], edges)
    diagnostics.extend(cycles)
    logger.debug(
        "Analyzed %d files: %d nodes, %d edges, %d diagnostics",
        len(ordered), len(graph.nodes), graph.edge_count(), len(diagnostics),
    )
    return ProjectAnalysis(root=root, files=list(ordered), graph=graph, diagnostics=diagnostics)


def analyze_project(
    root: Path,
    config: Optional[DepsConfig] = None,
    cache: Optional[ExtractionCache] = None,
    scope: Optional[str] = None,
) -> ProjectAnalysis:
    """List the project under *root* and build its dependency graph.

    Raises :class:`~mise_cli.scanner.FileListingError` when *root* cannot be
    listed; every other per-file failure becomes a diagnostic.
    """
    cfg = config or DepsConfig()
    files = list_source_files(root, scope=scope, max_file_size=cfg.max_file_size)
    return analyze_files(root, files, cfg, cache)
