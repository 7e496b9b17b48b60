"""Core data models shared by extraction, resolution, graph and impact layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Language(str, Enum):
    RUST = "rust"
    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    UNKNOWN = "unknown"

    @classmethod
    def from_path(cls, path: str) -> "Language":
        """Infer the language tag from a file extension."""
        name = path.rsplit("/", 1)[-1]
        if "." not in name:
            return cls.UNKNOWN
        ext = "." + name.rsplit(".", 1)[-1].lower()
        return _EXT_LANGUAGE.get(ext, cls.UNKNOWN)


_EXT_LANGUAGE: Dict[str, Language] = {
    ".rs": Language.RUST,
    ".ts": Language.TYPESCRIPT,
    ".tsx": Language.TYPESCRIPT,
    ".mts": Language.TYPESCRIPT,
    ".cts": Language.TYPESCRIPT,
    ".js": Language.JAVASCRIPT,
    ".jsx": Language.JAVASCRIPT,
    ".mjs": Language.JAVASCRIPT,
    ".cjs": Language.JAVASCRIPT,
    ".py": Language.PYTHON,
    ".pyi": Language.PYTHON,
}


# Reference kinds, as produced by the per-language extractors
KIND_USE = "use"
KIND_MOD = "mod"
KIND_IMPORT = "import"
KIND_FROM = "from"
KIND_FROM_MEMBER = "from_member"
KIND_REQUIRE = "require"
KIND_EXPORT_FROM = "export_from"
KIND_DYNAMIC_IMPORT = "dynamic_import"


@dataclass(frozen=True)
class SourceFile:
    path: str
    language: Language


@dataclass(frozen=True)
class ImportReference:
    specifier: str
    origin: str
    line: int
    kind: str = KIND_IMPORT


@dataclass(frozen=True, order=True)
class DependencyEdge:
    source: str
    target: str


# ===================================================================
# Diagnostics
# ===================================================================

REASON_EXTERNAL = "external"
REASON_OUT_OF_ROOT = "out_of_root"
REASON_NOT_FOUND = "not_found"


@dataclass(frozen=True)
class UnresolvedImport:
    origin: str
    specifier: str
    reason: str
    line: int = 0

    code = "UNRESOLVED_IMPORT"

    @property
    def message(self) -> str:
        return f"{self.origin}:{self.line}: cannot resolve '{self.specifier}' ({self.reason})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "origin": self.origin,
            "specifier": self.specifier,
            "reason": self.reason,
            "line": self.line,
        }


@dataclass(frozen=True)
class ParseSkipped:
    file: str
    reason: str

    code = "PARSE_SKIPPED"

    @property
    def message(self) -> str:
        return f"{self.file}: skipped ({self.reason})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "file": self.file,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class CycleDetected:
    cycle: Tuple[str, ...]

    code = "CIRCULAR_DEPENDENCY"

    @property
    def message(self) -> str:
        loop = list(self.cycle) + [self.cycle[0]] if self.cycle else []
        return "Circular dependency detected: " + " -> ".join(loop)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "cycle": list(self.cycle),
            "cycle_length": len(self.cycle),
        }


Diagnostic = Any  # UnresolvedImport | ParseSkipped | CycleDetected


# ===================================================================
# Change sets, anchors, impact
# ===================================================================

@dataclass(frozen=True)
class DiffSource:
    """Where a change set came from: working tree, index, a commit or a range."""

    mode: str = "unstaged"  # unstaged | staged | commit | range | files
    commit: Optional[str] = None
    base: Optional[str] = None
    head: Optional[str] = None

    @classmethod
    def from_args(
        cls,
        staged: bool = False,
        commit: Optional[str] = None,
        diff: Optional[str] = None,
    ) -> "DiffSource":
        if staged:
            return cls(mode="staged")
        if commit:
            return cls(mode="commit", commit=commit)
        if diff:
            if ".." in diff:
                base, head = diff.split("..", 1)
                return cls(mode="range", base=base, head=head.lstrip(".") or "HEAD")
            return cls(mode="commit", commit=diff)
        return cls(mode="unstaged")

    @property
    def description(self) -> str:
        if self.mode == "staged":
            return "staged changes"
        if self.mode == "commit":
            return f"commit {self.commit}"
        if self.mode == "range":
            return f"{self.base}..{self.head}"
        if self.mode == "files":
            return "explicit files"
        return "unstaged changes"


@dataclass(frozen=True)
class ChangeSet:
    files: Tuple[str, ...]
    source: DiffSource = field(default_factory=DiffSource)


@dataclass(frozen=True)
class Anchor:
    id: str
    path: str
    start_line: int
    end_line: int
    tags: Tuple[str, ...] = ()
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "range": {"start": self.start_line, "end": self.end_line},
            "tags": list(self.tags),
            "version": self.version,
        }


AnchorIndex = Dict[str, Anchor]


@dataclass
class ImpactResult:
    changed_files: List[str]
    direct_impacts: List[str]
    transitive_impacts: List[str]
    affected_anchors: List[str]
    diagnostics: List[Diagnostic] = field(default_factory=list)
    source: str = "unstaged changes"
    max_depth: int = 3
    depth_limit_reached: bool = False

    @property
    def total_affected(self) -> int:
        return len(self.changed_files) + len(self.direct_impacts) + len(self.transitive_impacts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "changed_files": list(self.changed_files),
            "direct_impacts": list(self.direct_impacts),
            "transitive_impacts": list(self.transitive_impacts),
            "affected_anchors": list(self.affected_anchors),
            "max_depth": self.max_depth,
            "depth_limit_reached": self.depth_limit_reached,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }
