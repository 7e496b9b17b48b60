"""Resolve raw import specifiers to canonical in-project file paths.

Resolution is pure over ``(origin, specifier, kind, project file set)``: the
file set is captured once when the resolver is built and never re-read from
disk.  Every language gets its own :class:`ResolutionPolicy`.
"""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

from .config_manager import DepsConfig
from .models import (
    KIND_FROM_MEMBER,
    KIND_MOD,
    REASON_EXTERNAL,
    REASON_NOT_FOUND,
    REASON_OUT_OF_ROOT,
    ImportReference,
    Language,
    UnresolvedImport,
)


@dataclass(frozen=True)
class Resolution:
    path: Optional[str] = None
    diagnostic: Optional[UnresolvedImport] = None

    @property
    def resolved(self) -> bool:
        return self.path is not None


class _OutOfRoot(Exception):
    """Internal signal: a relative walk left the project root."""


# ===================================================================
# Project file index
# ===================================================================

class ProjectIndex:
    """Immutable view of the project file set with path helpers."""

    def __init__(self, files: Iterable[str], config: DepsConfig):
        self.files: FrozenSet[str] = frozenset(files)
        self.config = config
        dirs = set()
        for path in self.files:
            parent = posixpath.dirname(path)
            while parent and parent not in dirs:
                dirs.add(parent)
                parent = posixpath.dirname(parent)
        self.dirs: FrozenSet[str] = frozenset(dirs)

    def exists(self, path: Optional[str]) -> bool:
        return path is not None and path in self.files

    def extensions(self, language: Language) -> List[str]:
        return self.config.extensions.get(language.value, [])

    def probe(self, stem: str, suffixes: Sequence[str], dir_only: bool = False) -> Optional[str]:
        """Return the first existing ``stem + suffix`` candidate.

        Suffixes starting with ``/`` name a file inside the *stem* directory.
        """
        for suffix in suffixes:
            if suffix.startswith("/"):
                candidate = join(stem, suffix[1:])
            elif dir_only or not stem:
                continue
            else:
                candidate = stem + suffix
            if candidate in self.files:
                return candidate
        return None


def join(base: str, rel: str) -> str:
    """Join and normalize a root-relative path; raise when it escapes the root."""
    joined = posixpath.normpath(posixpath.join(base, rel)) if (base or rel) else ""
    if joined == ".":
        return ""
    if joined == ".." or joined.startswith("../") or joined.startswith("/"):
        raise _OutOfRoot(joined)
    return joined


def _unresolved(ref: ImportReference, reason: str) -> Resolution:
    return Resolution(diagnostic=UnresolvedImport(ref.origin, ref.specifier, reason, ref.line))


# ===================================================================
# Abstract Policy
# ===================================================================

class ResolutionPolicy(ABC):
    language: Language = Language.UNKNOWN

    @abstractmethod
    def resolve(self, ref: ImportReference, index: ProjectIndex) -> Resolution:
        ...


# ===================================================================
# TypeScript / JavaScript
# ===================================================================

# A TypeScript ".js" specifier may name a ".ts" source compiled to ".js"
_TS_SOURCE_SWAP = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}


class ScriptPolicy(ResolutionPolicy):
    language = Language.JAVASCRIPT

    def resolve(self, ref: ImportReference, index: ProjectIndex) -> Resolution:
        spec = ref.specifier.split("?", 1)[0].split("#", 1)[0]
        try:
            if spec in (".", "..") or spec.startswith("./") or spec.startswith("../"):
                base = join(posixpath.dirname(ref.origin), spec)
            elif spec.startswith("/"):
                base = join("", spec.lstrip("/"))
            else:
                return _unresolved(ref, REASON_EXTERNAL)
        except _OutOfRoot:
            return _unresolved(ref, REASON_OUT_OF_ROOT)

        if index.exists(base):
            return Resolution(path=base)

        if self.language is Language.TYPESCRIPT:
            stem, ext = posixpath.splitext(base)
            for swapped in _TS_SOURCE_SWAP.get(ext, ()):
                if index.exists(stem + swapped):
                    return Resolution(path=stem + swapped)

        found = index.probe(base, index.extensions(self.language))
        if found:
            return Resolution(path=found)
        return _unresolved(ref, REASON_NOT_FOUND)


class TypeScriptPolicy(ScriptPolicy):
    language = Language.TYPESCRIPT


# ===================================================================
# Python
# ===================================================================

class PythonPolicy(ResolutionPolicy):
    language = Language.PYTHON

    def _module(self, index: ProjectIndex, base: str, dotted: str) -> Optional[str]:
        suffixes = index.extensions(Language.PYTHON)
        if not dotted:
            return index.probe(base, suffixes, dir_only=True)
        return index.probe(join(base, dotted.replace(".", "/")), suffixes)

    def _search_roots(self, ref: ImportReference, index: ProjectIndex) -> List[str]:
        roots: List[str] = []
        for candidate in ["", *index.config.python_source_roots, posixpath.dirname(ref.origin)]:
            if candidate not in roots:
                roots.append(candidate)
        return roots

    def _is_project_module(self, index: ProjectIndex, roots: List[str], top: str) -> bool:
        for root in roots:
            try:
                if self._module(index, root, top) or join(root, top) in index.dirs:
                    return True
            except _OutOfRoot:
                continue
        return False

    def resolve(self, ref: ImportReference, index: ProjectIndex) -> Resolution:
        spec = ref.specifier
        dots = len(spec) - len(spec.lstrip("."))
        dotted = spec[dots:]
        # "from pkg import name": the "pkg" reference already carries the
        # edge and any diagnostic, so a name that is not a submodule is dropped
        companion = ref.kind == KIND_FROM_MEMBER and "." in dotted

        if dots:
            base = posixpath.dirname(ref.origin)
            for _ in range(dots - 1):
                if not base:
                    return Resolution() if companion else _unresolved(ref, REASON_OUT_OF_ROOT)
                base = posixpath.dirname(base)
            found = self._module(index, base, dotted)
            if not found and ref.kind == KIND_FROM_MEMBER and not companion:
                found = self._module(index, base, "")
            if found:
                return Resolution(path=found)
            return Resolution() if companion else _unresolved(ref, REASON_NOT_FOUND)

        roots = self._search_roots(ref, index)
        for root in roots:
            try:
                found = self._module(index, root, dotted)
            except _OutOfRoot:
                continue
            if found:
                return Resolution(path=found)

        if companion:
            return Resolution()
        if self._is_project_module(index, roots, dotted.split(".", 1)[0]):
            return _unresolved(ref, REASON_NOT_FOUND)
        return _unresolved(ref, REASON_EXTERNAL)


# ===================================================================
# Rust
# ===================================================================

_RUST_EXTERNAL_CRATES = {"std", "core", "alloc", "proc_macro", "test"}
_RUST_MOD_ROOTS = {"lib.rs", "main.rs", "mod.rs"}


class RustPolicy(ResolutionPolicy):
    language = Language.RUST

    def crate_source_root(self, origin: str, index: ProjectIndex) -> str:
        """Source dir next to the nearest ancestor ``Cargo.toml``."""
        current = posixpath.dirname(origin)
        while True:
            if join(current, "Cargo.toml") in index.files:
                return join(current, index.config.rust_source_root)
            if not current:
                break
            current = posixpath.dirname(current)
        return index.config.rust_source_root

    @staticmethod
    def children_dir(origin: str) -> str:
        """Directory holding the submodules declared by *origin*."""
        directory = posixpath.dirname(origin)
        name = posixpath.basename(origin)
        if name in _RUST_MOD_ROOTS:
            return directory
        return join(directory, name[:-3] if name.endswith(".rs") else name)

    def module_file(self, directory: str, crate_root: str, index: ProjectIndex) -> Optional[str]:
        """File that declares the module whose children live in *directory*."""
        if directory == crate_root:
            for name in ("lib.rs", "main.rs"):
                candidate = join(directory, name)
                if candidate in index.files:
                    return candidate
        return index.probe(directory, index.extensions(Language.RUST))

    def _segments(self, directory: str, segments: List[str], index: ProjectIndex) -> Optional[str]:
        suffixes = index.extensions(Language.RUST)
        for n in range(len(segments), 0, -1):
            found = index.probe(join(directory, "/".join(segments[:n])), suffixes)
            if found:
                return found
        return None

    def resolve(self, ref: ImportReference, index: ProjectIndex) -> Resolution:
        origin = ref.origin
        try:
            if ref.kind == KIND_MOD:
                found = self._segments(self.children_dir(origin), [ref.specifier], index)
                found = found or self._segments(posixpath.dirname(origin), [ref.specifier], index)
                return Resolution(path=found) if found else _unresolved(ref, REASON_NOT_FOUND)

            segments = [s for s in ref.specifier.split("::") if s]
            if not segments:
                return _unresolved(ref, REASON_NOT_FOUND)
            crate_root = self.crate_source_root(origin, index)
            head = segments[0]

            if head == "crate":
                found = self._segments(crate_root, segments[1:], index)
                found = found or self.module_file(crate_root, crate_root, index)
            elif head == "self":
                found = self._segments(self.children_dir(origin), segments[1:], index)
                found = found or self._segments(posixpath.dirname(origin), segments[1:], index)
                found = found or origin
            elif head == "super":
                directory = self.children_dir(origin)
                while segments and segments[0] == "super":
                    if not directory:
                        return _unresolved(ref, REASON_OUT_OF_ROOT)
                    directory = posixpath.dirname(directory)
                    segments = segments[1:]
                found = self._segments(directory, segments, index)
                found = found or self.module_file(directory, crate_root, index)
            elif head in _RUST_EXTERNAL_CRATES:
                return _unresolved(ref, REASON_EXTERNAL)
            else:
                # 2018 uniform paths: a child module in scope, else a top-level crate module
                found = self._segments(self.children_dir(origin), segments, index)
                if not found:
                    if not index.probe(join(crate_root, head), index.extensions(Language.RUST)):
                        return _unresolved(ref, REASON_EXTERNAL)
                    found = self._segments(crate_root, segments, index)
        except _OutOfRoot:
            return _unresolved(ref, REASON_OUT_OF_ROOT)

        return Resolution(path=found) if found else _unresolved(ref, REASON_NOT_FOUND)


# ===================================================================
# Resolver facade
# ===================================================================

POLICIES: Dict[Language, ResolutionPolicy] = {
    Language.RUST: RustPolicy(),
    Language.TYPESCRIPT: TypeScriptPolicy(),
    Language.JAVASCRIPT: ScriptPolicy(),
    Language.PYTHON: PythonPolicy(),
}


class PathResolver:
    """Resolve :class:`ImportReference` values against a fixed project file set."""

    def __init__(self, project_files: Iterable[str], config: Optional[DepsConfig] = None):
        self.index = ProjectIndex(project_files, config or DepsConfig())

    def resolve(self, ref: ImportReference) -> Resolution:
        policy = POLICIES.get(Language.from_path(ref.origin))
        if policy is None:
            return _unresolved(ref, REASON_EXTERNAL)
        return policy.resolve(ref, self.index)
