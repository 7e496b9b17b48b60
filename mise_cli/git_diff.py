"""Change sets from git: working tree, index, single commit or range."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

from .models import ChangeSet, DiffSource

logger = logging.getLogger(__name__)


class GitError(Exception):
    """Base class for git collaborator failures; carries a stable ``code``."""

    code = "GIT_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class GitUnavailableError(GitError):
    """git is not installed, or *root* is not inside a work tree."""

    code = "GIT_NOT_FOUND"


class InvalidDiffSourceError(GitError):
    """A commit or range endpoint does not name a commit."""

    code = "INVALID_DIFF_SOURCE"


def git_args(source: DiffSource) -> List[str]:
    """``git`` argument vector listing the files changed by *source*."""
    args = ["diff", "--name-only", "--relative", "-z"]
    if source.mode == "staged":
        args.append("--staged")
    elif source.mode == "commit":
        args.extend([f"{source.commit}^", str(source.commit)])
    elif source.mode == "range":
        args.append(f"{source.base}..{source.head}")
    return args


def _run_git(root: Path, args: List[str]) -> subprocess.CompletedProcess:
    logger.debug("git %s (in %s)", " ".join(args), root)
    return subprocess.run(
        ["git", *args],
        cwd=str(root),
        capture_output=True,
        text=True,
    )


def _split_names(stdout: str) -> List[str]:
    names: List[str] = []
    for name in stdout.replace("\n", "\0").split("\0"):
        name = name.strip()
        if name and name not in names:
            names.append(name)
    return names


def _verify_ref(root: Path, ref: str) -> None:
    result = _run_git(root, ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
    if result.returncode != 0:
        raise InvalidDiffSourceError(f"Unknown revision: {ref}")


def ensure_repository(root: Path) -> None:
    """Raise :class:`GitUnavailableError` unless git can run in *root*."""
    if shutil.which("git") is None:
        raise GitUnavailableError(
            "git is not installed. Please install git to use impact analysis."
        )
    result = _run_git(root, ["rev-parse", "--is-inside-work-tree"])
    if result.returncode != 0 or result.stdout.strip() != "true":
        raise GitUnavailableError(f"Not a git repository: {root}", code="NOT_A_GIT_REPOSITORY")


def get_change_set(root: Path, source: DiffSource) -> ChangeSet:
    """Ask git which files *source* touches, relative to *root*.

    Raises:
        GitUnavailableError: git is missing or *root* is not a repository.
        InvalidDiffSourceError: a commit or range endpoint is unknown.
        GitError: git itself failed.
    """
    root = Path(root)
    if source.mode == "files":
        raise InvalidDiffSourceError("Explicit file lists do not come from git")

    ensure_repository(root)
    if source.mode == "commit":
        _verify_ref(root, str(source.commit))
    elif source.mode == "range":
        _verify_ref(root, str(source.base))
        _verify_ref(root, str(source.head))

    result = _run_git(root, git_args(source))
    if result.returncode != 0 and source.mode == "commit":
        # Root commits have no parent to diff against
        logger.debug("git diff failed for %s, falling back to git show", source.commit)
        result = _run_git(
            root,
            ["show", "--name-only", "--relative", "-z", "--pretty=format:", str(source.commit)],
        )
    if result.returncode != 0:
        raise GitError(
            f"git failed for {source.description}: {result.stderr.strip()}",
            code="GIT_DIFF_FAILED",
        )

    files = _split_names(result.stdout)
    logger.debug("%d changed file(s) in %s", len(files), source.description)
    return ChangeSet(files=tuple(files), source=source)
