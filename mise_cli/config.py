"""Configuration paths and defaults for mise."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("MISE_HOME", str(Path.home() / ".mise"))).expanduser()
USER_CONFIG_FILE = BASE_DIR / "config.toml"

# Per-project directory, relative to --root
PROJECT_DIR_NAME = ".mise"
PROJECT_CONFIG_NAME = "config.toml"

DEFAULT_MAX_DEPTH = 3
DEFAULT_MAX_FILE_SIZE = 1024 * 1024
DEFAULT_WORKERS = min(8, os.cpu_count() or 1)
DEFAULT_RUST_SOURCE_ROOT = "src"
DEFAULT_PYTHON_SOURCE_ROOTS = ["src"]

# Candidate suffixes tried for extensionless relative specifiers, in order.
# Entries starting with "/" name a file inside a directory of that name.
DEFAULT_EXTENSIONS = {
    "typescript": [".ts", ".tsx", ".d.ts", ".js", ".jsx", "/index.ts", "/index.tsx", "/index.js"],
    "javascript": [".js", ".jsx", ".mjs", ".cjs", "/index.js", "/index.jsx"],
    "python": [".py", ".pyi", "/__init__.py"],
    "rust": [".rs", "/mod.rs"],
}

SKIP_DIRS = {
    ".venv", "venv", "__pycache__", "node_modules", ".git", ".hg", ".svn",
    "site-packages", ".tox", ".pytest_cache", "build", "dist", "target",
    ".mypy_cache", ".ruff_cache", "htmlcov", ".eggs", ".mise",
}
