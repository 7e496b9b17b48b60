"""Pytest configuration and fixtures for mise tests."""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator

import pytest

from mise_cli.config_manager import DepsConfig


SAMPLE_FILES: Dict[str, str] = {
    # Rust crate
    "Cargo.toml": '[package]\nname = "sample"\nversion = "0.1.0"\n',
    "src/lib.rs": (
        "//! Sample crate\n"
        "mod parser;\n"
        "pub mod utils;\n"
        "pub use crate::parser::Parser;\n"
    ),
    "src/parser.rs": (
        "use crate::utils::helpers::trim;\n"
        "use super::utils;\n"
        "use std::collections::HashMap;\n"
        "\n"
        "pub struct Parser;\n"
    ),
    "src/utils/mod.rs": "pub mod helpers;\n",
    "src/utils/helpers.rs": "use std::fmt;\n\npub fn trim(s: &str) -> &str { s.trim() }\n",
    # TypeScript / JavaScript
    "web/index.ts": (
        "import { api } from './api';\n"
        "import React from 'react';\n"
        "\n"
        "export const app = api;\n"
    ),
    "web/api.ts": "export * from './types';\nexport const api = 1;\n",
    "web/types.ts": "export type Id = string;\n",
    "web/legacy.js": "const util = require('./util');\nmodule.exports = util;\n",
    "web/util.js": "module.exports = {};\n",
    # Python
    "py/app.py": "import os\nfrom pkg import core\n",
    "py/pkg/__init__.py": "from . import core\n",
    "py/pkg/core.py": (
        "# <!--Q:begin id=core-api tags=py,api v=2-->\n"
        "from .models import Model\n"
        "# <!--Q:end id=core-api-->\n"
    ),
    "py/pkg/models.py": "class Model:\n    pass\n",
    # Docs
    "docs/guide.md": (
        "# Guide\n"
        "<!--Q:begin id=guide-intro tags=docs-->\n"
        "Intro text.\n"
        "<!--Q:end id=guide-intro-->\n"
    ),
}


@pytest.fixture(autouse=True)
def _isolate_user_config(monkeypatch, tmp_path_factory):
    """Point the user config at an empty temp dir so ~/.mise never leaks in."""
    home = tmp_path_factory.mktemp("mise_home")
    monkeypatch.setattr("mise_cli.config.BASE_DIR", home)
    monkeypatch.setattr("mise_cli.config.USER_CONFIG_FILE", home / "config.toml")
    return home


@pytest.fixture(autouse=True)
def _reset_cli_logging():
    """Undo the handler and level the CLI callback installs."""
    pkg_logger = logging.getLogger("mise_cli")
    handlers, level = list(pkg_logger.handlers), pkg_logger.level
    yield
    pkg_logger.handlers = handlers
    pkg_logger.setLevel(level)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def write_project(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Return a helper that writes ``{relative path: content}`` under temp_dir."""

    def _write(files: Dict[str, str]) -> Path:
        for rel, content in files.items():
            path = temp_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return temp_dir

    return _write


@pytest.fixture
def sample_project(write_project) -> Path:
    """A small Rust + TypeScript/JavaScript + Python project with anchors."""
    return write_project(SAMPLE_FILES)


@pytest.fixture
def serial_config() -> DepsConfig:
    """Single-worker config so extraction runs in the calling thread."""
    return DepsConfig(workers=1)
