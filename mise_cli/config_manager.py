"""Configuration manager for mise using TOML files.

Settings are read from the user config (``$MISE_HOME/config.toml``) and then
overridden by the project config (``<root>/.mise/config.toml``).  Only the
``[deps]`` section is consumed.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import config

logger = logging.getLogger(__name__)


@dataclass
class DepsConfig:
    max_depth: int = config.DEFAULT_MAX_DEPTH
    workers: int = config.DEFAULT_WORKERS
    max_file_size: int = config.DEFAULT_MAX_FILE_SIZE
    rust_source_root: str = config.DEFAULT_RUST_SOURCE_ROOT
    python_source_roots: List[str] = field(
        default_factory=lambda: list(config.DEFAULT_PYTHON_SOURCE_ROOTS)
    )
    extensions: Dict[str, List[str]] = field(
        default_factory=lambda: copy.deepcopy(config.DEFAULT_EXTENSIONS)
    )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def project_config_file(root: Path) -> Path:
    return root / config.PROJECT_DIR_NAME / config.PROJECT_CONFIG_NAME


def _read_toml(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def load_full_config(root: Optional[Path] = None) -> Dict[str, Any]:
    """Load and merge user and project TOML configs (project wins)."""
    merged = _read_toml(config.USER_CONFIG_FILE)
    if root is not None:
        project = _read_toml(project_config_file(root))
        for section, values in project.items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section] = {**merged[section], **values}
            else:
                merged[section] = values
    return merged


def load_deps_config(root: Optional[Path] = None) -> DepsConfig:
    """Build a :class:`DepsConfig` from the ``[deps]`` section.

    Unknown keys are ignored and values of the wrong type fall back to the
    defaults with a warning.
    """
    section = load_full_config(root).get("deps", {})
    cfg = DepsConfig()
    if not isinstance(section, dict):
        logger.warning("Config section [deps] is not a table; using defaults")
        return cfg

    for key in ("max_depth", "workers", "max_file_size"):
        if key in section:
            value = section[key]
            if isinstance(value, int) and not isinstance(value, bool) and value > 0:
                setattr(cfg, key, value)
            else:
                logger.warning("Config deps.%s must be a positive integer, got %r", key, value)

    if isinstance(section.get("rust_source_root"), str):
        cfg.rust_source_root = section["rust_source_root"].strip("/")

    roots = section.get("python_source_roots")
    if isinstance(roots, list) and all(isinstance(r, str) for r in roots):
        cfg.python_source_roots = [r.strip("/") for r in roots]

    extensions = section.get("extensions")
    if isinstance(extensions, dict):
        for lang, order in extensions.items():
            if isinstance(order, list) and all(isinstance(e, str) for e in order):
                cfg.extensions[lang] = list(order)
            else:
                logger.warning("Config deps.extensions.%s must be a list of strings", lang)

    return cfg


def save_deps_config(root: Path, values: Dict[str, Any]) -> Path:
    """Write *values* into the project's ``[deps]`` section, preserving others."""
    path = project_config_file(root)
    full = _read_toml(path)
    deps = full.get("deps", {})
    deps.update(values)
    full["deps"] = deps
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(full, f)
    return path
