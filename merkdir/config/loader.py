"""YAML config loading with env var expansion."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import MerkdirConfig

PROJECT_CONFIG = Path("merkdir.yaml")


def _search_paths(cli_path: str | None) -> list[Path]:
    if cli_path:
        path = Path(cli_path)
        if not path.is_file():
            raise ValueError(f"Config file not found: {path}")
        return [path]
    return [PROJECT_CONFIG, Path.home() / ".merkdir" / "config.yaml"]


def _read_yaml(path: Path) -> dict | None:
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping")
    return _expand_env_vars(raw)


def load_config(cli_path: str | None = None) -> MerkdirConfig:
    """Resolve config: --config path, else ./merkdir.yaml, else ~/.merkdir/config.yaml.

    The first file that exists and is non-empty wins; with none, defaults apply.
    """
    for path in _search_paths(cli_path):
        if not path.exists():
            continue
        raw = _read_yaml(path)
        if raw is None:
            continue
        try:
            return MerkdirConfig(**raw)
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e

    return MerkdirConfig()


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", _lookup_env, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


def _lookup_env(match: re.Match) -> str:
    name = match.group(1)
    value = os.environ.get(name)
    if value is None:
        raise ValueError(f"Environment variable {name} is not set")
    return value


# Default YAML template for `merkdir config init`
DEFAULT_CONFIG_TEMPLATE = """\
# merkdir.yaml

# Directory scanning
scan:
  # Path components to skip, e.g. [".git", "node_modules"]
  ignore_patterns: []
  follow_symlinks: false

# File hashing
hashing:
  # workers: 8                 # default: 2 x CPU count
  chunk_size: 1048576          # bytes read per step

# Output
output:
  progress: true

# Logging
log_level: "info"              # debug | info | warn | error
"""
