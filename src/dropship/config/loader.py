"""
Configuration file loading: config.yaml plus an optional config.<env>.yaml overlay.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from dropship.config.resolver import resolve_config

CONFIG_FILE_NAME = "config.yaml"


class Config:
    """Dropship configuration container with dict-like access."""

    def __init__(self, data: dict[str, Any], source: Path | None = None):
        self.data = data
        # Directory relative paths in the config are resolved against
        self.base_dir = source.parent if source is not None else Path.cwd()

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        keys = key.split(".")
        value = self.data
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value

    def section(self, name: str) -> dict[str, Any]:
        """A top-level section as a plain dict (empty if absent or null)."""
        value = self.data.get(name)
        return value if isinstance(value, dict) else {}

    def __getitem__(self, key: str) -> Any:
        """Dict-like access: config['key'] or config['nested.key']."""
        if "." in key:
            return self.get(key)
        if key in self.data:
            value = self.data[key]
            if isinstance(value, dict):
                return Config(value)
            return value
        raise KeyError(f"Config key '{key}' not found")

    def __contains__(self, key: str) -> bool:
        if "." in key:
            value: Any = self.data
            for k in key.split("."):
                if not isinstance(value, dict) or k not in value:
                    return False
                value = value[k]
            return True
        return key in self.data

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def keys(self):
        return self.data.keys()

    def items(self):
        return self.data.items()


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                mark = getattr(e, "problem_mark", None)
                if mark is not None:
                    raise ValueError(
                        f"Error parsing {path.name} at line {mark.line + 1}, column {mark.column + 1}:\n"
                        f"  {e}\n"
                        f"  File: {path}\n"
                        f"  Suggestion: Check YAML syntax, ensure proper indentation and quotes"
                    ) from e
                raise ValueError(f"Error parsing {path.name}: {e}\n  File: {path}") from e
    except PermissionError as e:
        raise PermissionError(
            f"Permission denied reading {path.name}: {path}\n"
            f"  Error: {e}\n"
            f"  Suggestion: Check file permissions"
        ) from e

    if not isinstance(data, dict):
        raise ValueError(f"Configuration must be a mapping, got {type(data).__name__}\n  File: {path}")
    return data


def load_config(path: Path | str | None = None, env: str | None = None) -> Config:
    """
    Load Dropship configuration.

    Args:
        path: config file, or the directory holding config.yaml (default: cwd)
        env: Environment name; config.<env>.yaml is merged over the base file

    Returns:
        Config instance with merged configuration

    Raises:
        FileNotFoundError: If the config file does not exist
        ValueError: If the YAML cannot be parsed
    """
    path = Path(path) if path is not None else Path.cwd()
    config_path = path / CONFIG_FILE_NAME if path.is_dir() else path

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"  Suggestion: Create a {CONFIG_FILE_NAME} file or pass --config"
        )
    if not config_path.is_file():
        raise FileNotFoundError(f"Configuration path is not a file: {config_path}")

    config_data = _read_yaml(config_path)

    if env:
        env_config_path = config_path.with_name(f"{config_path.stem}.{env}{config_path.suffix}")
        if env_config_path.exists():
            _merge_dict(config_data, _read_yaml(env_config_path))

    config_data = resolve_config(config_data, env or "dev")
    return Config(config_data, source=config_path.resolve())


def _merge_dict(base: dict, override: dict):
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
