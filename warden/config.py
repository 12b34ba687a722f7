"""Compiler settings (warden.toml) loading and validation."""
from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from warden.backend.codegen import CompileOptions

CONFIG_NAME = "warden.toml"

KNOWN_FEATURES = frozenset({"nodup"})


class ConfigError(Exception):
    pass


@dataclass
class WardenConfig:
    features: list[str] = field(default_factory=list)
    color: Optional[bool] = None          # None: decide from the terminal

    def validate(self) -> None:
        for feature in self.features:
            if feature not in KNOWN_FEATURES:
                raise ConfigError(
                    f"Unknown feature '{feature}'. Known features: {', '.join(sorted(KNOWN_FEATURES))}."
                )

    def compile_options(self) -> CompileOptions:
        return CompileOptions.from_features(self.features)


def load_config(directory: Path | None = None) -> WardenConfig:
    """Load warden.toml from `directory` (default: cwd). A missing file means defaults."""
    if directory is None:
        directory = Path.cwd()
    config_path = directory / CONFIG_NAME
    if not config_path.exists():
        return WardenConfig()
    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{config_path}: {e}") from None
    return _parse_config(data)


def load_config_from_string(text: str) -> WardenConfig:
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(str(e)) from None
    return _parse_config(data)


def _parse_config(data: dict) -> WardenConfig:
    section = data.get("compiler", {})
    if not isinstance(section, dict):
        raise ConfigError("[compiler] must be a table")
    features = section.get("features", [])
    if not isinstance(features, list) or not all(isinstance(f, str) for f in features):
        raise ConfigError("[compiler] features must be a list of strings")
    color = section.get("color")
    if color is not None and not isinstance(color, bool):
        raise ConfigError("[compiler] color must be true or false")
    config = WardenConfig(features=list(features), color=color)
    config.validate()
    return config
