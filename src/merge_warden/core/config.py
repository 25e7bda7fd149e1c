"""merge-warden configuration stored in ~/.merge-warden/config.toml."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import toml  # type: ignore[import-untyped]

from merge_warden.core.errors import ConfigError

CONFIG_FILENAME = "config.toml"
DEFAULT_TARGET_BRANCH = "master"
DEFAULT_LOCK_TIMEOUT_MINUTES = 15.0


def _is_windows() -> bool:
    return os.name == "nt"


def get_warden_home() -> Path:
    """Return the merge-warden home directory.

    Resolution order:
    1. MERGE_WARDEN_HOME environment variable (all platforms)
    2. ~/.merge-warden/ on macOS/Linux
    3. %LOCALAPPDATA%\\merge-warden\\ on Windows (via platformdirs)
    """
    if env_home := os.environ.get("MERGE_WARDEN_HOME"):
        return Path(env_home)

    if _is_windows():
        from platformdirs import user_data_dir

        return Path(user_data_dir("merge-warden"))

    return Path.home() / ".merge-warden"


@dataclass
class GitSettings:
    user_name: str = "Merge Warden"
    user_email: str = "merge-warden@localhost"
    remote: str = "origin"
    push_default: str = "simple"


@dataclass
class PublishSettings:
    target_branch: str = DEFAULT_TARGET_BRANCH
    protected_branch: str = DEFAULT_TARGET_BRANCH
    lock_timeout_minutes: float = DEFAULT_LOCK_TIMEOUT_MINUTES
    lock_dir: str | None = None
    lock_name: str | None = None

    @property
    def lock_timeout_seconds(self) -> float:
        return float(self.lock_timeout_minutes) * 60.0

    def validate(self) -> None:
        if self.lock_timeout_minutes < 0:
            raise ConfigError(
                f"Invalid value for publish.lock_timeout_minutes: {self.lock_timeout_minutes!r} (must be >= 0)"
            )


@dataclass
class LintSettings:
    forbidden_subjects: list[str] = field(default_factory=list)

    def validate(self) -> None:
        for pattern in self.forbidden_subjects:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ConfigError(f"Invalid pattern in lint.forbidden_subjects: {pattern!r}: {exc}") from exc


@dataclass
class ServiceSettings:
    organization_url: str = ""
    project: str = ""
    repository: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.organization_url and self.project and self.repository)


@dataclass
class WardenConfig:
    """Complete configuration; every section falls back to its defaults."""

    git: GitSettings = field(default_factory=GitSettings)
    publish: PublishSettings = field(default_factory=PublishSettings)
    lint: LintSettings = field(default_factory=LintSettings)
    service: ServiceSettings = field(default_factory=ServiceSettings)

    def lock_directory(self) -> Path:
        if self.publish.lock_dir:
            return Path(self.publish.lock_dir).expanduser()
        return get_warden_home() / "locks"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WardenConfig":
        config = cls(
            git=_load_section(GitSettings, data, "git"),
            publish=_load_section(PublishSettings, data, "publish"),
            lint=_load_section(LintSettings, data, "lint"),
            service=_load_section(ServiceSettings, data, "service"),
        )
        config.publish.validate()
        config.lint.validate()
        return config


def _load_section(section_cls: type, data: dict[str, Any], name: str) -> Any:
    raw = data.get(name, {})
    if not isinstance(raw, dict):
        raise ConfigError(f"[{name}] must be a table")

    defaults = section_cls()
    values: dict[str, Any] = {}
    for item in fields(section_cls):
        if item.name not in raw:
            continue
        value = raw[item.name]
        expected = getattr(defaults, item.name)
        if expected is None:
            ok = isinstance(value, str)
        elif isinstance(expected, float):
            ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        elif isinstance(expected, list):
            ok = isinstance(value, list) and all(isinstance(v, str) for v in value)
        else:
            ok = isinstance(value, type(expected))
        if not ok:
            raise ConfigError(f"Invalid value for {name}.{item.name}: {value!r}")
        values[item.name] = float(value) if isinstance(expected, float) else value

    unknown = sorted(set(raw) - {item.name for item in fields(section_cls)})
    if unknown:
        raise ConfigError(f"Unknown key(s) in [{name}]: {', '.join(unknown)}")
    return section_cls(**values)


def default_config_path() -> Path:
    return get_warden_home() / CONFIG_FILENAME


def load_config(path: Path | None = None) -> WardenConfig:
    """Load configuration from ``path`` (or the default location).

    A missing file yields the defaults.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    config_path = path or default_config_path()
    if not config_path.exists():
        if path is not None:
            raise ConfigError(f"Config file not found: {config_path}")
        return WardenConfig()

    try:
        data = toml.load(config_path)
    except (toml.TomlDecodeError, OSError) as exc:
        raise ConfigError(f"Cannot read {config_path}: {exc}") from exc
    return WardenConfig.from_dict(data)


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_TARGET_BRANCH",
    "DEFAULT_LOCK_TIMEOUT_MINUTES",
    "GitSettings",
    "PublishSettings",
    "LintSettings",
    "ServiceSettings",
    "WardenConfig",
    "default_config_path",
    "get_warden_home",
    "load_config",
]
