"""Configuration loading utilities for the rebuild watcher."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml # type: ignore


logger = logging.getLogger(__name__)

BACKENDS_MODULE = "activebuild.backends"


class ConfigError(Exception):
    """Raised when the configuration file is missing or invalid."""


@dataclass
class WatchConfig:
    """Options describing the watched root and timing."""

    root_path: Path
    debounce_ms: int = 500
    handles_renames: Optional[bool] = None  # None: ask the monitor
    low_priority: bool = False


@dataclass
class LayoutConfig:
    """Directory and filename conventions of the watched project."""

    containers: List[str] = field(default_factory=lambda: ["apps", "deps"])
    source_dirs: List[str] = field(default_factory=lambda: ["src", "priv", "c_src"])
    artifact_dir: str = "ebin"
    artifact_extension: str = "beam"
    rename_sentinel: str = "bea#"
    ignored_dirs: List[str] = field(default_factory=lambda: [".git", ".hg", ".svn", "CVS", "log"])
    ignored_files: List[str] = field(
        default_factory=lambda: [".rebarinfo", "LICENSE", "4913", "4913 (deleted)"]
    )
    ignored_patterns: List[str] = field(default_factory=lambda: ["*.swp", "*.swx", "*~", ".#*"])

    @property
    def top_level_dirs(self) -> List[str]:
        return [*self.source_dirs, self.artifact_dir]


@dataclass
class CollaboratorConfig:
    """Factory reference for a build backend or unit loader."""

    module: str
    function: str
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AppConfig:
    """Top-level configuration structure."""

    watch: WatchConfig
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    build: CollaboratorConfig = field(
        default_factory=lambda: CollaboratorConfig(BACKENDS_MODULE, "shell_backend")
    )
    loader: CollaboratorConfig = field(
        default_factory=lambda: CollaboratorConfig(BACKENDS_MODULE, "shell_loader")
    )


def load_config(path: Path) -> AppConfig:
    """Load and validate the YAML configuration file."""

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML configuration: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    watch_cfg = _parse_watch_config(data.get("watch"), config_path=path)
    layout_cfg = _parse_layout_config(data.get("layout"))
    build_cfg = _parse_collaborator(data.get("build"), "build", default_function="shell_backend")
    loader_cfg = _parse_collaborator(data.get("loader"), "loader", default_function="shell_loader")

    logger.info(
        "Loaded configuration: root=%s build=%s.%s loader=%s.%s",
        watch_cfg.root_path,
        build_cfg.module,
        build_cfg.function,
        loader_cfg.module,
        loader_cfg.function,
    )
    return AppConfig(watch=watch_cfg, layout=layout_cfg, build=build_cfg, loader=loader_cfg)


def _parse_watch_config(raw: Any, *, config_path: Path) -> WatchConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("'watch' section must be a mapping")

    root_path_raw = raw.get("root_path", ".")
    if not isinstance(root_path_raw, str):
        raise ConfigError("watch.root_path must be a string")

    root_path = Path(root_path_raw)
    if not root_path.is_absolute():
        root_path = (config_path.parent / root_path).resolve()

    debounce_ms = raw.get("debounce_ms", 500)
    if isinstance(debounce_ms, bool) or not isinstance(debounce_ms, int):
        raise ConfigError("watch.debounce_ms must be an integer")
    if debounce_ms < 0:
        raise ConfigError("watch.debounce_ms must not be negative")

    handles_renames = raw.get("handles_renames")
    if handles_renames is not None and not isinstance(handles_renames, bool):
        raise ConfigError("watch.handles_renames must be a boolean or null")

    low_priority = raw.get("low_priority", False)
    if not isinstance(low_priority, bool):
        raise ConfigError("watch.low_priority must be a boolean")

    return WatchConfig(
        root_path=root_path,
        debounce_ms=debounce_ms,
        handles_renames=handles_renames,
        low_priority=low_priority,
    )


def _parse_layout_config(raw: Any) -> LayoutConfig:
    layout = LayoutConfig()
    if raw is None:
        return layout
    if not isinstance(raw, dict):
        raise ConfigError("'layout' section must be a mapping")

    for name in ("containers", "source_dirs", "ignored_dirs", "ignored_files", "ignored_patterns"):
        if name in raw:
            setattr(layout, name, _ensure_str_list(raw[name], f"layout.{name}"))

    for name in ("artifact_dir", "artifact_extension", "rename_sentinel"):
        if name in raw:
            value = raw[name]
            if not isinstance(value, str) or not value:
                raise ConfigError(f"layout.{name} must be a non-empty string")
            if name != "artifact_dir" and "." in value:
                raise ConfigError(f"layout.{name} must not contain '.'")
            setattr(layout, name, value)

    return layout


def _parse_collaborator(raw: Any, section: str, *, default_function: str) -> CollaboratorConfig:
    if raw is None:
        return CollaboratorConfig(module=BACKENDS_MODULE, function=default_function)
    if not isinstance(raw, dict):
        raise ConfigError(f"'{section}' section must be a mapping")

    module = raw.get("module", BACKENDS_MODULE)
    function = raw.get("function", default_function)
    options = raw.get("options", {})

    if not isinstance(module, str) or not isinstance(function, str):
        raise ConfigError(f"{section} must include 'module' and 'function' strings")
    if options is None:
        options = {}
    if not isinstance(options, dict):
        raise ConfigError(f"{section}.options must be a mapping if provided")

    return CollaboratorConfig(module=module, function=function, options=options)


def _ensure_str_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{field_name} must be a list of strings")
    items: List[str] = []
    for elem in value:
        if not isinstance(elem, str):
            raise ConfigError(f"{field_name} must contain only strings")
        items.append(elem)
    return items
