"""Build and reload dispatch helpers."""
from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List, Optional, Protocol, Sequence

from .classifier import NamedUnit, Scope, TopLevel
from .config import CollaboratorConfig
from .events import Outcome
from .filters import DeferredReload, Ignore, Rebuild, Reload, Unhandled, UnknownArtifact, Verdict

logger = logging.getLogger(__name__)

SCOPE_OPTION = "apps"
DEFAULT_COMMANDS: List[str] = ["compile"]


@dataclass(frozen=True)
class BuildConfiguration:
    """Settings handed to the build backend for one invocation."""

    root_dir: Path
    base_dir: Path
    config_file: Optional[Path] = None
    options: Dict[str, Any] = field(default_factory=dict)

    def with_option(self, key: str, value: Any) -> "BuildConfiguration":
        return replace(self, options={**self.options, key: value})

    @property
    def scope_unit(self) -> Optional[str]:
        return self.options.get(SCOPE_OPTION)


class BuildBackend(Protocol):
    def default_configuration(self, root_dir: Path) -> BuildConfiguration:
        ...

    def run_build(self, commands: Sequence[str], configuration: BuildConfiguration) -> Any:
        ...


class UnitLoader(Protocol):
    def load(self, unit: str) -> Any:
        ...


class ActionDispatcher:
    """Issues builds and reloads on behalf of a watch session."""

    def __init__(
        self,
        backend: BuildBackend,
        loader: UnitLoader,
        *,
        root_dir: Path,
        commands: Sequence[str] = DEFAULT_COMMANDS,
        log: Optional[logging.Logger] = None,
    ):
        self._backend = backend
        self._loader = loader
        self._root_dir = root_dir
        self._commands = list(commands)
        self._log = log or logger

    def dispatch(self, verdict: Verdict) -> Outcome:
        if isinstance(verdict, Rebuild):
            return self.build(verdict.scope)
        if isinstance(verdict, Reload):
            return self.load(verdict.unit)
        if isinstance(verdict, DeferredReload):
            return Outcome.DEFERRED
        if isinstance(verdict, Unhandled):
            return Outcome.UNHANDLED
        if isinstance(verdict, UnknownArtifact):
            return Outcome.UNKNOWN_ARTIFACT
        if not isinstance(verdict, Ignore):
            self._log.warning("Unexpected verdict %r", verdict)
        return Outcome.IGNORED

    def build(self, scope: Scope = TopLevel()) -> Outcome:
        """Run the backend synchronously, restoring the working directory."""

        cwd = os.getcwd()
        try:
            configuration = self._backend.default_configuration(self._root_dir)
            if isinstance(scope, NamedUnit):
                configuration = configuration.with_option(SCOPE_OPTION, scope.name)
            self._log.info("Building %s", _describe_scope(scope))
            self._backend.run_build(self._commands, configuration)
        except Exception as exc:
            self._log.exception("Build of %s failed: %s: %s", _describe_scope(scope), type(exc).__name__, exc)
            return Outcome.BUILD_FAILED
        finally:
            if os.getcwd() != cwd:
                os.chdir(cwd)
        return Outcome.BUILT

    def load(self, unit: str) -> Outcome:
        try:
            result = self._loader.load(unit)
        except Exception:
            self._log.exception("Loading %s failed", unit)
            return Outcome.LOAD_FAILED
        if result is False:
            self._log.error("Loading %s failed", unit)
            return Outcome.LOAD_FAILED
        self._log.info("Unit loaded: %s", unit)
        return Outcome.RELOADED


def load_collaborator(config: CollaboratorConfig) -> Any:
    """Instantiate a backend or loader from its configured factory."""

    module = _import_module(config.module)
    try:
        factory = getattr(module, config.function)
    except AttributeError as exc:
        raise RuntimeError(f"Could not find function '{config.function}' in {config.module}") from exc

    if not callable(factory):
        raise RuntimeError(f"Attribute '{config.function}' in {config.module} is not callable")

    return factory(dict(config.options or {}))


def _describe_scope(scope: Scope) -> str:
    if isinstance(scope, NamedUnit):
        return f"unit {scope.name}"
    return "whole project"


def _import_module(module_path: str) -> ModuleType:
    try:
        return importlib.import_module(module_path)
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(f"Unable to import collaborator module '{module_path}'") from exc
