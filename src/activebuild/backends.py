"""Build backends and unit loaders that can be referenced from configuration."""
from __future__ import annotations

import importlib
import logging
import shlex
import subprocess
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, List, Sequence

from .actions import BuildConfiguration

logger = logging.getLogger(__name__)
tool_logger = logging.getLogger(__name__ + ".tool")

BUILD_CONFIG_FILE = "rebar.config"


class BuildError(RuntimeError):
    """Raised when the build tool exits unsuccessfully."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = ""):
        detail = stderr.strip()
        message = f"{shlex.join(argv)} exited with status {returncode}"
        super().__init__(f"{message}:\n{detail}" if detail else message)
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr


class ShellBuildBackend:
    """Runs an external build tool once per command.

    ``command`` is formatted with ``command``, ``root``, ``base`` and
    ``config``; ``scope_argument`` is appended when the build is limited to
    one unit and is formatted with ``unit``. The tool's output goes to the
    ``activebuild.backends.tool`` logger.
    """

    def __init__(
        self,
        command: str = "rebar3 {command}",
        scope_argument: str = "--apps={unit}",
        config_file: str = BUILD_CONFIG_FILE,
    ):
        self.command = command
        self.scope_argument = scope_argument
        self.config_file = config_file

    def default_configuration(self, root_dir: Path) -> BuildConfiguration:
        root_dir = Path(root_dir).absolute()
        candidate = root_dir / self.config_file
        return BuildConfiguration(
            root_dir=root_dir,
            base_dir=Path.cwd().absolute(),
            config_file=candidate if candidate.is_file() else None,
        )

    def command_line(self, command: str, configuration: BuildConfiguration) -> List[str]:
        values = {
            "command": command,
            "root": str(configuration.root_dir),
            "base": str(configuration.base_dir),
            "config": str(configuration.config_file or ""),
        }
        try:
            argv = shlex.split(self.command.format(**values))
        except KeyError as exc:
            raise ValueError(f"build command has unknown placeholder {exc}") from exc
        unit = configuration.scope_unit
        if unit is not None and self.scope_argument:
            argv.extend(shlex.split(self.scope_argument.format(unit=unit)))
        return argv

    def run_build(self, commands: Sequence[str], configuration: BuildConfiguration) -> None:
        for command in commands:
            argv = self.command_line(command, configuration)
            logger.info("Executing build command in %s: %s", configuration.root_dir, shlex.join(argv))
            completed = subprocess.run(argv, cwd=configuration.root_dir, capture_output=True, text=True)
            _log_output(completed.stdout, logging.INFO)
            _log_output(completed.stderr, logging.WARNING)
            if completed.returncode != 0:
                raise BuildError(argv, completed.returncode, completed.stderr)


class ModuleReloader:
    """Reloads Python modules into the running interpreter."""

    def __init__(self, package: str = ""):
        self.package = package

    def qualified_name(self, unit: str) -> str:
        return f"{self.package}.{unit}" if self.package else unit

    def load(self, unit: str) -> ModuleType:
        name = self.qualified_name(unit)
        importlib.invalidate_caches()
        module = sys.modules.get(name)
        if module is None:
            return importlib.import_module(name)
        return importlib.reload(module)


class ShellUnitLoader:
    """Hands a unit name to an external command, e.g. a remote shell."""

    def __init__(self, command: str = ""):
        self.command = command

    def load(self, unit: str) -> bool:
        if not self.command:
            logger.info("No load command configured; %s left for the runtime to pick up", unit)
            return True
        argv = shlex.split(self.command.format(unit=unit))
        try:
            subprocess.run(argv, check=True)
        except subprocess.CalledProcessError as exc:
            logger.error("Load command failed (exit %s): %s", exc.returncode, shlex.join(argv))
            return False
        return True


def _log_output(text: str, level: int) -> None:
    for line in (text or "").splitlines():
        if line.strip():
            tool_logger.log(level, "%s", line)


def shell_backend(options: Dict[str, Any]) -> ShellBuildBackend:
    return ShellBuildBackend(**_string_options(options, ("command", "scope_argument", "config_file")))


def module_reloader(options: Dict[str, Any]) -> ModuleReloader:
    return ModuleReloader(**_string_options(options, ("package",)))


def shell_loader(options: Dict[str, Any]) -> ShellUnitLoader:
    return ShellUnitLoader(**_string_options(options, ("command",)))


def _string_options(options: Dict[str, Any], allowed: Sequence[str]) -> Dict[str, str]:
    unknown = set(options) - set(allowed)
    if unknown:
        raise ValueError(f"unsupported options: {', '.join(sorted(unknown))}")
    return {key: str(value) for key, value in options.items()}
