"""Tests for YAML configuration loading."""

from pathlib import Path

import pytest

from activebuild.config import ConfigError, LayoutConfig, load_config


def write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "activebuild.yaml"
    path.write_text(text)
    return path


class TestLoadConfig:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_empty_file_uses_defaults(self, tmp_path):
        config = load_config(write(tmp_path, ""))

        assert config.watch.root_path == tmp_path.resolve()
        assert config.watch.debounce_ms == 500
        assert config.watch.handles_renames is None
        assert config.watch.low_priority is False
        assert config.layout == LayoutConfig()
        assert config.build.function == "shell_backend"
        assert config.loader.function == "shell_loader"

    def test_relative_root_resolves_against_config_dir(self, tmp_path):
        (tmp_path / "proj").mkdir()
        config = load_config(write(tmp_path, "watch:\n  root_path: proj\n"))
        assert config.watch.root_path == (tmp_path / "proj").resolve()

    def test_full_config(self, tmp_path):
        config = load_config(
            write(
                tmp_path,
                """
watch:
  root_path: /srv/app
  debounce_ms: 250
  handles_renames: false
  low_priority: true
layout:
  containers: libs
  source_dirs: [lib, native]
  artifact_dir: _build
  artifact_extension: so
  ignored_patterns: []
build:
  module: activebuild.backends
  function: shell_backend
  options:
    command: "make {command}"
loader:
  function: module_reloader
  options: {package: app}
""",
            )
        )

        assert config.watch.root_path == Path("/srv/app")
        assert config.watch.debounce_ms == 250
        assert config.watch.handles_renames is False
        assert config.watch.low_priority is True
        assert config.layout.containers == ["libs"]
        assert config.layout.top_level_dirs == ["lib", "native", "_build"]
        assert config.layout.artifact_extension == "so"
        assert config.layout.rename_sentinel == "bea#"
        assert config.layout.ignored_patterns == []
        assert config.build.options == {"command": "make {command}"}
        assert config.loader.module == "activebuild.backends"
        assert config.loader.options == {"package": "app"}

    @pytest.mark.parametrize(
        "text, message",
        [
            ("- a\n- b\n", "root must be a mapping"),
            ("watch: []\n", "'watch' section"),
            ("watch:\n  root_path: 3\n", "root_path must be a string"),
            ("watch:\n  debounce_ms: fast\n", "debounce_ms must be an integer"),
            ("watch:\n  debounce_ms: -1\n", "must not be negative"),
            ("watch:\n  handles_renames: maybe\n", "handles_renames"),
            ("watch:\n  low_priority: yes please\n", "low_priority must be a boolean"),
            ("watch: [\n", "Failed to parse YAML"),
            ("layout:\n  containers: [1]\n", "only strings"),
            ("layout:\n  artifact_extension: tar.gz\n", "must not contain"),
            ("layout:\n  artifact_dir: ''\n", "non-empty string"),
            ("build: nope\n", "'build' section"),
            ("loader:\n  module: 5\n", "'module' and 'function'"),
            ("build:\n  options: [a]\n", "options must be a mapping"),
        ],
    )
    def test_invalid_values(self, tmp_path, text, message):
        with pytest.raises(ConfigError, match=message):
            load_config(write(tmp_path, text))
