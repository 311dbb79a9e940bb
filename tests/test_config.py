"""Tests for session configuration and entry file resolution."""

import json
from pathlib import Path

import pytest

from hotreloader.config import ConfigurationError, SessionConfig, resolve_entry_file


class TestSessionConfig:
    """Tests for parameter validation."""

    @pytest.mark.parametrize("entry_file", [None, 42, ["main.py"], {"path": "main.py"}])
    def test_entry_file_must_be_a_path(self, entry_file):
        with pytest.raises(ConfigurationError, match="entry_file"):
            SessionConfig.from_params(entry_file=entry_file)

    def test_entry_file_is_required(self):
        with pytest.raises(ConfigurationError):
            SessionConfig.from_params()

    def test_unknown_parameter(self):
        with pytest.raises(ConfigurationError):
            SessionConfig.from_params(entry_file="main.py", poll=True)

    def test_single_target_becomes_a_list(self):
        config = SessionConfig.from_params(entry_file="main.py", targets="src")
        assert config.targets == ["src"]

    def test_path_objects_are_accepted(self, tmp_path: Path):
        config = SessionConfig.from_params(entry_file=tmp_path / "main.py", targets=[tmp_path])
        assert config.entry_file == str(tmp_path / "main.py")
        assert config.targets == [str(tmp_path)]

    @pytest.mark.parametrize("targets", [42, ["src", 3]])
    def test_bad_targets(self, targets):
        with pytest.raises(ConfigurationError):
            SessionConfig.from_params(entry_file="main.py", targets=targets)

    def test_non_path_cwd_falls_back(self):
        config = SessionConfig.from_params(entry_file="main.py", cwd=7)
        assert config.cwd is None

    def test_negative_stability_threshold(self):
        with pytest.raises(ConfigurationError):
            SessionConfig.from_params(entry_file="main.py", stability_threshold_ms=-1)


class TestResolve:
    """Tests for SessionConfig.resolve."""

    def test_defaults(self, tmp_path: Path, monkeypatch):
        (tmp_path / "main.py").write_text("")
        monkeypatch.chdir(tmp_path)

        resolved = SessionConfig(entry_file="main.py").resolve()

        assert resolved.entry_file == tmp_path / "main.py"
        assert resolved.cwd == tmp_path
        assert resolved.targets == [tmp_path]
        assert resolved.stability_threshold_ms == 10
        assert resolved.debounce_ms == 1600

    def test_relative_paths_use_cwd(self, tmp_path: Path):
        (tmp_path / "app").mkdir()
        (tmp_path / "app" / "main.py").write_text("")

        resolved = SessionConfig(
            entry_file="app/main.py",
            cwd=str(tmp_path),
            targets=["app", "lib"],
            ignore_paths=["app/.cache"],
            immutable_paths=["vendor"],
        ).resolve()

        assert resolved.entry_file == tmp_path / "app" / "main.py"
        assert resolved.targets == [tmp_path / "app", tmp_path / "lib"]
        assert resolved.ignore_paths == [tmp_path / "app" / ".cache"]
        assert resolved.immutable_paths == [tmp_path / "vendor"]


class TestResolveEntryFile:
    """Tests for resolve_entry_file."""

    def test_plain_file(self, tmp_path: Path):
        (tmp_path / "main.py").write_text("")
        assert resolve_entry_file("main.py", tmp_path) == tmp_path / "main.py"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="entry file not found"):
            resolve_entry_file("main.py", tmp_path)

    def test_directory_with_pyproject(self, tmp_path: Path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "server.py").write_text("")
        (tmp_path / "pyproject.toml").write_text('[tool.hotreloader]\nmain = "src/server.py"\n')

        assert resolve_entry_file(".", tmp_path) == tmp_path / "src" / "server.py"

    def test_directory_with_package_json(self, tmp_path: Path):
        (tmp_path / "index.py").write_text("")
        (tmp_path / "package.json").write_text(json.dumps({"name": "demo", "main": "index.py"}))

        assert resolve_entry_file(str(tmp_path), Path("/")) == tmp_path / "index.py"

    def test_pyproject_wins_over_package_json(self, tmp_path: Path):
        (tmp_path / "a.py").write_text("")
        (tmp_path / "b.py").write_text("")
        (tmp_path / "pyproject.toml").write_text('[tool.hotreloader]\nmain = "a.py"\n')
        (tmp_path / "package.json").write_text(json.dumps({"main": "b.py"}))

        assert resolve_entry_file(".", tmp_path) == tmp_path / "a.py"

    def test_pyproject_without_main_falls_through(self, tmp_path: Path):
        (tmp_path / "b.py").write_text("")
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "demo"\n')
        (tmp_path / "package.json").write_text(json.dumps({"main": "b.py"}))

        assert resolve_entry_file(".", tmp_path) == tmp_path / "b.py"

    def test_directory_without_manifest(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="no main declared"):
            resolve_entry_file(".", tmp_path)

    def test_manifest_main_missing_on_disk(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(json.dumps({"main": "gone.py"}))
        with pytest.raises(ConfigurationError, match="entry file not found"):
            resolve_entry_file(".", tmp_path)

    def test_invalid_pyproject(self, tmp_path: Path):
        (tmp_path / "pyproject.toml").write_text("[tool.hotreloader\n")
        with pytest.raises(ConfigurationError, match="Invalid"):
            resolve_entry_file(".", tmp_path)
