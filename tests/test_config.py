from __future__ import annotations

from pathlib import Path

import pytest

from conftest import write_settings_file
from sector_recovery.config import SETTINGS_FILE_ENV, load_settings, resolve_settings_file


def test_relative_paths_resolve_against_project_root(settings_file: Path) -> None:
    settings = load_settings(settings_file)
    project_root = settings_file.parent.parent.resolve()

    assert settings.paths.output_root == project_root / "records"
    assert settings.paths.artifacts_root == project_root / "artifacts"
    assert settings.chain.timeout_sec == 5
    assert settings.export.progress_every == 100


def test_home_relative_output_root_is_expanded(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    settings_file = write_settings_file(tmp_path)
    settings_file.write_text(settings_file.read_text(encoding="utf-8").replace("./records", '"~/recovery"'), encoding="utf-8")

    settings = load_settings(settings_file)

    assert settings.paths.output_root == tmp_path / "home" / "recovery"


def test_env_overrides_yaml(settings_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SECTOR_RECOVERY_CHAIN__TIMEOUT_SEC", "12.5")
    monkeypatch.setenv("SECTOR_RECOVERY_EXPORT__WRITE_RUN_SUMMARY", "false")

    settings = load_settings(settings_file)

    assert settings.chain.timeout_sec == 12.5
    assert settings.export.write_run_summary is False


def test_settings_file_env_var_is_honoured(settings_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(SETTINGS_FILE_ENV, str(settings_file))

    assert resolve_settings_file() == settings_file
