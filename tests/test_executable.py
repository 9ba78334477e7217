import sys
from pathlib import Path

import pytest

from chromelaunch.executable import ExecutableNotFound, default_executable


def _make_executable(directory: Path, name: str) -> Path:
    path = directory / name
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(0o755)
    return path


@pytest.fixture
def isolated(monkeypatch, tmp_path):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.delenv("CHROME", raising=False)
    monkeypatch.setenv("PATH", str(bin_dir))
    monkeypatch.setattr(sys, "platform", "linux")
    return bin_dir


def test_chrome_env_var_wins(isolated, monkeypatch, tmp_path):
    _make_executable(isolated, "chromium")
    custom = tmp_path / "my-chrome"
    custom.write_text("binary")
    monkeypatch.setenv("CHROME", str(custom))
    assert default_executable() == custom


def test_missing_env_path_falls_through_to_path_search(isolated, monkeypatch, tmp_path):
    expected = _make_executable(isolated, "chromium")
    monkeypatch.setenv("CHROME", str(tmp_path / "does-not-exist"))
    assert default_executable().resolve() == expected.resolve()


def test_finds_executable_on_path(isolated):
    expected = _make_executable(isolated, "chromium-browser")
    assert default_executable().resolve() == expected.resolve()


def test_earlier_name_takes_precedence(isolated):
    _make_executable(isolated, "chrome")
    preferred = _make_executable(isolated, "google-chrome-stable")
    _make_executable(isolated, "chromium")
    assert default_executable().resolve() == preferred.resolve()


def test_chromium_preferred_over_edge(isolated):
    _make_executable(isolated, "msedge")
    preferred = _make_executable(isolated, "chromium")
    assert default_executable().name == preferred.name


def test_non_executable_file_is_ignored(isolated):
    plain = isolated / "chromium"
    plain.write_text("not runnable")
    plain.chmod(0o644)
    expected = _make_executable(isolated, "chrome")
    assert default_executable().resolve() == expected.resolve()


def test_nothing_found_raises(isolated):
    with pytest.raises(ExecutableNotFound) as info:
        default_executable()
    assert str(info.value) == "Could not auto detect a chrome executable"


def test_nothing_found_with_bad_env_raises(isolated, monkeypatch, tmp_path):
    monkeypatch.setenv("CHROME", str(tmp_path / "missing"))
    with pytest.raises(ExecutableNotFound):
        default_executable()