"""Find an installed Chrome, Chromium or Edge executable."""

from __future__ import annotations

import os
import shutil
import sys
from pathlib import Path, PureWindowsPath

CHROME_ENV_VAR = "CHROME"


def _channels(base: str, *channels: str) -> tuple[str, ...]:
    return tuple(f"{base}-{channel}" for channel in channels)


# Searched on PATH in this order; the first hit wins.
EXECUTABLE_NAMES: tuple[str, ...] = (
    *_channels("google-chrome", "stable", "beta", "dev", "unstable"),
    "chromium",
    "chromium-browser",
    *_channels("microsoft-edge", "stable", "beta", "dev"),
    "chrome",
    "chrome-browser",
    "msedge",
    "microsoft-edge",
)

_MACOS_APPLICATIONS = (
    "Google Chrome",
    "Google Chrome Beta",
    "Google Chrome Dev",
    "Google Chrome Canary",
    "Chromium",
    "Microsoft Edge",
    "Microsoft Edge Beta",
    "Microsoft Edge Dev",
    "Microsoft Edge Canary",
)

MACOS_APPLICATION_PATHS: tuple[str, ...] = tuple(
    str(Path("/Applications", f"{app}.app", "Contents", "MacOS", app))
    for app in _MACOS_APPLICATIONS
)

WINDOWS_FALLBACK_PATHS: tuple[str, ...] = (
    str(
        PureWindowsPath(
            "C:/", "Program Files (x86)", "Microsoft", "Edge", "Application", "msedge.exe"
        )
    ),
)

_REGISTRY_KEY = "\\".join(
    ("SOFTWARE", "Microsoft", "Windows", "CurrentVersion", "App Paths", "chrome.exe")
)


class ExecutableNotFound(Exception):
    """Raised when no browser executable can be located."""


def _registry_chrome_path() -> Path | None:
    try:
        import winreg
    except ImportError:
        return None
    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, _REGISTRY_KEY) as key:
            value, _ = winreg.QueryValueEx(key, "")
    except OSError:
        return None
    return Path(value) if value else None


def _first_existing(candidates) -> Path | None:
    return next((Path(c) for c in candidates if Path(c).exists()), None)


def _platform_candidates() -> Path | None:
    if sys.platform == "darwin":
        return _first_existing(MACOS_APPLICATION_PATHS)
    if sys.platform == "win32":
        registry_path = _registry_chrome_path()
        if registry_path is not None and registry_path.exists():
            return registry_path
        return _first_existing(WINDOWS_FALLBACK_PATHS)
    return None


def default_executable() -> Path:
    """Return the path of a browser executable found on this system.

    The ``CHROME`` environment variable wins when it names an existing path.
    Otherwise well-known executable names are searched on ``PATH``, then the
    standard application locations of macOS or the registry on Windows.
    """
    env_path = os.environ.get(CHROME_ENV_VAR)
    if env_path and Path(env_path).exists():
        return Path(env_path)

    found = next(filter(None, map(shutil.which, EXECUTABLE_NAMES)), None)
    if found:
        return Path(found)

    platform_path = _platform_candidates()
    if platform_path is not None:
        return platform_path

    raise ExecutableNotFound("Could not auto detect a chrome executable")