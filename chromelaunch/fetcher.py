"""Locate, download and unpack Chromium snapshot builds."""

from __future__ import annotations

import logging
import os
import shutil
import sys
import urllib.error
import urllib.request
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

import platformdirs

log = logging.getLogger(__name__)

CUR_REV = "1095492"
APP_NAME = "headless-chrome"
DEFAULT_HOST = "https://storage.googleapis.com"

_SNAPSHOT_DIRS = {
    "linux": "Linux_x64",
    "mac": "Mac",
    "mac_arm": "Mac_Arm",
    "win": "Win_x64",
}

_EXECUTABLE_PARTS = {
    "linux": ("chrome",),
    "mac": ("Chromium.app", "Contents", "MacOS", "Chromium"),
    "mac_arm": ("Chromium.app", "Contents", "MacOS", "Chromium"),
    "win": ("chrome.exe",),
}

# The Windows archive was renamed after this revision.
_WIN_ARCHIVE_RENAME_REV = 591_479


class FetchError(Exception):
    """Raised when a Chromium build cannot be found, downloaded or unpacked."""


@dataclass(frozen=True)
class Revision:
    """A Chromium snapshot revision; ``number`` is None for the latest one."""

    number: str | None = None

    @classmethod
    def specific(cls, number: str | int) -> Revision:
        return cls(str(number))

    @classmethod
    def latest(cls) -> Revision:
        return cls(None)

    @property
    def is_latest(self) -> bool:
        return self.number is None


@dataclass(frozen=True)
class FetcherOptions:
    """Where and how to look for (and possibly install) a Chromium build."""

    revision: Revision = field(default_factory=lambda: Revision.specific(CUR_REV))
    install_dir: Path | None = None
    allow_download: bool = True
    allow_standard_dirs: bool = True
    platform: str | None = None


def platform_name() -> str:
    """Return the snapshot platform name of the running system."""
    if sys.platform.startswith("linux"):
        return "linux"
    if sys.platform == "darwin":
        machine = os.uname().machine
        return "mac_arm" if machine in ("arm64", "aarch64") else "mac"
    if sys.platform in ("win32", "cygwin"):
        return "win"
    raise FetchError(f"Unsupported platform: {sys.platform}")


def _check_platform(platform: str) -> None:
    if platform not in _SNAPSHOT_DIRS:
        raise FetchError(f"Unsupported platform: {platform}")


def archive_name(revision: str, platform: str) -> str:
    """Name of the top-level directory inside the snapshot archive."""
    _check_platform(platform)
    if platform == "linux":
        return "chrome-linux"
    if platform in ("mac", "mac_arm"):
        return "chrome-mac"
    try:
        number = int(revision)
    except ValueError:
        return "chrome-win32"
    return "chrome-win" if number > _WIN_ARCHIVE_RENAME_REV else "chrome-win32"


def download_url(revision: str, platform: str) -> str:
    """URL of the snapshot archive for ``revision`` on ``platform``."""
    _check_platform(platform)
    return (
        f"{DEFAULT_HOST}/chromium-browser-snapshots/{_SNAPSHOT_DIRS[platform]}/"
        f"{revision}/{archive_name(revision, platform)}.zip"
    )


def latest_revision_url(platform: str) -> str:
    """URL of the file naming the newest snapshot for ``platform``."""
    _check_platform(platform)
    return f"{DEFAULT_HOST}/chromium-browser-snapshots/{_SNAPSHOT_DIRS[platform]}/LAST_CHANGE"


def latest_revision() -> str:
    """Ask the snapshot server for the newest revision of this platform."""
    url = latest_revision_url(platform_name())
    try:
        with urllib.request.urlopen(url) as response:
            return response.read().decode("utf-8").strip()
    except urllib.error.URLError as exc:
        raise FetchError(f"Could not query latest revision: {exc}") from exc


def extract_archive(zip_path: str | os.PathLike[str]) -> Path:
    """Unpack ``zip_path`` next to itself into a folder named after its stem.

    The archive is deleted afterwards when possible; the folder is returned.
    """
    zip_path = Path(zip_path)
    extract_path = zip_path.parent / zip_path.stem
    extract_path.mkdir(parents=True, exist_ok=True)
    log.info("Extracting (this can take a while): %s", extract_path)

    try:
        with zipfile.ZipFile(zip_path) as archive:
            for info in archive.infolist():
                if info.comment:
                    log.debug("File %s comment: %s", info.filename, info.comment)
                target = Path(archive.extract(info, extract_path))
                log.debug("File %s extracted to %s", info.filename, target)
                mode = info.external_attr >> 16
                if mode and os.name == "posix":
                    os.chmod(target, mode & 0o7777)
    except zipfile.BadZipFile as exc:
        raise FetchError(f"Invalid archive {zip_path}: {exc}") from exc

    log.info("Cleaning up")
    try:
        zip_path.unlink()
    except OSError:
        log.info("Failed to delete zip")
    return extract_path


def _standard_data_dir() -> Path:
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def _walk(root: Path) -> Iterator[Path]:
    """Yield ``root`` and everything below it, depth first."""
    yield root
    if not root.is_dir():
        return
    try:
        entries = sorted(root.iterdir())
    except OSError:
        return
    for entry in entries:
        if entry.is_dir() and not entry.is_symlink():
            yield from _walk(entry)
        else:
            yield entry


def _download_size_mib(url: str) -> int:
    try:
        with urllib.request.urlopen(url) as response:
            length = response.headers.get("Content-Length")
    except urllib.error.URLError as exc:
        raise FetchError(f"Could not reach {url}: {exc}") from exc
    if length is None:
        raise FetchError("response doesn't include the content length")
    return int(length) // 2**20


class Fetcher:
    """Finds an installed Chromium revision, downloading it if allowed."""

    def __init__(self, options: FetcherOptions | None = None) -> None:
        self.options = options if options is not None else FetcherOptions()

    @property
    def _platform(self) -> str:
        return self.options.platform or platform_name()

    def fetch(self) -> Path:
        """Return the path to the Chrome executable, installing it if needed."""
        revision = self.options.revision
        rev = latest_revision() if revision.is_latest else revision.number
        assert rev is not None

        try:
            return self.chrome_path(rev)
        except FetchError:
            pass

        if self.options.allow_download:
            zip_path = self._download(rev)
            extract_archive(zip_path)
            return self.chrome_path(rev)

        raise FetchError("Could not fetch")

    def _search_dirs(self) -> list[Path]:
        dirs = []
        if self.options.install_dir is not None:
            dirs.append(Path(self.options.install_dir))
        if self.options.allow_standard_dirs:
            dirs.append(_standard_data_dir())
        return dirs

    def _base_path(self, revision: str) -> Path:
        platform = self._platform
        for root in self._search_dirs():
            for entry in _walk(root):
                parts = entry.name.split("-")
                if len(parts) == 2 and parts[0] == platform and parts[1] == revision:
                    return entry
        raise FetchError("Could not find an existing revision")

    def chrome_path(self, revision: str) -> Path:
        """Full path of the executable inside an installed ``revision``."""
        platform = self._platform
        base = self._base_path(revision)
        return base.joinpath(archive_name(revision, platform), *_EXECUTABLE_PARTS[platform])

    def _download(self, revision: str) -> Path:
        platform = self._platform
        if self.options.install_dir is not None:
            directory = Path(self.options.install_dir)
        elif self.options.allow_standard_dirs:
            directory = _standard_data_dir()
        else:
            raise FetchError("No allowed installation directory")

        url = download_url(revision, platform)
        log.info("Chrome download url: %s", url)
        log.info("Total size of download: %s MiB", _download_size_mib(url))

        path = (directory / f"{platform}-{revision}").with_suffix(".zip")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FetchError(f"Could not create directory at {path.parent}") from exc

        log.info("Creating file for download: %s", path)
        try:
            with urllib.request.urlopen(url) as response, path.open("wb") as out:
                shutil.copyfileobj(response, out)
        except urllib.error.URLError as exc:
            raise FetchError(f"Download of {url} failed: {exc}") from exc
        return path