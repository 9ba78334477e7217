import zipfile
from pathlib import Path

import pytest

from chromelaunch.fetcher import (
    CUR_REV,
    FetchError,
    Fetcher,
    FetcherOptions,
    Revision,
    archive_name,
    download_url,
    extract_archive,
    latest_revision_url,
    platform_name,
)


def _options(install_dir, **kwargs):
    kwargs.setdefault("allow_standard_dirs", False)
    kwargs.setdefault("platform", "linux")
    return FetcherOptions(install_dir=install_dir, **kwargs)


def test_default_options_use_current_revision():
    options = FetcherOptions()
    assert options.revision.number == CUR_REV
    assert not options.revision.is_latest
    assert options.allow_download is True
    assert options.allow_standard_dirs is True
    assert options.install_dir is None


def test_revision_constructors():
    assert Revision.latest().is_latest
    assert Revision.specific(42).number == "42"
    assert Revision.specific("42") == Revision.specific(42)


def test_platform_name_is_known():
    assert platform_name() in {"linux", "mac", "mac_arm", "win"}


@pytest.mark.parametrize(
    "revision, platform, expected",
    [
        ("1095492", "linux", "chrome-linux"),
        ("1095492", "mac", "chrome-mac"),
        ("1095492", "mac_arm", "chrome-mac"),
        ("1095492", "win", "chrome-win"),
        ("591479", "win", "chrome-win32"),
        ("591480", "win", "chrome-win"),
        ("abc", "win", "chrome-win32"),
    ],
)
def test_archive_name(revision, platform, expected):
    assert archive_name(revision, platform) == expected


def test_unknown_platform_rejected():
    with pytest.raises(FetchError):
        archive_name("1", "beos")
    with pytest.raises(FetchError):
        download_url("1", "beos")
    with pytest.raises(FetchError):
        latest_revision_url("beos")


def test_download_url_shape():
    url = download_url("1095492", "linux")
    assert url.startswith("https://storage.googleapis.com/chromium-browser-snapshots/")
    assert "/Linux_x64/1095492/" in url
    assert url.endswith("/chrome-linux.zip")


def test_download_url_windows_archive():
    assert download_url("100", "win").endswith("/Win_x64/100/chrome-win32.zip")


def test_latest_revision_url():
    assert latest_revision_url("mac_arm").endswith("/Mac_Arm/LAST_CHANGE")
    assert latest_revision_url("linux").endswith("/Linux_x64/LAST_CHANGE")


def test_chrome_path_found_in_install_dir(tmp_path):
    base = tmp_path / "linux-123"
    base.mkdir()
    fetcher = Fetcher(_options(tmp_path))
    assert fetcher.chrome_path("123") == base / "chrome-linux" / "chrome"


def test_chrome_path_found_in_nested_directory(tmp_path):
    base = tmp_path / "nested" / "deeper" / "linux-77"
    base.mkdir(parents=True)
    fetcher = Fetcher(_options(tmp_path))
    assert fetcher.chrome_path("77").relative_to(base) == Path("chrome-linux/chrome")


def test_chrome_path_mac_layout(tmp_path):
    (tmp_path / "mac-5").mkdir()
    fetcher = Fetcher(_options(tmp_path, platform="mac"))
    path = fetcher.chrome_path("5")
    assert path.parts[-5:] == ("chrome-mac", "Chromium.app", "Contents", "MacOS", "Chromium")


def test_chrome_path_ignores_other_names(tmp_path):
    (tmp_path / "linux-123.zip").write_bytes(b"")
    (tmp_path / "win-123").mkdir()
    (tmp_path / "linux-123-extra").mkdir()
    fetcher = Fetcher(_options(tmp_path))
    with pytest.raises(FetchError):
        fetcher.chrome_path("123")


def test_fetch_returns_existing_install(tmp_path):
    (tmp_path / "linux-999").mkdir()
    fetcher = Fetcher(
        _options(tmp_path, revision=Revision.specific("999"), allow_download=False)
    )
    assert fetcher.fetch() == tmp_path / "linux-999" / "chrome-linux" / "chrome"


def test_fetch_without_download_raises(tmp_path):
    fetcher = Fetcher(
        _options(tmp_path, revision=Revision.specific("999"), allow_download=False)
    )
    with pytest.raises(FetchError, match="Could not fetch"):
        fetcher.fetch()


def test_fetch_without_any_install_dir_raises():
    fetcher = Fetcher(
        FetcherOptions(
            revision=Revision.specific("999"),
            allow_standard_dirs=False,
            platform="linux",
        )
    )
    with pytest.raises(FetchError, match="No allowed installation directory"):
        fetcher.fetch()


def _make_zip(path, entries):
    with zipfile.ZipFile(path, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)


def test_extract_archive_unpacks_and_removes_zip(tmp_path):
    zip_path = tmp_path / "linux-1.zip"
    _make_zip(
        zip_path,
        {"chrome-linux/": b"", "chrome-linux/chrome": b"binary", "chrome-linux/a/b.txt": b"x"},
    )
    extracted = extract_archive(zip_path)
    assert extracted == tmp_path / "linux-1"
    assert (extracted / "chrome-linux" / "chrome").read_bytes() == b"binary"
    assert (extracted / "chrome-linux" / "a" / "b.txt").read_bytes() == b"x"
    assert not zip_path.exists()


def test_extract_then_locate(tmp_path):
    zip_path = tmp_path / "linux-31.zip"
    _make_zip(zip_path, {"chrome-linux/chrome": b"exe"})
    extract_archive(zip_path)
    path = Fetcher(_options(tmp_path)).chrome_path("31")
    assert path.read_bytes() == b"exe"


def test_extract_archive_rejects_bad_zip(tmp_path):
    zip_path = tmp_path / "linux-2.zip"
    zip_path.write_bytes(b"not a zip file")
    with pytest.raises(FetchError):
        extract_archive(zip_path)