# chromelaunch

Find, fetch and start a Chrome, Chromium or Edge browser with its DevTools
remote-debugging port open, and get back the WebSocket URL to drive it.

## Installation

```
pip install chromelaunch
```

## Finding a browser

`chromelaunch.executable.default_executable()` returns a `Path`. It checks
these places in order:

1. The `CHROME` environment variable, if it names an existing path.
2. `PATH`, searched for the names in `EXECUTABLE_NAMES`: `google-chrome-stable`,
   `google-chrome-beta`, `google-chrome-dev`, `google-chrome-unstable`,
   `chromium`, `chromium-browser`, `microsoft-edge-stable`,
   `microsoft-edge-beta`, `microsoft-edge-dev`, `chrome`, `chrome-browser`,
   `msedge` and `microsoft-edge`.
3. The standard application bundles under `/Applications` on macOS.
4. On Windows, the `chrome.exe` App Paths registry entry, then the
   default Edge install location.

If none of these finds a browser, it raises `ExecutableNotFound`.

```python
from chromelaunch.executable import default_executable

print(default_executable())
```

## Fetching a Chromium snapshot

`chromelaunch.fetcher.Fetcher` looks for an installed snapshot of the
requested revision. It searches the `install_dir` you give and, unless you
turn it off with `allow_standard_dirs=False`, the per-user data directory
for `headless-chrome`. It looks for a directory named `<platform>-<revision>`
(for example `linux-1095492`). If no snapshot is found and
`allow_download` is true, it downloads the snapshot zip, unpacks it next to
the archive and deletes the archive. `fetch()` returns the path of the
executable inside the snapshot.

```python
from chromelaunch.fetcher import Fetcher, FetcherOptions, Revision

fetcher = Fetcher(FetcherOptions(install_dir="/tmp/chromes"))
chrome = fetcher.fetch()

newest = Fetcher(FetcherOptions(revision=Revision.latest(), allow_download=False))
```

`FetcherOptions` fields:

- `revision`: defaults to `Revision.specific(CUR_REV)`. `CUR_REV` is `"1095492"`.
- `install_dir`: defaults to `None`.
- `allow_download`: defaults to `True`.
- `allow_standard_dirs`: defaults to `True`.
- `platform`: one of `linux`, `mac`, `mac_arm` or `win`. Defaults to `platform_name()`.

The module also has some URL and naming helpers:

- `archive_name(revision, platform)`
- `download_url(revision, platform)`
- `latest_revision_url(platform)`
- `latest_revision()`, which queries the server
- `extract_archive(zip_path)`

Failures raise `FetchError`.

## Launching

`chromelaunch.process.Process` starts the browser. It uses the debugging
port you choose, or otherwise a random free port between 8000 and 8999. It
also uses your profile directory, or otherwise a temporary one. It reads the
browser's error output until the browser reports the DevTools WebSocket URL,
and stores that URL in `debug_ws_url`. When no `port` is set, a failed start
is retried with a new port up to ten times.

When `LaunchOptions.path` is `None`, the executable comes from a `Fetcher`
if `fetcher_options` is given. Otherwise it comes from `default_executable()`.

Leaving the `with` block, or calling `close()`, kills the browser and
removes the temporary profile. The same happens when the `Process` object
is garbage-collected.

```python
from chromelaunch.process import LaunchOptions, Process

options = LaunchOptions(headless=True, window_size=(1280, 800))
with Process(options) as chrome:
    print(chrome.pid, chrome.debug_ws_url, chrome.user_data_dir)
```

`LaunchOptions` fields, with their defaults:

- `headless=True`
- `sandbox=True`
- `enable_gpu=False`
- `enable_logging=False`
- `window_size=None`
- `port=None`
- `ignore_certificate_errors=True`
- `path=None`
- `user_data_dir=None`
- `extensions=()`
- `args=()`
- `disable_default_args=False`
- `fetcher_options=None`
- `idle_browser_timeout=30.0`
- `process_envs=None`: extra environment variables, added to the current environment
- `proxy_server=None`

Unless `disable_default_args` is set, the flags in `DEFAULT_ARGS` are
passed to the browser.

Launch failures raise a subclass of `ChromeLaunchError`:

- `PortOpenTimeout`: the browser gave no WebSocket URL within 30 seconds.
- `NoAvailablePorts`: no free debugging port was found, or the retries ran out.
- `DebugPortInUse`: the chosen debugging port is taken.
- `RunningAsRootWithoutNoSandbox`: set `sandbox=False` when running as root.

Some helpers work without starting a browser, so you can use them to check
a configuration:

- `build_args(options, port, user_data_dir)` returns the command-line flags
  a launch would use.
- `ws_url_from_lines(lines)` pulls the WebSocket URL out of browser output.
- `port_is_available(port)` and `get_available_port()` check for free ports.

## What it does not do

This package stops at a running browser and its WebSocket URL. It has no
DevTools protocol client. It cannot open tabs, navigate, click, run
JavaScript, take screenshots or print PDFs. It does not use
`idle_browser_timeout` itself; the field is only carried in `LaunchOptions`
for a client to use. There is no command-line program.