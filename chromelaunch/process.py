"""Launch a Chrome process with remote debugging and find its WebSocket URL."""

from __future__ import annotations

import dataclasses
import logging
import os
import random
import re
import socket
import subprocess
import sys
import tempfile
import threading
import weakref
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from .executable import default_executable
from .fetcher import Fetcher, FetcherOptions

log = logging.getLogger(__name__)

# Passed to the browser unless ``disable_default_args`` is set.
DEFAULT_ARGS = (
    "--disable-background-networking",
    "--enable-features=NetworkService,NetworkServiceInProcess",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--disable-client-side-phishing-detection",
    "--disable-component-extensions-with-background-pages",
    "--disable-default-apps",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    # BlinkGenPropertyTrees disabled due to crbug.com/937609
    "--disable-features=TranslateUI,BlinkGenPropertyTrees",
    "--disable-hang-monitor",
    "--disable-ipc-flooding-protection",
    "--disable-popup-blocking",
    "--disable-prompt-on-repost",
    "--disable-renderer-backgrounding",
    "--disable-sync",
    "--force-color-profile=srgb",
    "--metrics-recording-only",
    "--no-first-run",
    "--enable-automation",
    "--password-store=basic",
    "--use-mock-keychain",
)

PORT_RANGE = range(8000, 9000)
WS_URL_TIMEOUT = 30.0
MAX_ATTEMPTS = 10
PROFILE_PREFIX = "chromelaunch-profile"

_PORT_TAKEN_RE = re.compile(r"ERROR.*bind\(\)")
_LISTENING_RE = re.compile(r"listening on (.*/devtools/browser/.*)$")
_ROOT_SANDBOX = "Running as root without --no-sandbox is not supported"


class ChromeLaunchError(Exception):
    """Base class of errors raised while starting Chrome."""


class PortOpenTimeout(ChromeLaunchError):
    def __init__(self) -> None:
        super().__init__(
            "Chrome launched, but didn't give us a WebSocket URL before we timed out"
        )


class NoAvailablePorts(ChromeLaunchError):
    def __init__(self) -> None:
        super().__init__("There are no available ports between 8000 and 9000 for debugging")


class DebugPortInUse(ChromeLaunchError):
    def __init__(self) -> None:
        super().__init__("The chosen debugging port is already in use")


class RunningAsRootWithoutNoSandbox(ChromeLaunchError):
    def __init__(self) -> None:
        super().__init__("You need to set sandbox=False when running as root")


@dataclass(frozen=True)
class LaunchOptions:
    """How Chrome is run.

    When ``path`` is None the executable is located with ``default_executable``,
    or fetched with ``fetcher_options`` when those are given.
    """

    headless: bool = True
    sandbox: bool = True
    enable_gpu: bool = False
    enable_logging: bool = False
    window_size: tuple[int, int] | None = None
    port: int | None = None
    ignore_certificate_errors: bool = True
    path: Path | None = None
    user_data_dir: Path | None = None
    extensions: Sequence[str] = ()
    args: Sequence[str] = ()
    disable_default_args: bool = False
    fetcher_options: FetcherOptions | None = None
    idle_browser_timeout: float = 30.0
    process_envs: Mapping[str, str] | None = None
    proxy_server: str | None = None


def ws_url_from_lines(lines: Iterable[str]) -> str | None:
    """Scan browser output for the DevTools WebSocket URL.

    Returns None when the output ends without one; raises on known failures.
    """
    for raw in lines:
        line = raw.rstrip("\r\n")
        log.debug("Chrome output: %s", line)
        if _ROOT_SANDBOX in line:
            raise RunningAsRootWithoutNoSandbox()
        if _PORT_TAKEN_RE.search(line):
            raise DebugPortInUse()
        match = _LISTENING_RE.search(line)
        if match:
            return match.group(1)
    return None


def build_args(options: LaunchOptions, port: int, user_data_dir: str | os.PathLike[str]) -> list[str]:
    """Command-line arguments for a browser started with ``options``."""
    args = [
        f"--remote-debugging-port={port}",
        "--verbose",
        "--log-level=0",
        "--no-first-run",
        "--disable-audio-output",
        f"--user-data-dir={os.fspath(user_data_dir)}",
    ]
    if not options.disable_default_args:
        args.extend(DEFAULT_ARGS)
    args.extend(options.args)
    if options.window_size is not None:
        width, height = options.window_size
        args.append(f"--window-size={width},{height}")
    if options.headless:
        args.append("--headless")
    if options.ignore_certificate_errors:
        args.append("--ignore-certificate-errors")
    if options.enable_logging:
        args.append("--enable-logging")
    if not options.enable_gpu:
        args.append("--disable-gpu")
    if options.proxy_server is not None:
        args.append(f"--proxy-server={options.proxy_server}")
    if not options.sandbox:
        args.extend(["--no-sandbox", "--disable-setuid-sandbox"])
    args.extend(f"--load-extension={ext}" for ext in options.extensions)
    return args


def port_is_available(port: int) -> bool:
    """True when ``port`` can be bound on 127.0.0.1."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind(("127.0.0.1", port))
        except OSError:
            return False
    return True


def get_available_port() -> int | None:
    """A random free port between 8000 and 8999, or None if all are taken."""
    ports = list(PORT_RANGE)
    random.shuffle(ports)
    return next((port for port in ports if port_is_available(port)), None)


class _TemporaryProcess:
    """A browser child process plus the profile directory created for it."""

    def __init__(
        self,
        popen: subprocess.Popen[str],
        temp_dir: tempfile.TemporaryDirectory[str] | None,
    ) -> None:
        self.popen = popen
        self.temp_dir = temp_dir

    def kill(self) -> None:
        log.info("Killing Chrome. PID: %s", self.popen.pid)
        try:
            self.popen.kill()
            self.popen.wait()
        except OSError:
            pass
        if self.popen.stderr is not None:
            try:
                self.popen.stderr.close()
            except OSError:
                pass
        if self.temp_dir is not None:
            temp_dir, self.temp_dir = self.temp_dir, None
            try:
                temp_dir.cleanup()
            except OSError as exc:
                log.warning("Failed to close temporary directory: %s", exc)


def _read_ws_url(child: _TemporaryProcess, timeout: float) -> str:
    outcome: dict[str, object] = {}
    stream = child.popen.stderr

    def reader() -> None:
        try:
            outcome["url"] = ws_url_from_lines(stream) if stream is not None else None
        except (ChromeLaunchError, OSError, ValueError) as exc:
            outcome["error"] = exc

    thread = threading.Thread(target=reader, daemon=True)
    thread.start()
    thread.join(timeout)
    if thread.is_alive():
        raise PortOpenTimeout()
    error = outcome.get("error")
    if isinstance(error, ChromeLaunchError):
        raise error
    url = outcome.get("url")
    if not isinstance(url, str):
        raise PortOpenTimeout()
    return url


class Process:
    """A running Chrome with a remote-debugging WebSocket endpoint.

    The browser is killed, and any temporary profile removed, on ``close``.
    """

    def __init__(self, options: LaunchOptions | None = None) -> None:
        options = options if options is not None else LaunchOptions()
        if options.path is None:
            if options.fetcher_options is not None:
                path = Fetcher(options.fetcher_options).fetch()
            else:
                path = default_executable()
            options = dataclasses.replace(options, path=path)
        self.options = options

        child = self._start(options)
        log.info("Started Chrome. PID: %s", child.popen.pid)

        attempts = 0
        while True:
            if attempts > MAX_ATTEMPTS:
                child.kill()
                raise NoAvailablePorts()
            try:
                url = _read_ws_url(child, WS_URL_TIMEOUT)
            except ChromeLaunchError as error:
                log.debug("Problem getting WebSocket URL from Chrome: %s", error)
                child.kill()
                if options.port is not None:
                    raise
                child = self._start(options)
            else:
                log.debug("Found debugging WS URL: %s", url)
                break
            log.debug("Trying again to find available debugging port. Attempts: %s", attempts)
            attempts += 1

        if child.popen.stderr is not None:
            child.popen.stderr.close()

        self.debug_ws_url = url
        self._child = child
        self._finalizer = weakref.finalize(self, child.kill)

    @staticmethod
    def _start(options: LaunchOptions) -> _TemporaryProcess:
        port = options.port if options.port is not None else get_available_port()
        if port is None:
            raise NoAvailablePorts()

        temp_dir = None
        if options.user_data_dir is not None:
            user_data_dir = str(options.user_data_dir)
        else:
            temp_dir = tempfile.TemporaryDirectory(prefix=PROFILE_PREFIX)
            user_data_dir = temp_dir.name
        log.debug("Chrome will have profile: %s", user_data_dir)

        if options.path is None:
            raise ChromeLaunchError("Chrome path required")
        args = build_args(options, port, user_data_dir)
        log.info("Launching Chrome binary at %s", options.path)
        log.debug("with CLI arguments: %s", args)

        env = None
        if options.process_envs is not None:
            env = {**os.environ, **options.process_envs}

        extra: dict[str, int] = {}
        if sys.platform == "win32":
            extra["creationflags"] = subprocess.CREATE_NO_WINDOW

        try:
            popen = subprocess.Popen(
                [os.fspath(options.path), *args],
                stdin=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                env=env,
                **extra,
            )
        except OSError:
            if temp_dir is not None:
                temp_dir.cleanup()
            raise
        return _TemporaryProcess(popen, temp_dir)

    @property
    def pid(self) -> int:
        """Process id of the browser."""
        return self._child.popen.pid

    @property
    def user_data_dir(self) -> Path:
        """Profile directory the browser was started with."""
        if self.options.user_data_dir is not None:
            return Path(self.options.user_data_dir)
        for arg in self._child.popen.args[1:]:  # type: ignore[index]
            if str(arg).startswith("--user-data-dir="):
                return Path(str(arg).split("=", 1)[1])
        raise ChromeLaunchError("No user data dir")

    def close(self) -> None:
        """Kill the browser and remove its temporary profile."""
        self._finalizer()

    def __enter__(self) -> Process:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()