"""Supervision of the external rendering-engine process."""

import atexit
import enum
import importlib.resources
import logging
import os
import shutil
import socket
import subprocess
import tempfile
import threading
import time
from collections.abc import Sequence
from typing import IO

from phantombridge.errors import ChannelError
from phantombridge.errors import LaunchError
from phantombridge.errors import PhantomTimeoutError
from phantombridge.errors import ProcessStateError
from phantombridge.errors import TransportError
from phantombridge.registry import PageRegistry
from phantombridge.transport import RpcTransport
from phantombridge.webpage import WebPage

logger = logging.getLogger(__name__)
engine_logger = logging.getLogger("phantombridge.engine")

BIN_PATH_ENV: str = "PHANTOMJS_BIN"
DEFAULT_BIN_PATH: str = "phantomjs"
CONTROL_HOST: str = "127.0.0.1"
CONTROL_SCRIPT_NAME: str = "shim.js"
DEFAULT_READY_TIMEOUT: float = 10.0
READY_POLL_INTERVAL: float = 0.05
SHUTDOWN_GRACE_SECONDS: float = 2.0


class ProcessState(enum.Enum):
    """Liveness state of a supervised engine."""

    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


def _resolve_executable(bin_path: str) -> str:
    """Locate the engine executable.

    :param bin_path: Executable name or path.
    :returns: Absolute path of the executable.
    :raises LaunchError: If no such executable exists.
    """
    resolved: str | None = shutil.which(bin_path)
    if resolved is None:
        raise LaunchError(f"Engine executable not found: {bin_path!r}")
    return resolved


def _allocate_port(port: int) -> int:
    """Reserve a local control port, choosing a free one when ``port`` is zero.

    :param port: Requested port, or ``0`` for any free port.
    :returns: Port number the engine should listen on.
    :raises ChannelError: If the port cannot be bound.
    """
    probe: socket.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        probe.bind((CONTROL_HOST, port))
        bound_port: int = probe.getsockname()[1]
    except OSError as exc:
        raise ChannelError(f"Cannot bind control endpoint {CONTROL_HOST}:{port}: {exc}") from exc
    finally:
        probe.close()
    return bound_port


def _read_control_script() -> str:
    """Return the source of the packaged engine control script.

    :returns: Script text.
    """
    resource = importlib.resources.files("phantombridge").joinpath(CONTROL_SCRIPT_NAME)
    return resource.read_text(encoding="utf-8")


def _pump_output(stream: IO[str], stream_name: str, pid: int) -> None:
    """Forward engine output to the engine logger until the stream closes.

    :param stream: Engine stdout or stderr.
    :param stream_name: ``"stdout"`` or ``"stderr"``.
    :param pid: Engine process identifier.
    """
    level: int = logging.INFO if stream_name == "stdout" else logging.WARNING
    with stream:
        for line in stream:
            engine_logger.log(level, "[%d %s] %s", pid, stream_name, line.rstrip("\n"))


def _stop_process(popen: subprocess.Popen, grace_seconds: float) -> None:
    """Wait for the engine to exit, escalating to terminate and kill.

    :param popen: Engine process.
    :param grace_seconds: Time allowed at each escalation step.
    """
    try:
        popen.wait(timeout=grace_seconds)
        return
    except subprocess.TimeoutExpired:
        logger.debug("Engine %d did not exit; terminating", popen.pid)

    popen.terminate()
    try:
        popen.wait(timeout=grace_seconds)
        return
    except subprocess.TimeoutExpired:
        logger.warning("Engine %d ignored terminate; killing", popen.pid)

    popen.kill()
    popen.wait()


class Process:
    """Own one engine subprocess, its control channel and its pages."""

    _bin_path: str
    _script_path: str | None
    _requested_port: int
    _engine_args: list[str]
    _offline_storage_path: str | None
    _offline_storage_quota: int | None
    _ready_timeout: float
    _call_timeout: float | None
    _state: ProcessState
    _lock: threading.RLock
    _registry: PageRegistry
    _popen: subprocess.Popen | None
    _transport: RpcTransport | None
    _workdir: str | None
    _port: int | None

    def __init__(
        self,
        bin_path: str | None = None,
        port: int = 0,
        script_path: str | None = None,
        engine_args: Sequence[str] = (),
        offline_storage_path: str | None = None,
        offline_storage_quota: int | None = None,
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
        call_timeout: float | None = None,
    ) -> None:
        """Configure an engine process without starting it.

        :param bin_path: Engine executable; defaults to ``$PHANTOMJS_BIN`` or ``phantomjs``.
        :param port: Control port, or ``0`` to pick a free one.
        :param script_path: Control script to run instead of the packaged one.
        :param engine_args: Extra command-line options placed before the script.
        :param offline_storage_path: Directory passed verbatim as the offline storage location.
        :param offline_storage_quota: Offline storage quota in kilobytes.
        :param ready_timeout: Seconds to wait for the control endpoint to answer.
        :param call_timeout: Optional per-call timeout in seconds; ``None`` waits indefinitely.
        """
        if bin_path is None:
            bin_path = os.environ.get(BIN_PATH_ENV, DEFAULT_BIN_PATH)
        self._bin_path = bin_path
        self._script_path = script_path
        self._requested_port = port
        self._engine_args = list(engine_args)
        self._offline_storage_path = offline_storage_path
        self._offline_storage_quota = offline_storage_quota
        self._ready_timeout = ready_timeout
        self._call_timeout = call_timeout
        self._state = ProcessState.UNOPENED
        self._lock = threading.RLock()
        self._registry = PageRegistry()
        self._popen = None
        self._transport = None
        self._workdir = None
        self._port = None

    @property
    def state(self) -> ProcessState:
        """Return the liveness state.

        :returns: Current state.
        """
        with self._lock:
            return self._state

    @property
    def is_open(self) -> bool:
        """Report whether the engine is running and ready.

        :returns: ``True`` while the state is ``OPEN``.
        """
        return self.state is ProcessState.OPEN

    @property
    def bin_path(self) -> str:
        """Return the configured engine executable.

        :returns: Executable name or path.
        """
        return self._bin_path

    @property
    def path(self) -> str | None:
        """Return the working directory holding the control script.

        The engine uses it as the default library path of new pages.

        :returns: Directory path while open, otherwise ``None``.
        """
        return self._workdir

    @property
    def port(self) -> int | None:
        """Return the control port.

        :returns: Port number once an open attempt allocated one, otherwise ``None``.
        """
        return self._port

    @property
    def pid(self) -> int | None:
        """Return the engine process identifier.

        :returns: PID while a subprocess is running, otherwise ``None``.
        """
        popen: subprocess.Popen | None = self._popen
        if popen is None:
            return None
        return popen.pid

    def open(self) -> None:
        """Start the engine and block until its control endpoint answers.

        A failed attempt leaves no subprocess behind and the process may be
        opened again.

        :raises LaunchError: If the executable is missing, cannot start, or exits early.
        :raises ChannelError: If the control port cannot be bound.
        :raises PhantomTimeoutError: If the engine never answers the liveness probe.
        :raises ProcessStateError: If the process is already open or was closed.
        """
        with self._lock:
            if self._state is not ProcessState.UNOPENED:
                raise ProcessStateError(f"Cannot open a process in state {self._state.value}")

            executable: str = _resolve_executable(self._bin_path)
            port: int = _allocate_port(self._requested_port)
            workdir: str = tempfile.mkdtemp(prefix="phantombridge-")
            self._workdir = workdir
            self._port = port

            try:
                script: str = self._install_script(workdir)
                argv: list[str] = [executable, *self._engine_args, *self._storage_args(), script, str(port)]
                logger.debug("Starting engine: %s", argv)
                try:
                    popen: subprocess.Popen = subprocess.Popen(
                        argv,
                        cwd=workdir,
                        stdin=subprocess.DEVNULL,
                        stdout=subprocess.PIPE,
                        stderr=subprocess.PIPE,
                        text=True,
                        encoding="utf-8",
                        errors="replace",
                    )
                except OSError as exc:
                    raise LaunchError(f"Cannot start engine {executable!r}: {exc}") from exc
                self._popen = popen
                self._start_output_pumps(popen)

                transport: RpcTransport = RpcTransport(
                    f"http://{CONTROL_HOST}:{port}",
                    call_timeout=self._call_timeout,
                    fault_callback=self._on_transport_fault,
                )
                self._transport = transport
                self._wait_until_ready(popen, transport)
            except BaseException:
                self._release_resources(graceful=False)
                self._state = ProcessState.UNOPENED
                raise

            self._registry.bind(transport)
            self._state = ProcessState.OPEN
            atexit.register(self.close)
            logger.info("Engine %d ready on %s:%d", popen.pid, CONTROL_HOST, port)

    def close(self) -> None:
        """Stop the engine and invalidate every page handle. Safe to call repeatedly."""
        with self._lock:
            if self._state is ProcessState.CLOSED:
                return
            was_open: bool = self._state is ProcessState.OPEN
            self._state = ProcessState.CLOSED
            self._registry.invalidate_all()
            atexit.unregister(self.close)
            if was_open is True:
                self._release_resources(graceful=True)
                logger.info("Engine closed")

    def create_web_page(self) -> WebPage:
        """Create a new top-level page.

        :returns: Handle bound to the new page.
        :raises RegistryError: If the process is not open.
        """
        return self._registry.create()

    def pages(self) -> list[WebPage]:
        """Return every open page handle of this process in creation order.

        :returns: Open handles, including tracked child pages already seen.
        """
        return self._registry.live_handles()

    def __enter__(self) -> "Process":
        """Open the process if needed and enter its context.

        :returns: This process.
        """
        if self.state is ProcessState.UNOPENED:
            self.open()
        return self

    def __exit__(self, exc_type: object, exc_value: object, exc_traceback: object) -> None:
        """Close the process when leaving the context.

        :param exc_type: Exception type.
        :param exc_value: Exception value.
        :param exc_traceback: Exception traceback.
        """
        self.close()

    def __repr__(self) -> str:
        """Return a short description with the executable, state and port.

        :returns: Representation string.
        """
        return f"<Process {self._bin_path!r} {self.state.value} port={self._port}>"

    def _install_script(self, workdir: str) -> str:
        """Place the control script inside the working directory.

        :param workdir: Working directory.
        :returns: Path of the installed script.
        """
        if self._script_path is None:
            destination: str = os.path.join(workdir, CONTROL_SCRIPT_NAME)
            with open(destination, "w", encoding="utf-8") as handle:
                handle.write(_read_control_script())
            return destination

        destination = os.path.join(workdir, os.path.basename(self._script_path))
        shutil.copyfile(self._script_path, destination)
        return destination

    def _storage_args(self) -> list[str]:
        """Build the offline storage command-line options.

        :returns: Engine options, empty when none were configured.
        """
        args: list[str] = []
        if self._offline_storage_path is not None:
            args.append(f"--offline-storage-path={self._offline_storage_path}")
        if self._offline_storage_quota is not None:
            args.append(f"--offline-storage-quota={self._offline_storage_quota}")
        return args

    def _start_output_pumps(self, popen: subprocess.Popen) -> None:
        """Start daemon threads that drain engine output into the log.

        :param popen: Engine process.
        """
        streams: list[tuple[IO[str] | None, str]] = [(popen.stdout, "stdout"), (popen.stderr, "stderr")]
        for stream, stream_name in streams:
            if stream is None:
                continue
            thread: threading.Thread = threading.Thread(
                target=_pump_output,
                args=(stream, stream_name, popen.pid),
                name=f"phantombridge-{popen.pid}-{stream_name}",
                daemon=True,
            )
            thread.start()

    def _wait_until_ready(self, popen: subprocess.Popen, transport: RpcTransport) -> None:
        """Poll the liveness endpoint until it answers.

        :param popen: Engine process.
        :param transport: Transport bound to the control port.
        :raises LaunchError: If the engine exits before answering.
        :raises PhantomTimeoutError: If the deadline passes first.
        """
        deadline: float = time.monotonic() + self._ready_timeout
        while True:
            exit_code: int | None = popen.poll()
            if exit_code is not None:
                raise LaunchError(f"Engine exited with code {exit_code} before becoming ready")

            remaining: float = deadline - time.monotonic()
            if remaining <= 0:
                raise PhantomTimeoutError(
                    f"Engine control endpoint {transport.base_url} not ready after {self._ready_timeout}s"
                )

            if transport.ping(timeout=min(remaining, 1.0)) is True:
                return
            time.sleep(min(READY_POLL_INTERVAL, max(remaining, 0.0)))

    def _on_transport_fault(self, fault: TransportError) -> None:
        """Close the process after a channel fault so later calls fail fast.

        :param fault: Fault raised by the transport.
        """
        with self._lock:
            if self._state is not ProcessState.OPEN:
                return
            logger.warning("Control channel fault, closing engine: %s", fault)
            self._state = ProcessState.CLOSED
            self._registry.invalidate_all()
            atexit.unregister(self.close)
            self._release_resources(graceful=False)

    def _release_resources(self, graceful: bool) -> None:
        """Stop the engine, close the channel and remove the working directory.

        :param graceful: Ask the engine to shut down before escalating.
        """
        popen: subprocess.Popen | None = self._popen
        transport: RpcTransport | None = self._transport
        workdir: str | None = self._workdir
        self._popen = None
        self._transport = None
        self._workdir = None

        if popen is not None:
            if graceful is True and transport is not None and popen.poll() is None:
                transport.shutdown()
                _stop_process(popen, SHUTDOWN_GRACE_SECONDS)
            elif popen.poll() is None:
                popen.terminate()
                _stop_process(popen, SHUTDOWN_GRACE_SECONDS)
            else:
                popen.wait()
        if transport is not None:
            transport.close()
        if workdir is not None:
            shutil.rmtree(workdir, ignore_errors=True)
