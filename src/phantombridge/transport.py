"""Synchronous request/response client for the engine control channel."""

import json
import logging
import threading
from collections.abc import Callable
from collections.abc import Sequence
from typing import Any

import httpx

from phantombridge.codec import encode_value
from phantombridge.errors import FrameNotFoundError
from phantombridge.errors import InvalidHandleError
from phantombridge.errors import PhantomTimeoutError
from phantombridge.errors import ProtocolError
from phantombridge.errors import RemoteError
from phantombridge.errors import TransportError
from phantombridge.frames import FrameSelector

logger = logging.getLogger(__name__)

PING_PATH: str = "/ping"
CREATE_PATH: str = "/create"
CALL_PATH: str = "/call"
SHUTDOWN_PATH: str = "/shutdown"
CONNECT_TIMEOUT_SECONDS: float = 5.0


class RpcTransport:
    """Issue one call at a time to the engine and decode its envelope."""

    _base_url: str
    _client: httpx.Client
    _lock: threading.Lock
    _fault_callback: Callable[[TransportError], None] | None
    _is_closed: bool

    def __init__(
        self,
        base_url: str,
        call_timeout: float | None = None,
        fault_callback: Callable[[TransportError], None] | None = None,
    ) -> None:
        """Initialize a transport bound to one control endpoint.

        :param base_url: Root URL of the control channel, e.g. ``http://127.0.0.1:20202``.
        :param call_timeout: Optional per-call read timeout; ``None`` waits indefinitely.
        :param fault_callback: Optional callback invoked once per channel fault.
        """
        self._base_url = base_url
        self._client = httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(call_timeout, connect=CONNECT_TIMEOUT_SECONDS),
            trust_env=False,
        )
        self._lock = threading.Lock()
        self._fault_callback = fault_callback
        self._is_closed = False

    @property
    def base_url(self) -> str:
        """Return the control channel root URL.

        :returns: Base URL.
        """
        return self._base_url

    def ping(self, timeout: float | None = None) -> bool:
        """Probe the liveness endpoint once.

        Connection failures are reported as ``False`` so the supervisor can poll.

        :param timeout: Optional timeout for this probe.
        :returns: ``True`` when the engine answered the probe.
        """
        try:
            response: httpx.Response = self._client.get(PING_PATH, timeout=timeout)
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    def create_page(self) -> int:
        """Ask the engine for a new page object.

        :returns: Remote page reference.
        :raises ProtocolError: If the engine returns no integer reference.
        """
        result: object = self._exchange(CREATE_PATH, {})
        if isinstance(result, dict) is False:
            raise ProtocolError("create result must be an object")
        ref: object = result.get("ref")
        if isinstance(ref, int) is False or isinstance(ref, bool) is True:
            raise ProtocolError("create result missing int ref")
        return ref

    def call(
        self,
        target: int | None,
        member: str,
        args: Sequence[object] = (),
        frame: Sequence[FrameSelector] | None = None,
    ) -> Any:
        """Invoke one member on a remote object.

        :param target: Remote object reference, or ``None`` for engine-level members.
        :param member: Member name understood by the control script.
        :param args: Arguments, encoded through the codec.
        :param frame: Optional frame path the call applies to.
        :returns: Raw decoded JSON result.
        """
        payload: dict[str, object] = {
            "target": target,
            "member": member,
            "frame": None if frame is None else list(frame),
            "args": [encode_value(arg) for arg in args],
        }
        return self._exchange(CALL_PATH, payload)

    def shutdown(self) -> None:
        """Ask the engine to exit; connection loss during shutdown is expected."""
        try:
            self._client.post(SHUTDOWN_PATH, json={}, timeout=1.0)
        except httpx.HTTPError as exc:
            logger.debug("Shutdown request to %s ended with %r", self._base_url, exc)

    def close(self) -> None:
        """Release the HTTP client."""
        self._is_closed = True
        self._client.close()

    def _exchange(self, path: str, payload: dict[str, object]) -> Any:
        """Send one request and return the envelope result.

        :param path: Endpoint path.
        :param payload: JSON body.
        :returns: Result member of a success envelope.
        """
        with self._lock:
            if self._is_closed is True:
                raise TransportError(f"Control channel {self._base_url} is closed")
            logger.debug("-> %s %s", path, payload.get("member", ""))
            try:
                response: httpx.Response = self._client.post(path, json=payload)
            except httpx.TimeoutException as exc:
                raise PhantomTimeoutError(f"No response from engine for {path}") from exc
            except (httpx.TransportError, RuntimeError) as exc:
                fault: TransportError = TransportError(f"Control channel fault on {path}: {exc}")
                self._report_fault(fault)
                raise fault from exc
        return self._unwrap(response)

    def _report_fault(self, fault: TransportError) -> None:
        """Forward a channel fault to the owner.

        :param fault: Fault being raised.
        """
        callback: Callable[[TransportError], None] | None = self._fault_callback
        if callback is not None:
            callback(fault)

    def _unwrap(self, response: httpx.Response) -> Any:
        """Decode a response envelope.

        :param response: HTTP response.
        :returns: Result value of a success envelope.
        :raises ProtocolError: For malformed envelopes.
        :raises InvalidHandleError: For unknown remote references.
        :raises FrameNotFoundError: For frame selectors the engine cannot resolve.
        :raises RemoteError: For any other failure reported by the engine.
        """
        try:
            envelope: object = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            if response.status_code != 200:
                raise RemoteError(response.text, f"http_{response.status_code}") from exc
            raise ProtocolError("Engine response is not valid JSON") from exc

        if isinstance(envelope, dict) is False:
            raise ProtocolError("Engine response must be an object")

        status: object = envelope.get("status")
        if status == "ok":
            return envelope.get("result")
        if status != "error":
            raise ProtocolError(f"Unknown engine response status: {status!r}")

        code: str = str(envelope.get("code", "remote"))
        message: str = str(envelope.get("message", ""))
        logger.debug("<- error %s: %s", code, message)
        if code == "invalid_ref":
            raise InvalidHandleError(message)
        if code == "frame_not_found":
            selector: object = envelope.get("selector", "")
            if isinstance(selector, (str, int)) is False:
                selector = str(selector)
            raise FrameNotFoundError(selector, message or None)
        raise RemoteError(message, code)
