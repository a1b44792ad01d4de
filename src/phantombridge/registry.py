"""Registry of remote page objects owned by one engine process."""

import itertools
import logging
import threading
from collections.abc import Mapping
from collections.abc import Sequence

from phantombridge.errors import InvalidHandleError
from phantombridge.errors import ProtocolError
from phantombridge.errors import RegistryError
from phantombridge.transport import RpcTransport
from phantombridge.webpage import WebPage

logger = logging.getLogger(__name__)


class _PageRecord:
    """Local metadata for one remote page."""

    ref: int
    parent_ref: int | None
    order: int
    window_name: str
    handle: WebPage
    is_closed: bool

    def __init__(self, ref: int, parent_ref: int | None, order: int, handle: WebPage) -> None:
        """Initialize a record.

        :param ref: Remote page reference.
        :param parent_ref: Reference of the page that opened this one, if any.
        :param order: Registry-wide creation sequence number.
        :param handle: Local handle bound to ``ref``.
        """
        self.ref = ref
        self.parent_ref = parent_ref
        self.order = order
        self.window_name = ""
        self.handle = handle
        self.is_closed = False


class PageRegistry:
    """Map remote page references to local handles.

    Handles are created here and nowhere else, so one remote page always maps
    to exactly one :class:`WebPage` for the lifetime of the process.
    """

    _transport: RpcTransport | None
    _records: dict[int, _PageRecord]
    _sequence: "itertools.count[int]"
    _lock: threading.RLock

    def __init__(self) -> None:
        """Initialize an unbound registry."""
        self._transport = None
        self._records = {}
        self._sequence = itertools.count(1)
        self._lock = threading.RLock()

    @property
    def is_bound(self) -> bool:
        """Report whether the registry is bound to an open process.

        :returns: ``True`` while the owning process is open.
        """
        with self._lock:
            return self._transport is not None

    def bind(self, transport: RpcTransport) -> None:
        """Attach the transport of a freshly opened process.

        :param transport: Open transport.
        """
        with self._lock:
            self._transport = transport

    def invalidate_all(self) -> None:
        """Invalidate every handle; used when the owning process closes."""
        with self._lock:
            self._transport = None
            for record in self._records.values():
                record.is_closed = True
            logger.debug("Invalidated %d page handle(s)", len(self._records))

    def create(self) -> WebPage:
        """Create a new top-level remote page.

        The registry lock is not held during the remote call, so the owning
        process can close while a creation is in flight.

        :returns: Handle bound to the new page.
        :raises RegistryError: If the owning process is not open, or closed
            before the engine answered.
        """
        with self._lock:
            transport: RpcTransport | None = self._transport
            if transport is None:
                raise RegistryError("Cannot create a page: process is not open")
        ref: int = transport.create_page()
        with self._lock:
            if self._transport is not transport:
                raise RegistryError(f"Process closed while page {ref} was being created")
            return self._record(ref, None).handle

    def adopt_children(self, parent: WebPage, children: Sequence[object]) -> list[WebPage]:
        """Register child pages reported by the engine for ``parent``.

        :param parent: Page that opened the children.
        :param children: Wire entries with ``ref`` and ``windowName`` keys.
        :returns: Child handles in creation order.
        """
        handles: list[_PageRecord] = []
        with self._lock:
            for entry in children:
                if isinstance(entry, Mapping) is False:
                    raise ProtocolError("Child page entry must be an object")
                ref: object = entry.get("ref")
                if isinstance(ref, int) is False:
                    raise ProtocolError("Child page entry missing int ref")
                record: _PageRecord | None = self._records.get(ref)
                if record is None:
                    record = self._record(ref, parent.handle_id)
                window_name: object = entry.get("windowName")
                record.window_name = "" if window_name is None else str(window_name)
                handles.append(record)
        handles.sort(key=lambda item: item.order)
        return [record.handle for record in handles]

    def require_live(self, handle: WebPage) -> RpcTransport:
        """Return the transport for a handle that may still be used.

        :param handle: Page handle.
        :returns: Transport of the owning process.
        :raises InvalidHandleError: If the page or its process is closed.
        """
        with self._lock:
            record: _PageRecord | None = self._records.get(handle.handle_id)
            if record is None or record.handle is not handle:
                raise InvalidHandleError(f"Page handle {handle.handle_id} is not registered")
            transport: RpcTransport | None = self._transport
            if transport is None:
                raise InvalidHandleError(f"Page handle {handle.handle_id} belongs to a closed process")
            if record.is_closed is True:
                raise InvalidHandleError(f"Page handle {handle.handle_id} is closed")
            return transport

    def is_closed(self, handle: WebPage) -> bool:
        """Report whether a handle has been invalidated.

        :param handle: Page handle.
        :returns: ``True`` when calls on the handle would fail.
        """
        with self._lock:
            record: _PageRecord | None = self._records.get(handle.handle_id)
            if record is None or self._transport is None:
                return True
            return record.is_closed

    def mark_closed(self, handle: WebPage) -> None:
        """Invalidate one handle without contacting the engine.

        :param handle: Page handle.
        """
        with self._lock:
            record: _PageRecord | None = self._records.get(handle.handle_id)
            if record is not None:
                record.is_closed = True

    def release(self, handle: WebPage) -> None:
        """Close the remote page and invalidate its handle; repeated calls are no-ops.

        :param handle: Page handle.
        """
        with self._lock:
            if self.is_closed(handle) is True:
                return
            transport: RpcTransport = self.require_live(handle)
            self.mark_closed(handle)
        try:
            transport.call(handle.handle_id, "close")
        except InvalidHandleError:
            return

    def parent_of(self, handle: WebPage) -> WebPage | None:
        """Return the page that opened ``handle``.

        :param handle: Page handle.
        :returns: Parent handle, or ``None`` for top-level pages.
        """
        with self._lock:
            record: _PageRecord | None = self._records.get(handle.handle_id)
            if record is None or record.parent_ref is None:
                return None
            parent: _PageRecord | None = self._records.get(record.parent_ref)
            if parent is None:
                return None
            return parent.handle

    def window_name_of(self, handle: WebPage) -> str:
        """Return the window name a child page was opened under.

        :param handle: Page handle.
        :returns: Window name, or ``""`` when none was given.
        """
        with self._lock:
            record: _PageRecord | None = self._records.get(handle.handle_id)
            if record is None:
                return ""
            return record.window_name

    def live_handles(self) -> list[WebPage]:
        """Return every handle that is still usable, in creation order.

        :returns: Open handles.
        """
        with self._lock:
            if self._transport is None:
                return []
            records: list[_PageRecord] = sorted(self._records.values(), key=lambda item: item.order)
            return [record.handle for record in records if record.is_closed is False]

    def _record(self, ref: int, parent_ref: int | None) -> _PageRecord:
        """Create and store a record with a fresh handle.

        :param ref: Remote page reference.
        :param parent_ref: Parent reference, if any.
        :returns: New record.
        """
        handle: WebPage = WebPage(self, ref)
        record: _PageRecord = _PageRecord(ref, parent_ref, next(self._sequence), handle)
        self._records[ref] = record
        logger.debug("Registered page %d (parent=%s)", ref, parent_ref)
        return record
