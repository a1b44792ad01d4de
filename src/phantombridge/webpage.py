"""Local handles for remote engine pages."""

from collections.abc import Mapping
from typing import TYPE_CHECKING
from typing import Any

import httpx

from phantombridge.codec import decode_cookies
from phantombridge.codec import decode_value
from phantombridge.errors import InvalidHandleError
from phantombridge.errors import ProtocolError
from phantombridge.frames import FrameContext
from phantombridge.frames import FrameSelector
from phantombridge.transport import RpcTransport
from phantombridge.values import Cookie
from phantombridge.values import PaperSize
from phantombridge.values import Position
from phantombridge.values import Rect
from phantombridge.values import ViewportSize
from phantombridge.values import WebPageSettings

if TYPE_CHECKING:
    from phantombridge.registry import PageRegistry

_TOP_LEVEL: tuple[FrameSelector, ...] = ()


class WebPage:
    """Handle for one page living inside an engine process.

    Handles are created by :class:`~phantombridge.registry.PageRegistry`; use
    :meth:`phantombridge.Process.create_web_page` or :meth:`pages` to obtain one.
    Every attribute read or write is a synchronous call to the engine.
    """

    _registry: "PageRegistry"
    _handle_id: int
    _frames: FrameContext

    def __init__(self, registry: "PageRegistry", handle_id: int) -> None:
        """Bind a handle to a remote page.

        :param registry: Registry that owns this handle.
        :param handle_id: Remote page reference.
        """
        self._registry = registry
        self._handle_id = handle_id
        self._frames = FrameContext()

    @property
    def handle_id(self) -> int:
        """Return the opaque process-scoped identifier of this page."""
        return self._handle_id

    @property
    def is_closed(self) -> bool:
        """Report whether this handle can no longer be used."""
        return self._registry.is_closed(self)

    @property
    def parent(self) -> "WebPage | None":
        """Return the page that opened this one, or ``None`` for top-level pages."""
        return self._registry.parent_of(self)

    @property
    def frame_path(self) -> tuple[FrameSelector, ...]:
        """Return the selectors leading from the top-level document to the current frame."""
        return self._frames.path

    def close(self) -> None:
        """Close the remote page. Tracked child pages stay open."""
        self._registry.release(self)

    def __enter__(self) -> "WebPage":
        """Enter the page context.

        :returns: This page.
        """
        return self

    def __exit__(self, exc_type: object, exc_value: object, exc_traceback: object) -> None:
        """Close the page when leaving the context.

        :param exc_type: Exception type.
        :param exc_value: Exception value.
        :param exc_traceback: Exception traceback.
        """
        self.close()

    def __repr__(self) -> str:
        """Return a short description with the handle id and state.

        :returns: Representation string.
        """
        state: str = "closed" if self.is_closed is True else "open"
        return f"<WebPage {self._handle_id} {state}>"

    def _call(
        self,
        member: str,
        *args: object,
        frame: tuple[FrameSelector, ...] | None = None,
    ) -> Any:
        """Invoke one member of the remote page.

        :param member: Member name.
        :param args: Call arguments.
        :param frame: Frame path override; defaults to the current frame context.
        :returns: Raw result value.
        :raises InvalidHandleError: If the page or its process is closed.
        """
        transport: RpcTransport = self._registry.require_live(self)
        if frame is None:
            frame = self._frames.path
        try:
            return transport.call(self._handle_id, member, args, frame=frame)
        except InvalidHandleError:
            self._registry.mark_closed(self)
            raise

    def _get(self, name: str, kind: type) -> Any:
        """Read and decode one page property.

        :param name: Engine property name.
        :param kind: Expected value type.
        :returns: Decoded value.
        """
        return decode_value(kind, self._call(name))

    def _set(self, name: str, value: object) -> None:
        """Write one page property.

        :param name: Engine property name.
        :param value: Value to write; encoded by the codec.
        """
        self._call("set" + name[0].upper() + name[1:], value)

    # Navigation

    def open(self, url: str) -> None:
        """Load ``url`` and wait until the engine finished loading it.

        The frame context returns to the top-level document.

        :param url: Address to load.
        :raises RemoteError: If the engine fails to load the address.
        """
        self._frames.reset()
        self._call("open", url)

    @property
    def can_go_back(self) -> bool:
        """Report whether there is an earlier history entry.

        :returns: ``True`` when :meth:`go_back` would navigate.
        """
        return self._get("canGoBack", bool)

    @property
    def can_go_forward(self) -> bool:
        """Report whether there is a later history entry.

        :returns: ``True`` when :meth:`go_forward` would navigate.
        """
        return self._get("canGoForward", bool)

    def go(self, index: int) -> bool:
        """Move ``index`` steps through the navigation history.

        The frame context returns to the top-level document.

        :param index: Relative history offset.
        :returns: ``True`` when the navigation happened.
        """
        self._frames.reset()
        return bool(self._call("go", index))

    def go_back(self) -> None:
        """Navigate one step back in history and return to the top-level document."""
        self._frames.reset()
        self._call("goBack")

    def go_forward(self) -> None:
        """Navigate one step forward in history and return to the top-level document."""
        self._frames.reset()
        self._call("goForward")

    def reload(self) -> None:
        """Reload the current document and return to the top-level document."""
        self._frames.reset()
        self._call("reload")

    def stop(self) -> None:
        """Stop loading the current document."""
        self._call("stop")

    @property
    def navigation_locked(self) -> bool:
        """Whether the page refuses to navigate away from its current URL."""
        return self._get("navigationLocked", bool)

    @navigation_locked.setter
    def navigation_locked(self, value: bool) -> None:
        """Lock or unlock navigation.

        :param value: New lock state.
        """
        self._set("navigationLocked", bool(value))

    @property
    def url(self) -> str:
        """Return the address of the top-level document.

        :returns: Current URL.
        """
        return self._get("url", str)

    @property
    def title(self) -> str:
        """Return the title of the top-level document.

        :returns: Document title.
        """
        return self._get("title", str)

    @property
    def window_name(self) -> str:
        """Return the name the page was opened under.

        :returns: Window name, or ``""``.
        """
        return self._get("windowName", str)

    # Content

    @property
    def content(self) -> str:
        """HTML of the top-level document."""
        return self._get("content", str)

    @content.setter
    def content(self, value: str) -> None:
        """Replace the document, keeping the current URL.

        :param value: HTML markup.
        """
        self.set_content(value)

    def set_content(self, content: str, url: str | None = None) -> None:
        """Replace the document, optionally pretending it was served from ``url``.

        :param content: HTML markup.
        :param url: Base URL for relative links, or ``None`` to keep the current one.
        """
        self._frames.reset()
        if url is None:
            self._set("content", content)
            return
        self._call("setContentAndUrl", content, url)

    @property
    def plain_text(self) -> str:
        """Return the text of the top-level document without markup.

        :returns: Plain text.
        """
        return self._get("plainText", str)

    # Frames

    @property
    def frame_count(self) -> int:
        """Number of frames in the top-level frameset."""
        return decode_value(int, self._call("framesCount", frame=_TOP_LEVEL))

    @property
    def frame_names(self) -> list[str]:
        """Names of the frames in the top-level frameset, in document order."""
        return self._decode_names(self._call("framesName", frame=_TOP_LEVEL))

    @property
    def frame_name(self) -> str:
        """Return the name of the selected frame.

        :returns: Frame name, or ``""`` at the top level.
        """
        return self._get("frameName", str)

    @property
    def frame_url(self) -> str:
        """Return the address of the selected frame.

        :returns: Frame URL.
        """
        return self._get("frameUrl", str)

    @property
    def frame_title(self) -> str:
        """Return the title of the selected frame.

        :returns: Frame title.
        """
        return self._get("frameTitle", str)

    @property
    def frame_plain_text(self) -> str:
        """Return the text of the selected frame without markup.

        :returns: Plain text.
        """
        return self._get("framePlainText", str)

    @property
    def frame_content(self) -> str:
        """HTML of the currently selected frame."""
        return self._get("frameContent", str)

    @frame_content.setter
    def frame_content(self, value: str) -> None:
        """Replace the document of the selected frame.

        :param value: HTML markup.
        """
        self._set("frameContent", value)

    @property
    def focused_frame_name(self) -> str:
        """Name of the frame holding input focus, whatever frame is selected."""
        return self._get("focusedFrameName", str)

    def switch_to_frame_name(self, name: str) -> None:
        """Select a direct child of the current frame by name.

        :param name: Frame name.
        :raises FrameNotFoundError: If the current frame has no such child;
            the frame context is left unchanged.
        """
        child_names: list[str] = self._decode_names(self._call("framesName"))
        self._frames.switch_to_name(name, child_names)

    def switch_to_frame_position(self, index: int) -> None:
        """Select a direct child of the current frame by zero-based position.

        :param index: Frame position.
        :raises FrameNotFoundError: If ``index`` is out of range.
        """
        child_count: int = decode_value(int, self._call("framesCount"))
        self._frames.switch_to_position(index, child_count)

    def switch_to_main_frame(self) -> None:
        """Select the top-level document."""
        self._frames.reset()

    def switch_to_parent_frame(self) -> None:
        """Select the parent of the current frame; does nothing at the top level."""
        self._frames.switch_to_parent()

    def switch_to_focused_frame(self) -> None:
        """Select the frame that currently holds input focus."""
        raw_path: object = self._call("focusedFramePath", frame=_TOP_LEVEL)
        self._frames.adopt(self._decode_names(raw_path))

    @staticmethod
    def _decode_names(raw: object) -> list[str]:
        """Decode a list of frame names.

        :param raw: Wire value.
        :returns: Names; ``[]`` for a null value.
        :raises ProtocolError: If the value is not an array.
        """
        if raw is None:
            return []
        if isinstance(raw, list) is False:
            raise ProtocolError("Frame name list must be an array")
        return [str(item) for item in raw]

    # Child pages

    @property
    def owns_pages(self) -> bool:
        """Whether windows opened by this page are tracked as child pages."""
        return self._get("ownsPages", bool)

    @owns_pages.setter
    def owns_pages(self, value: bool) -> None:
        """Enable or disable child page tracking.

        :param value: New ownership flag.
        """
        self._set("ownsPages", bool(value))

    def pages(self) -> list["WebPage"]:
        """Return the live child pages opened by this page, in creation order.

        Only windows opened while :attr:`owns_pages` is enabled are tracked.

        :returns: Child page handles.
        """
        raw: object = self._call("pages", frame=_TOP_LEVEL)
        if raw is None:
            return []
        if isinstance(raw, list) is False:
            raise ProtocolError("Child page list must be an array")
        return self._registry.adopt_children(self, raw)

    def page_window_names(self) -> list[str]:
        """Return the window names of tracked child pages, in creation order.

        Children opened without a target name are left out.

        :returns: Window names.
        """
        names: list[str] = []
        for child in self.pages():
            window_name: str = self._registry.window_name_of(child)
            if window_name != "":
                names.append(window_name)
        return names

    # Script evaluation

    def evaluate_javascript(self, script: str) -> Any:
        """Evaluate a function source in the current frame and return its result.

        :param script: Function source, e.g. ``"function() { return document.title }"``.
        :returns: JSON-decoded result.
        """
        return self._call("evaluateJavaScript", script)

    def evaluate_async(self, script: str, delay_ms: int = 0) -> None:
        """Schedule a function source to run in the current frame after ``delay_ms``.

        :param script: Function source.
        :param delay_ms: Delay in milliseconds.
        """
        self._call("evaluateAsync", script, delay_ms)

    def include_js(self, url: str) -> None:
        """Load a remote script into the current frame and wait for it.

        :param url: Script address.
        """
        self._call("includeJs", url)

    def inject_js(self, filename: str) -> bool:
        """Inject a local script file into the current frame.

        :param filename: Script path, resolved against :attr:`library_path`.
        :returns: ``True`` when the engine injected the script.
        """
        return bool(self._call("injectJs", filename))

    @property
    def library_path(self) -> str:
        """Directory used to resolve relative :meth:`inject_js` paths."""
        return self._get("libraryPath", str)

    @library_path.setter
    def library_path(self, value: str) -> None:
        """Set the directory used to resolve injected scripts.

        :param value: Directory path.
        """
        self._set("libraryPath", value)

    # Input

    def send_mouse_event(self, event_type: str, x: int, y: int, button: str = "left") -> None:
        """Send a mouse event such as ``click`` or ``mousedown``.

        :param event_type: Engine event name.
        :param x: Horizontal page coordinate.
        :param y: Vertical page coordinate.
        :param button: Mouse button name.
        """
        self._call("sendMouseEvent", event_type, x, y, button)

    def send_keyboard_event(self, event_type: str, key: str | int, modifier: int = 0) -> None:
        """Send a keyboard event such as ``keypress``.

        :param event_type: Engine event name.
        :param key: Text to type or an engine key code.
        :param modifier: Engine modifier bit mask.
        """
        self._call("sendKeyboardEvent", event_type, key, modifier)

    def upload_file(self, selector: str, filename: str) -> None:
        """Attach a file to the file input matching ``selector``.

        :param selector: CSS selector of a file input.
        :param filename: Local file path.
        """
        self._call("uploadFile", selector, filename)

    # Cookies and headers

    @property
    def cookies(self) -> list[Cookie]:
        """Return the cookies visible to the page.

        :returns: Cookies in engine order.
        """
        return decode_cookies(self._call("cookies"))

    @cookies.setter
    def cookies(self, value: list[Cookie]) -> None:
        """Replace the page's cookie jar.

        :param value: Cookies to install.
        """
        self._set("cookies", list(value))

    def add_cookie(self, cookie: Cookie) -> bool:
        """Add one cookie to the page's jar.

        :param cookie: Cookie to add.
        :returns: ``True`` when the engine accepted the cookie.
        """
        return bool(self._call("addCookie", cookie))

    def delete_cookie(self, name: str) -> bool:
        """Delete every cookie named ``name``.

        :param name: Cookie name.
        :returns: ``True`` when a cookie was removed.
        """
        return bool(self._call("deleteCookie", name))

    def clear_cookies(self) -> None:
        """Remove every cookie from the page's jar."""
        self._call("clearCookies")

    @property
    def custom_headers(self) -> httpx.Headers:
        """Extra headers sent with every request made by the page."""
        return self._get("customHeaders", httpx.Headers)

    @custom_headers.setter
    def custom_headers(self, value: httpx.Headers | Mapping[str, str]) -> None:
        """Replace the extra request headers.

        :param value: Header map; the previous set is discarded.
        """
        self._set("customHeaders", httpx.Headers(value))

    # Layout and rendering

    @property
    def clip_rect(self) -> Rect:
        """Area rendered by :meth:`render`; the zero rectangle renders the whole page."""
        return self._get("clipRect", Rect)

    @clip_rect.setter
    def clip_rect(self, value: Rect) -> None:
        """Set the area rendered by :meth:`render`.

        :param value: Clip rectangle.
        """
        self._set("clipRect", value)

    @property
    def scroll_position(self) -> Position:
        """Return the scroll offset of the page.

        :returns: Scroll position.
        """
        return self._get("scrollPosition", Position)

    @scroll_position.setter
    def scroll_position(self, value: Position) -> None:
        """Scroll the page.

        :param value: New scroll position.
        """
        self._set("scrollPosition", value)

    @property
    def viewport_size(self) -> ViewportSize:
        """Return the size of the layout viewport.

        :returns: Viewport size in pixels.
        """
        return self._get("viewportSize", ViewportSize)

    @viewport_size.setter
    def viewport_size(self, value: ViewportSize) -> None:
        """Resize the layout viewport.

        :param value: Viewport size in pixels.
        """
        self._set("viewportSize", value)

    @property
    def zoom_factor(self) -> float:
        """Return the zoom factor used for layout and rendering.

        :returns: Zoom factor.
        """
        return self._get("zoomFactor", float)

    @zoom_factor.setter
    def zoom_factor(self, value: float) -> None:
        """Set the zoom factor.

        :param value: Zoom factor, ``1.0`` for no zoom.
        """
        self._set("zoomFactor", float(value))

    @property
    def paper_size(self) -> PaperSize:
        """Paper layout used when rendering to PDF; the zero value means unset."""
        return self._get("paperSize", PaperSize)

    @paper_size.setter
    def paper_size(self, value: PaperSize) -> None:
        """Set the paper layout used for PDF rendering.

        :param value: Paper size.
        """
        self._set("paperSize", value)

    def render(self, filename: str, fmt: str | None = None, quality: int | None = None) -> None:
        """Render the page to an image or PDF file.

        :param filename: Output path; the extension selects the format unless ``fmt`` is given.
        :param fmt: Optional explicit format, e.g. ``"png"`` or ``"pdf"``.
        :param quality: Optional image quality between 0 and 100.
        :raises RemoteError: If the engine could not write the file.
        """
        options: dict[str, object] = {}
        if fmt is not None:
            options["format"] = fmt
        if quality is not None:
            options["quality"] = quality
        self._call("render", filename, options)

    def render_base64(self, fmt: str = "png") -> str:
        """Render the page and return the image as base64 text.

        :param fmt: Image format.
        :returns: Base64-encoded image data.
        """
        return decode_value(str, self._call("renderBase64", fmt))

    # Settings and storage

    @property
    def settings(self) -> WebPageSettings:
        """Return the page settings.

        :returns: Settings snapshot; assign it back to apply changes.
        """
        return self._get("settings", WebPageSettings)

    @settings.setter
    def settings(self, value: WebPageSettings) -> None:
        """Apply page settings.

        :param value: Settings to apply.
        """
        self._set("settings", value)

    @property
    def offline_storage_path(self) -> str:
        """Return the offline storage directory of the engine.

        :returns: Directory path.
        """
        return self._get("offlineStoragePath", str)

    @property
    def offline_storage_quota(self) -> int:
        """Return the offline storage quota of the engine.

        :returns: Quota in bytes.
        """
        return self._get("offlineStorageQuota", int)
