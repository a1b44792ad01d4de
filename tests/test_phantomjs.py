"""End-to-end tests against a real PhantomJS binary.

Skipped unless ``$PHANTOMJS_BIN`` (or ``phantomjs``) resolves to an executable.
"""

import dataclasses
import datetime
import http.server
import os
import shutil
import threading
from collections.abc import Iterator

import httpx
import pytest

from phantombridge import Cookie
from phantombridge import InvalidHandleError
from phantombridge import PaperMargin
from phantombridge import PaperSize
from phantombridge import Position
from phantombridge import Process
from phantombridge import Rect
from phantombridge import RegistryError
from phantombridge import WebPage
from phantombridge import open_process
from phantombridge.codec import format_http_date
from phantombridge.runtime import BIN_PATH_ENV
from phantombridge.runtime import DEFAULT_BIN_PATH

pytestmark = pytest.mark.skipif(
    shutil.which(os.environ.get(BIN_PATH_ENV, DEFAULT_BIN_PATH)) is None,
    reason="phantomjs executable not available",
)

FRAMESET: str = (
    '<html><frameset rows="*,*">'
    '<frame name="FRAME1" src="/frame1.html"/>'
    '<frame name="FRAME2" src="/frame2.html"/>'
    "</frameset></html>"
)
ROUTES: dict[str, str] = {
    "/": "<html><body>OK</body></html>",
    "/frames.html": FRAMESET,
    "/frame1.html": "<html><head><title>TITLE 1</title></head><body>FOO</body></html>",
    "/frame2.html": "<html><head><title>TITLE 2</title></head><body><input autofocus/>BAR</body></html>",
    "/link.html": '<html><body><a id="link" target="win1" href="/win1.html">CLICK ME</a></body></html>',
    "/win1.html": "<html><body>WIN1</body></html>",
}
CLICK_LINK: str = 'function() { document.body.querySelector("#link").click() }'


class _RouteHandler(http.server.BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        body: str | None = ROUTES.get(self.path)
        if body is None:
            self.send_error(404)
            return
        payload: bytes = body.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/html")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format: str, *args: object) -> None:
        return


@pytest.fixture(scope="module")
def site() -> Iterator[str]:
    """Serve :data:`ROUTES` on a local port.

    :yields: Base URL without a trailing slash.
    """
    server: http.server.ThreadingHTTPServer = http.server.ThreadingHTTPServer(("127.0.0.1", 0), _RouteHandler)
    thread: threading.Thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture(scope="module")
def engine() -> Iterator[Process]:
    """Open one real engine for the module."""
    process: Process = open_process()
    try:
        yield process
    finally:
        process.close()


@pytest.fixture
def page(engine: Process) -> Iterator[WebPage]:
    """Create a fresh page and close it after the test."""
    created: WebPage = engine.create_web_page()
    try:
        yield created
    finally:
        created.close()


def test_open_returns_normalized_content(page: WebPage, site: str) -> None:
    page.open(site + "/")
    assert page.content == "<html><head></head><body>OK</body></html>"
    assert page.can_go_back is False
    assert page.can_go_forward is False


def test_plain_text_and_scroll_position(page: WebPage) -> None:
    page.content = "<html><body>FOO</body></html>"
    assert page.plain_text == "FOO"

    page.scroll_position = Position(top=10, left=20)
    assert page.scroll_position == Position(top=10, left=20)


def test_clip_rect(page: WebPage) -> None:
    assert page.clip_rect == Rect()
    page.clip_rect = Rect(top=1, left=2, width=3, height=4)
    assert page.clip_rect == Rect(top=1, left=2, width=3, height=4)


def test_library_path_defaults_to_process_path(engine: Process, page: WebPage) -> None:
    assert page.library_path == engine.path
    page.library_path = "/tmp"
    assert page.library_path == "/tmp"


def test_storage_and_flags(page: WebPage) -> None:
    assert page.offline_storage_path != ""
    assert page.offline_storage_quota != 0
    page.navigation_locked = True
    assert page.navigation_locked is True
    page.owns_pages = True
    assert page.owns_pages is True


def test_frames(page: WebPage, site: str) -> None:
    page.open(site + "/frames.html")
    assert page.frame_count == 2
    assert page.frame_names == ["FRAME1", "FRAME2"]
    assert page.focused_frame_name == "FRAME2"

    page.switch_to_frame_name("FRAME1")
    assert page.frame_name == "FRAME1"
    assert page.frame_title == "TITLE 1"
    assert page.frame_plain_text == "FOO"
    assert page.frame_url == site + "/frame1.html"

    page.switch_to_main_frame()
    page.switch_to_frame_position(1)
    page.frame_content = "<html><body>NEW CONTENT</body></html>"
    assert page.frame_content == "<html><head></head><body>NEW CONTENT</body></html>"


def test_child_pages(page: WebPage, site: str) -> None:
    page.owns_pages = True
    page.open(site + "/link.html")
    page.evaluate_javascript(CLICK_LINK)

    assert page.page_window_names() == ["win1"]
    children: list[WebPage] = page.pages()
    assert len(children) == 1
    assert children[0].url == site + "/win1.html"
    children[0].close()


def test_cookies_round_trip(page: WebPage) -> None:
    expiry: datetime.datetime = datetime.datetime(2099, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)
    cookies: list[Cookie] = [
        Cookie(name="NAME1", value="VALUE1", domain=".example1.com", path="/", secure=True, http_only=True),
        Cookie(name="NAME2", value="VALUE2", domain=".example2.com", path="/path", expires=expiry),
    ]
    page.cookies = cookies

    assert page.cookies == [
        cookies[0],
        dataclasses.replace(cookies[1], raw_expires=format_http_date(expiry)),
    ]


def test_custom_headers_round_trip(page: WebPage) -> None:
    headers = httpx.Headers({"FOO": "BAR", "BAZ": "BAT"})
    page.custom_headers = headers
    assert page.custom_headers == headers


@pytest.mark.parametrize(
    "size",
    [
        PaperSize(width="5in", height="10in"),
        PaperSize(format="A4"),
        PaperSize(orientation="landscape"),
        PaperSize(margin=PaperMargin(top="1in", bottom="2in", left="3in", right="4in")),
    ],
    ids=["width-height", "format", "orientation", "margin"],
)
def test_paper_size(page: WebPage, size: PaperSize) -> None:
    assert page.paper_size == PaperSize()
    page.paper_size = size
    assert page.paper_size == size


def test_page_window_names_from_set_content(page: WebPage) -> None:
    page.owns_pages = True
    page.content = '<html><body><a id="link" target="win1" href="/win1.html">CLICK ME</a></body></html>'
    page.evaluate_javascript(CLICK_LINK)
    assert page.page_window_names() == ["win1"]
    for child in page.pages():
        child.close()


def test_popups_are_not_children_without_ownership(page: WebPage, site: str) -> None:
    page.open(site + "/link.html")
    page.evaluate_javascript(CLICK_LINK)
    assert page.pages() == []


def test_close_invalidates_handles() -> None:
    process: Process = open_process()
    try:
        page: WebPage = process.create_web_page()
        page.content = "<html><body>FOO</body></html>"
    finally:
        process.close()

    assert page.is_closed is True
    with pytest.raises(InvalidHandleError):
        _ = page.plain_text
    with pytest.raises(RegistryError):
        process.create_web_page()
