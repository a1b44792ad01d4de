"""Tests for frame context navigation."""

import pytest

from phantombridge import FrameNotFoundError
from phantombridge import Process
from phantombridge.frames import FrameContext

FRAMESET: str = (
    '<html><frameset rows="*,*">'
    '<frame name="FRAME1" src="/frame1.html"/>'
    '<frame name="FRAME2" src="/frame2.html" autofocus/>'
    "</frameset></html>"
)
BASE_URL: str = "http://fake.test/"


def test_context_starts_at_top_level() -> None:
    """A fresh context selects the top-level document."""
    context = FrameContext()
    assert context.is_top_level is True
    assert context.path == ()


def test_switch_by_name_and_position_builds_path() -> None:
    """Valid switches append selectors; parent and reset unwind them."""
    context = FrameContext()
    context.switch_to_name("FRAME2", ["FRAME1", "FRAME2"])
    context.switch_to_position(0, 1)
    assert context.path == ("FRAME2", 0)

    context.switch_to_parent()
    assert context.path == ("FRAME2",)
    context.reset()
    assert context.is_top_level is True

    context.switch_to_parent()
    assert context.path == ()


def test_failed_switch_leaves_state_unchanged() -> None:
    """Unknown names and out-of-range positions raise without moving."""
    context = FrameContext()
    context.switch_to_name("FRAME1", ["FRAME1"])

    with pytest.raises(FrameNotFoundError) as excinfo:
        context.switch_to_name("MISSING", ["CHILD"])
    assert excinfo.value.selector == "MISSING"
    assert context.path == ("FRAME1",)

    for index in (-1, 2, True):
        with pytest.raises(FrameNotFoundError):
            context.switch_to_position(index, 2)
    assert context.path == ("FRAME1",)


def test_adopt_replaces_path() -> None:
    """Adopting a path discards the previous selection."""
    context = FrameContext()
    context.switch_to_name("A", ["A"])
    context.adopt(["B", "C"])
    assert context.path == ("B", "C")


def test_frameset_listing_is_top_level(process: Process) -> None:
    """Frame count and names describe the top-level frameset in document order."""
    page = process.create_web_page()
    page.set_content(FRAMESET, BASE_URL)
    assert page.frame_count == 2
    assert page.frame_names == ["FRAME1", "FRAME2"]

    page.switch_to_frame_name("FRAME1")
    assert page.frame_count == 2
    assert page.frame_names == ["FRAME1", "FRAME2"]


def test_frame_accessors_follow_selected_frame(process: Process) -> None:
    """Name, URL and content accessors apply to the selected frame."""
    page = process.create_web_page()
    page.set_content(FRAMESET, BASE_URL)

    page.switch_to_frame_name("FRAME2")
    assert page.frame_name == "FRAME2"
    assert page.frame_path == ("FRAME2",)

    page.switch_to_main_frame()
    page.switch_to_frame_position(1)
    assert page.frame_url == "http://fake.test/frame2.html"

    page.frame_content = "<html><head><title>TEST TITLE</title></head><body>BAR</body></html>"
    assert page.frame_title == "TEST TITLE"
    assert page.frame_plain_text == "BAR"
    assert page.title == ""


def test_switch_to_missing_frame_keeps_context(process: Process) -> None:
    """A missing frame name raises and the previous frame stays selected."""
    page = process.create_web_page()
    page.set_content(FRAMESET, BASE_URL)
    page.switch_to_frame_name("FRAME1")

    with pytest.raises(FrameNotFoundError):
        page.switch_to_frame_name("NOPE")
    with pytest.raises(FrameNotFoundError):
        page.switch_to_frame_position(5)
    assert page.frame_path == ("FRAME1",)
    assert page.frame_name == "FRAME1"


def test_focused_frame_is_independent_of_selection(process: Process) -> None:
    """The focused frame is reported whatever frame is selected."""
    page = process.create_web_page()
    page.set_content(FRAMESET, BASE_URL)
    page.switch_to_frame_name("FRAME1")
    assert page.focused_frame_name == "FRAME2"
    assert page.frame_name == "FRAME1"

    page.switch_to_focused_frame()
    assert page.frame_path == ("FRAME2",)


def test_open_resets_frame_context(process: Process) -> None:
    """Loading a new document returns to the top-level state."""
    page = process.create_web_page()
    page.set_content(FRAMESET, BASE_URL)
    page.switch_to_frame_name("FRAME2")
    page.open("http://fake.test/other.html")
    assert page.frame_path == ()
    assert page.frame_name == ""


def test_contexts_are_scoped_per_handle(process: Process) -> None:
    """Two pages keep separate frame selections."""
    first = process.create_web_page()
    second = process.create_web_page()
    for page in (first, second):
        page.set_content(FRAMESET, BASE_URL)

    first.switch_to_frame_name("FRAME1")
    second.switch_to_frame_name("FRAME2")
    assert first.frame_name == "FRAME1"
    assert second.frame_name == "FRAME2"


@pytest.mark.parametrize("navigate", ["go_back", "go_forward", "reload", "go"])
def test_history_navigation_resets_frame_context(process: Process, navigate: str) -> None:
    """Every navigation returns the handle to the top-level document."""
    page = process.create_web_page()
    page.set_content(FRAMESET, BASE_URL)
    page.switch_to_frame_name("FRAME2")

    if navigate == "go":
        page.go(-1)
    else:
        getattr(page, navigate)()
    assert page.frame_path == ()
    assert page.frame_name == ""
