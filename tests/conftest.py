"""Shared fixtures for phantombridge tests."""

import pathlib
import sys
from collections.abc import Callable
from collections.abc import Iterator

import pytest

from phantombridge import Process

FIXTURES_DIR: pathlib.Path = pathlib.Path(__file__).parent / "fixtures"
FakeProcessFactory = Callable[..., Process]


@pytest.fixture
def fixture_script() -> Callable[[str], str]:
    """Return a resolver for engine stand-in scripts under ``tests/fixtures``.

    :returns: Function mapping a fixture stem to its absolute path.
    """

    def resolve(stem: str) -> str:
        return str(FIXTURES_DIR / f"{stem}.py")

    return resolve


@pytest.fixture
def make_process(fixture_script: Callable[[str], str]) -> Iterator[FakeProcessFactory]:
    """Build unopened processes that run an engine stand-in under this interpreter.

    Every process created through the factory is closed at teardown.

    :param fixture_script: Fixture script resolver.
    :yields: Factory accepting ``script`` (fixture stem) and ``Process`` keyword arguments.
    """
    created: list[Process] = []

    def factory(script: str = "fake_engine", **kwargs: object) -> Process:
        options: dict[str, object] = {"bin_path": sys.executable, "script_path": fixture_script(script)}
        options.update(kwargs)
        built: Process = Process(**options)
        created.append(built)
        return built

    yield factory
    for item in created:
        item.close()


@pytest.fixture
def process(make_process: FakeProcessFactory) -> Process:
    """Open a fake-engine process for one test.

    :param make_process: Process factory.
    :returns: Open process, closed at teardown.
    """
    opened: Process = make_process()
    opened.open()
    return opened
