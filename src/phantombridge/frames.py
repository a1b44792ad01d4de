"""Per-page frame navigation state."""

from collections.abc import Sequence

from phantombridge.errors import FrameNotFoundError

FrameSelector = str | int


class FrameContext:
    """Track which frame of a page subsequent frame-scoped calls apply to.

    The state is a path of selectors from the top-level document. The empty
    path is the top-level document itself.
    """

    _path: list[FrameSelector]

    def __init__(self) -> None:
        """Start at the top-level document."""
        self._path = []

    @property
    def path(self) -> tuple[FrameSelector, ...]:
        """Return the current selector path.

        :returns: Selectors from the top-level document to the current frame.
        """
        return tuple(self._path)

    @property
    def is_top_level(self) -> bool:
        """Report whether the top-level document is selected.

        :returns: ``True`` when no frame is selected.
        """
        return len(self._path) == 0

    def switch_to_name(self, name: str, child_names: Sequence[str]) -> None:
        """Select a direct child frame by name.

        :param name: Frame name.
        :param child_names: Names of the current frame's direct children.
        :raises FrameNotFoundError: If no child carries ``name``.
        """
        if name not in child_names:
            raise FrameNotFoundError(name)
        self._path.append(name)

    def switch_to_position(self, index: int, child_count: int) -> None:
        """Select a direct child frame by zero-based position.

        :param index: Frame position.
        :param child_count: Number of direct children of the current frame.
        :raises FrameNotFoundError: If ``index`` is out of range.
        """
        if isinstance(index, bool) is True or index < 0 or index >= child_count:
            raise FrameNotFoundError(index)
        self._path.append(index)

    def switch_to_parent(self) -> None:
        """Select the parent frame; stays put at the top level."""
        if self._path:
            self._path.pop()

    def reset(self) -> None:
        """Select the top-level document."""
        self._path.clear()

    def adopt(self, path: Sequence[FrameSelector]) -> None:
        """Replace the current path, e.g. with the engine's focused-frame path.

        :param path: New selector path.
        """
        self._path = list(path)

    def __repr__(self) -> str:
        """Return the current path for debugging.

        :returns: Representation string.
        """
        return f"FrameContext(path={self._path!r})"
