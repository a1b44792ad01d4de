"""Value types exchanged with the rendering engine."""

import datetime
from dataclasses import dataclass
from dataclasses import field


@dataclass(frozen=True)
class Rect:
    """Rectangle in page coordinates; the all-zero rectangle means "unset"."""

    top: int = 0
    left: int = 0
    width: int = 0
    height: int = 0

    def is_zero(self) -> bool:
        """Report whether this rectangle equals the unset value.

        :returns: ``True`` when every coordinate is zero.
        """
        return self == Rect()


@dataclass(frozen=True)
class Position:
    """Scroll offset of a page; the origin means "unset"."""

    top: int = 0
    left: int = 0

    def is_zero(self) -> bool:
        """Report whether this position equals the unset value.

        :returns: ``True`` when both offsets are zero.
        """
        return self == Position()


@dataclass(frozen=True)
class ViewportSize:
    """Viewport dimensions in pixels."""

    width: int = 0
    height: int = 0

    def is_zero(self) -> bool:
        """Report whether this size equals the unset value.

        :returns: ``True`` when both dimensions are zero.
        """
        return self == ViewportSize()


@dataclass(frozen=True)
class PaperMargin:
    """Print margins as CSS length strings."""

    top: str = ""
    bottom: str = ""
    left: str = ""
    right: str = ""


@dataclass(frozen=True)
class PaperSize:
    """Paper layout used when rendering to PDF.

    Either ``width``/``height`` or ``format`` is set, never synthesized from the
    other. ``margin`` is ``None`` when no margin was configured.
    """

    width: str = ""
    height: str = ""
    format: str = ""
    orientation: str = ""
    margin: PaperMargin | None = None

    def is_zero(self) -> bool:
        """Report whether this paper size equals the unset value.

        :returns: ``True`` when no field is configured.
        """
        return self == PaperSize()


@dataclass
class Cookie:
    """HTTP cookie as stored by the engine.

    ``expires`` is ``None`` for session cookies. ``raw_expires`` carries the
    HTTP date string; it is filled in by the engine when only ``expires`` was
    provided.
    """

    name: str
    value: str
    domain: str = ""
    path: str = ""
    expires: datetime.datetime | None = None
    raw_expires: str = ""
    secure: bool = False
    http_only: bool = False

    @property
    def is_session(self) -> bool:
        """Report whether this cookie lives only for the browser session.

        :returns: ``True`` when no expiry is set.
        """
        return self.expires is None and self.raw_expires == ""


@dataclass
class WebPageSettings:
    """Per-page engine settings."""

    javascript_enabled: bool = True
    load_images: bool = True
    local_to_remote_url_access_enabled: bool = False
    user_agent: str = ""
    user_name: str = ""
    password: str = ""
    xss_auditing_enabled: bool = False
    web_security_enabled: bool = True
    resource_timeout: int = 0
    extra: dict[str, object] = field(default_factory=dict)
