"""Public package API for phantombridge."""

from phantombridge.api import open_process
from phantombridge.errors import ChannelError
from phantombridge.errors import FrameNotFoundError
from phantombridge.errors import InvalidHandleError
from phantombridge.errors import LaunchError
from phantombridge.errors import PhantomBridgeError
from phantombridge.errors import PhantomTimeoutError
from phantombridge.errors import ProcessStateError
from phantombridge.errors import ProtocolError
from phantombridge.errors import RegistryError
from phantombridge.errors import RemoteError
from phantombridge.errors import TransportError
from phantombridge.runtime import Process
from phantombridge.runtime import ProcessState
from phantombridge.values import Cookie
from phantombridge.values import PaperMargin
from phantombridge.values import PaperSize
from phantombridge.values import Position
from phantombridge.values import Rect
from phantombridge.values import ViewportSize
from phantombridge.values import WebPageSettings
from phantombridge.webpage import WebPage

__all__: list[str] = [
    "open_process",
    "Process",
    "ProcessState",
    "WebPage",
    "Cookie",
    "PaperMargin",
    "PaperSize",
    "Position",
    "Rect",
    "ViewportSize",
    "WebPageSettings",
    "PhantomBridgeError",
    "LaunchError",
    "PhantomTimeoutError",
    "ChannelError",
    "TransportError",
    "ProtocolError",
    "RemoteError",
    "RegistryError",
    "InvalidHandleError",
    "ProcessStateError",
    "FrameNotFoundError",
]
