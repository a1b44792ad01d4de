"""Custom error types for phantombridge."""

import builtins


class PhantomBridgeError(Exception):
    """Base class for all phantombridge errors."""


class LaunchError(PhantomBridgeError):
    """Raised when the engine executable cannot be found or started."""


class PhantomTimeoutError(PhantomBridgeError, builtins.TimeoutError):
    """Raised when the engine does not become ready or a response never arrives."""


class ChannelError(PhantomBridgeError):
    """Raised when the local control endpoint cannot be bound."""


class TransportError(PhantomBridgeError):
    """Raised for channel-level faults, such as a crashed engine process."""


class ProtocolError(TransportError):
    """Raised for malformed messages on the control channel."""


class RemoteError(PhantomBridgeError):
    """Raised when the engine reports a failure for a well-formed request."""

    remote_message: str
    remote_code: str

    def __init__(self, remote_message: str, remote_code: str = "remote") -> None:
        """Initialize a remote failure wrapper.

        :param remote_message: Message supplied by the engine.
        :param remote_code: Error code supplied by the engine.
        """
        self.remote_message = remote_message
        self.remote_code = remote_code
        super().__init__(f"Engine reported {remote_code}: {remote_message}")


class RegistryError(PhantomBridgeError):
    """Raised when a page is requested from a process that is not open."""


class InvalidHandleError(RegistryError):
    """Raised when a page handle is used after its page or process closed."""


class ProcessStateError(PhantomBridgeError):
    """Raised when a process is opened twice or reopened after closing."""


class FrameNotFoundError(PhantomBridgeError):
    """Raised when a frame switch targets a frame that does not exist."""

    selector: str | int

    def __init__(self, selector: str | int, message: str | None = None) -> None:
        """Initialize a missing-frame error.

        :param selector: Frame name or position that could not be found.
        :param message: Optional override for the error text.
        """
        self.selector = selector
        if message is None:
            message = f"Frame not found in current frameset: {selector!r}"
        super().__init__(message)
