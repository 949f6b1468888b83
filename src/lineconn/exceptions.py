"""Errors raised by line connections."""

from typing import Optional


class LineConnError(Exception):
    """Base class for all line connection errors."""


class AlreadyConnectedError(LineConnError):
    """connect() was called on a connection that is already connected."""


class ConnectError(LineConnError):
    """The transport could not establish the connection."""

    def __init__(self, message: str, host: Optional[str] = None, port: Optional[int] = None):
        super().__init__(message)
        self.host = host
        self.port = port


class NotConnectedError(LineConnError):
    """An I/O operation was attempted while not connected."""


class SendFailedError(LineConnError):
    """Writing or flushing a message failed."""


class ReceiveFailedError(LineConnError):
    """Reading a line failed for a reason other than orderly closure."""


class ConnectionClosedError(LineConnError):
    """The peer closed the stream while a line was awaited."""
