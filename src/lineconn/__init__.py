"""Newline-delimited text messaging over a single TCP connection."""

from lineconn.async_connection import AsyncConnection
from lineconn.config.settings import ConnectionConfig
from lineconn.connection import Connection, ConnectionState
from lineconn.exceptions import (
    AlreadyConnectedError,
    ConnectError,
    ConnectionClosedError,
    LineConnError,
    NotConnectedError,
    ReceiveFailedError,
    SendFailedError,
)

__version__ = "0.1.0"
__all__ = [
    "Connection",
    "AsyncConnection",
    "ConnectionState",
    "ConnectionConfig",
    "LineConnError",
    "AlreadyConnectedError",
    "ConnectError",
    "NotConnectedError",
    "SendFailedError",
    "ReceiveFailedError",
    "ConnectionClosedError",
    "__version__",
]
