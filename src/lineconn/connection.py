"""Blocking line-oriented TCP connection."""

import logging
import socket
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Optional, Tuple

from lineconn.config.settings import ConnectionConfig
from lineconn.exceptions import (
    AlreadyConnectedError,
    ConnectError,
    ConnectionClosedError,
    NotConnectedError,
    ReceiveFailedError,
    SendFailedError,
)

logger = logging.getLogger(__name__)

TERMINATOR = b"\n"


class ConnectionState(Enum):
    """Connection lifecycle state."""

    UNCONNECTED = "unconnected"
    CONNECTED = "connected"
    CLOSED = "closed"


def encode_message(message: str, config: ConnectionConfig) -> bytes:
    """
    Encode a message for the wire and append the line terminator.

    Args:
        message: Text to send
        config: Connection settings providing the codec

    Returns:
        Encoded bytes ending in a single newline
    """
    return message.encode(config.encoding, config.encoding_errors) + TERMINATOR


def decode_line(raw: bytes, config: ConnectionConfig) -> str:
    """
    Decode a received line, dropping its terminator.

    A ``\\r`` directly before the newline is removed when
    ``config.strip_carriage_return`` is set. An unterminated final fragment
    is decoded as-is.

    Args:
        raw: Bytes read from the stream, including the newline if present
        config: Connection settings providing the codec

    Returns:
        The line's text
    """
    if raw.endswith(TERMINATOR):
        raw = raw[:-1]
        if config.strip_carriage_return and raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw.decode(config.encoding, config.encoding_errors)


def _close_quietly(resource, name: str) -> None:
    """Close a resource, logging instead of raising on failure."""
    try:
        resource.close()
    except Exception as e:
        logger.warning("Error closing %s: %s", name, e)


def _transport_open(sock: socket.socket) -> bool:
    # Any failure to query the socket means it is not usable.
    try:
        if sock.fileno() == -1:
            return False
        sock.getpeername()
        return True
    except Exception:
        return False


@dataclass
class _Streams:
    """Buffered read and write ends of a connected socket."""

    reader: BinaryIO
    writer: BinaryIO


class Connection:
    """
    A TCP connection exchanging newline-terminated text messages.

    The connection is created unconnected, or connected when it wraps a
    socket that already has a peer (e.g. one returned by ``accept()``).
    ``disconnect`` moves it to the terminal CLOSED state; use it as a
    context manager to guarantee that happens exactly once.

    One thread may call ``send`` while another calls ``receive_line``.
    Concurrent senders or concurrent receivers must be serialized by
    the caller.
    """

    def __init__(
        self,
        sock: Optional[socket.socket] = None,
        config: Optional[ConnectionConfig] = None,
    ):
        """
        Initialize the connection.

        Args:
            sock: Optional socket to own. If it is already connected the
                  connection starts CONNECTED, otherwise ``connect`` will
                  connect this socket in place.
            config: Optional settings; defaults are used when None.
        """
        self.config = config if config is not None else ConnectionConfig()
        self._socket: Optional[socket.socket] = sock
        self._streams: Optional[_Streams] = None
        self._state = ConnectionState.UNCONNECTED

        if sock is not None and _transport_open(sock):
            self._attach(sock)

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def peer_address(self) -> Optional[Tuple[str, int]]:
        """Address of the remote side, or None when unavailable."""
        if self._socket is None:
            return None
        try:
            return self._socket.getpeername()
        except OSError:
            return None

    def is_connected(self) -> bool:
        """
        Check whether the connection can be used for I/O.

        Never raises; a transport that cannot be queried counts as not
        connected.
        """
        return (
            self._state is ConnectionState.CONNECTED
            and self._socket is not None
            and _transport_open(self._socket)
        )

    def connect(self, host: str, port: int) -> None:
        """
        Connect to a remote endpoint.

        Args:
            host: Hostname or IP address
            port: Port number

        Raises:
            AlreadyConnectedError: If the connection is already connected
            ConnectError: If the transport fails or the connection is closed
        """
        if self._state is ConnectionState.CONNECTED:
            raise AlreadyConnectedError(f"Already connected to {self.peer_address}")
        if self._state is ConnectionState.CLOSED:
            raise ConnectError("Connection is closed", host, port)

        timeout = self.config.connect_timeout
        try:
            if self._socket is None:
                sock = socket.create_connection((host, port), timeout=timeout)
            else:
                sock = self._socket
                sock.settimeout(timeout)
                sock.connect((host, port))
        except OSError as e:
            logger.debug("Connect to %s:%s failed: %s", host, port, e)
            raise ConnectError(
                f"Failed to connect to {host}:{port}: {e}", host, port
            ) from e

        self._attach(sock)
        logger.info("Connected to %s:%s", host, port)

    def _attach(self, sock: socket.socket) -> None:
        buffering = self.config.buffer_size
        # Reads block until data, closure or error.
        sock.settimeout(None)
        self._socket = sock
        self._streams = _Streams(
            reader=sock.makefile("rb", buffering=buffering),
            writer=sock.makefile("wb", buffering=buffering),
        )
        self._state = ConnectionState.CONNECTED

    def _require_streams(self) -> _Streams:
        if not self.is_connected() or self._streams is None:
            raise NotConnectedError("Not connected")
        return self._streams

    def send(self, message: str) -> None:
        """
        Send a message followed by a newline and flush it.

        Newlines inside ``message`` split it into several lines on the
        receiving side.

        Args:
            message: Text to send

        Raises:
            NotConnectedError: If not connected
            SendFailedError: If encoding, writing or flushing fails
        """
        streams = self._require_streams()
        try:
            data = encode_message(message, self.config)
            streams.writer.write(data)
            streams.writer.flush()
        except (OSError, ValueError) as e:
            raise SendFailedError(f"Failed to send message: {e}") from e
        logger.debug("Sent %d bytes to %s", len(data), self.peer_address)

    def receive_line(self) -> str:
        """
        Block until a full line arrives and return it without the newline.

        Returns:
            The received line

        Raises:
            NotConnectedError: If not connected
            ConnectionClosedError: If the peer closed the stream
            ReceiveFailedError: If reading or decoding fails
        """
        streams = self._require_streams()
        try:
            raw = streams.reader.readline()
        except (OSError, ValueError) as e:
            raise ReceiveFailedError(f"Failed to receive line: {e}") from e

        if not raw:
            raise ConnectionClosedError("Connection closed by peer")

        try:
            return decode_line(raw, self.config)
        except UnicodeError as e:
            raise ReceiveFailedError(f"Failed to decode line: {e}") from e

    def disconnect(self) -> None:
        """
        Close the connection and release its resources.

        Safe to call repeatedly, also from another thread while a
        ``receive_line`` is blocked; that call then fails with
        ConnectionClosedError. Errors during teardown are logged, never
        raised.
        """
        if self._state is ConnectionState.CLOSED:
            return

        streams, sock = self._streams, self._socket
        self._streams = None
        self._socket = None
        self._state = ConnectionState.CLOSED

        if streams is not None and sock is not None:
            # A blocked readline holds the reader's lock until it wakes.
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except Exception as e:
                logger.debug("Error shutting down socket: %s", e)
        if streams is not None:
            _close_quietly(streams.reader, "reader")
            _close_quietly(streams.writer, "writer")
        if sock is not None:
            _close_quietly(sock, "socket")
        logger.info("Disconnected")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def __repr__(self) -> str:
        return f"<Connection state={self._state.value} peer={self.peer_address}>"
