"""Asynchronous line-oriented TCP connection using asyncio."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from lineconn.config.settings import ConnectionConfig
from lineconn.connection import (
    TERMINATOR,
    ConnectionState,
    decode_line,
    encode_message,
)
from lineconn.exceptions import (
    AlreadyConnectedError,
    ConnectError,
    ConnectionClosedError,
    NotConnectedError,
    ReceiveFailedError,
    SendFailedError,
)

logger = logging.getLogger(__name__)


@dataclass
class _AsyncStreams:
    """Reader and writer of a connected asyncio stream."""

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter


class AsyncConnection:
    """
    Asyncio counterpart of :class:`lineconn.connection.Connection`.

    I/O operations are coroutines; ``receive_line`` suspends the calling
    task until a line, end-of-stream or an error arrives. Cancelling the
    awaiting task is the way to abandon a pending read.
    """

    def __init__(
        self,
        reader: Optional[asyncio.StreamReader] = None,
        writer: Optional[asyncio.StreamWriter] = None,
        config: Optional[ConnectionConfig] = None,
    ):
        """
        Initialize async connection.

        Args:
            reader: Stream reader of an already connected peer
            writer: Stream writer of an already connected peer
            config: Optional settings; defaults are used when None.
        """
        if (reader is None) != (writer is None):
            raise ValueError("reader and writer must be given together")

        self.config = config if config is not None else ConnectionConfig()
        self._streams: Optional[_AsyncStreams] = None
        self._state = ConnectionState.UNCONNECTED
        # Start of a line longer than the reader limit, kept across cancellation.
        self._pending = bytearray()

        if reader is not None and writer is not None and not writer.is_closing():
            self._streams = _AsyncStreams(reader, writer)
            self._state = ConnectionState.CONNECTED

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def peer_address(self) -> Optional[Tuple[str, int]]:
        """Address of the remote side, or None when unavailable."""
        if self._streams is None:
            return None
        return self._streams.writer.get_extra_info("peername")

    def is_connected(self) -> bool:
        """Check whether the connection can be used for I/O. Never raises."""
        try:
            return (
                self._state is ConnectionState.CONNECTED
                and self._streams is not None
                and not self._streams.writer.is_closing()
            )
        except Exception:
            return False

    async def connect(self, host: str, port: int) -> None:
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

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self.config.connect_timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug("Connect to %s:%s failed: %s", host, port, e)
            raise ConnectError(
                f"Failed to connect to {host}:{port}: {e}", host, port
            ) from e

        self._streams = _AsyncStreams(reader, writer)
        self._state = ConnectionState.CONNECTED
        logger.info("Connected to %s:%s", host, port)

    def _require_streams(self) -> _AsyncStreams:
        if not self.is_connected() or self._streams is None:
            raise NotConnectedError("Not connected")
        return self._streams

    async def send(self, message: str) -> None:
        """
        Send a message followed by a newline and drain the writer.

        Args:
            message: Text to send

        Raises:
            NotConnectedError: If not connected
            SendFailedError: If encoding or writing fails
        """
        streams = self._require_streams()
        try:
            data = encode_message(message, self.config)
            streams.writer.write(data)
            await streams.writer.drain()
        except (OSError, ValueError) as e:
            raise SendFailedError(f"Failed to send message: {e}") from e
        logger.debug("Sent %d bytes to %s", len(data), self.peer_address)

    async def _read_raw_line(self, reader: asyncio.StreamReader) -> bytes:
        """Read up to and including the next newline, whatever its length."""
        while True:
            try:
                chunk = await reader.readuntil(TERMINATOR)
            except asyncio.IncompleteReadError as e:
                chunk = e.partial
            except asyncio.LimitOverrunError as e:
                # Buffered data is returned without suspending.
                self._pending += await reader.read(e.consumed)
                continue
            raw = bytes(self._pending) + chunk
            self._pending.clear()
            return raw

    async def receive_line(self) -> str:
        """
        Wait for a full line and return it without the newline.

        Returns:
            The received line

        Raises:
            NotConnectedError: If not connected
            ConnectionClosedError: If the peer closed the stream
            ReceiveFailedError: If reading or decoding fails
        """
        streams = self._require_streams()
        try:
            raw = await self._read_raw_line(streams.reader)
        except OSError as e:
            raise ReceiveFailedError(f"Failed to receive line: {e}") from e

        if not raw:
            raise ConnectionClosedError("Connection closed by peer")

        try:
            return decode_line(raw, self.config)
        except UnicodeError as e:
            raise ReceiveFailedError(f"Failed to decode line: {e}") from e

    async def disconnect(self) -> None:
        """Close the connection. Safe to call repeatedly; never raises."""
        if self._state is ConnectionState.CLOSED:
            return

        streams = self._streams
        self._streams = None
        self._state = ConnectionState.CLOSED

        if streams is not None:
            try:
                streams.writer.close()
                await streams.writer.wait_closed()
            except Exception as e:
                logger.warning("Error closing writer: %s", e)
        logger.info("Disconnected")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.disconnect()

    def __repr__(self) -> str:
        return f"<AsyncConnection state={self._state.value} peer={self.peer_address}>"
