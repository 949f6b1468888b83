"""Asynchronous line server implementation."""

import asyncio
import logging
from typing import Optional, Set, Tuple, Union

from lineconn.async_connection import AsyncConnection
from lineconn.config.settings import ConnectionConfig
from lineconn.exceptions import ConnectionClosedError
from lineconn.handlers.base import LineCallback, LineHandler, as_handler

logger = logging.getLogger(__name__)


class AsyncLineServer:
    """Asynchronous line server using asyncio; peers are served concurrently."""

    def __init__(
        self,
        host: str,
        port: int,
        handler: Union[LineHandler, LineCallback],
        config: Optional[ConnectionConfig] = None,
    ):
        """
        Initialize async line server.

        Args:
            host: Bind hostname or IP
            port: Bind port, 0 picks a free one
            handler: LineHandler or callback ``(line, address) -> reply``
            config: Settings for the listening socket and each connection
        """
        self.host = host
        self.port = port
        self.handler = as_handler(handler)
        self.config = config if config is not None else ConnectionConfig()
        self.server: Optional[asyncio.Server] = None
        self._connections: Set[AsyncConnection] = set()

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Bound address, available once ``start`` has run."""
        if self.server is None or not self.server.sockets:
            return None
        return self.server.sockets[0].getsockname()[:2]

    async def start(self) -> None:
        """Bind and begin accepting peers."""
        self.server = await asyncio.start_server(
            self._handle_client, self.host, self.port, backlog=self.config.backlog
        )
        logger.info("Server listening on %s:%s", *self.address)

    async def serve_forever(self) -> None:
        """Start if needed and serve until cancelled or stopped."""
        if self.server is None:
            await self.start()
        await self.server.serve_forever()

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """
        Serve one peer until it disconnects.

        Args:
            reader: Stream reader for receiving data
            writer: Stream writer for sending data
        """
        address = writer.get_extra_info("peername")
        connection = AsyncConnection(reader, writer, self.config)
        self._connections.add(connection)
        self.handler.on_connect(address)
        try:
            async with connection:
                while True:
                    try:
                        line = await connection.receive_line()
                    except ConnectionClosedError:
                        break
                    logger.debug("Received from %s: %r", address, line)
                    response = self.handler.handle(line, address)
                    if response is not None:
                        await connection.send(response)
        except Exception as e:
            logger.warning("Error handling client %s: %s", address, e)
        finally:
            self._connections.discard(connection)
            self.handler.on_disconnect(address)

    async def stop(self) -> None:
        """Stop the server and close open peer connections."""
        if self.server:
            self.server.close()
            for connection in list(self._connections):
                await connection.disconnect()
            await self.server.wait_closed()
            self.server = None
            logger.info("Server stopped")
