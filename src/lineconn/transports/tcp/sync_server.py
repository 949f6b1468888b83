"""Synchronous line server implementation."""

import logging
import socket
from typing import Optional, Tuple, Union

from lineconn.config.settings import ConnectionConfig
from lineconn.connection import Connection
from lineconn.exceptions import ConnectionClosedError, NotConnectedError
from lineconn.handlers.base import LineCallback, LineHandler, as_handler

logger = logging.getLogger(__name__)


class SyncLineServer:
    """
    Synchronous line server.

    Peers are served one at a time on the thread that calls ``start``.
    Each accepted socket is wrapped in a :class:`Connection` and every
    received line is passed to the handler; a non-None return value is
    sent back as a reply line.
    """

    def __init__(
        self,
        host: str,
        port: int,
        handler: Union[LineHandler, LineCallback],
        config: Optional[ConnectionConfig] = None,
        poll_interval: float = 0.5,
    ):
        """
        Initialize line server.

        Args:
            host: Bind hostname or IP
            port: Bind port, 0 picks a free one
            handler: LineHandler or callback ``(line, address) -> reply``
            config: Settings for the listening socket and each Connection
            poll_interval: Seconds between checks for ``stop`` while idle
        """
        self.host = host
        self.port = port
        self.handler = as_handler(handler)
        self.config = config if config is not None else ConnectionConfig()
        self.poll_interval = poll_interval
        self.socket: Optional[socket.socket] = None
        self.running = False
        self._connection: Optional[Connection] = None

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Bound address, available once ``bind`` has run."""
        if self.socket is None:
            return None
        return self.socket.getsockname()[:2]

    def bind(self) -> None:
        """Bind and listen without serving yet."""
        self.socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.socket.bind((self.host, self.port))
        self.socket.listen(self.config.backlog)
        self.socket.settimeout(self.poll_interval)
        self.running = True
        logger.info("Server listening on %s:%s", *self.address)

    def start(self) -> None:
        """Start the server and serve until ``stop`` is called."""
        if self.socket is None:
            self.bind()
        self.serve_forever()

    def serve_forever(self) -> None:
        """Accept and serve peers while running."""
        listener = self.socket
        while self.running and listener is not None:
            try:
                client_socket, client_address = listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self.running:
                    logger.warning("Error accepting client: %s", e)
                continue

            try:
                self._handle_client(client_socket, client_address)
            except Exception as e:
                logger.warning("Error handling client %s: %s", client_address, e)

    def _handle_client(
        self, client_socket: socket.socket, client_address: Tuple[str, int]
    ) -> None:
        """
        Serve one peer until it disconnects.

        Args:
            client_socket: Accepted socket
            client_address: Peer address tuple
        """
        with Connection(client_socket, self.config) as connection:
            self._connection = connection
            self.handler.on_connect(client_address)
            try:
                while self.running:
                    try:
                        line = connection.receive_line()
                    except (ConnectionClosedError, NotConnectedError):
                        break
                    logger.debug("Received from %s: %r", client_address, line)
                    response = self.handler.handle(line, client_address)
                    if response is not None:
                        connection.send(response)
            finally:
                self._connection = None
                self.handler.on_disconnect(client_address)

    def stop(self) -> None:
        """Stop the server and end the session in progress, if any."""
        self.running = False
        connection = self._connection
        if connection is not None:
            connection.disconnect()
        if self.socket:
            self.socket.close()
            self.socket = None
            logger.info("Server stopped")
