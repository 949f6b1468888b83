"""Example: line echo server and client."""

import logging
import sys

from lineconn import Connection
from lineconn.transports.tcp.sync_server import SyncLineServer


def echo_handler(line: str, address) -> str:
    """Echo handler that returns the received line."""
    print(f"Received from {address}: {line}")
    return line


def run_server():
    """Run the echo server."""
    server = SyncLineServer("127.0.0.1", 8888, echo_handler)
    try:
        server.start()
    except KeyboardInterrupt:
        print("\nShutting down server...")
        server.stop()


def run_client():
    """Run the echo client."""
    with Connection() as connection:
        connection.connect("127.0.0.1", 8888)
        for message in ("Hello, Server!", "two\nlines"):
            print(f"Sending: {message!r}")
            connection.send(message)
            for _ in message.split("\n"):
                print(f"Received: {connection.receive_line()}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) > 1 and sys.argv[1] == "client":
        run_client()
    else:
        run_server()
