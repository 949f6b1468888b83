"""Integration tests for Connection against a real listening socket."""

import socket

import pytest

from lineconn.connection import Connection, ConnectionState
from lineconn.exceptions import (
    AlreadyConnectedError,
    ConnectError,
    ConnectionClosedError,
    NotConnectedError,
)


@pytest.fixture
def listener():
    """A local listening endpoint on a free port."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    yield server
    server.close()


def recv_exactly(sock, size):
    """Read exactly size bytes from a socket."""
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


class TestConnectionEndToEnd:
    """End-to-end tests over loopback TCP."""

    @pytest.mark.timeout(10)
    def test_hello_world(self, listener):
        """Test sending hello and receiving world."""
        host, port = listener.getsockname()
        connection = Connection()
        connection.connect(host, port)
        peer, _ = listener.accept()
        try:
            assert connection.is_connected() is True

            connection.send("hello")
            assert recv_exactly(peer, 6) == b"hello\n"

            peer.sendall(b"world\n")
            assert connection.receive_line() == "world"
        finally:
            connection.disconnect()
            peer.close()

        assert connection.is_connected() is False

    @pytest.mark.timeout(10)
    @pytest.mark.parametrize(
        "message",
        ["", "plain", "with spaces and tabs\t", "ünïcödé ✓", "x" * 10_000],
    )
    def test_message_without_newline_arrives_intact(self, listener, message):
        """Test one send is read back as exactly one identical line."""
        host, port = listener.getsockname()
        with Connection() as sender:
            sender.connect(host, port)
            peer_socket, _ = listener.accept()
            with Connection(peer_socket) as receiver:
                sender.send(message)
                assert receiver.receive_line() == message

    @pytest.mark.timeout(10)
    @pytest.mark.parametrize(
        "message",
        ["a\nb", "first\nsecond\nthird", "\n", "trailing\n", "\nleading"],
    )
    def test_message_with_newlines_splits(self, listener, message):
        """Test k embedded newlines yield k + 1 lines in order."""
        host, port = listener.getsockname()
        with Connection() as sender:
            sender.connect(host, port)
            peer_socket, _ = listener.accept()
            with Connection(peer_socket) as receiver:
                sender.send(message)
                parts = message.split("\n")
                assert [receiver.receive_line() for _ in parts] == parts

    @pytest.mark.timeout(10)
    def test_ordering_across_sends(self, listener):
        """Test lines arrive in send order."""
        host, port = listener.getsockname()
        with Connection() as sender:
            sender.connect(host, port)
            peer_socket, _ = listener.accept()
            with Connection(peer_socket) as receiver:
                for i in range(50):
                    sender.send(f"line {i}")
                assert [receiver.receive_line() for _ in range(50)] == [
                    f"line {i}" for i in range(50)
                ]

    @pytest.mark.timeout(10)
    def test_connect_twice(self, listener):
        """Test connecting twice fails and the first connection still works."""
        host, port = listener.getsockname()
        with Connection() as connection:
            connection.connect(host, port)
            peer, _ = listener.accept()
            try:
                with pytest.raises(AlreadyConnectedError):
                    connection.connect(host, port)

                connection.send("still usable")
                assert recv_exactly(peer, 13) == b"still usable\n"
            finally:
                peer.close()

    @pytest.mark.timeout(10)
    def test_peer_closes(self, listener):
        """Test a pending receive fails with ConnectionClosedError when the peer leaves."""
        host, port = listener.getsockname()
        with Connection() as connection:
            connection.connect(host, port)
            peer, _ = listener.accept()
            peer.close()

            with pytest.raises(ConnectionClosedError):
                connection.receive_line()

    @pytest.mark.timeout(10)
    def test_connection_refused(self):
        """Test connecting to a closed port raises ConnectError."""
        probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]
        probe.close()

        connection = Connection()
        with pytest.raises(ConnectError):
            connection.connect("127.0.0.1", port)

        assert connection.state is ConnectionState.UNCONNECTED
        with pytest.raises(NotConnectedError):
            connection.receive_line()

    @pytest.mark.timeout(10)
    def test_disconnect_then_receive(self, listener):
        """Test receive after disconnect fails and disconnect stays quiet."""
        host, port = listener.getsockname()
        connection = Connection()
        connection.connect(host, port)
        peer, _ = listener.accept()
        try:
            connection.disconnect()
            connection.disconnect()

            with pytest.raises(NotConnectedError):
                connection.receive_line()
            assert recv_exactly(peer, 1) == b""
        finally:
            peer.close()
