"""Unit tests for handlers.base module."""

from typing import Optional

import pytest

from lineconn.handlers.base import CallbackHandler, LineHandler, as_handler


class ConcreteHandler(LineHandler):
    """Concrete implementation of LineHandler for testing."""

    def __init__(self):
        self.handled_lines = []
        self.connected_addresses = []
        self.disconnected_addresses = []

    def handle(self, line: str, address: tuple) -> Optional[str]:
        """Handle incoming line."""
        self.handled_lines.append((line, address))
        return "response_" + line

    def on_connect(self, address: tuple) -> None:
        """Called when a peer connects."""
        self.connected_addresses.append(address)

    def on_disconnect(self, address: tuple) -> None:
        """Called when a peer disconnects."""
        self.disconnected_addresses.append(address)


class MinimalHandler(LineHandler):
    """Handler that only implements handle."""

    def handle(self, line: str, address: tuple) -> Optional[str]:
        return None


class TestLineHandler:
    """Test suite for LineHandler abstract class."""

    def test_cannot_instantiate_abstract_class(self):
        """Test that LineHandler cannot be instantiated directly."""
        with pytest.raises(TypeError):
            LineHandler()

    def test_handle(self):
        """Test handle records the line and returns a reply."""
        handler = ConcreteHandler()
        address = ("127.0.0.1", 8080)

        response = handler.handle("ping", address)

        assert response == "response_ping"
        assert handler.handled_lines == [("ping", address)]

    def test_connection_lifecycle(self):
        """Test connection lifecycle callbacks."""
        handler = ConcreteHandler()
        address = ("192.168.1.100", 5555)

        handler.on_connect(address)
        handler.handle("data", address)
        handler.on_disconnect(address)

        assert handler.connected_addresses == [address]
        assert len(handler.handled_lines) == 1
        assert handler.disconnected_addresses == [address]

    def test_default_hooks_do_nothing(self):
        """Test the default on_connect and on_disconnect are no-ops."""
        handler = MinimalHandler()

        assert handler.on_connect(("127.0.0.1", 1)) is None
        assert handler.on_disconnect(("127.0.0.1", 1)) is None


class TestCallbackHandler:
    """Test suite for CallbackHandler and as_handler."""

    def test_delegates_to_callback(self):
        """Test lines are passed to the callback."""
        handler = CallbackHandler(lambda line, address: line.upper())

        assert handler.handle("hello", ("127.0.0.1", 1)) == "HELLO"

    def test_callback_may_return_none(self):
        """Test a None reply is passed through."""
        handler = CallbackHandler(lambda line, address: None)

        assert handler.handle("hello", ("127.0.0.1", 1)) is None

    def test_as_handler_wraps_callable(self):
        """Test a plain function is wrapped."""

        def echo(line, address):
            return line

        handler = as_handler(echo)

        assert isinstance(handler, CallbackHandler)
        assert handler.callback is echo

    def test_as_handler_keeps_line_handler(self):
        """Test an existing LineHandler is returned unchanged."""
        handler = ConcreteHandler()

        assert as_handler(handler) is handler
