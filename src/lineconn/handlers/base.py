"""Base handler interface."""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple, Union


class LineHandler(ABC):
    """Base interface for line handlers used by the line servers."""

    @abstractmethod
    def handle(self, line: str, address: Tuple[str, int]) -> Optional[str]:
        """
        Handle an incoming line.

        Args:
            line: Received line without its terminator
            address: Peer address

        Returns:
            Reply line, or None to send nothing
        """
        pass

    def on_connect(self, address: Tuple[str, int]) -> None:
        """
        Called when a peer connects.

        Args:
            address: Peer address
        """
        pass

    def on_disconnect(self, address: Tuple[str, int]) -> None:
        """
        Called when a peer's session ends.

        Args:
            address: Peer address
        """
        pass


LineCallback = Callable[[str, Tuple[str, int]], Optional[str]]


class CallbackHandler(LineHandler):
    """Handler that delegates each line to a plain function."""

    def __init__(self, callback: LineCallback):
        self.callback = callback

    def handle(self, line: str, address: Tuple[str, int]) -> Optional[str]:
        return self.callback(line, address)


def as_handler(handler: Union[LineHandler, LineCallback]) -> LineHandler:
    """Wrap a callable in a CallbackHandler unless it already is a LineHandler."""
    if isinstance(handler, LineHandler):
        return handler
    return CallbackHandler(handler)
