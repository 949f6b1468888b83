"""Connection configuration settings."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ConnectionConfig:
    """Line connection configuration."""

    connect_timeout: Optional[float] = 30.0
    buffer_size: int = 4096

    # Text settings
    encoding: str = "utf-8"
    encoding_errors: str = "strict"
    strip_carriage_return: bool = True

    # Server settings
    backlog: int = 5
