"""Output abstraction layer."""

from .console import (
    ConsoleProtocol,
    MockConsole,
    RichConsole,
    Style,
)
from .reporter import ReleaseFailure, Reporter

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "ReleaseFailure",
    "Reporter",
    "RichConsole",
    "Style",
]
