"""Structured progress logging and error accumulation.

Release work reports problems in batches: validating five components should
list every broken file, not stop at the first one. ``Reporter`` implements
that policy on top of a console:

    with reporter.accumulate_errors("Component \"demo\" failed validation"):
        reporter.error("Missing changelog CHANGELOG.md for demo")
        reporter.error("Missing version file demo/version.py for demo")
    # -> raises ReleaseFailure with the heading followed by both messages

Outside an accumulation scope, ``error`` prints and raises ``ReleaseFailure``
immediately. ``capture_errors`` turns such a failure into entries of a list,
which is how the performer keeps going after one component fails.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from releaser.output.console import ConsoleProtocol, Style

__all__ = ["ReleaseFailure", "Reporter"]


class ReleaseFailure(Exception):
    """A reported, fatal release error.

    Attributes:
        messages: The main message followed by any detail lines.
    """

    def __init__(self, messages: list[str]) -> None:
        super().__init__(messages[0] if messages else "release failed")
        self.messages = list(messages)


class Reporter:
    """Logger and error accumulator shared by the whole release engine."""

    def __init__(self, console: ConsoleProtocol) -> None:
        self.console = console
        self._error_list: list[str] | None = None

    def log(self, message: str) -> None:
        self.console.print(message)

    def info(self, message: str) -> None:
        self.console.info(message)

    def command(self, cmd: list[str]) -> None:
        """Echo a command about to run."""
        self.console.print("$ " + " ".join(cmd), Style.DIM)

    def warning(self, message: str, *more: str) -> None:
        self.console.warning(message)
        for line in more:
            self.console.print(line, Style.WARNING)

    def error(self, message: str, *more: str) -> None:
        """Report an error.

        Inside ``accumulate_errors`` the lines are collected and this returns.
        Otherwise they are printed and ``ReleaseFailure`` is raised.
        """
        if self._error_list is not None:
            self._error_list.append(message)
            self._error_list.extend(more)
            return
        self.console.error(message)
        for line in more:
            self.console.print(line, Style.ERROR)
        raise ReleaseFailure([message, *more])

    @property
    def accumulating(self) -> bool:
        return self._error_list is not None

    @contextmanager
    def accumulate_errors(self, heading: str | None = None) -> Iterator[None]:
        previous = self._error_list
        self._error_list = []
        try:
            yield
            collected = self._error_list
        finally:
            self._error_list = previous
        if collected:
            if heading is None:
                self.error(*collected)
            else:
                self.error(heading, *collected)

    @contextmanager
    def capture_errors(self, sink: list[str] | None) -> Iterator[None]:
        """Divert a fatal error raised in the block into ``sink``.

        With ``sink=None`` the block runs unchanged and failures propagate.
        """
        if sink is None:
            yield
            return
        previous = self._error_list
        self._error_list = None
        try:
            yield
        except ReleaseFailure as e:
            sink.extend(e.messages)
        finally:
            self._error_list = previous
