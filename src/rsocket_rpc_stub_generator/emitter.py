"""Indentation-aware assembly of generated source text."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from rsocket_rpc_stub_generator.templates import Template

INDENT = "    "


class Emitter:
    """Collects lines of generated code at the current indentation level."""

    def __init__(self, indent: str = INDENT):
        """Initialize an empty emitter.

        Args:
            indent (str): The string that makes up one level of indentation.
        """
        self._indent = indent
        self._level = 0
        self.lines: list[str] = []

    @contextmanager
    def indented(self) -> Iterator[Emitter]:
        """Emit the lines added within the context one level deeper."""
        self._level += 1
        try:
            yield self
        finally:
            self._level -= 1

    def line(self, text: str = ""):
        """Add a single line. Empty lines are never indented.

        Args:
            text (str): The line, without indentation or line break.
        """
        if text:
            self.lines.append(self._indent * self._level + text)
        else:
            self.lines.append("")

    def blank(self):
        """Add an empty line."""
        self.line()

    def extend(self, lines: Iterable[str]):
        """Add several lines at the current indentation level."""
        for text in lines:
            self.line(text)

    def render(self, template: Template):
        """Substitute a template record and add the resulting lines.

        Args:
            template (Template): The record that carries the template and its placeholders.
        """
        self.extend(template.render().split("\n"))

    def dumps(self) -> str:
        """The collected text, terminated by a single line break."""
        return "\n".join(self.lines).rstrip("\n") + "\n"
