"""Reattach schema comments to the generated blocks of the nodes they belong to."""

from __future__ import annotations

from collections.abc import Iterable

from rsocket_rpc_stub_generator.schema import CommentIndex, Location, NodeComments

COMMENT_MARKER = "#"


def _split(comment: str) -> list[str]:
    return comment.splitlines()


def prefix_lines(lines: Iterable[str], marker: str = COMMENT_MARKER) -> list[str]:
    """Turn raw comment lines into comment lines of the generated language.

    A space separates the marker from the text, unless the text is empty or is already indented.

    Args:
        lines (Iterable[str]): The raw comment lines, without line breaks.
        marker (str): The comment marker.

    Returns:
        list[str]: The prefixed lines.
    """
    prefixed: list[str] = []
    for line in lines:
        if not line:
            prefixed.append(marker)
        elif line.startswith(" "):
            prefixed.append(f"{marker}{line}")
        else:
            prefixed.append(f"{marker} {line}")
    return prefixed


def leading_lines(comments: NodeComments) -> list[str]:
    """The lines to place before the generated block of a node.

    Detached blocks come first, each followed by an empty line, then the leading block.
    """
    raw: list[str] = []
    for block in comments.detached:
        raw.extend(_split(block))
        raw.append("")
    raw.extend(_split(comments.leading))
    return prefix_lines(raw)


def trailing_lines(comments: NodeComments) -> list[str]:
    """The lines to place after the generated block of a node."""
    return prefix_lines(_split(comments.trailing))


class CommentReattacher:
    """Looks up the comments of schema nodes and renders them as generated comment lines."""

    def __init__(self, index: CommentIndex):
        """Initialize the reattacher for the comment index of one schema file.

        Args:
            index (CommentIndex): The source comments of the file.
        """
        self._index = index

    def leading(self, location: Location) -> list[str]:
        """Rendered leading and detached comments of the node at `location`."""
        return leading_lines(self._index.get(location))

    def trailing(self, location: Location) -> list[str]:
        """Rendered trailing comments of the node at `location`."""
        return trailing_lines(self._index.get(location))
