"""Offset to line number conversion."""

import bisect


def line_from_offset(text: str, offset: int) -> int:
    """
    Convert an offset to a line number (1-based).

    Args:
        text: The full text
        offset: Offset into ``text`` (0-based, at most ``len(text)``)

    Returns:
        Number of newlines before ``offset``, plus one
    """
    return text.count("\n", 0, offset) + 1


class LineIndex:
    """Newline positions of a text, gathered once and binary-searched per lookup."""

    def __init__(self, text: str):
        self.newlines: list[int] = []
        pos = text.find("\n")
        while pos >= 0:
            self.newlines.append(pos)
            pos = text.find("\n", pos + 1)

    def line(self, offset: int) -> int:
        return bisect.bisect_left(self.newlines, offset) + 1
