from __future__ import annotations

import json
from dataclasses import dataclass


@dataclass(frozen=True)
class Event:
    kind: str  # "start" | "end" | "text" | "code" | "html" | "softbreak" | "rule"
    tag: str | None = None  # "paragraph" | "heading" | "codeblock" | "link" | "image"
    text: str = ""
    dest: str | None = None  # link/image destination, escapes processed
    title: str | None = None

    @property
    def is_link_start(self) -> bool:
        return self.kind == "start" and self.tag == "link"


@dataclass(frozen=True)
class LinkCandidate:
    offset: int  # position in the source text where the link token begins
    raw_destination: str


@dataclass(frozen=True)
class ClassifiedLink:
    path: str  # destination without fragment, never contains "#"
    fragment: str | None
    is_relative: bool
    offset: int

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class BrokenLinkReport:
    label: str  # file path or "STDIN"
    line: int  # 1-based
    destination: str

    def __str__(self) -> str:
        return (
            f"{quote_label(self.label)} at line {self.line} "
            f"contains the broken link: {self.destination}"
        )

    def as_dict(self) -> dict[str, object]:
        return {
            "label": self.label,
            "line": self.line,
            "destination": self.destination,
        }


def quote_label(label: str) -> str:
    """Quote a label the way a debug string literal is shown.

    >>> quote_label('docs/a "b".md')
    '"docs/a \\\\"b\\\\".md"'
    """
    return json.dumps(label, ensure_ascii=False)


def printable(text: str) -> str:
    """``text`` with undecodable file name bytes shown as ``\\udcXX`` escapes."""
    return text.encode("utf-8", "backslashreplace").decode("utf-8")
