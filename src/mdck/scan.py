"""Broken-link scanning for a single markdown document."""

from pathlib import Path
from typing import Callable, Iterator

from .adapters.fs_resolver import FsResolver, is_broken
from .adapters.markdown_tokenizer import MarkdownTokenizer
from .core.lines import LineIndex
from .core.links import classify_all, extract_candidates
from .core.model import BrokenLinkReport, ClassifiedLink
from .core.ports import ExistenceResolver, TokenizerStrategy
from .sources import Document

FragmentHook = Callable[[ClassifiedLink, int], None]


def scan_text(
    text: str,
    parent: Path,
    label: str,
    *,
    tokenizer: TokenizerStrategy | None = None,
    resolver: ExistenceResolver | None = None,
    on_fragment: FragmentHook | None = None,
) -> Iterator[BrokenLinkReport]:
    """
    Lazily report the local links in ``text`` whose targets do not exist.

    Args:
        text: Full markdown text
        parent: Directory relative destinations are resolved against
        label: Display name used verbatim in the reports
        tokenizer: Markdown event source (default: MarkdownTokenizer)
        resolver: Existence check (default: FsResolver)
        on_fragment: Called with (link, line) for every local link with a fragment

    Yields:
        BrokenLinkReport in document order
    """
    tokenizer = tokenizer or MarkdownTokenizer()
    resolver = resolver or FsResolver()
    lines: LineIndex | None = None

    def line_of(offset: int) -> int:
        nonlocal lines
        if lines is None:
            lines = LineIndex(text)
        return lines.line(offset)

    for link in classify_all(extract_candidates(tokenizer.events(text))):
        if on_fragment is not None and link.fragment is not None:
            on_fragment(link, line_of(link.offset))
        if is_broken(link, parent, resolver):
            yield BrokenLinkReport(
                label=label, line=line_of(link.offset), destination=link.path
            )


def scan_document(
    document: Document,
    *,
    tokenizer: TokenizerStrategy | None = None,
    resolver: ExistenceResolver | None = None,
    on_fragment: FragmentHook | None = None,
) -> Iterator[BrokenLinkReport]:
    """Read ``document`` and scan it; read and decode errors propagate."""
    return scan_text(
        document.read_text(),
        document.parent,
        document.label,
        tokenizer=tokenizer,
        resolver=resolver,
        on_fragment=on_fragment,
    )
