"""Link candidate extraction and classification."""

from typing import Iterable, Iterator

from .model import ClassifiedLink, Event, LinkCandidate


def extract_candidates(events: Iterable[tuple[int, Event]]) -> Iterator[LinkCandidate]:
    """Yield a candidate for every link-opening event; everything else is skipped."""
    for offset, event in events:
        if event.is_link_start:
            yield LinkCandidate(offset=offset, raw_destination=event.dest or "")


def classify(candidate: LinkCandidate) -> ClassifiedLink | None:
    """
    Split a candidate into path and fragment, or reject it.

    Any ":" counts as a URL scheme, so ``http://x``, ``mailto:a@b`` and also
    ``C:\\notes.md`` are rejected. The path is everything before the first
    "#"; ``#section`` yields an empty relative path.
    """
    uri = candidate.raw_destination
    if ":" in uri:
        return None

    path, sep, fragment = uri.partition("#")
    return ClassifiedLink(
        path=path,
        fragment=fragment if sep else None,
        is_relative=not path.startswith("/"),
        offset=candidate.offset,
    )


def classify_all(candidates: Iterable[LinkCandidate]) -> Iterator[ClassifiedLink]:
    for candidate in candidates:
        link = classify(candidate)
        if link is not None:
            yield link
