"""Link pipeline records, protocols and pure steps."""

from .lines import LineIndex, line_from_offset
from .links import classify, extract_candidates
from .model import BrokenLinkReport, ClassifiedLink, Event, LinkCandidate

__all__ = [
    "BrokenLinkReport",
    "ClassifiedLink",
    "Event",
    "LineIndex",
    "LinkCandidate",
    "classify",
    "extract_candidates",
    "line_from_offset",
]
