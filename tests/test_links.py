"""Tests for link candidate extraction and classification."""

import pytest

from mdck.core.links import classify, classify_all, extract_candidates
from mdck.core.model import ClassifiedLink, Event, LinkCandidate


def test_extract_candidates_keeps_only_link_starts():
    """Test that non-link events are skipped."""
    events = [
        (0, Event("start", "paragraph")),
        (0, Event("start", "link", dest="a.md")),
        (1, Event("text", text="a")),
        (2, Event("end", "link")),
        (9, Event("start", "image", dest="pic.png")),
        (20, Event("start", "link", dest="b.md#top")),
    ]
    assert list(extract_candidates(events)) == [
        LinkCandidate(offset=0, raw_destination="a.md"),
        LinkCandidate(offset=20, raw_destination="b.md#top"),
    ]


def test_extract_candidates_is_lazy():
    """Test that extraction does not consume the stream up front."""
    def events():
        yield 0, Event("start", "link", dest="a.md")
        raise AssertionError("consumed too far")

    candidates = extract_candidates(events())
    assert next(candidates).raw_destination == "a.md"


@pytest.mark.parametrize(
    "uri",
    ["http://x.com/y", "mailto:a@b", "C:\\notes.md", "docs/a:b.md", "#frag:x"],
)
def test_classify_rejects_any_colon(uri):
    """Test that anything with a colon is treated as having a scheme."""
    assert classify(LinkCandidate(0, uri)) is None


def test_classify_relative_path():
    """Test a plain relative destination."""
    assert classify(LinkCandidate(7, "docs/guide.md")) == ClassifiedLink(
        path="docs/guide.md", fragment=None, is_relative=True, offset=7
    )


def test_classify_absolute_path():
    """Test that a leading slash makes the path absolute."""
    link = classify(LinkCandidate(0, "/definitely/missing/path"))
    assert link is not None
    assert link.is_relative is False
    assert link.path == "/definitely/missing/path"


def test_classify_splits_at_first_hash():
    """Test that the fragment is everything after the first '#'."""
    link = classify(LinkCandidate(3, "guide.md#install#linux"))
    assert link == ClassifiedLink(
        path="guide.md", fragment="install#linux", is_relative=True, offset=3
    )
    assert "#" not in link.path


def test_classify_anchor_only():
    """Test that '#section' is a relative link with an empty path."""
    link = classify(LinkCandidate(0, "#section"))
    assert link == ClassifiedLink(path="", fragment="section", is_relative=True, offset=0)


def test_classify_empty_fragment():
    """Test that a trailing '#' gives an empty, present fragment."""
    link = classify(LinkCandidate(0, "a.md#"))
    assert link.fragment == ""


def test_classify_does_not_normalize():
    """Test that percent-escapes and dot segments are left alone."""
    link = classify(LinkCandidate(0, "./a/../my%20file.md"))
    assert link.path == "./a/../my%20file.md"


def test_classify_all_drops_rejected():
    """Test that classify_all keeps order and drops schemes."""
    candidates = [
        LinkCandidate(0, "a.md"),
        LinkCandidate(5, "https://example.com"),
        LinkCandidate(9, "b.md"),
    ]
    assert [link.path for link in classify_all(candidates)] == ["a.md", "b.md"]
