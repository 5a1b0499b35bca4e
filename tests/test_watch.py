"""Tests for watch mode functionality."""

import tempfile
import time
from pathlib import Path

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from mdck.sources import Source
from mdck.watch import DebounceHandler, _Labels


@pytest.fixture
def tree():
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir).resolve()
        (root / "docs").mkdir()
        yield root


def make_handler(tree, batches, **kwargs):
    kwargs.setdefault("roots", [tree / "docs"])
    return DebounceHandler(
        lambda changed, deleted: batches.append((changed, deleted)),
        debounce_ms=50,
        **kwargs,
    )


def test_debounce_handler_skip_patterns(tree):
    """Test that DebounceHandler skips appropriate files."""
    handler = make_handler(tree, [])
    docs = tree / "docs"

    assert handler._should_skip(docs / ".hidden.md")
    assert handler._should_skip(docs / "note.md~")
    assert handler._should_skip(docs / "note.md.swp")
    assert handler._should_skip(docs / "note.txt")
    assert handler._should_skip(tree / "outside.md")

    assert not handler._should_skip(docs / "note.md")
    assert not handler._should_skip(docs / "sub" / "deep.md")


def test_explicit_files_are_never_skipped(tree):
    """Test that a named file is kept whatever its name or location."""
    named = tree / "NOTES.txt"
    handler = make_handler(tree, [], roots=[], files=[named])

    assert not handler._should_skip(named)
    assert handler._should_skip(tree / "other.md")


def test_events_are_batched(tree):
    """Test that events accumulate until flushed."""
    batches = []
    handler = make_handler(tree, batches)
    docs = tree / "docs"

    handler.on_created(FileCreatedEvent(str(docs / "a.md")))
    handler.on_modified(FileModifiedEvent(str(docs / "a.md")))
    handler.on_modified(FileModifiedEvent(str(docs / "skip.txt")))
    handler.on_modified(DirModifiedEvent(str(docs)))
    handler.on_deleted(FileDeletedEvent(str(docs / "b.md")))

    assert batches == []
    handler.flush()
    assert batches == [({docs / "a.md"}, {docs / "b.md"})]

    # Nothing pending, nothing to report
    handler.flush()
    assert len(batches) == 1


def test_move_is_delete_plus_change(tree):
    """Test that a rename records both ends."""
    batches = []
    handler = make_handler(tree, batches)
    docs = tree / "docs"

    handler.on_moved(FileMovedEvent(str(docs / "old.md"), str(docs / "new.md")))
    handler.flush()
    assert batches == [({docs / "new.md"}, {docs / "old.md"})]


def test_check_and_flush_waits_for_quiet_period(tree):
    """Test the debounce window."""
    batches = []
    handler = make_handler(tree, batches)

    handler.on_modified(FileModifiedEvent(str(tree / "docs" / "a.md")))
    handler.check_and_flush()
    assert batches == []

    time.sleep(0.1)
    handler.check_and_flush()
    assert len(batches) == 1


def test_labels_map_back_to_given_paths(tree):
    """Test that rescanned documents keep the labels of the initial scan."""
    sources = [
        Source("directory", Path("docs")),
        Source("file", Path("README.md")),
    ]
    labels = _Labels(sources)
    cwd = Path.cwd()

    assert labels.path_for(Path(str(cwd / "docs" / "sub" / "a.md"))) == Path("docs/sub/a.md")
    assert labels.path_for(Path(str(cwd / "README.md"))) == Path("README.md")
    assert labels.path_for(tree / "elsewhere.md") == tree / "elsewhere.md"
