"""Watch mode for mdck - rescan markdown documents as they change."""

import json
import os
import signal
import time
from pathlib import Path
from typing import Any, Callable, Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .report import Reporter
from .runtime import Runtime
from .sources import DEFAULT_SUFFIXES, Source, file_document, has_suffix, iter_documents


def _absolute(path: Path | str) -> Path:
    return Path(os.path.abspath(path))


class DebounceHandler(FileSystemEventHandler):
    """File system event handler with debouncing."""

    def __init__(
        self,
        on_batch: Callable[[set[Path], set[Path]], None],
        roots: Iterable[Path] = (),
        files: Iterable[Path] = (),
        suffixes: Iterable[str] = DEFAULT_SUFFIXES,
        debounce_ms: int = 150,
    ):
        super().__init__()
        self.on_batch = on_batch
        self.roots = [_absolute(r) for r in roots]
        self.files = {_absolute(f) for f in files}
        self.suffixes = tuple(suffixes)
        self.debounce_ms = debounce_ms

        # Pending changes by absolute path
        self.changed: set[Path] = set()
        self.deleted: set[Path] = set()
        self.last_event_time = 0.0

    def _should_skip(self, path: Path) -> bool:
        """Check if file should be skipped."""
        if path in self.files:
            return False

        name = path.name

        # Skip hidden files
        if name.startswith("."):
            return True

        # Skip temp/swap files
        if name.endswith("~") or name.endswith(".swp") or name.startswith(".#"):
            return True

        if not has_suffix(name, self.suffixes):
            return True

        # Files beside an explicitly named file are not ours
        return not any(root in path.parents for root in self.roots)

    def _record(self, pending: set[Path], src_path: Any) -> None:
        path = _absolute(str(src_path))
        if not self._should_skip(path):
            pending.add(path)
            self.last_event_time = time.time()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(self.changed, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(self.changed, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(self.deleted, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._record(self.deleted, event.src_path)
        self._record(self.changed, event.dest_path)

    def check_and_flush(self) -> None:
        """Check if debounce period has elapsed and flush if so."""
        if not (self.changed or self.deleted):
            return

        elapsed = (time.time() - self.last_event_time) * 1000
        if elapsed >= self.debounce_ms:
            self.flush()

    def flush(self) -> None:
        """Process accumulated events."""
        if not (self.changed or self.deleted):
            return

        changed = set(self.changed)
        deleted = set(self.deleted)
        self.changed.clear()
        self.deleted.clear()

        if self.on_batch:
            self.on_batch(changed, deleted)


class _Labels:
    """Recover the label a document had in the initial scan from its absolute path."""

    def __init__(self, sources: list[Source]):
        self.files = {_absolute(s.path): s.path for s in sources if s.kind == "file"}
        self.roots = [(_absolute(s.path), s.path) for s in sources if s.kind == "directory"]

    def path_for(self, path: Path) -> Path:
        if path in self.files:
            return self.files[path]
        for absolute, given in self.roots:
            if absolute in path.parents:
                return given / path.relative_to(absolute)
        return path


def watch_sources(
    sources: list[Source],
    rt: Runtime,
    reporter: Reporter,
    debounce_ms: int = 150,
) -> int:
    """
    Watch file and directory sources and rescan documents when they change.

    A changed document is rescanned on its own; a deletion rescans every
    watched document, since links into the deleted file may now be broken.

    Args:
        sources: Parsed sources (standard input is ignored)
        rt: Wired runtime
        reporter: Prints reports, warnings and errors
        debounce_ms: Debounce window in milliseconds

    Returns:
        Exit code
    """
    watched = [s for s in sources if not s.is_stdin]
    if not watched:
        reporter.error("watch needs a file or directory source")
        return 1

    scan = rt.config.scan
    labels = _Labels(watched)
    quiet = reporter.quiet or reporter.json_output
    running = True

    def rescan_all() -> None:
        for source in watched:
            for document in iter_documents(
                source, scan.suffixes, scan.follow_symlinks, on_error=reporter.walk_error
            ):
                reporter.check(document, rt)

    def handle_batch(changed: set[Path], deleted: set[Path]) -> None:
        """Handle a batch of changes."""
        start_time = time.time()
        checked_before = reporter.checked
        broken_before = reporter.broken

        if deleted:
            rescan_all()
        else:
            for path in sorted(changed):
                if path.exists():
                    reporter.check(file_document(labels.path_for(path)), rt)

        duration_ms = int((time.time() - start_time) * 1000)
        if reporter.json_output:
            event = {
                "type": "batch",
                "changed": sorted(str(labels.path_for(p)) for p in changed),
                "deleted": sorted(str(labels.path_for(p)) for p in deleted),
                "broken": reporter.drain(),
                "duration_ms": duration_ms,
            }
            print(json.dumps(event), file=reporter.out, flush=True)
        elif not quiet:
            print(
                f"Checked {reporter.checked - checked_before} documents, "
                f"{reporter.broken - broken_before} broken links ({duration_ms}ms)",
                file=reporter.err,
                flush=True,
            )

    # Set up signal handlers for graceful shutdown
    def signal_handler(signum: int, frame: Any) -> None:
        nonlocal running
        running = False
        if not quiet:
            print("\nShutting down...", file=reporter.err, flush=True)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    handler = DebounceHandler(
        handle_batch,
        roots=[s.path for s in watched if s.kind == "directory"],
        files=[s.path for s in watched if s.kind == "file"],
        suffixes=scan.suffixes,
        debounce_ms=debounce_ms,
    )
    observer = Observer()
    for source in watched:
        if source.kind == "directory":
            observer.schedule(handler, str(source.path), recursive=True)
        else:
            observer.schedule(handler, str(_absolute(source.path).parent), recursive=False)

    if not quiet:
        names = ", ".join(str(s.path) for s in watched)
        print(f"Watching {names} (debounce: {debounce_ms}ms)", file=reporter.err, flush=True)
        print("Press Ctrl+C to stop", file=reporter.err, flush=True)

    observer.start()

    try:
        while running:
            time.sleep(0.1)
            handler.check_and_flush()
    finally:
        handler.flush()
        observer.stop()
        observer.join()

    if not quiet:
        print("Watch stopped", file=reporter.err, flush=True)

    return 0
