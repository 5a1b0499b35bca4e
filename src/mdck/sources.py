"""Input sources: standard input, single files and directory trees."""

import errno
import os
import stat
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Iterator, Sequence

from .core.model import printable, quote_label
from .errors import DocumentEncodingError, SourceError

STDIN_LABEL = "STDIN"
DEFAULT_SUFFIXES = (".md",)


@dataclass(frozen=True)
class Source:
    kind: str  # "stdin" | "file" | "directory"
    path: Path | None = None

    @property
    def is_stdin(self) -> bool:
        return self.kind == "stdin"


@dataclass(frozen=True)
class Document:
    """One markdown text to scan; read on demand."""
    label: str
    parent: Path
    path: Path | None = None  # None means standard input
    stream: BinaryIO | None = None

    def read_bytes(self) -> bytes:
        if self.path is None:
            return (self.stream or sys.stdin.buffer).read()
        return self.path.read_bytes()

    def read_text(self) -> str:
        data = self.read_bytes()
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DocumentEncodingError(self.label, e) from e


def parse_source(arg: str) -> Source:
    """Turn one command-line argument into a Source ("-" is standard input)."""
    if arg == "-":
        return Source("stdin")

    path = Path(arg)
    try:
        info = os.stat(path)
    except OSError as e:
        raise SourceError(f"{quote_label(arg)}: {e.strerror or e}") from e
    except ValueError as e:
        raise SourceError(f"{quote_label(arg)}: {e}") from e

    kind = "directory" if stat.S_ISDIR(info.st_mode) else "file"
    return Source(kind, path)


def parse_sources(args: Sequence[str]) -> list[Source]:
    """Parse all source arguments; no arguments means standard input."""
    if not args:
        return [Source("stdin")]

    sources = [parse_source(arg) for arg in args]
    if sum(1 for s in sources if s.is_stdin) > 1:
        raise SourceError("You may only use stdin once")
    return sources


def file_document(path: Path) -> Document:
    return Document(label=str(path), parent=path.parent, path=path)


def has_suffix(name: str, suffixes: Iterable[str]) -> bool:
    return name.endswith(tuple(suffixes))


def walk_markdown(
    root: Path,
    suffixes: Iterable[str] = DEFAULT_SUFFIXES,
    follow_symlinks: bool = False,
    on_error: Callable[[OSError], None] | None = None,
) -> Iterator[Document]:
    """
    Recursively yield documents under ``root`` whose file name ends with one of
    ``suffixes``, in sorted order. Unreadable directories, and files whose
    path is not valid UTF-8, are passed to ``on_error`` and skipped.
    """
    suffixes = tuple(suffixes)
    for dirpath, dirnames, filenames in os.walk(
        root, onerror=on_error, followlinks=follow_symlinks
    ):
        dirnames.sort()
        for name in sorted(filenames):
            if not has_suffix(name, suffixes):
                continue
            path = Path(dirpath) / name
            shown = printable(str(path))
            if shown != str(path):
                # names that are not valid UTF-8 cannot be reported
                if on_error is not None:
                    on_error(OSError(errno.EILSEQ, "file name is not valid UTF-8", shown))
                continue
            yield file_document(path)


def iter_documents(
    source: Source,
    suffixes: Iterable[str] = DEFAULT_SUFFIXES,
    follow_symlinks: bool = False,
    on_error: Callable[[OSError], None] | None = None,
    stdin: BinaryIO | None = None,
) -> Iterator[Document]:
    """Documents for one source. Explicitly named files are checked whatever their suffix."""
    if source.is_stdin:
        yield Document(label=STDIN_LABEL, parent=Path("."), stream=stdin)
    elif source.kind == "file":
        yield file_document(source.path)
    else:
        yield from walk_markdown(source.path, suffixes, follow_symlinks, on_error)
