"""Printing of broken-link reports, warnings and errors."""

import json
import sys
from typing import Any, TextIO

from .core.model import ClassifiedLink, printable, quote_label
from .errors import MdckError
from .runtime import Runtime
from .scan import scan_document
from .sources import Document


class Reporter:
    """Scan documents one at a time and print what they report.

    Reports go to ``out`` as they are found, or are collected for a single
    JSON dump when ``json_output`` is set. A failing document is reported on
    ``err`` and does not stop the next one.
    """

    def __init__(
        self,
        quiet: bool = False,
        json_output: bool = False,
        warn_fragments: bool = False,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ):
        self.quiet = quiet
        self.json_output = json_output
        self.warn_fragments = warn_fragments
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.broken = 0
        self.failed = 0
        self.checked = 0
        self.collected: list[dict[str, Any]] = []

    def check(self, document: Document, rt: Runtime) -> None:
        """Scan one document, printing each broken link as it is found."""
        hook = None
        if self.warn_fragments and not self.quiet:
            def hook(link: ClassifiedLink, line: int) -> None:
                self.warning(
                    f"link with fragment {quote_label(link.fragment or '')} "
                    f"found on line {line} of {quote_label(document.label)}"
                )

        try:
            for report in scan_document(
                document,
                tokenizer=rt.tokenizer,
                resolver=rt.resolver,
                on_fragment=hook,
            ):
                self.broken += 1
                if self.json_output:
                    self.collected.append(report.as_dict())
                else:
                    print(report, file=self.out, flush=True)
        except (MdckError, OSError) as e:
            self.failed += 1
            self.error(e)
        except UnicodeEncodeError as e:
            # the output stream cannot represent the label or destination
            self.failed += 1
            self.error(f"{printable(document.label)}: cannot print report: {e.reason}")
        else:
            self.checked += 1

    def walk_error(self, error: OSError) -> None:
        self.warning(f"skipping {printable(str(error.filename))}: {error.strerror or error}")

    def warning(self, message: str) -> None:
        if not self.quiet:
            print(f"Warning: {message}", file=self.err, flush=True)

    def error(self, error: Exception | str) -> None:
        print(f"Error: {error}", file=self.err, flush=True)

    def drain(self) -> list[dict[str, Any]]:
        collected, self.collected = self.collected, []
        return collected

    def finish(self) -> None:
        if self.json_output:
            print(json.dumps(self.drain(), indent=2), file=self.out, flush=True)

    def exit_code(self, strict: bool = False) -> int:
        if self.failed or (strict and self.broken):
            return 1
        return 0
