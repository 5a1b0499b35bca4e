"""CLI for mdck - check markdown files for links to files that do not exist."""

import argparse
import sys
from pathlib import Path

from . import __version__
from .errors import MdckError
from .report import Reporter
from .runtime import Runtime, build_runtime
from .sources import Source, iter_documents, parse_sources

DESCRIPTION = """\
Check markdown files for link destinations that point to files or
directories that do not exist.

A source is '-' for standard input (the default when no source is given), a
file or a directory. Directories are searched recursively for files ending in
one of the configured suffixes (default: .md); files named explicitly are
checked whatever their name.

Link targets are never opened and fragments ('#section') are not verified;
--warn-fragments prints a reminder for every link that carries one.
"""


def cmd_check(args: argparse.Namespace, sources: list[Source], rt: Runtime) -> int:
    """Scan every source once and print the broken links."""
    reporter = _reporter(args, rt)
    _check_sources(sources, rt, reporter)
    reporter.finish()
    return reporter.exit_code(strict=rt.config.report.strict)


def cmd_watch(args: argparse.Namespace, sources: list[Source], rt: Runtime) -> int:
    """Scan once, then keep rescanning documents as they change."""
    from .watch import watch_sources

    reporter = _reporter(args, rt)
    _check_sources(sources, rt, reporter)
    reporter.finish()
    return watch_sources(
        sources, rt, reporter, debounce_ms=rt.config.watch.debounce_ms
    )


def _reporter(args: argparse.Namespace, rt: Runtime) -> Reporter:
    return Reporter(
        quiet=args.quiet,
        json_output=rt.config.report.json,
        warn_fragments=rt.config.report.warn_fragments,
    )


def _check_sources(sources: list[Source], rt: Runtime, reporter: Reporter) -> None:
    scan = rt.config.scan
    for source in sources:
        for document in iter_documents(
            source,
            scan.suffixes,
            scan.follow_symlinks,
            on_error=reporter.walk_error,
        ):
            reporter.check(document, rt)


def _apply_overrides(args: argparse.Namespace, rt: Runtime) -> None:
    """Command-line flags win over the config file."""
    config = rt.config
    if args.suffix:
        config.scan.suffixes = list(args.suffix)
    if args.warn_fragments:
        config.report.warn_fragments = True
    if args.strict:
        config.report.strict = True
    if args.json:
        config.report.json = True
    if args.debounce_ms is not None:
        config.watch.debounce_ms = args.debounce_ms


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdck",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "sources",
        nargs="*",
        metavar="SOURCE",
        help="'-' for standard input, otherwise file or directory names",
    )
    parser.add_argument(
        "--version", action="version", version=f"mdck {__version__}"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/mdck.toml, <dir>/mdck.toml)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Suppress warnings"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )
    parser.add_argument(
        "--warn-fragments",
        dest="warn_fragments",
        action="store_true",
        help="Warn about links with fragments, which are not verified",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when any broken link is found",
    )
    parser.add_argument(
        "--suffix",
        action="append",
        default=[],
        help="File suffix to check in directories (repeatable, default: .md)",
    )
    parser.add_argument(
        "--watch", action="store_true", help="Rescan documents as they change"
    )
    parser.add_argument(
        "--debounce-ms",
        dest="debounce_ms",
        type=int,
        default=None,
        help="Watch debounce window in milliseconds (default: 150)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        sources = parse_sources(args.sources)
        root = next((s.path for s in sources if s.kind == "directory"), None)
        rt = build_runtime(config_path=args.config, root=root)
    except (MdckError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    _apply_overrides(args, rt)

    handler = cmd_watch if args.watch else cmd_check
    sys.exit(handler(args, sources, rt))


if __name__ == "__main__":
    main()
