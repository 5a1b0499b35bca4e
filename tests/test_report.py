"""Tests for report printing."""

import io
import tempfile
from pathlib import Path

from mdck.report import Reporter
from mdck.runtime import build_runtime
from mdck.sources import Document, file_document


def test_unprintable_label_fails_only_that_document():
    """Test that a report the output cannot encode is an error, not a crash."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "a.md").write_text("[x](gone.md)\n")
        (root / "b.md").write_text("[y](missing.md)\n")

        out = io.TextIOWrapper(io.BytesIO(), encoding="utf-8")
        err = io.StringIO()
        reporter = Reporter(out=out, err=err)
        rt = build_runtime(root=root)

        bad = Document(label="a\udcff.md", parent=root, path=root / "a.md")
        reporter.check(bad, rt)
        reporter.check(file_document(root / "b.md"), rt)

        assert reporter.failed == 1
        assert reporter.checked == 1
        assert reporter.exit_code() == 1
        assert err.getvalue().startswith("Error: a\\udcff.md: cannot print report: ")

        out.seek(0)
        assert out.read() == f'"{root / "b.md"}" at line 1 contains the broken link: missing.md\n'


def test_json_output_collects_until_finish():
    """Test that JSON reports are printed once, at the end."""
    with tempfile.TemporaryDirectory() as tmpdir:
        root = Path(tmpdir)
        (root / "a.md").write_text("[x](gone.md)\n")

        out = io.StringIO()
        reporter = Reporter(json_output=True, out=out, err=io.StringIO())
        reporter.check(file_document(root / "a.md"), build_runtime(root=root))

        assert out.getvalue() == ""
        assert reporter.broken == 1
        reporter.finish()
        assert '"destination": "gone.md"' in out.getvalue()
        assert reporter.exit_code() == 0
        assert reporter.exit_code(strict=True) == 1
