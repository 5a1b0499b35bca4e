import os
import sys
from pathlib import Path

import pytest


@pytest.fixture
def make_undecodable():
    """Create a markdown file whose name is not valid UTF-8, or skip."""
    if sys.getfilesystemencoding().lower() not in ("utf-8", "utf8"):
        pytest.skip("needs a UTF-8 file system encoding")

    def make(directory: Path, text: str) -> Path:
        path = Path(os.fsdecode(os.path.join(os.fsencode(directory), b"bad\xff.md")))
        try:
            path.write_text(text)
        except OSError:
            pytest.skip("file system rejects non-UTF-8 names")
        return path

    return make
