import os
from pathlib import Path

from ..core.model import ClassifiedLink
from ..core.ports import ExistenceResolver


class FsResolver(ExistenceResolver):
    def locate(self, link: ClassifiedLink, parent: Path) -> Path:
        # an empty relative path is the parent directory itself
        if link.is_relative:
            return parent / link.path
        return Path(link.path)

    def exists(self, location: Path) -> bool:
        try:
            os.stat(location)
        except (OSError, ValueError):
            # unreadable counts as missing
            return False
        return True


def is_broken(
    link: ClassifiedLink, parent: Path, resolver: ExistenceResolver | None = None
) -> bool:
    """True iff the link's target does not exist (files and directories both count)."""
    resolver = resolver or FsResolver()
    return not resolver.exists(resolver.locate(link, parent))
