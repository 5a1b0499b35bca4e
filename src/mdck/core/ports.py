from pathlib import Path
from typing import Iterator, Protocol

from .model import ClassifiedLink, Event


class TokenizerStrategy(Protocol):
    """
    Forward-only markdown event stream. Each event is paired with the offset
    in the source text at which its token begins; offsets never decrease.
    """

    def events(self, text: str) -> Iterator[tuple[int, Event]]:
        pass


class ExistenceResolver(Protocol):
    """
    Map a classified link to a filesystem location and test its presence.
    Relative paths are joined to the document's parent directory.
    """

    def locate(self, link: ClassifiedLink, parent: Path) -> Path:
        pass

    def exists(self, location: Path) -> bool:
        pass
