"""Runtime wiring helper for the CLI."""

from dataclasses import dataclass
from pathlib import Path

from .adapters.fs_resolver import FsResolver
from .adapters.markdown_tokenizer import MarkdownTokenizer
from .config import MdckConfig, load_config
from .core.ports import ExistenceResolver, TokenizerStrategy


@dataclass
class Runtime:
    """Container for all wired components."""
    config: MdckConfig
    tokenizer: TokenizerStrategy
    resolver: ExistenceResolver


def build_runtime(
    config_path: Path | None = None,
    root: Path | None = None,
) -> Runtime:
    """Load configuration and wire the scanning components."""
    config = load_config(config_path=config_path, root=root)
    return Runtime(
        config=config,
        tokenizer=MarkdownTokenizer(),
        resolver=FsResolver(),
    )
