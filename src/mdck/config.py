"""Configuration loader for mdck.toml."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

CONFIG_NAME = "mdck.toml"


@dataclass
class ScanConfig:
    """Directory walk configuration."""
    suffixes: list[str] = field(default_factory=lambda: [".md"])
    follow_symlinks: bool = False


@dataclass
class ReportConfig:
    """Report output configuration."""
    warn_fragments: bool = False
    strict: bool = False
    json: bool = False


@dataclass
class WatchConfig:
    """Watch mode configuration."""
    debounce_ms: int = 150


@dataclass
class MdckConfig:
    """Complete mdck configuration."""
    scan: ScanConfig
    report: ReportConfig
    watch: WatchConfig
    path: Path | None = None  # file the settings came from


def load_config(config_path: Path | None = None, root: Path | None = None) -> MdckConfig:
    """
    Load configuration from mdck.toml.

    Search order:
    1. config_path (if provided)
    2. cwd/mdck.toml
    3. root/mdck.toml

    Args:
        config_path: Explicit path to config file
        root: Directory being checked, for fallback search

    Returns:
        MdckConfig with resolved settings
    """
    toml_data: dict[str, Any] = {}
    found: Path | None = None

    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if root:
        search_paths.append(root / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            with open(path, "rb") as f:
                toml_data = tomllib.load(f)
            found = path
            break

    scan_data = toml_data.get("scan", {})
    suffixes = scan_data.get("suffixes", [".md"])
    if isinstance(suffixes, str):
        suffixes = [suffixes]
    scan_config = ScanConfig(
        suffixes=list(suffixes),
        follow_symlinks=scan_data.get("follow_symlinks", False),
    )

    report_data = toml_data.get("report", {})
    report_config = ReportConfig(
        warn_fragments=report_data.get("warn_fragments", False),
        strict=report_data.get("strict", False),
        json=report_data.get("json", False),
    )

    watch_data = toml_data.get("watch", {})
    watch_config = WatchConfig(
        debounce_ms=watch_data.get("debounce_ms", 150)
    )

    return MdckConfig(
        scan=scan_config,
        report=report_config,
        watch=watch_config,
        path=found,
    )
