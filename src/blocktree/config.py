"""Configuration constants for blocktree."""

from pathlib import Path

# Directory with the block database. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/blocktree").expanduser(),
    Path("~/.blocktree").expanduser(),
    Path("~/.config/blocktree").expanduser(),
]

DB_FILENAME: str = "blocks.db"

# Document used when the CLI is not given one.
DEFAULT_DOCUMENT_ID: str = "default"


def resolve_data_directory() -> Path:
    """Return the first existing data directory, or the first candidate if none exists."""
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
