"""Nested block documents: data model, tree engine and stores."""

from blocktree.core.database.store import SqliteStore
from blocktree.core.mutate.engine import MutationResult
from blocktree.editor import DocumentEditor
from blocktree.errors import (
    BlockTreeError,
    InvalidOrderError,
    InvalidPositionError,
    NotFoundError,
    PersistenceFailure,
)
from blocktree.models.block import Block, BlockType
from blocktree.protocols import StoreProtocol

__all__ = [
    "Block",
    "BlockTreeError",
    "BlockType",
    "DocumentEditor",
    "InvalidOrderError",
    "InvalidPositionError",
    "MutationResult",
    "NotFoundError",
    "PersistenceFailure",
    "SqliteStore",
    "StoreProtocol",
]
