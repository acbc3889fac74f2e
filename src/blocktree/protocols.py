"""Protocols for dependency injection around the block engine."""

from typing import Protocol, runtime_checkable

from blocktree.models.block import Block


@runtime_checkable
class StoreProtocol(Protocol):
    """Key-value store of top-level blocks.

    Each record is a whole persistence unit: a top-level block with its
    nested subtree inline. There is no way to read or write a nested block
    on its own. Implementations raise ``PersistenceFailure`` on I/O errors.
    """

    def load_all(self, document_id: str) -> list[Block]:
        """Return the document's top-level blocks, sorted by position."""
        ...

    def save(self, document_id: str, block: Block) -> None:
        """Insert or fully overwrite one top-level record."""
        ...

    def delete(self, document_id: str, block_id: str) -> None:
        """Remove one top-level record."""
        ...
