"""Exceptions raised by the block engine and its stores."""


class BlockTreeError(Exception):
    """Base class for all blocktree errors."""


class NotFoundError(BlockTreeError, LookupError):
    """No block (or tab) with the requested id exists in the forest."""


class NotAContainerError(NotFoundError):
    """The target block has no child collection."""


class InvalidPositionError(BlockTreeError, IndexError):
    """An index lies outside the range allowed for its collection."""


class InvalidOrderError(BlockTreeError, ValueError):
    """A reorder argument is not a permutation of the current sibling ids."""


class InvalidContentError(BlockTreeError, ValueError):
    """A content payload does not fit its block type."""


class DuplicateIdError(BlockTreeError, ValueError):
    """An id is already used somewhere in the forest."""


class PersistenceFailure(BlockTreeError):
    """The store could not complete a read or write."""
