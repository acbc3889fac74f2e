"""Drag-and-drop reposition of the flat top-level list."""

from collections.abc import Sequence
from typing import TypeVar

from blocktree.errors import InvalidPositionError

T = TypeVar("T")


def adjusted_drop_index(source_index: int, drop_index: int) -> int:
    """Translate a drop slot into the index the item ends up at.

    Drop slots are counted before the dragged item is removed, so dropping
    below the source lands one slot higher once the source is gone.
    """
    return drop_index - 1 if source_index < drop_index else drop_index


def array_move(items: Sequence[T], source_index: int, drop_index: int) -> list[T]:
    """Splice ``items[source_index]`` out and back in at the adjusted drop slot.

    Raises:
        InvalidPositionError: If ``source_index`` is outside ``[0, n)`` or
            ``drop_index`` is outside ``[0, n]``.
    """
    n = len(items)
    if not 0 <= source_index < n:
        msg = f"Source index {source_index} outside [0, {n})"
        raise InvalidPositionError(msg)
    if not 0 <= drop_index <= n:
        msg = f"Drop index {drop_index} outside [0, {n}]"
        raise InvalidPositionError(msg)

    result = list(items)
    moved = result.pop(source_index)
    result.insert(adjusted_drop_index(source_index, drop_index), moved)
    return result
