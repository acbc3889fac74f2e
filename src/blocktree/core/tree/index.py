"""Flat id -> location index over a forest, plus whole-forest invariant checks."""

from collections.abc import Sequence
from dataclasses import dataclass

from blocktree.core.registry import validate_content
from blocktree.core.tree.collection import iter_collections
from blocktree.errors import DuplicateIdError, InvalidContentError
from blocktree.models.block import Block


@dataclass(frozen=True)
class Location:
    """Where a block lives. ``parent_id`` is None for top-level blocks."""

    root_id: str
    parent_id: str | None
    tab_id: str | None
    index: int
    depth: int


class ForestIndex:
    """O(1) lookups by id over an immutable forest snapshot.

    Built in one pass; raises ``DuplicateIdError`` if an id occurs twice.
    """

    def __init__(self, forest: Sequence[Block]) -> None:
        self.blocks: dict[str, Block] = {}
        self.locations: dict[str, Location] = {}

        todo: list[tuple[Block, Location]] = [
            (b, Location(root_id=b.id, parent_id=None, tab_id=None, index=i, depth=0))
            for i, b in enumerate(forest)
        ]
        while todo:
            block, loc = todo.pop()
            if block.id in self.blocks:
                msg = f"Block id {block.id!r} occurs more than once in the forest"
                raise DuplicateIdError(msg)
            self.blocks[block.id] = block
            self.locations[block.id] = loc
            for tab_id, children in iter_collections(block):
                for i, child in enumerate(children):
                    todo.append(
                        (
                            child,
                            Location(
                                root_id=loc.root_id,
                                parent_id=block.id,
                                tab_id=tab_id,
                                index=i,
                                depth=loc.depth + 1,
                            ),
                        )
                    )

    def __contains__(self, block_id: object) -> bool:
        return block_id in self.blocks

    def __len__(self) -> int:
        return len(self.blocks)

    def get(self, block_id: str) -> Block | None:
        return self.blocks.get(block_id)

    def root_id_of(self, block_id: str) -> str | None:
        loc = self.locations.get(block_id)
        return loc.root_id if loc else None


def validate_forest(forest: Sequence[Block]) -> ForestIndex:
    """Check every invariant of a loaded forest and return its index.

    Raises:
        DuplicateIdError: If any id occurs twice.
        InvalidContentError: If a payload does not match its type or any
            collection (the top level included) is not numbered 0..n-1.
    """
    positions = [b.position for b in forest]
    if positions != list(range(len(forest))):
        msg = f"Top-level blocks are not numbered 0..{len(forest) - 1}: {positions!r}"
        raise InvalidContentError(msg)

    index = ForestIndex(forest)
    for block in index.blocks.values():
        validate_content(block.type, block.content, block_id=block.id)
    return index
