"""Find a block anywhere in the forest and describe how to get back to its root."""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from blocktree.core.tree.collection import iter_collections
from blocktree.models.block import Block


@dataclass(frozen=True)
class PathStep:
    """One block on a root-to-target path.

    ``index`` is the block's index in its parent collection (in the forest for
    the root step); ``tab_id`` names the parent tab when the parent is tabbed.
    """

    block: Block
    index: int
    tab_id: str | None = None


@dataclass(frozen=True)
class Path:
    steps: tuple[PathStep, ...]

    @property
    def root(self) -> Block:
        return self.steps[0].block

    @property
    def target(self) -> Block:
        return self.steps[-1].block

    @property
    def parent(self) -> Block | None:
        return self.steps[-2].block if len(self.steps) > 1 else None

    @property
    def depth(self) -> int:
        """0 for a top-level block."""
        return len(self.steps) - 1

    def contains(self, block_id: str) -> bool:
        return any(s.block.id == block_id for s in self.steps)


def iter_paths(forest: Sequence[Block]) -> Iterator[Path]:
    """Yield the path of every block in the forest, depth-first and pre-order.

    Simple containers are walked through their children, tabbed containers
    through each tab's children in tab order. Uses an explicit stack, so
    nesting depth is unbounded.
    """
    stack: list[tuple[PathStep, ...]] = [
        (PathStep(block=b, index=i),) for i, b in reversed(list(enumerate(forest)))
    ]
    while stack:
        steps = stack.pop()
        yield Path(steps=steps)

        pending: list[tuple[PathStep, ...]] = []
        for tab_id, children in iter_collections(steps[-1].block):
            for i, child in enumerate(children):
                pending.append((*steps, PathStep(block=child, index=i, tab_id=tab_id)))
        stack.extend(reversed(pending))


def locate(forest: Sequence[Block], target_id: str) -> Path | None:
    """Find ``target_id`` anywhere in the forest.

    Returns:
        The path from the top-level root to the target, or None if no block
        in the forest has that id.
    """
    return next((p for p in iter_paths(forest) if p.target.id == target_id), None)


def find_by_status(forest: Sequence[Block], status: str) -> list[Path]:
    """Return the paths of all blocks whose status label is exactly ``status``, in document order."""
    return [p for p in iter_paths(forest) if p.target.decorations.status == status]


def iter_subtree(block: Block) -> Iterator[Block]:
    """Yield ``block`` and every block nested beneath it, pre-order."""
    stack = [block]
    while stack:
        current = stack.pop()
        yield current
        nested = [c for _, children in iter_collections(current) for c in children]
        stack.extend(reversed(nested))
