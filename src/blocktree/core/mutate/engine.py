"""Structural operations on the block forest.

Every operation is a pure function: it takes a forest snapshot (a sequence of
top-level blocks) and returns a ``MutationResult`` with the new forest and the
top-level records that must be written back. Nested blocks are never stored
on their own, so any change below the top level is reported as its rebuilt
top-level ancestor. All checks run before anything is built; on error the
input forest is untouched.
"""

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace

from loguru import logger

from blocktree.core.mutate.arraymove import adjusted_drop_index, array_move
from blocktree.core.registry import (
    DEFAULT_TAB_COLOR,
    get_spec,
    new_id,
    validate_content,
)
from blocktree.core.tree.collection import (
    get_children,
    insert_at,
    remove_at,
    renumber,
    reorder,
    resolve_tab_id,
    with_children,
)
from blocktree.core.tree.index import ForestIndex
from blocktree.core.tree.locator import Path, PathStep, iter_subtree, locate
from blocktree.errors import (
    DuplicateIdError,
    InvalidOrderError,
    InvalidPositionError,
    NotAContainerError,
    NotFoundError,
)
from blocktree.models.block import Block, BlockType, Content, Decorations, Tab, TabbedContent

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class MutationResult:
    """Outcome of one engine operation.

    Attributes:
        forest: The new forest.
        saved: Top-level blocks that changed and must be upserted, in forest order.
        removed: Ids of top-level records that no longer exist.
        block: The block the operation created, changed or moved, if any.
    """

    forest: tuple[Block, ...]
    saved: tuple[Block, ...] = ()
    removed: tuple[str, ...] = ()
    block: Block | None = None

    @property
    def root(self) -> Block | None:
        """The first record to persist (the only one for nested operations)."""
        return self.saved[0] if self.saved else None

    @property
    def changed(self) -> bool:
        return bool(self.saved or self.removed)


def _require(forest: Sequence[Block], block_id: str) -> Path:
    path = locate(forest, block_id)
    if path is None:
        msg = f"Block {block_id!r} not found"
        raise NotFoundError(msg)
    return path


def _touch(block: Block, now: int) -> Block:
    # updated_at must move forward even when two edits land in the same millisecond
    return replace(block, updated_at=max(now, block.updated_at + 1))


def _rebuild(steps: tuple[PathStep, ...], replacement: Block, now: int) -> Block:
    """Substitute ``replacement`` for the last block of ``steps`` and copy up to the root."""
    current = replacement
    for parent_step, child_step in zip(reversed(steps[:-1]), reversed(steps[1:]), strict=True):
        parent = parent_step.block
        children = list(get_children(parent, child_step.tab_id))
        children[child_step.index] = current
        current = _touch(with_children(parent, children, child_step.tab_id), now)
    return current


def _replace_root(forest: Sequence[Block], index: int, root: Block) -> tuple[Block, ...]:
    return tuple(root if i == index else b for i, b in enumerate(forest))


def _result(
    before: Sequence[Block], after: tuple[Block, ...], block: Block | None = None
) -> MutationResult:
    """Diff two forests by top-level identity to find records to save or delete."""
    previous = {b.id: b for b in before}
    saved = tuple(b for b in after if previous.get(b.id) is not b)
    kept = {b.id for b in after}
    removed = tuple(b.id for b in before if b.id not in kept)
    return MutationResult(forest=after, saved=saved, removed=removed, block=block)


def _edit_collection(
    forest: Sequence[Block],
    container_id: str | None,
    tab_id: str | None,
    edit: Callable[[tuple[Block, ...]], tuple[Block, ...]],
    now: int,
) -> tuple[Block, ...]:
    """Apply ``edit`` to one ordered collection and return the new forest.

    ``container_id=None`` addresses the top level.
    """
    if container_id is None:
        if tab_id is not None:
            msg = f"The top level has no tabs (asked for tab {tab_id!r})"
            raise NotFoundError(msg)
        return edit(tuple(forest))

    path = _require(forest, container_id)
    container = path.target
    tab_id = resolve_tab_id(container, tab_id)
    before = get_children(container, tab_id)
    children = edit(before)
    if len(children) == len(before) and all(a is b for a, b in zip(children, before)):
        return tuple(forest)

    new_container = _touch(with_children(container, children, tab_id), now)
    root = _rebuild(path.steps, new_container, now)
    return _replace_root(forest, path.steps[0].index, root)


def _find(forest: Sequence[Block], block_id: str) -> Block:
    return _require(forest, block_id).target


def insert_block(
    forest: Sequence[Block],
    container_id: str | None,
    block_type: BlockType | str,
    *,
    position: int | None = None,
    tab_id: str | None = None,
    block_id: str | None = None,
    clock: Clock = now_ms,
) -> MutationResult:
    """Create a block of ``block_type`` with its default payload.

    Args:
        forest: Current forest.
        container_id: Container to insert into, or None for the top level.
        block_type: Variant of the new block.
        position: Index among the siblings (default: append).
        tab_id: Tab of a tabbed container (default: the active tab).
        block_id: Explicit id for the new block (default: a fresh uuid4).
        clock: Millisecond clock.

    Raises:
        NotFoundError: The container or tab does not exist.
        NotAContainerError: The container id names a non-container block.
        InvalidPositionError: ``position`` is outside ``[0, len(children)]``.
        DuplicateIdError: ``block_id`` is already in use.
    """
    spec = get_spec(block_type)
    if block_id is not None and locate(forest, block_id) is not None:
        msg = f"Block id {block_id!r} is already in use"
        raise DuplicateIdError(msg)

    now = clock()
    block = Block(
        id=block_id or new_id(),
        type=BlockType(block_type),
        position=0,
        content=spec.default_content(),
        created_at=now,
        updated_at=now,
    )
    new_forest = _edit_collection(
        forest, container_id, tab_id, lambda c: insert_at(c, block, position), now
    )
    logger.debug("Inserted {} block {} into {}", block.type, block.id, container_id or "top level")
    return _result(forest, new_forest, _find(new_forest, block.id))


def update_block(
    forest: Sequence[Block],
    node_id: str,
    *,
    content: Content | None = None,
    decorations: Decorations | None = None,
    clock: Clock = now_ms,
) -> MutationResult:
    """Replace the content and/or decorations of a block at any depth.

    ``id``, ``type`` and ``position`` are never changed. The block's
    ``updated_at`` moves forward and every ancestor is rebuilt.

    Raises:
        ValueError: Neither ``content`` nor ``decorations`` was given.
        NotFoundError: ``node_id`` does not exist.
        InvalidContentError: ``content`` does not fit the block's type.
        DuplicateIdError: A container payload brings in ids used elsewhere.
    """
    if content is None and decorations is None:
        msg = "No fields to update."
        raise ValueError(msg)

    path = _require(forest, node_id)
    target = path.target
    changes: dict[str, object] = {}
    if content is not None:
        validate_content(target.type, content, block_id=node_id)
        if get_spec(target.type).is_container:
            _check_incoming_ids(forest, target, content)
            _check_nested_payloads(target, content)
        changes["content"] = content
    if decorations is not None:
        changes["decorations"] = decorations

    now = clock()
    updated = _touch(replace(target, **changes), now)
    root = _rebuild(path.steps, updated, now)
    new_forest = _replace_root(forest, path.steps[0].index, root)
    logger.debug("Updated block {} (depth {})", node_id, path.depth)
    return _result(forest, new_forest, updated)


def _check_incoming_ids(forest: Sequence[Block], target: Block, content: Content) -> None:
    incoming = [b.id for b in iter_subtree(replace(target, content=content))]
    if len(set(incoming)) != len(incoming):
        msg = f"New content of block {target.id!r} repeats block ids"
        raise DuplicateIdError(msg)
    own = {b.id for b in iter_subtree(target)}
    index = ForestIndex(forest)
    clashes = sorted(i for i in set(incoming) - own if i in index)
    if clashes:
        msg = f"New content of block {target.id!r} reuses ids from elsewhere: {clashes!r}"
        raise DuplicateIdError(msg)


def _check_nested_payloads(target: Block, content: Content) -> None:
    # nested payloads too, not just the container's own
    for block in iter_subtree(replace(target, content=content)):
        if block.id != target.id:
            validate_content(block.type, block.content, block_id=block.id)


def delete_block(
    forest: Sequence[Block], node_id: str, *, clock: Clock = now_ms
) -> MutationResult:
    """Remove a block and its subtree; remaining siblings are renumbered 0..n-1.

    Raises:
        NotFoundError: ``node_id`` does not exist.
    """
    path = _require(forest, node_id)
    step = path.steps[-1]
    parent = path.parent
    new_forest = _edit_collection(
        forest,
        parent.id if parent else None,
        step.tab_id,
        lambda c: remove_at(c, step.index),
        clock(),
    )
    logger.debug("Deleted block {} (depth {})", node_id, path.depth)
    return _result(forest, new_forest)


def reorder_children(
    forest: Sequence[Block],
    container_id: str | None,
    order: Sequence[str],
    *,
    tab_id: str | None = None,
    clock: Clock = now_ms,
) -> MutationResult:
    """Put a collection in exactly the given order and renumber it from scratch.

    Raises:
        NotFoundError: The container or tab does not exist.
        InvalidOrderError: ``order`` is not a permutation of the current ids.
    """
    new_forest = _edit_collection(
        forest, container_id, tab_id, lambda c: reorder(c, order), clock()
    )
    return _result(forest, new_forest)


def move_to_position(
    forest: Sequence[Block], source_index: int, drop_index: int
) -> MutationResult:
    """Drag a top-level block from ``source_index`` to drop slot ``drop_index``.

    Raises:
        InvalidPositionError: Either index is out of range.
    """
    moved = renumber(array_move(forest, source_index, drop_index))
    block = moved[adjusted_drop_index(source_index, drop_index)]
    logger.debug("Moved top-level block {} from {} to {}", block.id, source_index, block.position)
    return _result(forest, moved, block)


def _shift(forest: Sequence[Block], node_id: str, offset: int, clock: Clock) -> MutationResult:
    path = _require(forest, node_id)
    step = path.steps[-1]
    parent = path.parent
    siblings = get_children(parent, step.tab_id) if parent else tuple(forest)
    other = step.index + offset
    if not 0 <= other < len(siblings):
        return MutationResult(forest=tuple(forest), block=path.target)

    order = [b.id for b in siblings]
    order[step.index], order[other] = order[other], order[step.index]
    result = reorder_children(
        forest, parent.id if parent else None, order, tab_id=step.tab_id, clock=clock
    )
    return replace(result, block=_find(result.forest, node_id))


def move_up(forest: Sequence[Block], node_id: str, *, clock: Clock = now_ms) -> MutationResult:
    """Swap a block with its previous sibling; no change if it is already first."""
    return _shift(forest, node_id, -1, clock)


def move_down(forest: Sequence[Block], node_id: str, *, clock: Clock = now_ms) -> MutationResult:
    """Swap a block with its next sibling; no change if it is already last."""
    return _shift(forest, node_id, 1, clock)


def relocate_block(
    forest: Sequence[Block],
    node_id: str,
    container_id: str | None,
    *,
    tab_id: str | None = None,
    position: int | None = None,
    clock: Clock = now_ms,
) -> MutationResult:
    """Move a block (with its subtree) into another collection.

    ``position`` is an index in the destination collection as it is after the
    block has been taken out of its old place. Both the old and the new
    collection end up numbered 0..n-1. Source and destination may belong to
    different top-level records, in which case both are reported in ``saved``.

    Raises:
        NotFoundError: The block, container or tab does not exist.
        NotAContainerError: ``container_id`` names a non-container block.
        InvalidPositionError: ``position`` is out of range, or the destination
            is the block itself or one of its descendants.
    """
    path = _require(forest, node_id)
    if container_id is not None:
        destination = _require(forest, container_id)
        if destination.contains(node_id):
            msg = f"Cannot move block {node_id!r} into its own subtree"
            raise InvalidPositionError(msg)
        resolve_tab_id(destination.target, tab_id)

    now = clock()
    step = path.steps[-1]
    parent = path.parent
    moving = path.target
    detached = _edit_collection(
        forest, parent.id if parent else None, step.tab_id, lambda c: remove_at(c, step.index), now
    )
    attached = _edit_collection(
        detached, container_id, tab_id, lambda c: insert_at(c, moving, position), now
    )
    logger.debug("Relocated block {} into {}", node_id, container_id or "top level")
    return _result(forest, attached, _find(attached, node_id))


def _edit_tabs(
    forest: Sequence[Block],
    container_id: str,
    edit: Callable[[tuple[Tab, ...]], tuple[Tab, ...]],
    clock: Clock,
) -> MutationResult:
    path = _require(forest, container_id)
    container = path.target
    content = container.content
    if not isinstance(content, TabbedContent):
        msg = f"Block {container_id!r} ({container.type}) is not a tabbed container"
        raise NotAContainerError(msg)

    tabs = edit(content.tabs)
    if len(tabs) == len(content.tabs) and all(a is b for a, b in zip(tabs, content.tabs)):
        return MutationResult(forest=tuple(forest), block=container)

    now = clock()
    updated = _touch(replace(container, content=replace(content, tabs=tabs)), now)
    root = _rebuild(path.steps, updated, now)
    return _result(forest, _replace_root(forest, path.steps[0].index, root), updated)


def _require_tab(tabs: tuple[Tab, ...], tab_id: str) -> Tab:
    for tab in tabs:
        if tab.id == tab_id:
            return tab
    msg = f"Tab {tab_id!r} not found"
    raise NotFoundError(msg)


def _only_expanded(tabs: Sequence[Tab], tab_id: str) -> tuple[Tab, ...]:
    return tuple(
        t if t.is_expanded == (t.id == tab_id) else replace(t, is_expanded=t.id == tab_id)
        for t in tabs
    )


def add_tab(
    forest: Sequence[Block],
    container_id: str,
    *,
    title: str | None = None,
    color: str = DEFAULT_TAB_COLOR,
    tab_id: str | None = None,
    activate: bool = True,
    clock: Clock = now_ms,
) -> MutationResult:
    """Append a tab to a tabbed container; by default it becomes the active tab."""

    def edit(tabs: tuple[Tab, ...]) -> tuple[Tab, ...]:
        if tab_id is not None and any(t.id == tab_id for t in tabs):
            msg = f"Tab id {tab_id!r} is already in use"
            raise DuplicateIdError(msg)
        tab = Tab(id=tab_id or new_id(), title=title or f"Tab {len(tabs) + 1}", color=color)
        tabs = (*tabs, tab)
        return _only_expanded(tabs, tab.id) if activate else tabs

    return _edit_tabs(forest, container_id, edit, clock)


def activate_tab(
    forest: Sequence[Block], container_id: str, tab_id: str, *, clock: Clock = now_ms
) -> MutationResult:
    """Expand ``tab_id`` and collapse every other tab of the container."""

    def edit(tabs: tuple[Tab, ...]) -> tuple[Tab, ...]:
        _require_tab(tabs, tab_id)
        return _only_expanded(tabs, tab_id)

    return _edit_tabs(forest, container_id, edit, clock)


def update_tab(
    forest: Sequence[Block],
    container_id: str,
    tab_id: str,
    *,
    title: str | None = None,
    color: str | None = None,
    clock: Clock = now_ms,
) -> MutationResult:
    """Change a tab's title and/or colour."""
    if title is None and color is None:
        msg = "No fields to update."
        raise ValueError(msg)

    def edit(tabs: tuple[Tab, ...]) -> tuple[Tab, ...]:
        _require_tab(tabs, tab_id)
        return tuple(
            replace(
                t,
                title=t.title if title is None else title,
                color=t.color if color is None else color,
            )
            if t.id == tab_id
            else t
            for t in tabs
        )

    return _edit_tabs(forest, container_id, edit, clock)


def delete_tab(
    forest: Sequence[Block], container_id: str, tab_id: str, *, clock: Clock = now_ms
) -> MutationResult:
    """Remove a tab and everything in it.

    If the active tab is removed, the first remaining tab becomes active.

    Raises:
        InvalidPositionError: The tab is the container's last one.
    """

    def edit(tabs: tuple[Tab, ...]) -> tuple[Tab, ...]:
        removed = _require_tab(tabs, tab_id)
        if len(tabs) == 1:
            msg = f"Cannot delete the last tab of block {container_id!r}"
            raise InvalidPositionError(msg)
        remaining = tuple(t for t in tabs if t.id != tab_id)
        if removed.is_expanded:
            return _only_expanded(remaining, remaining[0].id)
        return remaining

    return _edit_tabs(forest, container_id, edit, clock)


def reorder_tabs(
    forest: Sequence[Block], container_id: str, order: Sequence[str], *, clock: Clock = now_ms
) -> MutationResult:
    """Put the tabs of a container in exactly the given order."""

    def edit(tabs: tuple[Tab, ...]) -> tuple[Tab, ...]:
        by_id = {t.id: t for t in tabs}
        if len(order) != len(tabs) or set(order) != set(by_id):
            msg = f"Order {list(order)!r} is not a permutation of {list(by_id)!r}"
            raise InvalidOrderError(msg)
        return tuple(by_id[t] for t in order)

    return _edit_tabs(forest, container_id, edit, clock)

