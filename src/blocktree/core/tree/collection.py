"""Ordered child collections shared by both container variants.

A collection is addressed by ``(container, tab_id)``. Simple containers have
exactly one collection (``tab_id=None``); tabbed containers have one per tab,
and ``tab_id=None`` there means the active tab.
"""

from collections.abc import Iterator, Sequence
from dataclasses import replace

from blocktree.errors import InvalidOrderError, InvalidPositionError, NotAContainerError, NotFoundError
from blocktree.models.block import Block, CollapsibleContent, Tab, TabbedContent


def active_tab(content: TabbedContent) -> Tab:
    """Return the expanded tab, or the first one when none is expanded."""
    if not content.tabs:
        msg = "Tabbed container has no tabs"
        raise NotFoundError(msg)
    return next((t for t in content.tabs if t.is_expanded), content.tabs[0])


def resolve_tab_id(container: Block, tab_id: str | None) -> str | None:
    """Normalize ``tab_id`` for ``container`` (fill in the active tab, reject bad ids)."""
    content = container.content
    if isinstance(content, CollapsibleContent):
        if tab_id is not None:
            msg = f"Block {container.id!r} has no tabs (asked for tab {tab_id!r})"
            raise NotFoundError(msg)
        return None
    if isinstance(content, TabbedContent):
        if tab_id is None:
            return active_tab(content).id
        if not any(t.id == tab_id for t in content.tabs):
            msg = f"Tab {tab_id!r} not found in block {container.id!r}"
            raise NotFoundError(msg)
        return tab_id
    msg = f"Block {container.id!r} ({container.type}) is not a container"
    raise NotAContainerError(msg)


def get_children(container: Block, tab_id: str | None = None) -> tuple[Block, ...]:
    """Return the children of ``container`` (or of one of its tabs)."""
    tab_id = resolve_tab_id(container, tab_id)
    content = container.content
    if isinstance(content, CollapsibleContent):
        return content.children
    return next(t.children for t in content.tabs if t.id == tab_id)


def with_children(
    container: Block, children: Sequence[Block], tab_id: str | None = None
) -> Block:
    """Return a copy of ``container`` whose addressed collection is ``children``."""
    tab_id = resolve_tab_id(container, tab_id)
    content = container.content
    if isinstance(content, CollapsibleContent):
        return replace(container, content=replace(content, children=tuple(children)))
    tabs = tuple(
        replace(t, children=tuple(children)) if t.id == tab_id else t for t in content.tabs
    )
    return replace(container, content=replace(content, tabs=tabs))


def iter_collections(block: Block) -> Iterator[tuple[str | None, tuple[Block, ...]]]:
    """Yield ``(tab_id, children)`` for every collection of ``block``, in order.

    Non-containers yield nothing.
    """
    content = block.content
    if isinstance(content, CollapsibleContent):
        yield None, content.children
    elif isinstance(content, TabbedContent):
        for tab in content.tabs:
            yield tab.id, tab.children


def renumber(children: Sequence[Block]) -> tuple[Block, ...]:
    """Set ``position`` to the array index, keeping untouched blocks as-is."""
    return tuple(
        c if c.position == i else replace(c, position=i) for i, c in enumerate(children)
    )


def insert_at(children: Sequence[Block], block: Block, position: int | None) -> tuple[Block, ...]:
    """Shift siblings at index >= ``position`` up by one and splice ``block`` in."""
    if position is None:
        position = len(children)
    if not 0 <= position <= len(children):
        msg = f"Insert position {position} outside [0, {len(children)}]"
        raise InvalidPositionError(msg)
    shifted = [
        replace(c, position=c.position + 1) if i >= position else c
        for i, c in enumerate(children)
    ]
    shifted.insert(position, replace(block, position=position))
    return tuple(shifted)


def remove_at(children: Sequence[Block], index: int) -> tuple[Block, ...]:
    """Drop the child at ``index`` and close the gap."""
    return renumber([c for i, c in enumerate(children) if i != index])


def reorder(children: Sequence[Block], order: Sequence[str]) -> tuple[Block, ...]:
    """Rebuild ``children`` in exactly the order of ``order``.

    Raises:
        InvalidOrderError: If ``order`` is not a permutation of the child ids.
    """
    by_id = {c.id: c for c in children}
    if len(order) != len(children) or set(order) != set(by_id):
        msg = f"Order {list(order)!r} is not a permutation of {[c.id for c in children]!r}"
        raise InvalidOrderError(msg)
    return renumber([by_id[block_id] for block_id in order])


def changed_positions(
    before: Sequence[Block], after: Sequence[Block]
) -> tuple[Block, ...]:
    """Return blocks of ``after`` whose position differs from ``before`` (or that are new)."""
    old = {c.id: c.position for c in before}
    return tuple(c for c in after if old.get(c.id) != c.position)
