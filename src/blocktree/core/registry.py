"""Block variant registry: default payloads and payload validation per type."""

import uuid
from collections.abc import Callable
from dataclasses import dataclass

from blocktree.errors import InvalidContentError
from blocktree.models.block import (
    Block,
    BlockType,
    CollapsibleContent,
    Content,
    DividerContent,
    HeaderContent,
    ListContent,
    ListItem,
    LongTextContent,
    MarkdownContent,
    RichText,
    Tab,
    TabbedContent,
    TextContent,
)

DEFAULT_TAB_COLOR = "#3B82F6"


def new_id() -> str:
    return str(uuid.uuid4())


def new_tab(title: str, *, color: str = DEFAULT_TAB_COLOR, is_expanded: bool = False) -> Tab:
    return Tab(id=new_id(), title=title, color=color, is_expanded=is_expanded)


@dataclass(frozen=True)
class VariantSpec:
    """What the engine needs to know about one block type."""

    content_type: type
    default_content: Callable[[], Content]
    is_container: bool = False


REGISTRY: dict[BlockType, VariantSpec] = {
    BlockType.HEADER: VariantSpec(
        HeaderContent, lambda: HeaderContent(text=RichText.plain("New Header"))
    ),
    BlockType.TEXT: VariantSpec(TextContent, lambda: TextContent(text=RichText())),
    BlockType.LIST: VariantSpec(
        ListContent, lambda: ListContent(items=(ListItem(id=new_id()),))
    ),
    BlockType.DIVIDER: VariantSpec(DividerContent, DividerContent),
    BlockType.COLLAPSIBLE: VariantSpec(
        CollapsibleContent,
        lambda: CollapsibleContent(title=RichText.plain("Toggle section")),
        is_container=True,
    ),
    BlockType.TABBED: VariantSpec(
        TabbedContent,
        lambda: TabbedContent(tabs=(new_tab("Tab 1", is_expanded=True),)),
        is_container=True,
    ),
    BlockType.LONG_TEXT: VariantSpec(LongTextContent, lambda: LongTextContent(text=RichText())),
    BlockType.MARKDOWN: VariantSpec(
        MarkdownContent, lambda: MarkdownContent(markdown="# New Markdown Block\n")
    ),
}


def get_spec(block_type: BlockType | str) -> VariantSpec:
    try:
        return REGISTRY[BlockType(block_type)]
    except ValueError:
        msg = f"Unknown block type: {block_type!r}"
        raise InvalidContentError(msg) from None


def default_content(block_type: BlockType | str) -> Content:
    """Return a fresh, renderable payload for a new block of ``block_type``."""
    return get_spec(block_type).default_content()


def is_container(block_type: BlockType | str) -> bool:
    return get_spec(block_type).is_container


def _check_positions(children: tuple[Block, ...], where: str) -> None:
    positions = [c.position for c in children]
    if positions != list(range(len(children))):
        msg = f"Children of {where} are not numbered 0..{len(children) - 1}: {positions!r}"
        raise InvalidContentError(msg)


def validate_content(block_type: BlockType | str, content: Content, *, block_id: str = "?") -> None:
    """Check that ``content`` is a valid payload for ``block_type``.

    Only the block's own payload is checked; nested blocks are validated when
    the forest is indexed.

    Raises:
        InvalidContentError: On a variant mismatch, a broken position sequence
            or duplicate tab ids.
    """
    spec = get_spec(block_type)
    if not isinstance(content, spec.content_type):
        msg = (
            f"Block {block_id!r} of type {str(block_type)!r} cannot hold "
            f"{type(content).__name__}"
        )
        raise InvalidContentError(msg)

    if isinstance(content, CollapsibleContent):
        _check_positions(content.children, f"block {block_id!r}")
    elif isinstance(content, TabbedContent):
        if not content.tabs:
            msg = f"Tabbed block {block_id!r} must have at least one tab"
            raise InvalidContentError(msg)
        tab_ids = [t.id for t in content.tabs]
        if len(set(tab_ids)) != len(tab_ids):
            msg = f"Duplicate tab ids in block {block_id!r}: {sorted(tab_ids)!r}"
            raise InvalidContentError(msg)
        for tab in content.tabs:
            _check_positions(tab.children, f"tab {tab.id!r} of block {block_id!r}")
