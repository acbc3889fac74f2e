"""Render a block forest as an indented markdown outline."""

import io
from collections.abc import Sequence

from blocktree.core.tree.collection import iter_collections
from blocktree.models.block import (
    Block,
    CollapsibleContent,
    DividerContent,
    HeaderContent,
    ListContent,
    ListItem,
    LongTextContent,
    MarkdownContent,
    TabbedContent,
    TextContent,
)

_INDENT = "    "


def block_label(block: Block) -> str:
    """One-line label for a block, as shown in outlines."""
    content = block.content
    match content:
        case HeaderContent():
            return f"{'#' * int(content.size[1])} {content.text.plain_text}"
        case TextContent() | LongTextContent():
            return content.text.plain_text
        case ListContent():
            return f"[{content.list_type} list]"
        case DividerContent():
            return f"--- ({content.style})"
        case CollapsibleContent():
            marker = "[-]" if content.is_expanded else "[+]"
            return f"{marker} {content.title.plain_text}"
        case TabbedContent():
            return f"[tabs: {len(content.tabs)}]"
        case MarkdownContent():
            return content.markdown.strip()
    return str(block.type)


def _write_lines(out: io.StringIO, indent: str, prefix: str, text: str) -> None:
    lines = text.split("\n")
    out.write(f"{indent}{prefix}{lines[0]}\n")
    for line in lines[1:]:
        out.write(f"{indent}  {line}\n")


def _write_items(out: io.StringIO, items: Sequence[ListItem], level: int) -> None:
    for item in items:
        prefix = "- "
        if item.checked is not None:
            prefix = "- [x] " if item.checked else "- [ ] "
        _write_lines(out, _INDENT * level, prefix, item.text.plain_text)
        _write_items(out, item.children, level + 1)


def _write_block(
    out: io.StringIO, block: Block, *, depth: int, level: int, max_depth: int | None
) -> None:
    indent = _INDENT * level
    label = block_label(block)
    if block.decorations.status:
        label = f"{label} ({block.decorations.status})"
    _write_lines(out, indent, "- ", label)
    if block.decorations.overlay_comment:
        for note_line in block.decorations.overlay_comment.split("\n"):
            out.write(f"{indent}  > {note_line}\n")

    if isinstance(block.content, ListContent):
        _write_items(out, block.content.items, level + 1)

    collections = list(iter_collections(block))
    if max_depth is not None and depth >= max_depth:
        child_count = sum(len(children) for _, children in collections)
        if child_count:
            noun = "child" if child_count == 1 else "children"
            out.write(f"{indent}{_INDENT}- ... ({child_count} more {noun}, id={block.id})\n")
        return

    if isinstance(block.content, TabbedContent):
        for tab in block.content.tabs:
            active = " (active)" if tab.is_expanded else ""
            out.write(f"{indent}{_INDENT}- [tab] {tab.title}{active}\n")
            for child in tab.children:
                _write_block(out, child, depth=depth + 1, level=level + 2, max_depth=max_depth)
    else:
        for _, children in collections:
            for child in children:
                _write_block(out, child, depth=depth + 1, level=level + 1, max_depth=max_depth)


def render_outline(forest: Sequence[Block], *, max_depth: int | None = None) -> str:
    """Render blocks and their descendants as an indented bullet outline.

    Args:
        forest: Blocks to render (a whole forest or any subtree roots).
        max_depth: Max container levels below the given blocks (None = unlimited).
            Cut-off children are summarized with a truncation line.

    Returns:
        Markdown string with bullet-list hierarchy.
    """
    out = io.StringIO()
    for block in forest:
        _write_block(out, block, depth=0, level=0, max_depth=max_depth)
    return out.getvalue()
