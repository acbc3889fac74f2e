"""Convert blocks to and from plain JSON-ready dicts.

One top-level block, with everything nested under it, becomes one dict; that
dict is the unit the stores write. Keys follow the editor's camelCase record
format (``createdAt``, ``nestedBlocks``, ``isExpanded`` ...). Rich-text spans
are copied through untouched.
"""

from collections.abc import Callable
from typing import Any

from blocktree.models.block import (
    Block,
    BlockType,
    CollapsibleContent,
    Content,
    Decorations,
    DividerContent,
    HeaderContent,
    ListContent,
    ListItem,
    LongTextContent,
    MarkdownContent,
    RichText,
    Span,
    Tab,
    TabbedContent,
    TextContent,
)


def rich_text_to_dict(text: RichText) -> dict[str, Any]:
    spans: list[dict[str, Any]] = []
    for span in text.spans:
        raw: dict[str, Any] = {"text": span.text}
        if span.style is not None:
            raw["style"] = span.style
        spans.append(raw)
    return {"spans": spans}


def rich_text_from_dict(data: dict[str, Any] | None) -> RichText:
    if not data:
        return RichText()
    return RichText(
        spans=tuple(Span(text=s.get("text", ""), style=s.get("style")) for s in data["spans"])
    )


def _list_item_to_dict(item: ListItem) -> dict[str, Any]:
    raw: dict[str, Any] = {"id": item.id, "content": rich_text_to_dict(item.text)}
    if item.checked is not None:
        raw["checked"] = item.checked
    if item.children:
        raw["children"] = [_list_item_to_dict(c) for c in item.children]
    return raw


def _list_item_from_dict(data: dict[str, Any]) -> ListItem:
    return ListItem(
        id=data["id"],
        text=rich_text_from_dict(data.get("content")),
        checked=data.get("checked"),
        children=tuple(_list_item_from_dict(c) for c in data.get("children", [])),
    )


def _tab_title(raw: Any) -> str:
    # Older records store tab titles as rich text.
    if isinstance(raw, dict):
        return rich_text_from_dict(raw).plain_text
    return str(raw)


def _content_to_dict(content: Content) -> dict[str, Any]:
    match content:
        case HeaderContent():
            return {"headerSize": content.size, "headerText": rich_text_to_dict(content.text)}
        case TextContent():
            return {"text": rich_text_to_dict(content.text)}
        case ListContent():
            return {
                "listType": content.list_type,
                "listItems": [_list_item_to_dict(i) for i in content.items],
            }
        case DividerContent():
            return {"dividerStyle": content.style}
        case CollapsibleContent():
            return {
                "title": rich_text_to_dict(content.title),
                "isExpanded": content.is_expanded,
                "nestedBlocks": [block_to_dict(b) for b in content.children],
            }
        case TabbedContent():
            return {
                "tabs": [
                    {
                        "id": t.id,
                        "title": t.title,
                        "color": t.color,
                        "isExpanded": t.is_expanded,
                        "nestedBlocks": [block_to_dict(b) for b in t.children],
                    }
                    for t in content.tabs
                ]
            }
        case LongTextContent():
            return {"textContent": rich_text_to_dict(content.text)}
        case MarkdownContent():
            return {"markdownContent": content.markdown}
    msg = f"Unsupported content payload: {type(content).__name__}"
    raise TypeError(msg)


_CONTENT_READERS: dict[BlockType, Callable[[dict[str, Any]], Content]] = {
    BlockType.HEADER: lambda d: HeaderContent(
        text=rich_text_from_dict(d.get("headerText")), size=d.get("headerSize", "h1")
    ),
    BlockType.TEXT: lambda d: TextContent(text=rich_text_from_dict(d.get("text"))),
    BlockType.LIST: lambda d: ListContent(
        items=tuple(_list_item_from_dict(i) for i in d.get("listItems", [])),
        list_type=d.get("listType", "bullet"),
    ),
    BlockType.DIVIDER: lambda d: DividerContent(style=d.get("dividerStyle", "solid")),
    BlockType.COLLAPSIBLE: lambda d: CollapsibleContent(
        title=rich_text_from_dict(d.get("title")),
        is_expanded=bool(d.get("isExpanded", False)),
        children=tuple(block_from_dict(b) for b in d.get("nestedBlocks", [])),
    ),
    BlockType.TABBED: lambda d: TabbedContent(
        tabs=tuple(
            Tab(
                id=t["id"],
                title=_tab_title(t.get("title", "")),
                color=t.get("color", "#3B82F6"),
                is_expanded=bool(t.get("isExpanded", False)),
                children=tuple(block_from_dict(b) for b in t.get("nestedBlocks", [])),
            )
            for t in d.get("tabs", [])
        )
    ),
    BlockType.LONG_TEXT: lambda d: LongTextContent(text=rich_text_from_dict(d.get("textContent"))),
    BlockType.MARKDOWN: lambda d: MarkdownContent(markdown=d.get("markdownContent", "")),
}


def _decorations_to_dict(decorations: Decorations) -> dict[str, Any]:
    raw: dict[str, Any] = {}
    if decorations.color is not None:
        raw["color"] = decorations.color
    if decorations.status is not None:
        raw["status"] = decorations.status
    if decorations.overlay_comment is not None:
        raw["overlayComment"] = decorations.overlay_comment
    if decorations.is_flipped:
        raw["isFlipped"] = True
    return raw


def _decorations_from_dict(data: dict[str, Any]) -> Decorations:
    return Decorations(
        color=data.get("color"),
        status=data.get("status"),
        overlay_comment=data.get("overlayComment"),
        is_flipped=bool(data.get("isFlipped", False)),
    )


def block_to_dict(block: Block) -> dict[str, Any]:
    """Serialize a block and its whole subtree."""
    raw: dict[str, Any] = {
        "id": block.id,
        "type": str(block.type),
        "position": block.position,
        "content": _content_to_dict(block.content),
        "createdAt": block.created_at,
        "updatedAt": block.updated_at,
    }
    decorations = _decorations_to_dict(block.decorations)
    if decorations:
        raw["decorations"] = decorations
    return raw


def block_from_dict(data: dict[str, Any]) -> Block:
    """Parse a block record (and its subtree).

    Raises:
        ValueError: If the record is malformed; the message names the block.
    """
    block_id = data.get("id", "?")
    try:
        block_type = BlockType(data["type"])
        return Block(
            id=data["id"],
            type=block_type,
            position=int(data["position"]),
            content=_CONTENT_READERS[block_type](data.get("content") or {}),
            created_at=int(data["createdAt"]),
            updated_at=int(data["updatedAt"]),
            decorations=_decorations_from_dict(data.get("decorations") or {}),
        )
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        msg = f"Malformed block record {block_id!r}: {e}"
        raise ValueError(msg) from e
