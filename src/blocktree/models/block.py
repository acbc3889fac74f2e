"""Domain models for the block forest."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal

HeaderSize = Literal["h1", "h2", "h3"]
ListType = Literal["bullet", "numbered", "checklist"]
DividerStyle = Literal["solid", "dashed", "dotted", "double"]


class BlockType(StrEnum):
    """Closed set of block variants."""

    HEADER = "header"
    TEXT = "text"
    LIST = "list"
    DIVIDER = "divider"
    COLLAPSIBLE = "collapsible-list"
    TABBED = "collapsible-list-array"
    LONG_TEXT = "text-block"
    MARKDOWN = "markdown"


@dataclass(frozen=True)
class Span:
    """A run of rich text. ``style`` is carried verbatim and never inspected."""

    text: str
    style: dict[str, Any] | None = None


@dataclass(frozen=True)
class RichText:
    spans: tuple[Span, ...] = ()

    @classmethod
    def plain(cls, text: str) -> "RichText":
        return cls(spans=(Span(text=text),)) if text else cls()

    @property
    def plain_text(self) -> str:
        return "".join(s.text for s in self.spans)


@dataclass(frozen=True)
class ListItem:
    """A single entry of a list block. Items nest, but are not blocks."""

    id: str
    text: RichText = RichText()
    checked: bool | None = None
    children: tuple["ListItem", ...] = ()


@dataclass(frozen=True)
class HeaderContent:
    text: RichText
    size: HeaderSize = "h1"


@dataclass(frozen=True)
class TextContent:
    text: RichText


@dataclass(frozen=True)
class ListContent:
    items: tuple[ListItem, ...]
    list_type: ListType = "bullet"


@dataclass(frozen=True)
class DividerContent:
    style: DividerStyle = "solid"


@dataclass(frozen=True)
class CollapsibleContent:
    """A toggle section owning one ordered list of child blocks."""

    title: RichText
    is_expanded: bool = False
    children: tuple["Block", ...] = ()


@dataclass(frozen=True)
class Tab:
    """A named sub-container of a tabbed block with its own ordered children."""

    id: str
    title: str
    color: str
    is_expanded: bool = False
    children: tuple["Block", ...] = ()


@dataclass(frozen=True)
class TabbedContent:
    tabs: tuple[Tab, ...]


@dataclass(frozen=True)
class LongTextContent:
    text: RichText


@dataclass(frozen=True)
class MarkdownContent:
    markdown: str


Content = (
    HeaderContent
    | TextContent
    | ListContent
    | DividerContent
    | CollapsibleContent
    | TabbedContent
    | LongTextContent
    | MarkdownContent
)


@dataclass(frozen=True)
class Decorations:
    """Display metadata that applies to any block type."""

    color: str | None = None
    status: str | None = None
    overlay_comment: str | None = None
    is_flipped: bool = False


@dataclass(frozen=True)
class Block:
    """A node of the document forest.

    ``created_at`` and ``updated_at`` are milliseconds since the epoch.
    """

    id: str
    type: BlockType
    position: int
    content: Content
    created_at: int
    updated_at: int
    decorations: Decorations = field(default_factory=Decorations)
