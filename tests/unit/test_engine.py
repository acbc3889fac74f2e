"""Tests for the block mutation engine."""

from dataclasses import replace

import pytest

from blocktree.core.mutate.engine import (
    delete_block,
    insert_block,
    move_down,
    move_to_position,
    move_up,
    reorder_children,
    update_block,
)
from blocktree.core.registry import validate_content
from blocktree.core.tree.collection import get_children
from blocktree.core.tree.index import validate_forest
from blocktree.core.tree.locator import locate
from blocktree.errors import (
    DuplicateIdError,
    InvalidContentError,
    InvalidOrderError,
    InvalidPositionError,
    NotAContainerError,
    NotFoundError,
)
from blocktree.models.block import (
    Block,
    BlockType,
    CollapsibleContent,
    Decorations,
    ListContent,
    RichText,
    TextContent,
)
from tests.unit.builders import forest, ids, positions, section, text
from tests.unit.fakes import FakeClock


def _children(blocks: tuple[Block, ...], container_id: str, tab_id: str | None = None) -> tuple[Block, ...]:
    path = locate(blocks, container_id)
    assert path is not None
    return get_children(path.target, tab_id)


def test_insert_in_middle_shifts_later_siblings(sample_forest: tuple[Block, ...]) -> None:
    result = insert_block(sample_forest, "section", BlockType.TEXT, position=1, block_id="new")

    children = _children(result.forest, "section")
    assert ids(children) == ["a", "new", "b", "c"]
    assert positions(children) == [0, 1, 2, 3]
    assert result.block is not None
    assert result.block.id == "new"
    assert result.block.position == 1


def test_insert_defaults_to_end_of_list(sample_forest: tuple[Block, ...]) -> None:
    result = insert_block(sample_forest, "section", BlockType.DIVIDER, block_id="end")
    assert ids(_children(result.forest, "section")) == ["a", "b", "c", "end"]


def test_insert_uses_default_content_for_type(sample_forest: tuple[Block, ...]) -> None:
    result = insert_block(sample_forest, None, "list")
    assert result.block is not None
    assert isinstance(result.block.content, ListContent)
    assert len(result.block.content.items) == 1


def test_insert_rejects_out_of_range_position(sample_forest: tuple[Block, ...]) -> None:
    with pytest.raises(InvalidPositionError):
        insert_block(sample_forest, "section", BlockType.TEXT, position=4)
    with pytest.raises(InvalidPositionError):
        insert_block(sample_forest, "section", BlockType.TEXT, position=-1)


def test_insert_at_len_is_allowed(sample_forest: tuple[Block, ...]) -> None:
    result = insert_block(sample_forest, "section", BlockType.TEXT, position=3, block_id="x")
    assert ids(_children(result.forest, "section"))[-1] == "x"


def test_insert_into_non_container_fails(sample_forest: tuple[Block, ...]) -> None:
    with pytest.raises(NotAContainerError):
        insert_block(sample_forest, "intro", BlockType.TEXT)


def test_insert_into_missing_container_fails(sample_forest: tuple[Block, ...]) -> None:
    with pytest.raises(NotFoundError):
        insert_block(sample_forest, "nope", BlockType.TEXT)


def test_insert_rejects_duplicate_id(sample_forest: tuple[Block, ...]) -> None:
    with pytest.raises(DuplicateIdError):
        insert_block(sample_forest, None, BlockType.TEXT, block_id="leaf")


def test_nested_insert_reports_only_its_top_level_ancestor(
    sample_forest: tuple[Block, ...],
) -> None:
    result = insert_block(sample_forest, "lvl3", BlockType.TEXT, block_id="n")

    assert ids(result.saved) == ["deep"]
    assert result.root is not None and result.root.id == "deep"
    assert result.removed == ()
    # Other roots are carried over as the very same objects.
    assert result.forest[0] is sample_forest[0]
    assert result.forest[2] is sample_forest[2]


def test_top_level_insert_saves_new_and_shifted_roots(sample_forest: tuple[Block, ...]) -> None:
    result = insert_block(sample_forest, None, BlockType.TEXT, position=2, block_id="top")

    assert ids(result.forest) == ["intro", "section", "top", "tabs", "deep"]
    assert positions(result.forest) == [0, 1, 2, 3, 4]
    assert ids(result.saved) == ["top", "tabs", "deep"]


def test_update_replaces_content_and_bumps_timestamp(sample_forest: tuple[Block, ...]) -> None:
    clock = FakeClock()
    new_content = TextContent(text=RichText.plain("changed"))
    result = update_block(sample_forest, "b", content=new_content, clock=clock)

    updated = _children(result.forest, "section")[1]
    assert updated.content == new_content
    assert updated.updated_at > 1_000
    assert updated.created_at == 1_000
    assert updated.position == 1
    assert ids(result.saved) == ["section"]


def test_update_decorations_only(sample_forest: tuple[Block, ...]) -> None:
    decorations = Decorations(color="red", status="Done", overlay_comment="check", is_flipped=True)
    result = update_block(sample_forest, "t2a", decorations=decorations)

    assert result.block is not None
    assert result.block.decorations == decorations
    assert result.block.content == text("t2a").content


def test_deep_update_round_trip(sample_forest: tuple[Block, ...]) -> None:
    before = locate(sample_forest, "lvl3")
    assert before is not None
    assert before.depth == 3

    new_content = replace(before.target.content, title=RichText.plain("renamed"))
    result = update_block(sample_forest, "lvl3", content=new_content, clock=FakeClock())

    # What gets persisted is the top-level ancestor, not the nested node.
    assert result.root is not None
    assert result.root.id == "deep"
    after = locate([result.root], "lvl3")
    assert after is not None
    assert after.target.content == new_content
    assert after.target.updated_at > before.target.updated_at
    # The subtree under the updated node survives.
    assert locate([result.root], "leaf") is not None


def test_update_timestamp_increases_within_same_millisecond(
    sample_forest: tuple[Block, ...],
) -> None:
    frozen = FakeClock(start=5_000, step=0)
    first = update_block(sample_forest, "intro", decorations=Decorations(color="a"), clock=frozen)
    second = update_block(first.forest, "intro", decorations=Decorations(color="b"), clock=frozen)
    assert first.block is not None and second.block is not None
    assert second.block.updated_at > first.block.updated_at


def test_update_rejects_content_of_wrong_variant(sample_forest: tuple[Block, ...]) -> None:
    with pytest.raises(InvalidContentError):
        update_block(sample_forest, "section", content=TextContent(text=RichText()))


def test_update_rejects_container_content_with_foreign_ids(
    sample_forest: tuple[Block, ...],
) -> None:
    content = CollapsibleContent(title=RichText(), children=(text("intro"),))
    with pytest.raises(DuplicateIdError):
        update_block(sample_forest, "section", content=content)


def test_update_without_fields_is_an_error(sample_forest: tuple[Block, ...]) -> None:
    with pytest.raises(ValueError, match="No fields"):
        update_block(sample_forest, "intro")


def test_delete_closes_gap(sample_forest: tuple[Block, ...]) -> None:
    result = delete_block(sample_forest, "b")

    children = _children(result.forest, "section")
    assert ids(children) == ["a", "c"]
    assert positions(children) == [0, 1]
    assert ids(result.saved) == ["section"]


def test_delete_container_drops_subtree(sample_forest: tuple[Block, ...]) -> None:
    result = delete_block(sample_forest, "lvl1")
    assert locate(result.forest, "leaf") is None
    assert _children(result.forest, "deep") == ()


def test_delete_top_level_renumbers_and_reports_removal(
    sample_forest: tuple[Block, ...],
) -> None:
    result = delete_block(sample_forest, "section")

    assert ids(result.forest) == ["intro", "tabs", "deep"]
    assert positions(result.forest) == [0, 1, 2]
    assert result.removed == ("section",)
    assert ids(result.saved) == ["tabs", "deep"]


def test_not_found_leaves_forest_unchanged(sample_forest: tuple[Block, ...]) -> None:
    snapshot = tuple(sample_forest)
    with pytest.raises(NotFoundError):
        update_block(sample_forest, "ghost", decorations=Decorations(color="x"))
    with pytest.raises(NotFoundError):
        delete_block(sample_forest, "ghost")
    assert sample_forest == snapshot


def test_reorder_assigns_positions_from_order(sample_forest: tuple[Block, ...]) -> None:
    result = reorder_children(sample_forest, "section", ["c", "a", "b"])

    children = _children(result.forest, "section")
    assert ids(children) == ["c", "a", "b"]
    assert positions(children) == [0, 1, 2]


@pytest.mark.parametrize(
    "order",
    [["a", "b"], ["a", "b", "c", "d"], ["a", "a", "b"], ["a", "b", "x"]],
)
def test_reorder_rejects_non_permutation(
    sample_forest: tuple[Block, ...], order: list[str]
) -> None:
    with pytest.raises(InvalidOrderError):
        reorder_children(sample_forest, "section", order)


def test_reorder_top_level_saves_moved_roots(sample_forest: tuple[Block, ...]) -> None:
    result = reorder_children(sample_forest, None, ["intro", "section", "deep", "tabs"])
    assert ids(result.saved) == ["deep", "tabs"]


def test_reorder_with_same_order_changes_nothing(sample_forest: tuple[Block, ...]) -> None:
    result = reorder_children(sample_forest, "section", ["a", "b", "c"])
    assert not result.changed
    assert result.forest == sample_forest


def test_move_to_position_off_by_one() -> None:
    blocks = forest(text("a"), text("b"), text("c"))
    result = move_to_position(blocks, 0, 2)

    assert ids(result.forest) == ["b", "a", "c"]
    assert positions(result.forest) == [0, 1, 2]
    assert result.block is not None and result.block.id == "a"


def test_move_to_position_upwards() -> None:
    blocks = forest(text("a"), text("b"), text("c"))
    result = move_to_position(blocks, 2, 0)
    assert ids(result.forest) == ["c", "a", "b"]


def test_move_to_position_end_slot() -> None:
    blocks = forest(text("a"), text("b"), text("c"))
    result = move_to_position(blocks, 0, 3)
    assert ids(result.forest) == ["b", "c", "a"]
    assert ids(result.saved) == ["b", "c", "a"]


def test_move_to_position_rejects_bad_indices() -> None:
    blocks = forest(text("a"), text("b"))
    with pytest.raises(InvalidPositionError):
        move_to_position(blocks, 2, 0)
    with pytest.raises(InvalidPositionError):
        move_to_position(blocks, 0, 3)


def test_move_up_and_down_swap_neighbours(sample_forest: tuple[Block, ...]) -> None:
    up = move_up(sample_forest, "b")
    assert ids(_children(up.forest, "section")) == ["b", "a", "c"]

    down = move_down(up.forest, "b")
    assert ids(_children(down.forest, "section")) == ["a", "b", "c"]


def test_move_up_at_edge_is_noop(sample_forest: tuple[Block, ...]) -> None:
    result = move_up(sample_forest, "a")
    assert not result.changed
    assert result.forest == sample_forest


def test_contiguity_after_mixed_operations(sample_forest: tuple[Block, ...]) -> None:
    clock = FakeClock()
    blocks = sample_forest
    blocks = insert_block(blocks, "section", BlockType.TEXT, position=0, block_id="x", clock=clock).forest
    blocks = insert_block(
        blocks, "lvl2", BlockType.HEADER, tab_id="inner", position=1, block_id="h", clock=clock
    ).forest
    blocks = delete_block(blocks, "b", clock=clock).forest
    blocks = reorder_children(blocks, "section", ["c", "x", "a"], clock=clock).forest
    blocks = insert_block(blocks, None, BlockType.DIVIDER, position=1, block_id="d", clock=clock).forest
    blocks = delete_block(blocks, "intro", clock=clock).forest

    index = validate_forest(blocks)
    assert "h" in index
    for block in index.blocks.values():
        validate_content(block.type, block.content, block_id=block.id)


def _renumbered_to(block: Block, position: int) -> Block:
    assert isinstance(block.content, CollapsibleContent)
    children = tuple(replace(c, position=position) for c in block.content.children)
    return replace(block, content=replace(block.content, children=children))


@pytest.mark.parametrize(
    "nested",
    [
        _renumbered_to(section("inner", text("x"), text("y")), 7),
        replace(text("w"), type=BlockType.HEADER),
    ],
    ids=["gap-in-nested-container", "payload-of-wrong-variant"],
)
def test_update_rejects_container_payload_with_broken_descendants(
    sample_forest: tuple[Block, ...], nested: Block
) -> None:
    snapshot = tuple(sample_forest)
    content = CollapsibleContent(title=RichText(), children=(nested,))

    with pytest.raises(InvalidContentError):
        update_block(sample_forest, "section", content=content)
    assert sample_forest == snapshot


def test_update_accepts_valid_nested_payload(sample_forest: tuple[Block, ...]) -> None:
    content = CollapsibleContent(
        title=RichText.plain("rebuilt"), children=forest(section("inner", text("x")), text("a"))
    )
    result = update_block(sample_forest, "section", content=content)

    assert ids(_children(result.forest, "section")) == ["inner", "a"]
    validate_forest(result.forest)
