"""Editing session for one document: engine operations plus write-back."""

from collections.abc import Sequence

from loguru import logger

from blocktree.core.mutate import engine
from blocktree.core.mutate.engine import Clock, MutationResult, now_ms
from blocktree.core.tree.index import ForestIndex, validate_forest
from blocktree.core.tree.locator import locate
from blocktree.errors import BlockTreeError, PersistenceFailure
from blocktree.models.block import Block, BlockType, Content, Decorations
from blocktree.protocols import StoreProtocol


def _reported_block(result: MutationResult) -> Block:
    if result.block is None:
        msg = "Operation did not report the block it changed"
        raise BlockTreeError(msg)
    return result.block


class DocumentEditor:
    """Hold one document's forest in memory and persist every change.

    Operations are applied one at a time (single writer). After each engine
    call the new forest becomes current before anything is written. Each
    changed top-level record is written separately; if a write fails the
    in-memory forest is kept, the unwritten record ids stay in ``pending``
    and the ``PersistenceFailure`` propagates. ``flush()`` retries them.
    """

    def __init__(
        self,
        store: StoreProtocol,
        document_id: str,
        forest: Sequence[Block] = (),
        *,
        clock: Clock = now_ms,
    ) -> None:
        self.store = store
        self.document_id = document_id
        self.forest: tuple[Block, ...] = tuple(forest)
        self.clock = clock
        self.pending: set[str] = set()

    @classmethod
    def open(cls, store: StoreProtocol, document_id: str, *, clock: Clock = now_ms) -> "DocumentEditor":
        """Load a document and check its invariants."""
        forest = store.load_all(document_id)
        validate_forest(forest)
        logger.debug("Opened document {} ({} top-level blocks)", document_id, len(forest))
        return cls(store, document_id, forest, clock=clock)

    def find(self, block_id: str) -> Block | None:
        path = locate(self.forest, block_id)
        return path.target if path else None

    def index(self) -> ForestIndex:
        return ForestIndex(self.forest)

    def apply(self, result: MutationResult) -> MutationResult:
        """Make ``result.forest`` current and write back what changed."""
        self.forest = result.forest
        self.pending.update(result.removed)
        self.pending.update(b.id for b in result.saved)
        self.flush()
        return result

    def flush(self) -> None:
        """Write every pending record: deletions first, then upserts in forest order."""
        if not self.pending:
            return
        current = {b.id: b for b in self.forest}
        to_delete = sorted(i for i in self.pending if i not in current)
        to_save = [b for b in self.forest if b.id in self.pending]
        try:
            for block_id in to_delete:
                self.store.delete(self.document_id, block_id)
                self.pending.discard(block_id)
            for block in to_save:
                self.store.save(self.document_id, block)
                self.pending.discard(block.id)
        except PersistenceFailure:
            logger.exception(
                "Write-back failed for document {}; {} record(s) pending",
                self.document_id,
                len(self.pending),
            )
            raise
        logger.debug(
            "Wrote {} record(s), deleted {} in {}", len(to_save), len(to_delete), self.document_id
        )

    def insert(
        self,
        container_id: str | None,
        block_type: BlockType | str,
        *,
        position: int | None = None,
        tab_id: str | None = None,
        block_id: str | None = None,
    ) -> Block:
        result = self.apply(
            engine.insert_block(
                self.forest, container_id, block_type,
                position=position, tab_id=tab_id, block_id=block_id, clock=self.clock,
            )
        )
        return _reported_block(result)

    def update(
        self,
        node_id: str,
        *,
        content: Content | None = None,
        decorations: Decorations | None = None,
    ) -> Block:
        result = self.apply(
            engine.update_block(
                self.forest, node_id, content=content, decorations=decorations, clock=self.clock
            )
        )
        return _reported_block(result)

    def delete(self, node_id: str) -> None:
        self.apply(engine.delete_block(self.forest, node_id, clock=self.clock))

    def reorder(
        self, container_id: str | None, order: Sequence[str], *, tab_id: str | None = None
    ) -> None:
        self.apply(
            engine.reorder_children(self.forest, container_id, order, tab_id=tab_id, clock=self.clock)
        )

    def move_to_position(self, source_index: int, drop_index: int) -> None:
        self.apply(engine.move_to_position(self.forest, source_index, drop_index))

    def move_up(self, node_id: str) -> None:
        self.apply(engine.move_up(self.forest, node_id, clock=self.clock))

    def move_down(self, node_id: str) -> None:
        self.apply(engine.move_down(self.forest, node_id, clock=self.clock))

    def relocate(
        self,
        node_id: str,
        container_id: str | None,
        *,
        tab_id: str | None = None,
        position: int | None = None,
    ) -> None:
        self.apply(
            engine.relocate_block(
                self.forest, node_id, container_id,
                tab_id=tab_id, position=position, clock=self.clock,
            )
        )

    def add_tab(
        self, container_id: str, *, title: str | None = None, tab_id: str | None = None
    ) -> None:
        self.apply(
            engine.add_tab(self.forest, container_id, title=title, tab_id=tab_id, clock=self.clock)
        )

    def activate_tab(self, container_id: str, tab_id: str) -> None:
        self.apply(engine.activate_tab(self.forest, container_id, tab_id, clock=self.clock))

    def update_tab(
        self, container_id: str, tab_id: str, *, title: str | None = None, color: str | None = None
    ) -> None:
        self.apply(
            engine.update_tab(
                self.forest, container_id, tab_id, title=title, color=color, clock=self.clock
            )
        )

    def delete_tab(self, container_id: str, tab_id: str) -> None:
        self.apply(engine.delete_tab(self.forest, container_id, tab_id, clock=self.clock))

    def reorder_tabs(self, container_id: str, order: Sequence[str]) -> None:
        self.apply(engine.reorder_tabs(self.forest, container_id, order, clock=self.clock))
