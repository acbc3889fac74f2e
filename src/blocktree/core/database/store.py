"""SQLite-backed store of top-level block records."""

import json
import sqlite3
import time

from loguru import logger

from blocktree.core.serialize.json_codec import block_from_dict, block_to_dict
from blocktree.errors import PersistenceFailure
from blocktree.models.block import Block


class SqliteStore:
    """Keeps one row per top-level block; the row's ``record`` holds the whole subtree as JSON.

    The schema must already exist (see ``migrate_schema``). Every write
    commits on its own, so a record is always replaced atomically, but writes
    to different records are independent.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def ensure_document(self, document_id: str, *, title: str = "") -> None:
        try:
            self.conn.execute(
                "INSERT OR IGNORE INTO documents (id, title, created_at) VALUES (?, ?, ?)",
                (document_id, title, int(time.time() * 1000)),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            msg = f"Failed to register document {document_id!r}: {e}"
            raise PersistenceFailure(msg) from e

    def list_documents(self) -> list[tuple[str, str, int]]:
        """Return ``(id, title, block_count)`` for every document."""
        try:
            rows = self.conn.execute(
                "SELECT d.id, d.title, COUNT(b.id) FROM documents d "
                "LEFT JOIN blocks b ON b.document_id = d.id "
                "GROUP BY d.id ORDER BY d.id"
            ).fetchall()
        except sqlite3.Error as e:
            msg = f"Failed to list documents: {e}"
            raise PersistenceFailure(msg) from e
        return [(r[0], r[1], r[2]) for r in rows]

    def load_all(self, document_id: str) -> list[Block]:
        try:
            rows = self.conn.execute(
                "SELECT id, record FROM blocks WHERE document_id = ? ORDER BY position",
                (document_id,),
            ).fetchall()
        except sqlite3.Error as e:
            msg = f"Failed to load document {document_id!r}: {e}"
            raise PersistenceFailure(msg) from e

        blocks: list[Block] = []
        for block_id, record in rows:
            try:
                blocks.append(block_from_dict(json.loads(record)))
            except ValueError as e:
                msg = f"Corrupt record {block_id!r} in document {document_id!r}: {e}"
                raise PersistenceFailure(msg) from e
        logger.debug("Loaded {} top-level blocks from {}", len(blocks), document_id)
        return blocks

    def save(self, document_id: str, block: Block) -> None:
        record = json.dumps(block_to_dict(block), sort_keys=True)
        try:
            self.conn.execute(
                "INSERT OR IGNORE INTO documents (id, title, created_at) VALUES (?, ?, ?)",
                (document_id, "", block.created_at),
            )
            self.conn.execute(
                """INSERT OR REPLACE INTO blocks
                   (id, document_id, position, type, record, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    block.id, document_id, block.position, str(block.type), record,
                    block.created_at, block.updated_at,
                ),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            msg = f"Failed to save block {block.id!r}: {e}"
            raise PersistenceFailure(msg) from e

    def delete(self, document_id: str, block_id: str) -> None:
        try:
            self.conn.execute(
                "DELETE FROM blocks WHERE document_id = ? AND id = ?", (document_id, block_id)
            )
            self.conn.commit()
        except sqlite3.Error as e:
            self.conn.rollback()
            msg = f"Failed to delete block {block_id!r}: {e}"
            raise PersistenceFailure(msg) from e
