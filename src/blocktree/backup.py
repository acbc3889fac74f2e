"""JSON export and import of whole documents."""

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from loguru import logger

from blocktree.core.mutate.engine import Clock, now_ms
from blocktree.core.serialize.json_codec import block_from_dict, block_to_dict
from blocktree.core.tree.index import ForestIndex, validate_forest
from blocktree.core.tree.locator import iter_subtree
from blocktree.protocols import StoreProtocol

BACKUP_FORMAT_VERSION = "1.0.0"


@dataclass(frozen=True)
class ImportStats:
    """Summary of an import operation."""

    blocks_imported: int
    conflicts: tuple[str, ...] = ()


def export_document(
    store: StoreProtocol, document_id: str, *, clock: Clock = now_ms
) -> dict[str, Any]:
    """Return a JSON-ready snapshot of every top-level record of a document."""
    blocks = store.load_all(document_id)
    return {
        "version": BACKUP_FORMAT_VERSION,
        "exportDate": clock(),
        "documentId": document_id,
        "blocks": [block_to_dict(b) for b in blocks],
    }


def write_backup(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, sort_keys=True, indent=4) + "\n", encoding="utf-8")
    logger.info("Wrote backup of {} ({} blocks) to {}", data["documentId"], len(data["blocks"]), path)


def read_backup(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or "blocks" not in data:
        msg = f"{path} is not a blocktree backup"
        raise ValueError(msg)
    return data


def import_document(
    store: StoreProtocol, document_id: str, data: dict[str, Any]
) -> ImportStats:
    """Append the top-level blocks of a backup to a document.

    Blocks whose subtree shares any id with the existing document are not
    imported; each one is reported as a conflict instead of overwriting
    what is already there. Imported blocks keep their relative order and are
    numbered after the existing ones.

    Raises:
        ValueError: If the backup is malformed or breaks a forest invariant.
    """
    incoming = [block_from_dict(raw) for raw in data["blocks"]]
    incoming.sort(key=lambda b: b.position)
    validate_forest([replace(b, position=i) for i, b in enumerate(incoming)])

    existing = store.load_all(document_id)
    existing_ids = ForestIndex(existing)
    next_position = len(existing)
    conflicts: list[str] = []
    imported = 0

    for block in incoming:
        clashes = sorted(b.id for b in iter_subtree(block) if b.id in existing_ids)
        if clashes:
            conflicts.append(f"Block {block.id!r} already exists (same id: {', '.join(clashes)})")
            continue
        store.save(document_id, replace(block, position=next_position))
        next_position += 1
        imported += 1

    logger.info(
        "Import into {} complete: {} imported, {} conflicts", document_id, imported, len(conflicts)
    )
    return ImportStats(blocks_imported=imported, conflicts=tuple(conflicts))
