"""CLI for blocktree documents (add, edit, move, show, backup)."""

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from blocktree.backup import export_document, import_document, read_backup, write_backup
from blocktree.config import DB_FILENAME, DEFAULT_DOCUMENT_ID, resolve_data_directory
from blocktree.core.database.schema import migrate_schema
from blocktree.core.database.store import SqliteStore
from blocktree.core.serialize.json_codec import block_to_dict
from blocktree.core.tree.locator import find_by_status
from blocktree.core.tree.outline import block_label, render_outline
from blocktree.editor import DocumentEditor
from blocktree.errors import BlockTreeError
from blocktree.logging_config import configure_logging
from blocktree.models.block import (
    Block,
    BlockType,
    CollapsibleContent,
    Content,
    HeaderContent,
    LongTextContent,
    MarkdownContent,
    RichText,
    TextContent,
)

app = typer.Typer(help="blocktree: edit nested block documents from the command line.")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Directory holding the block database"),
]
DocumentOption = Annotated[
    str,
    typer.Option("--document", "-D", help="Document id"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _connect(data_dir: Path | None) -> sqlite3.Connection:
    dst = data_dir or resolve_data_directory()
    dst.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(dst / DB_FILENAME))
    migrate_schema(conn)
    return conn


@contextmanager
def _editor(data_dir: Path | None, document: str) -> Iterator[DocumentEditor]:
    """Open a document for editing; engine and store errors end the command with exit code 1."""
    conn = _connect(data_dir)
    try:
        store = SqliteStore(conn)
        store.ensure_document(document)
        yield DocumentEditor.open(store, document)
    except BlockTreeError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    finally:
        conn.close()


def _with_text(content: Content, text: str) -> Content:
    """Replace the main text of a payload."""
    match content:
        case HeaderContent() | TextContent() | LongTextContent():
            return replace(content, text=RichText.plain(text))
        case CollapsibleContent():
            return replace(content, title=RichText.plain(text))
        case MarkdownContent():
            return replace(content, markdown=text)
    msg = f"{type(content).__name__} has no editable text"
    raise typer.BadParameter(msg)


@app.command()
def add(
    block_type: Annotated[BlockType, typer.Argument(help="Type of the new block")],
    into: Annotated[
        str | None, typer.Option("--into", "-i", help="Container block id (default: top level)")
    ] = None,
    tab: Annotated[str | None, typer.Option("--tab", "-t", help="Tab id inside the container")] = None,
    position: Annotated[
        int | None, typer.Option("--position", "-p", help="Index among siblings (default: end)")
    ] = None,
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Insert a new block with default content."""
    with _editor(data_dir, document) as editor:
        block = editor.insert(into, block_type, position=position, tab_id=tab)
        typer.echo(f"Added {block.type} block {block.id} at position {block.position}")


@app.command()
def edit(
    block_id: Annotated[str, typer.Argument(help="Block to edit")],
    text: Annotated[str | None, typer.Option("--text", help="New main text")] = None,
    status: Annotated[str | None, typer.Option("--status", help="Status label")] = None,
    color: Annotated[str | None, typer.Option("--color", help="Display colour")] = None,
    comment: Annotated[str | None, typer.Option("--comment", help="Overlay comment")] = None,
    flip: Annotated[bool | None, typer.Option("--flip/--no-flip", help="Flip state")] = None,
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Change a block's text or decorations."""
    with _editor(data_dir, document) as editor:
        block = editor.find(block_id)
        if block is None:
            logger.error("Block {} not found", block_id)
            raise typer.Exit(1)

        content = _with_text(block.content, text) if text is not None else None
        decorations = None
        if any(v is not None for v in (status, color, comment, flip)):
            current = block.decorations
            decorations = replace(
                current,
                status=current.status if status is None else status,
                color=current.color if color is None else color,
                overlay_comment=current.overlay_comment if comment is None else comment,
                is_flipped=current.is_flipped if flip is None else flip,
            )
        if content is None and decorations is None:
            typer.echo("Nothing to change.")
            raise typer.Exit(1)

        editor.update(block_id, content=content, decorations=decorations)
        typer.echo(f"Updated {block_id}")


@app.command()
def delete(
    block_id: Annotated[str, typer.Argument(help="Block to delete")],
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Delete a block and everything nested in it."""
    with _editor(data_dir, document) as editor:
        editor.delete(block_id)
        typer.echo(f"Deleted {block_id}")


@app.command()
def move(
    source_index: Annotated[int, typer.Argument(help="Current index of the top-level block")],
    drop_index: Annotated[int, typer.Argument(help="Drop slot, counted before removal")],
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Drag a top-level block to another slot."""
    with _editor(data_dir, document) as editor:
        editor.move_to_position(source_index, drop_index)
        typer.echo(" ".join(b.id for b in editor.forest))


@app.command()
def relocate(
    block_id: Annotated[str, typer.Argument(help="Block to move")],
    into: Annotated[
        str | None, typer.Option("--into", "-i", help="Destination container (default: top level)")
    ] = None,
    tab: Annotated[str | None, typer.Option("--tab", "-t", help="Destination tab id")] = None,
    position: Annotated[int | None, typer.Option("--position", "-p", help="Destination index")] = None,
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Move a block with its subtree into another container."""
    with _editor(data_dir, document) as editor:
        editor.relocate(block_id, into, tab_id=tab, position=position)
        typer.echo(f"Moved {block_id} into {into or 'top level'}")


@app.command()
def reorder(
    order: Annotated[list[str], typer.Argument(help="All sibling ids in their new order")],
    container: Annotated[
        str | None, typer.Option("--container", "-c", help="Container id (default: top level)")
    ] = None,
    tab: Annotated[str | None, typer.Option("--tab", "-t", help="Tab id inside the container")] = None,
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Put a container's children in the given order."""
    with _editor(data_dir, document) as editor:
        editor.reorder(container, order, tab_id=tab)
        typer.echo("Reordered.")


@app.command(name="add-tab")
def add_tab(
    container: Annotated[str, typer.Argument(help="Tabbed container id")],
    title: Annotated[str | None, typer.Option("--title", help="Tab title")] = None,
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Append a tab to a tabbed container and make it active."""
    with _editor(data_dir, document) as editor:
        editor.add_tab(container, title=title)
        typer.echo(f"Added tab to {container}")


@app.command(name="activate-tab")
def activate_tab(
    container: Annotated[str, typer.Argument(help="Tabbed container id")],
    tab: Annotated[str, typer.Argument(help="Tab to expand")],
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Expand one tab and collapse the others."""
    with _editor(data_dir, document) as editor:
        editor.activate_tab(container, tab)
        typer.echo(f"Activated tab {tab}")


def _show_status(forest: tuple[Block, ...], status: str) -> None:
    matches = find_by_status(forest, status)
    if not matches:
        typer.echo(f"No blocks with status '{status}'.")
        return
    typer.echo(f"{len(matches)} blocks with status '{status}':\n")
    for path in matches:
        where = " > ".join(block_label(s.block) for s in path.steps[:-1]) or "top level"
        typer.echo(f"  {block_label(path.target)}  [id={path.target.id}] in {where}")


@app.command()
def show(
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", "-m", help="Max container levels to render"),
    ] = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output the raw records"),
    status: Annotated[
        str | None, typer.Option("--status", "-s", help="Only list blocks with this status")
    ] = None,
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Print the document as an outline."""
    with _editor(data_dir, document) as editor:
        if status is not None:
            _show_status(editor.forest, status)
        elif output_json:
            typer.echo(json.dumps([block_to_dict(b) for b in editor.forest], indent=2))
        elif editor.forest:
            typer.echo(render_outline(editor.forest, max_depth=max_depth), nl=False)
        else:
            typer.echo(f"Document '{document}' is empty.")


@app.command()
def documents(data_dir: DataDirOption = None) -> None:
    """List all documents."""
    conn = _connect(data_dir)
    try:
        rows = SqliteStore(conn).list_documents()
        typer.echo(f"{len(rows)} documents:\n")
        for doc_id, title, count in rows:
            typer.echo(f"  {title or doc_id} - {count} top-level blocks  [id={doc_id}]")
    finally:
        conn.close()


@app.command(name="export")
def export_cmd(
    path: Annotated[Path, typer.Argument(help="Backup file to write")],
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Write a document to a JSON backup file."""
    conn = _connect(data_dir)
    try:
        data = export_document(SqliteStore(conn), document)
        write_backup(path, data)
        typer.echo(f"Exported {len(data['blocks'])} top-level blocks to {path}")
    except BlockTreeError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    finally:
        conn.close()


@app.command(name="import")
def import_cmd(
    path: Annotated[Path, typer.Argument(help="Backup file to read")],
    document: DocumentOption = DEFAULT_DOCUMENT_ID,
    data_dir: DataDirOption = None,
) -> None:
    """Append the blocks of a JSON backup to a document."""
    if not path.exists():
        logger.error("Backup file not found: {}", path)
        raise typer.Exit(1)

    conn = _connect(data_dir)
    try:
        stats = import_document(SqliteStore(conn), document, read_backup(path))
    except (BlockTreeError, ValueError) as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e
    finally:
        conn.close()

    typer.echo(f"Imported {stats.blocks_imported} top-level blocks")
    for conflict in stats.conflicts:
        typer.echo(f"  conflict: {conflict}")
