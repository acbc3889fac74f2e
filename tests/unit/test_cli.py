"""Tests for the blocktree CLI."""

import json
from collections.abc import Iterator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from blocktree.cli import app
from blocktree.logging_config import configure_logging

runner = CliRunner()


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """The CLI callback points loguru at the runner's stderr; restore it afterwards."""
    yield
    configure_logging()


def _run(data: Path, *args: str) -> tuple[int, str]:
    result = runner.invoke(app, [*args, "--data-dir", str(data)])
    return result.exit_code, result.stdout


def _added_id(output: str) -> str:
    # "Added <type> block <id> at position <n>"
    return output.split()[3]


def test_add_and_show(tmp_path: Path) -> None:
    code, out = _run(tmp_path, "add", "collapsible-list")
    assert code == 0
    section_id = _added_id(out)
    assert out.strip().endswith("at position 0")

    code, out = _run(tmp_path, "add", "header", "--into", section_id)
    assert code == 0
    header_id = _added_id(out)

    code, out = _run(tmp_path, "show")
    assert code == 0
    assert out == "- [+] Toggle section\n    - # New Header\n"

    code, out = _run(tmp_path, "show", "--json")
    records = json.loads(out)
    assert records[0]["id"] == section_id
    assert records[0]["content"]["nestedBlocks"][0]["id"] == header_id
    assert (tmp_path / "blocks.db").exists()


def test_show_empty_document(tmp_path: Path) -> None:
    code, out = _run(tmp_path, "show", "--document", "notes")
    assert code == 0
    assert "Document 'notes' is empty." in out


def test_edit_text_and_decorations(tmp_path: Path) -> None:
    _, out = _run(tmp_path, "add", "text")
    block_id = _added_id(out)

    code, out = _run(tmp_path, "edit", block_id, "--text", "hello", "--status", "Done")
    assert code == 0
    assert out.strip() == f"Updated {block_id}"

    _, out = _run(tmp_path, "show")
    assert out == "- hello (Done)\n"


def test_edit_without_changes_fails(tmp_path: Path) -> None:
    _, out = _run(tmp_path, "add", "text")
    code, out = _run(tmp_path, "edit", _added_id(out))
    assert code == 1
    assert "Nothing to change." in out


def test_unknown_block_exits_with_error(tmp_path: Path) -> None:
    code, _ = _run(tmp_path, "delete", "ghost")
    assert code == 1
    code, _ = _run(tmp_path, "edit", "ghost", "--text", "x")
    assert code == 1


def test_move_and_reorder(tmp_path: Path) -> None:
    ids = [_added_id(_run(tmp_path, "add", "divider")[1]) for _ in range(3)]

    code, out = _run(tmp_path, "move", "0", "2")
    assert code == 0
    assert out.split() == [ids[1], ids[0], ids[2]]

    code, out = _run(tmp_path, "reorder", ids[2], ids[1], ids[0])
    assert code == 0
    _, out = _run(tmp_path, "show", "--json")
    assert [r["id"] for r in json.loads(out)] == [ids[2], ids[1], ids[0]]

    code, _ = _run(tmp_path, "reorder", ids[0])
    assert code == 1


def test_tabs_and_relocate(tmp_path: Path) -> None:
    tabs_id = _added_id(_run(tmp_path, "add", "collapsible-list-array")[1])
    text_id = _added_id(_run(tmp_path, "add", "text")[1])

    code, _ = _run(tmp_path, "add-tab", tabs_id, "--title", "Second")
    assert code == 0
    code, out = _run(tmp_path, "relocate", text_id, "--into", tabs_id)
    assert code == 0
    assert out.strip() == f"Moved {text_id} into {tabs_id}"

    _, out = _run(tmp_path, "show", "--json")
    (record,) = json.loads(out)
    tabs = record["content"]["tabs"]
    assert [t["title"] for t in tabs] == ["Tab 1", "Second"]
    assert [b["id"] for b in tabs[1]["nestedBlocks"]] == [text_id]

    code, _ = _run(tmp_path, "activate-tab", tabs_id, tabs[0]["id"])
    assert code == 0
    code, _ = _run(tmp_path, "activate-tab", tabs_id, "nope")
    assert code == 1


def test_documents_lists_counts(tmp_path: Path) -> None:
    _run(tmp_path, "add", "text")
    _run(tmp_path, "add", "text", "--document", "other")

    code, out = _run(tmp_path, "documents")
    assert code == 0
    assert "2 documents:" in out
    assert "1 top-level blocks  [id=other]" in out


def test_export_then_import(tmp_path: Path) -> None:
    data = tmp_path / "data"
    backup = tmp_path / "backup.json"
    _run(data, "add", "markdown")

    code, out = _run(data, "export", str(backup))
    assert code == 0
    assert "Exported 1 top-level blocks" in out
    assert json.loads(backup.read_text())["version"] == "1.0.0"

    code, out = _run(data, "import", str(backup), "--document", "copy")
    assert code == 0
    assert "Imported 1 top-level blocks" in out

    code, out = _run(data, "import", str(backup), "--document", "copy")
    assert code == 0
    assert "Imported 0 top-level blocks" in out
    assert "conflict:" in out


def test_import_missing_file(tmp_path: Path) -> None:
    code, _ = _run(tmp_path, "import", str(tmp_path / "nope.json"))
    assert code == 1


def test_show_by_status_finds_blocks_in_tabs(tmp_path: Path) -> None:
    tabs_id = _added_id(_run(tmp_path, "add", "collapsible-list-array")[1])
    nested_id = _added_id(_run(tmp_path, "add", "text", "--into", tabs_id)[1])
    top_id = _added_id(_run(tmp_path, "add", "text")[1])
    _run(tmp_path, "edit", nested_id, "--text", "inside", "--status", "Review")
    _run(tmp_path, "edit", top_id, "--text", "outside", "--status", "Done")

    code, out = _run(tmp_path, "show", "--status", "Review")
    assert code == 0
    assert "1 blocks with status 'Review':" in out
    assert f"inside  [id={nested_id}] in [tabs: 1]" in out
    assert "outside" not in out

    code, out = _run(tmp_path, "show", "--status", "Blocked")
    assert code == 0
    assert "No blocks with status 'Blocked'." in out
