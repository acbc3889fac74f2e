"""Shared test fixtures."""

import sqlite3

import pytest

from blocktree.core.database.schema import create_schema
from blocktree.core.database.store import SqliteStore
from blocktree.models.block import Block
from tests.unit.builders import forest, section, tabbed, text
from tests.unit.fakes import FakeClock, FakeStore


@pytest.fixture
def sample_forest() -> tuple[Block, ...]:
    """Four top-level blocks covering both container variants.

    intro                      text
    section                    collapsible: a, b, c
    tabs                       tabbed: t1 (active) -> t1a, t1b ; t2 -> t2a
    deep                       collapsible
      lvl1                       collapsible
        lvl2                       tabbed: inner -> lvl3
          lvl3                       collapsible -> leaf
    """
    return forest(
        text("intro"),
        section("section", text("a"), text("b"), text("c")),
        tabbed("tabs", ("t1", [text("t1a"), text("t1b")]), ("t2", [text("t2a")])),
        section(
            "deep",
            section("lvl1", tabbed("lvl2", ("inner", [section("lvl3", text("leaf"))]))),
        ),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sqlite_store() -> SqliteStore:
    """Return a store over an in-memory DB with the schema created."""
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    return SqliteStore(conn)
