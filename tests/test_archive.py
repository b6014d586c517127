"""Tests for archive-then-remove handling."""

from __future__ import annotations

import pytest

from conftest import make_config
from tabcycle.organization import ArchiveCoordinator
from tabcycle.organization.archive import UNNAMED_FOLDER, ArchiveSession, is_archivable
from tabcycle.providers.memory import InMemoryHost
from tabcycle.state.models import ArchiveState, ItemRecord


def _session(memory: InMemoryHost, archive_state: ArchiveState, **settings) -> ArchiveSession:
    config = make_config(archive=settings) if settings else make_config()
    return ArchiveCoordinator(memory, memory).session(config.archive, archive_state)


def _item(memory: InMemoryHost, url: str, title: str = "") -> ItemRecord:
    tab = memory.add_tab(1, url=url, title=title)
    return ItemRecord(item_id=tab.id, window_id=1, url=url, title=title)


@pytest.mark.parametrize(
    ("url", "expected"),
    [("https://a.test/", True), ("", False), ("about:blank", False), ("chrome://newtab/", False)],
)
def test_is_archivable(url: str, expected: bool) -> None:
    assert is_archivable(url) is expected


@pytest.mark.asyncio
async def test_destination_is_created_once_and_cached(memory: InMemoryHost) -> None:
    archive_state = ArchiveState()
    session = _session(memory, archive_state)

    first = await session.destination()
    second = await session.destination()

    assert first == second
    assert archive_state.folder_id == first
    assert [folder.title for folder in memory.folders.values()] == ["Closed Tabs"]


@pytest.mark.asyncio
async def test_destination_prefers_cached_id_even_after_rename(memory: InMemoryHost) -> None:
    folder = await memory.create_folder("Renamed by user")
    archive_state = ArchiveState(folder_id=folder.id)

    session = _session(memory, archive_state)

    assert await session.destination() == folder.id
    assert session.renamed_to == "Renamed by user"
    assert len(memory.folders) == 1


@pytest.mark.asyncio
async def test_destination_found_by_name_when_cache_is_stale(memory: InMemoryHost) -> None:
    existing = await memory.create_folder("Closed Tabs")
    archive_state = ArchiveState(folder_id="does-not-exist")

    assert await _session(memory, archive_state).destination() == existing.id
    assert archive_state.folder_id == existing.id


@pytest.mark.asyncio
async def test_retire_item_writes_entry_then_removes(memory: InMemoryHost) -> None:
    item = _item(memory, "https://a.test/", "A page")
    removed_while_unarchived: list[bool] = []
    memory.hooks["remove_tab"] = lambda: removed_while_unarchived.append(not memory.entries)
    session = _session(memory, ArchiveState())

    assert await session.retire_item(item)

    assert removed_while_unarchived == [False]
    assert await memory.get_tab(item.item_id) is None
    assert (session.archived, session.removed, session.failed) == (1, 1, 0)


@pytest.mark.asyncio
async def test_untitled_entry_falls_back_to_url(memory: InMemoryHost) -> None:
    item = _item(memory, "https://a.test/x", "  ")
    await _session(memory, ArchiveState()).retire_item(item)

    assert memory.entries[0].title == "https://a.test/x"


@pytest.mark.asyncio
async def test_blocked_url_is_removed_without_entry(memory: InMemoryHost) -> None:
    item = _item(memory, "about:blank")
    session = _session(memory, ArchiveState())

    assert await session.retire_item(item)
    assert memory.entries == []
    assert memory.folders == {}


@pytest.mark.asyncio
async def test_archiving_disabled_only_removes(memory: InMemoryHost) -> None:
    item = _item(memory, "https://a.test/")
    session = _session(memory, ArchiveState(), enabled=False)

    assert await session.retire_item(item)
    assert memory.entries == []


@pytest.mark.asyncio
async def test_unresolvable_destination_keeps_tab(memory: InMemoryHost) -> None:
    item = _item(memory, "https://a.test/")
    memory.fail_on.add("create_folder")
    session = _session(memory, ArchiveState())

    assert not await session.retire_item(item)
    assert await memory.get_tab(item.item_id) is not None
    assert session.failed == 1


@pytest.mark.asyncio
async def test_retire_group_uses_named_subfolder(memory: InMemoryHost) -> None:
    members = [_item(memory, "https://a.test/", "A"), _item(memory, "about:blank")]
    session = _session(memory, ArchiveState())

    removed = await session.retire_group("", members)

    assert removed == [member.item_id for member in members]
    root = await memory.find_folder("Closed Tabs")
    assert root is not None
    sub = await memory.find_folder(UNNAMED_FOLDER, root.id)
    assert sub is not None
    assert [entry.url for entry in memory.entries_in(sub.id)] == ["https://a.test/"]


@pytest.mark.asyncio
async def test_retire_group_keeps_members_whose_entry_failed(memory: InMemoryHost) -> None:
    members = [_item(memory, "https://a.test/", "A"), _item(memory, "https://b.test/", "B")]
    session = _session(memory, ArchiveState())
    await session.destination()
    memory.fail_on.add("add_entry")

    removed = await session.retire_group("Reading", members)

    assert removed == []
    assert all([await memory.get_tab(member.item_id) for member in members])
    assert session.failed == 2
