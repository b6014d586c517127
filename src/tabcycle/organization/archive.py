"""Archive-then-remove handling for terminal tabs and groups."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from tabcycle.config.models import ArchiveSettings
from tabcycle.providers import ArchiveProvider, ProviderError, TabProvider
from tabcycle.state.models import ArchiveState, ItemRecord

LOGGER = logging.getLogger(__name__)

BLOCKED_URLS = frozenset({"", "about:blank", "chrome://newtab", "chrome://newtab/"})
UNNAMED_FOLDER = "(unnamed)"


def is_archivable(url: str | None) -> bool:
    """Return whether ``url`` deserves an archive entry."""
    return bool(url) and url not in BLOCKED_URLS


class ArchiveCoordinator:
    """Create per-cycle archive sessions."""

    def __init__(self, archive: ArchiveProvider, tabs: TabProvider) -> None:
        self._archive = archive
        self._tabs = tabs

    def session(self, settings: ArchiveSettings, archive_state: ArchiveState) -> "ArchiveSession":
        """Start a session that resolves the destination at most once.

        Args:
            settings: Archive options for this cycle.
            archive_state: Persisted destination cache; updated in place.

        Returns:
            ArchiveSession: Session bound to this cycle.
        """
        return ArchiveSession(self._archive, self._tabs, settings, archive_state)


class ArchiveSession:
    """Retire terminal tabs for one evaluation cycle.

    An entry is always written before the tab is removed. When writing the
    entry fails the tab stays open and is retried on the next cycle.

    Attributes:
        archived: Number of entries written.
        removed: Number of tabs closed.
        failed: Number of tabs left in place after a provider failure.
        renamed_to: Title the user gave the archive folder outside the engine, if any.
    """

    def __init__(
        self,
        archive: ArchiveProvider,
        tabs: TabProvider,
        settings: ArchiveSettings,
        archive_state: ArchiveState,
    ) -> None:
        self._archive = archive
        self._tabs = tabs
        self._settings = settings
        self._state = archive_state
        self._resolved = False
        self._destination: Optional[str] = None
        self.archived = 0
        self.removed = 0
        self.failed = 0
        self.renamed_to: Optional[str] = None

    async def destination(self) -> Optional[str]:
        """Resolve the archive folder: cached id, then lookup by name, then create.

        Returns:
            Optional[str]: Folder id, or ``None`` when resolution failed this cycle.
        """
        if self._resolved:
            return self._destination
        self._resolved = True
        name = self._settings.folder_name
        try:
            if self._state.folder_id is not None:
                folder = await self._archive.get_folder(self._state.folder_id)
                if folder is not None:
                    if folder.title and folder.title != name:
                        LOGGER.info("Archive folder %s was renamed to %r", folder.id, folder.title)
                        self.renamed_to = folder.title
                    self._destination = folder.id
                    return self._destination
                LOGGER.debug("Cached archive folder %s no longer exists", self._state.folder_id)
            folder = await self._archive.find_folder(name)
            if folder is None:
                folder = await self._archive.create_folder(name)
                LOGGER.info("Created archive folder %r (%s)", name, folder.id)
        except ProviderError as exc:
            LOGGER.warning("Unable to resolve archive folder %r: %s", name, exc)
            return None
        self._state.folder_id = folder.id
        self._destination = folder.id
        return self._destination

    async def retire_item(self, item: ItemRecord) -> bool:
        """Archive and close a single tab.

        Returns:
            bool: ``True`` when the tab was removed.
        """
        if self._settings.enabled and is_archivable(item.url):
            folder_id = await self.destination()
            if folder_id is None or not await self._write_entry(folder_id, item):
                self.failed += 1
                return False
        return await self._remove(item)

    async def retire_group(self, base_name: str, members: Iterable[ItemRecord]) -> list[int]:
        """Archive a terminal group into its own sub-folder and close its tabs.

        Args:
            base_name: Group name without age annotation.
            members: Tracked members of the group.

        Returns:
            list[int]: Ids of the tabs that were removed.
        """
        members = list(members)
        removed: list[int] = []
        subfolder: Optional[str] = None
        if self._settings.enabled and any(is_archivable(member.url) for member in members):
            subfolder = await self._group_folder(base_name.strip() or UNNAMED_FOLDER)
            if subfolder is None:
                self.failed += len(members)
                return removed

        for member in members:
            if subfolder is not None and is_archivable(member.url):
                if not await self._write_entry(subfolder, member):
                    self.failed += 1
                    continue
            if await self._remove(member):
                removed.append(member.item_id)
        return removed

    async def _group_folder(self, name: str) -> Optional[str]:
        parent = await self.destination()
        if parent is None:
            return None
        try:
            folder = await self._archive.find_folder(name, parent)
            if folder is None:
                folder = await self._archive.create_folder(name, parent)
        except ProviderError as exc:
            LOGGER.warning("Unable to create archive sub-folder %r: %s", name, exc)
            return None
        return folder.id

    async def _write_entry(self, folder_id: str, item: ItemRecord) -> bool:
        title = item.title if item.title.strip() else item.url
        try:
            await self._archive.add_entry(folder_id, title, item.url)
        except ProviderError as exc:
            LOGGER.warning("Failed to archive tab %s (%s): %s", item.item_id, item.url, exc)
            return False
        self.archived += 1
        return True

    async def _remove(self, item: ItemRecord) -> bool:
        try:
            await self._tabs.remove_tab(item.item_id)
        except ProviderError as exc:
            LOGGER.warning("Failed to close gone tab %s: %s", item.item_id, exc)
            self.failed += 1
            return False
        self.removed += 1
        return True


__all__ = ["ArchiveCoordinator", "ArchiveSession", "BLOCKED_URLS", "UNNAMED_FOLDER", "is_archivable"]
