"""Zone organization, archiving and placement of tabs and groups."""

from .archive import ArchiveCoordinator, ArchiveSession, is_archivable
from .ledger import WriteLedger
from .placement import Placement, TabPlacer
from .zones import WindowReport, ZoneManager, group_age, group_zone

__all__ = [
    "ArchiveCoordinator",
    "ArchiveSession",
    "is_archivable",
    "WriteLedger",
    "Placement",
    "TabPlacer",
    "WindowReport",
    "ZoneManager",
    "group_age",
    "group_zone",
]
