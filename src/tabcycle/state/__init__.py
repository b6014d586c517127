"""State persistence helpers for the tabcycle engine."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .errors import MissingStateError, StateError
from .models import (
    ActiveTimeState,
    ArchiveState,
    EngineState,
    ItemRecord,
    ItemStatus,
    NamingRecord,
    SpecialGroups,
    WindowState,
)

DEFAULT_STATE_DIR = Path("~/.tabcycle")
STATE_FILENAME = "state.json"


class StateRepository:
    """Manage the persistence of the engine model.

    The whole model is written as one JSON document so a save is the only
    durability boundary; partial writes are never visible because the document
    is replaced atomically.
    """

    def __init__(self, directory: Path | None = None) -> None:
        """Initialize the repository.

        Args:
            directory: Directory that stores the state document.
        """
        self._directory = (directory or DEFAULT_STATE_DIR).expanduser()

    @property
    def directory(self) -> Path:
        """Return the directory holding state artifacts.

        Returns:
            Path: State directory.
        """
        return self._directory

    @property
    def state_path(self) -> Path:
        return self._directory / STATE_FILENAME

    def load(self) -> EngineState:
        """Load the persisted engine state.

        Returns:
            EngineState: Deserialized model.

        Raises:
            MissingStateError: If no state file is present.
            StateError: If stored data cannot be parsed or fails validation.
        """
        path = self.state_path
        if not path.exists():
            raise MissingStateError(f"No engine state found at {path}")

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StateError(f"Invalid engine state data: {exc}") from exc

        try:
            return EngineState.model_validate(data)
        except ValidationError as exc:
            raise StateError(f"Engine state failed validation: {exc}") from exc

    def save(self, state: EngineState) -> None:
        """Persist the engine state in a single atomic write.

        Args:
            state: State model to serialize to disk.
        """
        directory = self.initialize()
        state.updated_at = datetime.now(timezone.utc)
        payload = state.model_dump(mode="json")
        target = directory / STATE_FILENAME
        staging = directory / f".{STATE_FILENAME}.tmp"
        staging.write_text(json.dumps(payload, indent=2, sort_keys=False), encoding="utf-8")
        os.replace(staging, target)

    def initialize(self) -> Path:
        """Create the state directory when missing.

        Returns:
            Path: Directory containing the state artifacts.
        """
        self._directory.mkdir(parents=True, exist_ok=True)
        return self._directory


__all__ = [
    "StateRepository",
    "DEFAULT_STATE_DIR",
    "STATE_FILENAME",
    "EngineState",
    "ItemRecord",
    "ItemStatus",
    "NamingRecord",
    "SpecialGroups",
    "WindowState",
    "ActiveTimeState",
    "ArchiveState",
    "StateError",
    "MissingStateError",
]
