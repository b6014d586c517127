"""Configuration models describing tabcycle settings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

TimeMode = Literal["active", "wallclock"]


class TabCycleBaseModel(BaseModel):
    """Shared configuration for tabcycle Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class Thresholds(TabCycleBaseModel):
    """Age thresholds, in minutes, separating the aging stages.

    Attributes:
        green_to_yellow_minutes: Age at which a fresh tab becomes yellow.
        yellow_to_red_minutes: Age at which a yellow tab becomes red.
        red_to_gone_minutes: Age at which a red tab is archived and closed.
    """

    green_to_yellow_minutes: float = Field(default=240.0, gt=0)
    yellow_to_red_minutes: float = Field(default=480.0, gt=0)
    red_to_gone_minutes: float = Field(default=1440.0, gt=0)

    @model_validator(mode="after")
    def _check_order(self) -> "Thresholds":
        if not self.green_to_yellow_minutes < self.yellow_to_red_minutes:
            raise ValueError("green_to_yellow_minutes must be less than yellow_to_red_minutes")
        if not self.yellow_to_red_minutes < self.red_to_gone_minutes:
            raise ValueError("yellow_to_red_minutes must be less than red_to_gone_minutes")
        return self

    def as_seconds(self) -> tuple[float, float, float]:
        """Return the three thresholds converted to seconds."""
        return (
            self.green_to_yellow_minutes * 60.0,
            self.yellow_to_red_minutes * 60.0,
            self.red_to_gone_minutes * 60.0,
        )


class TransitionToggles(TabCycleBaseModel):
    """Per-stage enable flags.

    A disabled transition caps status progression at the stage before it.

    Attributes:
        green_to_yellow: Whether tabs may become yellow.
        yellow_to_red: Whether tabs may become red.
        red_to_gone: Whether tabs may become gone (archived and closed).
    """

    green_to_yellow: bool = True
    yellow_to_red: bool = True
    red_to_gone: bool = True


class AgingSettings(TabCycleBaseModel):
    """Settings governing status evaluation and zone organization.

    Attributes:
        enabled: Master switch; when off tabs freeze in their current state.
        time_mode: Whether ages use focused browser time or wall-clock time.
        thresholds: Stage thresholds.
        transitions: Per-stage enable flags.
        tab_sorting_enabled: Move aging ungrouped tabs into special groups.
        group_sorting_enabled: Order groups left to right by zone.
        group_coloring_enabled: Color user groups by zone.
        show_group_age: Append an age annotation to group titles.
        yellow_group_name: Title given to the yellow special group.
        red_group_name: Title given to the red special group.
    """

    enabled: bool = True
    time_mode: TimeMode = "active"
    thresholds: Thresholds = Field(default_factory=Thresholds)
    transitions: TransitionToggles = Field(default_factory=TransitionToggles)
    tab_sorting_enabled: bool = True
    group_sorting_enabled: bool = True
    group_coloring_enabled: bool = True
    show_group_age: bool = False
    yellow_group_name: str = ""
    red_group_name: str = ""


class NamingSettings(TabCycleBaseModel):
    """Automatic group naming options.

    Attributes:
        enabled: Whether unnamed groups receive generated names.
        delay_minutes: How long a group must stay unnamed before naming.
        user_edit_lock_seconds: How long a user title edit blocks auto-naming.
    """

    enabled: bool = True
    delay_minutes: float = Field(default=5.0, gt=0)
    user_edit_lock_seconds: float = Field(default=15.0, ge=0)


class ArchiveSettings(TabCycleBaseModel):
    """Archive-on-gone options.

    Attributes:
        enabled: Whether gone tabs are archived before being closed.
        folder_name: Name of the archive destination folder.
    """

    enabled: bool = True
    folder_name: str = Field(default="Closed Tabs", min_length=1)


class PlacementSettings(TabCycleBaseModel):
    """New-tab placement options.

    Attributes:
        auto_group_enabled: Whether new tabs are grouped with their opener.
    """

    auto_group_enabled: bool = True


class EngineSettings(TabCycleBaseModel):
    """Runtime options for the evaluation loop.

    Attributes:
        tick_seconds: Interval between evaluation cycles.
        cycle_timeout_seconds: Age after which a running cycle is considered stuck.
        navigation_debounce_seconds: Window collapsing duplicate navigation events.
        restore_suppression_seconds: Window ignoring navigations after a tab is restored.
        state_dir: Directory holding persisted state and logs.
    """

    tick_seconds: float = Field(default=30.0, gt=0)
    cycle_timeout_seconds: float = Field(default=60.0, gt=0)
    navigation_debounce_seconds: float = Field(default=1.0, ge=0)
    restore_suppression_seconds: float = Field(default=5.0, ge=0)
    state_dir: str = "~/.tabcycle"


class LoggingSettings(TabCycleBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 5


class TabCycleConfig(TabCycleBaseModel):
    """Top-level configuration struct for tabcycle.

    Attributes:
        aging: Status evaluation and zone settings.
        naming: Automatic naming settings.
        archive: Archive-on-gone settings.
        placement: New-tab placement settings.
        engine: Evaluation loop settings.
        logging: Logging configuration.
    """

    aging: AgingSettings = Field(default_factory=AgingSettings)
    naming: NamingSettings = Field(default_factory=NamingSettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)
    placement: PlacementSettings = Field(default_factory=PlacementSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "TimeMode",
    "TabCycleBaseModel",
    "Thresholds",
    "TransitionToggles",
    "AgingSettings",
    "NamingSettings",
    "ArchiveSettings",
    "PlacementSettings",
    "EngineSettings",
    "LoggingSettings",
    "TabCycleConfig",
]
