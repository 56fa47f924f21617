"""Domain-level validation rules for panel scheduling."""

from __future__ import annotations

import re
from dataclasses import dataclass

from jury_planner.domain.models import time_to_minutes


_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class PanelRoleConflictError(ValueError):
    """Raised when one faculty member would hold two roles on the same panel."""


@dataclass(frozen=True)
class SchedulingConfig:
    day_start: str
    day_end: str
    slot_minutes: int
    excluded_starts: tuple[str, ...]
    slack_days: int
    conflict_lookahead_days: int


def validate_scheduling_config(config: SchedulingConfig) -> None:
    for label, value in (("day_start", config.day_start), ("day_end", config.day_end)):
        if _TIME_PATTERN.fullmatch(value) is None:
            raise ValueError(f"{label} must follow HH:MM format")
    for value in config.excluded_starts:
        if _TIME_PATTERN.fullmatch(value) is None:
            raise ValueError("excluded_starts entries must follow HH:MM format")
    if config.slot_minutes <= 0:
        raise ValueError("slot_minutes must be > 0")
    start = time_to_minutes(config.day_start)
    end = time_to_minutes(config.day_end)
    if end <= start:
        raise ValueError("day_end must be after day_start")
    if (end - start) % config.slot_minutes != 0:
        raise ValueError("day window must be a whole number of slots")
    if config.slack_days < 0:
        raise ValueError("slack_days must be >= 0")
    if config.conflict_lookahead_days <= 0:
        raise ValueError("conflict_lookahead_days must be > 0")


def validate_panel_roles(supervisor_id: int, president_id: int, reporter_id: int) -> None:
    if president_id == supervisor_id:
        raise PanelRoleConflictError("President cannot be the same as supervisor")
    if reporter_id == supervisor_id:
        raise PanelRoleConflictError("Reporter cannot be the same as supervisor")
    if reporter_id == president_id:
        raise PanelRoleConflictError("Reporter cannot be the same as president")
