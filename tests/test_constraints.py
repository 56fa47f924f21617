"""Tests for scheduling configuration and panel role validation."""

from __future__ import annotations

import pytest

from jury_planner.domain.constraints import (
    PanelRoleConflictError,
    SchedulingConfig,
    validate_panel_roles,
    validate_scheduling_config,
)


def valid_config(**overrides) -> SchedulingConfig:
    """Return a valid baseline SchedulingConfig, optionally overriding fields."""
    defaults = {
        "day_start": "08:00",
        "day_end": "18:00",
        "slot_minutes": 30,
        "excluded_starts": ("17:30",),
        "slack_days": 1,
        "conflict_lookahead_days": 14,
    }
    defaults.update(overrides)
    return SchedulingConfig(**defaults)


def test_valid_config_passes() -> None:
    validate_scheduling_config(valid_config())


# --- time template ---

def test_malformed_day_start_raises() -> None:
    with pytest.raises(ValueError):
        validate_scheduling_config(valid_config(day_start="8am"))


def test_day_end_before_start_raises() -> None:
    with pytest.raises(ValueError):
        validate_scheduling_config(valid_config(day_start="18:00", day_end="08:00"))


def test_malformed_excluded_start_raises() -> None:
    with pytest.raises(ValueError):
        validate_scheduling_config(valid_config(excluded_starts=("25:00",)))


def test_window_not_multiple_of_slot_raises() -> None:
    with pytest.raises(ValueError):
        validate_scheduling_config(valid_config(slot_minutes=45))


def test_slot_minutes_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_scheduling_config(valid_config(slot_minutes=0))


# --- horizon ---

def test_negative_slack_days_raises() -> None:
    with pytest.raises(ValueError):
        validate_scheduling_config(valid_config(slack_days=-1))


def test_zero_slack_days_passes() -> None:
    validate_scheduling_config(valid_config(slack_days=0))


def test_lookahead_zero_raises() -> None:
    with pytest.raises(ValueError):
        validate_scheduling_config(valid_config(conflict_lookahead_days=0))


# --- panel roles ---

def test_distinct_roles_pass() -> None:
    validate_panel_roles(1, 2, 3)


@pytest.mark.parametrize(
    ("supervisor_id", "president_id", "reporter_id"),
    [(1, 1, 2), (1, 2, 1), (1, 2, 2)],
)
def test_repeated_role_holder_raises(supervisor_id, president_id, reporter_id) -> None:
    with pytest.raises(PanelRoleConflictError):
        validate_panel_roles(supervisor_id, president_id, reporter_id)
