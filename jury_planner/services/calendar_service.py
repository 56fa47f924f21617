"""Candidate slot calendar generation."""

from __future__ import annotations

import math
from datetime import datetime, timedelta

import pandas as pd

from jury_planner.domain.constraints import SchedulingConfig, validate_scheduling_config
from jury_planner.domain.models import CandidateSlot, minutes_to_time, time_to_minutes


def build_daily_template(config: SchedulingConfig) -> list[tuple[str, str]]:
    """Return the (start, end) pairs tried on every working day, in order."""
    start = time_to_minutes(config.day_start)
    end = time_to_minutes(config.day_end)
    excluded = set(config.excluded_starts)
    template: list[tuple[str, str]] = []
    for slot_start in range(start, end, config.slot_minutes):
        start_label = minutes_to_time(slot_start)
        if start_label in excluded:
            continue
        template.append((start_label, minutes_to_time(slot_start + config.slot_minutes)))
    return template


def working_day_count(pending_count: int, slots_per_day: int, slack_days: int) -> int:
    if slots_per_day <= 0:
        raise ValueError("slots_per_day must be > 0")
    return math.ceil(pending_count / slots_per_day) + slack_days


def working_days(start_date: str, day_count: int) -> list[str]:
    """Return ``day_count`` weekdays, beginning the day after ``start_date``."""
    first_day = datetime.strptime(start_date, "%Y-%m-%d").date() + timedelta(days=1)
    return [day.date().isoformat() for day in pd.bdate_range(start=first_day, periods=day_count)]


def generate_candidate_slots(
    *,
    start_date: str,
    pending_count: int,
    config: SchedulingConfig,
) -> list[CandidateSlot]:
    """Generate chronologically ordered candidate slots for a scheduling run.

    Callers short-circuit on an empty workload; a zero ``pending_count`` still
    yields the slack days so the function stays total.
    """
    validate_scheduling_config(config)
    template = build_daily_template(config)
    day_count = working_day_count(pending_count, len(template), config.slack_days)
    return [
        CandidateSlot(date=day, start_time=slot_start, end_time=slot_end)
        for day in working_days(start_date, day_count)
        for slot_start, slot_end in template
    ]
