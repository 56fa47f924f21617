"""Domain models for defense panel scheduling.

Dates travel as ISO ``YYYY-MM-DD`` strings and times of day as zero-padded
``HH:MM`` strings, which is also how the repository stores them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union


PROJECT_STATUS_PENDING = "pending"
PROJECT_STATUS_SCHEDULED = "scheduled"
PROJECT_STATUS_COMPLETED = "completed"

PANEL_STATUS_SCHEDULED = "scheduled"
PANEL_STATUS_COMPLETED = "completed"

ROLE_SUPERVISOR = "supervisor"
ROLE_PRESIDENT = "president"
ROLE_REPORTER = "reporter"
PANEL_ROLES = (ROLE_SUPERVISOR, ROLE_PRESIDENT, ROLE_REPORTER)


def time_to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    return f"{value // 60:02d}:{value % 60:02d}"


def ranges_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    return time_to_minutes(start_a) < time_to_minutes(end_b) and time_to_minutes(
        end_a
    ) > time_to_minutes(start_b)


def format_location(room_name: str, building: str) -> str:
    return f"{room_name} - {building}"


@dataclass(frozen=True)
class Project:
    project_id: int
    title: str
    student_name: str
    department: str
    supervisor_id: int
    status: str = PROJECT_STATUS_PENDING


@dataclass(frozen=True)
class Faculty:
    faculty_id: int
    first_name: str
    last_name: str
    department: str
    supervised_count: int
    president_count: int = 0
    reporter_count: int = 0


@dataclass(frozen=True)
class Room:
    room_id: int
    name: str
    building: str
    capacity: int

    @property
    def location(self) -> str:
        return format_location(self.name, self.building)


@dataclass(frozen=True)
class CandidateSlot:
    date: str
    start_time: str
    end_time: str

    @property
    def time_range_key(self) -> str:
        return f"{self.start_time}-{self.end_time}"


@dataclass(frozen=True)
class TimeWindow:
    date: str
    start_time: str
    end_time: str

    def contains(self, slot: CandidateSlot) -> bool:
        return (
            self.date == slot.date
            and time_to_minutes(self.start_time) <= time_to_minutes(slot.start_time)
            and time_to_minutes(self.end_time) >= time_to_minutes(slot.end_time)
        )


@dataclass(frozen=True)
class AvailabilityDeclaration:
    faculty_id: int
    date: str
    start_time: str
    end_time: str

    def as_window(self) -> TimeWindow:
        return TimeWindow(date=self.date, start_time=self.start_time, end_time=self.end_time)


@dataclass(frozen=True)
class UnrestrictedAvailability:
    """No declarations submitted: free unless an existing panel says otherwise."""

    def permits(self, slot: CandidateSlot) -> bool:
        return True


@dataclass(frozen=True)
class RestrictedAvailability:
    """At least one declaration submitted: only declared windows are free."""

    windows: tuple[TimeWindow, ...]

    def permits(self, slot: CandidateSlot) -> bool:
        return any(window.contains(slot) for window in self.windows)


FacultyAvailability = Union[UnrestrictedAvailability, RestrictedAvailability]


@dataclass(frozen=True)
class PanelDraft:
    project_id: int
    supervisor_id: int
    president_id: int
    reporter_id: int
    date: str
    start_time: str
    end_time: str
    location: str
    room_id: int | None = None
    status: str = PANEL_STATUS_SCHEDULED

    def role_assignments(self) -> tuple[tuple[str, int], ...]:
        return (
            (ROLE_SUPERVISOR, self.supervisor_id),
            (ROLE_PRESIDENT, self.president_id),
            (ROLE_REPORTER, self.reporter_id),
        )


@dataclass(frozen=True)
class Panel:
    panel_id: int
    project_id: int
    supervisor_id: int
    president_id: int
    reporter_id: int
    date: str
    start_time: str
    end_time: str
    location: str
    status: str = PANEL_STATUS_SCHEDULED

    def faculty_ids(self) -> tuple[int, int, int]:
        return (self.supervisor_id, self.president_id, self.reporter_id)

    def role_assignments(self) -> tuple[tuple[str, int], ...]:
        return (
            (ROLE_SUPERVISOR, self.supervisor_id),
            (ROLE_PRESIDENT, self.president_id),
            (ROLE_REPORTER, self.reporter_id),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "panel_id": self.panel_id,
            "project_id": self.project_id,
            "supervisor_id": self.supervisor_id,
            "president_id": self.president_id,
            "reporter_id": self.reporter_id,
            "date": self.date,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "location": self.location,
            "status": self.status,
        }


@dataclass
class FacultyLoad:
    """Running duty counters, mutated in place during allocation."""

    supervised_count: int
    president_count: int = 0
    reporter_count: int = 0

    def deficit(self, role: str) -> int:
        if role == ROLE_PRESIDENT:
            return self.supervised_count - self.president_count
        if role == ROLE_REPORTER:
            return self.supervised_count - self.reporter_count
        raise ValueError(f"Role {role!r} has no duty counter")


@dataclass(frozen=True)
class AllocationFailure:
    project_id: int
    title: str
    reason: str


@dataclass(frozen=True)
class AllocationOutcome:
    drafts: list[PanelDraft]
    failures: list[AllocationFailure]


@dataclass(frozen=True)
class ScheduleSummary:
    total: int
    scheduled: int
    failed: int
    errors: list[str]
    outcome: str
    persistence_errors: list[str] = field(default_factory=list)
    fairness_index: float = 0.0
    panels: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "scheduled": self.scheduled,
            "failed": self.failed,
            "errors": list(self.errors),
            "outcome": self.outcome,
            "persistence_errors": list(self.persistence_errors),
            "fairness_index": self.fairness_index,
            "panels": list(self.panels),
        }


@dataclass(frozen=True)
class ParticipationRecord:
    faculty_id: int
    name: str
    department: str
    supervised_count: int
    participation_count: int
    required_participations: int
    percentage: int
    status: str
