"""Greedy per-project panel allocation."""

from __future__ import annotations

from typing import Iterable, Optional

from jury_planner.domain.constraints import validate_panel_roles
from jury_planner.domain.models import (
    ROLE_PRESIDENT,
    ROLE_REPORTER,
    AllocationFailure,
    AllocationOutcome,
    CandidateSlot,
    Faculty,
    FacultyLoad,
    PanelDraft,
    Project,
    Room,
)
from jury_planner.services.index_service import AvailabilityIndex
from jury_planner.utils.logger import get_logger


logger = get_logger(__name__)


def select_role_holder(
    index: AvailabilityIndex,
    *,
    role: str,
    slot: CandidateSlot,
    excluded_ids: Iterable[int],
) -> Optional[Faculty]:
    """Pick the free faculty member with the largest positive deficit for ``role``.

    Equal deficits resolve to roster order (the sort is stable), which the
    repository fixes by faculty id.
    """
    excluded = set(excluded_ids)
    candidates: list[tuple[int, Faculty]] = []
    for member in index.faculty:
        if member.faculty_id in excluded:
            continue
        if not index.is_faculty_available(member.faculty_id, slot):
            continue
        load = index.load_for(member.faculty_id)
        if load is None:
            continue
        deficit = load.deficit(role)
        if deficit > 0:
            candidates.append((deficit, member))
    if not candidates:
        return None
    candidates.sort(key=lambda item: item[0], reverse=True)
    return candidates[0][1]


def select_room(index: AvailabilityIndex, slot: CandidateSlot) -> Optional[Room]:
    for room in index.rooms:
        if index.is_room_available(room.room_id, slot):
            return room
    return None


def try_slot(
    index: AvailabilityIndex,
    project: Project,
    slot: CandidateSlot,
) -> Optional[PanelDraft]:
    supervisor_id = project.supervisor_id
    if not index.is_faculty_available(supervisor_id, slot):
        return None

    president = select_role_holder(
        index,
        role=ROLE_PRESIDENT,
        slot=slot,
        excluded_ids=(supervisor_id,),
    )
    if president is None:
        return None

    reporter = select_role_holder(
        index,
        role=ROLE_REPORTER,
        slot=slot,
        excluded_ids=(supervisor_id, president.faculty_id),
    )
    if reporter is None:
        return None

    room = select_room(index, slot)
    if room is None:
        return None

    validate_panel_roles(supervisor_id, president.faculty_id, reporter.faculty_id)
    return PanelDraft(
        project_id=project.project_id,
        supervisor_id=supervisor_id,
        president_id=president.faculty_id,
        reporter_id=reporter.faculty_id,
        date=slot.date,
        start_time=slot.start_time,
        end_time=slot.end_time,
        location=room.location,
        room_id=room.room_id,
    )


def allocate_project(index: AvailabilityIndex, project: Project) -> Optional[PanelDraft]:
    """Place one project in the earliest feasible slot and consume it in the index."""
    for slot in index.slots:
        draft = try_slot(index, project, slot)
        if draft is None:
            continue
        index.record_placement(draft, slot)
        logger.debug(
            (
                "Panel placed | project_id=%s | date=%s | time=%s | supervisor=%s | "
                "president=%s | reporter=%s | location=%s"
            ),
            project.project_id,
            draft.date,
            slot.time_range_key,
            draft.supervisor_id,
            draft.president_id,
            draft.reporter_id,
            draft.location,
        )
        return draft
    return None


def allocate_projects(index: AvailabilityIndex, projects: list[Project]) -> AllocationOutcome:
    """Allocate projects sequentially, first come first served.

    Each success mutates ``index`` before the next project is tried, so the
    order of ``projects`` is part of the result.
    """
    drafts: list[PanelDraft] = []
    failures: list[AllocationFailure] = []
    for project in projects:
        draft = allocate_project(index, project)
        if draft is not None:
            drafts.append(draft)
            continue
        failure = AllocationFailure(
            project_id=project.project_id,
            title=project.title,
            reason=f"Could not schedule project: {project.title}. No suitable time slot found.",
        )
        failures.append(failure)
        logger.warning(
            "Project not scheduled | project_id=%s | title=%s | slots_tried=%s",
            project.project_id,
            project.title,
            len(index.slots),
        )
    return AllocationOutcome(drafts=drafts, failures=failures)


def compute_duty_fairness(loads: Iterable[FacultyLoad]) -> float:
    """Jain's index over panel duty per supervised project; 1.0 is perfectly even."""
    values = [
        float(load.president_count + load.reporter_count) / load.supervised_count
        for load in loads
        if load.supervised_count > 0
    ]
    if not values:
        return 0.0
    numerator = sum(values) ** 2
    denominator = len(values) * sum(value**2 for value in values)
    if denominator == 0.0:
        return 0.0
    return min(1.0, float(numerator / denominator))
