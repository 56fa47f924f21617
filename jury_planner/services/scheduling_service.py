"""Automatic defense panel scheduling: orchestration and batch persistence."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from jury_planner.domain.constraints import (
    PanelRoleConflictError,
    SchedulingConfig,
    validate_panel_roles,
    validate_scheduling_config,
)
from jury_planner.domain.models import (
    PROJECT_STATUS_SCHEDULED,
    AllocationOutcome,
    CandidateSlot,
    Panel,
    PanelDraft,
    Project,
    ScheduleSummary,
)
from jury_planner.repository.data_repository import DataRepository, RepositoryError
from jury_planner.services.allocation_service import allocate_projects, compute_duty_fairness
from jury_planner.services.calendar_service import generate_candidate_slots
from jury_planner.services.index_service import build_availability_index, conflict_window
from jury_planner.utils.config import Settings, get_settings
from jury_planner.utils.logger import get_logger


logger = get_logger(__name__)

OUTCOME_COMPLETED = "completed"
OUTCOME_DRY_RUN = "dry_run"
OUTCOME_NO_PENDING_PROJECTS = "no_pending_projects"
OUTCOME_PARTIAL_PERSISTENCE = "partial_persistence"
OUTCOME_PERSISTENCE_FAILED = "persistence_failed"


class SchedulingError(Exception):
    """Base exception for scheduling workflow failures."""


class SchedulingValidationError(SchedulingError):
    """Raised when invocation inputs are invalid; nothing has been done yet."""


class DepartmentNotFoundError(SchedulingValidationError):
    """Raised when the requested department does not exist."""


class PanelPersistenceError(SchedulingError):
    """Raised when the bulk panel insert fails after allocation succeeded in memory."""

    def __init__(self, message: str, summary: ScheduleSummary) -> None:
        super().__init__(message)
        self.summary = summary


@dataclass(frozen=True)
class PersistenceReport:
    panels: list[Panel]
    errors: list[str]


def _validate_date(value: str, label: str) -> str:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date().isoformat()
    except (TypeError, ValueError) as exc:
        raise SchedulingValidationError(f"{label} must follow YYYY-MM-DD format") from exc


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _draft_to_dict(draft: PanelDraft) -> dict[str, Any]:
    payload = asdict(draft)
    payload.pop("room_id", None)
    return payload


def persist_results(
    *,
    repository: DataRepository,
    drafts: list[PanelDraft],
    projects_by_id: dict[int, Project],
) -> PersistenceReport:
    """Write panels in bulk, then project statuses and participations one by one.

    Only the bulk insert is atomic. Later updates are independent of each other
    and their failures are reported rather than rolled back.
    """
    panels = repository.insert_panels(drafts)
    errors: list[str] = []
    for panel in panels:
        project = projects_by_id.get(panel.project_id)
        project_label = project.title if project is not None else str(panel.project_id)
        try:
            repository.update_project_status(
                panel.project_id,
                PROJECT_STATUS_SCHEDULED,
                panel.date,
                panel.location,
            )
        except RepositoryError as exc:
            logger.error(
                "Project status update failed | project_id=%s | panel_id=%s | error=%s",
                panel.project_id,
                panel.panel_id,
                exc,
            )
            errors.append(f"Failed to mark project {project_label} as scheduled: {exc}")

        for role, faculty_id in panel.role_assignments():
            try:
                repository.append_faculty_participation(faculty_id, panel.panel_id, role)
            except RepositoryError as exc:
                logger.error(
                    "Participation append failed | faculty_id=%s | panel_id=%s | role=%s | error=%s",
                    faculty_id,
                    panel.panel_id,
                    role,
                    exc,
                )
                errors.append(
                    f"Failed to record {role} participation of faculty {faculty_id} "
                    f"for project {project_label}: {exc}"
                )
    return PersistenceReport(panels=panels, errors=errors)


class JuryScheduleService:
    """Schedules every pending project of a department in one sequential batch.

    Invocations must be serialized by the caller: the run works on a snapshot
    and cannot see panels created concurrently elsewhere.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def _build_config(self) -> SchedulingConfig:
        config = SchedulingConfig(
            day_start=self._settings.slot_day_start,
            day_end=self._settings.slot_day_end,
            slot_minutes=self._settings.slot_minutes,
            excluded_starts=tuple(self._settings.slot_excluded_starts),
            slack_days=self._settings.calendar_slack_days,
            conflict_lookahead_days=self._settings.conflict_lookahead_days,
        )
        validate_scheduling_config(config)
        return config

    def _validate_department(self, department: str) -> str:
        if not department or not department.strip():
            raise SchedulingValidationError("department is required")
        resolved = department.strip()
        if not self._repository.department_exists(resolved):
            raise DepartmentNotFoundError(f"Department {resolved!r} not found")
        return resolved

    def schedule(
        self,
        *,
        department: str,
        start_date: str,
        persist: bool = True,
        today: Optional[str] = None,
    ) -> ScheduleSummary:
        resolved_start = _validate_date(start_date, "start_date")
        resolved_today = _validate_date(today, "today") if today is not None else _today()
        resolved_department = self._validate_department(department)
        config = self._build_config()

        projects = self._repository.list_pending_projects(resolved_department)
        if not projects:
            logger.info(
                "Scheduling skipped; no pending projects | department=%s",
                resolved_department,
            )
            return ScheduleSummary(
                total=0,
                scheduled=0,
                failed=0,
                errors=[],
                outcome=OUTCOME_NO_PENDING_PROJECTS,
            )

        slots = generate_candidate_slots(
            start_date=resolved_start,
            pending_count=len(projects),
            config=config,
        )
        window = conflict_window(
            today=resolved_today,
            slots=slots,
            lookahead_days=config.conflict_lookahead_days,
        )

        faculty = self._repository.list_faculty(
            resolved_department,
            excluded_window=(window.start_date, window.end_date),
        )
        rooms = self._repository.list_rooms()
        existing_panels = self._repository.list_panels_in_window(
            window.start_date,
            window.end_date,
        )
        supervisor_ids = [project.supervisor_id for project in projects]
        indexed_ids = list(
            dict.fromkeys([member.faculty_id for member in faculty] + supervisor_ids)
        )
        declarations = self._repository.list_availability(
            indexed_ids,
            window.start_date,
            window.end_date,
        )
        index = build_availability_index(
            slots=slots,
            faculty=faculty,
            rooms=rooms,
            existing_panels=existing_panels,
            declarations=declarations,
            extra_faculty_ids=supervisor_ids,
            declared_faculty_ids=self._repository.list_declared_faculty_ids(indexed_ids),
        )

        outcome = allocate_projects(index, projects)
        fairness_index = compute_duty_fairness(index.faculty_load.values())
        errors = [failure.reason for failure in outcome.failures]

        if not persist:
            summary = self._summarize(
                projects=projects,
                outcome=outcome,
                errors=errors,
                fairness_index=fairness_index,
                result_outcome=OUTCOME_DRY_RUN,
                panels=[_draft_to_dict(draft) for draft in outcome.drafts],
            )
            self._log_summary(resolved_department, summary)
            return summary

        projects_by_id = {project.project_id: project for project in projects}
        try:
            report = persist_results(
                repository=self._repository,
                drafts=outcome.drafts,
                projects_by_id=projects_by_id,
            )
        except RepositoryError as exc:
            logger.exception(
                "Panel persistence failed; manual reconciliation required | department=%s",
                resolved_department,
            )
            summary = self._summarize(
                projects=projects,
                outcome=outcome,
                errors=errors,
                fairness_index=fairness_index,
                result_outcome=OUTCOME_PERSISTENCE_FAILED,
                panels=[_draft_to_dict(draft) for draft in outcome.drafts],
            )
            raise PanelPersistenceError(str(exc), summary) from exc

        summary = self._summarize(
            projects=projects,
            outcome=outcome,
            errors=errors,
            fairness_index=fairness_index,
            result_outcome=(
                OUTCOME_PARTIAL_PERSISTENCE if report.errors else OUTCOME_COMPLETED
            ),
            panels=[panel.to_dict() for panel in report.panels],
            persistence_errors=report.errors,
        )
        self._log_summary(resolved_department, summary)
        return summary

    def check_panel_availability(
        self,
        draft: PanelDraft,
        today: Optional[str] = None,
    ) -> list[str]:
        """Return the conflicts that would prevent ``draft`` from being created."""
        try:
            validate_panel_roles(draft.supervisor_id, draft.president_id, draft.reporter_id)
        except PanelRoleConflictError as exc:
            return [str(exc)]

        panel_date = _validate_date(draft.date, "date")
        resolved_today = _validate_date(today, "today") if today is not None else _today()
        slot = CandidateSlot(date=panel_date, start_time=draft.start_time, end_time=draft.end_time)
        window = conflict_window(
            today=resolved_today,
            slots=[slot],
            lookahead_days=self._settings.conflict_lookahead_days,
        )
        faculty_ids = [faculty_id for _, faculty_id in draft.role_assignments()]
        rooms = self._repository.list_rooms()
        index = build_availability_index(
            slots=[slot],
            faculty=[],
            rooms=rooms,
            existing_panels=self._repository.list_panels_in_window(
                window.start_date,
                window.end_date,
            ),
            declarations=self._repository.list_availability(
                faculty_ids,
                window.start_date,
                window.end_date,
            ),
            extra_faculty_ids=faculty_ids,
            declared_faculty_ids=self._repository.list_declared_faculty_ids(faculty_ids),
        )

        conflicts: list[str] = []
        for role, faculty_id in draft.role_assignments():
            if not index.is_faculty_available(faculty_id, slot):
                conflicts.append(f"{role.capitalize()} is not available at the selected time")

        room = next((item for item in rooms if item.location == draft.location), None)
        if room is None:
            conflicts.append(f"Location {draft.location!r} does not match any room")
        elif not index.is_room_available(room.room_id, slot):
            conflicts.append(f"Room {draft.location} is already booked at the selected time")
        return conflicts

    @staticmethod
    def _summarize(
        *,
        projects: list[Project],
        outcome: AllocationOutcome,
        errors: list[str],
        fairness_index: float,
        result_outcome: str,
        panels: list[dict[str, Any]],
        persistence_errors: Optional[list[str]] = None,
    ) -> ScheduleSummary:
        return ScheduleSummary(
            total=len(projects),
            scheduled=len(outcome.drafts),
            failed=len(outcome.failures),
            errors=errors,
            outcome=result_outcome,
            persistence_errors=list(persistence_errors or []),
            fairness_index=fairness_index,
            panels=panels,
        )

    @staticmethod
    def _log_summary(department: str, summary: ScheduleSummary) -> None:
        logger.info(
            (
                "Scheduling completed | department=%s | outcome=%s | total=%s | "
                "scheduled=%s | failed=%s | persistence_errors=%s | fairness_index=%.4f"
            ),
            department,
            summary.outcome,
            summary.total,
            summary.scheduled,
            summary.failed,
            len(summary.persistence_errors),
            summary.fairness_index,
        )
