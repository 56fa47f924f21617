from __future__ import annotations

from dataclasses import replace
from itertools import combinations

import pytest

from db_inspection import (
    count_role_assignments,
    get_project_schedule,
    list_panels,
    list_participations,
    project_status,
)
from jury_planner.domain.models import PanelDraft, ranges_overlap
from jury_planner.repository.data_repository import DataRepository, RepositoryError
from jury_planner.services.scheduling_service import (
    OUTCOME_COMPLETED,
    OUTCOME_DRY_RUN,
    OUTCOME_NO_PENDING_PROJECTS,
    OUTCOME_PARTIAL_PERSISTENCE,
    DepartmentNotFoundError,
    JuryScheduleService,
    PanelPersistenceError,
    SchedulingValidationError,
)
from jury_planner.utils.config import get_settings


DEPARTMENT = "Computer Science"
TODAY = "2024-03-01"


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        demo_seed_enabled=False,
    )


def _build_repository(tmp_path, filename: str) -> tuple[DataRepository, JuryScheduleService]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.create_department(DEPARTMENT)
    return repository, JuryScheduleService(repository=repository, settings=settings)


def _faculty_with_supervision(repository: DataRepository, name: str, projects: int = 1) -> int:
    faculty_id = repository.create_faculty(name, "Member", DEPARTMENT)
    for number in range(projects):
        repository.create_project(
            f"{name} past project {number}",
            f"{name} alumnus {number}",
            DEPARTMENT,
            faculty_id,
            status="completed",
        )
    return faculty_id


def test_friday_start_schedules_monday_first_slot(tmp_path):
    repository, service = _build_repository(tmp_path, "friday.db")
    supervisor_id = repository.create_faculty("Sam", "Supervisor", DEPARTMENT)
    first_id = _faculty_with_supervision(repository, "Alice")
    second_id = _faculty_with_supervision(repository, "Bob")
    project_id = repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)
    repository.create_room("R", "Main")

    summary = service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert summary.outcome == OUTCOME_COMPLETED
    assert (summary.total, summary.scheduled, summary.failed) == (1, 1, 0)
    assert summary.errors == []
    (panel,) = list_panels(repository)
    assert panel.project_id == project_id
    assert (panel.date, panel.start_time, panel.end_time) == ("2024-03-04", "08:00", "08:30")
    assert panel.location == "R - Main"
    assert panel.supervisor_id == supervisor_id
    assert {panel.president_id, panel.reporter_id} == {first_id, second_id}


def test_unfillable_roles_report_one_error_per_project(tmp_path):
    repository, service = _build_repository(tmp_path, "unfillable.db")
    repository.create_department("Mathematics")
    _faculty_with_supervision(repository, "Alice")
    _faculty_with_supervision(repository, "Bob")
    repository.create_room("R", "Main")
    titles = []
    for number in range(20):
        supervisor_id = repository.create_faculty(f"External{number}", "Supervisor", "Mathematics")
        title = f"Thesis {number}"
        titles.append(title)
        repository.create_project(title, f"Student {number}", DEPARTMENT, supervisor_id)

    summary = service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert summary.total == 20
    assert summary.failed > 0
    assert summary.scheduled + summary.failed == summary.total
    assert len(summary.errors) == summary.failed
    failed_titles = [title for title in titles if any(title + "." in error for error in summary.errors)]
    assert len(failed_titles) == summary.failed


def test_open_world_faculty_only_loses_slots_held_by_existing_panels(tmp_path):
    repository, service = _build_repository(tmp_path, "open_world.db")
    supervisor_id = _faculty_with_supervision(repository, "Sam")
    first_id = _faculty_with_supervision(repository, "Alice")
    second_id = _faculty_with_supervision(repository, "Bob")
    third_id = _faculty_with_supervision(repository, "Carl")
    repository.create_room("R", "Main")
    repository.create_room("Q", "Annex")
    earlier = repository.create_project("Old thesis", "Eve", DEPARTMENT, third_id, status="scheduled")
    repository.create_panel(
        PanelDraft(
            project_id=earlier,
            supervisor_id=third_id,
            president_id=first_id,
            reporter_id=second_id,
            date="2024-03-04",
            start_time="08:00",
            end_time="08:30",
            location="Q - Annex",
        )
    )
    repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)

    summary = service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert summary.scheduled == 1
    new_panel = [panel for panel in list_panels(repository) if panel.project_id != earlier][0]
    # Only Sam is free at 08:00; everyone with deficit is busy until 08:30.
    assert (new_panel.date, new_panel.start_time) == ("2024-03-04", "08:30")
    assert new_panel.location == "R - Main"


def test_declared_window_restricts_supervisor(tmp_path):
    repository, service = _build_repository(tmp_path, "closed_world.db")
    supervisor_id = repository.create_faculty("Sam", "Supervisor", DEPARTMENT)
    _faculty_with_supervision(repository, "Alice")
    _faculty_with_supervision(repository, "Bob")
    repository.create_room("R", "Main")
    repository.create_availability(supervisor_id, "2024-03-05", "09:00", "12:00")
    repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)

    summary = service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert summary.scheduled == 1
    (panel,) = list_panels(repository)
    assert (panel.date, panel.start_time, panel.end_time) == ("2024-03-05", "09:00", "09:30")


def test_declaration_outside_run_dates_still_closes_supervisor_calendar(tmp_path):
    repository, service = _build_repository(tmp_path, "closed_world_far.db")
    supervisor_id = repository.create_faculty("Sam", "Supervisor", DEPARTMENT)
    _faculty_with_supervision(repository, "Alice")
    _faculty_with_supervision(repository, "Bob")
    repository.create_room("R", "Main")
    repository.create_availability(supervisor_id, "2024-06-03", "09:00", "12:00")
    project_id = repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)

    summary = service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert (summary.scheduled, summary.failed) == (0, 1)
    assert list_panels(repository) == []
    assert project_status(repository, project_id) == "pending"

    draft = PanelDraft(
        project_id=project_id,
        supervisor_id=supervisor_id,
        president_id=supervisor_id + 1,
        reporter_id=supervisor_id + 2,
        date="2024-03-04",
        start_time="08:00",
        end_time="08:30",
        location="R - Main",
    )
    assert service.check_panel_availability(draft, today=TODAY) == [
        "Supervisor is not available at the selected time"
    ]


def test_roles_held_after_the_run_dates_count_toward_load(tmp_path):
    repository, service = _build_repository(tmp_path, "future_roles.db")
    supervisor_id = repository.create_faculty("Sam", "Supervisor", DEPARTMENT)
    first_id = _faculty_with_supervision(repository, "Alice")
    second_id = repository.create_faculty("Bob", "Member", DEPARTMENT)
    second_project = repository.create_project(
        "Bob past project", "Bob alumnus", DEPARTMENT, second_id, status="completed"
    )
    third_id = _faculty_with_supervision(repository, "Carl")
    repository.create_room("R", "Main")
    repository.create_panel(
        PanelDraft(
            project_id=second_project,
            supervisor_id=second_id,
            president_id=first_id,
            reporter_id=third_id,
            date="2024-09-02",
            start_time="10:00",
            end_time="10:30",
            location="R - Main",
        )
    )
    project_id = repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)

    roster = {
        member.faculty_id: member
        for member in repository.list_faculty(
            DEPARTMENT,
            excluded_window=("2024-03-01", "2024-03-15"),
        )
    }
    assert roster[first_id].president_count == 1
    assert roster[third_id].reporter_count == 1

    summary = service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert summary.scheduled == 1
    new_panel = [panel for panel in list_panels(repository) if panel.project_id == project_id][0]
    # Alice already presides in September, so Bob has the larger president deficit.
    assert new_panel.president_id == second_id
    assert new_panel.reporter_id == first_id


def test_rooms_are_listed_with_capacity(tmp_path):
    repository, _ = _build_repository(tmp_path, "rooms.db")
    repository.create_room("R", "Main", capacity=45)
    repository.create_room("S", "Annex")

    rooms = repository.list_rooms()

    assert [(room.location, room.capacity) for room in rooms] == [("R - Main", 45), ("S - Annex", 30)]


def test_persistence_updates_projects_and_participations(tmp_path):
    repository, service = _build_repository(tmp_path, "persistence.db")
    members = [_faculty_with_supervision(repository, name, projects=2) for name in ("A", "B", "C", "D")]
    repository.create_room("R", "Main")
    project_ids = [
        repository.create_project(f"Thesis {number}", f"Student {number}", DEPARTMENT, members[number])
        for number in range(3)
    ]
    before = {member: count_role_assignments(repository, member) for member in members}

    summary = service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert summary.outcome == OUTCOME_COMPLETED
    assert summary.scheduled == 3
    assert 0.0 < summary.fairness_index <= 1.0
    panels = list_panels(repository)
    assert len(panels) == 3
    for panel in panels:
        status, presentation_date, location = get_project_schedule(repository, panel.project_id)
        assert status == "scheduled"
        assert presentation_date == panel.date
        assert location == panel.location
        for role, faculty_id in panel.role_assignments():
            assert (panel.panel_id, role) in list_participations(repository, faculty_id)
    assert {panel.project_id for panel in panels} == set(project_ids)
    assert repository.list_pending_projects(DEPARTMENT) == []

    for member in members:
        after = count_role_assignments(repository, member)
        for role, count in after.items():
            assert count >= before[member][role]
            assigned = sum(
                1
                for panel in panels
                if getattr(panel, f"{role}_id") == member
            )
            assert count - before[member][role] == assigned

    for first, second in combinations(panels, 2):
        if first.date == second.date and ranges_overlap(
            first.start_time, first.end_time, second.start_time, second.end_time
        ):
            assert not set(first.faculty_ids()) & set(second.faculty_ids())
            assert first.location != second.location


def test_existing_panel_beyond_two_weeks_still_blocks_far_future_run(tmp_path):
    repository, service = _build_repository(tmp_path, "far_future.db")
    supervisor_id = _faculty_with_supervision(repository, "Sam")
    first_id = _faculty_with_supervision(repository, "Alice")
    second_id = _faculty_with_supervision(repository, "Bob")
    repository.create_room("R", "Main")
    other_room_project = repository.create_project("Earlier", "Eve", DEPARTMENT, first_id, status="scheduled")
    repository.create_panel(
        PanelDraft(
            project_id=other_room_project,
            supervisor_id=first_id,
            president_id=second_id,
            reporter_id=supervisor_id,
            date="2024-06-03",
            start_time="08:00",
            end_time="08:30",
            location="R - Main",
        )
    )
    repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)

    summary = service.schedule(department=DEPARTMENT, start_date="2024-05-31", today=TODAY)

    assert summary.scheduled == 1
    new_panel = [panel for panel in list_panels(repository) if panel.project_id != other_room_project][0]
    assert (new_panel.date, new_panel.start_time) == ("2024-06-03", "08:30")


def test_no_pending_projects_is_not_an_error(tmp_path):
    repository, service = _build_repository(tmp_path, "empty.db")
    _faculty_with_supervision(repository, "Alice")

    summary = service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert summary.outcome == OUTCOME_NO_PENDING_PROJECTS
    assert (summary.total, summary.scheduled, summary.failed) == (0, 0, 0)
    assert summary.errors == []


def test_unknown_department_is_rejected(tmp_path):
    _, service = _build_repository(tmp_path, "unknown_department.db")

    with pytest.raises(DepartmentNotFoundError):
        service.schedule(department="Astrology", start_date="2024-03-01", today=TODAY)


@pytest.mark.parametrize("start_date", ["2024-13-01", "not-a-date", "01/03/2024"])
def test_unparseable_start_date_is_rejected_before_any_work(tmp_path, start_date):
    repository, service = _build_repository(tmp_path, "bad_date.db")
    supervisor_id = _faculty_with_supervision(repository, "Sam")
    project_id = repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)

    with pytest.raises(SchedulingValidationError):
        service.schedule(department=DEPARTMENT, start_date=start_date, today=TODAY)

    assert project_status(repository, project_id) == "pending"
    assert list_panels(repository) == []


def test_dry_run_writes_nothing(tmp_path):
    repository, service = _build_repository(tmp_path, "dry_run.db")
    supervisor_id = repository.create_faculty("Sam", "Supervisor", DEPARTMENT)
    _faculty_with_supervision(repository, "Alice")
    _faculty_with_supervision(repository, "Bob")
    repository.create_room("R", "Main")
    project_id = repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)

    summary = service.schedule(
        department=DEPARTMENT,
        start_date="2024-03-01",
        today=TODAY,
        persist=False,
    )

    assert summary.outcome == OUTCOME_DRY_RUN
    assert summary.scheduled == 1
    assert summary.panels[0]["project_id"] == project_id
    assert summary.panels[0]["date"] == "2024-03-04"
    assert list_panels(repository) == []
    assert project_status(repository, project_id) == "pending"


def test_failed_participation_writes_are_reported_not_rolled_back(tmp_path, monkeypatch):
    repository, service = _build_repository(tmp_path, "partial.db")
    supervisor_id = repository.create_faculty("Sam", "Supervisor", DEPARTMENT)
    _faculty_with_supervision(repository, "Alice")
    _faculty_with_supervision(repository, "Bob")
    repository.create_room("R", "Main")
    project_id = repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)

    def failing_append(faculty_id, panel_id, role):
        raise RepositoryError("disk full")

    monkeypatch.setattr(repository, "append_faculty_participation", failing_append)

    summary = service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert summary.outcome == OUTCOME_PARTIAL_PERSISTENCE
    assert summary.scheduled == 1
    assert summary.failed == 0
    assert len(summary.persistence_errors) == 3
    assert all("Graph search" in error for error in summary.persistence_errors)
    assert len(list_panels(repository)) == 1
    assert project_status(repository, project_id) == "scheduled"


def test_bulk_insert_failure_raises_with_summary(tmp_path, monkeypatch):
    repository, service = _build_repository(tmp_path, "bulk_failure.db")
    supervisor_id = repository.create_faculty("Sam", "Supervisor", DEPARTMENT)
    _faculty_with_supervision(repository, "Alice")
    _faculty_with_supervision(repository, "Bob")
    repository.create_room("R", "Main")
    project_id = repository.create_project("Graph search", "Dana", DEPARTMENT, supervisor_id)

    def failing_insert(drafts):
        raise RepositoryError("database is locked")

    monkeypatch.setattr(repository, "insert_panels", failing_insert)

    with pytest.raises(PanelPersistenceError) as excinfo:
        service.schedule(department=DEPARTMENT, start_date="2024-03-01", today=TODAY)

    assert excinfo.value.summary.scheduled == 1
    assert project_status(repository, project_id) == "pending"


def test_check_panel_availability_reports_conflicts(tmp_path):
    repository, service = _build_repository(tmp_path, "manual_check.db")
    first_id = _faculty_with_supervision(repository, "Alice")
    second_id = _faculty_with_supervision(repository, "Bob")
    third_id = _faculty_with_supervision(repository, "Carl")
    fourth_id = _faculty_with_supervision(repository, "Dina")
    repository.create_room("R", "Main")
    repository.create_availability(fourth_id, "2024-03-04", "14:00", "16:00")
    earlier = repository.create_project("Earlier", "Eve", DEPARTMENT, first_id, status="scheduled")
    repository.create_panel(
        PanelDraft(
            project_id=earlier,
            supervisor_id=first_id,
            president_id=second_id,
            reporter_id=third_id,
            date="2024-03-04",
            start_time="10:00",
            end_time="10:30",
            location="R - Main",
        )
    )

    clash = PanelDraft(
        project_id=earlier,
        supervisor_id=first_id,
        president_id=fourth_id,
        reporter_id=second_id,
        date="2024-03-04",
        start_time="10:00",
        end_time="10:30",
        location="R - Main",
    )
    conflicts = service.check_panel_availability(clash, today=TODAY)

    assert "Supervisor is not available at the selected time" in conflicts
    assert "President is not available at the selected time" in conflicts
    assert "Reporter is not available at the selected time" in conflicts
    assert any("already booked" in conflict for conflict in conflicts)

    free = replace(clash, supervisor_id=third_id, president_id=fourth_id, start_time="14:00", end_time="14:30")
    assert service.check_panel_availability(free, today=TODAY) == []

    same_person = replace(free, reporter_id=third_id)
    assert service.check_panel_availability(same_person, today=TODAY) == [
        "Reporter cannot be the same as supervisor"
    ]
