"""Read-only queries used by tests to inspect what a scheduling run wrote."""

from __future__ import annotations

import sqlite3
from typing import Optional

from jury_planner.domain.models import ROLE_PRESIDENT, ROLE_REPORTER, Panel
from jury_planner.repository.data_repository import DataRepository


def _query(repository: DataRepository, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    connection = sqlite3.connect(repository.database_path)
    connection.row_factory = sqlite3.Row
    try:
        return connection.execute(sql, params).fetchall()
    finally:
        connection.close()


def list_panels(repository: DataRepository) -> list[Panel]:
    rows = _query(
        repository,
        """
        SELECT
            id, project_id, supervisor_id, president_id, reporter_id,
            date, start_time, end_time, location, status
        FROM Panels
        ORDER BY id ASC;
        """,
    )
    return [
        Panel(
            panel_id=int(row["id"]),
            project_id=int(row["project_id"]),
            supervisor_id=int(row["supervisor_id"]),
            president_id=int(row["president_id"]),
            reporter_id=int(row["reporter_id"]),
            date=str(row["date"]),
            start_time=str(row["start_time"]),
            end_time=str(row["end_time"]),
            location=str(row["location"]),
            status=str(row["status"]),
        )
        for row in rows
    ]


def project_status(repository: DataRepository, project_id: int) -> Optional[str]:
    rows = _query(repository, "SELECT status FROM Projects WHERE id = ?;", (project_id,))
    return str(rows[0]["status"]) if rows else None


def get_project_schedule(
    repository: DataRepository,
    project_id: int,
) -> Optional[tuple[str, Optional[str], Optional[str]]]:
    """Return (status, presentation_date, presentation_location) for a project."""
    rows = _query(
        repository,
        """
        SELECT status, presentation_date, presentation_location
        FROM Projects
        WHERE id = ?;
        """,
        (project_id,),
    )
    if not rows:
        return None
    row = rows[0]
    return (str(row["status"]), row["presentation_date"], row["presentation_location"])


def list_participations(repository: DataRepository, faculty_id: int) -> list[tuple[int, str]]:
    rows = _query(
        repository,
        """
        SELECT panel_id, role
        FROM FacultyParticipations
        WHERE faculty_id = ?
        ORDER BY id ASC;
        """,
        (faculty_id,),
    )
    return [(int(row["panel_id"]), str(row["role"])) for row in rows]


def count_role_assignments(repository: DataRepository, faculty_id: int) -> dict[str, int]:
    rows = _query(
        repository,
        """
        SELECT
            SUM(CASE WHEN president_id = ? THEN 1 ELSE 0 END) AS president_count,
            SUM(CASE WHEN reporter_id = ? THEN 1 ELSE 0 END) AS reporter_count
        FROM Panels;
        """,
        (faculty_id, faculty_id),
    )
    row = rows[0]
    return {
        ROLE_PRESIDENT: int(row["president_count"] or 0),
        ROLE_REPORTER: int(row["reporter_count"] or 0),
    }
