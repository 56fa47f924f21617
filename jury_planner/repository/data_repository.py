"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

from jury_planner.domain.constraints import validate_panel_roles
from jury_planner.domain.models import (
    PANEL_STATUS_SCHEDULED,
    PROJECT_STATUS_PENDING,
    AvailabilityDeclaration,
    Faculty,
    Panel,
    PanelDraft,
    Project,
    Room,
)
from jury_planner.utils.config import Settings, get_settings
from jury_planner.utils.logger import get_logger


logger = get_logger(__name__)


class RepositoryError(Exception):
    """Raised when a single read or write against the database fails."""


@dataclass(frozen=True)
class ParticipationCount:
    """Faculty projection used by the participation report."""

    faculty_id: int
    first_name: str
    last_name: str
    department: str
    supervised_count: int
    participation_count: int


class DataRepository:
    """Encapsulates SQLite access so scheduling logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    def initialize_database(self) -> None:
        """Create all persistence artifacts before the engine runs."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Departments (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL UNIQUE,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Faculty (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        first_name TEXT NOT NULL,
                        last_name TEXT NOT NULL,
                        email TEXT,
                        department TEXT NOT NULL,
                        rank TEXT NOT NULL DEFAULT 'Lecturer'
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Projects (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        title TEXT NOT NULL,
                        student_name TEXT NOT NULL,
                        department TEXT NOT NULL,
                        supervisor_id INTEGER NOT NULL,
                        status TEXT NOT NULL DEFAULT 'pending'
                            CHECK (status IN ('pending', 'scheduled', 'completed')),
                        presentation_date TEXT,
                        presentation_location TEXT,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (supervisor_id) REFERENCES Faculty(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        building TEXT NOT NULL,
                        capacity INTEGER NOT NULL CHECK (capacity > 0),
                        department TEXT
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Panels (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        project_id INTEGER NOT NULL,
                        supervisor_id INTEGER NOT NULL,
                        president_id INTEGER NOT NULL,
                        reporter_id INTEGER NOT NULL,
                        date TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        location TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'scheduled'
                            CHECK (status IN ('scheduled', 'completed')),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        CHECK (
                            supervisor_id <> president_id
                            AND supervisor_id <> reporter_id
                            AND president_id <> reporter_id
                        ),
                        FOREIGN KEY (project_id) REFERENCES Projects(id),
                        FOREIGN KEY (supervisor_id) REFERENCES Faculty(id),
                        FOREIGN KEY (president_id) REFERENCES Faculty(id),
                        FOREIGN KEY (reporter_id) REFERENCES Faculty(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Availability (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        faculty_id INTEGER NOT NULL,
                        date TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (faculty_id) REFERENCES Faculty(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS FacultyParticipations (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        faculty_id INTEGER NOT NULL,
                        panel_id INTEGER NOT NULL,
                        role TEXT NOT NULL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        FOREIGN KEY (faculty_id) REFERENCES Faculty(id),
                        FOREIGN KEY (panel_id) REFERENCES Panels(id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_projects_department_status
                    ON Projects(department, status);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_panels_date
                    ON Panels(date, start_time);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_availability_faculty_date
                    ON Availability(faculty_id, date);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> None:
        """Seed one demo department only when the database is empty."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Departments;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Demo data already present; skipping seed")
                    return

                department = "Computer Science"
                cursor.execute("INSERT INTO Departments (name) VALUES (?);", (department,))
                faculty_rows = [
                    ("Amina", "Benali", "a.benali@example.edu", department, "Professor"),
                    ("Karim", "Haddad", "k.haddad@example.edu", department, "Associate Professor"),
                    ("Sofia", "Mansouri", "s.mansouri@example.edu", department, "Lecturer"),
                    ("Youssef", "Tahiri", "y.tahiri@example.edu", department, "Lecturer"),
                    ("Lina", "Cherif", "l.cherif@example.edu", department, "Assistant Professor"),
                ]
                cursor.executemany(
                    """
                    INSERT INTO Faculty (first_name, last_name, email, department, rank)
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    faculty_rows,
                )
                cursor.execute("SELECT id FROM Faculty ORDER BY id ASC;")
                faculty_ids = [int(row["id"]) for row in cursor.fetchall()]

                project_rows = []
                for index in range(8):
                    supervisor_id = faculty_ids[index % len(faculty_ids)]
                    project_rows.append(
                        (
                            f"Capstone project {index + 1}",
                            f"Student {index + 1}",
                            department,
                            supervisor_id,
                        )
                    )
                cursor.executemany(
                    """
                    INSERT INTO Projects (title, student_name, department, supervisor_id)
                    VALUES (?, ?, ?, ?);
                    """,
                    project_rows,
                )
                cursor.executemany(
                    """
                    INSERT INTO Rooms (name, building, capacity, department)
                    VALUES (?, ?, ?, ?);
                    """,
                    [
                        ("Room 101", "Block A", 30, department),
                        ("Room 204", "Block B", 40, department),
                    ],
                )
                conn.commit()
            logger.info(
                "Demo seed completed | department=%s | faculty=%s | projects=%s",
                department,
                len(faculty_rows),
                len(project_rows),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    def department_exists(self, department: str) -> bool:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM Departments WHERE name = ?;", (department,))
            return cursor.fetchone() is not None

    def list_pending_projects(self, department: str) -> list[Project]:
        """Return pending projects in retrieval order, which fixes allocation order."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, title, student_name, department, supervisor_id, status
                FROM Projects
                WHERE department = ? AND status = ?
                ORDER BY id ASC;
                """,
                (department, PROJECT_STATUS_PENDING),
            )
            return [_row_to_project(row) for row in cursor.fetchall()]

    def list_faculty(
        self,
        department: str,
        excluded_window: Optional[tuple[str, str]] = None,
    ) -> list[Faculty]:
        """Return the roster with supervision and role counts precomputed.

        When ``excluded_window`` is given as (start, end), panels dated in that
        half-open window are left out of the role counts; the caller counts them.
        """
        window_start, window_end = excluded_window or ("", "")
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    f.id,
                    f.first_name,
                    f.last_name,
                    f.department,
                    (
                        SELECT COUNT(*) FROM Projects AS p
                        WHERE p.supervisor_id = f.id
                    ) AS supervised_count,
                    (
                        SELECT COUNT(*) FROM Panels AS j
                        WHERE j.president_id = f.id AND (j.date < ? OR j.date >= ?)
                    ) AS president_count,
                    (
                        SELECT COUNT(*) FROM Panels AS j
                        WHERE j.reporter_id = f.id AND (j.date < ? OR j.date >= ?)
                    ) AS reporter_count
                FROM Faculty AS f
                WHERE f.department = ?
                ORDER BY f.id ASC;
                """,
                (window_start, window_end, window_start, window_end, department),
            )
            return [
                Faculty(
                    faculty_id=int(row["id"]),
                    first_name=str(row["first_name"]),
                    last_name=str(row["last_name"]),
                    department=str(row["department"]),
                    supervised_count=int(row["supervised_count"]),
                    president_count=int(row["president_count"]),
                    reporter_count=int(row["reporter_count"]),
                )
                for row in cursor.fetchall()
            ]

    def list_panels_in_window(self, start_date: str, end_date: str) -> list[Panel]:
        """Return panels dated in the half-open window [start_date, end_date)."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    id, project_id, supervisor_id, president_id, reporter_id,
                    date, start_time, end_time, location, status
                FROM Panels
                WHERE date >= ? AND date < ?
                ORDER BY date ASC, start_time ASC, id ASC;
                """,
                (start_date, end_date),
            )
            return [_row_to_panel(row) for row in cursor.fetchall()]

    def list_availability(
        self,
        faculty_ids: Sequence[int],
        start_date: str,
        end_date: str,
    ) -> list[AvailabilityDeclaration]:
        if not faculty_ids:
            return []
        placeholders = ",".join("?" for _ in faculty_ids)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT faculty_id, date, start_time, end_time
                FROM Availability
                WHERE faculty_id IN ({placeholders})
                  AND date >= ?
                  AND date < ?
                ORDER BY faculty_id ASC, date ASC, start_time ASC;
                """,
                (*faculty_ids, start_date, end_date),
            )
            return [
                AvailabilityDeclaration(
                    faculty_id=int(row["faculty_id"]),
                    date=str(row["date"]),
                    start_time=str(row["start_time"]),
                    end_time=str(row["end_time"]),
                )
                for row in cursor.fetchall()
            ]

    def list_declared_faculty_ids(self, faculty_ids: Sequence[int]) -> set[int]:
        """Return the ids among ``faculty_ids`` that submitted any declaration, on any date."""
        if not faculty_ids:
            return set()
        placeholders = ",".join("?" for _ in faculty_ids)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT DISTINCT faculty_id
                FROM Availability
                WHERE faculty_id IN ({placeholders});
                """,
                tuple(faculty_ids),
            )
            return {int(row["faculty_id"]) for row in cursor.fetchall()}

    def list_rooms(self) -> list[Room]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, name, building, capacity
                FROM Rooms
                ORDER BY id ASC;
                """
            )
            return [
                Room(
                    room_id=int(row["id"]),
                    name=str(row["name"]),
                    building=str(row["building"]),
                    capacity=int(row["capacity"]),
                )
                for row in cursor.fetchall()
            ]

    def insert_panels(self, drafts: Iterable[PanelDraft]) -> list[Panel]:
        """Insert all drafts in one transaction and return the created panels."""
        draft_rows = list(drafts)
        if not draft_rows:
            return []
        for draft in draft_rows:
            validate_panel_roles(draft.supervisor_id, draft.president_id, draft.reporter_id)

        created: list[Panel] = []
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                for draft in draft_rows:
                    cursor.execute(
                        """
                        INSERT INTO Panels (
                            project_id,
                            supervisor_id,
                            president_id,
                            reporter_id,
                            date,
                            start_time,
                            end_time,
                            location,
                            status
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
                        """,
                        (
                            draft.project_id,
                            draft.supervisor_id,
                            draft.president_id,
                            draft.reporter_id,
                            draft.date,
                            draft.start_time,
                            draft.end_time,
                            draft.location,
                            draft.status,
                        ),
                    )
                    created.append(
                        Panel(
                            panel_id=int(cursor.lastrowid),
                            project_id=draft.project_id,
                            supervisor_id=draft.supervisor_id,
                            president_id=draft.president_id,
                            reporter_id=draft.reporter_id,
                            date=draft.date,
                            start_time=draft.start_time,
                            end_time=draft.end_time,
                            location=draft.location,
                            status=draft.status,
                        )
                    )
                conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Bulk panel insert failed: {exc}") from exc
        return created

    def update_project_status(
        self,
        project_id: int,
        status: str,
        presentation_date: Optional[str],
        presentation_location: Optional[str],
    ) -> None:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    UPDATE Projects
                    SET status = ?, presentation_date = ?, presentation_location = ?
                    WHERE id = ?;
                    """,
                    (status, presentation_date, presentation_location, project_id),
                )
                if cursor.rowcount == 0:
                    raise RepositoryError(f"Project {project_id} not found")
                conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(
                f"Project status update failed for project {project_id}: {exc}"
            ) from exc

    def append_faculty_participation(self, faculty_id: int, panel_id: int, role: str) -> None:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO FacultyParticipations (faculty_id, panel_id, role)
                    VALUES (?, ?, ?);
                    """,
                    (faculty_id, panel_id, role),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(
                f"Participation append failed for faculty {faculty_id}: {exc}"
            ) from exc

    def list_participation_counts(self, department: Optional[str] = None) -> list[ParticipationCount]:
        query = """
            SELECT
                f.id,
                f.first_name,
                f.last_name,
                f.department,
                (
                    SELECT COUNT(*) FROM Projects AS p
                    WHERE p.supervisor_id = f.id
                ) AS supervised_count,
                (
                    SELECT COUNT(*) FROM FacultyParticipations AS fp
                    WHERE fp.faculty_id = f.id
                ) AS participation_count
            FROM Faculty AS f
        """
        params: tuple[str, ...] = ()
        if department:
            query += " WHERE f.department = ?"
            params = (department,)
        query += " ORDER BY f.id ASC;"
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [
                ParticipationCount(
                    faculty_id=int(row["id"]),
                    first_name=str(row["first_name"]),
                    last_name=str(row["last_name"]),
                    department=str(row["department"]),
                    supervised_count=int(row["supervised_count"]),
                    participation_count=int(row["participation_count"]),
                )
                for row in cursor.fetchall()
            ]

    def create_department(self, name: str) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("INSERT INTO Departments (name) VALUES (?);", (name,))
            conn.commit()
            return int(cursor.lastrowid)

    def create_faculty(
        self,
        first_name: str,
        last_name: str,
        department: str,
        email: Optional[str] = None,
        rank: str = "Lecturer",
    ) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Faculty (first_name, last_name, email, department, rank)
                VALUES (?, ?, ?, ?, ?);
                """,
                (first_name, last_name, email, department, rank),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_project(
        self,
        title: str,
        student_name: str,
        department: str,
        supervisor_id: int,
        status: str = PROJECT_STATUS_PENDING,
    ) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Projects (title, student_name, department, supervisor_id, status)
                VALUES (?, ?, ?, ?, ?);
                """,
                (title, student_name, department, supervisor_id, status),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_room(
        self,
        name: str,
        building: str,
        capacity: int = 30,
        department: Optional[str] = None,
    ) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Rooms (name, building, capacity, department)
                VALUES (?, ?, ?, ?);
                """,
                (name, building, capacity, department),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_availability(
        self,
        faculty_id: int,
        date: str,
        start_time: str,
        end_time: str,
    ) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Availability (faculty_id, date, start_time, end_time)
                VALUES (?, ?, ?, ?);
                """,
                (faculty_id, date, start_time, end_time),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_panel(self, draft: PanelDraft) -> Panel:
        """Record a manually composed panel together with its participations."""
        (panel,) = self.insert_panels([draft])
        for role, faculty_id in panel.role_assignments():
            self.append_faculty_participation(faculty_id, panel.panel_id, role)
        return panel


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        project_id=int(row["id"]),
        title=str(row["title"]),
        student_name=str(row["student_name"]),
        department=str(row["department"]),
        supervisor_id=int(row["supervisor_id"]),
        status=str(row["status"]),
    )


def _row_to_panel(row: sqlite3.Row) -> Panel:
    return Panel(
        panel_id=int(row["id"]),
        project_id=int(row["project_id"]),
        supervisor_id=int(row["supervisor_id"]),
        president_id=int(row["president_id"]),
        reporter_id=int(row["reporter_id"]),
        date=str(row["date"]),
        start_time=str(row["start_time"]),
        end_time=str(row["end_time"]),
        location=str(row["location"]),
        status=str(row["status"] or PANEL_STATUS_SCHEDULED),
    )

