"""Faculty panel-duty participation report."""

from __future__ import annotations

from typing import Optional

import pandas as pd

from jury_planner.domain.models import ParticipationRecord
from jury_planner.repository.data_repository import DataRepository
from jury_planner.utils.config import Settings, get_settings


STATUS_UNDER_QUOTA = "under_quota"
STATUS_MET_QUOTA = "met_quota"
STATUS_EXCEEDED_QUOTA = "exceeded_quota"

_COLUMNS = [
    "faculty_id",
    "name",
    "department",
    "supervised_count",
    "participation_count",
]


def _quota_status(percentage: int) -> str:
    if percentage < 100:
        return STATUS_UNDER_QUOTA
    if percentage == 100:
        return STATUS_MET_QUOTA
    return STATUS_EXCEEDED_QUOTA


def _participation_percentage(row: pd.Series) -> int:
    required = int(row["required_participations"])
    if required == 0:
        return 100
    return int(round(int(row["participation_count"]) / required * 100))


class ParticipationService:
    """Compares each faculty member's panel duty with their supervision quota."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def build_frame(self, department: Optional[str] = None) -> pd.DataFrame:
        rows = self._repository.list_participation_counts(department)
        frame = pd.DataFrame(
            [
                {
                    "faculty_id": row.faculty_id,
                    "name": f"{row.first_name} {row.last_name}",
                    "department": row.department,
                    "supervised_count": row.supervised_count,
                    "participation_count": row.participation_count,
                }
                for row in rows
            ],
            columns=_COLUMNS,
        )
        if frame.empty:
            return frame.assign(required_participations=[], percentage=[], status=[])

        frame["required_participations"] = (
            frame["supervised_count"] * self._settings.participation_quota_ratio
        ).clip(lower=0)
        frame["percentage"] = frame.apply(_participation_percentage, axis=1)
        frame["status"] = frame["percentage"].map(_quota_status)
        return frame.sort_values("percentage", kind="stable").reset_index(drop=True)

    def build_report(self, department: Optional[str] = None) -> list[ParticipationRecord]:
        frame = self.build_frame(department)
        return [
            ParticipationRecord(
                faculty_id=int(row.faculty_id),
                name=str(row.name),
                department=str(row.department),
                supervised_count=int(row.supervised_count),
                participation_count=int(row.participation_count),
                required_participations=int(row.required_participations),
                percentage=int(row.percentage),
                status=str(row.status),
            )
            for row in frame.itertuples(index=False)
        ]
