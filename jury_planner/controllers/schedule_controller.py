"""HTTP controller layer for automatic panel scheduling."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from jury_planner.controllers.dependencies import (
    get_participation_service,
    get_schedule_service,
)
from jury_planner.services.participation_service import ParticipationService
from jury_planner.services.scheduling_service import (
    DepartmentNotFoundError,
    JuryScheduleService,
    PanelPersistenceError,
    SchedulingValidationError,
)
from jury_planner.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["juries"])


class AutoScheduleRequest(BaseModel):
    """Input DTO validated before entering service layer."""

    department: str = Field(min_length=1)
    start_date: date
    dry_run: bool = False

    @field_validator("department")
    @classmethod
    def validate_department(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("department must be non-empty")
        return value.strip()


class ScheduledPanelResponse(BaseModel):
    panel_id: Optional[int] = None
    project_id: int
    supervisor_id: int
    president_id: int
    reporter_id: int
    date: str
    start_time: str
    end_time: str
    location: str
    status: str


class AutoScheduleResponse(BaseModel):
    total: int = Field(ge=0)
    scheduled: int = Field(ge=0)
    failed: int = Field(ge=0)
    errors: list[str]
    outcome: str
    persistence_errors: list[str]
    fairness_index: float = Field(ge=0.0, le=1.0)
    panels: list[ScheduledPanelResponse]


class ParticipationRecordResponse(BaseModel):
    faculty_id: int
    name: str
    department: str
    supervised_count: int = Field(ge=0)
    participation_count: int = Field(ge=0)
    required_participations: int = Field(ge=0)
    percentage: int = Field(ge=0)
    status: str


@router.post(
    "/juries/auto-generate",
    response_model=AutoScheduleResponse,
    status_code=status.HTTP_200_OK,
)
async def auto_generate_juries(
    payload: AutoScheduleRequest,
    service: JuryScheduleService = Depends(get_schedule_service),
) -> AutoScheduleResponse:
    """Schedule every pending project of the department in one batch."""
    try:
        summary = service.schedule(
            department=payload.department,
            start_date=payload.start_date.isoformat(),
            persist=not payload.dry_run,
        )
        return AutoScheduleResponse(**summary.to_dict())
    except DepartmentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except SchedulingValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except PanelPersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Panels could not be saved; manual reconciliation required: {exc}",
        ) from exc


@router.get(
    "/reports/participation",
    response_model=list[ParticipationRecordResponse],
    status_code=status.HTTP_200_OK,
)
async def participation_report(
    department: Optional[str] = Query(default=None),
    service: ParticipationService = Depends(get_participation_service),
) -> list[ParticipationRecordResponse]:
    records = service.build_report(department)
    return [
        ParticipationRecordResponse(
            faculty_id=record.faculty_id,
            name=record.name,
            department=record.department,
            supervised_count=record.supervised_count,
            participation_count=record.participation_count,
            required_participations=record.required_participations,
            percentage=record.percentage,
            status=record.status,
        )
        for record in records
    ]
