"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from jury_planner.services.participation_service import ParticipationService
from jury_planner.services.scheduling_service import JuryScheduleService


def get_schedule_service(request: Request) -> JuryScheduleService:
    service = getattr(request.app.state, "schedule_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scheduling service is not initialized",
        )
    return service


def get_participation_service(request: Request) -> ParticipationService:
    service = getattr(request.app.state, "participation_service", None)
    if service is None:
        repository = getattr(request.app.state, "repository", None)
        if repository is not None:
            service = ParticipationService(repository=repository)
            request.app.state.participation_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Participation service is not initialized",
        )
    return service
