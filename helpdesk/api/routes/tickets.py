from __future__ import annotations

from datetime import date, datetime, time
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.dependencies.auth import AdminActor, CurrentActor, StaffActor
from helpdesk.dependencies.services import get_ticket_service
from helpdesk.tickets.models import Ticket, TicketFields, TicketStateTransition
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.state import TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    # Presence and length are checked by the service after trimming.
    ticket_date: date | None = None
    subject: str | None = None
    branch_id: int | None = None
    ticket_time: time | None = None
    description: str | None = None


class TicketUpdateRequest(BaseModel):
    ticket_date: date | None = None
    ticket_time: time | None = None
    subject: str | None = None
    description: str | None = None
    branch_id: int | None = None


class TicketStateChangeRequest(BaseModel):
    # Kept as text: the service normalizes case and whitespace.
    state: str = Field(..., min_length=1, max_length=50)
    comment: str | None = Field(default=None, max_length=2000)


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_date: date
    ticket_time: time | None
    branch_id: int
    creator_id: int
    status: TicketStatus
    subject: str
    description: str | None
    supervisor_remarks: str | None
    closed_at: datetime | None
    created_at: datetime
    updated_at: datetime


class TicketHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    from_status: TicketStatus | None
    to_status: TicketStatus
    actor_id: int
    comment: str | None
    created_at: datetime


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_history_response(entry: TicketStateTransition) -> TicketHistoryResponse:
    return TicketHistoryResponse.model_validate(entry)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep, actor: CurrentActor) -> TicketResponse:
    ticket = await service.create_ticket(
        actor,
        ticket_date=payload.ticket_date,
        subject=payload.subject,
        branch_id=payload.branch_id,
        ticket_time=payload.ticket_time,
        description=payload.description,
    )
    return _to_response(ticket)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: int, service: TicketServiceDep, actor: CurrentActor) -> TicketResponse:
    return _to_response(await service.get_ticket(ticket_id, actor))


@router.put("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: int,
    payload: TicketUpdateRequest,
    service: TicketServiceDep,
    actor: CurrentActor,
) -> TicketResponse:
    fields = TicketFields(**payload.model_dump())
    return _to_response(await service.update_ticket(ticket_id, actor, fields))


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(ticket_id: int, service: TicketServiceDep, actor: AdminActor) -> None:
    await service.delete_ticket(ticket_id, actor)


@router.post("/{ticket_id}/state", response_model=TicketResponse)
async def change_ticket_state(
    ticket_id: int,
    payload: TicketStateChangeRequest,
    service: TicketServiceDep,
    actor: StaffActor,
) -> TicketResponse:
    ticket = await service.change_state(ticket_id, payload.state, actor, comment=payload.comment)
    return _to_response(ticket)


@router.get("/{ticket_id}/history", response_model=list[TicketHistoryResponse])
async def get_ticket_history(
    ticket_id: int, service: TicketServiceDep, actor: CurrentActor
) -> list[TicketHistoryResponse]:
    entries = await service.get_history(ticket_id, actor)
    return [_to_history_response(entry) for entry in entries]
