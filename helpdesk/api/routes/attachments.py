from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict

from helpdesk.dependencies.auth import CurrentActor
from helpdesk.dependencies.services import get_ticket_service
from helpdesk.tickets.models import AttachmentKind, TicketAttachment, UploadedFile
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.state import TicketStatus

router = APIRouter(tags=["attachments"])


class AttachmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    kind: AttachmentKind
    original_name: str
    mime_type: str | None
    size_bytes: int
    is_primary: bool
    created_at: datetime


class AttachmentBatchResponse(BaseModel):
    ticket_id: int
    ticket_status: TicketStatus
    activated: bool
    attachments: list[AttachmentResponse]


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]


def _to_response(attachment: TicketAttachment) -> AttachmentResponse:
    return AttachmentResponse.model_validate(attachment)


@router.post(
    "/tickets/{ticket_id}/attachments",
    response_model=AttachmentBatchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachments(
    ticket_id: int,
    service: TicketServiceDep,
    actor: CurrentActor,
    files: Annotated[list[UploadFile], File(description="Files to attach")],
    kind: Annotated[str | None, Form()] = None,
    is_primary: Annotated[bool | None, Form()] = None,
) -> AttachmentBatchResponse:
    service.check_upload_limits([(upload.filename, upload.size) for upload in files])
    uploads = [
        UploadedFile(filename=upload.filename or "file", content_type=upload.content_type, data=await upload.read())
        for upload in files
    ]
    batch = await service.attach_files(ticket_id, uploads, actor, kind=kind, is_primary=is_primary)
    return AttachmentBatchResponse(
        ticket_id=batch.ticket.id,
        ticket_status=batch.ticket.status,
        activated=batch.activated,
        attachments=[_to_response(attachment) for attachment in batch.attachments],
    )


@router.get("/tickets/{ticket_id}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(ticket_id: int, service: TicketServiceDep, actor: CurrentActor) -> list[AttachmentResponse]:
    attachments = await service.list_attachments(ticket_id, actor)
    return [_to_response(attachment) for attachment in attachments]


@router.get("/attachments/{attachment_id}", response_model=AttachmentResponse)
async def get_attachment(attachment_id: int, service: TicketServiceDep, actor: CurrentActor) -> AttachmentResponse:
    return _to_response(await service.get_attachment(attachment_id, actor))


@router.get("/attachments/{attachment_id}/file", response_class=FileResponse)
async def download_attachment(attachment_id: int, service: TicketServiceDep, actor: CurrentActor) -> FileResponse:
    attachment, path = await service.open_attachment(attachment_id, actor)
    return FileResponse(
        path,
        media_type=attachment.mime_type or "application/octet-stream",
        filename=attachment.original_name,
    )


@router.delete("/attachments/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_attachment(attachment_id: int, service: TicketServiceDep, actor: CurrentActor) -> None:
    await service.delete_attachment(attachment_id, actor)
