"""Meeting routes"""

import logging

from fastapi import APIRouter, Depends

from podcast_club.auth.session import SessionContext, require_admin, require_session
from podcast_club.models.base import ConfirmRequest, MessageResponse
from podcast_club.models.meeting import (
    MeetingCompleteRequest,
    MeetingCreateRequest,
    MeetingResponse,
    MeetingUpdateRequest,
)
from podcast_club.services.meetings import meeting_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[MeetingResponse])
async def list_meetings(session: SessionContext = Depends(require_session)):
    return meeting_service.list_meetings()


@router.post("", response_model=MeetingResponse, status_code=201)
async def create_meeting(body: MeetingCreateRequest, admin: SessionContext = Depends(require_admin)):
    meeting = meeting_service.create_meeting(body.date, body.host, body.podcast, body.location, body.notes)
    return meeting_service.view(meeting)


@router.patch("/{meeting_id}", response_model=MeetingResponse)
async def edit_meeting(
    meeting_id: str,
    body: MeetingUpdateRequest,
    session: SessionContext = Depends(require_session),
):
    """Admins edit everything; the host may edit all but the host field"""
    updated = meeting_service.edit_meeting(session.member, meeting_id, body.model_dump(exclude_unset=True))
    return meeting_service.view(updated)


@router.post("/{meeting_id}/complete", response_model=MeetingResponse)
async def complete_meeting(
    meeting_id: str,
    body: MeetingCompleteRequest,
    admin: SessionContext = Depends(require_admin),
):
    return meeting_service.view(meeting_service.complete_meeting(meeting_id, body.notes))


@router.delete("/{meeting_id}", response_model=MessageResponse)
async def delete_meeting(
    meeting_id: str,
    body: ConfirmRequest = ConfirmRequest(),
    admin: SessionContext = Depends(require_admin),
):
    """Completed meetings additionally need ``confirmText: "DELETE"``"""
    meeting_service.delete_meeting(meeting_id, body.confirm_text)
    return {"message": "Meeting deleted."}
