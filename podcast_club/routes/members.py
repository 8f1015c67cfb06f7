"""Member directory and admin member management"""

import logging

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from podcast_club.auth.session import SessionContext, require_admin, require_session
from podcast_club.models.base import ConfirmRequest
from podcast_club.models.member import (
    CreatedMemberResponse,
    DeletedMemberResponse,
    MemberCreateRequest,
    MemberResponse,
    MemberUpdateRequest,
)
from podcast_club.services.accounts import account_service, member_contact, member_view

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[MemberResponse])
async def list_members(session: SessionContext = Depends(require_session)):
    return [member_view(member) for member in account_service.list_members()]


@router.post("", response_model=CreatedMemberResponse, status_code=201)
async def create_member(body: MemberCreateRequest, admin: SessionContext = Depends(require_admin)):
    """Create a member; without a password a one-time claim code is returned"""
    member, claim_code = await run_in_threadpool(account_service.create_member, body.model_dump())
    return {
        **member_view(member),
        "claim_code": claim_code,
        "claim_code_expires_at": member.get("claim_code_expires_at") if claim_code else None,
    }


@router.patch("/{member_id}", response_model=MemberResponse)
async def update_member(
    member_id: str,
    body: MemberUpdateRequest,
    admin: SessionContext = Depends(require_admin),
):
    updated = account_service.update_member(member_id, body.model_dump(exclude_unset=True))
    return member_view(updated)


@router.delete("/{member_id}", response_model=DeletedMemberResponse)
async def delete_member(
    member_id: str,
    body: ConfirmRequest,
    admin: SessionContext = Depends(require_admin),
):
    member = account_service.delete_member(admin.member_id, member_id, body.confirm_text)
    return {"message": "Member deleted.", "member": member_contact(member)}
