"""Admin-issued one-time codes: join codes, claim codes and reset codes"""

import logging

from fastapi import APIRouter, Depends

from podcast_club.auth.session import SessionContext, require_admin
from podcast_club.models.base import MemberIdRequest
from podcast_club.models.member import IssuedCodeResponse, JoinCodeCountResponse, JoinCodeResponse
from podcast_club.services.accounts import account_service, member_contact

logger = logging.getLogger(__name__)

join_codes_router = APIRouter()
claim_codes_router = APIRouter()
reset_codes_router = APIRouter()


@join_codes_router.get("", response_model=JoinCodeCountResponse)
async def count_join_codes(admin: SessionContext = Depends(require_admin)):
    return {"active_codes": account_service.count_active_join_codes()}


@join_codes_router.post("", response_model=JoinCodeResponse, status_code=201)
async def generate_join_code(admin: SessionContext = Depends(require_admin)):
    code = account_service.generate_join_code(admin.member_id)
    return {"code": code, "message": "Share this one-time code with the new member. It will not be shown again."}


@claim_codes_router.post("", response_model=IssuedCodeResponse)
async def issue_claim_code(body: MemberIdRequest, admin: SessionContext = Depends(require_admin)):
    """Replace a pending member's claim code"""
    member, code, expires_at = account_service.issue_claim_code(body.member_id)
    return {"code": code, "expires_at": expires_at, "member": member_contact(member)}


@reset_codes_router.post("", response_model=IssuedCodeResponse)
async def issue_reset_code(body: MemberIdRequest, admin: SessionContext = Depends(require_admin)):
    """Reset code for members who cannot receive email"""
    member, code, expires_at = account_service.issue_reset_code(body.member_id)
    return {"code": code, "expires_at": expires_at, "member": member_contact(member)}
