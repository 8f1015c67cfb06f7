"""Authentication routes: sessions, self-service credentials and preview.

bcrypt hashing and reset-mail delivery block, so those service calls run in
the threadpool.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from podcast_club.auth.session import (
    SESSION_COOKIE_NAME,
    SessionContext,
    clear_session_cookie,
    get_optional_session,
    require_admin,
    set_session_cookie,
    start_impersonation,
    stop_impersonation,
)
from podcast_club.errors import Unauthenticated
from podcast_club.models.base import MemberIdRequest, MessageResponse
from podcast_club.models.member import (
    ClaimAccountRequest,
    EmergencyRecoverRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MeResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SetupStatusResponse,
)
from podcast_club.services.accounts import account_service, member_view
from podcast_club.services.address import ADDRESS_FIELDS

logger = logging.getLogger(__name__)
router = APIRouter()


def client_ip(request: Request) -> Optional[str]:
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer"""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.split(",")[0].strip():
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def _session_member(member_id: str) -> dict:
    """Member view for a freshly issued, non-preview session"""
    member = account_service.get_member(member_id)
    data = member_view(member)
    data.update(is_impersonating=False, impersonator_id=None, impersonator_name=None)
    return data


@router.get("/setup-status", response_model=SetupStatusResponse)
async def setup_status():
    """Whether the first (admin) account still needs to be created"""
    return {"has_users": account_service.count_members() > 0}


@router.post("/register", response_model=MeResponse)
async def register(body: RegisterRequest, response: Response):
    member = await run_in_threadpool(
        account_service.register,
        body.name,
        body.email,
        body.password,
        body.invite_code,
        body.model_dump(include=set(ADDRESS_FIELDS)),
    )
    set_session_cookie(response, member["id"])
    return {"member": _session_member(member["id"])}


@router.post("/login", response_model=MeResponse)
async def login(body: LoginRequest, response: Response):
    member = await run_in_threadpool(account_service.login, body.email, body.password)
    set_session_cookie(response, member["id"])
    return {"member": _session_member(member["id"])}


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    clear_session_cookie(response)
    return {"message": "Logged out."}


@router.get("/me", response_model=MeResponse)
async def me(session: Optional[SessionContext] = Depends(get_optional_session)):
    if session is None:
        return JSONResponse(status_code=401, content={"member": None})
    return {"member": session.view()}


@router.post("/claim-account", response_model=MessageResponse)
async def claim_account(body: ClaimAccountRequest):
    await run_in_threadpool(account_service.claim_account, body.email, body.claim_code, body.password)
    return {"message": "Account claimed. You can now log in."}


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(body: ForgotPasswordRequest, request: Request):
    message = await run_in_threadpool(account_service.forgot_password, body.email, client_ip(request))
    return {"message": message}


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(body: ResetPasswordRequest):
    await run_in_threadpool(account_service.reset_password, body.token, body.password)
    return {"message": "Password has been reset. You can now log in."}


@router.post("/emergency-recover", response_model=MessageResponse)
async def emergency_recover(body: EmergencyRecoverRequest):
    await run_in_threadpool(account_service.emergency_recover, body.email, body.password, body.recovery_code)
    return {"message": "Owner password has been reset. You can now log in."}


# =============================================================================
# Preview (admin impersonation)
# =============================================================================

@router.post("/preview", response_model=MeResponse)
async def start_preview(
    body: MemberIdRequest,
    response: Response,
    admin: SessionContext = Depends(require_admin),
):
    """Browse the app as another member; the admin id rides along in the cookie"""
    start_impersonation(admin, body.member_id, response)
    target = account_service.get_member(body.member_id.strip())
    data = member_view(target)
    data.update(is_impersonating=True, impersonator_id=admin.member_id, impersonator_name=admin.member.get("name"))
    return {"member": data}


@router.delete("/preview", response_model=MeResponse)
async def stop_preview(request: Request, response: Response):
    """Return to the admin's own session, or sign out if that admin is gone"""
    try:
        admin = stop_impersonation(request.cookies.get(SESSION_COOKIE_NAME), response)
    except Unauthenticated as exc:
        failed = JSONResponse(status_code=exc.status_code, content={"message": exc.message})
        clear_session_cookie(failed)
        return failed
    return {"member": _session_member(admin["id"])}
