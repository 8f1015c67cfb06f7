"""Member and account models"""

from typing import Optional

from podcast_club.models.base import ClubModel, MemberContact


class AddressFields(ClubModel):
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None


class RegisterRequest(AddressFields):
    """Self-registration; invite_code is required once the club has members"""
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    invite_code: Optional[str] = None


class LoginRequest(ClubModel):
    email: Optional[str] = None
    password: Optional[str] = None


class MemberCreateRequest(AddressFields):
    """Admin-created member. Without a password the account starts pending."""
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    is_admin: bool = False


class MemberUpdateRequest(AddressFields):
    name: Optional[str] = None
    email: Optional[str] = None
    is_admin: Optional[bool] = None


class ClaimAccountRequest(ClubModel):
    email: Optional[str] = None
    claim_code: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(ClubModel):
    email: Optional[str] = None


class ResetPasswordRequest(ClubModel):
    token: Optional[str] = None
    password: Optional[str] = None


class EmergencyRecoverRequest(ClubModel):
    email: Optional[str] = None
    password: Optional[str] = None
    recovery_code: Optional[str] = None


class MemberResponse(ClubModel):
    id: str
    name: str
    email: str
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    address: str = ""
    is_admin: bool = False
    account_status: str = "claimed"


class CreatedMemberResponse(MemberResponse):
    claim_code: Optional[str] = None
    claim_code_expires_at: Optional[str] = None


class SessionMemberResponse(MemberResponse):
    is_impersonating: bool = False
    impersonator_id: Optional[str] = None
    impersonator_name: Optional[str] = None


class MeResponse(ClubModel):
    member: SessionMemberResponse


class IssuedCodeResponse(ClubModel):
    """A one-time code shown to the admin exactly once"""
    code: str
    expires_at: str
    member: MemberContact


class JoinCodeResponse(ClubModel):
    code: str
    message: str


class JoinCodeCountResponse(ClubModel):
    active_codes: int


class SetupStatusResponse(ClubModel):
    has_users: bool


class DeletedMemberResponse(ClubModel):
    message: str
    member: MemberContact
