"""Signed session cookies and the authorization gate.

A session is an immutable signed value: ``base64url(payload).base64url(sig)``
where ``sig`` is HMAC-SHA256 over the encoded payload. Nothing about the
session is stored server side; previewing another member (impersonation) is
just a different signed value carrying ``impersonatorId``.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, Request, Response

from podcast_club.config import settings
from podcast_club.errors import Forbidden, NotFound, Unauthenticated, ValidationError
from podcast_club.services.accounts import member_view
from podcast_club.services.database import Q, db, parse_datetime, to_millis, utcnow

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "podcast_club_session"


@dataclass
class SessionPayload:
    """Decoded session token; times are epoch milliseconds"""
    member_id: str
    issued_at: int
    expires_at: int
    impersonator_id: Optional[str] = None

    def to_wire(self) -> dict:
        data = {"memberId": self.member_id, "iat": self.issued_at, "exp": self.expires_at}
        if self.impersonator_id:
            data["impersonatorId"] = self.impersonator_id
        return data


@dataclass
class SessionContext:
    """Resolved session for a request.

    ``member`` is the effective member; authorization always uses its
    ``is_admin`` even while an admin is previewing.
    """
    member: dict
    payload: SessionPayload
    impersonator: Optional[dict] = None

    @property
    def member_id(self) -> str:
        return self.member["id"]

    @property
    def is_admin(self) -> bool:
        return bool(self.member.get("is_admin"))

    @property
    def is_impersonating(self) -> bool:
        return self.impersonator is not None

    def owns(self, owner_id: Optional[str]) -> bool:
        return owner_id is not None and owner_id == self.member_id

    def view(self) -> dict:
        data = member_view(self.member)
        data["is_impersonating"] = self.is_impersonating
        data["impersonator_id"] = self.impersonator["id"] if self.impersonator else None
        data["impersonator_name"] = self.impersonator["name"] if self.impersonator else None
        return data


# =============================================================================
# Token encoding
# =============================================================================

def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _b64decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _sign(encoded_payload: str) -> str:
    digest = hmac.new(
        settings.session_secret.encode(),
        encoded_payload.encode(),
        hashlib.sha256,
    ).digest()
    return _b64encode(digest)


def create_session_token(
    member_id: str,
    impersonator_id: Optional[str] = None,
    issued_at: Optional[int] = None,
) -> str:
    """Create a signed session token valid for ``settings.session_days``"""
    if issued_at is None:
        issued_at = to_millis(utcnow())
    expires_at = issued_at + int(timedelta(days=settings.session_days).total_seconds() * 1000)
    payload = SessionPayload(member_id, issued_at, expires_at, impersonator_id)
    encoded = _b64encode(json.dumps(payload.to_wire(), separators=(",", ":")).encode())
    return f"{encoded}.{_sign(encoded)}"


def verify_session_token(token: Optional[str]) -> Optional[SessionPayload]:
    """Verify signature, structure and expiry. Returns None on any failure."""
    if not token or token.count(".") != 1:
        return None

    encoded, signature = token.split(".")
    expected = _sign(encoded)
    if len(signature) != len(expected) or not hmac.compare_digest(signature.encode(), expected.encode()):
        return None

    try:
        data = json.loads(_b64decode(encoded))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None

    if not isinstance(data, dict):
        return None

    member_id = data.get("memberId")
    issued_at = data.get("iat")
    expires_at = data.get("exp")
    impersonator_id = data.get("impersonatorId")

    if not isinstance(member_id, str) or not member_id:
        return None
    if not isinstance(issued_at, int) or not isinstance(expires_at, int):
        return None
    if expires_at < to_millis(utcnow()):
        return None
    if impersonator_id is not None and not isinstance(impersonator_id, str):
        return None

    return SessionPayload(member_id, issued_at, expires_at, impersonator_id or None)


def _changed_password_after(member: dict, issued_at: int) -> bool:
    changed_at = parse_datetime(member.get("password_changed_at"))
    return changed_at is not None and to_millis(changed_at) > issued_at


def resolve_session(token: Optional[str]) -> Optional[SessionContext]:
    """Load the member behind a token, rejecting stale or invalid sessions"""
    payload = verify_session_token(token)
    if payload is None:
        return None

    member = db.members.get(Q.id == payload.member_id)
    if member is None or _changed_password_after(member, payload.issued_at):
        return None

    impersonator = None
    if payload.impersonator_id:
        impersonator = db.members.get(Q.id == payload.impersonator_id)
        if impersonator is None or not impersonator.get("is_admin"):
            return None
        if _changed_password_after(impersonator, payload.issued_at):
            return None

    return SessionContext(member=dict(member), payload=payload, impersonator=dict(impersonator) if impersonator else None)


# =============================================================================
# Cookies
# =============================================================================

def set_session_cookie(response: Response, member_id: str, impersonator_id: Optional[str] = None) -> str:
    token = create_session_token(member_id, impersonator_id)
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.session_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )
    return token


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


# =============================================================================
# Dependencies
# =============================================================================

async def get_optional_session(request: Request) -> Optional[SessionContext]:
    """Session for endpoints that also serve anonymous callers"""
    return resolve_session(request.cookies.get(SESSION_COOKIE_NAME))


async def require_session(
    session: Optional[SessionContext] = Depends(get_optional_session),
) -> SessionContext:
    if session is None:
        raise Unauthenticated("Authentication required.")
    return session


async def require_admin(session: SessionContext = Depends(require_session)) -> SessionContext:
    if not session.is_admin:
        raise Forbidden("Admin access required.")
    return session


# =============================================================================
# Impersonation
# =============================================================================

def start_impersonation(admin: SessionContext, target_member_id: Optional[str], response: Response) -> None:
    """Issue a session for ``target_member_id`` carrying the admin's id"""
    if not admin.is_admin:
        raise Forbidden("Admin access required.")

    target_id = str(target_member_id or "").strip()
    if not target_id:
        raise ValidationError("memberId is required.")

    target = db.members.get(Q.id == target_id)
    if target is None:
        raise NotFound("Member not found.")

    set_session_cookie(response, target["id"], impersonator_id=admin.member_id)
    logger.info(f"Admin {admin.member_id} started previewing member {target['id']}")


def stop_impersonation(token: Optional[str], response: Response) -> dict:
    """Restore the original admin session from a preview cookie.

    Works from the signed token rather than a resolved session, since a
    demoted admin makes the preview session itself invalid. Raises
    Unauthenticated when there is no valid token or the original admin is
    gone; the caller must then clear the cookie instead of restoring it.
    """
    payload = verify_session_token(token)
    if payload is None:
        raise Unauthenticated("Authentication required.")
    if not payload.impersonator_id:
        raise ValidationError("Not currently previewing another member.")

    admin = db.members.get(Q.id == payload.impersonator_id)
    if admin is None or not admin.get("is_admin") or _changed_password_after(admin, payload.issued_at):
        raise Unauthenticated("Original admin session is no longer valid.")

    set_session_cookie(response, admin["id"])
    logger.info(f"Admin {admin['id']} stopped previewing member {payload.member_id}")
    return dict(admin)
