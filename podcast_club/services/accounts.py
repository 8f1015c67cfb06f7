"""Member and account lifecycle.

Covers registration (join-code gated after the first member), admin
provisioning with claim codes, password resets by link or admin code, and
the operator's emergency recovery path.
"""

import logging
from datetime import timedelta
from typing import Optional, Tuple

from podcast_club.config import settings
from podcast_club.errors import (
    Conflict,
    Forbidden,
    NotFound,
    ServiceUnavailable,
    Unauthenticated,
    ValidationError,
    require_confirmation,
)
from podcast_club.services.address import ADDRESS_FIELDS, format_address, normalize_address, validate_address
from podcast_club.services.credentials import (
    MIN_PASSWORD_LENGTH,
    RESET_TOKEN_TTL,
    constant_time_equals,
    create_claim_code,
    create_join_code,
    create_reset_code,
    create_reset_token,
    hash_code,
    hash_ip,
    hash_password,
    normalize_code,
    reset_token_hashes,
    verify_password,
)
from podcast_club.services.database import Q, db, parse_datetime, utcnow
from podcast_club.services.email import build_password_reset_url, email_service

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent."
RATE_LIMIT_WINDOW = timedelta(hours=1)
MAX_REQUESTS_PER_IP = 20
MAX_REQUESTS_PER_MEMBER = 5
JOIN_CODE_ATTEMPTS = 5


def member_view(doc: dict) -> dict:
    """Public projection of a member document (never includes secrets)"""
    return {
        "id": doc["id"],
        "name": doc.get("name", ""),
        "email": doc.get("email", ""),
        "address_line1": doc.get("address_line1") or "",
        "address_line2": doc.get("address_line2") or "",
        "city": doc.get("city") or "",
        "state": doc.get("state") or "",
        "postal_code": doc.get("postal_code") or "",
        "address": format_address(doc),
        "is_admin": bool(doc.get("is_admin")),
        "account_status": doc.get("account_status") or "claimed",
    }


def member_contact(doc: dict) -> dict:
    return {"id": doc["id"], "name": doc.get("name", ""), "email": doc.get("email", "")}


def normalize_email(value) -> str:
    return str(value or "").strip().lower()


def _is_future(value) -> bool:
    parsed = parse_datetime(value)
    return parsed is not None and parsed > utcnow()


def _within_window(value) -> bool:
    parsed = parse_datetime(value)
    return parsed is not None and parsed >= utcnow() - RATE_LIMIT_WINDOW


def _check_password_length(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


def _validated_address(raw: dict) -> dict:
    address = normalize_address(raw)
    problem = validate_address(address)
    if problem:
        raise ValidationError(problem)
    return address


class AccountService:
    """Member accounts and credential flows backed by the shared TinyDB store"""

    # =========================================================================
    # Lookups
    # =========================================================================

    def count_members(self) -> int:
        return len(db.members)

    def get_member(self, member_id: str) -> Optional[dict]:
        return db.members.get(Q.id == member_id)

    def get_member_by_email(self, email: str) -> Optional[dict]:
        return db.members.get(Q.email == normalize_email(email))

    def list_members(self) -> list:
        members = db.members.all()
        return sorted(members, key=lambda member: member.get("name", "").casefold())

    def _email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        existing = db.members.get(Q.email == email)
        return existing is not None and existing["id"] != exclude_id

    # =========================================================================
    # Registration and login
    # =========================================================================

    def register(
        self,
        name: Optional[str],
        email: Optional[str],
        password: Optional[str],
        invite_code: Optional[str],
        address_fields: dict,
    ) -> dict:
        """Create a member from self-registration.

        The very first member becomes an admin without a join code. Everyone
        after needs a one-time join code, consumed atomically up front and
        released again if anything later in the registration fails.
        """
        name = str(name or "").strip()
        email = normalize_email(email)
        password = str(password or "")
        if not name or not email or not password:
            raise ValidationError("Name, email, password, and full address are required.")
        address = _validated_address(address_fields)
        _check_password_length(password)

        member_count = self.count_members()
        consumed_code = None
        if member_count > 0:
            normalized = normalize_code(invite_code)
            if not normalized:
                raise Forbidden("A valid one-time join code is required.")
            consumed_code = db.find_one_and_update(
                db.join_codes,
                (Q.code_hash == hash_code(normalized)) & (Q.used_at == None),  # noqa: E711
                {"used_at": db.timestamp()},
            )
            if consumed_code is None:
                logger.warning("Registration rejected: invalid or already used join code")
                raise Forbidden("Invalid or already used join code.")

        try:
            existing = db.members.get(Q.email == email)
            if existing:
                if existing.get("account_status") == "pending":
                    raise Conflict(
                        "An admin already created this account. "
                        "Use Claim Account to set your password instead of registering again."
                    )
                raise Conflict("A member with this email already exists.")

            is_first = member_count == 0
            member = db.new_document(
                name=name,
                email=email,
                password_hash=hash_password(password),
                **address,
                address=format_address(address),
                is_admin=is_first,
                account_status="claimed",
                claim_code_hash=None,
                claim_code_expires_at=None,
                password_changed_at=None,
            )
            db.members.insert(member)

            if consumed_code is not None:
                db.update_by_id(db.join_codes, consumed_code["id"], {"used_by": member["id"]})
        except Exception:
            if consumed_code is not None:
                self._release_join_code(consumed_code["id"])
            raise

        logger.info(f"Member registered: {member['id']} (admin={member['is_admin']})")
        return member

    def _release_join_code(self, code_id: str) -> None:
        try:
            db.update_by_id(db.join_codes, code_id, {"used_at": None, "used_by": None})
            logger.info(f"Join code {code_id} released after failed registration")
        except Exception as exc:
            logger.error(f"Failed to release join code {code_id}: {exc}")

    def login(self, email: Optional[str], password: Optional[str]) -> dict:
        email = normalize_email(email)
        password = str(password or "")
        if not email or not password:
            raise ValidationError("Email and password are required.")

        member = db.members.get(Q.email == email)
        if member is None:
            raise Unauthenticated("Invalid email or password.")

        if member.get("account_status") == "pending" or not member.get("password_hash"):
            raise Forbidden("This account has not been claimed yet. Use Claim Account to set your password.")

        if not verify_password(password, member["password_hash"]):
            logger.warning(f"Failed login for member {member['id']}")
            raise Unauthenticated("Invalid email or password.")

        return member

    # =========================================================================
    # Admin member management
    # =========================================================================

    def create_member(self, fields: dict) -> Tuple[dict, Optional[str]]:
        """Admin-created member. Returns (member, plaintext claim code or None)."""
        name = str(fields.get("name") or "").strip()
        email = normalize_email(fields.get("email"))
        if not name or not email:
            raise ValidationError("Name, email, and full address are required.")
        address = _validated_address(fields)

        if self._email_taken(email):
            raise Conflict("A member with this email already exists.")

        password = str(fields.get("password") or "")
        if password:
            _check_password_length(password)
            claim_code, claim_hash, claim_expires = None, None, None
        else:
            claim_code, claim_hash, expires_at = create_claim_code()
            claim_expires = expires_at.isoformat()

        member = db.new_document(
            name=name,
            email=email,
            password_hash=hash_password(password) if password else None,
            **address,
            address=format_address(address),
            is_admin=bool(fields.get("is_admin")),
            account_status="claimed" if password else "pending",
            claim_code_hash=claim_hash,
            claim_code_expires_at=claim_expires,
            password_changed_at=None,
        )
        db.members.insert(member)
        logger.info(f"Member created by admin: {member['id']} ({member['account_status']})")
        return member, claim_code

    def update_member(self, member_id: str, fields: dict) -> dict:
        """Partial update; ``fields`` holds only what the caller sent"""
        current = self.get_member(member_id)
        if current is None:
            raise NotFound("Member not found.")

        updates = {}
        name = str(fields.get("name") or "").strip()
        if name:
            updates["name"] = name

        email = normalize_email(fields.get("email"))
        if email:
            if self._email_taken(email, exclude_id=member_id):
                raise Conflict("A member with this email already exists.")
            updates["email"] = email

        sent_address = normalize_address(fields)
        if any(sent_address[field] for field in ADDRESS_FIELDS):
            merged = {field: sent_address[field] or current.get(field) or "" for field in ADDRESS_FIELDS}
            # An explicitly blank second line clears it
            if "address_line2" in fields and not sent_address["address_line2"]:
                merged["address_line2"] = ""
            problem = validate_address(merged)
            if problem:
                raise ValidationError(problem)
            updates.update(merged)
            updates["address"] = format_address(merged)

        if isinstance(fields.get("is_admin"), bool):
            updates["is_admin"] = fields["is_admin"]

        if not updates:
            return current
        return db.update_by_id(db.members, member_id, updates)

    def delete_member(self, admin_id: str, member_id: str, confirm_text: Optional[str]) -> dict:
        """Delete a member, handing their history to the deleting admin"""
        require_confirmation(confirm_text, "Type DELETE to confirm member deletion.")
        if admin_id == member_id:
            raise ValidationError("You cannot delete your own account.")

        member = self.get_member(member_id)
        if member is None:
            raise NotFound("Member not found.")

        db.meetings.update({"host": admin_id}, Q.host == member_id)
        db.podcasts.update({"submitted_by": admin_id}, Q.submitted_by == member_id)
        for podcast in db.podcasts.all():
            ratings = podcast.get("ratings") or []
            kept = [rating for rating in ratings if rating.get("member") != member_id]
            if len(kept) != len(ratings):
                db.podcasts.update({"ratings": kept}, doc_ids=[podcast.doc_id])
        db.carve_outs.remove(Q.member == member_id)
        db.join_codes.update({"created_by": admin_id}, Q.created_by == member_id)
        db.join_codes.update({"used_by": None}, Q.used_by == member_id)
        db.password_reset_tokens.remove(Q.member == member_id)
        db.members.remove(Q.id == member_id)

        logger.info(f"Member {member_id} deleted by admin {admin_id}")
        return member

    # =========================================================================
    # Claim codes
    # =========================================================================

    def issue_claim_code(self, member_id: Optional[str]) -> Tuple[dict, str, str]:
        """Replace a pending member's claim code. Returns (member, code, expires_at)."""
        member_id = str(member_id or "").strip()
        if not member_id:
            raise ValidationError("memberId is required.")
        member = self.get_member(member_id)
        if member is None:
            raise NotFound("Member not found.")
        if member.get("account_status") != "pending":
            raise ValidationError("Only pending accounts can receive claim codes.")

        code, code_hash, expires_at = create_claim_code()
        db.update_by_id(db.members, member_id, {
            "claim_code_hash": code_hash,
            "claim_code_expires_at": expires_at.isoformat(),
        })
        logger.info(f"Claim code issued for member {member_id}")
        return member, code, expires_at.isoformat()

    def claim_account(self, email: Optional[str], claim_code: Optional[str], password: Optional[str]) -> dict:
        email = normalize_email(email)
        normalized = normalize_code(claim_code)
        password = str(password or "")
        if not email or not normalized or not password:
            raise ValidationError("Email, claim code, and password are required.")
        _check_password_length(password)

        member = db.members.get(Q.email == email)
        if (
            member is None
            or member.get("account_status") != "pending"
            or not member.get("claim_code_hash")
            or not member.get("claim_code_expires_at")
        ):
            raise ValidationError("Invalid claim attempt.")

        if not _is_future(member["claim_code_expires_at"]):
            raise ValidationError("Claim code expired. Contact an admin for a new code.")

        if not constant_time_equals(member["claim_code_hash"], hash_code(normalized)):
            logger.warning(f"Claim attempt with wrong code for member {member['id']}")
            raise ValidationError("Invalid claim attempt.")

        claimed = db.find_one_and_update(
            db.members,
            (Q.id == member["id"]) & (Q.claim_code_hash == member["claim_code_hash"]),
            {
                "password_hash": hash_password(password),
                "account_status": "claimed",
                "claim_code_hash": None,
                "claim_code_expires_at": None,
                "password_changed_at": db.timestamp(),
            },
        )
        if claimed is None:
            raise ValidationError("Invalid claim attempt.")

        logger.info(f"Member {member['id']} claimed their account")
        return claimed

    # =========================================================================
    # Join codes
    # =========================================================================

    def generate_join_code(self, admin_id: str) -> str:
        """Create a one-time join code; the plaintext is returned only here"""
        for _ in range(JOIN_CODE_ATTEMPTS):
            code, code_hash = create_join_code()
            doc = db.new_document(code_hash=code_hash, created_by=admin_id, used_by=None, used_at=None)
            if db.insert_unique(db.join_codes, "code_hash", doc):
                logger.info(f"Join code generated by admin {admin_id}")
                return code
        raise Conflict("Unable to generate a unique join code. Try again.")

    def count_active_join_codes(self) -> int:
        return db.join_codes.count(Q.used_at == None)  # noqa: E711

    # =========================================================================
    # Password resets
    # =========================================================================

    def _invalidate_reset_tokens(self, member_id: str, only_unexpired: bool = False) -> None:
        cond = (Q.member == member_id) & (Q.used_at == None)  # noqa: E711
        if only_unexpired:
            cond = cond & Q.expires_at.test(_is_future)
        db.password_reset_tokens.update({"used_at": db.timestamp()}, cond)

    def _recent_requests(self, cond) -> int:
        # Filtered outside TinyDB: search() caches results and the window moves
        return sum(
            1 for token in db.password_reset_tokens.search(cond)
            if _within_window(token.get("created_at"))
        )

    def forgot_password(self, email: Optional[str], ip: Optional[str]) -> str:
        """Start a link-based reset. Always returns the same message."""
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required.")

        try:
            self._send_reset_link(email, hash_ip(ip))
        except Exception as exc:
            logger.error(f"Forgot password flow failed: {exc}", exc_info=True)

        return FORGOT_PASSWORD_MESSAGE

    def _send_reset_link(self, email: str, ip_hash: str) -> None:
        tokens = db.password_reset_tokens
        ip_count = self._recent_requests(Q.requested_ip_hash == ip_hash)
        if ip_count > MAX_REQUESTS_PER_IP:
            logger.warning("Password reset rate limit hit for requester IP")
            return

        member = db.members.get(Q.email == email)
        if member is None:
            return

        member_count = self._recent_requests(Q.member == member["id"])
        if member_count > MAX_REQUESTS_PER_MEMBER:
            logger.warning(f"Password reset rate limit hit for member {member['id']}")
            return

        self._invalidate_reset_tokens(member["id"])
        token, token_hash = create_reset_token()
        tokens.insert(db.new_document(
            member=member["id"],
            token_hash=token_hash,
            expires_at=(utcnow() + RESET_TOKEN_TTL).isoformat(),
            used_at=None,
            requested_ip_hash=ip_hash,
        ))

        result = email_service.send_password_reset_email(
            member["email"], member.get("name"), build_password_reset_url(token)
        )
        if not result.get("sent") and not result.get("logged"):
            logger.warning(f"Password reset email not sent to member {member['id']}: {result.get('error')}")

    def issue_reset_code(self, member_id: Optional[str]) -> Tuple[dict, str, str]:
        """Admin-issued reset code. Returns (member, code, expires_at)."""
        member_id = str(member_id or "").strip()
        if not member_id:
            raise ValidationError("memberId is required.")
        member = self.get_member(member_id)
        if member is None:
            raise NotFound("Member not found.")

        self._invalidate_reset_tokens(member_id, only_unexpired=True)
        code, token_hash = create_reset_code()
        expires_at = (utcnow() + RESET_TOKEN_TTL).isoformat()
        db.password_reset_tokens.insert(db.new_document(
            member=member_id,
            token_hash=token_hash,
            expires_at=expires_at,
            used_at=None,
            requested_ip_hash=None,
        ))
        logger.info(f"Password reset code issued for member {member_id}")
        return member, code, expires_at

    def reset_password(self, token: Optional[str], password: Optional[str]) -> None:
        candidates = reset_token_hashes(token)
        password = str(password or "")
        if not candidates or not password:
            raise ValidationError("Token and password are required.")
        _check_password_length(password)

        record = None
        for token_hash in candidates:
            record = db.find_one_and_update(
                db.password_reset_tokens,
                (Q.token_hash == token_hash) & (Q.used_at == None) & Q.expires_at.test(_is_future),  # noqa: E711
                {"used_at": db.timestamp()},
            )
            if record is not None:
                break
        if record is None:
            logger.warning("Password reset rejected: invalid or expired token")
            raise ValidationError("Invalid or expired reset token.")

        updated = db.update_by_id(db.members, record["member"], {
            "password_hash": hash_password(password),
            "password_changed_at": db.timestamp(),
        })
        if updated is None:
            raise NotFound("Account not found.")

        self._invalidate_reset_tokens(record["member"])
        logger.info(f"Password reset completed for member {record['member']}")

    # =========================================================================
    # Emergency recovery
    # =========================================================================

    def emergency_recover(self, email: Optional[str], password: Optional[str], recovery_code: Optional[str]) -> None:
        """Reset an admin password with the operator's OWNER_RECOVERY_CODE.

        Each configured code works once; rotating the code re-arms recovery.
        """
        configured = normalize_code(settings.owner_recovery_code)
        if not configured:
            raise ServiceUnavailable("Emergency recovery is not configured.")

        email = normalize_email(email)
        password = str(password or "")
        submitted = normalize_code(recovery_code)
        if not email or not password or not submitted:
            raise ValidationError("Email, password, and recovery code are required.")
        _check_password_length(password)

        configured_hash = hash_code(configured)
        if not constant_time_equals(hash_code(submitted), configured_hash):
            logger.warning("Emergency recovery rejected: invalid recovery code")
            raise Forbidden("Invalid recovery code.")

        used_message = "This emergency recovery code has already been used. Rotate OWNER_RECOVERY_CODE."
        if db.emergency_recovery_uses.contains(Q.code_hash == configured_hash):
            raise Forbidden(used_message)

        member = db.members.get(Q.email == email)
        if member is None or not member.get("is_admin"):
            raise NotFound("Admin account not found for this email.")

        use = db.new_document(code_hash=configured_hash, used_at=db.timestamp(), used_by=member["id"])
        if not db.insert_unique(db.emergency_recovery_uses, "code_hash", use):
            raise Forbidden(used_message)

        db.update_by_id(db.members, member["id"], {
            "password_hash": hash_password(password),
            "password_changed_at": db.timestamp(),
        })
        self._invalidate_reset_tokens(member["id"])
        logger.warning(f"Emergency recovery used for admin {member['id']}")


account_service = AccountService()
