"""One-time codes, tokens and password hashing.

Every secret handed to a user is stored only as a SHA-256 hex digest.
Human-typed codes are normalized before hashing so casing and dashes do not
matter when they are entered back.
"""

import base64
import hashlib
import hmac
import re
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

import bcrypt

from podcast_club.config import settings
from podcast_club.services.database import utcnow

# No 0/O or 1/I
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

CLAIM_CODE_TTL = timedelta(days=7)
RESET_TOKEN_TTL = timedelta(minutes=30)
MIN_PASSWORD_LENGTH = 12

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72

_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9]")


def generate_code(length: int = 10, group_size: int = 5) -> str:
    """Random code from CODE_ALPHABET, grouped with dashes (XXXXX-XXXXX)"""
    raw = secrets.token_bytes(length)
    chars = "".join(CODE_ALPHABET[byte % len(CODE_ALPHABET)] for byte in raw)
    return "-".join(chars[i:i + group_size] for i in range(0, length, group_size))


def normalize_code(value) -> str:
    return _NON_ALPHANUMERIC.sub("", str(value or "").strip().upper())


def hash_value(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def hash_code(value) -> str:
    """Hash a human-typed code after normalization"""
    return hash_value(normalize_code(value))


def constant_time_equals(a: str, b: str) -> bool:
    left = a.encode()
    right = b.encode()
    if len(left) != len(right):
        return False
    return hmac.compare_digest(left, right)


def hash_ip(ip: Optional[str]) -> str:
    return hash_value(ip or "unknown")


# =============================================================================
# Code and token factories
# =============================================================================

def create_join_code() -> Tuple[str, str]:
    """Returns (code, code_hash)"""
    code = generate_code(10, 5)
    return code, hash_code(code)


def create_claim_code() -> Tuple[str, str, datetime]:
    """Returns (code, code_hash, expires_at)"""
    code = generate_code(10, 5)
    return code, hash_code(code), utcnow() + CLAIM_CODE_TTL


def create_reset_token() -> Tuple[str, str]:
    """Opaque link token: 32 random bytes, base64url without padding"""
    token = base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode()
    return token, hash_value(token)


def create_reset_code() -> Tuple[str, str]:
    """Admin-issued reset code (XXXX-XXXX-XXXX)"""
    code = generate_code(12, 4)
    return code, hash_code(code)


def reset_token_hashes(value) -> list:
    """Candidate stored hashes for a submitted reset token or code.

    Link tokens are case sensitive and hashed as-is; typed codes are hashed
    after normalization.
    """
    raw = str(value or "").strip()
    if not raw:
        return []
    candidates = [hash_value(raw)]
    normalized = normalize_code(raw)
    if normalized and hash_value(normalized) not in candidates:
        candidates.append(hash_value(normalized))
    return candidates


# =============================================================================
# Passwords
# =============================================================================

def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        return False
