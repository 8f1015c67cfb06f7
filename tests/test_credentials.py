"""Credential Primitive Tests

One-time codes, reset tokens and password hashing.
"""

import re

from podcast_club.services.credentials import (
    CODE_ALPHABET,
    constant_time_equals,
    create_claim_code,
    create_join_code,
    create_reset_code,
    create_reset_token,
    generate_code,
    hash_code,
    hash_password,
    hash_value,
    normalize_code,
    reset_token_hashes,
    verify_password,
)
from podcast_club.services.database import utcnow


class TestCodeGeneration:
    """Human-typed one-time codes"""

    def test_default_code_is_two_groups_of_five(self):
        code = generate_code()
        assert re.fullmatch(r"[A-Z0-9]{5}-[A-Z0-9]{5}", code)

    def test_code_avoids_confusable_characters(self):
        for _ in range(50):
            chars = generate_code().replace("-", "")
            assert all(char in CODE_ALPHABET for char in chars)
            assert not set(chars) & {"0", "O", "1", "I"}

    def test_reset_code_is_three_groups_of_four(self):
        code, code_hash = create_reset_code()
        assert re.fullmatch(r"[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}", code)
        assert code_hash == hash_value(normalize_code(code))

    def test_codes_are_not_repeated(self):
        codes = {generate_code() for _ in range(200)}
        assert len(codes) == 200

    def test_claim_code_expires_in_seven_days(self):
        code, code_hash, expires_at = create_claim_code()
        remaining = expires_at - utcnow()
        assert 6.99 < remaining.total_seconds() / 86400 <= 7
        assert code_hash == hash_code(code)

    def test_join_code_hash_ignores_formatting(self):
        code, code_hash = create_join_code()
        assert hash_code(code.lower().replace("-", " ")) == code_hash


class TestNormalization:
    """Codes typed back in any casing or grouping still match"""

    def test_normalize_strips_dashes_and_spaces(self):
        assert normalize_code(" abcde-fghjk ") == "ABCDEFGHJK"

    def test_normalize_empty(self):
        assert normalize_code(None) == ""
        assert normalize_code("  - ") == ""

    def test_constant_time_equals(self):
        assert constant_time_equals("abc", "abc")
        assert not constant_time_equals("abc", "abd")
        assert not constant_time_equals("abc", "abcd")


class TestResetTokens:
    """Opaque link tokens and their lookup hashes"""

    def test_token_is_base64url_of_32_bytes(self):
        token, token_hash = create_reset_token()
        assert re.fullmatch(r"[A-Za-z0-9_-]{43}", token)
        assert token_hash == hash_value(token)

    def test_candidates_try_raw_then_normalized(self):
        candidates = reset_token_hashes(" abcd-efgh-jkmn ")
        assert candidates == [hash_value("abcd-efgh-jkmn"), hash_value("ABCDEFGHJKMN")]

    def test_candidates_deduplicated(self):
        assert reset_token_hashes("ABCD") == [hash_value("ABCD")]

    def test_blank_token_has_no_candidates(self):
        assert reset_token_hashes("   ") == []


class TestPasswords:
    """bcrypt hashing"""

    def test_hash_and_verify(self):
        password_hash = hash_password("a-long-password")
        assert password_hash != "a-long-password"
        assert verify_password("a-long-password", password_hash)
        assert not verify_password("wrong-password", password_hash)

    def test_verify_without_hash(self):
        assert not verify_password("anything", None)

    def test_verify_with_garbage_hash(self):
        assert not verify_password("anything", "not-a-bcrypt-hash")
