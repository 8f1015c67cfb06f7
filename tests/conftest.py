"""Shared test fixtures for Podcast Club API tests"""

import os

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SESSION_SECRET"] = "test-session-secret-for-testing-only"
os.environ["OWNER_RECOVERY_CODE"] = "OWNER-RECOVERY-2024"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["SMTP_USERNAME"] = ""

from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tests.factories import TEST_PASSWORD, create_member


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(autouse=True)
def test_db():
    """Fresh in-memory database for every test"""
    from podcast_club.services.database import db

    db.initialize(":memory:")
    yield db
    db.close()


# =============================================================================
# Test Client Fixture
# =============================================================================

@pytest_asyncio.fixture
async def test_client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client calling the app in-process"""
    from podcast_club.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# =============================================================================
# Members and sessions
# =============================================================================

def insert_member(password: Optional[str] = TEST_PASSWORD, **fields) -> dict:
    """Store a member document, hashing ``password`` when given"""
    from podcast_club.services.credentials import hash_password
    from podcast_club.services.database import db

    member = create_member(password_hash=hash_password(password) if password else None, **fields)
    db.members.insert(member)
    return member


def session_headers(member_id: str, impersonator_id: Optional[str] = None) -> dict:
    """Cookie header carrying a freshly signed session"""
    from podcast_club.auth.session import SESSION_COOKIE_NAME, create_session_token

    token = create_session_token(member_id, impersonator_id)
    return {"Cookie": f"{SESSION_COOKIE_NAME}={token}"}


@pytest.fixture
def admin_user() -> dict:
    return insert_member(name="Ada Admin", email="ada@example.com", is_admin=True)


@pytest.fixture
def member_user() -> dict:
    return insert_member(name="Ben Member", email="ben@example.com")


@pytest.fixture
def other_member() -> dict:
    return insert_member(name="Cara Other", email="cara@example.com")


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return session_headers(admin_user["id"])


@pytest.fixture
def member_headers(member_user) -> dict:
    return session_headers(member_user["id"])


@pytest.fixture
def other_headers(other_member) -> dict:
    return session_headers(other_member["id"])


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
