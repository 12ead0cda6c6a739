# tests/conftest.py
import os
import tempfile

# Must be set before anything imports app.core.config / app.db.session.
_TMP_DIR = tempfile.mkdtemp(prefix="meeting-session-tests-")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DB_URL", f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}")

from typing import Any, Callable, Dict, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from app.core.config import get_settings  # noqa: E402
from app.db.session import _build_sync_db_url, reset_schema_sync  # noqa: E402
from app.main import create_app  # noqa: E402
from app.models.company import Company  # noqa: E402
from app.models.user import User  # noqa: E402

ALL_PERMISSIONS: Dict[str, bool] = {
    "canView": True,
    "canEdit": True,
    "canManageAgenda": True,
    "canManageParticipants": True,
    "canCreateMeetings": True,
    "canManageUsers": True,
    "canVote": True,
    "canSeeVoteResults": True,
}

_sync_engine = create_engine(_build_sync_db_url(get_settings().DB_URL), future=True)


@pytest.fixture(scope="session")
def client() -> TestClient:
    """
    Shared TestClient fixture for all tests.

    Uses the application factory so configuration stays test-friendly.
    """
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def _reset_db():
    """
    Give every test a clean schema with empty tables.
    """
    reset_schema_sync()
    yield


@pytest.fixture
def make_company() -> Callable[..., int]:
    def _make(name: str = "Acme", siret: Optional[str] = None) -> int:
        with Session(_sync_engine) as session:
            company = Company(name=name, siret=siret)
            session.add(company)
            session.commit()
            return company.id

    return _make


@pytest.fixture
def make_user() -> Callable[..., int]:
    counter = {"n": 0}

    def _make(
        first_name: str = "Alex",
        last_name: str = "Martin",
        company_id: Optional[int] = None,
        permissions: Optional[Dict[str, Any]] = None,
        email: Optional[str] = None,
    ) -> int:
        counter["n"] += 1
        with Session(_sync_engine) as session:
            user = User(
                email=email or f"{first_name.lower()}.{last_name.lower()}.{counter['n']}@example.org",
                first_name=first_name,
                last_name=last_name,
                company_id=company_id,
                permissions=ALL_PERMISSIONS if permissions is None else permissions,
            )
            session.add(user)
            session.commit()
            return user.id

    return _make

