# tests/conftest.py
"""
Shared fixtures.

- in-memory SQLite session with every table created
- a fake Google Sheets values API served through httpx.MockTransport
- ``repos``: the repository bundle, parametrized over both backends
- ``api``: a TestClient whose requests run against ``repos``
"""

import os

# Settings are read once at import time; configure before importing the app.
os.environ["ENVIRONMENT"] = "testing"
os.environ["STORAGE_BACKEND"] = "database"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_EMAILS"] = "admin@clinic.test"
os.environ["GOOGLE_SHEETS_SPREADSHEET_ID"] = "test-spreadsheet"
os.environ["GOOGLE_SHEETS_ACCESS_TOKEN"] = "test-token"

import json
import re
from typing import Dict, List
from urllib.parse import unquote

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from intake_desk import models  # noqa: F401  registers tables
from intake_desk.core.database import Base
from intake_desk.core.security import create_access_token
from intake_desk.repositories import database_repositories, get_repositories, sheets_repositories
from intake_desk.repositories import sheets as sheet_names
from intake_desk.repositories.sheets_client import SheetsClient
from intake_desk.schemas.client import ClientRecord
from intake_desk.utils.identifiers import new_id, utc_now


ALL_SHEETS = (
    sheet_names.CLIENTS_SHEET,
    sheet_names.CRITERIA_SHEET,
    sheet_names.TEXT_RULES_SHEET,
    sheet_names.OUTREACH_SHEET,
    sheet_names.CLINICS_SHEET,
    sheet_names.CLINICS_CONFIG_SHEET,
    sheet_names.TEMPLATES_SHEET,
    sheet_names.SETTINGS_SHEET,
    sheet_names.AUDIT_SHEET,
    sheet_names.REOPEN_HISTORY_SHEET,
)


# ============================================================================
# FAKE GOOGLE SHEETS
# ============================================================================

class FakeSheets:
    """
    In-memory spreadsheet speaking the subset of the v4 values API the
    backend uses: read a range, append, update one row, clear one row.
    """

    ROW_RANGE = re.compile(r"^A(\d+):")

    def __init__(self, tabs=ALL_SHEETS):
        self.tabs: Dict[str, List[List[str]]] = {name: [] for name in tabs}
        self.requests: List[httpx.Request] = []
        self.fail_with: int = 0

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": {"message": "Backend Error"}})

        path = request.url.raw_path.decode().split("?")[0]
        target = unquote(path.split("/values/", 1)[1])
        verb = ""
        for candidate in ("append", "clear"):
            if target.endswith(f":{candidate}"):
                target, verb = target[: -len(candidate) - 1], candidate
        sheet, a1 = target.split("!", 1)

        if sheet not in self.tabs:
            return httpx.Response(
                400,
                json={"error": {"code": 400, "message": f"Unable to parse range: {target}"}},
            )
        rows = self.tabs[sheet]

        if request.method == "GET":
            return httpx.Response(200, json={"range": target, "values": rows})
        if verb == "append":
            rows.extend(json.loads(request.content)["values"])
            return httpx.Response(200, json={"updates": {}})

        row_number = int(self.ROW_RANGE.match(a1).group(1))
        while len(rows) < row_number:
            rows.append([])
        if verb == "clear":
            rows[row_number - 1] = []
        else:
            rows[row_number - 1] = json.loads(request.content)["values"][0]
        return httpx.Response(200, json={})


@pytest.fixture
def fake_sheets():
    return FakeSheets()


@pytest.fixture
def sheets_client(fake_sheets):
    client = SheetsClient(
        spreadsheet_id="test-spreadsheet",
        access_token="test-token",
        base_url="https://sheets.test/v4/spreadsheets",
        transport=fake_sheets.transport(),
    )
    yield client
    client.close()


# ============================================================================
# DATABASE
# ============================================================================

@pytest.fixture
def db_session():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()
    engine.dispose()


# ============================================================================
# REPOSITORIES
# ============================================================================

@pytest.fixture(params=["database", "sheets"])
def repos(request):
    """The repository bundle of each backend in turn."""
    if request.param == "database":
        return database_repositories(request.getfixturevalue("db_session"))
    return sheets_repositories(request.getfixturevalue("sheets_client"))


@pytest.fixture
def db_repos(db_session):
    return database_repositories(db_session)


@pytest.fixture
def sheet_repos(sheets_client):
    return sheets_repositories(sheets_client)


def make_client(**overrides) -> ClientRecord:
    """A client record for matcher tests that never touch storage."""
    now = utc_now()
    data = {
        "id": new_id(),
        "created_at": now,
        "updated_at": now,
        "first_name": "Ana",
        "last_name": "Lopez",
        "email": "ana@example.com",
    }
    data.update(overrides)
    return ClientRecord(**data)


@pytest.fixture
def client_factory():
    return make_client


# ============================================================================
# API
# ============================================================================

def auth_headers(email: str) -> Dict[str, str]:
    token = create_access_token({"sub": email.split("@")[0], "email": email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin@clinic.test")


@pytest.fixture
def staff_headers():
    return auth_headers("staff@clinic.test")


@pytest.fixture
def api(repos):
    """TestClient bound to the parametrized backend."""
    from intake_desk.main import app

    def override_repositories():
        yield repos

    app.dependency_overrides[get_repositories] = override_repositories
    yield TestClient(app)
    app.dependency_overrides.clear()
