# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import copy
import threading
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from rental_core.config import AppSettings
from rental_core.offline.local_store import LocalStore


USER_ID = "user-123"
USER_EMAIL = "owner@example.com"


# =============================================================================
# FAKE SUPABASE
# =============================================================================

class FakeQuery:
    """Chainable stand-in for a postgrest request builder."""

    def __init__(self, backend: "FakeSupabase", table: str):
        self.backend = backend
        self.table = table
        self.action = "select"
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.bounds: Optional[tuple] = None

    def select(self, *columns):
        self.action = "select"
        return self

    def insert(self, record):
        self.action, self.payload = "insert", record
        return self

    def update(self, fields):
        self.action, self.payload = "update", fields
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def range(self, start, end):
        self.bounds = (start, end)
        return self

    def execute(self):
        return self.backend._execute(self)


class FakeAuth:
    """Minimal Supabase Auth: password accounts, one active session."""

    def __init__(self, confirm_email: bool = False):
        self.accounts: Dict[str, Dict[str, str]] = {}
        self.session = None
        self.confirm_email = confirm_email
        self.listeners: List[Any] = []
        self.fail_sign_out = False
        self.sign_up_calls: List[dict] = []

    def _user(self, email: str):
        return SimpleNamespace(id=self.accounts[email]["id"], email=email)

    def _emit(self, event: str):
        for listener in list(self.listeners):
            listener(event, self.session)

    def add_account(self, email: str, password: str, user_id: str):
        self.accounts[email] = {"password": password, "id": user_id}

    def start_session(self, email: str):
        self.session = SimpleNamespace(user=self._user(email), access_token="token")

    def get_session(self):
        return self.session

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        return SimpleNamespace(unsubscribe=lambda: self.listeners.remove(callback))

    def sign_up(self, credentials):
        self.sign_up_calls.append(credentials)
        email, password = credentials["email"], credentials["password"]
        if email in self.accounts:
            raise Exception("User already registered")
        if len(password) < 6:
            raise Exception("Password should be at least 6 characters")
        self.add_account(email, password, f"user-{len(self.accounts) + 1}")
        if self.confirm_email:
            return SimpleNamespace(user=self._user(email), session=None)
        self.start_session(email)
        self._emit("SIGNED_IN")
        return SimpleNamespace(user=self._user(email), session=self.session)

    def sign_in_with_password(self, credentials):
        account = self.accounts.get(credentials["email"])
        if account is None or account["password"] != credentials["password"]:
            raise Exception("Invalid login credentials")
        self.start_session(credentials["email"])
        self._emit("SIGNED_IN")
        return SimpleNamespace(user=self.session.user, session=self.session)

    def sign_out(self):
        if self.fail_sign_out:
            raise Exception("Network request failed")
        self.session = None
        self._emit("SIGNED_OUT")


class FakeSupabase:
    """
    In-memory Supabase client.

    fail: every request raises
    fail_tables: requests on these tables raise
    gate: when set to an Event, write requests block until it is set
    """

    def __init__(self):
        self.rows: Dict[str, List[Dict[str, Any]]] = {}
        self.auth = FakeAuth()
        self.fail = False
        self.fail_tables: set = set()
        self.gate: Optional[threading.Event] = None
        self.entered = threading.Event()
        self.requests: List[tuple] = []
        self._lock = threading.Lock()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def _matches(self, row, filters) -> bool:
        return all(row.get(column) == value for column, value in filters)

    def _execute(self, query: FakeQuery):
        self.requests.append((query.action, query.table))
        if self.fail or query.table in self.fail_tables:
            raise Exception("connection refused")

        if query.action != "select" and self.gate is not None:
            self.entered.set()
            if not self.gate.wait(timeout=5):
                raise Exception("gate timed out")

        with self._lock:
            table = self.rows.setdefault(query.table, [])

            if query.action == "select":
                data = [copy.deepcopy(r) for r in table if self._matches(r, query.filters)]
                if query.bounds is not None:
                    data = data[query.bounds[0]:query.bounds[1] + 1]
            elif query.action == "insert":
                row = copy.deepcopy(query.payload)
                table.append(row)
                data = [copy.deepcopy(row)]
            elif query.action == "update":
                data = []
                for row in table:
                    if self._matches(row, query.filters):
                        row.update(copy.deepcopy(query.payload))
                        data.append(copy.deepcopy(row))
            else:
                data = [r for r in table if self._matches(r, query.filters)]
                self.rows[query.table] = [r for r in table if not self._matches(r, query.filters)]

        return SimpleNamespace(data=data)


# =============================================================================
# HELPERS
# =============================================================================

def store_raw_snapshot(store: LocalStore, key: str, value: str) -> None:
    """Write an arbitrary string under a snapshot key (simulates on-disk corruption)"""
    with store.transaction() as conn:
        conn.execute("INSERT OR REPLACE INTO snapshots (key, value) VALUES (?, ?)", [key, value])


# =============================================================================
# CORE FIXTURES
# =============================================================================

@pytest.fixture
def fake_supabase():
    """In-memory Supabase client with one registered account"""
    client = FakeSupabase()
    client.auth.add_account(USER_EMAIL, "secret-pass", USER_ID)
    return client


@pytest.fixture
def signed_in_supabase(fake_supabase):
    """Fake Supabase client with an active session for USER_ID"""
    fake_supabase.auth.start_session(USER_EMAIL)
    return fake_supabase


@pytest.fixture
def local_store(tmp_path):
    """Initialized SQLite local store in a temp directory"""
    store = LocalStore(tmp_path / "rental_manager.db")
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def settings(tmp_path):
    """Settings pointing the local store at a temp directory"""
    return AppSettings(
        supabase_url="https://example.supabase.co",
        supabase_key="anon-key",
        email_redirect_to="https://rentals.example.com",
        remote_timeout_seconds=2.0,
        local_db_path=tmp_path / "rental_manager.db",
    )


@pytest.fixture
def local_service(settings, local_store):
    """Started data service with no Supabase client (local-only mode)"""
    from rental_core.offline.unified_data_service import RentalDataService

    service = RentalDataService(settings, client=None, store=local_store)
    service.start()
    yield service
    service.teardown()


@pytest.fixture
def remote_service(settings, local_store, signed_in_supabase):
    """Started data service signed in against the fake Supabase client"""
    from rental_core.offline.unified_data_service import RentalDataService

    service = RentalDataService(settings, client=signed_in_supabase, store=local_store)
    service.start()
    yield service
    service.teardown()


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def sample_property():
    """A valid property"""
    from rental_core.models import Property

    return Property(
        name="Sunset Flat",
        location="Downtown",
        city="Cairo",
        address="12 Nile St",
        type="apartment",
        bedrooms=2,
        bathrooms=1.5,
        rent=1200,
        currency="USD",
        description="Top floor",
    )


@pytest.fixture
def sample_tenant():
    """A valid tenant with a 2024 lease"""
    from rental_core.models import Tenant

    return Tenant(
        full_name="Ana Ruiz",
        email="ana@example.com",
        phone="+20 100 000 0000",
        lease_start="2024-03-10",
        lease_end="2024-12-31",
        door_code="4521",
    )


@pytest.fixture
def sample_checklist():
    """A checklist with three open tasks"""
    from rental_core.models import Checklist, Task

    return Checklist(
        name="Move-in",
        tasks=[Task(text="Check keys"), Task(text="Meter photo"), Task(text="Wifi")],
    )


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit for modules that talk to st directly"""
    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.secrets = {}

    import rental_core.config.settings as settings_module
    import rental_core.errors.handlers as handlers_module
    import rental_core.state.session as session_module

    for module in (settings_module, handlers_module, session_module):
        monkeypatch.setattr(module, "st", mock_st)

    yield mock_st


@pytest.fixture
def mock_supabase():
    """MagicMock Supabase client (for asserting request shapes)"""
    mock_client = MagicMock()
    mock_client.table.return_value.select.return_value.eq.return_value.range.return_value.execute.return_value.data = []
    return mock_client
