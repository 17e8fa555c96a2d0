"""
Shared pytest fixtures for the portal test suite.

Provides:
    - client: TestClient against the app (lifespan not started)
    - factory: helpers that seed companies, accounts and records and issue JWTs
    - portal: a seeded battalion (ALPHA/BRAVO companies, one account per role)
"""
import os
import tempfile
from datetime import datetime, timedelta
from types import SimpleNamespace

# Environment must be in place before config is imported
_TMP_DIR = tempfile.mkdtemp(prefix="portal-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/portal.db"
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["RATE_LIMIT_PER_HOUR"] = "100000"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ["UPLOADS_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["USE_S3"] = "false"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

import config
from database.connection import Database
from database.models import (
    Base, Account, AccountRole, AccountStatus, Company, Document, DocumentStatus,
    Notification, NotificationType, ReservistDetail, RidsForm, RidsStatus, StaffDetail,
    TrainingRegistration, TrainingSession, TrainingStatus
)
from services.auth_service import AuthService

config.db = Database(config.DATABASE_URL)

from app import app  # noqa: E402

PASSWORD = "Passw0rd!"


class PortalFactory:
    """Seeds rows straight through the ORM and returns primary keys."""

    def __init__(self, database: Database):
        self.database = database
        self._serial = 0

    def _next(self) -> int:
        self._serial += 1
        return self._serial

    def company(self, code: str, name: str = None, is_active: bool = True) -> str:
        with self.database.get_session() as db:
            db.add(Company(code=code, name=name or f"{code.title()} Company", is_active=is_active))
        return code

    def account(self, email: str, role: AccountRole, status: AccountStatus = AccountStatus.ACTIVE,
                first_name: str = "Test", last_name: str = None) -> int:
        with self.database.get_session() as db:
            account = AuthService.create_account(
                db, email, PASSWORD, role, first_name, last_name or role.value.title(),
                status=status, commit=False
            )
            db.flush()
            return account.id

    def reservist(self, email: str, company: str = "ALPHA", status: AccountStatus = AccountStatus.ACTIVE,
                  rank: str = "Private", first_name: str = "Juan", last_name: str = "Cruz") -> int:
        with self.database.get_session() as db:
            account = AuthService.create_account(
                db, email, PASSWORD, AccountRole.RESERVIST, first_name, last_name,
                status=status, commit=False
            )
            account.reservist_details = ReservistDetail(
                service_number=f"SN-{self._next():05d}",
                company=company,
                rank=rank,
            )
            db.flush()
            return account.id

    def staff(self, email: str, companies=("ALPHA",), status: AccountStatus = AccountStatus.ACTIVE) -> int:
        with self.database.get_session() as db:
            account = AuthService.create_account(
                db, email, PASSWORD, AccountRole.STAFF, "Maria", "Santos", status=status, commit=False
            )
            account.staff_details = StaffDetail(position="Clerk")
            AuthService.set_staff_companies(db, account.staff_details, companies)
            db.flush()
            return account.id

    def token(self, account_id: int) -> str:
        with self.database.get_session() as db:
            account = db.query(Account).filter(Account.id == account_id).one()
            return AuthService.create_tokens(account)[0]

    def headers(self, account_id: int) -> dict:
        return {"Authorization": f"Bearer {self.token(account_id)}"}

    def rids(self, reservist_id: int, status: RidsStatus = RidsStatus.DRAFT) -> int:
        with self.database.get_session() as db:
            rids = RidsForm(reservist_id=reservist_id, status=status, present_occupation="Engineer")
            db.add(rids)
            db.flush()
            return rids.id

    def document(self, reservist_id: int, document_type: str = "Birth Certificate",
                 status: DocumentStatus = DocumentStatus.PENDING) -> int:
        with self.database.get_session() as db:
            document = Document(
                reservist_id=reservist_id,
                document_type=document_type,
                file_url=f"/uploads/documents/{reservist_id}/file.pdf",
                file_name="file.pdf",
                mime_type="application/pdf",
                status=status,
            )
            db.add(document)
            db.flush()
            return document.id

    def training(self, company: str = "ALPHA", title: str = "Basic Marksmanship",
                 status: TrainingStatus = TrainingStatus.SCHEDULED, capacity: int = None) -> int:
        with self.database.get_session() as db:
            session = TrainingSession(
                title=title,
                company=company,
                scheduled_date=datetime.utcnow() + timedelta(days=7),
                capacity=capacity,
                status=status,
            )
            db.add(session)
            db.flush()
            return session.id

    def register(self, session_id: int, reservist_id: int) -> int:
        with self.database.get_session() as db:
            registration = TrainingRegistration(training_session_id=session_id, reservist_id=reservist_id)
            db.add(registration)
            db.flush()
            return registration.id

    def notification(self, user_id: int, title: str = "Hello", is_read: bool = False,
                     notification_type: NotificationType = NotificationType.SYSTEM) -> int:
        with self.database.get_session() as db:
            notification = Notification(user_id=user_id, title=title, message=f"{title} message",
                                        type=notification_type, is_read=is_read)
            db.add(notification)
            db.flush()
            return notification.id


@pytest.fixture(autouse=True)
def fresh_database():
    """Per-test: recreate every table, then drop dependency overrides."""
    Base.metadata.drop_all(bind=config.db.engine)
    Base.metadata.create_all(bind=config.db.engine)
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def factory():
    return PortalFactory(config.db)


@pytest.fixture()
def portal(factory):
    """Two companies, a staff member assigned to ALPHA only, and one account per role."""
    factory.company("ALPHA")
    factory.company("BRAVO")
    ns = SimpleNamespace(
        super_admin=factory.account("super@example.com", AccountRole.SUPER_ADMIN),
        admin=factory.account("admin@example.com", AccountRole.ADMIN),
        staff=factory.staff("staff.alpha@example.com", companies=("ALPHA",)),
        reservist=factory.reservist("alpha.one@example.com", company="ALPHA"),
        bravo_reservist=factory.reservist("bravo.one@example.com", company="BRAVO",
                                          first_name="Pedro", last_name="Reyes"),
    )
    ns.headers = factory.headers
    return ns


@pytest.fixture()
def db_session():
    """A session for asserting on persisted state."""
    with config.db.get_session() as session:
        yield session
