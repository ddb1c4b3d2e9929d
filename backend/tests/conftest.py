# tests/conftest.py
from datetime import datetime, timedelta
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from pathlib import Path
import shutil
import tempfile
import os
from uuid import uuid4

from noticeboard.main import app
from noticeboard.database import Base, get_db
from noticeboard.models import User, UserRole, Document, DocumentCategory, Notice, NoticeAttachment, NoticeCategory
from noticeboard.config import settings
from noticeboard.services.visibility import Actor

# Create test database
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture(scope="session")
def engine():
    """Create test database engine"""
    engine = create_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool  # Needed for SQLite in-memory database
    )

    # Let SQLAlchemy drive BEGIN so SAVEPOINTs work with pysqlite
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="session")
def tables(engine):
    """Create all tables in the test database"""
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db_session(engine, tables):
    """Creates a new database session for a test"""
    connection = engine.connect()
    transaction = connection.begin()
    session = sessionmaker(bind=connection, join_transaction_mode="create_savepoint")()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="session")
def temp_storage_dir():
    """Create temporary storage directory for test files"""
    temp_dir = tempfile.mkdtemp()
    for subdir in ["documents", "notices"]:
        Path(temp_dir, "uploads", subdir).mkdir(parents=True, exist_ok=True)
    yield Path(temp_dir)
    shutil.rmtree(temp_dir)


@pytest.fixture(scope="session")
def uploads_dir(temp_storage_dir):
    """Root that stored-file locators are relative to"""
    return temp_storage_dir / "uploads"


@pytest.fixture(autouse=True)
def override_settings(temp_storage_dir, uploads_dir):
    """Override settings for testing"""
    original_storage = settings.STORAGE_PATH
    original_uploads = settings.UPLOADS_PATH
    original_email = settings.EMAIL_ENABLED

    settings.STORAGE_PATH = temp_storage_dir
    settings.UPLOADS_PATH = uploads_dir
    settings.EMAIL_ENABLED = False

    yield

    settings.STORAGE_PATH = original_storage
    settings.UPLOADS_PATH = original_uploads
    settings.EMAIL_ENABLED = original_email


@pytest.fixture
def client(db_session):
    """Test client using the test database"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth(user):
    """Headers carrying the identity resolved by the upstream auth layer"""
    return {"X-User-Id": str(user.id)}


def actor_for(user):
    return Actor.from_user(user)


def _make_user(db_session, name, role, department=None, **kwargs):
    user = User(
        name=name,
        email=f"{name.lower().replace(' ', '.')}-{uuid4().hex[:6]}@example.edu",
        role=role,
        department=department,
        **kwargs
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin(db_session):
    return _make_user(db_session, "Ada Admin", UserRole.ADMIN)


@pytest.fixture
def faculty_cs(db_session):
    return _make_user(db_session, "Carl Faculty", UserRole.FACULTY, "CS")


@pytest.fixture
def faculty_ee(db_session):
    return _make_user(db_session, "Erin Faculty", UserRole.FACULTY, "EE")


@pytest.fixture
def student_cs(db_session):
    return _make_user(db_session, "Sam Student", UserRole.STUDENT, "CS", student_id="CS-001")


@pytest.fixture
def student_ee(db_session):
    return _make_user(db_session, "Eve Student", UserRole.STUDENT, "EE", student_id="EE-001")


def write_stored_file(uploads_dir, directory, content=b"file content", suffix=".pdf"):
    """Place a file under the uploads root and return its locator"""
    locator = f"{directory}/{uuid4()}{suffix}"
    (uploads_dir / locator).write_bytes(content)
    return locator


@pytest.fixture
def make_document(db_session, uploads_dir):
    """Factory for stored documents with a real file behind them"""
    def _make(owner, title="Course Handbook", created_at=None, content=b"document bytes", **kwargs):
        defaults = {
            "description": "Reference material",
            "category": DocumentCategory.ACADEMIC,
            "access_level": ["student"],
            "department": None,
            "tags": [],
        }
        defaults.update(kwargs)
        document = Document(
            owner_id=owner.id,
            title=title,
            file_locator=write_stored_file(uploads_dir, "documents", content),
            original_name=f"{title.lower().replace(' ', '_')}.pdf",
            mime_type="application/pdf",
            size=len(content),
            created_at=created_at or BASE_TIME,
            **defaults
        )
        db_session.add(document)
        db_session.commit()
        db_session.refresh(document)
        return document
    return _make


@pytest.fixture
def make_notice(db_session, uploads_dir):
    """Factory for notices with an optional number of stored attachments"""
    def _make(owner, title="Exam Schedule", attachments=0, created_at=None, **kwargs):
        defaults = {
            "content": "Details inside",
            "category": NoticeCategory.GENERAL,
            "target_audience": ["all"],
            "department": owner.department,
        }
        defaults.update(kwargs)
        notice = Notice(
            owner_id=owner.id,
            title=title,
            created_at=created_at or BASE_TIME,
            **defaults
        )
        for index in range(attachments):
            content = f"attachment {index}".encode()
            notice.attachments.append(NoticeAttachment(
                filename=f"file{index}.pdf",
                file_locator=write_stored_file(uploads_dir, "notices", content),
                mime_type="application/pdf",
                size=len(content)
            ))
        db_session.add(notice)
        db_session.commit()
        db_session.refresh(notice)
        return notice
    return _make


@pytest.fixture
def past():
    return datetime.utcnow() - timedelta(days=1)


@pytest.fixture
def future():
    return datetime.utcnow() + timedelta(days=7)


@pytest.fixture(scope="session", autouse=True)
def cleanup_test_files():
    """Clean up test files after all tests are done"""
    yield
    test_files = [
        "test.db",
        "noticeboard.db",
        "test-noticeboard.db"
    ]
    for file in test_files:
        if os.path.exists(file):
            os.remove(file)
