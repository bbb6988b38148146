import os

# Keep the application engine off Postgres while tests import the app
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

import library_app.models  # noqa: F401  registers every table on Base
from library_app.core.database import Base, get_db
from library_app.main import app
from library_app.models.user import UserRole
from library_app.services.email_service import EmailService
from tests.factories import make_book, make_user


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
        class_=AsyncSession
    )


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outgoing mail instead of calling Resend."""
    sent = []

    async def fake_send_email(self, to, subject, html_content):
        sent.append({"to": to, "subject": subject, "html": html_content})
        return True

    monkeypatch.setattr(EmailService, "send_email", fake_send_email)
    return sent


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def manager(db):
    return await make_user(db, UserRole.MANAGER)


@pytest_asyncio.fixture
async def faculty(db):
    return await make_user(db, UserRole.FACULTY)


@pytest_asyncio.fixture
async def student(db, faculty):
    return await make_user(db, UserRole.STUDENT, assigned_faculty_id=faculty.id)


@pytest_asyncio.fixture
async def book(db):
    return await make_book(db)
