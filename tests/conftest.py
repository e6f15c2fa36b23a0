"""Fixtures partagées : base SQLite en mémoire, client HTTP et comptes de test."""
import os

# Configuration de test, avant tout import du package
os.environ["JWT_SECRET"] = "test-secret"
os.environ["POSTGRES_URL"] = "sqlite+aiosqlite://"
os.environ["CSRF_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LAUNCH_DATE"] = "2099-01-01T00:00:00"
os.environ["UPLOAD_DIR"] = os.path.join(os.path.dirname(__file__), ".static", "uploads")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from envie2sortir.auth.dependencies import token_blacklist
from envie2sortir.auth.models import User
from envie2sortir.auth.password import hash_password
from envie2sortir.db.session import Base, get_db
from envie2sortir.establishments.models import Establishment, STATUS_APPROVED
from envie2sortir.geo.services import clear_cache
from envie2sortir.main import app
from envie2sortir.newsletter.services import subscribe_limiter
from envie2sortir.professionals.models import Professional, SUBSCRIPTION_FREE
from tests.helpers import DEFAULT_PASSWORD


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_process_state():
    yield
    token_blacklist.clear()
    subscribe_limiter.reset()
    clear_cache()


@pytest.fixture
def make_user(db):
    async def _make_user(email="marie@example.com", role="user", password=DEFAULT_PASSWORD, **kwargs):
        user = User(
            email=email,
            hashed_password=hash_password(password) if password else None,
            first_name=kwargs.pop("first_name", "Marie"),
            last_name=kwargs.pop("last_name", "Curie"),
            role=role,
            **kwargs,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def make_professional(db):
    async def _make_professional(
        email="pro@example.com", siret="73282932000074", plan=SUBSCRIPTION_FREE, password=DEFAULT_PASSWORD
    ):
        professional = Professional(
            siret=siret,
            first_name="Paul",
            last_name="Bocuse",
            email=email,
            password_hash=hash_password(password),
            company_name="Chez Paul SARL",
            subscription_plan=plan,
        )
        db.add(professional)
        await db.commit()
        await db.refresh(professional)
        return professional
    return _make_professional


@pytest.fixture
def make_establishment(db):
    async def _make_establishment(owner, name="Le Bistrot", slug=None, status=STATUS_APPROVED, **kwargs):
        kwargs.setdefault("address", "12 rue de la Liberté, 21000 Dijon")
        kwargs.setdefault("city", "Dijon")
        kwargs.setdefault("subscription", owner.subscription_plan)
        establishment = Establishment(
            name=name,
            slug=slug or name.lower().replace(" ", "-"),
            status=status,
            owner_id=owner.id,
            **kwargs,
        )
        db.add(establishment)
        await db.commit()
        await db.refresh(establishment)
        return establishment
    return _make_establishment
