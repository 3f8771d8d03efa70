import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()
os.environ.setdefault("TRACING_ENABLED", "false")

from points_ledger.app import create_app  # noqa: E402
from points_ledger.db.base import Base  # noqa: E402
from points_ledger.db.session import get_session  # noqa: E402
from points_ledger.models import Account, AccountRoleEnum  # noqa: E402
from points_ledger.observability.ledger import get_ledger_store  # noqa: E402


@pytest.fixture(autouse=True)
def reset_ledger_store():
    get_ledger_store().reset()
    yield
    get_ledger_store().reset()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Session factory over an on-disk database so concurrent sessions use separate connections."""

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def accounts(session_factory):
    """Seed one account per role plus a second verified member."""

    async with session_factory() as session:
        seeded = {
            "alice": Account(utorid="alice001", name="Alice", role=AccountRoleEnum.REGULAR.value, verified=True),
            "bob": Account(utorid="bob00002", name="Bob", role=AccountRoleEnum.REGULAR.value, verified=True),
            "carol": Account(utorid="carol003", name="Carol", role=AccountRoleEnum.REGULAR.value, verified=False),
            "cashier": Account(utorid="cash0004", name="Cashier", role=AccountRoleEnum.CASHIER.value, verified=True),
            "shady": Account(
                utorid="shady005",
                name="Flagged Cashier",
                role=AccountRoleEnum.CASHIER.value,
                verified=True,
                suspicious=True,
            ),
            "manager": Account(utorid="mgr00006", name="Manager", role=AccountRoleEnum.MANAGER.value, verified=True),
        }
        session.add_all(seeded.values())
        await session.commit()
        return {key: account.id for key, account in seeded.items()}


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()
