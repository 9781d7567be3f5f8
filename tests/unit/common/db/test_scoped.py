import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.core.clock import utcnow
from common.db.base import Base
from common.db.context import get_current_session, in_transaction
from common.db.scoped import get_session, transaction
from packages.billing.models.database import ClientEntity

# Separate engine so commits are real and visible to a fresh session
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def scoped_test_engine():
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def scoped_session_factory(scoped_test_engine):
    return async_sessionmaker(
        scoped_test_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest_asyncio.fixture(scope="function")
async def patch_session_factories(scoped_session_factory, monkeypatch):
    """Point transaction()/get_session() at the committing test engine."""
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", scoped_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", scoped_session_factory
    )
    yield


def _client(client_id: str) -> ClientEntity:
    return ClientEntity(id=client_id, created_at=utcnow())


async def _stored_ids(session_factory, prefix: str) -> list:
    async with session_factory() as session:
        result = await session.execute(
            text("SELECT id FROM billing_clients WHERE id LIKE :p ORDER BY id"),
            {"p": f"{prefix}%"},
        )
        return [row[0] for row in result.fetchall()]


@pytest.mark.usefixtures("patch_session_factories")
class TestTransaction:
    async def test_commits_on_success(self, scoped_session_factory):
        async with transaction() as session:
            session.add(_client("tx-commit"))

        assert await _stored_ids(scoped_session_factory, "tx-commit") == ["tx-commit"]

    async def test_rolls_back_and_reraises(self, scoped_session_factory):
        with pytest.raises(ValueError):
            async with transaction() as session:
                session.add(_client("tx-rollback"))
                await session.flush()
                raise ValueError("gateway refused")

        assert await _stored_ids(scoped_session_factory, "tx-rollback") == []

    async def test_binds_session_only_inside_block(self):
        async with transaction() as session:
            assert get_current_session() is session
            assert in_transaction() is True

        assert get_current_session() is None

    async def test_nested_transaction_reuses_outer_session(self):
        async with transaction() as outer:
            async with transaction() as inner:
                async with get_session() as op:
                    assert inner is outer
                    assert op is outer

    async def test_failure_in_nested_block_discards_whole_unit(
        self, scoped_session_factory
    ):
        with pytest.raises(RuntimeError):
            async with transaction() as outer:
                outer.add(_client("unit-payment"))
                await outer.flush()
                async with transaction() as inner:
                    inner.add(_client("unit-resume"))
                    await inner.flush()
                    raise RuntimeError("resume failed")

        assert await _stored_ids(scoped_session_factory, "unit-") == []

    async def test_concurrent_transactions_commit_independently(
        self, scoped_session_factory
    ):
        async def register(client_id: str, fail: bool):
            try:
                async with transaction() as session:
                    session.add(_client(client_id))
                    await asyncio.sleep(0.005)
                    if fail:
                        raise ValueError("rejected")
            except ValueError:
                pass

        await asyncio.gather(
            register("conc-1", False),
            register("conc-2", True),
            register("conc-3", False),
        )

        assert await _stored_ids(scoped_session_factory, "conc-") == ["conc-1", "conc-3"]


@pytest.mark.usefixtures("patch_session_factories")
class TestGetSession:
    async def test_standalone_operation_commits(self, scoped_session_factory):
        async with get_session() as session:
            session.add(_client("op-commit"))

        assert await _stored_ids(scoped_session_factory, "op-commit") == ["op-commit"]

    async def test_standalone_operation_rolls_back(self, scoped_session_factory):
        with pytest.raises(ValueError):
            async with get_session() as session:
                session.add(_client("op-rollback"))
                await session.flush()
                raise ValueError("bad row")

        assert await _stored_ids(scoped_session_factory, "op-rollback") == []

    async def test_operations_inside_transaction_commit_together(
        self, scoped_session_factory
    ):
        async with transaction():
            for n in range(3):
                async with get_session() as session:
                    session.add(_client(f"multi-{n}"))

        assert await _stored_ids(scoped_session_factory, "multi-") == [
            "multi-0",
            "multi-1",
            "multi-2",
        ]

    async def test_readonly_session_does_not_commit(self, scoped_session_factory):
        async with get_session(readonly=True) as session:
            session.add(_client("ro-discarded"))
            await session.flush()

        assert await _stored_ids(scoped_session_factory, "ro-discarded") == []
