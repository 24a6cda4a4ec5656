"""
Repository tests against a real PostgreSQL database.

Run with RUN_DB_TESTS=1 against a database migrated with `alembic upgrade head`.
"""

import asyncio
import uuid

import pytest
import pytest_asyncio

from canopy.billing.plans import CreditType, PlanTier, SubscriptionStatus
from canopy.db.session import async_session_maker, engine, get_async_session_context
from canopy.errors import InsufficientCreditsError
from canopy.models.subscription import Subscription
from canopy.repositories.credit_grant_repository import CreditGrantRepository
from canopy.repositories.credit_ledger_repository import CreditLedgerRepository
from canopy.services.credit_ledger_service import CreditLedgerService

pytestmark = pytest.mark.db


@pytest_asyncio.fixture(autouse=True)
async def dispose_engine():
    # Pooled connections are bound to the loop of the test that opened them
    yield
    await engine.dispose()


@pytest.mark.asyncio
async def test_increment_and_conditional_decrement():
    org_id = str(uuid.uuid4())
    async with get_async_session_context() as db:
        repo = CreditLedgerRepository(db)

        assert await repo.read_credit_balance(org_id, CreditType.JOB_LISTING) == 0
        assert await repo.increment_credits(org_id, CreditType.JOB_LISTING, 3) == 3
        assert await repo.increment_credits(org_id, CreditType.JOB_LISTING, 2) == 5
        assert await repo.conditional_decrement_credits(org_id, CreditType.JOB_LISTING, 5) == 0
        assert await repo.conditional_decrement_credits(org_id, CreditType.JOB_LISTING, 1) is None
        assert await repo.read_credit_balances(org_id) == {CreditType.JOB_LISTING: 0}


@pytest.mark.asyncio
async def test_concurrent_debits_across_sessions():
    org_id = str(uuid.uuid4())
    async with get_async_session_context() as db:
        await CreditLedgerRepository(db).increment_credits(org_id, CreditType.FEATURED_LISTING, 3)

    async def debit_once():
        async with async_session_maker() as db:
            service = CreditLedgerService(CreditLedgerRepository(db))
            try:
                await service.debit_credits(org_id, CreditType.FEATURED_LISTING, 1)
                await db.commit()
                return True
            except InsufficientCreditsError:
                await db.rollback()
                return False

    results = await asyncio.gather(*(debit_once() for _ in range(8)))

    assert results.count(True) == 3
    async with get_async_session_context() as db:
        assert await CreditLedgerRepository(db).read_credit_balance(org_id, CreditType.FEATURED_LISTING) == 0


@pytest.mark.asyncio
async def test_points_and_subscription():
    org_id = str(uuid.uuid4())
    async with get_async_session_context() as db:
        repo = CreditLedgerRepository(db)
        assert await repo.increment_points(org_id, 40) == 40
        assert await repo.conditional_decrement_points(org_id, 41) is None
        assert await repo.conditional_decrement_points(org_id, 40) == 0

        assert await repo.read_subscription(org_id) is None
        db.add(Subscription(tenant_id=uuid.UUID(org_id), plan_tier="GROWTH", status="past_due", cancel_at_period_end=True))
        await db.flush()

        record = await repo.read_subscription(org_id)
        assert record.plan_tier == PlanTier.GROWTH
        assert record.status == SubscriptionStatus.PAST_DUE
        assert record.cancel_at_period_end is True


@pytest.mark.asyncio
async def test_grant_recorded_once_per_key():
    org_id = str(uuid.uuid4())
    async with get_async_session_context() as db:
        grants = CreditGrantRepository(db)
        fields = dict(
            organization_id=org_id,
            idempotency_key="evt_db_1",
            credit_type=CreditType.JOB_LISTING,
            amount=1,
            amount_cents=500,
            points_earned=5,
        )
        assert await grants.record_grant(**fields) is True
        assert await grants.record_grant(**fields) is False

        stored = await grants.get_by_key(org_id, "evt_db_1")
        assert stored.points_earned == 5


@pytest.mark.asyncio
async def test_grants_listed_per_tenant_with_paging():
    org_id = str(uuid.uuid4())
    other_org = str(uuid.uuid4())
    async with get_async_session_context() as db:
        grants = CreditGrantRepository(db)
        for index in range(3):
            await grants.record_grant(
                organization_id=org_id,
                idempotency_key=f"evt_page_{index}",
                credit_type=CreditType.FEATURED_LISTING,
                amount=index + 1,
                amount_cents=0,
                points_earned=0,
            )
        await grants.record_grant(
            organization_id=other_org,
            idempotency_key="evt_page_0",
            credit_type=CreditType.JOB_LISTING,
            amount=1,
            amount_cents=0,
            points_earned=0,
        )

        first_page = await grants.list_for_tenant(org_id, limit=2, offset=0)
        second_page = await grants.list_for_tenant(org_id, limit=2, offset=2)

        assert await grants.count_for_tenant(org_id) == 3
        assert len(first_page) == 2
        assert len(second_page) == 1
        keys = {row.idempotency_key for row in first_page + second_page}
        assert keys == {"evt_page_0", "evt_page_1", "evt_page_2"}
