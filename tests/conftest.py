"""
Pytest configuration and shared fixtures.
"""

import asyncio
import os
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from canopy.billing.plans import CreditType
from canopy.errors import TransientStorageError
from canopy.repositories.ledger_store import SubscriptionRecord
from canopy.services.credit_ledger_service import CreditLedgerService
from canopy.services.pipeline_service import PipelineService
from canopy.services.purchase_service import PurchaseService


class InMemoryLedgerStore:
    """
    LedgerStore kept in dicts.

    Each operation takes the lock for its whole read-modify-write, matching
    the single-statement atomicity of the SQL implementation. `fail_next`
    makes the next N calls raise TransientStorageError before touching state.
    """

    def __init__(self):
        self.credits: Dict[Tuple[str, CreditType], int] = {}
        self.points: Dict[str, int] = {}
        self.subscriptions: Dict[str, SubscriptionRecord] = {}
        self.fail_next = 0
        self.calls: List[str] = []
        self._lock = asyncio.Lock()

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        # Yield so concurrent callers interleave between operations
        await asyncio.sleep(0)
        if self.fail_next > 0:
            self.fail_next -= 1
            raise TransientStorageError(f"simulated failure in {operation}")

    async def read_credit_balance(self, organization_id, credit_type):
        await self._enter("read_credit_balance")
        return self.credits.get((organization_id, credit_type), 0)

    async def read_credit_balances(self, organization_id):
        await self._enter("read_credit_balances")
        return {ct: bal for (org, ct), bal in self.credits.items() if org == organization_id}

    async def increment_credits(self, organization_id, credit_type, amount):
        await self._enter("increment_credits")
        async with self._lock:
            key = (organization_id, credit_type)
            self.credits[key] = self.credits.get(key, 0) + amount
            return self.credits[key]

    async def conditional_decrement_credits(self, organization_id, credit_type, amount):
        await self._enter("conditional_decrement_credits")
        async with self._lock:
            key = (organization_id, credit_type)
            current = self.credits.get(key, 0)
            if current < amount:
                return None
            self.credits[key] = current - amount
            return self.credits[key]

    async def read_points(self, organization_id):
        await self._enter("read_points")
        return self.points.get(organization_id, 0)

    async def increment_points(self, organization_id, amount):
        await self._enter("increment_points")
        async with self._lock:
            self.points[organization_id] = self.points.get(organization_id, 0) + amount
            return self.points[organization_id]

    async def conditional_decrement_points(self, organization_id, amount):
        await self._enter("conditional_decrement_points")
        async with self._lock:
            current = self.points.get(organization_id, 0)
            if current < amount:
                return None
            self.points[organization_id] = current - amount
            return self.points[organization_id]

    async def read_subscription(self, organization_id) -> Optional[SubscriptionRecord]:
        await self._enter("read_subscription")
        return self.subscriptions.get(organization_id)


class InMemoryGrantRepository:
    """Stands in for CreditGrantRepository: one grant per (org, key)."""

    def __init__(self):
        self.grants: Dict[Tuple[str, str], SimpleNamespace] = {}

    async def record_grant(self, *, organization_id, idempotency_key, **fields) -> bool:
        key = (organization_id, idempotency_key)
        if key in self.grants:
            return False
        self.grants[key] = SimpleNamespace(
            id=uuid.uuid4(),
            created_at=datetime.now(timezone.utc) + timedelta(microseconds=len(self.grants)),
            **fields,
        )
        return True

    def _for_tenant(self, organization_id):
        rows = [row for (org, _key), row in self.grants.items() if org == organization_id]
        return sorted(rows, key=lambda row: row.created_at, reverse=True)

    async def list_for_tenant(self, organization_id, limit=50, offset=0):
        return self._for_tenant(organization_id)[offset : offset + limit]

    async def count_for_tenant(self, organization_id):
        return len(self._for_tenant(organization_id))


class FakeStageRepository:
    def __init__(self, rows=()):
        self.rows = list(rows)

    async def list_for_tenant(self, tenant_id):
        return self.rows


class FakeAssignmentRepository:
    def __init__(self, assignments=()):
        self.assignments = {a.id: a for a in assignments}
        self.closed_keys = None

    def add(self, assignment):
        self.assignments[assignment.id] = assignment
        return assignment

    async def get_by_id(self, tenant_id, assignment_id):
        return self.assignments.get(assignment_id)

    async def count_other_active_for_role(self, tenant_id, role_id, exclude_assignment_id, closed_stage_keys):
        self.closed_keys = set(closed_stage_keys)
        return sum(
            1
            for a in self.assignments.values()
            if a.role_id == role_id and a.id != exclude_assignment_id and a.stage_key not in self.closed_keys
        )


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def org_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def ledger_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def ledger(ledger_store) -> CreditLedgerService:
    return CreditLedgerService(ledger_store, retry_attempts=3, retry_backoff_seconds=0, sleeper=no_sleep)


@pytest.fixture
def grant_repository() -> InMemoryGrantRepository:
    return InMemoryGrantRepository()


@pytest.fixture
def pipeline_service() -> PipelineService:
    """PipelineService over empty in-memory stage and assignment repositories."""
    service = PipelineService(db=None)
    service.stage_repository = FakeStageRepository()
    service.assignment_repository = FakeAssignmentRepository()
    return service


@pytest.fixture
def api_client(ledger_store, grant_repository, pipeline_service):
    """TestClient whose billing and pipeline dependencies run in memory."""
    from canopy.core.dependencies import get_ledger_store, get_pipeline_service, get_purchase_service
    from canopy.main import app

    def _ledger():
        return CreditLedgerService(ledger_store, retry_backoff_seconds=0, sleeper=no_sleep)

    app.dependency_overrides[get_ledger_store] = lambda: ledger_store
    app.dependency_overrides[get_purchase_service] = lambda: PurchaseService(grant_repository, _ledger())
    app.dependency_overrides[get_pipeline_service] = lambda: pipeline_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests, no external deps")
    config.addinivalue_line("markers", "db: requires database")
    config.addinivalue_line("markers", "server: requires running HTTP server")


def pytest_collection_modifyitems(config, items):
    run_db = os.environ.get("RUN_DB_TESTS") == "1"
    run_server = os.environ.get("RUN_SERVER_TESTS") == "1"

    skip_db = pytest.mark.skip(reason="db tests skipped by default; set RUN_DB_TESTS=1 to enable")
    skip_server = pytest.mark.skip(reason="server tests skipped by default; set RUN_SERVER_TESTS=1 to enable")

    for item in items:
        if "db" in item.keywords and not run_db:
            item.add_marker(skip_db)
        if "server" in item.keywords and not run_server:
            item.add_marker(skip_server)
