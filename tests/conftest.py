"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.services.policy.registry import PolicyRegistry
from tests.fakes import ADMIN_ID, ADMIN_TOKEN, CONTRACT_ID, USER_ID, USER_TOKEN, FakeSupabase


@pytest.fixture(autouse=True)
def lifecycle_policy():
    """Load the bundled lifecycle policy for every test."""
    policy = PolicyRegistry.load_file()
    yield policy
    PolicyRegistry.reset()


@pytest.fixture
def sb() -> FakeSupabase:
    """Fake Supabase client seeded with one active contract and two users.

    Returns:
        FakeSupabase: in-memory client
    """
    client = FakeSupabase()
    client.tables["contratos"] = [
        {
            "id": CONTRACT_ID,
            "organization_id": "org-1",
            "estado_contrato": "activo",
            "validation_status": None,
        }
    ]
    client.tokens = {ADMIN_TOKEN: ADMIN_ID, USER_TOKEN: USER_ID}
    client.rpc_handlers["is_platform_admin"] = lambda p: p.get("_user_id") == ADMIN_ID
    client.rpc_handlers["expire_stale_impersonation_sessions"] = lambda p: None
    return client


@pytest.fixture
def client(sb):
    """FastAPI test client bound to the fake Supabase client."""
    with TestClient(create_app(sb=sb)) as c:
        yield c
