"""
Test fixtures: every component wired to one in-memory FakeSupabase.

Learn: the identity provider, the tenant directory and the token manager
all talk to the same fake, so a test can register through the service and
then inspect `supabase.tables` or `supabase.auth` directly.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from propdesk.auth.dependencies import get_auth_service
from propdesk.auth.directory import TenantDirectory
from propdesk.auth.identity import IdentityProvider
from propdesk.auth.service import AuthService
from propdesk.auth.tokens import TokenManager
from propdesk.main import app

from .fakes import FakeSupabase


TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
PASSWORD = "Password123"


@pytest.fixture()
def supabase():
    return FakeSupabase()


@pytest.fixture()
def identity(supabase):
    return IdentityProvider(client=supabase, auth_client_factory=lambda: supabase, backoff_ms=0)


@pytest.fixture()
def directory(supabase):
    # Small pages so multi-membership lookups cross page boundaries
    return TenantDirectory(client=supabase, page_size=2)


@pytest.fixture()
def tokens(identity, directory):
    return TokenManager(identity, directory, secret=TEST_SECRET)


@pytest.fixture()
def service(identity, directory, tokens):
    return AuthService(identity=identity, directory=directory, tokens=tokens)


@pytest.fixture()
def registration_payload():
    return {
        "email": "newuser@example.com",
        "password": PASSWORD,
        "name": "New User",
        "tenantName": "New Tenant",
    }


@pytest_asyncio.fixture()
async def registered(service, registration_payload):
    """An organization registered through the service."""
    return await service.register_user(registration_payload)


@pytest.fixture()
def member(supabase):
    """
    An identity with memberships in two tenants, created in order A then B.

    Returns (user, tenant_a, tenant_b).
    """
    user = supabase.auth.add_user("user@example.com", PASSWORD)
    tenant_a = supabase.add_tenant("Tenant A")
    tenant_b = supabase.add_tenant("Tenant B")
    supabase.add_profile(user, tenant_a, role="admin", name="Member A")
    supabase.add_profile(user, tenant_b, role="viewer", name="Member B")
    return user, tenant_a, tenant_b


@pytest_asyncio.fixture()
async def client(service):
    """HTTP client with the app's auth service pointed at the fake backend."""
    app.dependency_overrides[get_auth_service] = lambda: service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
