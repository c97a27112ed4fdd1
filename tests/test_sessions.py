"""Login: credential checks and tenant profile resolution."""

import httpx
import pytest

from propdesk.auth.service import AuthService
from propdesk.errors import AmbiguousTenantError, UnauthorizedError, ValidationError

from .conftest import PASSWORD


UNKNOWN_TENANT = "550e8400-e29b-41d4-a716-446655440000"


def assert_generic_rejection(error):
    assert error.message == "Invalid credentials"
    assert "email" not in error.message.lower()
    assert "password" not in error.message.lower()


@pytest.mark.asyncio
async def test_login_single_membership(service, registered):
    result = await service.login_user({"email": "newuser@example.com", "password": PASSWORD})

    assert result.token
    assert result.refresh_token
    assert result.user.email == "newuser@example.com"
    assert result.tenant.id == registered.tenant.id


@pytest.mark.asyncio
async def test_login_wrong_password(service, registered):
    with pytest.raises(UnauthorizedError) as exc_info:
        await service.login_user({"email": "newuser@example.com", "password": "wrong"})

    assert_generic_rejection(exc_info.value)


@pytest.mark.asyncio
async def test_login_unknown_email(service):
    with pytest.raises(UnauthorizedError) as exc_info:
        await service.login_user({"email": "user@example.com", "password": "wrong"})

    assert_generic_rejection(exc_info.value)


@pytest.mark.asyncio
async def test_login_provider_outage_is_unauthorized(service, supabase, member):
    supabase.fail("auth.sign_in_with_password", httpx.ConnectError("connection refused"), times=5)

    with pytest.raises(UnauthorizedError) as exc_info:
        await service.login_user({"email": "user@example.com", "password": PASSWORD})

    assert_generic_rejection(exc_info.value)


@pytest.mark.asyncio
async def test_login_invalid_email_format(service):
    with pytest.raises(ValidationError):
        await service.login_user({"email": "not-an-email", "password": PASSWORD})


# ═══════════════════════════════════════════════════════════
# Multi-tenant memberships
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_with_explicit_tenant(service, member):
    _, tenant_a, tenant_b = member

    result_a = await service.login_user(
        {"email": "user@example.com", "password": PASSWORD, "tenantId": tenant_a["id"]}
    )
    result_b = await service.login_user(
        {"email": "user@example.com", "password": PASSWORD, "tenantId": tenant_b["id"]}
    )

    assert result_a.tenant.id == tenant_a["id"]
    assert result_a.user.role == "admin"
    assert result_b.tenant.id == tenant_b["id"]
    assert result_b.user.role == "viewer"


@pytest.mark.asyncio
async def test_login_with_unrecognized_tenant(service, member):
    with pytest.raises(UnauthorizedError) as exc_info:
        await service.login_user(
            {"email": "user@example.com", "password": PASSWORD, "tenantId": UNKNOWN_TENANT}
        )

    assert_generic_rejection(exc_info.value)


@pytest.mark.asyncio
async def test_login_with_malformed_tenant_id(service, member):
    with pytest.raises(ValidationError):
        await service.login_user({"email": "user@example.com", "password": PASSWORD, "tenantId": "abc"})


@pytest.mark.asyncio
async def test_login_without_tenant_picks_oldest_membership(service, member):
    _, tenant_a, _ = member

    result = await service.login_user({"email": "user@example.com", "password": PASSWORD})

    assert result.tenant.id == tenant_a["id"]


@pytest.mark.asyncio
async def test_login_skips_inactive_membership(service, supabase, member):
    _, tenant_a, tenant_b = member
    supabase.tables["users"][0]["status"] = "suspended"

    result = await service.login_user({"email": "user@example.com", "password": PASSWORD})

    assert result.tenant.id == tenant_b["id"]

    with pytest.raises(UnauthorizedError):
        await service.login_user(
            {"email": "user@example.com", "password": PASSWORD, "tenantId": tenant_a["id"]}
        )


@pytest.mark.asyncio
async def test_explicit_policy_requires_tenant_choice(identity, directory, tokens, member):
    _, tenant_a, tenant_b = member
    service = AuthService(identity=identity, directory=directory, tokens=tokens, tenant_policy="explicit")

    with pytest.raises(AmbiguousTenantError) as exc_info:
        await service.login_user({"email": "user@example.com", "password": PASSWORD})

    assert isinstance(exc_info.value, UnauthorizedError)
    assert exc_info.value.tenant_ids == [tenant_a["id"], tenant_b["id"]]

    result = await service.login_user(
        {"email": "user@example.com", "password": PASSWORD, "tenantId": tenant_b["id"]}
    )
    assert result.tenant.id == tenant_b["id"]


def test_unknown_tenant_policy(identity, directory, tokens):
    with pytest.raises(ValueError):
        AuthService(identity=identity, directory=directory, tokens=tokens, tenant_policy="newest")


@pytest.mark.asyncio
async def test_login_identity_without_membership(service, supabase):
    supabase.auth.add_user("orphan@example.com", PASSWORD)

    with pytest.raises(UnauthorizedError) as exc_info:
        await service.login_user({"email": "orphan@example.com", "password": PASSWORD})

    assert_generic_rejection(exc_info.value)


@pytest.mark.asyncio
async def test_login_records_last_login(service, supabase, member):
    _, _, tenant_b = member

    await service.login_user({"email": "user@example.com", "password": PASSWORD, "tenantId": tenant_b["id"]})

    rows = {row["tenant_id"]: row for row in supabase.tables["users"]}
    assert rows[tenant_b["id"]].get("last_login_at")
    assert not any(row.get("last_login_at") for tid, row in rows.items() if tid != tenant_b["id"])


@pytest.mark.asyncio
async def test_login_token_carries_selected_tenant(service, tokens, member):
    _, _, tenant_b = member

    result = await service.login_user(
        {"email": "user@example.com", "password": PASSWORD, "tenantId": tenant_b["id"]}
    )

    assert tokens.decode(result.token)["tenant_id"] == tenant_b["id"]
