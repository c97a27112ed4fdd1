#!/usr/bin/env python3
"""
Bootstrap Tenant Script

Registers a first organization together with its admin user, exactly as
the /api/v1/auth/register endpoint would. Useful on a fresh deployment
before the UI is reachable.

Usage:
    python scripts/bootstrap_tenant.py <email> <password> <tenant_name> [display_name]

Example:
    python scripts/bootstrap_tenant.py admin@example.com MySecurePassword123 "Acme Properties"
"""

import sys
import os
import asyncio

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from propdesk.auth.service import AuthService
from propdesk.errors import AppError


async def bootstrap_tenant(email: str, password: str, tenant_name: str, display_name: str = "Admin"):
    """
    Register a tenant and its admin user.

    Args:
        email: Admin user's email address
        password: Admin user's password
        tenant_name: Name of the new organization
        display_name: Display name for the admin user

    Returns:
        Dict with the new user and tenant ids
    """
    service = AuthService()

    print(f"Registering {tenant_name!r} with admin {email}")

    result = await service.register_user({
        "email": email,
        "password": password,
        "name": display_name,
        "tenantName": tenant_name,
    })

    print(f"\nBootstrap complete!")
    print(f"  Tenant: {result.tenant.name} (id:{result.tenant.id})")
    print(f"  User: {result.user.email} (id:{result.user.id}, role:{result.user.role})")

    return {"user_id": result.user.id, "tenant_id": result.tenant.id}


def main():
    if len(sys.argv) < 4:
        print("Usage: python scripts/bootstrap_tenant.py <email> <password> <tenant_name> [display_name]")
        print()
        print("Arguments:")
        print("  email        Admin user's email address")
        print("  password     At least 8 characters, with upper case, lower case and a digit")
        print("  tenant_name  Name of the organization to create")
        print("  display_name Optional display name (default: 'Admin')")
        sys.exit(1)

    email = sys.argv[1]
    password = sys.argv[2]
    tenant_name = sys.argv[3]
    display_name = sys.argv[4] if len(sys.argv) > 4 else "Admin"

    try:
        asyncio.run(bootstrap_tenant(email, password, tenant_name, display_name))
    except AppError as e:
        print(f"Error: {e.message}")
        details = e.details if isinstance(e.details, list) else []
        for detail in details:
            print(f"  - {detail.get('field')}: {detail.get('message')}")
        sys.exit(1)


if __name__ == "__main__":
    main()
