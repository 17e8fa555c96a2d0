#!/usr/bin/env python3
"""
Script to create the first administrator (super_admin by default).
Administrators can only be created by a super admin through the API,
so the very first one has to come from here.
"""
import sys
from pathlib import Path

# Add parent directory to the system path
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import Database
from database.models import AccountRole
from services.auth_service import AuthService
from core.exceptions import PortalError
import config


def create_admin():
    """Create an administrator account."""
    config.db = Database(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW
    )
    config.db.create_tables()

    print("Creating administrator...")
    print("=" * 50)

    email = input("Email: ").strip()
    password = input("Password: ").strip()
    first_name = input("First name: ").strip()
    last_name = input("Last name: ").strip()
    role_input = input("Role [super_admin/admin] (default super_admin): ").strip() or "super_admin"

    if not email or not password or not first_name or not last_name:
        print("Error: Email, password, first name and last name are required")
        sys.exit(1)

    if role_input not in (AccountRole.SUPER_ADMIN.value, AccountRole.ADMIN.value):
        print("Error: Role must be super_admin or admin")
        sys.exit(1)

    try:
        with config.db.get_session() as db:
            account = AuthService.create_account(
                db=db,
                email=email,
                password=password,
                role=AccountRole(role_input),
                first_name=first_name,
                last_name=last_name,
            )
            print("\nAdministrator created successfully!")
            print(f"  Email: {account.email}")
            print(f"  Role: {account.role.value}")
            print(f"  Status: {account.status.value}")
    except PortalError as e:
        print(f"\nError: {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    create_admin()
