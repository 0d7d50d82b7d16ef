"""
Script to create helpdesk staff accounts

Registration through the API always creates customers, so the first admin
has to be created here.

Usage:
    python scripts/create_admin.py \
        --email admin@example.com \
        --password "Admin123!" \
        --name "Helpdesk Admin" \
        --role admin
"""
import sys
import os

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import asyncio
import argparse
from helpdesk.database import user_operations, ensure_indexes, close_connection
from helpdesk.models import Role, User


async def create_user(email: str, password: str, name: str, role: str, department: str = None):
    """
    Create a user with any role

    Args:
        email: User email
        password: Plain text password (will be hashed)
        name: Display name
        role: admin, manager, agent or customer
        department: Optional department
    """
    await ensure_indexes()

    existing = await user_operations.find_user_by_email(email)
    if existing:
        print(f"❌ User with email {email} already exists")
        print(f"   User ID: {existing.user_id}")
        print(f"   Role:    {existing.role.value}")
        await close_connection()
        return

    user = await user_operations.insert_user(User(
        email=email,
        password_hash=User.hash_password(password),
        name=name,
        role=Role(role),
        department=department,
    ))

    print(f"\n✅ User created successfully!")
    print(f"━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
    print(f"User ID:     {user.user_id}")
    print(f"Email:       {user.email}")
    print(f"Name:        {user.name}")
    print(f"Role:        {user.role.value}")
    print(f"Department:  {user.department or '-'}")
    print(f"━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━")
    print(f"\n🔐 Log in with POST /api/auth/login")
    print(f"\n⚠️  IMPORTANT: Save these credentials securely.")

    await close_connection()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Create a helpdesk user with a staff role",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create the first admin
  python scripts/create_admin.py \\
      --email admin@example.com \\
      --password Admin123! \\
      --name "Helpdesk Admin"

  # Create an agent
  python scripts/create_admin.py \\
      --email agent@example.com \\
      --password Agent123! \\
      --name "First Line" \\
      --role agent \\
      --department IT
        """
    )
    parser.add_argument("--email", required=True, help="User email address")
    parser.add_argument("--password", required=True, help="User password (plain text)")
    parser.add_argument("--name", required=True, help="User's display name")
    parser.add_argument(
        "--role",
        default="admin",
        choices=[role.value for role in Role],
        help="User role (default: admin)"
    )
    parser.add_argument("--department", default=None, help="Department (optional)")
    args = parser.parse_args()

    asyncio.run(create_user(
        email=args.email,
        password=args.password,
        name=args.name,
        role=args.role,
        department=args.department,
    ))
