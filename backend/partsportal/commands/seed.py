#!/usr/bin/env python3
"""
Principal seeding command.

Registers vendor and manager principals in the catalog. The identity
provider issues the tokens; its ``sub`` claim must be the principal id
printed here (or the one passed with ``--id``).

Safe to run multiple times: a principal whose email already exists is
left as it is.

Usage:
    # Vendor with its organization
    python -m partsportal.commands.seed --vendor alice@acme.test --org "Acme Parts"

    # Manager
    python -m partsportal.commands.seed --manager bob@example.test --name "Bob Stone"
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional
from uuid import UUID

from sqlalchemy import select

from partsportal.core.database.models import Principal, Role
from partsportal.core.shared.database_service import DatabaseService, database_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("partsportal.seed")


async def ensure_principal(
    database: DatabaseService,
    email: str,
    role: Role,
    display_name: Optional[str] = None,
    organization_name: Optional[str] = None,
    principal_id: Optional[UUID] = None,
) -> Principal:
    """
    Create a principal unless one with this email exists.

    Raises:
        ValueError: Vendor without an organization name
    """
    email = email.strip().lower()
    if role == Role.vendor and not (organization_name or "").strip():
        raise ValueError("A vendor needs an organization name (--org)")

    async with database.get_session() as session:
        result = await session.execute(select(Principal).where(Principal.email == email))
        existing = result.scalar_one_or_none()
        if existing:
            logger.info(f"Principal already exists: {email} ({existing.id})")
            return existing

        principal = Principal(
            email=email,
            display_name=(display_name or email.split("@")[0]).strip(),
            role=role,
            organization_name=organization_name.strip() if organization_name else None,
        )
        if principal_id is not None:
            principal.id = principal_id
        session.add(principal)
        await session.flush()

        logger.info(f"Created {role.value} {email} with id {principal.id}")
        return principal


async def seed(args: argparse.Namespace) -> None:
    try:
        await database_service.init_db()

        if args.vendor:
            principal = await ensure_principal(
                database_service,
                args.vendor,
                Role.vendor,
                display_name=args.name,
                organization_name=args.org,
                principal_id=args.id,
            )
        else:
            principal = await ensure_principal(
                database_service,
                args.manager,
                Role.manager,
                display_name=args.name,
                principal_id=args.id,
            )

        print(f"\n  {principal.role.value}: {principal.email}")
        print(f"  id (token sub): {principal.id}\n")

    except ValueError as e:
        logger.error(str(e))
        sys.exit(2)
    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        sys.exit(1)
    finally:
        await database_service.close()


def main():
    """Main entry point for seed command."""
    parser = argparse.ArgumentParser(
        description="Register vendor and manager principals",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m partsportal.commands.seed --vendor alice@acme.test --org "Acme Parts"
  python -m partsportal.commands.seed --manager bob@example.test --name "Bob Stone"
        """,
    )

    who = parser.add_mutually_exclusive_group(required=True)
    who.add_argument("--vendor", metavar="EMAIL", help="Create a vendor principal")
    who.add_argument("--manager", metavar="EMAIL", help="Create a manager principal")

    parser.add_argument("--org", metavar="NAME", help="Vendor organization name")
    parser.add_argument("--name", metavar="NAME", help="Display name (defaults to the email's local part)")
    parser.add_argument("--id", type=UUID, help="Principal id, when the identity provider already has one")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    asyncio.run(seed(args))


if __name__ == "__main__":
    main()
