import argparse
import sys
import logging
import uuid

from medmarket.db import SessionLocal, engine
from medmarket.models import Base
from medmarket.services.exceptions import MarketplaceError
from medmarket.services.identity_service import ensure_principal
from medmarket.services.pharmacy_service import PharmacyService
from medmarket.services.policies import Actor
from medmarket.services.role_service import RoleService

# 로그 설정
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
)
logger = logging.getLogger("medmarket.cli")

# 운영 CLI는 관리자 권한으로 동작
SYSTEM_ACTOR = Actor(principal_id=uuid.UUID(int=0), roles=frozenset({"admin"}))


def run_init_db(args) -> None:
    logger.info("[CLI] Creating tables")
    Base.metadata.create_all(bind=engine)
    logger.info("[CLI] Done")


def run_grant_role(args) -> None:
    principal_id = uuid.UUID(args.principal)
    with SessionLocal() as session:
        with session.begin():
            ensure_principal(session, principal_id, email=args.email)
            created = RoleService(session).grant_role(SYSTEM_ACTOR, principal_id, args.role)
    if created:
        logger.info(f"[CLI] Granted {args.role} to {principal_id}")
    else:
        logger.info(f"[CLI] {principal_id} already has {args.role}")


def run_verify_pharmacy(args) -> None:
    pharmacy_id = uuid.UUID(args.pharmacy)
    with SessionLocal() as session:
        with session.begin():
            pharmacy = PharmacyService(session).set_verification_status(SYSTEM_ACTOR, pharmacy_id, args.status)
            logger.info(f"[CLI] Pharmacy {pharmacy.name} ({pharmacy.id}) -> {pharmacy.verification_status}")


COMMANDS = {
    "init-db": run_init_db,
    "grant-role": run_grant_role,
    "verify-pharmacy": run_verify_pharmacy,
}


def main(argv=None):
    parser = argparse.ArgumentParser(description="MedMarket Operations CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create all tables (development only, prefer alembic)")

    grant_parser = subparsers.add_parser("grant-role", help="Grant a role to a principal")
    grant_parser.add_argument("--principal", required=True, help="Principal UUID")
    grant_parser.add_argument("--role", required=True, choices=["admin", "pharmacy", "customer", "delivery_agent"])
    grant_parser.add_argument("--email", default=None, help="Email for a principal not seen yet")

    verify_parser = subparsers.add_parser("verify-pharmacy", help="Set a pharmacy verification status")
    verify_parser.add_argument("--pharmacy", required=True, help="Pharmacy UUID")
    verify_parser.add_argument("--status", required=True, choices=["pending", "approved", "rejected"])

    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        handler(args)
    except MarketplaceError as e:
        logger.error(f"[CLI] {e.error_code}: {e.message}")
        return 1
    except Exception as e:
        logger.exception(f"[CLI] Critical error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
