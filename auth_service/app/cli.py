"""운영용 CLI.

    python -m auth_service.app.cli create-admin --email admin@example.com --password ...
    python -m auth_service.app.cli inspect-sessions [--namespace user|admin] [--purge]
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from common.logger import setup_logger
from common.mongo.client import close_client, get_database

from .config import load_config
from .models.session import Namespace
from .repositories.interfaces import SessionStoreInterface
from .repositories.session_store import build_session_stores
from .repositories.user_repository import UserRepository
from .services.passwords import PasswordHasher
from .services.users_service import UsersService
from .sessions.sanitizer import find_corruption


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionReport:
    namespace: Namespace
    total: int = 0
    authenticated: int = 0
    corrupted: list[str] = field(default_factory=list)
    purged: int = 0

    def summary(self) -> str:
        return (
            f"[{self.namespace.value}] total={self.total} "
            f"authenticated={self.authenticated} "
            f"corrupted={len(self.corrupted)} purged={self.purged}"
        )


def inspect_sessions(
    stores: Mapping[Namespace, SessionStoreInterface],
    namespaces: list[Namespace],
    *,
    purge: bool = False,
) -> list[SessionReport]:
    """세션 레코드를 훑어 인증/손상 개수를 센다. purge 면 손상 레코드를 삭제한다."""

    reports: list[SessionReport] = []
    for namespace in namespaces:
        store = stores[namespace]
        report = SessionReport(namespace=namespace)
        for session_id, raw in store.iter_records():
            report.total += 1
            if find_corruption(raw) is not None:
                report.corrupted.append(session_id)
                continue
            if raw.get("auth_identity"):
                report.authenticated += 1

        if purge:
            for session_id in report.corrupted:
                store.destroy(session_id)
                report.purged += 1
            if report.purged:
                logger.info(
                    "purged corrupted session records",
                    extra={"namespace": namespace.value},
                )
        reports.append(report)
    return reports


def create_admin(
    service: UsersService,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
) -> str:
    profile, created = service.provision_admin(
        email, password, first_name=first_name, last_name=last_name
    )
    if created:
        return f"created admin {profile.email} ({profile.user_code})"
    return f"{profile.email} is now an admin ({profile.user_code})"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Storefront auth-service admin tools")
    sub = parser.add_subparsers(dest="command", required=True)

    admin = sub.add_parser("create-admin", help="admin 계정 생성 또는 기존 유저 승격")
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", required=True)
    admin.add_argument("--first-name", default="Admin")
    admin.add_argument("--last-name", default="User")

    sessions = sub.add_parser("inspect-sessions", help="세션 레코드 점검")
    sessions.add_argument(
        "--namespace",
        choices=[ns.value for ns in Namespace],
        help="생략하면 두 namespace 모두 점검한다",
    )
    sessions.add_argument(
        "--purge",
        action="store_true",
        help="구조가 손상된 세션 레코드를 삭제한다",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger()
    config = load_config()
    database = get_database()

    try:
        if args.command == "create-admin":
            service = UsersService(
                UserRepository(database), PasswordHasher(rounds=config.bcrypt_rounds)
            )
            print(
                create_admin(
                    service,
                    args.email,
                    args.password,
                    args.first_name,
                    args.last_name,
                )
            )
            return 0

        namespaces = (
            [Namespace(args.namespace)] if args.namespace else list(Namespace)
        )
        stores = build_session_stores(database, config.session)
        for report in inspect_sessions(stores, namespaces, purge=args.purge):
            print(report.summary())
        return 0
    finally:
        close_client()


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
