from __future__ import annotations

import platform
import sqlite3
import sys

from orderdesk.config import Settings
from orderdesk.core.access import ROLES
from orderdesk.core.db import connect_db
from orderdesk.core.db.migrations import pending_migrations


def run_doctor_checks(settings: Settings) -> list[dict[str, str]]:
    checks: list[dict[str, str]] = []

    checks.append(
        {
            "check": "python_version",
            "status": "ok" if sys.version_info >= (3, 11) else "warn",
            "detail": platform.python_version(),
        }
    )

    for partition, db_path in (("orders", settings.orders_db_path), ("conversations", settings.chat_db_path)):
        checks.append(
            {
                "check": f"{partition}_db_parent",
                "status": "ok" if db_path.parent.exists() else "warn",
                "detail": str(db_path.parent),
            }
        )
        if not db_path.exists():
            checks.append({"check": f"{partition}_schema", "status": "warn", "detail": "run `orderdesk init`"})
            continue
        try:
            connection = connect_db(db_path, timeout_sec=settings.db_timeout_sec)
            try:
                pending = pending_migrations(connection, partition)
            finally:
                connection.close()
        except sqlite3.Error as exc:
            checks.append({"check": f"{partition}_schema", "status": "error", "detail": str(exc)})
            continue
        checks.append(
            {
                "check": f"{partition}_schema",
                "status": "warn" if pending else "ok",
                "detail": ", ".join(path.name for path in pending) if pending else "up to date",
            }
        )

    checks.append(
        {
            "check": "image_upload",
            "status": "ok" if settings.upload.enabled else "warn",
            "detail": settings.upload.url or "ORDERDESK_UPLOAD_URL is not set",
        }
    )

    if settings.operator_role and settings.operator_role not in ROLES:
        checks.append({"check": "operator_role", "status": "warn", "detail": f"unknown role {settings.operator_role}"})
    else:
        checks.append(
            {
                "check": "operator",
                "status": "ok" if settings.operator_id else "warn",
                "detail": settings.operator_id or "ORDERDESK_OPERATOR_ID is not set",
            }
        )

    return checks
