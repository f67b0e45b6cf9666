from __future__ import annotations

from dataclasses import dataclass

from orderdesk.core.errors import Unauthorized

ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"
ROLE_CUSTOMER = "customer"

ROLES = (ROLE_ADMIN, ROLE_STAFF, ROLE_CUSTOMER)

# Who may advance/cancel orders and write to customer conversations.
FULFILLMENT_ROLES = frozenset({ROLE_ADMIN, ROLE_STAFF})
# Role changes and account deletion.
ADMIN_ROLES = frozenset({ROLE_ADMIN})


@dataclass(frozen=True, slots=True)
class OperatorContext:
    operator_id: str
    role: str | None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def can_fulfil(self) -> bool:
        return self.role in FULFILLMENT_ROLES


def require_role(operator: OperatorContext, allowed: frozenset[str], action: str) -> None:
    if operator.role not in allowed:
        raise Unauthorized(operator.operator_id, operator.role, action)
