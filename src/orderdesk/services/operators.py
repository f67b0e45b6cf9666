from __future__ import annotations

import logging

from orderdesk.core.access import ADMIN_ROLES, ROLES, OperatorContext, require_role
from orderdesk.core.db import OperatorRepository
from orderdesk.core.normalize import Operator


class OperatorService:
    def __init__(self, repository: OperatorRepository, logger: logging.Logger | logging.LoggerAdapter):
        self.repository = repository
        self.logger = logger

    def context_for(self, operator_id: str) -> OperatorContext:
        """Identity lookup: the stored role of a known operator."""
        operator = self.repository.require_operator(operator_id)
        return OperatorContext(operator_id=operator.id, role=operator.role)

    def register(
        self,
        operator_id: str,
        role: str,
        actor: OperatorContext | None,
        *,
        email: str | None = None,
        display_name: str | None = None,
    ) -> Operator:
        """Creates an account. The very first account may be created without an actor."""
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        bootstrap = not self.repository.list_operators()
        if not bootstrap:
            if actor is None:
                raise ValueError("An admin operator is required to register accounts")
            require_role(actor, ADMIN_ROLES, "register users")

        operator = self.repository.upsert_operator(operator_id, role, email=email, display_name=display_name)
        self.repository.add_audit_log(
            actor_id=actor.operator_id if actor else None,
            entity_type="operator",
            entity_id=operator_id,
            action="register",
            before_json=None,
            after_json={"role": role, "email": email},
        )
        self.logger.info("Operator %s registered as %s", operator_id, role)
        return operator

    def list_operators(self, role: str | None = None) -> list[Operator]:
        return self.repository.list_operators(role)

    def role_counts(self) -> dict[str, int]:
        counts = {role: 0 for role in ROLES}
        for operator in self.repository.list_operators():
            counts[operator.role] = counts.get(operator.role, 0) + 1
        return counts

    def change_role(self, target_id: str, new_role: str, actor: OperatorContext) -> Operator:
        require_role(actor, ADMIN_ROLES, "change user roles")
        if new_role not in ROLES:
            raise ValueError(f"Unknown role: {new_role}")

        before = self.repository.require_operator(target_id)
        self.repository.set_role(target_id, new_role)
        self.repository.add_audit_log(
            actor_id=actor.operator_id,
            entity_type="operator",
            entity_id=target_id,
            action="change_role",
            before_json={"role": before.role},
            after_json={"role": new_role},
        )
        self.logger.info("Role of %s changed: %s -> %s", target_id, before.role, new_role)
        return self.repository.require_operator(target_id)

    def delete_operator(self, target_id: str, actor: OperatorContext) -> None:
        require_role(actor, ADMIN_ROLES, "delete users")
        before = self.repository.require_operator(target_id)
        self.repository.delete_operator(target_id)
        self.repository.add_audit_log(
            actor_id=actor.operator_id,
            entity_type="operator",
            entity_id=target_id,
            action="delete",
            before_json={"role": before.role, "email": before.email},
            after_json=None,
        )
        self.logger.info("Operator %s deleted by %s", target_id, actor.operator_id)
