from __future__ import annotations

import sqlite3

from orderdesk.core.errors import NotFound
from orderdesk.core.normalize import Operator

from .orders import OrderRepository


class OperatorRepository(OrderRepository):
    """Operator accounts live in the orders partition next to the audit log."""

    @staticmethod
    def _row_to_operator(row: sqlite3.Row) -> Operator:
        return Operator(
            id=row["id"],
            role=row["role"],
            email=row["email"],
            display_name=row["display_name"],
        )

    def upsert_operator(
        self,
        operator_id: str,
        role: str,
        email: str | None = None,
        display_name: str | None = None,
    ) -> Operator:
        with self._transaction() as connection:
            connection.execute(
                """
                INSERT INTO operators (id, email, display_name, role)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email = COALESCE(excluded.email, operators.email),
                    display_name = COALESCE(excluded.display_name, operators.display_name),
                    role = excluded.role,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (operator_id, email, display_name, role),
            )
        return self.require_operator(operator_id)

    def get_operator(self, operator_id: str) -> Operator | None:
        row = self._fetchone("SELECT * FROM operators WHERE id = ?", (operator_id,))
        return self._row_to_operator(row) if row else None

    def require_operator(self, operator_id: str) -> Operator:
        operator = self.get_operator(operator_id)
        if operator is None:
            raise NotFound("operator", operator_id)
        return operator

    def list_operators(self, role: str | None = None) -> list[Operator]:
        if role:
            rows = self._fetchall("SELECT * FROM operators WHERE role = ? ORDER BY email, id", (role,))
        else:
            rows = self._fetchall("SELECT * FROM operators ORDER BY email, id")
        return [self._row_to_operator(row) for row in rows]

    def set_role(self, operator_id: str, role: str) -> None:
        with self._transaction() as connection:
            cursor = connection.execute(
                "UPDATE operators SET role = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (role, operator_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("operator", operator_id)

    def delete_operator(self, operator_id: str) -> None:
        with self._transaction() as connection:
            cursor = connection.execute("DELETE FROM operators WHERE id = ?", (operator_id,))
            if cursor.rowcount == 0:
                raise NotFound("operator", operator_id)
