# stockledger/services/access_guard.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

from stockledger.models.enums import Role
from stockledger.services.errors import AccessDenied


@dataclass(frozen=True)
class Actor:
    """
    Identity handed over by the upstream auth gateway.

    The ledger only consumes it: user_id goes into audit columns, role and
    assigned_warehouses gate workflow transitions.
    """

    user_id: int
    role: Role
    assigned_warehouses: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def can_access_warehouse(self, warehouse_id: int) -> bool:
        return self.is_admin or int(warehouse_id) in self.assigned_warehouses


def require_role(actor: Actor, roles: Iterable[Role], *, action: str) -> None:
    allowed = {Role(r) for r in roles}
    if actor.role not in allowed:
        raise AccessDenied(
            f"role {actor.role.value} may not {action}",
            details=[
                {
                    "type": "access",
                    "reason": "role_not_allowed",
                    "role": actor.role.value,
                    "allowed": sorted(r.value for r in allowed),
                }
            ],
        )


def require_warehouse(actor: Actor, warehouse_id: int, *, action: str) -> None:
    """Non-admin actors must be assigned to the warehouse they act on."""
    if not actor.can_access_warehouse(warehouse_id):
        raise AccessDenied(
            f"user {actor.user_id} is not assigned to warehouse {warehouse_id}; cannot {action}",
            details=[{"type": "access", "reason": "warehouse_not_assigned", "warehouse_id": int(warehouse_id)}],
        )
