# Overview: Acting-employee resolution and capability checks for ledger operations.

from __future__ import annotations

from dataclasses import dataclass

from ..models.staff import ROLE_MANAGER, ROLE_OWNER, ROLE_SELLER, STATUS_ACTIVE
from ..validation import EmployeeNotActiveError, PermissionDeniedError
from .repository import get_active_employee


CAPABILITY_RECORD_TRANSACTION = "RECORD_TRANSACTION"
CAPABILITY_ADJUST_STOCK = "ADJUST_STOCK"
CAPABILITY_DELETE_SALE = "DELETE_SALE"

ROLE_CAPABILITIES = {
    ROLE_OWNER: frozenset({CAPABILITY_RECORD_TRANSACTION, CAPABILITY_ADJUST_STOCK, CAPABILITY_DELETE_SALE}),
    ROLE_MANAGER: frozenset({CAPABILITY_RECORD_TRANSACTION, CAPABILITY_ADJUST_STOCK, CAPABILITY_DELETE_SALE}),
    ROLE_SELLER: frozenset({CAPABILITY_RECORD_TRANSACTION}),
}


@dataclass(frozen=True)
class ActingEmployee:
    """
    Explicit identity of whoever performs a ledger operation.

    Resolved once at the start of every operation and passed down; nothing in
    the ledger reads an ambient session.
    """
    id: int
    full_name: str
    role: str
    status: str

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def has_capability(self, capability: str) -> bool:
        return self.is_active and capability in ROLE_CAPABILITIES.get(self.role, frozenset())

    @property
    def can_adjust_stock(self) -> bool:
        return self.has_capability(CAPABILITY_ADJUST_STOCK)

    @property
    def can_delete_sales(self) -> bool:
        return self.has_capability(CAPABILITY_DELETE_SALE)


def resolve_acting_employee(employee_id: int) -> ActingEmployee:
    """Load the employee and insist on active status."""
    employee = get_active_employee(employee_id)
    if employee is None:
        raise EmployeeNotActiveError(
            f"Employee {employee_id} not found or inactive",
            details={"employee_id": employee_id},
        )
    actor = ActingEmployee(
        id=employee.id,
        full_name=employee.full_name,
        role=employee.role,
        status=employee.status,
    )
    if not actor.is_active:
        raise EmployeeNotActiveError(
            f"Employee {employee_id} not found or inactive",
            details={"employee_id": employee_id, "status": employee.status},
        )
    return actor


def require_capability(actor: ActingEmployee, capability: str) -> None:
    if not actor.has_capability(capability):
        raise PermissionDeniedError(
            f"Employee {actor.id} ({actor.role}) is not allowed to {capability.lower().replace('_', ' ')}",
            details={"employee_id": actor.id, "role": actor.role, "required_capability": capability},
        )
