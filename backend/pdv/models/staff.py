from __future__ import annotations

from ..extensions import db
from .base import SoftDeleteMixin


ROLE_OWNER = "proprietario"
ROLE_MANAGER = "gerente"
ROLE_SELLER = "vendedor"
EMPLOYEE_ROLES = (ROLE_OWNER, ROLE_MANAGER, ROLE_SELLER)

STATUS_ACTIVE = "ativo"
STATUS_PENDING = "pendente"
STATUS_BLOCKED = "bloqueado"
EMPLOYEE_STATUSES = (STATUS_ACTIVE, STATUS_PENDING, STATUS_BLOCKED)


class Employee(SoftDeleteMixin, db.Model):
    """
    Staff member attributed on every sale and stock movement.

    Account creation and approval happen outside this service; the ledger only
    reads role and status to decide what the employee may do.
    """
    __tablename__ = "employees"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_employees_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=ROLE_SELLER)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Employee id={self.id} name={self.full_name!r} role={self.role} status={self.status}>"
