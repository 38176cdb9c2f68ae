from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..extensions import db


SOFT_DELETE_FIELDS = frozenset({"deleted_at", "deleted_by_employee_id"})


@dataclass(frozen=True)
class Active:
    """Row is live and visible to every lookup."""

    is_deleted = False


@dataclass(frozen=True)
class Deleted:
    """Row was soft-deleted; it stays in the table for audit."""

    at: datetime
    by: int | None

    is_deleted = True


class SoftDeleteMixin:
    """
    Soft delete by timestamp.

    Callers never filter on deleted_at themselves: pdv.services.repository owns
    the visibility rule and everything else reads `deletion_status`.
    """

    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    deleted_by_employee_id = db.Column(db.Integer, nullable=True)

    @property
    def deletion_status(self) -> Active | Deleted:
        if self.deleted_at is None:
            return Active()
        return Deleted(at=self.deleted_at, by=self.deleted_by_employee_id)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
