from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from .base import SOFT_DELETE_FIELDS, SoftDeleteMixin


# Transaction types (wire values)
TRANSACTION_SALE = "VENDA"
TRANSACTION_RETURN = "DEVOLUCAO"
TRANSACTION_EXCHANGE = "TROCA"
TRANSACTION_TYPES = (TRANSACTION_SALE, TRANSACTION_RETURN, TRANSACTION_EXCHANGE)

# Where returned goods go
DESTINATION_STORE = "LOJA"
DESTINATION_WAREHOUSE = "ESTOQUE"
DESTINATION_SUPPLIER = "FORNECEDOR"
RETURN_DESTINATIONS = (DESTINATION_STORE, DESTINATION_WAREHOUSE, DESTINATION_SUPPLIER)

# Physical locations recorded on movements
LOCATION_STORE = "loja"
LOCATION_WAREHOUSE = "estoque"
LOCATION_SUPPLIER = "fornecedor"
STOCK_LOCATIONS = (LOCATION_STORE, LOCATION_WAREHOUSE)

# Movement kinds
MOVEMENT_STOCK_IN = "entrada"
MOVEMENT_STOCK_OUT = "saida"
MOVEMENT_TRANSFER = "transferencia"
MOVEMENT_LOSS = "perda"
MOVEMENT_SALE = "venda"
MOVEMENT_RETURN = "devolucao"
MOVEMENT_RETURN_TO_SUPPLIER = "devolucao_fornecedor"
MOVEMENT_EXCHANGE = "troca"
MOVEMENT_KINDS = (
    MOVEMENT_STOCK_IN,
    MOVEMENT_STOCK_OUT,
    MOVEMENT_TRANSFER,
    MOVEMENT_LOSS,
    MOVEMENT_SALE,
    MOVEMENT_RETURN,
    MOVEMENT_RETURN_TO_SUPPLIER,
    MOVEMENT_EXCHANGE,
)
RETURN_MOVEMENT_KINDS = (MOVEMENT_RETURN, MOVEMENT_RETURN_TO_SUPPLIER, MOVEMENT_EXCHANGE)

# Movement direction, relative to the business
DIRECTION_IN = "entrada"
DIRECTION_OUT = "saida"
DIRECTION_TRANSFER = "transferencia"


class Sale(SoftDeleteMixin, db.Model):
    """
    One commercial transaction: a sale, a return or an exchange.

    Created together with its movements in a single DB transaction and never
    updated afterwards (soft delete aside). Totals are derived from the line
    items at creation time; total_cents is negative for returns/exchanges.
    """
    __tablename__ = "sales"
    __table_args__ = (
        # Invoice numbers are unique among live sales only
        db.Index(
            "uq_sales_invoice_number_active",
            "invoice_number",
            unique=True,
            sqlite_where=db.text("deleted_at IS NULL"),
            postgresql_where=db.text("deleted_at IS NULL"),
        ),
        db.Index("ix_sales_type_created", "transaction_type", "created_at"),
        db.CheckConstraint(
            "discount_bps >= 0 AND discount_bps <= 10000",
            name="ck_sales_discount_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, default=TRANSACTION_SALE)

    # Discount in basis points (10% == 1000)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    original_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    return_destination = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    employee = db.relationship("Employee")
    original_sale = db.relationship("Sale", remote_side=[id])

    def __repr__(self) -> str:
        return f"<Sale id={self.id} invoice={self.invoice_number!r} type={self.transaction_type} total={self.total_cents}>"

    @property
    def discount_percent(self) -> float:
        return self.discount_bps / 100

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "employee_id": self.employee_id,
            "transaction_type": self.transaction_type,
            "discount_percent": self.discount_percent,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "original_sale_id": self.original_sale_id,
            "return_destination": self.return_destination,
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }


class StockMovement(SoftDeleteMixin, db.Model):
    """
    Append-only record of one stock change.

    store_delta / warehouse_delta are the signed effect that was applied to
    the variant; quantity is the unsigned amount the user asked for. A movement
    is never edited: corrections are new, compensating movements.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_movements_variant_created", "variant_id", "created_at"),
        db.Index("ix_movements_sale_kind", "sale_id", "kind"),
        db.CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)

    kind = db.Column(db.String(32), nullable=False, index=True)
    direction = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    store_delta = db.Column(db.Integer, nullable=False, default=0)
    warehouse_delta = db.Column(db.Integer, nullable=False, default=0)

    origin = db.Column(db.String(32), nullable=True)
    destination = db.Column(db.String(32), nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    # Price snapshot for sale/return lines
    unit_price_cents = db.Column(db.Integer, nullable=True)

    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    variant = db.relationship("ProductVariant")
    employee = db.relationship("Employee")
    sale = db.relationship("Sale", backref=db.backref("movements", lazy=True, order_by="StockMovement.id"))

    def __repr__(self) -> str:
        return f"<StockMovement id={self.id} kind={self.kind} variant_id={self.variant_id} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "employee_id": self.employee_id,
            "kind": self.kind,
            "direction": self.direction,
            "quantity": self.quantity,
            "store_delta": self.store_delta,
            "warehouse_delta": self.warehouse_delta,
            "origin": self.origin,
            "destination": self.destination,
            "sale_id": self.sale_id,
            "unit_price_cents": self.unit_price_cents,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }


@event.listens_for(StockMovement, "before_update")
def _movements_are_append_only(mapper, connection, target):
    state = db.inspect(target)
    changed = {attr.key for attr in state.attrs if attr.history.has_changes()}
    if changed - SOFT_DELETE_FIELDS:
        raise ValueError("stock movements are append-only; record a compensating movement instead")


@event.listens_for(StockMovement, "before_delete")
def _movements_are_never_removed(mapper, connection, target):
    raise ValueError("stock movements cannot be deleted")
