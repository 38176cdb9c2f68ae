from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .base import SoftDeleteMixin


class Product(SoftDeleteMixin, db.Model):
    """
    Product display data (name, category).

    Catalog entry is owned by the back office; the ledger reads it only to
    label variants on invoices and lookups.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False)
    model = db.Column(db.String(64), nullable=True)
    is_consigned = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "model": self.model,
            "is_consigned": self.is_consigned,
        }


class ProductVariant(SoftDeleteMixin, db.Model):
    """
    A sellable color/size instance of a product.

    STOCK: store_quantity and warehouse_quantity are the authoritative on-hand
    counts. They are only ever written through
    pdv.services.stock_service.apply_delta, which performs check and write in a
    single conditional UPDATE. The CHECK constraints are the last line.
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.CheckConstraint("store_quantity >= 0", name="ck_variants_store_quantity_non_negative"),
        db.CheckConstraint("warehouse_quantity >= 0", name="ck_variants_warehouse_quantity_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_variants_price_non_negative"),
        # Reference (SKU) is unique among live variants only
        db.Index(
            "uq_product_variants_reference_active",
            "reference",
            unique=True,
            sqlite_where=db.text("deleted_at IS NULL"),
            postgresql_where=db.text("deleted_at IS NULL"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    reference = db.Column(db.String(64), nullable=False)
    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(32), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    store_quantity = db.Column(db.Integer, nullable=False, default=0)
    warehouse_quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("variants", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<ProductVariant id={self.id} reference={self.reference!r} "
            f"store={self.store_quantity} warehouse={self.warehouse_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "reference": self.reference,
            "color": self.color,
            "size": self.size,
            "price_cents": self.price_cents,
            "store_quantity": self.store_quantity,
            "warehouse_quantity": self.warehouse_quantity,
            "version_id": self.version_id,
            "product": self.product.to_dict() if self.product else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
