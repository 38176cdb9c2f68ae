# Overview: Client-side cart staging and the HTTP client that submits it to the ledger.
"""
POS cart.

The cart is a convenience for the cashier: it stages line items against the
last observed stock of each variant and derives totals for display. It is not
authoritative; the server re-checks stock and recomputes totals at checkout.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pathlib import Path
from typing import Any, Optional

import httpx

from .time_utils import utcnow

logger = logging.getLogger(__name__)


class CartStockError(ValueError):
    """Requested cart quantity exceeds the last observed stock."""

    def __init__(self, message: str, available: int):
        super().__init__(message)
        self.message = message
        self.available = available


class TransactionRejected(Exception):
    """Server refused the transaction (4xx); the message is meant for the cashier."""

    def __init__(self, message: str, status_code: int, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class TransactionFailed(Exception):
    """Server or network fault (5xx, timeout, connection error)."""


@dataclass(frozen=True)
class VariantSnapshot:
    """Variant as last seen by the client; quantities may be stale."""
    id: int
    reference: str
    price_cents: int
    store_quantity: int
    warehouse_quantity: int
    product_name: str = ""
    color: Optional[str] = None
    size: Optional[str] = None

    @property
    def available(self) -> int:
        return self.store_quantity + self.warehouse_quantity

    @classmethod
    def from_dict(cls, data: dict) -> "VariantSnapshot":
        product = data.get("product") or {}
        return cls(
            id=int(data["id"]),
            reference=data.get("reference", ""),
            price_cents=int(data.get("price_cents", 0)),
            store_quantity=int(data.get("store_quantity", 0)),
            warehouse_quantity=int(data.get("warehouse_quantity", 0)),
            product_name=data.get("product_name") or product.get("name", ""),
            color=data.get("color"),
            size=data.get("size"),
        )


@dataclass
class CartItem:
    variant: VariantSnapshot
    quantity: int

    @property
    def subtotal_cents(self) -> int:
        return self.variant.price_cents * self.quantity


def _clamped_discount_bps(discount_percent: Any) -> int:
    try:
        percent = Decimal(str(discount_percent or 0))
    except InvalidOperation:
        percent = Decimal(0)
    if not percent.is_finite():
        percent = Decimal(0)
    percent = max(Decimal(0), min(Decimal(100), percent))
    return int((percent * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def clamped_discount_percent(discount_percent: Any) -> str:
    """Discount as submitted at checkout; matches what total_cents displays."""
    return f"{Decimal(_clamped_discount_bps(discount_percent)) / 100:.2f}"


class Cart:
    """Ordered line items, at most one per variant."""

    def __init__(self, items: Optional[list[CartItem]] = None):
        self._items: list[CartItem] = list(items or [])

    @property
    def items(self) -> list[CartItem]:
        return list(self._items)

    def _find(self, variant_id: int) -> Optional[CartItem]:
        for item in self._items:
            if item.variant.id == variant_id:
                return item
        return None

    def add_item(self, variant: VariantSnapshot) -> CartItem:
        """
        Add one unit of a variant.

        Raises CartStockError, leaving the cart unchanged, if the new quantity
        would exceed the variant's observed store + warehouse stock.
        """
        existing = self._find(variant.id)
        if existing is None:
            if variant.available < 1:
                raise CartStockError("Produto sem estoque disponível", available=variant.available)
            item = CartItem(variant=variant, quantity=1)
            self._items.append(item)
            return item

        new_quantity = existing.quantity + 1
        if new_quantity > variant.available:
            raise CartStockError(
                f"Estoque insuficiente. Disponível: {variant.available}",
                available=variant.available,
            )
        existing.variant = variant
        existing.quantity = new_quantity
        return existing

    def update_quantity(self, variant_id: int, quantity: int) -> Optional[CartItem]:
        """Set an item's quantity; zero or less removes it."""
        if quantity <= 0:
            self.remove_item(variant_id)
            return None

        item = self._find(variant_id)
        if item is None:
            return None
        if quantity > item.variant.available:
            raise CartStockError(
                f"Estoque insuficiente. Disponível: {item.variant.available}",
                available=item.variant.available,
            )
        item.quantity = quantity
        return item

    def remove_item(self, variant_id: int) -> None:
        self._items = [item for item in self._items if item.variant.id != variant_id]

    def clear(self) -> None:
        self._items = []

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def subtotal_cents(self) -> int:
        return sum(item.subtotal_cents for item in self._items)

    def total_cents(self, discount_percent: Any = 0) -> int:
        """Subtotal minus a discount clamped to [0, 100] percent, rounded half-up."""
        subtotal = self.subtotal_cents
        bps = _clamped_discount_bps(discount_percent)
        return subtotal - (subtotal * bps + 5_000) // 10_000

    def to_transaction_items(self) -> list[dict]:
        return [
            {
                "variant_id": item.variant.id,
                "quantidade": item.quantity,
                "preco_unitario": f"{Decimal(item.variant.price_cents) / 100:.2f}",
            }
            for item in self._items
        ]


class CartStorage:
    """Persists cart items as JSON in one local file."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Cart:
        if not self.path.exists():
            return Cart()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            items = [
                CartItem(variant=VariantSnapshot(**entry["variant"]), quantity=int(entry["quantity"]))
                for entry in raw
            ]
        except (ValueError, TypeError, KeyError) as e:
            logger.error("Error loading cart from %s: %s", self.path, e)
            return Cart()
        return Cart(items)

    def save(self, cart: Cart) -> None:
        payload = [{"variant": asdict(item.variant), "quantity": item.quantity} for item in cart.items]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(payload), encoding="utf-8")


def return_invoice_number(transaction_type: str, original_invoice: str, now=None) -> str:
    """
    Invoice number for a return or exchange of original_invoice.

    DEV-<original>-<last 6 digits of epoch ms> for returns, TRC-... for exchanges.
    """
    now = now or utcnow()
    prefix = "TRC" if transaction_type == "TROCA" else "DEV"
    epoch_ms = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    return f"{prefix}-{original_invoice}-{str(epoch_ms)[-6:]}"


class TransactionClient:
    """
    HTTP client for the ledger API.

    transport is injectable so tests can drive it with httpx.MockTransport.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Ledger request failed: %s %s: %s", method, path, e)
            raise TransactionFailed(f"Falha de comunicação com o servidor: {e}") from e

        if response.status_code >= 500:
            logger.error("Ledger server error: %s %s -> %s", method, path, response.status_code)
            raise TransactionFailed(f"Erro do servidor ({response.status_code})")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            raise TransactionRejected(
                body.get("error") or f"Request rejected ({response.status_code})",
                status_code=response.status_code,
                details=body.get("details"),
            )
        return body

    def checkout(self, cart: Cart, *, invoice_number: str, employee_id: int, discount_percent: Any = 0) -> dict:
        """
        Submit the cart as a VENDA and clear it on success.

        The discount is clamped to [0, 100] percent as in Cart.total_cents.
        The cart is left intact when the server rejects the sale.
        """
        if cart.is_empty:
            raise TransactionRejected("Carrinho vazio", status_code=400)

        body = self._request("POST", "/api/transactions", json={
            "fatura_numero": invoice_number,
            "desconto_percentual": clamped_discount_percent(discount_percent),
            "employee_id": employee_id,
            "tipo_transacao": "VENDA",
            "itens": cart.to_transaction_items(),
        })
        cart.clear()
        return body

    def register_return(
        self,
        *,
        original_sale_id: int,
        invoice_number: str,
        employee_id: int,
        items: list[dict],
        transaction_type: str = "DEVOLUCAO",
        destination: str = "LOJA",
        discount_percent: Any = None,
    ) -> dict:
        payload = {
            "fatura_numero": invoice_number,
            "employee_id": employee_id,
            "tipo_transacao": transaction_type,
            "itens": items,
            "original_sale_id": original_sale_id,
            "destino_devolucao": destination,
        }
        if discount_percent is not None:
            payload["desconto_percentual"] = discount_percent
        return self._request("POST", "/api/transactions", json=payload)

    def lookup_invoice(self, invoice_number: str) -> dict:
        return self._request("GET", f"/api/sales/by-invoice/{invoice_number}")["sale"]

    def get_variant(self, variant_id: int) -> VariantSnapshot:
        body = self._request("GET", f"/api/inventory/variants/{variant_id}")
        return VariantSnapshot.from_dict(body["variant"])
