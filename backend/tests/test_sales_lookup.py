"""Invoice lookup, sale detail and sale soft delete."""

import pytest

from pdv.models import Sale
from pdv.services import sales_service
from pdv.services.employee_service import resolve_acting_employee
from pdv.services.stock_service import get_quantities
from pdv.services.transaction_service import process_transaction
from pdv.validation import PermissionDeniedError, SaleNotFoundError


@pytest.fixture
def recorded_sale(db_session, seller, make_variant, build_request):
    dress = make_variant(store=5, price_cents=18990, reference="VM-001-P")
    belt = make_variant(store=5, price_cents=4990, reference="CT-002-U")
    result = process_transaction(build_request(
        "F-2000", seller.id, [(dress.id, 2, 18990), (belt.id, 1, 4990)],
    ))
    return result, dress, belt


class TestLookupByInvoice:
    def test_returns_header_and_items(self, db_session, recorded_sale):
        result, dress, belt = recorded_sale

        sale = sales_service.lookup_by_invoice("F-2000")

        assert sale["id"] == result.sale_id
        assert sale["transaction_type"] == "VENDA"
        assert sale["employee"]["full_name"] == "Vendedora Ana"
        assert [item["variant_id"] for item in sale["itens"]] == [dress.id, belt.id]

        first = sale["itens"][0]
        assert first["quantidade"] == 2
        assert first["preco_unitario_cents"] == 18990
        assert first["quantidade_devolvida"] == 0
        assert first["quantidade_disponivel_devolucao"] == 2
        assert first["variant"]["reference"] == "VM-001-P"
        assert first["variant"]["product"]["category"] == "vestidos"

    def test_reports_already_returned_quantity(self, db_session, seller, recorded_sale, build_request):
        result, dress, _ = recorded_sale
        process_transaction(build_request(
            "DEV-F-2000-1", seller.id, [(dress.id, 1, 18990)],
            transaction_type="DEVOLUCAO", original_sale_id=result.sale_id, discount_bps=None,
        ))

        sale = sales_service.lookup_by_invoice("F-2000")

        assert sale["itens"][0]["quantidade_devolvida"] == 1
        assert sale["itens"][0]["quantidade_disponivel_devolucao"] == 1

    def test_unknown_invoice(self, db_session):
        with pytest.raises(SaleNotFoundError):
            sales_service.lookup_by_invoice("NOPE")

    def test_returns_are_not_found_by_invoice(self, db_session, seller, recorded_sale, build_request):
        result, dress, _ = recorded_sale
        process_transaction(build_request(
            "DEV-F-2000-2", seller.id, [(dress.id, 1, 18990)],
            transaction_type="DEVOLUCAO", original_sale_id=result.sale_id, discount_bps=None,
        ))

        with pytest.raises(SaleNotFoundError):
            sales_service.lookup_by_invoice("DEV-F-2000-2")


class TestSaleDetail:
    def test_detail_includes_movements_and_returns(self, db_session, seller, recorded_sale, build_request):
        result, dress, _ = recorded_sale
        returned = process_transaction(build_request(
            "DEV-F-2000-3", seller.id, [(dress.id, 1, 18990)],
            transaction_type="DEVOLUCAO", original_sale_id=result.sale_id, discount_bps=None,
        ))

        detail = sales_service.get_sale_detail(result.sale_id)

        assert detail["sale"]["invoice_number"] == "F-2000"
        assert len(detail["movements"]) == 2
        assert [r["id"] for r in detail["returns"]] == [returned.sale_id]

    def test_list_sales_filters_by_type(self, db_session, seller, recorded_sale, build_request):
        result, dress, _ = recorded_sale
        process_transaction(build_request(
            "TRC-F-2000-1", seller.id, [(dress.id, 1, 18990)],
            transaction_type="TROCA", original_sale_id=result.sale_id, discount_bps=None,
        ))

        assert [s.invoice_number for s in sales_service.list_sales()] == ["TRC-F-2000-1", "F-2000"]
        assert [s.invoice_number for s in sales_service.list_sales(transaction_type="VENDA")] == ["F-2000"]


class TestSoftDeleteSale:
    def test_manager_can_delete(self, db_session, manager, recorded_sale):
        result, dress, _ = recorded_sale

        sales_service.soft_delete_sale(result.sale_id, resolve_acting_employee(manager.id))

        with pytest.raises(SaleNotFoundError):
            sales_service.lookup_by_invoice("F-2000")
        row = db_session.get(Sale, result.sale_id)
        assert row.is_deleted
        assert row.deletion_status.by == manager.id
        # Goods are not put back by deleting the record
        assert get_quantities(dress.id).store == 3

    def test_seller_cannot_delete(self, db_session, seller, recorded_sale):
        result, _, _ = recorded_sale

        with pytest.raises(PermissionDeniedError):
            sales_service.soft_delete_sale(result.sale_id, resolve_acting_employee(seller.id))

        assert not db_session.get(Sale, result.sale_id).is_deleted

    def test_unknown_sale(self, db_session, manager):
        with pytest.raises(SaleNotFoundError):
            sales_service.soft_delete_sale(31337, resolve_acting_employee(manager.id))
