"""Return and exchange path of the transaction processor."""

import pytest

from pdv.models import Sale, StockMovement
from pdv.services.employee_service import resolve_acting_employee
from pdv.services.repository import soft_delete
from pdv.services.sales_service import soft_delete_sale
from pdv.services.stock_service import StockLevel, get_quantities
from pdv.services.transaction_service import process_transaction, returned_quantities, sold_quantities
from pdv.validation import (
    OriginalSaleNotFoundError,
    ReturnQuantityExceededError,
    ValidationError,
)


@pytest.fixture
def original_sale(db_session, seller, make_variant, build_request):
    """F-1000: 3 units of a variant (store 5 -> 2) at 10.00 with 10% off."""
    variant = make_variant(store=5, warehouse=0, price_cents=1000)
    result = process_transaction(build_request(
        "F-1000", seller.id, [(variant.id, 3, 1000)], discount_bps=1000,
    ))
    return result, variant


def return_request(build_request, invoice, employee_id, original_sale_id, items, **kwargs):
    kwargs.setdefault("transaction_type", "DEVOLUCAO")
    kwargs.setdefault("discount_bps", None)
    return build_request(invoice, employee_id, items, original_sale_id=original_sale_id, **kwargs)


class TestReturnDestinations:
    def test_return_to_store(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale

        result = process_transaction(return_request(
            build_request, "DEV-F-1000-000001", seller.id, sale.sale_id, [(variant.id, 1, 1000)],
        ))

        assert result.transaction_type == "DEVOLUCAO"
        assert result.message == "Devolução registrada com sucesso"
        assert result.subtotal_cents == -1000
        assert result.discount_cents == -100
        assert result.total_cents == -900
        assert get_quantities(variant.id) == StockLevel(store=3, warehouse=0)

        row = db_session.get(Sale, result.sale_id)
        assert row.original_sale_id == sale.sale_id
        assert row.return_destination == "LOJA"
        assert row.discount_bps == 1000

        movement = db_session.query(StockMovement).filter_by(sale_id=result.sale_id).one()
        assert movement.kind == "devolucao"
        assert movement.direction == "entrada"
        assert movement.store_delta == 1
        assert movement.destination == "loja"
        assert movement.note == "DEVOLUCAO - Fatura: DEV-F-1000-000001 - Original: F-1000"

    def test_return_to_warehouse(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale

        result = process_transaction(return_request(
            build_request, "DEV-2", seller.id, sale.sale_id, [(variant.id, 2, 1000)],
            return_destination="ESTOQUE",
        ))

        assert get_quantities(variant.id) == StockLevel(store=2, warehouse=2)
        movement = db_session.query(StockMovement).filter_by(sale_id=result.sale_id).one()
        assert movement.warehouse_delta == 2
        assert movement.destination == "estoque"

    def test_return_to_supplier_leaves_stock_untouched(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale

        result = process_transaction(return_request(
            build_request, "DEV-3", seller.id, sale.sale_id, [(variant.id, 1, 1000)],
            return_destination="FORNECEDOR",
        ))

        assert get_quantities(variant.id) == StockLevel(store=2, warehouse=0)
        movement = db_session.query(StockMovement).filter_by(sale_id=result.sale_id).one()
        assert movement.kind == "devolucao_fornecedor"
        assert movement.store_delta == 0
        assert movement.warehouse_delta == 0
        assert movement.destination == "fornecedor"

    def test_exchange(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale

        result = process_transaction(return_request(
            build_request, "TRC-1", seller.id, sale.sale_id, [(variant.id, 1, 1000)],
            transaction_type="TROCA",
        ))

        assert result.message == "Troca registrada com sucesso"
        assert result.total_cents < 0
        movement = db_session.query(StockMovement).filter_by(sale_id=result.sale_id).one()
        assert movement.kind == "troca"
        assert movement.note.startswith("TROCA - Fatura: TRC-1")


class TestReturnDiscount:
    def test_explicit_discount_overrides_original(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale

        result = process_transaction(return_request(
            build_request, "DEV-4", seller.id, sale.sale_id, [(variant.id, 1, 1000)], discount_bps=0,
        ))

        assert result.total_cents == -1000


class TestReturnableQuantity:
    def test_cannot_return_more_than_sold(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale

        with pytest.raises(ReturnQuantityExceededError):
            process_transaction(return_request(
                build_request, "DEV-5", seller.id, sale.sale_id, [(variant.id, 4, 1000)],
            ))

        assert get_quantities(variant.id).store == 2
        assert db_session.query(Sale).count() == 1

    def test_earlier_returns_count_against_the_sale(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale
        process_transaction(return_request(
            build_request, "DEV-6", seller.id, sale.sale_id, [(variant.id, 2, 1000)],
        ))

        assert sold_quantities(sale.sale_id) == {variant.id: 3}
        assert returned_quantities(sale.sale_id) == {variant.id: 2}

        with pytest.raises(ReturnQuantityExceededError) as exc_info:
            process_transaction(return_request(
                build_request, "DEV-7", seller.id, sale.sale_id, [(variant.id, 2, 1000)],
            ))

        assert exc_info.value.details["items"][0]["already_returned"] == 2

    def test_supplier_returns_also_count(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale
        process_transaction(return_request(
            build_request, "DEV-8", seller.id, sale.sale_id, [(variant.id, 3, 1000)],
            return_destination="FORNECEDOR",
        ))

        with pytest.raises(ReturnQuantityExceededError):
            process_transaction(return_request(
                build_request, "DEV-9", seller.id, sale.sale_id, [(variant.id, 1, 1000)],
            ))

    def test_deleted_return_header_still_counts(self, db_session, seller, manager, original_sale, build_request):
        sale, variant = original_sale
        first = process_transaction(return_request(
            build_request, "DEV-10", seller.id, sale.sale_id, [(variant.id, 3, 1000)],
        ))
        assert get_quantities(variant.id).store == 5

        soft_delete_sale(first.sale_id, resolve_acting_employee(manager.id))

        assert returned_quantities(sale.sale_id) == {variant.id: 3}
        with pytest.raises(ReturnQuantityExceededError):
            process_transaction(return_request(
                build_request, "DEV-11", seller.id, sale.sale_id, [(variant.id, 3, 1000)],
            ))
        assert get_quantities(variant.id).store == 5

    def test_variant_not_on_original_sale(self, db_session, seller, original_sale, make_variant, build_request):
        sale, _ = original_sale
        other = make_variant(store=1)

        with pytest.raises(ReturnQuantityExceededError):
            process_transaction(return_request(
                build_request, "DEV-10", seller.id, sale.sale_id, [(other.id, 1, 1000)],
            ))


class TestOriginalSale:
    def test_original_sale_required(self, db_session, seller, original_sale, build_request):
        _, variant = original_sale

        with pytest.raises(ValidationError):
            process_transaction(build_request(
                "DEV-11", seller.id, [(variant.id, 1, 1000)],
                transaction_type="DEVOLUCAO", discount_bps=None,
            ))

    def test_unknown_original_sale(self, db_session, seller, original_sale, build_request):
        _, variant = original_sale

        with pytest.raises(OriginalSaleNotFoundError):
            process_transaction(return_request(
                build_request, "DEV-12", seller.id, 9999, [(variant.id, 1, 1000)],
            ))

    def test_return_cannot_target_another_return(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale
        first_return = process_transaction(return_request(
            build_request, "DEV-13", seller.id, sale.sale_id, [(variant.id, 1, 1000)],
        ))

        with pytest.raises(OriginalSaleNotFoundError):
            process_transaction(return_request(
                build_request, "DEV-14", seller.id, first_return.sale_id, [(variant.id, 1, 1000)],
            ))

    def test_soft_deleted_original_sale(self, db_session, seller, original_sale, build_request):
        sale, variant = original_sale
        soft_delete(db_session.get(Sale, sale.sale_id), deleted_by=seller.id)
        db_session.commit()

        with pytest.raises(OriginalSaleNotFoundError):
            process_transaction(return_request(
                build_request, "DEV-15", seller.id, sale.sale_id, [(variant.id, 1, 1000)],
            ))
