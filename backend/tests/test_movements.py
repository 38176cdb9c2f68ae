"""Movement log and manual stock adjustments."""

import pytest

from pdv.models import StockMovement
from pdv.services.employee_service import resolve_acting_employee
from pdv.services.movement_service import adjust_stock, append_movement, list_movements, plan_manual_adjustment
from pdv.services.repository import soft_delete
from pdv.services.stock_service import StockLevel, get_quantities
from pdv.validation import (
    EmployeeNotActiveError,
    InsufficientStockError,
    PermissionDeniedError,
    ValidationError,
    VariantNotFoundError,
)


# =============================================================================
# PLANNING
# =============================================================================


class TestPlanManualAdjustment:
    def test_entrada_defaults_to_store(self):
        assert plan_manual_adjustment("entrada", 4, None, None) == ("entrada", 4, 0, None, "loja")

    def test_entrada_to_warehouse(self):
        assert plan_manual_adjustment("entrada", 4, None, "estoque") == ("entrada", 0, 4, None, "estoque")

    @pytest.mark.parametrize("kind", ["saida", "perda", "venda"])
    def test_outbound_defaults_to_store(self, kind):
        assert plan_manual_adjustment(kind, 2, None, None) == ("saida", -2, 0, "loja", None)

    def test_transfer_store_to_warehouse(self):
        assert plan_manual_adjustment("transferencia", 3, "loja", "estoque") == (
            "transferencia", -3, 3, "loja", "estoque",
        )

    def test_transfer_warehouse_to_store(self):
        assert plan_manual_adjustment("transferencia", 3, "estoque", "loja") == (
            "transferencia", 3, -3, "estoque", "loja",
        )

    def test_transfer_needs_two_distinct_locations(self):
        with pytest.raises(ValidationError):
            plan_manual_adjustment("transferencia", 1, "loja", None)
        with pytest.raises(ValidationError):
            plan_manual_adjustment("transferencia", 1, "loja", "loja")

    def test_return_kinds_are_not_manual(self):
        with pytest.raises(ValidationError):
            plan_manual_adjustment("devolucao", 1, None, None)

    def test_unknown_location(self):
        with pytest.raises(ValidationError):
            plan_manual_adjustment("entrada", 1, None, "deposito")


# =============================================================================
# ADJUSTMENTS
# =============================================================================


class TestAdjustStock:
    def test_entrada_increments_and_logs(self, db_session, manager, make_variant):
        variant = make_variant(store=1, warehouse=0)
        actor = resolve_acting_employee(manager.id)

        movement, level = adjust_stock(
            actor=actor, variant_id=variant.id, kind="entrada", quantity=5, note="Reposição",
        )

        assert level == StockLevel(store=6, warehouse=0)
        assert movement.id is not None
        assert movement.employee_id == manager.id
        assert movement.direction == "entrada"
        assert movement.store_delta == 5
        assert movement.note == "Reposição"
        assert get_quantities(variant.id) == StockLevel(store=6, warehouse=0)

    def test_transfer_moves_between_locations(self, db_session, manager, make_variant):
        variant = make_variant(store=4, warehouse=0)
        actor = resolve_acting_employee(manager.id)

        _, level = adjust_stock(
            actor=actor, variant_id=variant.id, kind="transferencia", quantity=3,
            origin="loja", destination="estoque",
        )

        assert level == StockLevel(store=1, warehouse=3)
        assert level.total == 4

    def test_loss_beyond_stock_is_rejected(self, db_session, manager, make_variant):
        variant = make_variant(store=2, warehouse=9)
        actor = resolve_acting_employee(manager.id)

        with pytest.raises(InsufficientStockError):
            adjust_stock(actor=actor, variant_id=variant.id, kind="perda", quantity=3)

        assert get_quantities(variant.id) == StockLevel(store=2, warehouse=9)
        assert db_session.query(StockMovement).count() == 0

    def test_seller_cannot_adjust(self, db_session, seller, make_variant):
        variant = make_variant(store=2)
        actor = resolve_acting_employee(seller.id)

        with pytest.raises(PermissionDeniedError):
            adjust_stock(actor=actor, variant_id=variant.id, kind="entrada", quantity=1)

        assert get_quantities(variant.id).store == 2

    def test_unknown_variant(self, db_session, manager):
        actor = resolve_acting_employee(manager.id)

        with pytest.raises(VariantNotFoundError):
            adjust_stock(actor=actor, variant_id=777, kind="entrada", quantity=1)


# =============================================================================
# APPEND-ONLY LOG
# =============================================================================


class TestMovementLog:
    def test_append_requires_known_rows(self, db_session, manager, make_variant):
        variant = make_variant()

        with pytest.raises(VariantNotFoundError):
            append_movement(variant_id=555, employee_id=manager.id, kind="entrada", direction="entrada", quantity=1)
        with pytest.raises(EmployeeNotActiveError):
            append_movement(variant_id=variant.id, employee_id=555, kind="entrada", direction="entrada", quantity=1)
        db_session.rollback()

    def test_movements_cannot_be_edited(self, db_session, manager, make_variant):
        variant = make_variant(store=1)
        actor = resolve_acting_employee(manager.id)
        movement, _ = adjust_stock(actor=actor, variant_id=variant.id, kind="entrada", quantity=1)

        movement.quantity = 99
        with pytest.raises(ValueError):
            db_session.commit()
        db_session.rollback()

        assert db_session.get(StockMovement, movement.id).quantity == 1

    def test_movements_cannot_be_deleted(self, db_session, manager, make_variant):
        variant = make_variant(store=1)
        actor = resolve_acting_employee(manager.id)
        movement, _ = adjust_stock(actor=actor, variant_id=variant.id, kind="entrada", quantity=1)

        db_session.delete(movement)
        with pytest.raises(ValueError):
            db_session.commit()
        db_session.rollback()

        assert db_session.query(StockMovement).count() == 1

    def test_soft_delete_hides_movement_from_history(self, db_session, manager, make_variant):
        variant = make_variant(store=1)
        actor = resolve_acting_employee(manager.id)
        movement, _ = adjust_stock(actor=actor, variant_id=variant.id, kind="entrada", quantity=1)

        soft_delete(movement, deleted_by=manager.id)
        db_session.commit()

        assert list_movements(variant_id=variant.id) == []
        assert db_session.query(StockMovement).count() == 1

    def test_list_filters_and_orders_newest_first(self, db_session, manager, make_variant):
        first = make_variant(store=10)
        second = make_variant(store=10)
        actor = resolve_acting_employee(manager.id)
        adjust_stock(actor=actor, variant_id=first.id, kind="entrada", quantity=1)
        adjust_stock(actor=actor, variant_id=first.id, kind="perda", quantity=2)
        adjust_stock(actor=actor, variant_id=second.id, kind="entrada", quantity=3)

        history = list_movements(variant_id=first.id)
        assert [m.kind for m in history] == ["perda", "entrada"]

        assert [m.variant_id for m in list_movements(kind="entrada")] == [second.id, first.id]
        assert len(list_movements(limit=1)) == 1
