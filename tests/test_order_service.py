"""Service-level tests for checkout, stock reservation and order lifecycle."""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, update
from sqlalchemy.future import select

from storefront.core.exceptions import BusinessRuleError, NotFoundError, StateError, ValidationError
from storefront.models import Order, OrderStatus, ProductVariant, UserActivity, Voucher, VoucherUsage
from storefront.schemas.order_schemas import OrderCreate, OrderItemIn, OrderTotalRequest
from storefront.services.order_service import (
    bulk_update_status,
    can_review_product,
    cancel_order,
    change_order_status,
    compute_order_total,
    create_order,
    delete_order,
    get_order_stats,
    get_order_trends,
    get_top_products,
)
from storefront.services import voucher_service
from storefront.services.stock_service import decrement_stock


async def stock_of(db, variant_id):
    result = await db.execute(select(ProductVariant.stock).where(ProductVariant.id == variant_id))
    return result.scalar()


async def count_rows(db, model, *filters):
    result = await db.execute(select(func.count()).select_from(model).where(*filters))
    return result.scalar()


def order_payload(seed, items, voucher_code=None, address=None):
    return OrderCreate(
        items=[OrderItemIn(variant_id=v.id, quantity=q) for v, q in items],
        address_id=(address or seed.home).id,
        payment_method_id=seed.cod.id,
        voucher_code=voucher_code,
    )


class TestCalculateTotal:
    def test_voucher_scenario(self, run, seed):
        payload = OrderTotalRequest(
            items=[OrderItemIn(variant_id=seed.red.id, quantity=2)],
            address_id=seed.home.id,
            voucher_code="save20",
        )
        totals = run(compute_order_total, payload, seed.alice)

        assert totals.subtotal == Decimal("500000.00")
        assert totals.shipping_fee == Decimal("30000.00")
        assert totals.discount_amount == Decimal("80000.00")
        assert totals.final_total == Decimal("450000.00")
        assert totals.voucher_code == "SAVE20"

    def test_has_no_side_effects(self, run, seed):
        payload = OrderTotalRequest(
            items=[OrderItemIn(variant_id=seed.red.id, quantity=2)],
            address_id=seed.home.id,
            voucher_code="SAVE20",
        )
        run(compute_order_total, payload, seed.alice)

        assert run(stock_of, seed.red.id) == 10
        assert run(count_rows, VoucherUsage) == 0

    def test_inactive_variant_is_rejected(self, run, seed):
        async def deactivate(db):
            await db.execute(update(ProductVariant).where(ProductVariant.id == seed.green.id).values(is_active=False))
            await db.commit()

        run(deactivate)
        payload = OrderTotalRequest(items=[OrderItemIn(variant_id=seed.green.id, quantity=1)], address_id=seed.home.id)
        with pytest.raises(BusinessRuleError) as exc:
            run(compute_order_total, payload, seed.alice)
        assert exc.value.code == "OUT_OF_STOCK"

    def test_empty(self, run, seed):
        with pytest.raises(ValidationError) as exc:
            run(compute_order_total, OrderTotalRequest(items=[], address_id=seed.home.id), seed.alice)
        assert exc.value.code == "EMPTY_ORDER"

    def test_someone_elses_address(self, run, seed):
        payload = OrderTotalRequest(items=[OrderItemIn(variant_id=seed.red.id, quantity=1)], address_id=seed.home.id)
        with pytest.raises(NotFoundError) as exc:
            run(compute_order_total, payload, seed.bob)
        assert exc.value.code == "ADDRESS_NOT_FOUND"

    def test_unknown_variant(self, run, seed):
        payload = OrderTotalRequest(items=[OrderItemIn(variant_id=9999, quantity=1)], address_id=seed.home.id)
        with pytest.raises(NotFoundError) as exc:
            run(compute_order_total, payload, seed.alice)
        assert exc.value.code == "VARIANT_NOT_FOUND"


class TestCreateOrder:
    def test_creates_pending_order(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 2)], "SAVE20"), seed.alice)

        assert order.status == OrderStatus.PENDING
        assert order.order_code.startswith("ORD-")
        assert order.final_total == Decimal("450000.00")
        assert order.final_total == order.subtotal + order.shipping_fee - order.discount_amount
        assert order.shipping_address["province"] == "hn"
        assert [h["status"] for h in order.status_history] == ["pending"]
        assert len(order.items) == 1
        assert order.items[0].unit_price == Decimal("250000.00")

        assert run(stock_of, seed.red.id) == 8
        assert run(count_rows, VoucherUsage, VoucherUsage.user_id == seed.alice.id) == 1
        assert run(count_rows, UserActivity, UserActivity.user_id == seed.alice.id) == 1

    def test_duplicate_lines_are_merged(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.green, 1), (seed.green, 2)]), seed.alice)

        assert len(order.items) == 1
        assert order.items[0].quantity == 3
        assert run(stock_of, seed.green.id) == 2

    def test_out_of_stock_rolls_back_everything(self, run, seed):
        payload = order_payload(seed, [(seed.red, 1), (seed.blue, 2)])
        with pytest.raises(BusinessRuleError) as exc:
            run(create_order, payload, seed.alice)

        assert exc.value.code == "OUT_OF_STOCK"
        assert run(stock_of, seed.red.id) == 10
        assert run(stock_of, seed.blue.id) == 1
        assert run(count_rows, Order) == 0

    def test_voucher_failure_releases_stock(self, run, seed):
        payload = order_payload(seed, [(seed.green, 1)], "SAVE20")
        with pytest.raises(BusinessRuleError) as exc:
            run(create_order, payload, seed.alice)

        assert exc.value.code == "BELOW_MINIMUM"
        assert run(stock_of, seed.green.id) == 5

    def test_one_time_voucher_cannot_be_reused(self, run, seed):
        run(create_order, order_payload(seed, [(seed.red, 2)], "SAVE20"), seed.alice)
        with pytest.raises(BusinessRuleError) as exc:
            run(create_order, order_payload(seed, [(seed.red, 2)], "SAVE20"), seed.alice)

        assert exc.value.code == "USAGE_EXCEEDED"
        assert run(stock_of, seed.red.id) == 8

        async def used_count(db):
            return (await db.execute(select(Voucher.used_count).where(Voucher.id == seed.voucher.id))).scalar()

        assert run(used_count) == 1

    def test_voucher_race_loser_gets_usage_exceeded(self, run, seed, monkeypatch):
        run(create_order, order_payload(seed, [(seed.red, 2)], "SAVE20"), seed.alice)

        async def counted_before_winner_committed(db, voucher_id, user_id):
            return 0

        monkeypatch.setattr(voucher_service, "count_user_usages", counted_before_winner_committed)
        with pytest.raises(BusinessRuleError) as exc:
            run(create_order, order_payload(seed, [(seed.red, 2)], "SAVE20"), seed.alice)

        assert exc.value.code == "USAGE_EXCEEDED"
        assert run(stock_of, seed.red.id) == 8
        assert run(count_rows, Order) == 1
        assert run(count_rows, VoucherUsage) == 1

    def test_missing_payment_method(self, run, seed):
        payload = order_payload(seed, [(seed.red, 1)])
        payload.payment_method_id = None
        with pytest.raises(ValidationError) as exc:
            run(create_order, payload, seed.alice)
        assert exc.value.code == "MISSING_PAYMENT_METHOD"

    def test_missing_address(self, run, seed):
        payload = order_payload(seed, [(seed.red, 1)])
        payload.address_id = None
        with pytest.raises(ValidationError) as exc:
            run(create_order, payload, seed.alice)
        assert exc.value.code == "MISSING_ADDRESS"


class TestConcurrentStock:
    def test_racing_decrements_never_oversell(self, session_factory, seed):
        """Five buyers race for the three green shirts left after a restock change."""

        async def set_stock(db):
            variant = await db.get(ProductVariant, seed.green.id)
            variant.stock = 3
            await db.commit()

        async def buy_one():
            async with session_factory() as db:
                try:
                    await decrement_stock(db, seed.green.id, 1)
                    await db.commit()
                    return True
                except BusinessRuleError:
                    await db.rollback()
                    return False

        async def race():
            async with session_factory() as db:
                await set_stock(db)
            return await asyncio.gather(*(buy_one() for _ in range(5)))

        results = asyncio.run(race())

        async def remaining():
            async with session_factory() as db:
                return await stock_of(db, seed.green.id)

        assert results.count(True) == 3
        assert asyncio.run(remaining()) == 0


class TestLifecycle:
    def test_customer_cancels_pending(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 2)]), seed.alice)
        cancelled = run(cancel_order, order.id, seed.alice, "changed my mind")

        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.cancel_reason == "changed my mind"
        assert [h["status"] for h in cancelled.status_history] == ["pending", "cancelled"]
        assert run(stock_of, seed.red.id) == 10

    def test_cancelling_processing_restores_stock_once(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 3), (seed.green, 2)]), seed.alice)
        run(change_order_status, order.id, OrderStatus.PROCESSING, seed.admin)
        run(cancel_order, order.id, seed.admin)

        assert run(stock_of, seed.red.id) == 10
        assert run(stock_of, seed.green.id) == 5

        with pytest.raises(StateError) as exc:
            run(cancel_order, order.id, seed.admin)
        assert exc.value.code == "INVALID_TRANSITION"
        assert run(stock_of, seed.red.id) == 10

    def test_customer_cannot_cancel_processing(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 1)]), seed.alice)
        run(change_order_status, order.id, OrderStatus.PROCESSING, seed.admin)

        with pytest.raises(StateError) as exc:
            run(cancel_order, order.id, seed.alice)
        assert exc.value.code == "INVALID_TRANSITION"
        assert run(stock_of, seed.red.id) == 9

    def test_customer_cannot_touch_others_orders(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 1)]), seed.alice)
        with pytest.raises(NotFoundError) as exc:
            run(cancel_order, order.id, seed.bob)
        assert exc.value.code == "ORDER_NOT_FOUND"

    def test_pending_to_delivered_rejected(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 1)]), seed.alice)
        with pytest.raises(StateError) as exc:
            run(change_order_status, order.id, OrderStatus.DELIVERED, seed.admin)
        assert exc.value.code == "INVALID_TRANSITION"

    def test_full_happy_path(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 1)]), seed.alice)
        for target in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            order = run(change_order_status, order.id, target, seed.admin, f"to {target.value}")

        assert order.status == OrderStatus.DELIVERED
        assert [h["status"] for h in order.status_history] == ["pending", "processing", "shipped", "delivered"]
        assert order.status_history[-1]["actor"] == "admin"
        assert run(can_review_product, seed.alice, seed.product.id) is True
        assert run(can_review_product, seed.bob, seed.product.id) is False


class TestDeleteOrder:
    def test_only_cancelled_orders(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 1)]), seed.alice)
        with pytest.raises(StateError) as exc:
            run(delete_order, order.id, seed.admin)
        assert exc.value.code == "INVALID_STATE"

    def test_soft_delete_hides_order(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 1)]), seed.alice)
        run(cancel_order, order.id, seed.alice)
        run(delete_order, order.id, seed.admin)

        assert run(count_rows, Order, Order.id == order.id) == 1
        with pytest.raises(NotFoundError):
            run(delete_order, order.id, seed.admin)

    def test_hard_delete_removes_row(self, run, seed):
        order = run(create_order, order_payload(seed, [(seed.red, 2)], "SAVE20"), seed.alice)
        run(cancel_order, order.id, seed.admin)
        run(delete_order, order.id, seed.admin, hard=True)

        assert run(count_rows, Order, Order.id == order.id) == 0
        # voucher usage survives, detached from the order
        assert run(count_rows, VoucherUsage, VoucherUsage.order_id.is_(None)) == 1


class TestAdminTools:
    def test_stats(self, run, seed):
        delivered = run(create_order, order_payload(seed, [(seed.red, 2)], "SAVE20"), seed.alice)
        for target in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            run(change_order_status, delivered.id, target, seed.admin)
        run(create_order, order_payload(seed, [(seed.green, 1)]), seed.alice)

        stats = run(get_order_stats)
        assert stats.total_orders == 2
        assert stats.total_revenue == Decimal("450000.00")
        assert stats.average_order_value == Decimal("450000.00")
        assert stats.status_counts == {
            "pending": 1, "processing": 0, "shipped": 0, "delivered": 1, "cancelled": 0,
        }

    def test_top_products_skip_cancelled_orders(self, run, seed):
        run(create_order, order_payload(seed, [(seed.red, 2), (seed.green, 1)]), seed.alice)
        run(create_order, order_payload(seed, [(seed.green, 3)]), seed.alice)
        cancelled = run(create_order, order_payload(seed, [(seed.red, 5)]), seed.alice)
        run(cancel_order, cancelled.id, seed.admin)

        top = run(get_top_products, 5)
        assert len(top) == 1
        assert top[0].product_id == seed.product.id
        assert top[0].product_name == "Linen Shirt"
        assert top[0].total_quantity == 6
        assert top[0].order_count == 2
        assert top[0].revenue == Decimal("900000.00")

    def test_trends_group_by_day(self, run, seed):
        delivered = run(create_order, order_payload(seed, [(seed.red, 2)], "SAVE20"), seed.alice)
        for target in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            run(change_order_status, delivered.id, target, seed.admin)
        run(create_order, order_payload(seed, [(seed.green, 1)]), seed.alice)

        trends = run(get_order_trends, 7)
        assert (trends.end_date - trends.start_date).days == 6
        assert trends.total_in_period == 2
        assert trends.revenue_in_period == Decimal("450000.00")
        assert sum(p.order_count for p in trends.trends) == 2

    def test_trends_reject_inverted_range(self, run, seed):
        today = datetime.now(timezone.utc).date()
        with pytest.raises(ValidationError) as exc:
            run(get_order_trends, 30, today, today - timedelta(days=1))
        assert exc.value.code == "INVALID_DATE_RANGE"

    def test_bulk_update_reports_failures(self, session_factory, seed):
        async def scenario():
            async with session_factory() as db:
                first = await create_order(db, order_payload(seed, [(seed.red, 1)]), seed.alice)
                second = await create_order(db, order_payload(seed, [(seed.green, 1)]), seed.alice)
                first_id, second_id = first.id, second.id
                await change_order_status(db, second_id, OrderStatus.PROCESSING, seed.admin)

                result = await bulk_update_status(
                    db, [first_id, second_id, 4242], OrderStatus.PROCESSING, seed.admin, "batch"
                )
                return result, first_id, second_id

        result, first_id, second_id = asyncio.run(scenario())

        assert result.updated == [first_id]
        failures = {f.order_id: f.code for f in result.failed}
        assert failures == {second_id: "INVALID_TRANSITION", 4242: "ORDER_NOT_FOUND"}
