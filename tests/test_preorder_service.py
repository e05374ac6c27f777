from datetime import datetime, timedelta, timezone
from decimal import Decimal
import uuid

import pytest

from app.core.exceptions import (
    AddressNotFoundError,
    DuplicatePreorderError,
    InvalidStateTransitionError,
    PreorderLimitExceededError,
    PreorderNotAllowedError,
    PreorderNotFoundError,
    PreorderWindowClosedError,
    VariantNotFoundError,
)
from app.models import Preorder, PreorderStatus
from app.schemas.preorder import PreorderCreate, PreorderStatusUpdate
from app.services.inventory_service import InventoryService
from app.services.preorder_service import PreorderService

from tests.factories import (
    future,
    get_total_preorders,
    make_address,
    make_product,
    make_user,
    make_variant,
    past,
)


async def place(session_factory, user, product, **kwargs):
    async with session_factory() as session:
        return await PreorderService(session).create_preorder(
            user.id, PreorderCreate(product_id=product.id, **kwargs)
        )


async def set_status(session_factory, preorder_id, status, admin, **kwargs):
    async with session_factory() as session:
        return await PreorderService(session).update_preorder_status(
            preorder_id, PreorderStatusUpdate(status=status, **kwargs), admin.id
        )


@pytest.fixture
async def headphones(db):
    return await make_product(
        db,
        name="Studio Headphones",
        base_price="149.99",
        allow_preorder=True,
        preorder_price="139.99",
        preorder_limit=100,
        expected_stock_date=future(30),
    )


class TestCreatePreorder:
    async def test_deposit_confirms_preorder(self, session_factory, customer, headphones):
        preorder, summary = await place(
            session_factory, customer, headphones, quantity=2, deposit_amount=Decimal("10")
        )

        assert preorder.status == "CONFIRMED"
        assert preorder.price == Decimal("139.99")
        assert preorder.total_amount == Decimal("279.98")
        assert preorder.deposit_paid == Decimal("10.00")
        assert preorder.remaining_amount == Decimal("269.98")
        assert preorder.expected_date is not None
        assert summary["total_amount"] == Decimal("279.98")
        assert summary["deposit_paid"] == Decimal("10")
        assert summary["remaining_amount"] == Decimal("269.98")
        assert await get_total_preorders(session_factory, headphones.id) == 2

    async def test_without_deposit_stays_pending(self, session_factory, customer, headphones):
        preorder, summary = await place(session_factory, customer, headphones, quantity=1)
        assert preorder.status == "PENDING"
        assert preorder.remaining_amount == Decimal("139.99")
        assert summary["deposit_paid"] == Decimal("0")

    async def test_deposit_is_capped_at_total(self, session_factory, customer, headphones):
        preorder, _ = await place(
            session_factory, customer, headphones, quantity=1, deposit_amount=Decimal("500")
        )
        assert preorder.deposit_paid == Decimal("139.99")
        assert preorder.remaining_amount == Decimal("0.00")

    async def test_sub_cent_deposit_rounds_to_nothing(self, session_factory, customer, headphones):
        preorder, summary = await place(
            session_factory, customer, headphones, quantity=1, deposit_amount=Decimal("0.001")
        )
        assert preorder.status == PreorderStatus.PENDING.value
        assert preorder.deposit_paid == Decimal("0.00")
        assert preorder.remaining_amount == Decimal("139.99")
        assert summary["deposit_paid"] == Decimal("0.00")
        assert summary["deposit_paid"] + summary["remaining_amount"] == summary["total_amount"]

    async def test_deposit_rounds_to_cents(self, session_factory, customer, headphones):
        preorder, summary = await place(
            session_factory, customer, headphones, quantity=1, deposit_amount=Decimal("10.005")
        )
        assert preorder.status == PreorderStatus.CONFIRMED.value
        assert preorder.deposit_paid == Decimal("10.01")
        assert preorder.remaining_amount == Decimal("129.98")
        assert summary["deposit_paid"] == preorder.deposit_paid

    async def test_base_price_when_no_preorder_price(self, db, session_factory, customer):
        product = await make_product(db, base_price="49.50", allow_preorder=True)
        preorder, _ = await place(session_factory, customer, product, quantity=2)
        assert preorder.price == Decimal("49.50")
        assert preorder.total_amount == Decimal("99.00")

    async def test_limit_reports_remaining_capacity(self, db, session_factory, headphones):
        first = await make_user(db, email="first@example.com")
        second = await make_user(db, email="second@example.com")
        third = await make_user(db, email="third@example.com")

        await place(session_factory, first, headphones, quantity=90)

        with pytest.raises(PreorderLimitExceededError) as exc_info:
            await place(session_factory, second, headphones, quantity=11)
        assert exc_info.value.available == 10
        assert exc_info.value.details == {"available": 10, "requested": 11}

        await place(session_factory, second, headphones, quantity=10)
        assert await get_total_preorders(session_factory, headphones.id) == 100

        with pytest.raises(PreorderLimitExceededError) as exc_info:
            await place(session_factory, third, headphones, quantity=1)
        assert exc_info.value.available == 0

    async def test_cancelled_preorders_free_capacity(self, db, session_factory, headphones):
        first = await make_user(db, email="first@example.com")
        second = await make_user(db, email="second@example.com")

        preorder, _ = await place(session_factory, first, headphones, quantity=100)
        async with session_factory() as session:
            await PreorderService(session).cancel_preorder(first.id, preorder.id)

        replacement, _ = await place(session_factory, second, headphones, quantity=100)
        assert replacement.quantity == 100

    async def test_not_allowed(self, db, session_factory, customer):
        product = await make_product(db, allow_preorder=False)
        with pytest.raises(PreorderNotAllowedError):
            await place(session_factory, customer, product)

    async def test_unknown_product(self, session_factory, customer):
        with pytest.raises(PreorderNotAllowedError):
            async with session_factory() as session:
                await PreorderService(session).create_preorder(
                    customer.id, PreorderCreate(product_id=uuid.uuid4())
                )

    async def test_window_closed(self, db, session_factory, customer):
        product = await make_product(db, allow_preorder=True, expected_stock_date=past(1))
        with pytest.raises(PreorderWindowClosedError):
            await place(session_factory, customer, product)
        assert await get_total_preorders(session_factory, product.id) == 0

    async def test_variant_of_other_product(self, db, session_factory, customer, headphones):
        other = await make_product(db, name="Speaker")
        variant = await make_variant(db, other)
        with pytest.raises(VariantNotFoundError):
            await place(session_factory, customer, headphones, product_variant_id=variant.id)

    async def test_duplicate_active_preorder(self, session_factory, customer, headphones):
        existing, _ = await place(session_factory, customer, headphones, quantity=1)

        with pytest.raises(DuplicatePreorderError) as exc_info:
            await place(session_factory, customer, headphones, quantity=1)
        assert exc_info.value.details["existing_preorder_id"] == str(existing.id)
        assert await get_total_preorders(session_factory, headphones.id) == 1

    async def test_duplicate_is_per_variant(self, db, session_factory, customer, headphones):
        black = await make_variant(db, headphones, color="Black")
        white = await make_variant(db, headphones, color="White")
        await place(session_factory, customer, headphones, product_variant_id=black.id)
        preorder, _ = await place(session_factory, customer, headphones, product_variant_id=white.id)
        assert preorder.product_variant_id == white.id

    async def test_can_preorder_again_after_cancelling(self, session_factory, customer, headphones):
        first, _ = await place(session_factory, customer, headphones)
        async with session_factory() as session:
            await PreorderService(session).cancel_preorder(customer.id, first.id)

        second, _ = await place(session_factory, customer, headphones)
        assert second.id != first.id

    async def test_shipping_address_must_be_owned(self, db, session_factory, customer, other_customer, headphones):
        foreign = await make_address(db, other_customer)
        with pytest.raises(AddressNotFoundError):
            await place(session_factory, customer, headphones, shipping_address_id=foreign.id)

    async def test_with_own_address(self, session_factory, customer, address, headphones):
        preorder, _ = await place(session_factory, customer, headphones, shipping_address_id=address.id)
        assert preorder.shipping_address_id == address.id

    async def test_preorders_do_not_touch_inventory(self, db, session_factory, customer, headphones):
        variant = await make_variant(db, headphones, quantity=0)
        await place(session_factory, customer, headphones, product_variant_id=variant.id, quantity=5)

        async with session_factory() as session:
            assert await InventoryService(session).get_quantity(variant.id) == 0


class TestCancelPreorder:
    async def test_cancel_with_deposit_returns_refund_info(self, session_factory, customer, headphones):
        preorder, _ = await place(
            session_factory, customer, headphones, quantity=2, deposit_amount=Decimal("10")
        )
        assert await get_total_preorders(session_factory, headphones.id) == 2

        async with session_factory() as session:
            cancelled, refund_info = await PreorderService(session).cancel_preorder(
                customer.id, preorder.id, "Found it elsewhere"
            )

        assert cancelled.status == "CANCELLED"
        assert cancelled.cancellation_reason == "Found it elsewhere"
        assert cancelled.cancelled_at is not None
        assert refund_info == {
            "amount": Decimal("10.00"),
            "status": "PENDING_REFUND",
            "estimated_days": "5-7",
        }
        assert await get_total_preorders(session_factory, headphones.id) == 0

    async def test_cancel_without_deposit_has_no_refund(self, session_factory, customer, headphones):
        preorder, _ = await place(session_factory, customer, headphones)
        async with session_factory() as session:
            _, refund_info = await PreorderService(session).cancel_preorder(customer.id, preorder.id)
        assert refund_info is None

    async def test_second_cancel_is_rejected(self, session_factory, customer, headphones):
        preorder, _ = await place(session_factory, customer, headphones, quantity=3)
        async with session_factory() as session:
            await PreorderService(session).cancel_preorder(customer.id, preorder.id)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            async with session_factory() as session:
                await PreorderService(session).cancel_preorder(customer.id, preorder.id)

        assert exc_info.value.current_status == "CANCELLED"
        assert exc_info.value.allowed == ["PENDING", "CONFIRMED"]
        assert await get_total_preorders(session_factory, headphones.id) == 0

    async def test_cannot_cancel_once_ready(self, session_factory, customer, admin, headphones):
        preorder, _ = await place(session_factory, customer, headphones, deposit_amount=Decimal("5"))
        await set_status(session_factory, preorder.id, PreorderStatus.READY, admin)

        with pytest.raises(InvalidStateTransitionError):
            async with session_factory() as session:
                await PreorderService(session).cancel_preorder(customer.id, preorder.id)

    async def test_other_users_preorder_is_not_found(self, session_factory, customer, other_customer, headphones):
        preorder, _ = await place(session_factory, customer, headphones)
        with pytest.raises(PreorderNotFoundError):
            async with session_factory() as session:
                await PreorderService(session).cancel_preorder(other_customer.id, preorder.id)


class TestAdminStatus:
    async def test_fulfilment_path(self, session_factory, customer, admin, headphones):
        preorder, _ = await place(session_factory, customer, headphones, deposit_amount=Decimal("5"))

        ready, transition = await set_status(session_factory, preorder.id, PreorderStatus.READY, admin)
        assert ready.status == "READY"
        assert transition["from_status"] == "CONFIRMED"

        shipped, _ = await set_status(
            session_factory, preorder.id, PreorderStatus.SHIPPED, admin,
            tracking_number="TRK-1", notes="Left warehouse",
        )
        assert shipped.shipped_at is not None
        assert shipped.tracking_number == "TRK-1"
        assert shipped.admin_notes == "Left warehouse"

        delivered, _ = await set_status(session_factory, preorder.id, PreorderStatus.DELIVERED, admin)
        assert delivered.delivered_at is not None
        # delivered preorders still count toward the product total
        assert await get_total_preorders(session_factory, headphones.id) == 1

    async def test_expire_releases_capacity(self, session_factory, customer, admin, headphones):
        preorder, _ = await place(session_factory, customer, headphones, quantity=4)
        assert await get_total_preorders(session_factory, headphones.id) == 4

        expired, _ = await set_status(session_factory, preorder.id, PreorderStatus.EXPIRED, admin)

        assert expired.status == "EXPIRED"
        assert await get_total_preorders(session_factory, headphones.id) == 0

    async def test_admin_cancel_releases_capacity(self, session_factory, customer, admin, headphones):
        preorder, _ = await place(session_factory, customer, headphones, quantity=2, deposit_amount=Decimal("1"))
        await set_status(session_factory, preorder.id, PreorderStatus.READY, admin)

        cancelled, _ = await set_status(session_factory, preorder.id, PreorderStatus.CANCELLED, admin)

        assert cancelled.cancellation_reason == "Cancelled by admin"
        assert await get_total_preorders(session_factory, headphones.id) == 0

    @pytest.mark.parametrize("terminal", [PreorderStatus.CANCELLED, PreorderStatus.EXPIRED])
    async def test_terminal_states_are_final(self, session_factory, customer, admin, headphones, terminal):
        preorder, _ = await place(session_factory, customer, headphones)
        await set_status(session_factory, preorder.id, terminal, admin)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await set_status(session_factory, preorder.id, PreorderStatus.CONFIRMED, admin)
        assert exc_info.value.allowed == []

    async def test_expire_only_from_pending(self, session_factory, customer, admin, headphones):
        preorder, _ = await place(session_factory, customer, headphones, deposit_amount=Decimal("5"))
        with pytest.raises(InvalidStateTransitionError):
            await set_status(session_factory, preorder.id, PreorderStatus.EXPIRED, admin)


class TestQueries:
    async def test_detail_includes_timeline(self, session_factory, customer, admin, headphones):
        preorder, _ = await place(session_factory, customer, headphones, quantity=2, deposit_amount=Decimal("70"))
        await set_status(session_factory, preorder.id, PreorderStatus.READY, admin)

        async with session_factory() as session:
            detail = await PreorderService(session).get_preorder_detail(customer.id, preorder.id)

        assert [h.to_status for h in detail["timeline"]] == ["CONFIRMED", "READY"]
        assert detail["calculations"]["total_amount"] == Decimal("279.98")
        assert detail["calculations"]["deposit_percentage"] == 25.0
        assert detail["calculations"]["is_overdue"] is False

    async def test_list_and_distribution(self, session_factory, customer, headphones, db):
        other = await make_product(db, name="Speaker", allow_preorder=True)
        await place(session_factory, customer, headphones, deposit_amount=Decimal("5"))
        await place(session_factory, customer, other)

        async with session_factory() as session:
            service = PreorderService(session)
            items, total = await service.get_preorders(user_id=customer.id)
            pending, pending_total = await service.get_preorders(
                user_id=customer.id, status=PreorderStatus.PENDING
            )
            distribution = await service.get_status_distribution(customer.id)

        assert total == 2
        assert pending_total == 1
        assert pending[0].product_id == other.id
        assert distribution == {"CONFIRMED": 1, "PENDING": 1}


class TestCalculations:
    def _preorder(self, expected_date, deposit="50"):
        return Preorder(
            price=Decimal("100.00"),
            quantity=2,
            deposit_paid=Decimal(deposit),
            expected_date=expected_date,
        )

    def test_days_until_rounds_up(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        result = PreorderService.calculate(self._preorder(now + timedelta(days=2, hours=12)), now=now)
        assert result["days_until_expected"] == 3
        assert result["is_overdue"] is False
        assert result["deposit_percentage"] == 25.0

    def test_overdue(self):
        now = datetime(2026, 1, 10, tzinfo=timezone.utc)
        result = PreorderService.calculate(self._preorder(now - timedelta(days=1)), now=now)
        assert result["is_overdue"] is True
        assert result["days_until_expected"] == -1

    def test_naive_expected_date_is_utc(self):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        result = PreorderService.calculate(self._preorder(datetime(2026, 1, 2)), now=now)
        assert result["days_until_expected"] == 1

    def test_no_expected_date(self):
        result = PreorderService.calculate(self._preorder(None, deposit="0"))
        assert result["days_until_expected"] is None
        assert result["is_overdue"] is False
        assert result["deposit_percentage"] == 0.0
