from typing import Dict, List, Optional, Tuple
from datetime import datetime, timezone
from decimal import Decimal
import secrets
import string
import time
import uuid
import logging

from sqlalchemy import select, func, delete
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import (
    CommerceError,
    EmptyCartError,
    InsufficientStockError,
    OrderNotFoundError,
)
from app.models.cart import CartItem, LineItemKind, stock_affecting
from app.models.order import (
    Order, OrderItem, OrderStatus, OrderStatusHistory, OrderType, PaymentStatus
)
from app.schemas.order import OrderCreate, OrderStatusUpdate
from app.services.address_service import AddressService
from app.services.cart_service import CartService
from app.services.inventory_service import InventoryService
from app.services import state_machine

logger = logging.getLogger(__name__)

_ORDER_NUMBER_ALPHABET = string.digits + string.ascii_uppercase


class OrderService:
    """Service for placing, cancelling and progressing orders."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)

    # ==================== ORDER NUMBER GENERATION ====================

    @staticmethod
    def generate_order_number() -> str:
        """Generate order number: ORD-<epoch ms>-<5 random base36 chars>"""
        suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(5))
        return f"ORD-{int(time.time() * 1000)}-{suffix}"

    # ==================== QUERIES ====================

    async def get_order_by_id(
        self,
        order_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        include_history: bool = False,
    ) -> Optional[Order]:
        """Get order with items and addresses. Scoped to user_id when given."""
        options = [
            selectinload(Order.items),
            selectinload(Order.shipping_address),
            selectinload(Order.billing_address),
        ]
        if include_history:
            options.append(selectinload(Order.status_history))

        stmt = (
            select(Order)
            .options(*options)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_orders(
        self,
        user_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> Tuple[List[Order], int]:
        """Get a user's orders, newest first."""
        filters = [Order.user_id == user_id]
        if status:
            filters.append(Order.status == status.value)

        count_stmt = select(func.count(Order.id)).where(*filters)
        total = (await self.db.execute(count_stmt)).scalar()

        stmt = (
            select(Order)
            .options(
                selectinload(Order.items),
                selectinload(Order.shipping_address),
                selectinload(Order.billing_address),
            )
            .where(*filters)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_order_status(self, user_id: uuid.UUID, order_id: uuid.UUID) -> dict:
        order = await self.get_order_by_id(order_id, user_id=user_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return {
            "id": order.id,
            "order_number": order.order_number,
            "status": order.status,
            "payment_status": order.payment_status,
            "tracking_number": order.tracking_number,
            "allowed_transitions": state_machine.get_allowed_transitions("order", order.status),
            "is_terminal": state_machine.is_terminal("order", order.status),
            "updated_at": order.updated_at,
        }

    async def _lock_order(self, order_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> Order:
        stmt = (
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)

        order = (await self.db.execute(stmt)).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    # ==================== PLACEMENT ====================

    async def _check_stock(self, items: List[CartItem]) -> None:
        """
        Lock the stock rows of every regular variant line and verify each has
        enough on hand. A variant without a stock record has none.
        """
        required: Dict[uuid.UUID, int] = {}
        names: Dict[uuid.UUID, str] = {}
        for item in items:
            required[item.product_variant_id] = required.get(item.product_variant_id, 0) + item.quantity
            names[item.product_variant_id] = item.product.name

        locked = await self.inventory.lock_for_update(required.keys())

        for variant_id, quantity in required.items():
            inventory = locked.get(variant_id)
            available = inventory.quantity if inventory else 0
            if available < quantity:
                logger.warning(
                    f"Order rejected: insufficient stock for {names[variant_id]} "
                    f"(requested {quantity}, available {available})"
                )
                raise InsufficientStockError(names[variant_id], quantity, available)

    async def create_order(self, user_id: uuid.UUID, data: OrderCreate) -> Order:
        """
        Turn the user's cart into an order.

        In one transaction: creates the order with its item snapshots and an
        initial history row, deducts stock for regular variant lines and
        empties the cart. Any failure rolls back all of it.
        """
        cart = await CartService(self.db).get_cart(user_id)
        if cart is None or not cart.items:
            raise EmptyCartError()

        addresses = AddressService(self.db)
        shipping = await addresses.get_owned_address(user_id, data.shipping_address_id)
        billing = shipping
        if data.billing_address_id and data.billing_address_id != shipping.id:
            billing = await addresses.get_owned_address(user_id, data.billing_address_id)

        items = list(cart.items)
        stock_lines = [i for i in items if stock_affecting(i.kind, i.product_variant_id)]
        has_preorder = any(i.kind is LineItemKind.PREORDER for i in items)

        try:
            await self._check_stock(stock_lines)

            total_amount = sum((i.price * i.quantity for i in items), Decimal("0"))

            order = Order(
                order_number=self.generate_order_number(),
                user_id=user_id,
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                payment_method=data.payment_method,
                order_type=(OrderType.PREORDER if has_preorder else OrderType.REGULAR).value,
                total_amount=total_amount,
                shipping_address_id=shipping.id,
                billing_address_id=billing.id,
                notes=data.notes,
                items=[
                    OrderItem(
                        product_id=i.product_id,
                        product_variant_id=i.product_variant_id,
                        product_name=i.product.name,
                        variant_name=i.product_variant.name if i.product_variant else None,
                        quantity=i.quantity,
                        price=i.price,
                        total=i.price * i.quantity,
                        is_preorder=i.is_preorder,
                    )
                    for i in items
                ],
                status_history=[
                    OrderStatusHistory(
                        from_status=None,
                        to_status=OrderStatus.PENDING.value,
                        changed_by=user_id,
                        notes="Order placed",
                    )
                ],
            )
            self.db.add(order)
            await self.db.flush()

            for item in stock_lines:
                await self.inventory.deduct(item.product_variant_id, item.quantity, item.product.name)

            await self.db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
            await self.db.commit()

        except CommerceError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Integrity error creating order for user {user_id}: {e}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating order for user {user_id}: {e}")
            raise

        logger.info(
            f"Order {order.order_number} created for user {user_id}: "
            f"{len(items)} lines, total {total_amount}, type {order.order_type}"
        )
        return await self.get_order_by_id(order.id)

    # ==================== CANCELLATION / STATUS ====================

    async def _apply_cancellation(
        self,
        order: Order,
        changed_by: uuid.UUID,
        reason: Optional[str],
    ) -> None:
        previous = order.status
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = datetime.now(timezone.utc)
        order.cancellation_reason = reason

        for item in order.items:
            if stock_affecting(item.kind, item.product_variant_id):
                await self.inventory.restore(item.product_variant_id, item.quantity)

        self.db.add(
            OrderStatusHistory(
                order_id=order.id,
                from_status=previous,
                to_status=OrderStatus.CANCELLED.value,
                changed_by=changed_by,
                notes=reason,
            )
        )

    async def cancel_order(
        self,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> Order:
        """
        Cancel the caller's order and put its regular stock back.

        Raises:
            OrderNotFoundError: missing or not owned by the caller
            InvalidStateTransitionError: order is past CONFIRMED or already cancelled
        """
        try:
            order = await self._lock_order(order_id, user_id=user_id)
            state_machine.validate_transition("order", order.status, OrderStatus.CANCELLED.value)
            await self._apply_cancellation(order, user_id, reason or "Cancelled by customer")
            await self.db.commit()
        except CommerceError as e:
            await self.db.rollback()
            logger.warning(f"Cancel of order {order_id} rejected: {e.message}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error cancelling order {order_id}: {e}")
            raise

        logger.info(f"Order {order.order_number} cancelled by user {user_id}")
        return await self.get_order_by_id(order_id)

    async def update_order_status(
        self,
        order_id: uuid.UUID,
        data: OrderStatusUpdate,
        changed_by: uuid.UUID,
    ) -> Tuple[Order, dict]:
        """
        Admin status change through the order state machine.

        Returns the order and a transition record. Moving to CANCELLED
        restores stock the same way a customer cancellation does.
        """
        new_status = data.status.value
        try:
            order = await self._lock_order(order_id)
            previous = order.status
            state_machine.validate_transition("order", previous, new_status)

            now = datetime.now(timezone.utc)
            if data.tracking_number:
                order.tracking_number = data.tracking_number

            if new_status == OrderStatus.CANCELLED.value:
                await self._apply_cancellation(order, changed_by, data.notes or "Cancelled by admin")
            else:
                order.status = new_status
                if new_status == OrderStatus.CONFIRMED.value:
                    order.confirmed_at = now
                elif new_status == OrderStatus.SHIPPED.value:
                    order.shipped_at = now
                elif new_status == OrderStatus.DELIVERED.value:
                    order.delivered_at = now

                self.db.add(
                    OrderStatusHistory(
                        order_id=order.id,
                        from_status=previous,
                        to_status=new_status,
                        changed_by=changed_by,
                        notes=data.notes,
                    )
                )

            await self.db.commit()
        except CommerceError as e:
            await self.db.rollback()
            logger.warning(f"Status change of order {order_id} to {new_status} rejected: {e.message}")
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error updating order {order_id}: {e}")
            raise

        logger.info(f"Order {order.order_number}: {previous} -> {new_status} by {changed_by}")
        transition = {
            "from_status": previous,
            "to_status": new_status,
            "changed_by": changed_by,
            "timestamp": now,
        }
        return await self.get_order_by_id(order_id), transition

    async def has_delivered_purchase(self, user_id: uuid.UUID, product_id: uuid.UUID) -> bool:
        """Whether the user has a DELIVERED order containing the product."""
        stmt = (
            select(func.count(OrderItem.id))
            .join(Order, Order.id == OrderItem.order_id)
            .where(
                Order.user_id == user_id,
                Order.status == OrderStatus.DELIVERED.value,
                OrderItem.product_id == product_id,
            )
        )
        return ((await self.db.execute(stmt)).scalar() or 0) > 0
