"""
Order service for managing order business logic and status transitions.

Order creation runs as a small saga: stock is reserved with conditional
updates first, the order document is inserted second, and a failure in
either step releases whatever was reserved. Status changes are applied with
a compare-and-set on the status the caller observed, so two concurrent
updates cannot both win.
"""
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    StockError,
    ValidationError,
)
from app.models.order import (
    LogisticsEntry,
    Order,
    OrderItem,
    OrderStatus,
    PaymentStatus,
    ShippingAddress,
    TERMINAL_STATUSES,
)
from app.models.product import ProductStatus
from app.models.user import UserRole, full_name
from app.utils.helpers import format_document, get_current_timestamp, id_filter, to_object_id

logger = logging.getLogger(__name__)


class OrderService:
    """Service class for order management business logic."""

    TAX_RATE = 0.18
    FREE_SHIPPING_THRESHOLD = 1000
    SHIPPING_FEE = 100

    # Valid status transitions
    STATUS_TRANSITIONS = {
        "Pending": ["Confirmed", "Processing", "Cancelled"],
        "Confirmed": ["Processing", "Shipped", "Cancelled"],
        "Processing": ["Shipped", "Cancelled"],
        "Shipped": ["Delivered", "Cancelled"],
        "Delivered": [],  # Final state
        "Cancelled": []   # Final state
    }

    @staticmethod
    def calculate_totals(line_totals: Sequence[float]) -> Dict[str, float]:
        """
        Compute the monetary fields of an order.

        tax is 18% of the subtotal; shipping is free strictly above 1000,
        otherwise a flat 100.
        """
        subtotal = round(sum(line_totals), 2)
        tax = round(subtotal * OrderService.TAX_RATE, 2)
        shipping = 0 if subtotal > OrderService.FREE_SHIPPING_THRESHOLD else OrderService.SHIPPING_FEE
        return {
            "subtotal": subtotal,
            "tax": tax,
            "shipping": float(shipping),
            "total_amount": round(subtotal + tax + shipping, 2)
        }

    @staticmethod
    def validate_status_transition(current_status: str, new_status: str) -> Tuple[bool, Optional[str]]:
        """
        Validate if status transition is allowed.
        Returns (is_valid, error_message)
        """
        if current_status not in OrderService.STATUS_TRANSITIONS:
            return False, f"Invalid current status: {current_status}"

        valid_next_statuses = OrderService.STATUS_TRANSITIONS[current_status]

        if new_status not in valid_next_statuses:
            if not valid_next_statuses:
                return False, f"Order is in final state '{current_status}' and cannot be modified"
            return False, f"Cannot transition from '{current_status}' to '{new_status}'. Valid transitions: {', '.join(valid_next_statuses)}"

        return True, None

    @staticmethod
    def can_access_order(order: dict, user: dict) -> bool:
        """Admins can access every order; everyone else only their own."""
        if user.get("role") == UserRole.ADMIN.value:
            return True
        return str(order.get("buyer_id")) == str(user.get("_id"))

    @staticmethod
    def build_logistics_entry(status: str, description: str, location: Optional[str] = None) -> dict:
        """Build a logistics timeline entry ready for ``$push``."""
        return LogisticsEntry(status=status, description=description, location=location).model_dump()

    @staticmethod
    async def get_order_document(order_id: str, db: AsyncIOMotorDatabase) -> dict:
        """Load an order by Mongo id or by its human readable order id."""
        if to_object_id(order_id) is not None:
            order = await db.orders.find_one(id_filter(order_id))
        else:
            order = await db.orders.find_one({"order_id": order_id})

        if not order:
            raise NotFoundError("Order", order_id)
        return order

    @staticmethod
    async def get_order(order_id: str, user: dict, db: AsyncIOMotorDatabase) -> dict:
        """Return one order, checking that the caller may see it."""
        order = await OrderService.get_order_document(order_id, db)
        if not OrderService.can_access_order(order, user):
            raise AuthorizationError()
        return format_document(order)

    @staticmethod
    async def create_order(
        buyer: dict,
        items: Sequence[Any],
        shipping_address: Any,
        db: AsyncIOMotorDatabase,
        payment_method: str = "razorpay",
        notes: Optional[str] = None
    ) -> dict:
        """
        Create an order for ``buyer``.

        ``items`` are objects with ``product_id`` and ``quantity``. The whole
        order is rejected if any product is missing, unapproved, unavailable
        or short on stock; no partial orders are created.
        """
        if not items:
            raise ValidationError("Order must contain at least one item")

        quantities: "OrderedDict[str, int]" = OrderedDict()
        for item in items:
            if item.product_id in quantities:
                raise ValidationError(f"Duplicate product in order: {item.product_id}")
            if item.quantity < 1:
                raise ValidationError(f"Invalid quantity for product {item.product_id}")
            quantities[item.product_id] = item.quantity

        object_ids = []
        for product_id in quantities:
            object_id = to_object_id(product_id)
            if object_id is None:
                raise ValidationError(f"Invalid product ID: {product_id}")
            object_ids.append(object_id)

        # Validate and fetch products
        products = await db.products.find({
            "_id": {"$in": object_ids},
            "status": ProductStatus.APPROVED.value,
            "is_available": True
        }).to_list(length=len(object_ids))
        products_by_id = {str(product["_id"]): product for product in products}

        if len(products_by_id) != len(quantities):
            raise ValidationError("Some products are not available or not approved")

        # Calculate totals and validate stock
        order_items: List[OrderItem] = []
        for product_id, quantity in quantities.items():
            product = products_by_id[product_id]
            if product.get("stock", 0) < quantity:
                raise StockError(product["name"], requested=quantity, available=product.get("stock", 0))

            order_items.append(OrderItem(
                product_id=product_id,
                seller_id=str(product["seller_id"]),
                product_name=product["name"],
                product_image=product.get("image"),
                unit=product.get("unit"),
                seller_name=product.get("seller_name"),
                farm_name=product.get("farm_name"),
                price=product["price"],
                quantity=quantity,
                total=round(product["price"] * quantity, 2)
            ))

        totals = OrderService.calculate_totals([item.total for item in order_items])

        if not isinstance(shipping_address, ShippingAddress):
            shipping_address = ShippingAddress.model_validate(
                shipping_address if isinstance(shipping_address, dict) else shipping_address.model_dump()
            )

        order = Order(
            buyer_id=str(buyer["_id"]),
            buyer_name=full_name(buyer),
            buyer_email=buyer.get("email", ""),
            buyer_phone=buyer.get("phone"),
            items=order_items,
            shipping_address=shipping_address,
            payment_method=payment_method,
            notes=notes,
            logistics=[LogisticsEntry(
                status="Order Placed",
                description="Your order has been successfully placed",
                location="Online"
            )],
            **totals
        )
        order_data = order.model_dump(by_alias=True, exclude={"id"})

        # Reserve stock
        reserved: List[Tuple[str, int]] = []
        for item in order_items:
            if not await OrderService.reserve_stock(item.product_id, item.quantity, db):
                await OrderService.release_stock(reserved, db)
                raise StockError(item.product_name, requested=item.quantity)
            reserved.append((item.product_id, item.quantity))

        # Create order
        try:
            result = await db.orders.insert_one(order_data)
        except Exception:
            logger.error(f"Failed to persist order {order.order_id}, releasing reserved stock")
            await OrderService.release_stock(reserved, db)
            raise

        order_data["_id"] = result.inserted_id

        await OrderService.update_seller_stats(order_items, db)

        logger.info(f"Order {order.order_id} created for buyer {order.buyer_id}, total {order.total_amount}")
        return format_document(order_data)

    @staticmethod
    async def reserve_stock(product_id: str, quantity: int, db: AsyncIOMotorDatabase) -> bool:
        """
        Atomically take ``quantity`` units of a product.

        The filter only matches while enough stock remains, so concurrent
        orders can never drive stock negative.
        """
        result = await db.products.update_one(
            {
                "_id": to_object_id(product_id),
                "stock": {"$gte": quantity},
                "status": ProductStatus.APPROVED.value,
                "is_available": True
            },
            {
                "$inc": {"stock": -quantity, "sales": quantity},
                "$set": {"updated_at": get_current_timestamp()}
            }
        )
        return result.modified_count == 1

    @staticmethod
    async def release_stock(reservations: Sequence[Tuple[str, int]], db: AsyncIOMotorDatabase):
        """Give reserved units back and undo the sales counter."""
        for product_id, quantity in reservations:
            try:
                await db.products.update_one(
                    {"_id": to_object_id(product_id)},
                    {
                        "$inc": {"stock": quantity, "sales": -quantity},
                        "$set": {"updated_at": get_current_timestamp()}
                    }
                )
            except Exception as e:
                # Log error but keep releasing the remaining products
                logger.error(f"Error restoring stock for product {product_id}: {e}")

    @staticmethod
    async def restore_product_stock(order: dict, db: AsyncIOMotorDatabase):
        """Restore product stock when order is cancelled."""
        await OrderService.release_stock(
            [(item["product_id"], item["quantity"]) for item in order["items"]],
            db
        )

    @staticmethod
    async def update_seller_stats(order_items: Sequence[OrderItem], db: AsyncIOMotorDatabase):
        """Increment total_sales and total_products for every distinct seller."""
        per_seller: Dict[str, Dict[str, float]] = {}
        for item in order_items:
            stats = per_seller.setdefault(item.seller_id, {"total_sales": 0.0, "total_products": 0})
            stats["total_sales"] += item.total
            stats["total_products"] += 1

        for seller_id, stats in per_seller.items():
            try:
                await db.users.update_one(
                    id_filter(seller_id),
                    {"$inc": {
                        "total_sales": round(stats["total_sales"], 2),
                        "total_products": stats["total_products"]
                    }}
                )
            except Exception as e:
                # Seller aggregates are informational; the order already exists
                logger.error(f"Error updating stats for seller {seller_id}: {e}")

    @staticmethod
    async def update_order_status(
        order_id: str,
        new_status: str,
        user: dict,
        db: AsyncIOMotorDatabase,
        description: Optional[str] = None,
        location: Optional[str] = None,
        tracking_number: Optional[str] = None
    ) -> dict:
        """
        Update order status with validation and side effects.
        """
        try:
            new_status = OrderStatus(new_status).value
        except ValueError:
            raise ValidationError(f"Invalid order status: {new_status}")

        order = await OrderService.get_order_document(order_id, db)

        if not OrderService.can_access_order(order, user):
            raise AuthorizationError()

        if new_status == OrderStatus.CANCELLED.value:
            return await OrderService.cancel_order(
                order_id, description or "Cancelled via status update", user, db
            )

        current_status = order["status"]
        is_valid, error_msg = OrderService.validate_status_transition(current_status, new_status)
        if not is_valid:
            raise InvalidStateError(error_msg)

        now = get_current_timestamp()
        update_data = {
            "status": new_status,
            "updated_at": now
        }
        if new_status == OrderStatus.DELIVERED.value:
            update_data["delivered_at"] = now
        if tracking_number:
            update_data["tracking_number"] = tracking_number

        history_entry = OrderService.build_logistics_entry(
            new_status,
            description or f"Order status updated to {new_status}",
            location or "System"
        )

        updated_order = await db.orders.find_one_and_update(
            {"_id": order["_id"], "status": current_status},
            {
                "$set": update_data,
                "$push": {"logistics": history_entry}
            },
            return_document=ReturnDocument.AFTER
        )

        if updated_order is None:
            raise InvalidStateError("Order was modified concurrently, please retry")

        logger.info(f"Order {order.get('order_id')} status {current_status} -> {new_status} by {user.get('_id')}")
        return format_document(updated_order)

    @staticmethod
    async def cancel_order(order_id: str, reason: str, user: dict, db: AsyncIOMotorDatabase) -> dict:
        """Cancel a non-terminal order and put its stock back."""
        order = await OrderService.get_order_document(order_id, db)

        current_status = order["status"]
        if current_status in TERMINAL_STATUSES:
            raise InvalidStateError("Order cannot be cancelled")

        if not OrderService.can_access_order(order, user):
            raise AuthorizationError()

        now = get_current_timestamp()
        updated_order = await db.orders.find_one_and_update(
            {"_id": order["_id"], "status": current_status},
            {
                "$set": {
                    "status": OrderStatus.CANCELLED.value,
                    "cancelled_at": now,
                    "cancellation_reason": reason,
                    "updated_at": now
                },
                "$push": {"logistics": OrderService.build_logistics_entry(
                    OrderStatus.CANCELLED.value,
                    f"Order cancelled: {reason}",
                    "System"
                )}
            },
            return_document=ReturnDocument.AFTER
        )

        # Lost the race against another cancel or a terminal transition
        if updated_order is None:
            raise InvalidStateError("Order cannot be cancelled")

        await OrderService.restore_product_stock(updated_order, db)

        if order.get("payment_status") == PaymentStatus.PAID.value:
            logger.warning(f"Paid order {order.get('order_id')} cancelled without refund")

        logger.info(f"Order {order.get('order_id')} cancelled by {user.get('_id')}: {reason}")
        return format_document(updated_order)
