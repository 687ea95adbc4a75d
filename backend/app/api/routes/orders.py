from fastapi import APIRouter, Depends, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.api.deps import get_db, get_current_user, get_current_buyer
from app.schemas.common import ApiResponse
from app.schemas.order import OrderCreate, OrderStatusUpdate, OrderCancelRequest
from app.services.order_service import OrderService

router = APIRouter()


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order: OrderCreate,
    current_user: dict = Depends(get_current_buyer),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Create a new order.

    This will:
    1. Validate products (approved, available, in stock)
    2. Compute subtotal, 18% tax and shipping (free above 1000)
    3. Reserve stock and create the order in Pending state
    4. Update seller sales aggregates

    Payment is started separately via `/payments/create-order`.
    """
    created = await OrderService.create_order(
        buyer=current_user,
        items=order.items,
        shipping_address=order.shipping_address,
        db=db,
        payment_method=order.payment_method,
        notes=order.notes
    )

    return {
        "success": True,
        "data": {"order": created},
        "message": "Order created successfully"
    }


@router.get("/{order_id}", response_model=ApiResponse)
async def get_order(
    order_id: str,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Get a specific order by ID. Buyers see their own orders, admins see all.
    """
    order = await OrderService.get_order(order_id, current_user, db)
    return {"success": True, "data": {"order": order}}


@router.put("/{order_id}/status", response_model=ApiResponse)
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Move an order to a new status and append a logistics entry.

    **Valid transitions:**
    - Pending → Confirmed, Processing, Cancelled
    - Confirmed → Processing, Shipped, Cancelled
    - Processing → Shipped, Cancelled
    - Shipped → Delivered, Cancelled
    - Delivered and Cancelled are final
    """
    order = await OrderService.update_order_status(
        order_id=order_id,
        new_status=request.status.value,
        user=current_user,
        db=db,
        description=request.description,
        location=request.location,
        tracking_number=request.tracking_number
    )

    return {
        "success": True,
        "data": {"order": order},
        "message": "Order status updated successfully"
    }


@router.put("/{order_id}/cancel", response_model=ApiResponse)
async def cancel_order(
    order_id: str,
    request: OrderCancelRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Cancel an order that is not yet delivered and restore product stock.
    """
    order = await OrderService.cancel_order(order_id, request.reason, current_user, db)

    return {
        "success": True,
        "data": {"order": order},
        "message": "Order cancelled successfully"
    }
