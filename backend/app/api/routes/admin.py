from typing import Optional
from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.api.deps import get_db, get_current_admin
from app.schemas.common import ApiResponse
from app.schemas.product import ProductApproveRequest, ProductRejectRequest
from app.services.product_service import ProductService

router = APIRouter()


@router.put("/products/{product_id}/approve", response_model=ApiResponse)
async def approve_product(
    product_id: str,
    request: Optional[ProductApproveRequest] = None,
    current_user: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Approve a pending product. Approved, available products can be ordered.
    """
    is_featured = request.is_featured if request else False
    product = await ProductService.approve_product(product_id, current_user, db, is_featured=is_featured)
    return {"success": True, "data": {"product": product}, "message": "Product approved successfully"}


@router.put("/products/{product_id}/reject", response_model=ApiResponse)
async def reject_product(
    product_id: str,
    request: ProductRejectRequest,
    current_user: dict = Depends(get_current_admin),
    db: AsyncIOMotorDatabase = Depends(get_db)
):
    """
    Reject a pending product with a reason.
    """
    product = await ProductService.reject_product(product_id, current_user, db, reason=request.reason)
    return {"success": True, "data": {"product": product}, "message": "Product rejected successfully"}
