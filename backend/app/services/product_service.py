"""
Product moderation. Only approved, available products can be ordered.
"""
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from app.models.product import ProductStatus
from app.utils.helpers import format_document, get_current_timestamp, id_filter

logger = logging.getLogger(__name__)


class ProductService:
    """Admin approval workflow for catalog entries."""

    @staticmethod
    async def _moderate(product_id: str, update: dict, db: AsyncIOMotorDatabase) -> dict:
        """Apply a moderation decision to a product that is still pending."""
        product = await db.products.find_one(id_filter(product_id))
        if not product:
            raise NotFoundError("Product", product_id)

        if product.get("status") != ProductStatus.PENDING.value:
            raise InvalidStateError("Product is not pending approval")

        updated_product = await db.products.find_one_and_update(
            {"_id": product["_id"], "status": ProductStatus.PENDING.value},
            {"$set": update},
            return_document=ReturnDocument.AFTER
        )
        if updated_product is None:
            raise InvalidStateError("Product is not pending approval")

        return format_document(updated_product)

    @staticmethod
    async def approve_product(
        product_id: str,
        admin: dict,
        db: AsyncIOMotorDatabase,
        is_featured: bool = False
    ) -> dict:
        """Approve a pending product so it can be purchased."""
        now = get_current_timestamp()
        product = await ProductService._moderate(product_id, {
            "status": ProductStatus.APPROVED.value,
            "approved_at": now,
            "approved_by": str(admin["_id"]),
            "is_featured": is_featured,
            "updated_at": now
        }, db)
        logger.info(f"Product {product_id} approved by {admin['_id']}")
        return product

    @staticmethod
    async def reject_product(
        product_id: str,
        admin: dict,
        db: AsyncIOMotorDatabase,
        reason: Optional[str] = None
    ) -> dict:
        """Reject a pending product with a reason."""
        if not reason or not reason.strip():
            raise ValidationError("Rejection reason is required")

        now = get_current_timestamp()
        product = await ProductService._moderate(product_id, {
            "status": ProductStatus.REJECTED.value,
            "rejection_reason": reason.strip(),
            "approved_at": now,
            "approved_by": str(admin["_id"]),
            "updated_at": now
        }, db)
        logger.info(f"Product {product_id} rejected by {admin['_id']}: {reason}")
        return product
