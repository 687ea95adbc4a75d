from pydantic import BaseModel, Field


class ProductApproveRequest(BaseModel):
    """Schema for approving a product."""
    is_featured: bool = False


class ProductRejectRequest(BaseModel):
    """Schema for rejecting a product."""
    reason: str = Field(min_length=1)
