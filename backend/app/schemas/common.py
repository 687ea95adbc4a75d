from typing import Any, Optional
from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Response envelope shared by every endpoint."""
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None
