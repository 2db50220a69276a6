"""
API response models using Pydantic.
"""
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body returned for every handled failure."""
    error: str = Field(
        description="Short error category"
    )
    detail: str = Field(
        description="Human readable explanation"
    )
    retryable: bool = Field(
        default=False,
        description="Whether retrying the same request may succeed"
    )
    
    class Config:
        json_schema_extra = {
            "example": {
                "error": "Store error",
                "detail": "Store request failed: 503 - Service Unavailable",
                "retryable": True,
            }
        }


# Shared OpenAPI documentation for mutation endpoints
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid payload or forbidden rename"},
    404: {"model": ErrorResponse, "description": "Row or referenced parent not found"},
    409: {"model": ErrorResponse, "description": "Natural key already exists"},
    429: {"description": "Rate limit exceeded"},
    502: {"model": ErrorResponse, "description": "Store failure; earlier steps stay applied"},
}
