from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from storefront.utils.formatting_utils import FormattingUtils


class PaginationResponse(BaseModel):
    """Page-number pagination metadata"""
    total_products: int = Field(description="Number of products across all pages")
    total_pages: int = Field(description="Number of pages at this limit")
    current_page: int = Field(description="1-based page number returned")
    limit: int = Field(description="Items per page")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"total_products": 42, "total_pages": 3, "current_page": 1, "limit": 20}
        }
    )


class SuccessResponse(BaseModel):
    """Standard successful API response wrapper"""
    success: bool = Field(default=True)
    data: Any = None
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response format"""
    success: bool = Field(default=False)
    error: Dict[str, Any] = Field(description="Error information")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: Optional[str] = None


class Money(BaseModel):
    """Price as an integer amount in the currency's smallest unit plus its code"""
    amount: int = Field(description="Amount in minor units as entered")
    currency: str = Field(default="IDR", description="ISO-4217 currency code")

    model_config = ConfigDict(frozen=True, json_schema_extra={"example": {"amount": 150000, "currency": "IDR"}})

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Amount cannot be negative")
        return v

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be 3-character code")
        return v.upper()

    @computed_field
    @property
    def formatted(self) -> str:
        return FormattingUtils.format_money(self.amount, self.currency)

    def __str__(self) -> str:
        return self.formatted
