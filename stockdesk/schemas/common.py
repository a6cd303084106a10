from typing import Any

from pydantic import BaseModel, ConfigDict


class PaginationMeta(BaseModel):
    total: int
    limit: int
    offset: int
    count: int
    has_next: bool

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "total": 42,
                "limit": 10,
                "offset": 0,
                "count": 10,
                "has_next": True,
            }
        }
    )


class ValidationIssueOut(BaseModel):
    field: str
    message: str
    type: str | None = None

    # Adjustment rejections attach the computed stock figures next to the field.
    model_config = ConfigDict(extra="allow")


class ErrorDetailOut(BaseModel):
    code: str
    message: str
    request_id: str
    path: str
    details: list[ValidationIssueOut] | None = None


class ErrorOut(BaseModel):
    error: ErrorDetailOut

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "invalid_adjustment",
                    "message": "Cannot deduct 20 units. Current physical stock is 15. Maximum deductible: 15",
                    "request_id": "8d8f2b00-6c79-4a45-8ff4-b0a5f2bc4bc2",
                    "path": "/inventory/adjust",
                    "details": [
                        {
                            "field": "amount",
                            "message": "Cannot deduct 20 units. Current physical stock is 15. Maximum deductible: 15",
                            "type": "physical_stock_negative",
                            "current_physical_stock": 15,
                            "projected_physical_stock": -5,
                            "max_deductible": 15,
                        }
                    ],
                }
            }
        }
    )
