"""
Base Schema Classes for Pydantic Models

Response schemas that read from ORM models inherit from BaseResponseSchema
so UUID and datetime serialization stays consistent.
"""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class WarehouseBrief(BaseResponseSchema):
            id: UUID
            code: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        # Serialize UUIDs as strings in JSON output
        json_encoders={
            UUID: str,
            datetime: lambda v: v.isoformat() if v else None,
        },
        populate_by_name=True,
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional; only fields explicitly set are applied.
    """
    model_config = ConfigDict(
        extra='forbid',
    )

    def get_update_data(self) -> dict:
        """Fields the caller actually provided."""
        return self.model_dump(exclude_unset=True)
