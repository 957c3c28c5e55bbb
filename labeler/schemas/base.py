"""
Base Pydantic schemas
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Shared config: ORM attribute loading, stripped strings, enum members kept as enums
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=False,
    )


class RecordSchema(BaseSchema):
    """Persisted row identity plus audit timestamps."""

    id: UUID
    created_at: datetime
    updated_at: datetime
