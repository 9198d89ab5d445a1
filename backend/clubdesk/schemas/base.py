"""
Base schemas with standardized settings for consistent responses.
"""

from pydantic import BaseModel, ConfigDict


class StandardizedModel(BaseModel):
    """Base model with standardized JSON encoding"""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


class OrmResponseModel(StandardizedModel):
    """Response model that can be built straight from an ORM row."""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True, from_attributes=True)
