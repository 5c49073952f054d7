"""
Models for API responses and requests.
"""
from functools import lru_cache
from typing import Any, Tuple, Type
from pydantic import BaseModel, Field

from app.services.resource_schema import ResourceSchema


class Envelope(BaseModel):
    """Uniform response wrapper returned by every endpoint"""

    data: Any = Field(
        None,
        description="Record, list of records, or null"
    )

    message: str = Field(
        ...,
        description="Human readable outcome of the request"
    )


@lru_cache(maxsize=None)
def request_models(schema: ResourceSchema) -> Tuple[Type[BaseModel], Type[BaseModel]]:
    """Return the (create, update) request bodies generated from a descriptor."""
    return schema.create_model(), schema.update_model()
