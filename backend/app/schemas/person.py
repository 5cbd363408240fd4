"""
Persons API — Person Request/Response Schemas
===============================================

What:  Pydantic models defining the person API contract.
Why:   Strict input validation, serialization, and OpenAPI docs generation.

Design Decision:
    Schemas are separate from the SQLAlchemy model so the client can never set
    the system-assigned id: PersonCreate/PersonUpdate have no id field, and
    pydantic ignores unknown keys in the request body.
"""

from pydantic import BaseModel, Field

# Bounds of the INTEGER columns (32-bit signed)
INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


class PersonCreate(BaseModel):
    """Body of POST /persons."""
    name: str = Field(max_length=255, description="Person's name")
    age: int = Field(ge=INT32_MIN, le=INT32_MAX, description="Person's age in years")


class PersonUpdate(PersonCreate):
    """Body of PUT /persons/{id}. Replaces name and age; id is immutable."""


class PersonResponse(BaseModel):
    """A stored person, as returned by every person endpoint."""
    id: int = Field(description="System-assigned identifier")
    name: str = Field(description="Person's name")
    age: int = Field(description="Person's age in years")

    model_config = {"from_attributes": True}
