"""Base class for value objects."""

from pydantic import BaseModel, ConfigDict


class ValueObject(BaseModel):
    """Base class for all value objects.

    Value objects are immutable and compared by value, not identity.
    Unknown keys are ignored so collaborators can pass richer payloads.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )
