"""Base model for entities persisted as store documents."""

from enum import Enum
from typing import Any, Self

from pydantic import BaseModel


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_encode(item) for item in value]
    return value


class DocumentModel(BaseModel):
    """Pydantic model that round-trips through a plain document mapping.

    Datetimes are kept as datetime objects (both store backends persist them
    natively); enums are stored by value.
    """

    def to_document(self, exclude: set[str] | None = None) -> dict[str, Any]:
        """Convert the model into a store document."""
        return _encode(self.model_dump(exclude=exclude))

    @classmethod
    def from_document(cls, data: dict[str, Any], **extra: Any) -> Self:
        """Build the model from a store document plus extra fields (e.g. id)."""
        return cls.model_validate({**data, **extra})
