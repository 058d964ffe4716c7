from typing import Any, Optional, TypeVar

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel


ModelT = TypeVar("ModelT", bound=BaseModel)


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a string id; malformed ids match nothing rather than erroring."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def from_doc(model: type[ModelT], doc: Optional[dict[str, Any]]) -> Optional[ModelT]:
    if doc is None:
        return None
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return model.model_validate(data)
