from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def envelope(data: Any = None, success: bool = True, message: Optional[str] = None) -> dict:
    """Standard response envelope: {success, data | message}."""
    body: dict = {"success": success}
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True, mode="json")
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body
