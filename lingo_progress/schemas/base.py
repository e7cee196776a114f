"""Base schema: snake_case in Python, camelCase on the wire."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts both camelCase and snake_case keys; serializes camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
