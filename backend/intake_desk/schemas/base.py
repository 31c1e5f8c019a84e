"""
Shared pydantic building blocks.

Every wire-format model uses camelCase aliases over snake_case attributes,
because forms and the admin UI depend on the camelCase names.
"""

from datetime import datetime
from typing import Annotated, Any, Dict

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..utils.identifiers import ensure_utc


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either spelling."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class CamelRequest(CamelModel):
    """Request bodies reject unknown keys instead of dropping them."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )

    def changes(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent, snake_case keys."""
        return self.model_dump(exclude_unset=True)
