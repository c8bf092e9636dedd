# core/domain/entities/base_entity.py
from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class DomainEntity(BaseModel):
    """
    Base entity for in-memory domain objects.

    - Accepts field names or their camelCase aliases on input.
    - Serializes with aliases so HTTP payloads keep the chart client's field names.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=False,
    )

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON-safe dict for HTTP payloads and logging.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
