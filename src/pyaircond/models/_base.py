"""Base model and enum for pyaircond data types.

Every model inherits from :class:`AircondBaseModel` which provides:

* ``alias_generator=to_camel`` so payloads pushed to WebSocket clients use
  camelCase keys while Python code keeps snake_case fields.
* Frozen instances; updates go through ``model_copy(update=...)``.

Enums inherit from :class:`AircondEnum` which adds an ``UNKNOWN`` member at
``-1`` and a ``_missing_`` hook that returns ``UNKNOWN`` for any value
without a mapped member.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AircondEnum(enum.IntEnum):
    """Base for controller state enums.

    Every subclass **must** define ``UNKNOWN = -1``.
    """

    @classmethod
    def _missing_(cls, value: object) -> AircondEnum:
        # pylint: disable=no-member
        if hasattr(cls, "UNKNOWN"):
            unknown: AircondEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        return next(iter(cls))


class AircondBaseModel(BaseModel):
    """Base for pyaircond models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape sent to clients."""
        return self.model_dump(mode="json", by_alias=True)
