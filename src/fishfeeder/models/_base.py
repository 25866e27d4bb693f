"""Base model and enum for store documents.

Every store-backed model inherits from :class:`FeederBaseModel` which
provides:

* ``alias_generator=to_camel`` so the camelCase keys written by the
  device firmware and the web frontend map to snake_case fields.
* A ``model_validator(mode="before")`` that strips sentinel values
  (``None``, ``""``, NaN) so the field default is used.

State enums inherit from :class:`FeederEnum` which adds an ``UNKNOWN``
member at ``-1`` and a ``_missing_`` hook that returns ``UNKNOWN``
for any value without a mapped member.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable, Mapping
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

_SENTINELS = frozenset({"", "null", "undefined", "NaN", "nan"})


def coerce_epoch_ms(value: Any) -> int | None:
    """Coerce a stored epoch value (number or numeric string) to ``int`` ms.

    Returns ``None`` for missing, non-numeric or non-positive values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or number <= 0:
        return None
    return int(number)


EpochMs = Annotated[int | None, BeforeValidator(coerce_epoch_ms)]
"""Annotated type for optional epoch-millisecond instants."""


def sparse_list(value: Any) -> list[Any]:
    """Normalize a stored array.

    Realtime Database arrays with holes come back either as lists with
    ``null`` entries or as dicts keyed by index.  Both collapse to a dense
    list in index order.
    """
    if value is None:
        return []
    if isinstance(value, Mapping):
        items: Iterable[Any]
        try:
            items = [value[k] for k in sorted(value, key=lambda k: int(k))]
        except (TypeError, ValueError):
            items = value.values()
        return [item for item in items if item is not None]
    if isinstance(value, (list, tuple)):
        return [item for item in value if item is not None]
    return []


class FeederEnum(enum.IntEnum):
    """Base for stored state enums.

    Every subclass **must** define ``UNKNOWN = -1``.
    """

    @classmethod
    def _missing_(cls, value: object) -> FeederEnum:
        if hasattr(cls, "UNKNOWN"):
            unknown: FeederEnum = cls.UNKNOWN  # type: ignore[attr-defined]
            return unknown
        return next(iter(cls))


class FeederBaseModel(BaseModel):
    """Base for store document models."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip sentinel values so field defaults apply."""
        if not isinstance(values, dict):
            return values
        return FeederBaseModel._clean_dict(values)

    def to_store(self) -> dict[str, Any]:
        """Dump in the camelCase wire format used by the store."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)
