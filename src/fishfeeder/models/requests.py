"""Pydantic request models for controller entrypoints.

These models provide a consistent "validate → normalize → execute" flow.
They are used internally by :class:`fishfeeder.controller.FeederController`
and by the HTTP handlers, which feed them the frontend's camelCase JSON.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from fishfeeder._constants import (
    DEFAULT_REQUESTER,
    MAX_CONTACT_LENGTH,
    MAX_DEVICE_ID_LENGTH,
    MAX_REQUESTER_LENGTH,
)
from fishfeeder.models.feeder import truncate


class _Request(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        validate_default=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class RequesterIdentity(_Request):
    """Who is asking.  Device id wins over contact address for matching."""

    device_id: str | None = None
    user_email: str | None = None

    @field_validator("device_id", mode="before")
    @classmethod
    def _bound_device(cls, value: Any) -> str | None:
        return truncate(value, MAX_DEVICE_ID_LENGTH)

    @field_validator("user_email", mode="before")
    @classmethod
    def _bound_email(cls, value: Any) -> str | None:
        return truncate(value, MAX_CONTACT_LENGTH)

    @property
    def is_empty(self) -> bool:
        return self.device_id is None and self.user_email is None


class FeedRequest(RequesterIdentity):
    """Operator-initiated feed or new reservation."""

    user: str | None = None

    @field_validator("user", mode="before")
    @classmethod
    def _bound_user(cls, value: Any) -> str | None:
        return truncate(value, MAX_REQUESTER_LENGTH)

    @property
    def display_name(self) -> str:
        return self.user or self.user_email or DEFAULT_REQUESTER

    @property
    def identity(self) -> RequesterIdentity:
        return RequesterIdentity(device_id=self.device_id, user_email=self.user_email)


class CancelRequest(RequesterIdentity):
    @model_validator(mode="after")
    def _require_identity(self) -> CancelRequest:
        if self.is_empty:
            raise ValueError("deviceId or userEmail required")
        return self


class TimerUpdateRequest(_Request):
    """New feed interval.  Omitting ``no_feed_day`` leaves it unchanged."""

    hour: int = Field(ge=0, le=23)
    minute: int = Field(ge=0, le=59)
    no_feed_day: int | None = Field(default=None, ge=0, le=6)

    @property
    def updates_fasting_day(self) -> bool:
        return "no_feed_day" in self.model_fields_set


class PriorityUpdateRequest(_Request):
    reservation_delay_minutes: int = Field(ge=0, le=60)
    auto_feed_delay_minutes: int = Field(ge=0, le=120)
