"""Shared Pydantic base models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RowsyncBase(BaseModel):
    """Base model with shared config for all RowSync API schemas."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class DeviceModel(BaseModel):
    """Base for payloads produced by the rowing monitor.

    The monitor speaks camelCase JSON.  Instances are frozen: a fetched
    session is a snapshot until the next refresh.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )
