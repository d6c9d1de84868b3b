# stockledger/schemas/_base.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict

UTC = timezone.utc


def to_utc(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything leaves the API as UTC."""
    if not isinstance(dt, datetime):
        return dt
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


class _In(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _Out(BaseModel):
    """
    - from_attributes: built straight from ORM rows
    - populate_by_name: alias-friendly
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


UtcDatetime = Annotated[datetime, AfterValidator(to_utc)]
