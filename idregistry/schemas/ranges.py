from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class RangeCreate(BaseModel):
    # ISBN: 978/979, ISMN: "979-0"
    prefix: int | str
    lang_group: int | None = None
    category: int
    range_begin: str = Field(min_length=1, max_length=7)
    range_end: str = Field(min_length=1, max_length=7)


class IssnRangeCreate(BaseModel):
    block: str = Field(min_length=4, max_length=4)
    range_begin: str = Field(min_length=3, max_length=3)
    range_end: str = Field(min_length=3, max_length=3)
    is_active: bool = False


class SubrangeCreate(BaseModel):
    publisher_id: int = Field(ge=1)
    # Publisher part digits, or "can_<id>" to reuse a canceled publisher identifier.
    selection: str = Field(min_length=1, max_length=20)


class LedgerCounters(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    range_begin: str
    range_end: str
    next: str
    free: int
    taken: int
    canceled: int
    is_active: bool
    is_closed: bool
    created_by: str
    modified_by: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RangeResponse(LedgerCounters):
    prefix: int | str
    lang_group: int | None = None
    category: int


class IssnRangeResponse(LedgerCounters):
    block: str


class SubrangeResponse(LedgerCounters):
    publisher_id: int
    range_id: int
    publisher_identifier: str
    category: int
    deleted: int


class SubrangeOption(BaseModel):
    value: str
    identifier: str
