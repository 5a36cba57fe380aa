from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class IdentifierBatchGenerate(BaseModel):
    publisher_id: int = Field(ge=1)
    count: int | None = Field(default=None, ge=1)
    publication_id: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _count_or_publication(self):
        if (self.count is None) == (self.publication_id is None):
            raise ValueError("Exactly one of count or publication_id must be given.")
        return self


class IdentifierBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    identifier_type: str
    identifier_count: int
    identifier_canceled_used_count: int
    identifier_canceled_count: int
    identifier_deleted_count: int
    publisher_id: int
    publication_id: int | None = None
    subrange_id: int
    created_by: str
    created_at: datetime | None = None


class BatchQuery(BaseModel):
    publisher_id: int | None = None
    publication_id: int | None = None
    include_publications: bool = False
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=10, ge=1, le=500)


class BatchQueryResult(BaseModel):
    totalDoc: int
    results: list[dict]


class IdentifierRetire(BaseModel):
    identifier: str = Field(min_length=17, max_length=17)
