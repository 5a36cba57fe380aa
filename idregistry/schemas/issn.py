from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class IssnAssignment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    publisher_id: int
    form_id: int
    title: str
    medium: str
    issn: str
    status: str
