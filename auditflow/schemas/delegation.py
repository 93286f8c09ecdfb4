"""Delegation API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class DelegationCreateRequest(BaseModel):
    from_user_id: str = Field(..., min_length=1)
    to_user_id: str = Field(..., min_length=1)
    start_date: datetime
    end_date: datetime
    role: str | None = Field(default=None, description="Limit to one role; null covers all")
    reason: str | None = None


class DelegationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    from_user_id: str
    to_user_id: str
    role: str | None
    start_date: datetime
    end_date: datetime
    is_active: bool
    reason: str | None
    created_at: datetime
