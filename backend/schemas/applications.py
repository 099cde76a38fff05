from pydantic import BaseModel, AnyHttpUrl, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime

from models import WorkLocation
from services.state_graph import AppState
from services.timeutil import as_utc


class UtcOut(BaseModel):
    """Response base: naive datetimes coming back from sqlite are UTC."""
    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="after")
    @classmethod
    def mark_utc(cls, v):
        return as_utc(v) if isinstance(v, datetime) else v


class ApplicationIn(BaseModel):   # for POST
    company_id: int
    job_title: str = Field(min_length=1, max_length=255)
    job_req_url: Optional[AnyHttpUrl] = None
    job_description_md: Optional[str] = None
    work_location: Optional[WorkLocation] = None
    easy_apply: bool = False
    cover_letter: bool = False
    hot: bool = False
    tags: List[str] = []
    applied_at: Optional[datetime] = None
    initial_state: Optional[AppState] = None
    model_config = ConfigDict(extra="ignore")

    @field_validator("applied_at")
    @classmethod
    def applied_at_utc(cls, v):
        # sqlite keeps the wall clock only, so fold the offset in before storage
        return as_utc(v)


class ApplicationUpdate(BaseModel):  # for PATCH, state is not patchable here
    job_title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    job_req_url: Optional[AnyHttpUrl] = None
    job_description_md: Optional[str] = None
    work_location: Optional[WorkLocation] = None
    easy_apply: Optional[bool] = None
    cover_letter: Optional[bool] = None
    hot: Optional[bool] = None
    tags: Optional[List[str]] = None
    applied_at: Optional[datetime] = None
    model_config = ConfigDict(extra="ignore")

    @field_validator("applied_at")
    @classmethod
    def applied_at_utc(cls, v):
        # sqlite keeps the wall clock only, so fold the offset in before storage
        return as_utc(v)

    @field_validator("easy_apply", "cover_letter", "hot")
    @classmethod
    def not_null(cls, v):
        # omit the field to leave it unchanged
        if v is None:
            raise ValueError("must be true or false")
        return v


class MoveIn(BaseModel):
    to_state: AppState
    note: Optional[str] = None
    # state the client last saw; a mismatch is reported as a concurrent modification
    expected_state: Optional[AppState] = None


class TransitionUpdate(BaseModel):
    transitioned_at: Optional[datetime] = None
    note: Optional[str] = None
    model_config = ConfigDict(extra="ignore")

    @field_validator("transitioned_at")
    @classmethod
    def transitioned_at_utc(cls, v):
        return as_utc(v)


class TransitionOut(UtcOut):
    id: int
    application_id: int
    from_state: Optional[AppState] = None
    to_state: AppState
    transitioned_at: datetime
    note: Optional[str] = None
    actor_user_id: str


class CompanyRef(UtcOut):
    id: int
    name: str


class ApplicationOut(UtcOut):
    id: int
    company: CompanyRef
    job_title: str
    job_req_url: Optional[str] = None
    job_description_md: str = ""
    current_state: AppState
    work_location: Optional[WorkLocation] = None
    easy_apply: bool
    cover_letter: bool
    hot: bool
    hot_date: Optional[datetime] = None
    tags: List[str] = []
    applied_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ApplicationListItem(ApplicationOut):
    last_transition_at: Optional[datetime] = None


class ApplicationDetail(ApplicationOut):
    transitions: List[TransitionOut] = []


class ApplicationPage(BaseModel):
    items: List[ApplicationListItem]
    total: int
    page: int
    limit: int
    total_pages: int
