from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

from schemas.applications import UtcOut


class CompanyIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    model_config = ConfigDict(extra="ignore")


class CompanyOut(UtcOut):
    id: int
    name: str
    created_at: datetime
