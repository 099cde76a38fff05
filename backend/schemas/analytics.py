from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from schemas.applications import UtcOut


class SankeyNode(BaseModel):
    name: str


class SankeyLink(BaseModel):
    source: int
    target: int
    value: int


class SankeyOut(BaseModel):
    nodes: List[SankeyNode]
    links: List[SankeyLink]


class TimelineDay(BaseModel):
    date: str  # YYYY-MM-DD
    count: int
    companies: List[str]


class TimelineOut(BaseModel):
    days: int
    timeline: List[TimelineDay]


class Segment(UtcOut):
    state: str
    start: datetime
    end: datetime


class TerminalMarker(UtcOut):
    state: str
    at: datetime


class SwimlaneRow(UtcOut):
    application_id: int
    company: str
    job_title: str
    applied_at: datetime
    current_state: str
    segments: List[Segment]
    terminal_marker: Optional[TerminalMarker] = None


class DashboardStats(BaseModel):
    applied: int
    interviewed: int
    passed_on: int


class CleanHotOut(BaseModel):
    cleared_count: int


class WorkLocationItem(BaseModel):
    location: str  # a WorkLocation value or UNSPECIFIED
    count: int


class WorkLocationDistribution(BaseModel):
    items: List[WorkLocationItem]
    total: int


class TagItem(BaseModel):
    tag: str
    count: int


class TagDistribution(BaseModel):
    items: List[TagItem]
    total_tags: int


class HotItem(UtcOut):
    id: int
    company: str
    job_title: str
    applied_at: Optional[datetime] = None
    hot_date: Optional[datetime] = None


class HotList(BaseModel):
    items: List[HotItem]
    total: int
