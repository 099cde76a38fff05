# api/analytics.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from db import get_db
from dependencies import get_owner_id
from schemas.analytics import (
    CleanHotOut, DashboardStats, HotList, SankeyOut, SwimlaneRow, TagDistribution, TimelineOut,
    WorkLocationDistribution,
)
from services import analytics

router = APIRouter(prefix="/api/applications", tags=["applications-analytics"])


@router.get("/analytics/sankey", response_model=SankeyOut)
def get_sankey(db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return analytics.flow_graph(db, owner_id)


@router.get("/analytics/stats", response_model=DashboardStats)
def get_stats(db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return analytics.dashboard_stats(db, owner_id)


@router.get("/analytics/timeline", response_model=TimelineOut)
def get_timeline(
    days: int = Query(default=30, description="window size, today included"),
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_owner_id),
):
    # range is checked by the service so a bad window reports the same error everywhere
    return {"days": days, "timeline": analytics.daily_timeline(db, owner_id, days)}


@router.get("/analytics/swimlane", response_model=List[SwimlaneRow])
def get_swimlane(db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return analytics.swimlane(db, owner_id)


@router.get("/analytics/distribution/work-location", response_model=WorkLocationDistribution)
def get_work_location_distribution(db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return analytics.work_location_distribution(db, owner_id)


@router.get("/analytics/distribution/tags", response_model=TagDistribution)
def get_tag_distribution(db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return analytics.tag_distribution(db, owner_id)


@router.get("/analytics/distribution/hot", response_model=HotList)
def get_hot_list(db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return analytics.hot_list(db, owner_id)


@router.post("/clean-hot", response_model=CleanHotOut)
def clean_hot(db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return {"cleared_count": analytics.sweep_stale_hot(db, owner_id)}
