# api/applications.py
import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from db import get_db
from dependencies import get_owner_id
from schemas.applications import (
    ApplicationDetail, ApplicationIn, ApplicationListItem, ApplicationOut, ApplicationPage,
    ApplicationUpdate, MoveIn, TransitionOut, TransitionUpdate,
)
from services import ledger, lifecycle, records
from services.state_graph import AppState
from services.timeutil import as_utc

router = APIRouter(prefix="/api/applications", tags=["applications"])


def _url(data: dict) -> dict:
    if data.get("job_req_url") is not None:
        data["job_req_url"] = str(data["job_req_url"])  # normalize AnyHttpUrl -> str
    return data


# ---------- LIST (supports /api/applications and /api/applications/) ----------
@router.get("", response_model=ApplicationPage)
@router.get("/", response_model=ApplicationPage)
def list_applications(
    state: Optional[AppState] = Query(default=None),
    company_id: Optional[int] = Query(default=None),
    tag: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    applied_date: Optional[date] = Query(default=None, description="YYYY-MM-DD"),
    sort: str = Query(default="updated_at", description="|".join(records.SORT_FIELDS)),
    order: str = Query(default="desc", description="asc|desc"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_owner_id),
):
    rows, total = records.list_applications(
        db, owner_id,
        state=state, company_id=company_id, tag=tag, search=search, applied_date=applied_date,
        sort=sort, order=order, page=page, limit=limit,
    )
    items = [
        ApplicationListItem.model_validate(app).model_copy(update={"last_transition_at": as_utc(last_at)})
        for app, last_at in rows
    ]
    return ApplicationPage(
        items=items, total=total, page=page, limit=limit, total_pages=math.ceil(total / limit),
    )


# ---------- CREATE ----------
@router.post("", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
def create_application(
    app_in: ApplicationIn,
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_owner_id),
):
    """
    Creates an application for one of the caller's companies. The first ledger
    entry (from nothing to the initial state) is written in the same commit.
    """
    data = _url(app_in.model_dump(exclude_unset=True))
    company_id = data.pop("company_id")
    initial_state = data.pop("initial_state", None)
    return lifecycle.create_application(db, owner_id, company_id, data, initial_state=initial_state)


# ---------- DETAIL ----------
@router.get("/{application_id}", response_model=ApplicationDetail)
def get_application(
    application_id: int,
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_owner_id),
):
    app = records.require_owned_application(db, application_id, owner_id)
    history = ledger.for_application(db, app.id, newest_first=True)
    return ApplicationDetail.model_validate(app).model_copy(
        update={"transitions": [TransitionOut.model_validate(t) for t in history]}
    )


# ---------- UPDATE ----------
@router.patch("/{application_id}", response_model=ApplicationOut)
def update_application(
    application_id: int,
    app_in: ApplicationUpdate,
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_owner_id),
):
    data = _url(app_in.model_dump(exclude_unset=True))
    return lifecycle.update_attributes(db, application_id, owner_id, data)


# ---------- MOVE ----------
@router.post("/{application_id}/move", response_model=TransitionOut)
def move_application(
    application_id: int,
    move_in: MoveIn,
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_owner_id),
):
    return lifecycle.move_application(
        db, application_id, owner_id, move_in.to_state,
        note=move_in.note, expected_state=move_in.expected_state,
    )


# ---------- EDIT HISTORY ----------
@router.patch("/{application_id}/transitions/{transition_id}", response_model=TransitionOut)
def update_transition(
    application_id: int,
    transition_id: int,
    body: TransitionUpdate,
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_owner_id),
):
    data = body.model_dump(exclude_unset=True)
    kwargs = {"application_id": application_id, "transitioned_at": data.get("transitioned_at")}
    if "note" in data:
        kwargs["note"] = data["note"]
    return lifecycle.update_transition(db, transition_id, owner_id, **kwargs)


# ---------- DELETE ----------
@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_application(
    application_id: int,
    db: Session = Depends(get_db),
    owner_id: str = Depends(get_owner_id),
):
    lifecycle.remove_application(db, application_id, owner_id)
    return  # 204
