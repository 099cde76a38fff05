# api/companies.py
# Just enough company handling for applications to reference an owned company.
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from db import get_db
from dependencies import get_owner_id
from schemas.companies import CompanyIn, CompanyOut
from services import records

router = APIRouter(prefix="/api/companies", tags=["companies"])


@router.get("", response_model=List[CompanyOut])
@router.get("/", response_model=List[CompanyOut])
def list_companies(db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return records.list_companies(db, owner_id)


@router.post("", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
def create_company(company_in: CompanyIn, db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return records.create_company(db, owner_id, company_in.name)


@router.get("/{company_id}", response_model=CompanyOut)
def get_company(company_id: int, db: Session = Depends(get_db), owner_id: str = Depends(get_owner_id)):
    return records.require_owned_company(db, company_id, owner_id)
