"""
Company management API

A company that still has sites can be neither deleted nor enabled/disabled;
its sites must be removed first.
"""
import logging
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from sitebuilder.api import deps
from sitebuilder.crud import crud_company
from sitebuilder.models.company import Company
from sitebuilder.models.user import User
from sitebuilder.schemas import company as schemas

router = APIRouter()
logger = logging.getLogger("sitebuilder.companies")


# ── Helpers ──

def _get_owned_company(db: Session, company_id: UUID, user: User, action: str) -> Company:
    company = crud_company.get(db, company_id)
    if not company:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Company not found")
    if company.user_id != user.id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You do not have permission to {action} this company",
        )
    return company


def _serialize(company: Company, site_count: int) -> schemas.Company:
    data = schemas.Company.model_validate(company)
    data.site_count = site_count
    return data


# ── Endpoints ──

@router.get("/get", response_model=schemas.CompanyList)
def list_companies(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: str = "",
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """Paginated companies, most sites first."""
    flag = None
    if status_filter in ("true", "false"):
        flag = status_filter == "true"
    rows, pagination = crud_company.get_page(db, page=page, limit=limit, search=search.strip(), status=flag)
    return schemas.CompanyList(
        success=True,
        data=[_serialize(company, count) for company, count in rows],
        pagination=schemas.Pagination(**pagination),
    )


@router.put("/update")
def update_company(
    body: schemas.CompanyUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    if not (body.name and body.phone and body.email and body.address):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name, phone, email, and address are required",
        )
    company = _get_owned_company(db, body.id, current_user, "update")

    duplicate = crud_company.get_by_name(db, body.name)
    if duplicate and duplicate.id != company.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Company with name {body.name} already exists",
        )

    update_data = body.model_dump(exclude={"id"}, exclude_unset=True)
    if update_data.get("status") is None:
        update_data.pop("status", None)
    company = crud_company.update(db, db_obj=company, update_data=update_data)
    logger.info("Company %s updated by %s", company.id, current_user.id)
    return {
        "success": True,
        "data": _serialize(company, crud_company.count_sites(db, company.id)),
        "message": "Company updated successfully",
    }


@router.delete("/delete")
def delete_company(
    id: Optional[UUID] = None,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    if not id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Company ID is required")
    company = _get_owned_company(db, id, current_user, "delete")

    site_count = crud_company.count_sites(db, company.id)
    if site_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot delete company with {site_count} site(s) registered. Please delete all sites first.",
        )

    crud_company.remove(db, db_obj=company)
    logger.info("Company %s deleted by %s", id, current_user.id)
    return {"success": True, "message": "Company and all associated data deleted successfully"}


@router.put("/toggle-status")
def toggle_company_status(
    body: schemas.CompanyStatusUpdate,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    if not isinstance(body.status, bool):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Status must be a boolean value")
    company = _get_owned_company(db, body.id, current_user, "update")
    action = "enable" if body.status else "disable"

    site_count = crud_company.count_sites(db, company.id)
    if site_count > 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Cannot {action} company with {site_count} site(s) registered. Please delete all sites first.",
        )

    company = crud_company.update(db, db_obj=company, update_data={"status": body.status})
    return {
        "success": True,
        "data": _serialize(company, 0),
        "message": f"Company {action}d successfully",
    }
