import math
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload
from sitebuilder.models.company import Company
from sitebuilder.models.site import Site


def get(db: Session, company_id: Any) -> Optional[Company]:
    return db.query(Company).filter(Company.id == company_id).first()


def get_by_name(db: Session, name: str) -> Optional[Company]:
    return db.query(Company).filter(Company.name == name).first()


def get_by_name_for_user(db: Session, name: str, user_id: UUID) -> Optional[Company]:
    return db.query(Company).filter(
        func.lower(Company.name) == name.lower(),
        Company.user_id == user_id,
    ).first()


def create(db: Session, *, name: str, user_id: UUID, email: Optional[str] = None,
           phone: Optional[str] = None, address: Optional[str] = None, vat: str = "") -> Company:
    """Add a company to the session and flush so it gets an id. The caller commits."""
    db_obj = Company(
        name=name,
        user_id=user_id,
        email=email,
        phone=phone,
        address=address,
        vat=vat,
        status=True,
    )
    db.add(db_obj)
    db.flush()
    return db_obj


def count_sites(db: Session, company_id: UUID) -> int:
    return db.query(func.count(Site.id)).filter(Site.company_id == company_id).scalar() or 0


def get_page(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: str = "",
    status: Optional[bool] = None,
) -> Tuple[List[Tuple[Company, int]], Dict[str, Any]]:
    """
    Paginated company list, most sites first then newest.
    Returns ([(company, site_count)], pagination).
    """
    page = max(page, 1)
    limit = max(limit, 1)

    filters = []
    if search:
        pattern = f"%{search.lower()}%"
        filters.append(or_(
            func.lower(Company.name).like(pattern),
            func.lower(Company.email).like(pattern),
            func.lower(Company.phone).like(pattern),
            func.lower(Company.address).like(pattern),
        ))
    if status is not None:
        filters.append(Company.status == status)

    site_count = (
        db.query(Site.company_id, func.count(Site.id).label("site_count"))
        .group_by(Site.company_id)
        .subquery()
    )
    count_col = func.coalesce(site_count.c.site_count, 0)

    rows = (
        db.query(Company, count_col)
        .outerjoin(site_count, site_count.c.company_id == Company.id)
        .options(selectinload(Company.sites), selectinload(Company.user))
        .filter(*filters)
        .order_by(count_col.desc(), Company.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total = db.query(func.count(Company.id)).filter(*filters).scalar() or 0
    total_pages = math.ceil(total / limit)

    pagination = {
        "page": page,
        "limit": limit,
        "totalCount": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }
    return [(company, int(count)) for company, count in rows], pagination


def update(db: Session, *, db_obj: Company, update_data: Dict[str, Any]) -> Company:
    for field, value in update_data.items():
        setattr(db_obj, field, value)
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj


def remove(db: Session, *, db_obj: Company) -> None:
    db.delete(db_obj)
    db.commit()
