from typing import Any, List, Optional
from uuid import UUID
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload
from sitebuilder.models.site import Site, SiteMeta


def get(db: Session, site_id: Any) -> Optional[Site]:
    return db.query(Site).filter(Site.id == site_id).first()


def get_by_domain(db: Session, domain: str) -> Optional[Site]:
    return db.query(Site).filter(Site.domain == domain).first()


def get_multi(db: Session, search: Optional[str] = None) -> List[Site]:
    query = db.query(Site).options(
        selectinload(Site.site_meta),
        selectinload(Site.company),
    )
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(or_(
            func.lower(Site.domain).like(pattern),
            func.lower(Site.site_name).like(pattern),
        ))
    return query.order_by(Site.created_at.desc()).all()


def create_with_meta(db: Session, *, domain: str, site_name: str, user_id: UUID,
                     company_id: UUID, meta: dict) -> Site:
    """Add a site plus its initial meta rows and flush. The caller owns the transaction."""
    site = Site(
        domain=domain,
        site_name=site_name,
        user_id=user_id,
        company_id=company_id,
    )
    db.add(site)
    db.flush()
    for key, value in meta.items():
        db.add(SiteMeta(site_id=site.id, meta_key=key, meta_value=value or ""))
    db.flush()
    return site


def upsert_meta(db: Session, *, site_id: UUID, key: str, value: str) -> SiteMeta:
    """Insert or update the single (site_id, key) row."""
    row = db.query(SiteMeta).filter(
        SiteMeta.site_id == site_id,
        SiteMeta.meta_key == key,
    ).first()
    if row:
        row.meta_value = value
    else:
        row = SiteMeta(site_id=site_id, meta_key=key, meta_value=value)
        db.add(row)
    db.flush()
    return row


def delete_meta(db: Session, site_id: UUID) -> int:
    return db.query(SiteMeta).filter(SiteMeta.site_id == site_id).delete(synchronize_session=False)


def remove(db: Session, *, site: Site) -> None:
    """Delete meta rows then the site. The caller commits."""
    delete_meta(db, site.id)
    db.delete(site)
    db.flush()
