"""
Site and SiteMeta models.

A Site is bound to exactly one Company; its domain is globally unique and
stored lowercase. SiteMeta holds per-site settings (tagline, accent_color,
logo_url, favicon_url) with at most one row per (site, key).
"""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import relationship
from sitebuilder.db.base_class import Base


class Site(Base):
    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    domain = Column(String(253), unique=True, nullable=False, index=True)
    site_name = Column(String(255), nullable=False)
    status = Column(Boolean, default=True)

    user_id = Column(Uuid, ForeignKey("user.id"), nullable=False, index=True)
    company_id = Column(Uuid, ForeignKey("company.id"), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="sites")
    company = relationship("Company", back_populates="sites")
    site_meta = relationship("SiteMeta", back_populates="site")

    def meta_dict(self) -> dict:
        return {m.meta_key: m.meta_value for m in self.site_meta}


class SiteMeta(Base):
    __table_args__ = (UniqueConstraint("site_id", "meta_key", name="uq_sitemeta_site_key"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    site_id = Column(Uuid, ForeignKey("site.id"), nullable=False, index=True)
    meta_key = Column(String(100), nullable=False)
    meta_value = Column(Text, default="")

    site = relationship("Site", back_populates="site_meta")
