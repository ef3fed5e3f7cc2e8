import uuid
import enum
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint, Uuid, func
from sqlalchemy.orm import relationship
from sitebuilder.db.base_class import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String(20), default=UserRole.USER.value)
    status = Column(String(20), default="active")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    metas = relationship("UserMeta", back_populates="user", cascade="all, delete-orphan")
    companies = relationship("Company", back_populates="user")
    sites = relationship("Site", back_populates="user")

    @property
    def is_active(self):
        return self.status == "active"

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN.value


class UserMeta(Base):
    """Profile attributes (first_name, phone, country, ...) stored as key/value rows."""
    __table_args__ = (UniqueConstraint("user_id", "meta_key", name="uq_usermeta_user_key"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    meta_key = Column(String(100), nullable=False)
    meta_value = Column(Text, default="")

    user = relationship("User", back_populates="metas")
