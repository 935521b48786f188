"""User accounts as seen by the review and moderation core.

Sign-up, login and profile editing live in the identity service; this table
only carries what authorization and display need.
"""
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, String

from marketplace.db.tables import Base, new_id, utcnow
from marketplace.models.common import UserRole


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(320), nullable=True, unique=True, index=True)
    full_name = Column(String(200), nullable=True)
    avatar_url = Column(String(2000), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.CUSTOMER.value)
    is_admin = Column(Boolean, nullable=False, default=False)
    is_super_admin = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)  # email/identity verified
    created_at = Column(DateTime(timezone=True), default=utcnow)


def user_summary(user: UserRow | None) -> dict | None:
    """Denormalized display fields for embedding in review/report payloads."""
    if user is None:
        return None
    return {
        "id": user.id,
        "full_name": user.full_name,
        "avatar_url": user.avatar_url,
        "role": user.role,
    }
