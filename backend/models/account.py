"""Account model - a single investment account belonging to an owner."""

from sqlalchemy import Boolean, Column, DateTime, String

from database import Base
from models.utils import generate_uuid, utc_now


class Account(Base):
    """An investment account whose daily snapshots feed the returns engine.

    The combined view of all of an owner's accounts is not an Account row;
    it is stored under the reserved scope id ``"overall"``.
    """

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
    )
