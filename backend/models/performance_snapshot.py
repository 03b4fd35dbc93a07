"""PerformanceSnapshot model - one scope's daily close in one currency."""

from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from models.utils import generate_uuid, utc_now

OVERALL_SCOPE = "overall"


class PerformanceSnapshot(Base):
    """Daily totals for a scope (an account or ``"overall"``) in one currency.

    Written by the external daily-close job. The change percentages are
    pre-computed upstream and treated as ground truth:
    adjusted = (curr - prev + cash_flow) / prev * 100, raw omits cash flow.
    ``adjusted_daily_change_pct`` is NULL when there was no previous value.
    """

    __tablename__ = "performance_snapshots"
    __table_args__ = (
        UniqueConstraint(
            "owner_id", "scope_id", "snapshot_date", "currency",
            name="uix_performance_snapshot",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    owner_id = Column(String, nullable=False, index=True)
    scope_id = Column(String(36), nullable=False, index=True)  # account id or "overall"
    snapshot_date = Column(Date, nullable=False, index=True)
    currency = Column(String(3), nullable=False)
    total_value = Column(Float, nullable=False, default=0.0)
    total_investment = Column(Float, nullable=False, default=0.0)
    total_cash_flow = Column(Float, nullable=False, default=0.0)  # negative = deposit
    unrealized_pnl = Column(Float, nullable=False, default=0.0)
    done_pnl = Column(Float, nullable=False, default=0.0)  # realized that day only
    raw_daily_change_pct = Column(Float, nullable=True)
    adjusted_daily_change_pct = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utc_now)

    # Relationships
    positions = relationship(
        "PositionPerformance",
        back_populates="snapshot",
        cascade="all, delete-orphan",
    )


class PositionPerformance(Base):
    """A single holding's slice of a PerformanceSnapshot."""

    __tablename__ = "position_performances"
    __table_args__ = (
        UniqueConstraint(
            "snapshot_id", "ticker", "asset_class",
            name="uix_position_performance",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    snapshot_id = Column(
        String(36),
        ForeignKey("performance_snapshots.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ticker = Column(String, nullable=False)
    asset_class = Column(String, nullable=False)
    total_value = Column(Float, nullable=False, default=0.0)
    total_investment = Column(Float, nullable=False, default=0.0)
    total_cash_flow = Column(Float, nullable=False, default=0.0)
    unrealized_pnl = Column(Float, nullable=False, default=0.0)
    done_pnl = Column(Float, nullable=False, default=0.0)
    raw_daily_change_pct = Column(Float, nullable=True)
    adjusted_daily_change_pct = Column(Float, nullable=True)

    # Relationships
    snapshot = relationship("PerformanceSnapshot", back_populates="positions")
