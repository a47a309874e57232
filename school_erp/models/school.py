"""School model."""

import math
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_erp.core.database import BaseModel, as_utc, utcnow
from school_erp.core.plans import Plan


class SchoolStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class School(BaseModel):
    """School model - represents a tenant in the system."""

    __tablename__ = "schools"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    status: Mapped[SchoolStatus] = mapped_column(
        String(20),
        default=SchoolStatus.ACTIVE,
        nullable=False,
    )
    address: Mapped[str | None] = mapped_column(String(500))
    phone: Mapped[str | None] = mapped_column(String(50))
    email: Mapped[str | None] = mapped_column(String(255))

    # Plan, feature flags and usage limits
    plan: Mapped[Plan] = mapped_column(String(20), default=Plan.BASIC, nullable=False)
    modules: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    limits: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    online_payments_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    # Subscription tracking
    subscription_start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    subscription_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    grace_period_days: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    subscription_is_expired: Mapped[bool] = mapped_column(Boolean, default=False)
    last_renewal_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    users: Mapped[list["User"]] = relationship("User", back_populates="school")

    @property
    def is_active(self) -> bool:
        return self.status == SchoolStatus.ACTIVE

    @property
    def grace_end_date(self) -> datetime | None:
        if self.subscription_end_date is None:
            return None
        return as_utc(self.subscription_end_date) + timedelta(days=self.grace_period_days or 0)

    def subscription_state(self, now: datetime | None = None) -> dict:
        """Compute expiry from the stored window. Never trusts the cached flag."""
        now = now or utcnow()
        end = self.subscription_end_date
        if end is None:
            return {
                "is_expired": False,
                "in_grace_period": False,
                "days_remaining": None,
                "end_date": None,
                "grace_end_date": None,
            }

        end = as_utc(end)
        grace_end = self.grace_end_date
        remaining = (end - now).total_seconds() / 86400
        return {
            "is_expired": now > grace_end,
            "in_grace_period": end < now <= grace_end,
            "days_remaining": max(0, math.ceil(remaining)),
            "end_date": end,
            "grace_end_date": grace_end,
        }

    def __repr__(self) -> str:
        return f"<School(id={self.id}, code={self.code})>"
