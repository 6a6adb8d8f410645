# eventhub/models/discount_coupon.py
from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
)

from eventhub.core.db import Base
from eventhub.core.time_utils import utcnow


class DiscountCoupon(Base):
    __tablename__ = "discount_coupons"
    __table_args__ = (
        CheckConstraint("discount >= 0", name="discount_coupons_discount_chk"),
    )

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)

    user_id = Column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    code = Column(String(16), unique=True, nullable=False)

    # flat amount taken off the order total
    discount = Column(Integer, nullable=False)

    expires_at = Column(DateTime, nullable=False)
    is_used = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=utcnow)
