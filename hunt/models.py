from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from hunt.database import Base

MILESTONE_THREE_ITEMS = "three_items"
MILESTONE_FULL_COMPLETION = "full_completion"

STATUS_CREATED = "CREATED"
STATUS_PAID = "PAID"
STATUS_FAILED = "FAILED"


def utcnow():
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Participant(Base):
    __tablename__ = "users"

    registration_id = Column(String, primary_key=True)  # normalized: trimmed, upper-cased
    progress = Column(Integer, nullable=False, default=0)  # collected item count
    last_scan_at = Column(DateTime, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    has_paid = Column(Boolean, nullable=False, default=False)
    payment_id = Column(String)
    paid_at = Column(DateTime)


class CollectedItem(Base):
    __tablename__ = "collected_items"
    __table_args__ = (
        UniqueConstraint("registration_id", "item_id", name="uq_collected_item"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)  # collection order
    registration_id = Column(String, ForeignKey("users.registration_id"), nullable=False, index=True)
    item_id = Column(String, ForeignKey("components.id"), nullable=False)
    collected_at = Column(DateTime, nullable=False, default=utcnow)


class Payment(Base):
    __tablename__ = "payments"

    order_id = Column(String, primary_key=True)
    registration_id = Column(String, index=True)
    amount = Column(Integer)
    currency = Column(String)
    status = Column(String, index=True)             # CREATED | PAID | FAILED | provider status
    provider_payment_id = Column(String, unique=True)  # Stripe PaymentIntent ID
    source = Column(String, default="stripe")       # stripe | manual | import
    name = Column(String)
    email = Column(String)
    phone = Column(String)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime)
    processed_at = Column(DateTime)


class Item(Base):
    __tablename__ = "components"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text)
    image = Column(String)
    position = Column(Integer, nullable=False)


class ScanTarget(Base):
    __tablename__ = "qrcodes"

    id = Column(String, primary_key=True)  # printed QR code UUID
    component_id = Column(String, ForeignKey("components.id"), nullable=False)
    points_to_component_id = Column(String, ForeignKey("components.id"), nullable=False)
    clue = Column(Text)
    hint = Column(Text)
    difficulty = Column(String)
    location = Column(String)
    created_at = Column(DateTime, default=utcnow)


class Scan(Base):
    __tablename__ = "scans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    registration_id = Column(String, index=True)
    scan_target_id = Column(String, index=True)
    item_id = Column(String)
    scanned_at = Column(DateTime, default=utcnow)


class Milestone(Base):
    __tablename__ = "milestones"
    __table_args__ = (
        UniqueConstraint("registration_id", "kind", name="uq_milestone"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    registration_id = Column(String, nullable=False, index=True)
    kind = Column(String, nullable=False)  # three_items | full_completion
    reached_at = Column(DateTime, nullable=False, default=utcnow)


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    enabled = Column(Boolean, nullable=False)
    updated_at = Column(DateTime, default=utcnow)


class VerifiedUser(Base):
    __tablename__ = "verified_users"

    registration_id = Column(String, primary_key=True)
    name = Column(String)
    email = Column(String)
    phone = Column(String)
    verified = Column(Boolean, nullable=False, default=True)
    payment_order_id = Column(String)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime)
