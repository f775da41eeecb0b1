from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Tag columns are plain strings. These enums list the values the API accepts;
# rows written before a value was added or removed still load and aggregate.


class UserRole(str, Enum):
    admin = "admin"
    standard = "standard"


class PaymentStatus(str, Enum):
    paid = "paid"
    unpaid = "unpaid"
    partial = "partial"


OUTSTANDING_STATUSES = (PaymentStatus.unpaid.value, PaymentStatus.partial.value)


class MineralType(str, Enum):
    gold = "gold"
    copper = "copper"
    cobalt = "cobalt"
    diamond = "diamond"
    other = "other"


class SalesType(str, Enum):
    mineral = "mineral"
    supply = "supply"
    concentrates = "concentrates"
    tailings = "tailings"


class ExpenseCategory(str, Enum):
    equipment = "equipment"
    labor = "labor"
    chemicals = "chemicals"
    fuel = "fuel"
    maintenance = "maintenance"
    transport = "transport"
    other = "other"


class InventoryType(str, Enum):
    mineral = "mineral"
    supply = "supply"


class InventorySource(str, Enum):
    mine = "mine"
    processing = "processing"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class SoftDeleteMixin:
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, index=True)


class User(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("email", name="uq_users_email"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    location: Mapped[Optional[str]] = mapped_column(String(255))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default=UserRole.standard.value
    )
    otp_code: Mapped[Optional[str]] = mapped_column(String(6))
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    incomes: Mapped[list["Income"]] = relationship("Income", back_populates="user")
    expenses: Mapped[list["Expense"]] = relationship("Expense", back_populates="user")
    inventory_items: Mapped[list["InventoryItem"]] = relationship(
        "InventoryItem", back_populates="user"
    )


class Income(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "incomes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    item_name: Mapped[Optional[str]] = mapped_column(String(100))
    mineral_type: Mapped[str] = mapped_column(String(50), nullable=False)
    gemstone_type: Mapped[Optional[str]] = mapped_column(String(50))
    sales_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SalesType.mineral.value
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    price_per_unit: Mapped[float] = mapped_column(Float, nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(100), nullable=False)
    customer_contact: Mapped[Optional[str]] = mapped_column(String(100))
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.unpaid.value
    )
    amount_paid: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    amount_due: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    user: Mapped["User"] = relationship("User", back_populates="incomes")

    __table_args__ = (
        Index("ix_incomes_user_date", "user_id", "date"),
        Index("ix_incomes_user_status", "user_id", "payment_status"),
        CheckConstraint("quantity >= 0", name="ck_incomes_quantity_positive"),
        CheckConstraint("amount_paid >= 0", name="ck_incomes_paid_positive"),
    )


class Expense(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "expenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    supplier_name: Mapped[str] = mapped_column(String(100), nullable=False)
    supplier_contact: Mapped[Optional[str]] = mapped_column(String(100))
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.unpaid.value
    )
    amount_paid: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    amount_due: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    user: Mapped["User"] = relationship("User", back_populates="expenses")

    __table_args__ = (
        Index("ix_expenses_user_date", "user_id", "date"),
        Index("ix_expenses_user_category", "user_id", "category"),
        CheckConstraint("amount >= 0", name="ck_expenses_amount_positive"),
        CheckConstraint("amount_paid >= 0", name="ck_expenses_paid_positive"),
    )


class InventoryItem(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "inventory_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    source: Mapped[Optional[str]] = mapped_column(String(20))
    pit_number: Mapped[Optional[str]] = mapped_column(String(50))
    miner_name: Mapped[Optional[str]] = mapped_column(String(100))
    batch_number: Mapped[Optional[str]] = mapped_column(String(50))
    processing_method: Mapped[Optional[str]] = mapped_column(String(100))
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)
    min_stock_level: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    current_value: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="inventory_items")

    __table_args__ = (
        Index("ix_inventory_user_name", "user_id", "name"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_positive"),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock_level


class MineSite(Base, TimestampMixin):
    __tablename__ = "mine_sites"
    __table_args__ = (UniqueConstraint("user_id", name="uq_mine_site_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    owner: Mapped[str] = mapped_column(String(100), nullable=False)
    license: Mapped[Optional[str]] = mapped_column(String(100))
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    size_hectares: Mapped[Optional[float]] = mapped_column(Float)
    number_of_pits: Mapped[Optional[int]] = mapped_column(Integer)
    commodities: Mapped[Optional[str]] = mapped_column(Text)
    equipment: Mapped[Optional[str]] = mapped_column(Text)
    employees: Mapped[Optional[int]] = mapped_column(Integer)
    established_year: Mapped[Optional[int]] = mapped_column(Integer)
    contact: Mapped[Optional[str]] = mapped_column(String(100))
