from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import extract, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import (
    OUTSTANDING_STATUSES,
    Expense,
    Income,
    InventoryItem,
    MineSite,
    SalesType,
    User,
    utcnow,
)
from periods import Period, month_key
from repositories import (
    ExpenseRepository,
    IncomeRepository,
    InventoryRepository,
    MineSiteRepository,
    UserRepository,
)
from schemas import (
    CategoryBreakdown,
    ExpenseIn,
    FinancialSummary,
    IncomeIn,
    InventoryItemIn,
    LedgerTotals,
    MineSiteIn,
    MonthlyAmount,
    MonthlyData,
    UserIn,
)
from security import generate_otp, hash_password, verify_password


Clock = Callable[[], datetime]


class RecordNotFound(ValueError):
    pass


class DuplicateRecord(ValueError):
    pass


class InvalidOTP(ValueError):
    pass


def recompute_income_totals(income: Income) -> None:
    income.total_amount = income.quantity * income.price_per_unit
    income.amount_due = income.total_amount - income.amount_paid


def recompute_expense_totals(expense: Expense) -> None:
    expense.amount_due = expense.amount - expense.amount_paid


def build_breakdown(rows) -> list[CategoryBreakdown]:
    """Attach each row's share of the grand total; all zero if the total is."""
    total = sum(float(row.total or 0) for row in rows)
    breakdown = []
    for row in rows:
        amount = float(row.total or 0)
        percentage = (amount / total * 100) if total > 0 else 0
        breakdown.append(
            CategoryBreakdown(
                category=row.category, amount=amount, percentage=percentage
            )
        )
    return breakdown


class UserService(UserRepository):
    def __init__(
        self,
        session: Session,
        *,
        otp_ttl_minutes: int = 10,
        clock: Optional[Clock] = None,
    ) -> None:
        self.session = session
        self.otp_ttl = timedelta(minutes=otp_ttl_minutes)
        self.clock = clock or utcnow

    def list_all(self) -> list[User]:
        stmt = select(User).where(User.deleted_at.is_(None)).order_by(User.id)
        return self.session.scalars(stmt).all()

    def get_by_email(self, email: str) -> User:
        stmt = select(User).where(User.email == email, User.deleted_at.is_(None))
        user = self.session.scalar(stmt)
        if not user:
            raise RecordNotFound("User not found")
        return user

    def get(self, user_id: int) -> User:
        stmt = select(User).where(User.id == user_id, User.deleted_at.is_(None))
        user = self.session.scalar(stmt)
        if not user:
            raise RecordNotFound("User not found")
        return user

    def insert(self, data: UserIn) -> User:
        user = User(
            email=data.email,
            name=data.name,
            phone=data.phone,
            role=data.role.value,
            password_hash=hash_password(data.password),
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateRecord("Email already registered") from exc
        self.session.refresh(user)
        return user

    def update(self, user: User, new_password: Optional[str] = None) -> User:
        if new_password:
            user.password_hash = hash_password(new_password)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def delete(self, user: User) -> None:
        if user.deleted_at is not None:
            return
        user.deleted_at = self.clock()
        self.session.commit()

    def delete_by_id(self, user_id: int) -> None:
        self.delete(self.get(user_id))

    def reset_password(self, user_id: int, new_password: str) -> None:
        user = self.get(user_id)
        user.password_hash = hash_password(new_password)
        self.session.commit()

    def password_matches(self, user: User, plain_text: str) -> bool:
        return verify_password(plain_text, user.password_hash)

    def generate_and_save_otp(self, email: str) -> str:
        user = self.get_by_email(email)
        otp = generate_otp()
        user.otp_code = otp
        user.otp_expires_at = self.clock() + self.otp_ttl
        self.session.commit()
        return otp

    def verify_otp(self, email: str, otp: str) -> bool:
        stmt = select(User.id).where(
            User.email == email,
            User.deleted_at.is_(None),
            User.otp_code == otp,
            User.otp_expires_at > self.clock(),
        )
        return self.session.scalar(stmt) is not None

    def reset_password_with_otp(
        self, email: str, otp: str, new_password: str
    ) -> None:
        if not self.verify_otp(email, otp):
            raise InvalidOTP("Invalid or expired OTP")
        user = self.get_by_email(email)
        user.password_hash = hash_password(new_password)
        user.otp_code = None
        user.otp_expires_at = None
        self.session.commit()


class IncomeService(IncomeRepository):
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _owned(self):
        return (Income.user_id == self.user_id, Income.deleted_at.is_(None))

    def list_all(self) -> list[Income]:
        stmt = (
            select(Income)
            .where(*self._owned())
            .order_by(Income.date.desc(), Income.id.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, income_id: int) -> Income:
        stmt = select(Income).where(Income.id == income_id, *self._owned())
        income = self.session.scalar(stmt)
        if not income:
            raise RecordNotFound("Income record not found")
        return income

    def _apply(self, income: Income, data: IncomeIn) -> None:
        income.date = data.date
        income.item_name = data.item_name
        income.mineral_type = data.mineral_type
        income.gemstone_type = data.gemstone_type or None
        if data.sales_type is not None:
            income.sales_type = data.sales_type.value
        income.quantity = data.quantity
        income.unit = data.unit
        income.price_per_unit = data.price_per_unit
        income.customer_name = data.customer_name
        income.customer_contact = data.customer_contact
        income.payment_status = data.payment_status.value
        income.amount_paid = data.amount_paid
        income.notes = data.notes
        recompute_income_totals(income)

    def create(self, data: IncomeIn) -> Income:
        income = Income(user_id=self.user_id, sales_type=SalesType.mineral.value)
        self._apply(income, data)
        self.session.add(income)
        self.session.commit()
        self.session.refresh(income)
        return income

    def update(self, income_id: int, data: IncomeIn) -> Income:
        income = self.get(income_id)
        self._apply(income, data)
        self.session.commit()
        self.session.refresh(income)
        return income

    def soft_delete(self, income_id: int) -> None:
        income = self.get(income_id)
        income.deleted_at = utcnow()
        self.session.commit()

    def by_date_range(self, period: Period) -> list[Income]:
        stmt = (
            select(Income)
            .where(*self._owned(), Income.date.between(period.start, period.end))
            .order_by(Income.date.desc(), Income.id.desc())
        )
        return self.session.scalars(stmt).all()

    def category_breakdown(self) -> list[CategoryBreakdown]:
        total = func.coalesce(func.sum(Income.total_amount), 0)
        stmt = (
            select(Income.mineral_type.label("category"), total.label("total"))
            .where(*self._owned())
            .group_by(Income.mineral_type)
            .order_by(total.desc())
        )
        return build_breakdown(self.session.execute(stmt).all())

    def monthly_totals(self, year: int) -> list[MonthlyAmount]:
        month = extract("month", Income.date)
        stmt = (
            select(
                month.label("month"),
                func.coalesce(func.sum(Income.total_amount), 0).label("total"),
            )
            .where(*self._owned(), extract("year", Income.date) == year)
            .group_by(month)
            .order_by(month)
        )
        return [
            MonthlyAmount(month=month_key(year, int(row.month)), amount=float(row.total))
            for row in self.session.execute(stmt).all()
        ]

    def summary(self) -> LedgerTotals:
        total = self.session.execute(
            select(func.coalesce(func.sum(Income.total_amount), 0)).where(
                *self._owned()
            )
        ).scalar_one()
        due = self.session.execute(
            select(func.coalesce(func.sum(Income.amount_due), 0)).where(
                *self._owned(), Income.payment_status.in_(OUTSTANDING_STATUSES)
            )
        ).scalar_one()
        return LedgerTotals(total_amount=float(total), total_due=float(due))


class ExpenseService(ExpenseRepository):
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _owned(self):
        return (Expense.user_id == self.user_id, Expense.deleted_at.is_(None))

    def list_all(self) -> list[Expense]:
        stmt = (
            select(Expense)
            .where(*self._owned())
            .order_by(Expense.date.desc(), Expense.id.desc())
        )
        return self.session.scalars(stmt).all()

    def get(self, expense_id: int) -> Expense:
        stmt = select(Expense).where(Expense.id == expense_id, *self._owned())
        expense = self.session.scalar(stmt)
        if not expense:
            raise RecordNotFound("Expense record not found")
        return expense

    def _apply(self, expense: Expense, data: ExpenseIn) -> None:
        expense.date = data.date
        expense.category = data.category.value
        expense.description = data.description
        expense.amount = data.amount
        expense.supplier_name = data.supplier_name
        expense.supplier_contact = data.supplier_contact or None
        expense.payment_status = data.payment_status.value
        expense.amount_paid = data.amount_paid
        expense.notes = data.notes
        recompute_expense_totals(expense)

    def create(self, data: ExpenseIn) -> Expense:
        expense = Expense(user_id=self.user_id)
        self._apply(expense, data)
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def update(self, expense_id: int, data: ExpenseIn) -> Expense:
        expense = self.get(expense_id)
        self._apply(expense, data)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def soft_delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        expense.deleted_at = utcnow()
        self.session.commit()

    def by_date_range(self, period: Period) -> list[Expense]:
        stmt = (
            select(Expense)
            .where(*self._owned(), Expense.date.between(period.start, period.end))
            .order_by(Expense.date.desc(), Expense.id.desc())
        )
        return self.session.scalars(stmt).all()

    def category_breakdown(self) -> list[CategoryBreakdown]:
        total = func.coalesce(func.sum(Expense.amount), 0)
        stmt = (
            select(Expense.category.label("category"), total.label("total"))
            .where(*self._owned())
            .group_by(Expense.category)
            .order_by(total.desc())
        )
        return build_breakdown(self.session.execute(stmt).all())

    def monthly_totals(self, year: int) -> list[MonthlyAmount]:
        month = extract("month", Expense.date)
        stmt = (
            select(
                month.label("month"),
                func.coalesce(func.sum(Expense.amount), 0).label("total"),
            )
            .where(*self._owned(), extract("year", Expense.date) == year)
            .group_by(month)
            .order_by(month)
        )
        return [
            MonthlyAmount(month=month_key(year, int(row.month)), amount=float(row.total))
            for row in self.session.execute(stmt).all()
        ]

    def summary(self) -> LedgerTotals:
        total = self.session.execute(
            select(func.coalesce(func.sum(Expense.amount), 0)).where(*self._owned())
        ).scalar_one()
        due = self.session.execute(
            select(func.coalesce(func.sum(Expense.amount_due), 0)).where(
                *self._owned(), Expense.payment_status.in_(OUTSTANDING_STATUSES)
            )
        ).scalar_one()
        return LedgerTotals(total_amount=float(total), total_due=float(due))


class InventoryService(InventoryRepository):
    def __init__(
        self, session: Session, user_id: int, *, clock: Optional[Clock] = None
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.clock = clock or utcnow

    def _owned(self):
        return (
            InventoryItem.user_id == self.user_id,
            InventoryItem.deleted_at.is_(None),
        )

    def list_all(self) -> list[InventoryItem]:
        stmt = (
            select(InventoryItem)
            .where(*self._owned())
            .order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
        )
        return self.session.scalars(stmt).all()

    def get(self, item_id: int) -> InventoryItem:
        stmt = select(InventoryItem).where(InventoryItem.id == item_id, *self._owned())
        item = self.session.scalar(stmt)
        if not item:
            raise RecordNotFound("Inventory item not found")
        return item

    def _apply(self, item: InventoryItem, data: InventoryItemIn) -> None:
        item.name = data.name
        item.type = data.type.value
        item.source = data.source.value if data.source else None
        item.pit_number = data.pit_number
        item.miner_name = data.miner_name
        item.batch_number = data.batch_number
        item.processing_method = data.processing_method
        item.quantity = data.quantity
        item.unit = data.unit
        item.min_stock_level = data.min_stock_level
        item.current_value = data.current_value
        item.last_updated = self.clock()

    def create(self, data: InventoryItemIn) -> InventoryItem:
        item = InventoryItem(user_id=self.user_id)
        self._apply(item, data)
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def update(self, item_id: int, data: InventoryItemIn) -> InventoryItem:
        item = self.get(item_id)
        self._apply(item, data)
        self.session.commit()
        self.session.refresh(item)
        return item

    def soft_delete(self, item_id: int) -> None:
        item = self.get(item_id)
        item.deleted_at = self.clock()
        self.session.commit()

    def low_stock(self) -> list[InventoryItem]:
        stmt = (
            select(InventoryItem)
            .where(
                *self._owned(),
                InventoryItem.quantity <= InventoryItem.min_stock_level,
            )
            .order_by(InventoryItem.quantity.asc(), InventoryItem.id.asc())
        )
        return self.session.scalars(stmt).all()

    def update_quantity(self, item_id: int, quantity: float) -> InventoryItem:
        item = self.get(item_id)
        item.quantity = quantity
        item.last_updated = self.clock()
        self.session.commit()
        self.session.refresh(item)
        return item


class MineSiteService(MineSiteRepository):
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def get(self) -> Optional[MineSite]:
        stmt = select(MineSite).where(MineSite.user_id == self.user_id)
        return self.session.scalar(stmt)

    def upsert(self, data: MineSiteIn) -> MineSite:
        site = self.get()
        if site is None:
            site = MineSite(user_id=self.user_id)
            self.session.add(site)
        for field, value in data.model_dump().items():
            setattr(site, field, value)
        self.session.commit()
        self.session.refresh(site)
        return site


class AnalyticsService:
    """Combines the income and expense ledgers of one user."""

    def __init__(
        self, incomes: IncomeRepository, expenses: ExpenseRepository
    ) -> None:
        self.incomes = incomes
        self.expenses = expenses

    def financial_summary(self) -> FinancialSummary:
        income = self.incomes.summary()
        expense = self.expenses.summary()
        net_profit = income.total_amount - expense.total_amount
        profit_margin = (
            (net_profit / income.total_amount * 100) if income.total_amount > 0 else 0
        )
        return FinancialSummary(
            total_income=income.total_amount,
            total_expenses=expense.total_amount,
            net_profit=net_profit,
            total_receivables=income.total_due,
            total_payables=expense.total_due,
            profit_margin=profit_margin,
        )

    def monthly_data(self, year: int) -> list[MonthlyData]:
        """Merge both monthly series by month key.

        Order follows first appearance (income months, then expense-only
        months); callers that need chronological order must sort.
        """
        merged: dict[str, MonthlyData] = {}
        for row in self.incomes.monthly_totals(year):
            entry = merged.setdefault(row.month, MonthlyData(month=row.month))
            entry.income += row.amount
        for row in self.expenses.monthly_totals(year):
            entry = merged.setdefault(row.month, MonthlyData(month=row.month))
            entry.expenses += row.amount
        for entry in merged.values():
            entry.profit = entry.income - entry.expenses
        return list(merged.values())

    def expense_breakdown(self) -> list[CategoryBreakdown]:
        return self.expenses.category_breakdown()

    def income_breakdown(self) -> list[CategoryBreakdown]:
        return self.incomes.category_breakdown()
