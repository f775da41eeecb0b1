"""Repository contracts.

Every per-user repository is bound to one owner id at construction and must
apply that id to every statement it issues. Lookups of rows that are missing,
soft-deleted or owned by someone else all raise ``RecordNotFound``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from models import Expense, Income, InventoryItem, MineSite, User
    from periods import Period
    from schemas import (
        CategoryBreakdown,
        ExpenseIn,
        IncomeIn,
        InventoryItemIn,
        LedgerTotals,
        MineSiteIn,
        MonthlyAmount,
        UserIn,
    )


class UserRepository(ABC):
    @abstractmethod
    def list_all(self) -> list[User]: ...

    @abstractmethod
    def get_by_email(self, email: str) -> User: ...

    @abstractmethod
    def get(self, user_id: int) -> User: ...

    @abstractmethod
    def insert(self, data: UserIn) -> User:
        """Persist a new user, storing only the hash of ``data.password``."""

    @abstractmethod
    def update(self, user: User, new_password: Optional[str] = None) -> User:
        """Save profile fields; the hash changes only if a password is given."""

    @abstractmethod
    def delete(self, user: User) -> None: ...

    @abstractmethod
    def delete_by_id(self, user_id: int) -> None: ...

    @abstractmethod
    def reset_password(self, user_id: int, new_password: str) -> None: ...

    @abstractmethod
    def password_matches(self, user: User, plain_text: str) -> bool: ...

    @abstractmethod
    def generate_and_save_otp(self, email: str) -> str: ...

    @abstractmethod
    def verify_otp(self, email: str, otp: str) -> bool: ...

    @abstractmethod
    def reset_password_with_otp(
        self, email: str, otp: str, new_password: str
    ) -> None:
        """Replace the password if the code is valid, else raise ``InvalidOTP``."""


class IncomeRepository(ABC):
    @abstractmethod
    def list_all(self) -> list[Income]: ...

    @abstractmethod
    def get(self, income_id: int) -> Income: ...

    @abstractmethod
    def create(self, data: IncomeIn) -> Income: ...

    @abstractmethod
    def update(self, income_id: int, data: IncomeIn) -> Income: ...

    @abstractmethod
    def soft_delete(self, income_id: int) -> None: ...

    @abstractmethod
    def by_date_range(self, period: Period) -> list[Income]: ...

    @abstractmethod
    def category_breakdown(self) -> list[CategoryBreakdown]: ...

    @abstractmethod
    def monthly_totals(self, year: int) -> list[MonthlyAmount]: ...

    @abstractmethod
    def summary(self) -> LedgerTotals:
        """Sum of totals and of amounts still due on unpaid/partial sales."""


class ExpenseRepository(ABC):
    @abstractmethod
    def list_all(self) -> list[Expense]: ...

    @abstractmethod
    def get(self, expense_id: int) -> Expense: ...

    @abstractmethod
    def create(self, data: ExpenseIn) -> Expense: ...

    @abstractmethod
    def update(self, expense_id: int, data: ExpenseIn) -> Expense: ...

    @abstractmethod
    def soft_delete(self, expense_id: int) -> None: ...

    @abstractmethod
    def by_date_range(self, period: Period) -> list[Expense]: ...

    @abstractmethod
    def category_breakdown(self) -> list[CategoryBreakdown]: ...

    @abstractmethod
    def monthly_totals(self, year: int) -> list[MonthlyAmount]: ...

    @abstractmethod
    def summary(self) -> LedgerTotals:
        """Sum of amounts and of amounts still due on unpaid/partial bills."""


class InventoryRepository(ABC):
    @abstractmethod
    def list_all(self) -> list[InventoryItem]: ...

    @abstractmethod
    def get(self, item_id: int) -> InventoryItem: ...

    @abstractmethod
    def create(self, data: InventoryItemIn) -> InventoryItem: ...

    @abstractmethod
    def update(self, item_id: int, data: InventoryItemIn) -> InventoryItem: ...

    @abstractmethod
    def soft_delete(self, item_id: int) -> None: ...

    @abstractmethod
    def low_stock(self) -> list[InventoryItem]: ...

    @abstractmethod
    def update_quantity(self, item_id: int, quantity: float) -> InventoryItem: ...


class MineSiteRepository(ABC):
    @abstractmethod
    def get(self) -> Optional[MineSite]: ...

    @abstractmethod
    def upsert(self, data: MineSiteIn) -> MineSite: ...
