import re
from datetime import date, datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator

from models import (
    ExpenseCategory,
    InventorySource,
    InventoryType,
    PaymentStatus,
    SalesType,
    UserRole,
)


PHONE_RE = re.compile(r"^\+?[1-9]\d{1,14}$")


class InputModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


def _check_phone(value: str) -> Optional[str]:
    if not value:
        return None
    if not PHONE_RE.match(value):
        raise ValueError("Invalid phone number format")
    return value


Phone = Optional[Annotated[str, AfterValidator(_check_phone)]]


# auth / profile


class SignupIn(InputModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)
    phone: Phone = None
    password: str = Field(..., min_length=6)
    admin_code: Optional[str] = None


class LoginIn(InputModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class ForgotPasswordIn(InputModel):
    email: EmailStr


class ResetPasswordIn(InputModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=6)
    new_password: str = Field(..., min_length=6)


class ProfileUpdateIn(InputModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone: Phone = None
    location: Optional[str] = Field(default=None, max_length=255)


class PasswordChangeIn(InputModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class UserIn(InputModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)
    phone: Phone = None
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.standard


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    phone: Optional[str] = None
    location: Optional[str] = None
    role: str


# ledger records


class IncomeIn(InputModel):
    date: date
    item_name: Optional[str] = Field(default=None, max_length=100)
    mineral_type: str = Field(..., min_length=1, max_length=50)
    gemstone_type: Optional[str] = Field(default=None, max_length=50)
    sales_type: Optional[SalesType] = None
    quantity: float = Field(..., gt=0)
    unit: str = Field(..., min_length=1, max_length=20)
    price_per_unit: float = Field(..., gt=0)
    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_contact: Optional[str] = Field(default=None, max_length=100)
    payment_status: PaymentStatus
    amount_paid: float = Field(default=0, ge=0)
    notes: Optional[str] = None

    @field_validator("mineral_type")
    @classmethod
    def normalize_mineral(cls, value: str) -> str:
        return value.lower()


class IncomeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    date: date
    item_name: Optional[str] = None
    mineral_type: str
    gemstone_type: Optional[str] = None
    sales_type: str
    quantity: float
    unit: str
    price_per_unit: float
    total_amount: float
    customer_name: str
    customer_contact: Optional[str] = None
    payment_status: str
    amount_paid: float
    amount_due: float
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ExpenseIn(InputModel):
    date: date
    category: ExpenseCategory
    description: str = Field(..., min_length=1, max_length=255)
    amount: float = Field(..., gt=0)
    supplier_name: str = Field(..., min_length=1, max_length=100)
    supplier_contact: Optional[str] = Field(default=None, max_length=100)
    payment_status: PaymentStatus
    amount_paid: float = Field(default=0, ge=0)
    notes: Optional[str] = None


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    date: date
    category: str
    description: str
    amount: float
    supplier_name: str
    supplier_contact: Optional[str] = None
    payment_status: str
    amount_paid: float
    amount_due: float
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class InventoryItemIn(InputModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: InventoryType
    source: Optional[InventorySource] = None
    pit_number: Optional[str] = Field(default=None, max_length=50)
    miner_name: Optional[str] = Field(default=None, max_length=100)
    batch_number: Optional[str] = Field(default=None, max_length=50)
    processing_method: Optional[str] = Field(default=None, max_length=100)
    quantity: float = Field(..., ge=0)
    unit: str = Field(..., min_length=1, max_length=20)
    min_stock_level: float = Field(default=0, ge=0)
    current_value: float = Field(default=0, ge=0)


class QuantityIn(BaseModel):
    quantity: float = Field(..., ge=0)


class InventoryItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    type: str
    source: Optional[str] = None
    pit_number: Optional[str] = None
    miner_name: Optional[str] = None
    batch_number: Optional[str] = None
    processing_method: Optional[str] = None
    quantity: float
    unit: str
    min_stock_level: float
    current_value: float
    last_updated: datetime
    is_low_stock: bool


class MineSiteIn(InputModel):
    owner: str = Field(..., min_length=1, max_length=100)
    license: Optional[str] = Field(default=None, max_length=100)
    location: str = Field(..., min_length=1, max_length=255)
    size_hectares: Optional[float] = Field(default=None, ge=0)
    number_of_pits: Optional[int] = Field(default=None, ge=0)
    commodities: Optional[str] = None
    equipment: Optional[str] = None
    employees: Optional[int] = Field(default=None, ge=0)
    established_year: Optional[int] = Field(default=None, ge=1800, le=3000)
    contact: Optional[str] = Field(default=None, max_length=100)


class MineSiteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    owner: str
    license: Optional[str] = None
    location: str
    size_hectares: Optional[float] = None
    number_of_pits: Optional[int] = None
    commodities: Optional[str] = None
    equipment: Optional[str] = None
    employees: Optional[int] = None
    established_year: Optional[int] = None
    contact: Optional[str] = None


# derived figures


class LedgerTotals(BaseModel):
    total_amount: float = 0
    total_due: float = 0


class MonthlyAmount(BaseModel):
    month: str
    amount: float = 0


class FinancialSummary(BaseModel):
    total_income: float = 0
    total_expenses: float = 0
    net_profit: float = 0
    total_receivables: float = 0
    total_payables: float = 0
    profit_margin: float = 0


class MonthlyData(BaseModel):
    month: str
    income: float = 0
    expenses: float = 0
    profit: float = 0


class CategoryBreakdown(BaseModel):
    category: str
    amount: float
    percentage: float = 0
