import logging
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings
from database import create_schema, engine, session_scope, wait_for_database
from mailer import LogMailer, Mailer
from models import UserRole
from periods import Period, resolve_period, resolve_year
from schemas import (
    ExpenseIn,
    ExpenseOut,
    ForgotPasswordIn,
    IncomeIn,
    IncomeOut,
    InventoryItemIn,
    InventoryItemOut,
    LoginIn,
    MineSiteIn,
    MineSiteOut,
    PasswordChangeIn,
    ProfileUpdateIn,
    QuantityIn,
    ResetPasswordIn,
    SignupIn,
    UserIn,
    UserOut,
)
from security import InvalidToken, TokenClaims, TokenIssuer
from services import (
    AnalyticsService,
    DuplicateRecord,
    ExpenseService,
    IncomeService,
    InvalidOTP,
    InventoryService,
    MineSiteService,
    RecordNotFound,
    UserService,
)


settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Mining Ledger API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

token_issuer = TokenIssuer(settings.secret_key, ttl_hours=settings.token_ttl_hours)
mailer = LogMailer()


def success(message: str, data: Any = None) -> JSONResponse:
    body: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=200, content=body)


def error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": message}
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())[1:])
        msg = err.get("msg", "Invalid value")
        messages.append(f"{field}: {msg}" if field else msg)
    return error(400, "; ".join(messages) or "Invalid request")


@app.exception_handler(RecordNotFound)
async def not_found_handler(request: Request, exc: RecordNotFound):
    return error(404, str(exc))


@app.exception_handler(DuplicateRecord)
async def duplicate_handler(request: Request, exc: DuplicateRecord):
    return error(400, str(exc))


@app.exception_handler(InvalidOTP)
async def invalid_otp_handler(request: Request, exc: InvalidOTP):
    return error(400, str(exc))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"unhandled_error: path={request.url.path}")
    return error(500, "Internal server error")


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"store_error: path={request.url.path}")
    return error(500, "Internal server error")


def get_db():
    with session_scope() as db:
        yield db


def get_token_issuer() -> TokenIssuer:
    return token_issuer


def get_mailer() -> Mailer:
    return mailer


@app.on_event("startup")
def startup_event():
    try:
        wait_for_database(
            engine,
            attempts=settings.db_connect_attempts,
            backoff_secs=settings.db_connect_backoff_secs,
        )
    except OperationalError:
        logger.error(
            f"startup: database unreachable after "
            f"{settings.db_connect_attempts} attempts"
        )
        raise
    create_schema(engine)
    logger.info(f"startup: listening on {settings.host}:{settings.port}")


@app.on_event("shutdown")
def shutdown_event():
    engine.dispose()
    logger.info("shutdown: connections closed")


def current_claims(
    authorization: Optional[str] = Header(default=None),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> TokenClaims:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Authorization token required")
    token = authorization[len("Bearer "):].strip()
    try:
        return issuer.verify(token)
    except InvalidToken as exc:
        raise HTTPException(status_code=401, detail="Invalid or expired token") from exc


def current_user_id(claims: TokenClaims = Depends(current_claims)) -> int:
    return claims.user_id


def require_admin(claims: TokenClaims = Depends(current_claims)) -> TokenClaims:
    if claims.role != UserRole.admin.value:
        raise HTTPException(status_code=403, detail="Admin access required")
    return claims


def user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db, otp_ttl_minutes=settings.otp_ttl_minutes)


def income_service(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
) -> IncomeService:
    return IncomeService(db, user_id)


def expense_service(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
) -> ExpenseService:
    return ExpenseService(db, user_id)


def inventory_service(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
) -> InventoryService:
    return InventoryService(db, user_id)


def mine_site_service(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
) -> MineSiteService:
    return MineSiteService(db, user_id)


def analytics_service(
    incomes: IncomeService = Depends(income_service),
    expenses: ExpenseService = Depends(expense_service),
) -> AnalyticsService:
    return AnalyticsService(incomes, expenses)


def period_from_query(start_date: Optional[str], end_date: Optional[str]) -> Period:
    try:
        return resolve_period(start_date, end_date)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def year_from_query(year: Optional[str]) -> int:
    try:
        return resolve_year(year)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _auth_payload(issuer: TokenIssuer, user) -> dict:
    return {
        "token": issuer.issue(user.id, user.email, user.role),
        "user": UserOut.model_validate(user),
    }


@app.get("/health", response_class=PlainTextResponse)
def health():
    return "OK"


# auth


@app.post("/api/v1/auth/signup")
def signup(
    data: SignupIn,
    users: UserService = Depends(user_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    role = UserRole.standard
    if data.admin_code:
        if data.admin_code != settings.admin_code:
            raise HTTPException(status_code=400, detail="Invalid admin code")
        role = UserRole.admin
    user = users.insert(
        UserIn(
            email=data.email,
            name=data.name,
            phone=data.phone,
            password=data.password,
            role=role,
        )
    )
    logger.info(f"signup: user_id={user.id} role={user.role}")
    return success("User created successfully", _auth_payload(issuer, user))


@app.post("/api/v1/auth/login")
def login(
    data: LoginIn,
    users: UserService = Depends(user_service),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    try:
        user = users.get_by_email(data.email)
    except RecordNotFound:
        user = None
    if user is None or not users.password_matches(user, data.password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return success("Login successful", _auth_payload(issuer, user))


@app.post("/api/v1/auth/forgot-password")
def forgot_password(
    data: ForgotPasswordIn,
    users: UserService = Depends(user_service),
    sender: Mailer = Depends(get_mailer),
):
    try:
        otp = users.generate_and_save_otp(data.email)
    except RecordNotFound:
        logger.info(f"forgot_password: unknown email={data.email}")
    else:
        sender.send_otp(data.email, otp)
    return success("If the email is registered, a reset code has been sent")


@app.post("/api/v1/auth/reset-password")
def reset_password(data: ResetPasswordIn, users: UserService = Depends(user_service)):
    users.reset_password_with_otp(data.email, data.otp, data.new_password)
    return success("Password reset successfully")


# profile


@app.get("/api/v1/profile")
def get_profile(
    user_id: int = Depends(current_user_id),
    users: UserService = Depends(user_service),
):
    return success("Profile retrieved", UserOut.model_validate(users.get(user_id)))


@app.put("/api/v1/profile")
def update_profile(
    data: ProfileUpdateIn,
    user_id: int = Depends(current_user_id),
    users: UserService = Depends(user_service),
):
    user = users.get(user_id)
    user.name = data.name
    user.phone = data.phone
    user.location = data.location
    user = users.update(user)
    return success("Profile updated successfully", UserOut.model_validate(user))


@app.put("/api/v1/profile/password")
def change_password(
    data: PasswordChangeIn,
    user_id: int = Depends(current_user_id),
    users: UserService = Depends(user_service),
):
    user = users.get(user_id)
    if not users.password_matches(user, data.current_password):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    users.update(user, new_password=data.new_password)
    return success("Password changed successfully")


# income


@app.get("/api/v1/income")
def list_income(incomes: IncomeService = Depends(income_service)):
    rows = [IncomeOut.model_validate(row) for row in incomes.list_all()]
    return success("Income records retrieved", rows)


@app.post("/api/v1/income")
def create_income(data: IncomeIn, incomes: IncomeService = Depends(income_service)):
    income = incomes.create(data)
    return success("Income record created", IncomeOut.model_validate(income))


@app.get("/api/v1/income/range")
def income_by_range(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    incomes: IncomeService = Depends(income_service),
):
    period = period_from_query(start_date, end_date)
    rows = [IncomeOut.model_validate(row) for row in incomes.by_date_range(period)]
    return success("Income records retrieved", rows)


@app.get("/api/v1/income/{income_id}")
def get_income(income_id: int, incomes: IncomeService = Depends(income_service)):
    return success("Income record retrieved", IncomeOut.model_validate(incomes.get(income_id)))


@app.put("/api/v1/income/{income_id}")
def update_income(
    income_id: int, data: IncomeIn, incomes: IncomeService = Depends(income_service)
):
    income = incomes.update(income_id, data)
    return success("Income record updated", IncomeOut.model_validate(income))


@app.delete("/api/v1/income/{income_id}")
def delete_income(income_id: int, incomes: IncomeService = Depends(income_service)):
    incomes.soft_delete(income_id)
    return success("Income record deleted")


# expenses


@app.get("/api/v1/expense")
def list_expenses(expenses: ExpenseService = Depends(expense_service)):
    rows = [ExpenseOut.model_validate(row) for row in expenses.list_all()]
    return success("Expense records retrieved", rows)


@app.post("/api/v1/expense")
def create_expense(data: ExpenseIn, expenses: ExpenseService = Depends(expense_service)):
    expense = expenses.create(data)
    return success("Expense record created", ExpenseOut.model_validate(expense))


@app.get("/api/v1/expense/range")
def expenses_by_range(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    expenses: ExpenseService = Depends(expense_service),
):
    period = period_from_query(start_date, end_date)
    rows = [ExpenseOut.model_validate(row) for row in expenses.by_date_range(period)]
    return success("Expense records retrieved", rows)


@app.get("/api/v1/expense/breakdown")
def expense_category_breakdown(expenses: ExpenseService = Depends(expense_service)):
    return success("Expense breakdown retrieved", expenses.category_breakdown())


@app.get("/api/v1/expense/{expense_id}")
def get_expense(expense_id: int, expenses: ExpenseService = Depends(expense_service)):
    return success(
        "Expense record retrieved", ExpenseOut.model_validate(expenses.get(expense_id))
    )


@app.put("/api/v1/expense/{expense_id}")
def update_expense(
    expense_id: int,
    data: ExpenseIn,
    expenses: ExpenseService = Depends(expense_service),
):
    expense = expenses.update(expense_id, data)
    return success("Expense record updated", ExpenseOut.model_validate(expense))


@app.delete("/api/v1/expense/{expense_id}")
def delete_expense(expense_id: int, expenses: ExpenseService = Depends(expense_service)):
    expenses.soft_delete(expense_id)
    return success("Expense record deleted")


# inventory


@app.get("/api/v1/inventory")
def list_inventory(items: InventoryService = Depends(inventory_service)):
    rows = [InventoryItemOut.model_validate(row) for row in items.list_all()]
    return success("Inventory retrieved", rows)


@app.post("/api/v1/inventory")
def create_inventory_item(
    data: InventoryItemIn, items: InventoryService = Depends(inventory_service)
):
    item = items.create(data)
    return success("Inventory item created", InventoryItemOut.model_validate(item))


@app.get("/api/v1/inventory/low-stock")
def low_stock_items(items: InventoryService = Depends(inventory_service)):
    rows = [InventoryItemOut.model_validate(row) for row in items.low_stock()]
    return success("Low stock items retrieved", rows)


@app.get("/api/v1/inventory/{item_id}")
def get_inventory_item(item_id: int, items: InventoryService = Depends(inventory_service)):
    return success(
        "Inventory item retrieved", InventoryItemOut.model_validate(items.get(item_id))
    )


@app.put("/api/v1/inventory/{item_id}")
def update_inventory_item(
    item_id: int,
    data: InventoryItemIn,
    items: InventoryService = Depends(inventory_service),
):
    item = items.update(item_id, data)
    return success("Inventory item updated", InventoryItemOut.model_validate(item))


@app.patch("/api/v1/inventory/{item_id}/quantity")
def update_inventory_quantity(
    item_id: int,
    data: QuantityIn,
    items: InventoryService = Depends(inventory_service),
):
    item = items.update_quantity(item_id, data.quantity)
    return success("Inventory quantity updated", InventoryItemOut.model_validate(item))


@app.delete("/api/v1/inventory/{item_id}")
def delete_inventory_item(
    item_id: int, items: InventoryService = Depends(inventory_service)
):
    items.soft_delete(item_id)
    return success("Inventory item deleted")


# analytics


@app.get("/api/v1/analytics/summary")
def financial_summary(analytics: AnalyticsService = Depends(analytics_service)):
    return success("Financial summary retrieved", analytics.financial_summary())


@app.get("/api/v1/analytics/monthly")
def monthly_data(
    year: Optional[str] = None,
    analytics: AnalyticsService = Depends(analytics_service),
):
    return success("Monthly data retrieved", analytics.monthly_data(year_from_query(year)))


@app.get("/api/v1/analytics/expense-breakdown")
def expense_breakdown(analytics: AnalyticsService = Depends(analytics_service)):
    return success("Expense breakdown retrieved", analytics.expense_breakdown())


@app.get("/api/v1/analytics/income-breakdown")
def income_breakdown(analytics: AnalyticsService = Depends(analytics_service)):
    return success("Income breakdown retrieved", analytics.income_breakdown())


# mine site


@app.get("/api/v1/mine-site")
def get_mine_site(sites: MineSiteService = Depends(mine_site_service)):
    site = sites.get()
    if site is None:
        raise HTTPException(status_code=404, detail="Mine site not found")
    return success("Mine site retrieved", MineSiteOut.model_validate(site))


@app.put("/api/v1/mine-site")
def save_mine_site(data: MineSiteIn, sites: MineSiteService = Depends(mine_site_service)):
    site = sites.upsert(data)
    return success("Mine site saved", MineSiteOut.model_validate(site))


# admin


@app.get("/api/v1/admin/users")
def admin_list_users(
    _admin: TokenClaims = Depends(require_admin),
    users: UserService = Depends(user_service),
):
    rows = [UserOut.model_validate(user) for user in users.list_all()]
    return success("Users retrieved", rows)


@app.delete("/api/v1/admin/users/{user_id}")
def admin_delete_user(
    user_id: int,
    admin: TokenClaims = Depends(require_admin),
    users: UserService = Depends(user_service),
):
    if user_id == admin.user_id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    users.delete_by_id(user_id)
    logger.info(f"admin_delete_user: user_id={user_id} by={admin.user_id}")
    return success("User deleted successfully")


def main():
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        timeout_graceful_shutdown=settings.shutdown_timeout_secs,
    )


if __name__ == "__main__":
    main()
