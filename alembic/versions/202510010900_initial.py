"""initial schema

Revision ID: 202510010900
Revises:
Create Date: 2025-10-01 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202510010900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("phone", sa.String(length=20)),
        sa.Column("location", sa.String(length=255)),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="standard"),
        sa.Column("otp_code", sa.String(length=6)),
        sa.Column("otp_expires_at", sa.DateTime()),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime()),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    op.create_table(
        "incomes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("item_name", sa.String(length=100)),
        sa.Column("mineral_type", sa.String(length=50), nullable=False),
        sa.Column("gemstone_type", sa.String(length=50)),
        sa.Column(
            "sales_type", sa.String(length=20), nullable=False, server_default="mineral"
        ),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(length=20), nullable=False),
        sa.Column("price_per_unit", sa.Float(), nullable=False),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("customer_name", sa.String(length=100), nullable=False),
        sa.Column("customer_contact", sa.String(length=100)),
        sa.Column(
            "payment_status", sa.String(length=20), nullable=False, server_default="unpaid"
        ),
        sa.Column("amount_paid", sa.Float(), nullable=False, server_default="0"),
        sa.Column("amount_due", sa.Float(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime()),
        sa.CheckConstraint("quantity >= 0", name="ck_incomes_quantity_positive"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_incomes_paid_positive"),
    )
    op.create_index("ix_incomes_user_date", "incomes", ["user_id", "date"])
    op.create_index("ix_incomes_user_status", "incomes", ["user_id", "payment_status"])
    op.create_index("ix_incomes_deleted_at", "incomes", ["deleted_at"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("supplier_name", sa.String(length=100), nullable=False),
        sa.Column("supplier_contact", sa.String(length=100)),
        sa.Column(
            "payment_status", sa.String(length=20), nullable=False, server_default="unpaid"
        ),
        sa.Column("amount_paid", sa.Float(), nullable=False, server_default="0"),
        sa.Column("amount_due", sa.Float(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime()),
        sa.CheckConstraint("amount >= 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_expenses_paid_positive"),
    )
    op.create_index("ix_expenses_user_date", "expenses", ["user_id", "date"])
    op.create_index("ix_expenses_user_category", "expenses", ["user_id", "category"])
    op.create_index("ix_expenses_deleted_at", "expenses", ["deleted_at"])

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("source", sa.String(length=20)),
        sa.Column("pit_number", sa.String(length=50)),
        sa.Column("miner_name", sa.String(length=100)),
        sa.Column("batch_number", sa.String(length=50)),
        sa.Column("processing_method", sa.String(length=100)),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(length=20), nullable=False),
        sa.Column("min_stock_level", sa.Float(), nullable=False, server_default="0"),
        sa.Column("current_value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime()),
        sa.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_positive"),
    )
    op.create_index("ix_inventory_user_name", "inventory_items", ["user_id", "name"])
    op.create_index("ix_inventory_items_deleted_at", "inventory_items", ["deleted_at"])

    op.create_table(
        "mine_sites",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("owner", sa.String(length=100), nullable=False),
        sa.Column("license", sa.String(length=100)),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("size_hectares", sa.Float()),
        sa.Column("number_of_pits", sa.Integer()),
        sa.Column("commodities", sa.Text()),
        sa.Column("equipment", sa.Text()),
        sa.Column("employees", sa.Integer()),
        sa.Column("established_year", sa.Integer()),
        sa.Column("contact", sa.String(length=100)),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_mine_site_user"),
    )


def downgrade():
    op.drop_table("mine_sites")
    op.drop_index("ix_inventory_items_deleted_at", table_name="inventory_items")
    op.drop_index("ix_inventory_user_name", table_name="inventory_items")
    op.drop_table("inventory_items")
    op.drop_index("ix_expenses_deleted_at", table_name="expenses")
    op.drop_index("ix_expenses_user_category", table_name="expenses")
    op.drop_index("ix_expenses_user_date", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_incomes_deleted_at", table_name="incomes")
    op.drop_index("ix_incomes_user_status", table_name="incomes")
    op.drop_index("ix_incomes_user_date", table_name="incomes")
    op.drop_table("incomes")
    op.drop_index("ix_users_deleted_at", table_name="users")
    op.drop_table("users")
