"""initial schema: users, subscriptions, models, monthly_data, usage_tracking, sales

Revision ID: 3f1c2a9d0b7e
Revises:
Create Date: 2025-06-01 09:00:00.000000+00:00

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f1c2a9d0b7e"
down_revision = None
branch_labels = None
depends_on = None

# JSONB on Postgres, plain JSON text elsewhere
JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps(*names: str) -> list[sa.Column]:
    return [sa.Column(n, sa.TIMESTAMP(timezone=True), nullable=False) for n in names]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Text(), primary_key=True),  # Supabase auth user id
        sa.Column("email", sa.Text()),
        sa.Column("name", sa.Text()),
        sa.Column("role", sa.Text(), nullable=False, server_default="user"),
        sa.Column("plan", sa.Text(), nullable=False, server_default="free"),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("data_usage_bytes", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("api_calls_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("last_login_at", sa.TIMESTAMP(timezone=True)),
        *_timestamps("created_at"),
    )

    op.create_table(
        "subscriptions",
        sa.Column("user_id", sa.Text(), primary_key=True),  # one row per user
        sa.Column("stripe_customer_id", sa.Text()),
        sa.Column("stripe_subscription_id", sa.Text()),
        sa.Column("price_id", sa.Text()),
        sa.Column(
            "status", sa.Text(), nullable=False, server_default="incomplete"
        ),  # incomplete | active | trialing | past_due | canceled
        sa.Column("current_period_start", sa.TIMESTAMP(timezone=True)),
        sa.Column("current_period_end", sa.TIMESTAMP(timezone=True)),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index("ix_subscriptions_customer", "subscriptions", ["stripe_customer_id"])

    op.create_table(
        "models",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("user_id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        *_timestamps("created_at", "updated_at"),
    )
    op.create_index("ix_models_user", "models", ["user_id"])

    op.create_table(
        "monthly_data",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("model_id", sa.Text(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("data", JSON_TYPE, nullable=False),
        sa.Column("analysis", JSON_TYPE),
        sa.Column("data_size_bytes", sa.BigInteger(), nullable=False, server_default="0"),
        *_timestamps("created_at", "updated_at"),
        sa.UniqueConstraint("user_id", "model_id", "year", "month", name="uq_monthly_data_period"),
    )
    op.create_index("ix_monthly_data_user", "monthly_data", ["user_id", "year", "month"])

    op.create_table(
        "usage_tracking",
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("date", sa.Text(), nullable=False),  # YYYY-MM-DD (UTC)
        sa.Column("data_transfer_bytes", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("api_calls_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("storage_bytes", sa.BigInteger(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("user_id", "date"),
    )
    op.create_index("ix_usage_tracking_date", "usage_tracking", ["date"])

    op.create_table(
        "sales",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("subscription_id", sa.Text()),
        sa.Column("stripe_payment_intent_id", sa.Text()),
        sa.Column("amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("purchased_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_sales_user", "sales", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_sales_user", table_name="sales")
    op.drop_table("sales")
    op.drop_index("ix_usage_tracking_date", table_name="usage_tracking")
    op.drop_table("usage_tracking")
    op.drop_index("ix_monthly_data_user", table_name="monthly_data")
    op.drop_table("monthly_data")
    op.drop_index("ix_models_user", table_name="models")
    op.drop_table("models")
    op.drop_index("ix_subscriptions_customer", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_table("users")
