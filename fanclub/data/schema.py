# Schema bootstrap (SQLite + Postgres)
# Tables:
#   users(id, email, name, role, plan, status, data_usage_bytes, api_calls_count,
#         last_login_at, created_at)
#   subscriptions(user_id UNIQUE, stripe_customer_id, stripe_subscription_id, price_id,
#                 status, current_period_start, current_period_end, created_at, updated_at)
#   models(id, user_id, name, display_name, description, status, created_at, updated_at,
#          PRIMARY KEY(user_id, id))
#   monthly_data(id, user_id, model_id, year, month, data, analysis, data_size_bytes,
#                created_at, updated_at, UNIQUE(user_id, model_id, year, month))
#   usage_tracking(user_id, date, data_transfer_bytes, api_calls_count, storage_bytes,
#                  PRIMARY KEY(user_id, date))
#   sales(id, user_id, subscription_id, stripe_payment_intent_id, amount, status, purchased_at)
import threading

from sqlalchemy import text

from fanclub.db import engine, is_postgres

_INIT_LOCK = threading.Lock()

TABLES = ("users", "subscriptions", "models", "monthly_data", "usage_tracking", "sales")


def _ddl() -> list[str]:
    ts = "TIMESTAMPTZ" if is_postgres() else "TEXT"
    js = "JSONB" if is_postgres() else "TEXT"
    return [
        f"""
        CREATE TABLE IF NOT EXISTS users(
            id TEXT PRIMARY KEY,
            email TEXT,
            name TEXT,
            role TEXT NOT NULL DEFAULT 'user',
            plan TEXT NOT NULL DEFAULT 'free',
            status TEXT NOT NULL DEFAULT 'active',
            data_usage_bytes BIGINT NOT NULL DEFAULT 0,
            api_calls_count BIGINT NOT NULL DEFAULT 0,
            last_login_at {ts},
            created_at {ts} NOT NULL
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS subscriptions(
            user_id TEXT PRIMARY KEY,
            stripe_customer_id TEXT,
            stripe_subscription_id TEXT,
            price_id TEXT,
            status TEXT NOT NULL DEFAULT 'incomplete',
            current_period_start {ts},
            current_period_end {ts},
            created_at {ts} NOT NULL,
            updated_at {ts} NOT NULL
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS models(
            id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            name TEXT NOT NULL,
            display_name TEXT,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'active',
            created_at {ts} NOT NULL,
            updated_at {ts} NOT NULL,
            PRIMARY KEY(user_id, id)
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS monthly_data(
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            model_id TEXT NOT NULL,
            year INT NOT NULL,
            month INT NOT NULL,
            data {js} NOT NULL,
            analysis {js},
            data_size_bytes BIGINT NOT NULL DEFAULT 0,
            created_at {ts} NOT NULL,
            updated_at {ts} NOT NULL,
            UNIQUE(user_id, model_id, year, month)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS usage_tracking(
            user_id TEXT NOT NULL,
            date TEXT NOT NULL,
            data_transfer_bytes BIGINT NOT NULL DEFAULT 0,
            api_calls_count BIGINT NOT NULL DEFAULT 0,
            storage_bytes BIGINT NOT NULL DEFAULT 0,
            PRIMARY KEY(user_id, date)
        )
        """,
        f"""
        CREATE TABLE IF NOT EXISTS sales(
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            subscription_id TEXT,
            stripe_payment_intent_id TEXT,
            amount BIGINT NOT NULL DEFAULT 0,
            status TEXT NOT NULL,
            purchased_at {ts} NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS ix_subscriptions_customer ON subscriptions(stripe_customer_id)",
        "CREATE INDEX IF NOT EXISTS ix_models_user ON models(user_id)",
        "CREATE INDEX IF NOT EXISTS ix_monthly_data_user ON monthly_data(user_id, year, month)",
        "CREATE INDEX IF NOT EXISTS ix_usage_tracking_date ON usage_tracking(date)",
        "CREATE INDEX IF NOT EXISTS ix_sales_user ON sales(user_id)",
    ]


def init_db():
    with _INIT_LOCK:
        with engine.begin() as conn:
            for stmt in _ddl():
                conn.execute(text(stmt))
