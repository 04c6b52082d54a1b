import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url

# Local .env for dev runs; real environment variables win
load_dotenv()

log = logging.getLogger(__name__)

DB_ECHO = os.getenv("DB_ECHO") == "1"
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/fanclub.db")

SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA busy_timeout=5000",
    "PRAGMA foreign_keys=ON",
)


def _sqlite_engine(url: str) -> Engine:
    database = make_url(url).database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)

    eng = create_engine(
        url,
        future=True,
        pool_pre_ping=True,
        # request handlers run in a threadpool
        connect_args={"check_same_thread": False},
        echo=DB_ECHO,
    )

    @event.listens_for(eng, "connect")
    def _apply_pragmas(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        try:
            for pragma in SQLITE_PRAGMAS:
                cur.execute(pragma)
        finally:
            cur.close()

    return eng


def _postgres_engine(url: str) -> Engine:
    # Supabase pooler drops idle connections; recycle below its timeout
    return create_engine(
        url,
        future=True,
        pool_pre_ping=True,
        pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "10")),
        pool_recycle=int(os.getenv("DB_POOL_RECYCLE_S", "300")),
        echo=DB_ECHO,
    )


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite:"):
        return _sqlite_engine(url)
    return _postgres_engine(url)


engine = make_engine(DATABASE_URL)


def dialect() -> str:
    return engine.dialect.name


def is_postgres() -> bool:
    return dialect() == "postgresql"


log.info("DB engine ready (dialect=%s)", dialect())
