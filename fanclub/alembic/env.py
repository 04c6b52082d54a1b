import logging
from logging.config import fileConfig

from alembic import context

from fanclub.db import engine as app_engine, make_engine

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

log = logging.getLogger("alembic.env.fanclub")

# Schema lives in hand-written revisions; there is no ORM metadata to diff.
target_metadata = None
VERSION_TABLE = "fanclub_alembic_version"


def _engine():
    """App engine, unless `alembic -x db_url=...` points somewhere else."""
    override = context.get_x_argument(as_dictionary=True).get("db_url")
    return make_engine(override) if override else app_engine


def _configure(**kwargs) -> None:
    eng = kwargs.pop("eng")
    context.configure(
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        # SQLite needs batch mode for ALTER TABLE
        render_as_batch=eng.dialect.name == "sqlite",
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    eng = _engine()
    log.info("emitting SQL for dialect=%s", eng.dialect.name)
    _configure(
        eng=eng,
        url=eng.url.render_as_string(hide_password=False),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    eng = _engine()
    log.info("migrating dialect=%s", eng.dialect.name)
    with eng.connect() as connection:
        _configure(eng=eng, connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
