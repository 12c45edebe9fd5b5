import sys
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

root_path = Path(__file__).resolve().parents[3]
if str(root_path) not in sys.path:
    sys.path.insert(0, str(root_path))

from volunteer_goals.db.models import Base
from volunteer_goals.db.session import build_database_url

config = context.config
# `alembic -x sqlite_path=/tmp/goals.db upgrade head` migrates another file
x_args = context.get_x_argument(as_dictionary=True)
if x_args.get("sqlite_path") or not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", build_database_url(x_args.get("sqlite_path")))

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
