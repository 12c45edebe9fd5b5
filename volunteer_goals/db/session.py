from contextlib import contextmanager
from pathlib import Path
from typing import Callable, ContextManager, Iterator

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from volunteer_goals.config import settings

SessionFactory = Callable[[], ContextManager[Session]]


def build_database_url(sqlite_path: str | None = None) -> str:
    db_path = Path(sqlite_path or settings.sqlite_path)
    if not db_path.is_absolute():
        db_path = Path.cwd() / db_path
    db_path = db_path.resolve()
    return f"sqlite+pysqlite:///{db_path.as_posix()}"


def make_engine(url: str) -> Engine:
    new_engine = create_engine(url, future=True)

    @event.listens_for(new_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    return new_engine


def make_session_factory(bind: Engine) -> SessionFactory:
    maker = sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )

    @contextmanager
    def _session_scope() -> Iterator[Session]:
        session = maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return _session_scope


engine = make_engine(build_database_url())
get_session = make_session_factory(engine)
