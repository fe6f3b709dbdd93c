from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker
from app.core.config import settings


def configure_sqlite_engine(engine: Engine) -> None:
    """
    Make SQLite behave like the production database.

    Foreign keys (and ON DELETE CASCADE) are off unless enabled per
    connection. pysqlite also delays BEGIN until the first DML statement,
    which breaks SAVEPOINT and transactional DDL; BEGIN is emitted
    explicitly instead.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, **kwargs) -> Engine:
    url = make_url(database_url)
    connect_args = dict(kwargs.pop("connect_args", {}))
    backend = url.get_backend_name()
    if backend.startswith("postgresql"):
        connect_args.setdefault("options", "-c timezone=utc")
    elif backend == "sqlite":
        connect_args.setdefault("check_same_thread", False)

    engine = create_engine(
        database_url, pool_pre_ping=True, connect_args=connect_args, **kwargs
    )
    if backend == "sqlite":
        configure_sqlite_engine(engine)
    return engine


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
