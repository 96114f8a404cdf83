from models.user import User
from models.auth_session import AuthSession
from models.post import Post
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import scoped_session, sessionmaker
from sqlalchemy.exc import SQLAlchemyError
from models.base_model import Base

# Map model names for easy querying
classes = {
    "User": User,
    "AuthSession": AuthSession,
    "Post": Post,
}

# execution option read by the SQLite "begin" listener
BEGIN_MODE = "sqlite_begin_mode"


def _is_memory_sqlite(url) -> bool:
    return url.database in (None, "", ":memory:") or url.query.get("mode") == "memory"


class DBStorage:
    """
    Process-wide database handle. Nothing is connected until configure()
    and reload() are called from the application factory.
    """
    __engine = None
    __session = None

    def configure(self, database_url: str, echo: bool = False):
        """Create the engine for database_url (disposing any previous one)"""
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite" and _is_memory_sqlite(url):
            # each thread would need the one shared connection, and SQLite
            # cannot keep two transactions apart on a single connection
            raise RuntimeError("in-memory SQLite is not supported; use a database file")

        if self.__session is not None:
            self.__session.remove()
        if self.__engine is not None:
            self.__engine.dispose()

        kwargs = {"echo": echo}
        if url.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        else:
            kwargs["pool_pre_ping"] = True
        self.__engine = create_engine(url, **kwargs)

        if self.__engine.url.get_backend_name() == "sqlite":
            @event.listens_for(self.__engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                # take BEGIN away from pysqlite; see _begin
                dbapi_connection.isolation_level = None
                cursor = dbapi_connection.cursor()
                # Enable SQLite foreign keys (needed for ON DELETE CASCADE)
                cursor.execute("PRAGMA foreign_keys=ON")
                # readers never block a committing writer
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.close()

            @event.listens_for(self.__engine, "begin")
            def _begin(conn):
                # reads stay DEFERRED; write_session() asks for IMMEDIATE so
                # writers queue on the lock instead of failing on upgrade
                mode = conn.get_execution_options().get(BEGIN_MODE, "DEFERRED")
                conn.exec_driver_sql(f"BEGIN {mode}")

    def reload(self):
        """Create tables and start session"""
        if self.__engine is None:
            raise RuntimeError("storage is not configured; call configure() first")
        Base.metadata.create_all(self.__engine)
        session_factory = sessionmaker(bind=self.__engine, expire_on_commit=False)
        self.__session = scoped_session(session_factory)

    def ping(self):
        """Round-trip to the database; raises if it is unreachable"""
        session = self.get_session()
        try:
            session.execute(text("SELECT 1"))
        finally:
            session.rollback()

    def new(self, obj):
        """Add object to session"""
        self.get_session().add(obj)

    def save(self):
        """Commit session"""
        session = self.get_session()
        try:
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise

    def write_session(self):
        """
        Return the session with a write transaction already open.

        Whatever the session was doing before is committed first, so the
        new transaction starts by taking the write lock (BEGIN IMMEDIATE
        on SQLite) rather than upgrading a read lock halfway through.
        """
        session = self.get_session()
        if session().in_transaction():
            self.save()
        session.connection(execution_options={BEGIN_MODE: "IMMEDIATE"})
        return session

    def get(self, cls, id):
        """Fetch one object by class and ID"""
        if cls in classes.values():
            return self.get_session().get(cls, id)
        return None

    def close(self):
        """Remove session (for API teardown)"""
        if self.__session is not None:
            self.__session.remove()

    # expose the SQLAlchemy session for advanced querying (joins, filters, etc.)
    def get_session(self):
        if self.__session is None:
            raise RuntimeError("storage is not initialised; call reload() first")
        return self.__session
