from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, scoped_session

from inventory_optimization.config import config
from inventory_optimization.exceptions import DatabaseError

class Database:
    """Database connection manager for the Inventory Optimization System."""

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Database, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the database connection if not already initialized."""
        if self._initialized:
            return

        self._engine = None
        self._session_factory = None
        self._session = None
        self._initialized = True

    def initialize(self, connection_string=None):
        """Initialize database connection.

        Args:
            connection_string: Optional database connection string.
                              If not provided, will use configuration.
        """
        if connection_string is None:
            connection_string = config.get_db_url()

        echo = config.get_boolean('DATABASE', 'echo', False)
        url = make_url(connection_string)

        if self._engine is not None:
            self.dispose()

        try:
            if url.get_backend_name() == 'sqlite':
                # Sessions are opened from batch worker threads
                self._engine = create_engine(
                    connection_string,
                    echo=echo,
                    connect_args={'check_same_thread': False}
                )
            else:
                self._engine = create_engine(
                    connection_string,
                    echo=echo,
                    pool_size=config.get_int('DATABASE', 'pool_size', 10),
                    max_overflow=config.get_int('DATABASE', 'max_overflow', 20),
                    pool_timeout=config.get_int('DATABASE', 'pool_timeout', 30),
                    pool_recycle=config.get_int('DATABASE', 'pool_recycle', 1800)
                )
        except Exception as e:
            raise DatabaseError(f"Failed to initialize database connection: {str(e)}")

        self._session_factory = sessionmaker(bind=self._engine, autoflush=False)
        self._session = scoped_session(self._session_factory)

    def dispose(self):
        """Release the engine and any thread-local sessions."""
        if self._session is not None:
            self._session.remove()
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None
        self._session = None

    def create_all_tables(self):
        """Create all tables defined in the models."""
        from inventory_optimization.models import Base
        Base.metadata.create_all(self.engine)

    def drop_all_tables(self):
        """Drop all tables from the database."""
        from inventory_optimization.models import Base
        Base.metadata.drop_all(self.engine)

    @property
    def session(self):
        """Get the thread-local session registry."""
        if self._session is None:
            self.initialize()
        return self._session

    @property
    def engine(self):
        """Get the database engine."""
        if self._engine is None:
            self.initialize()
        return self._engine

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope around a series of operations."""
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
            self.session.remove()

    def check_connection(self):
        """Run a trivial query to make sure the database is reachable."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except Exception as e:
            raise DatabaseError(f"Database connection test failed: {str(e)}")

# Global database instance
db = Database()

@contextmanager
def session_scope():
    """Session scope context manager."""
    with db.session_scope() as session:
        yield session
