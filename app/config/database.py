"""
Database connection management using connection pooling.
"""
import logging
from contextlib import contextmanager
from typing import Generator, Any, Dict, Optional
import psycopg2
from psycopg2 import pool
from app.config.settings import get_config

logger = logging.getLogger(__name__)


class DatabasePool:
    """
    Thread-safe psycopg2 pool with an explicit lifecycle.

    The app opens it at startup and closes it at shutdown. Borrowing a
    connection before `initialize()` opens the pool lazily, which is what
    the Lambda handler relies on.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = config
        self._pool = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def initialize(self):
        """Initialize the connection pool if it doesn't exist"""
        if self._pool is None:
            try:
                config = self._config or get_config()
                self._pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=config.get("pool_min_conn", 1),
                    maxconn=config.get("pool_max_conn", 20),
                    host=config["postgres_host"],
                    port=config["postgres_port"],
                    database=config["postgres_db"],
                    user=config["postgres_user"],
                    password=config["postgres_password"]
                )
                logger.info("Database connection pool initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize database pool: {e}")
                raise

    def get_connection(self):
        """Get a connection from the pool"""
        if self._pool is None:
            self.initialize()
        return self._pool.getconn()

    def return_connection(self, conn):
        """Return a connection to the pool"""
        if self._pool is not None:
            self._pool.putconn(conn)

    def close_all(self):
        """Close all connections in the pool"""
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("Database connection pool closed")

    @contextmanager
    def connection(self) -> Generator[Any, None, None]:
        """
        Borrow a connection for one transaction.

        Commits when the block exits cleanly, rolls back on error, and always
        hands the connection back to the pool.
        Usage:
            with db.connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(...)
        """
        conn = self.get_connection()
        try:
            with conn:
                yield conn
        except psycopg2.Error as e:
            logger.error(f"Database connection error: {e}")
            raise
        finally:
            self.return_connection(conn)
