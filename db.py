import psycopg2
from psycopg2.pool import SimpleConnectionPool
from contextlib import contextmanager
from settings import settings
import psycopg2.extras
_pool: SimpleConnectionPool | None = None


def db_enabled() -> bool:
    return bool((settings.DATABASE_URL or "").strip())


def init_pool():
    """
    Initialize the PostgreSQL connection pool.
    Called lazily on first use; never when DATABASE_URL is blank.
    """
    if not db_enabled():
        raise RuntimeError("DATABASE_URL is not set.")
    psycopg2.extras.register_uuid()
    global _pool
    if _pool is None:
        _pool = SimpleConnectionPool(
            minconn=1,
            maxconn=5,
            dsn=settings.DATABASE_URL,
            connect_timeout=5,
        )


def close_pool():
    """
    Gracefully close all pooled connections.
    """
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


@contextmanager
def get_conn():
    """
    Provides a transactional DB connection.
    Auto-commits on success, rolls back on error.
    """
    if _pool is None:
        init_pool()

    conn = _pool.getconn()

    try:
        with conn.cursor() as cur:
            cur.execute("SET statement_timeout = '5000ms';")
            cur.execute("SET application_name = 'umapesa_relay';")

        yield conn
        conn.commit()

    except Exception:
        conn.rollback()
        raise

    finally:
        _pool.putconn(conn)
