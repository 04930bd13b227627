import os
from typing import Optional

from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool


DATABASE_URL = os.environ.get("DATABASE_URL")

pool: Optional[ConnectionPool] = None


def init_pool(conninfo: Optional[str] = None, *, min_size: int = 1, max_size: int = 5) -> ConnectionPool:
    global pool
    if pool is not None:
        return pool
    conninfo = conninfo or DATABASE_URL
    if not conninfo:
        raise RuntimeError("DATABASE_URL is not set")

    pool = ConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        max_idle=5,
        timeout=10,
        # Dict rows keep the repository mapping simple.
        kwargs={"row_factory": dict_row},
    )
    return pool


def close_pool() -> None:
    global pool
    if pool is not None:
        pool.close()
        pool = None


def get_pool() -> ConnectionPool:
    if pool is None:
        raise RuntimeError("Database pool is not initialized")
    return pool
