"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os

from dotenv import load_dotenv

from models.pool_config import PoolConfig

load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# ── Database ──────────────────────────────────────────────
# DB_DRIVER names an importable DB-API module (psycopg2, sqlite3, ...).
DB_DRIVER: str = os.getenv("DB_DRIVER", "psycopg2")

DB_HOST: str = os.getenv("DB_HOST", "localhost")
DB_PORT: int = _env_int("DB_PORT", 5432)
DB_NAME: str = os.getenv("DB_NAME", "postgres")
DB_USER: str = os.getenv("DB_USER", "")
DB_PASS: str = os.getenv("DB_PASS", "")

# Credentials travel separately, so the URL only names the server and database.
DB_URL: str = os.getenv("DB_URL", f"postgresql://{DB_HOST}:{DB_PORT}/{DB_NAME}")

# ── Connection Pool ───────────────────────────────────────
POOL_INITIAL_SIZE: int = _env_int("POOL_INITIAL_SIZE", 3)
POOL_MAX_SIZE: int = _env_int("POOL_MAX_SIZE", 10)
POOL_ACQUIRE_INCREMENT: int = _env_int("POOL_ACQUIRE_INCREMENT", 1)
POOL_ACQUIRE_RETRY_ATTEMPTS: int = _env_int("POOL_ACQUIRE_RETRY_ATTEMPTS", 30)
POOL_ACQUIRE_RETRY_DELAY_MS: int = _env_int("POOL_ACQUIRE_RETRY_DELAY_MS", 1000)
POOL_IDLE_TEST_PERIOD_SEC: int = _env_int("POOL_IDLE_TEST_PERIOD_SEC", 60)
POOL_MAX_IDLE_TIME_SEC: int = _env_int("POOL_MAX_IDLE_TIME_SEC", 3000)
POOL_TEST_ON_CHECKOUT: bool = _env_bool("POOL_TEST_ON_CHECKOUT", True)
POOL_TEST_ON_CHECKIN: bool = _env_bool("POOL_TEST_ON_CHECKIN", True)
POOL_BREAK_AFTER_ACQUIRE_FAILURE: bool = _env_bool("POOL_BREAK_AFTER_ACQUIRE_FAILURE", True)
POOL_CHECKOUT_TIMEOUT_MS: int = _env_int("POOL_CHECKOUT_TIMEOUT_MS", 0)
POOL_TEST_QUERY: str = os.getenv("POOL_TEST_QUERY", "SELECT 1")

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
# Log every executed statement with its arguments inlined (DEBUG on db.executor).
LOG_SQL: bool = _env_bool("LOG_SQL", False)


def load_pool_config() -> PoolConfig:
    """
    Build a PoolConfig from the constants above.

    Returns:
        A validated PoolConfig.

    Raises:
        db.errors.ConfigurationError: If the pool settings are inconsistent.
    """
    return PoolConfig(
        driver=DB_DRIVER,
        url=DB_URL,
        username=DB_USER or None,
        password=DB_PASS or None,
        initial_size=POOL_INITIAL_SIZE,
        max_size=POOL_MAX_SIZE,
        acquire_increment=POOL_ACQUIRE_INCREMENT,
        acquire_retry_attempts=POOL_ACQUIRE_RETRY_ATTEMPTS,
        acquire_retry_delay_ms=POOL_ACQUIRE_RETRY_DELAY_MS,
        idle_test_period_sec=POOL_IDLE_TEST_PERIOD_SEC,
        max_idle_time_sec=POOL_MAX_IDLE_TIME_SEC,
        test_on_checkout=POOL_TEST_ON_CHECKOUT,
        test_on_checkin=POOL_TEST_ON_CHECKIN,
        break_after_acquire_failure=POOL_BREAK_AFTER_ACQUIRE_FAILURE,
        checkout_timeout_ms=POOL_CHECKOUT_TIMEOUT_MS,
        test_query=POOL_TEST_QUERY,
    )
