"""
models/pool_config.py
---------------------
Connection pool settings. Built once at startup (see config.load_pool_config).
"""

from dataclasses import dataclass
from typing import Optional

from db.errors import ConfigurationError


@dataclass(frozen=True)
class PoolConfig:
    """
    Settings for a ConnectionPool.

    Attributes:
        driver: Importable DB-API module name, e.g. 'psycopg2' or 'sqlite3'.
        url: Connection URL / DSN / database path handed to the driver.
        username: Login user (None to leave it to the URL).
        password: Login password (None to leave it to the URL).
        initial_size: Connections opened on first use.
        max_size: Upper bound on physical connections (idle + checked out).
        acquire_increment: Connections opened at once when the pool runs dry.
        acquire_retry_attempts: Total connect attempts (at least one).
        acquire_retry_delay_ms: Pause between connect attempts.
        idle_test_period_sec: Period of the idle maintenance pass; <= 0 disables it.
        max_idle_time_sec: Idle connections older than this are closed; <= 0 keeps them.
        test_on_checkout: Probe idle connections before handing them out.
        test_on_checkin: Probe connections when they come back.
        break_after_acquire_failure: Mark the pool broken once all retries fail.
        checkout_timeout_ms: Max wait for a free connection; 0 waits forever.
        test_query: Statement used as the liveness probe.
    """
    driver: str
    url: str
    username: Optional[str] = None
    password: Optional[str] = None
    initial_size: int = 3
    max_size: int = 10
    acquire_increment: int = 1
    acquire_retry_attempts: int = 30
    acquire_retry_delay_ms: int = 1000
    idle_test_period_sec: int = 60
    max_idle_time_sec: int = 3000
    test_on_checkout: bool = True
    test_on_checkin: bool = True
    break_after_acquire_failure: bool = True
    checkout_timeout_ms: int = 0
    test_query: str = "SELECT 1"

    def __post_init__(self) -> None:
        if not self.driver:
            raise ConfigurationError("A database driver must be configured.")
        if self.max_size < 1:
            raise ConfigurationError(f"max_size must be at least 1, got {self.max_size}")
        if not 0 <= self.initial_size <= self.max_size:
            raise ConfigurationError(
                f"initial_size must be between 0 and max_size ({self.max_size}), got {self.initial_size}"
            )
        if self.acquire_increment < 1:
            raise ConfigurationError(f"acquire_increment must be at least 1, got {self.acquire_increment}")
        if self.acquire_retry_attempts < 0 or self.acquire_retry_delay_ms < 0:
            raise ConfigurationError("Acquire retry attempts and delay cannot be negative.")
        if self.checkout_timeout_ms < 0:
            raise ConfigurationError(f"checkout_timeout_ms cannot be negative, got {self.checkout_timeout_ms}")

    @property
    def checkout_timeout(self) -> Optional[float]:
        """Checkout timeout in seconds, or None to wait forever."""
        return self.checkout_timeout_ms / 1000 if self.checkout_timeout_ms else None

    @property
    def retry_delay(self) -> float:
        return self.acquire_retry_delay_ms / 1000

    def __repr__(self) -> str:
        masked = "***" if self.password else None
        return (
            f"PoolConfig(driver={self.driver!r}, url={self.url!r}, username={self.username!r}, "
            f"password={masked!r}, initial_size={self.initial_size}, max_size={self.max_size})"
        )
