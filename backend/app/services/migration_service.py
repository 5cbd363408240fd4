"""
Persons API — Startup Migration Service
=========================================

What:  Brings the database schema up to date before the API serves traffic.
Why:   In container deployments the API often starts before the database
       accepts connections. Early failures are expected and must not crash
       the service, but the service must never serve requests against an
       unmigrated schema either.
How:   MigrationRunner drives a migrate capability (any async callable that
       returns a MigrationResult) with tenacity: capped exponential backoff
       on transient results, immediate stop on fatal ones, MigrationError
       when the retry budget runs out. AlembicMigrator is the production
       capability: `alembic upgrade head` on a dedicated connection.
When:  Once, inside the FastAPI lifespan, before `yield`.

State Machine:
    ATTEMPTING ──success──────────────▶ SUCCEEDED
        │  ▲
        │  └──delay elapsed── BACKOFF_WAIT   (delay = min(delay * 2, max_delay))
        │                        ▲
        ├──transient, budget left┘
        └──transient and budget spent, or fatal ──▶ FATAL_FAILED (raises)

Retry Budget:
    max_retries = R allows R + 1 attempts in total: the first attempt plus
    R retries. R = 0 means a single attempt with no waiting.

Backoff Schedule (defaults, seconds):
    5 → 10 → 20 → 30 → 30 → ...
    tenacity's wait_exponential computes initial * 2 ** (attempt - 1) capped
    at max_delay, which is the same sequence as doubling the previous delay.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.exc import ArgumentError, InvalidRequestError
from sqlalchemy.ext.asyncio import create_async_engine
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from app.config import settings
from app.exceptions import MigrationError

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Migration Result
# ══════════════════════════════════════════════════════════════════════════

class MigrationOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    TRANSIENT_FAILURE = "transient_failure"
    FATAL_FAILURE = "fatal_failure"


@dataclass(frozen=True)
class MigrationResult:
    """
    What a single migration attempt reports back to the runner.

    The runner branches on `outcome`; `error` is kept for logging and for
    the MigrationError raised when the runner gives up.
    """

    outcome: MigrationOutcome
    error: Optional[BaseException] = None

    @classmethod
    def succeeded(cls) -> "MigrationResult":
        return cls(MigrationOutcome.SUCCEEDED)

    @classmethod
    def transient(cls, error: BaseException) -> "MigrationResult":
        return cls(MigrationOutcome.TRANSIENT_FAILURE, error)

    @classmethod
    def fatal(cls, error: BaseException) -> "MigrationResult":
        return cls(MigrationOutcome.FATAL_FAILURE, error)

    @property
    def ok(self) -> bool:
        return self.outcome is MigrationOutcome.SUCCEEDED

    @property
    def is_transient(self) -> bool:
        return self.outcome is MigrationOutcome.TRANSIENT_FAILURE


MigrateCallable = Callable[[], Awaitable[MigrationResult]]


def _is_transient(result: MigrationResult) -> bool:
    return result.is_transient


# ══════════════════════════════════════════════════════════════════════════
# Migration Runner
# ══════════════════════════════════════════════════════════════════════════

class MigrationRunner:
    """
    Retries a migrate capability with capped exponential backoff.

    Args:
        migrate:        Async callable performing one migration attempt
        max_retries:    Retries after the first attempt (R → R + 1 attempts)
        initial_delay:  Seconds to wait after the first failure
        max_delay:      Ceiling for the doubled delay, in seconds
        sleep:          Awaitable sleep used between attempts; tests pass a
                        recorder instead of waiting for real

    Logging:
        INFO before each attempt, WARNING for each transient failure that
        will be retried, ERROR when the runner gives up.
    """

    def __init__(
        self,
        migrate: MigrateCallable,
        max_retries: int = 10,
        initial_delay: float = 5.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if initial_delay < 0 or max_delay < 0:
            raise ValueError("delays must be >= 0")
        self.migrate = migrate
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def run(self) -> MigrationResult:
        """
        Run the migration until it succeeds or can no longer be retried.

        Returns:
            The successful MigrationResult.

        Raises:
            MigrationError: The capability reported a fatal failure, or every
                            one of the max_retries + 1 attempts failed.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_delay, max=self.max_delay),
            retry=retry_if_result(_is_transient),
            before=self._log_attempt,
            before_sleep=self._log_retry,
            # Budget spent on a transient result: hand the last result back
            # instead of raising RetryError, and decide below
            retry_error_callback=lambda state: state.outcome.result(),
            sleep=self._sleep,
        )

        attempts = 0

        async def attempt() -> MigrationResult:
            nonlocal attempts
            attempts += 1
            return await self.migrate()

        result = await retrying(attempt)

        if result.ok:
            logger.info("Database migration completed after %d attempt(s)", attempts)
            return result

        logger.error(
            "Database migration failed after %d attempt(s) (%s): %s",
            attempts,
            result.outcome.value,
            result.error,
        )
        raise MigrationError(attempts=attempts, cause=result.error)

    def _log_attempt(self, retry_state: RetryCallState) -> None:
        logger.info(
            "Applying database migrations (attempt %d/%d)",
            retry_state.attempt_number,
            self.max_attempts,
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        result: MigrationResult = retry_state.outcome.result()
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Migration attempt %d/%d failed: %s. Retrying in %.1fs",
            retry_state.attempt_number,
            self.max_attempts,
            result.error,
            delay,
        )


# ══════════════════════════════════════════════════════════════════════════
# Alembic Migrate Capability
# ══════════════════════════════════════════════════════════════════════════

class AlembicMigrator:
    """
    One `alembic upgrade` attempt against a dedicated connection.

    How:
        1. Build an async engine with NullPool (no pooled connections survive
           the attempt)
        2. Open a connection inside a transaction and hand it to Alembic via
           config.attributes["connection"]; env.py runs on that connection
        3. Dispose the engine whatever happened

    Classification:
        - Engine construction errors (malformed URL, unknown driver) and
          Alembic CommandError (missing/broken revision scripts) are fatal:
          the same input fails the same way on every retry.
        - Everything else (connection refused, database starting up, auth
          not yet provisioned, timeouts) is transient.
    """

    def __init__(
        self,
        database_url: str,
        script_location: Optional[str] = None,
        revision: str = "head",
    ):
        self.database_url = database_url
        self.script_location = script_location or settings.alembic_script_location
        self.revision = revision

    def alembic_config(self) -> Config:
        """Programmatic Alembic config; no alembic.ini, so logging is left alone."""
        config = Config()
        config.set_main_option("script_location", self.script_location)
        return config

    async def __call__(self) -> MigrationResult:
        try:
            engine = create_async_engine(self.database_url, poolclass=pool.NullPool)
        except (ArgumentError, InvalidRequestError, ImportError) as e:
            return MigrationResult.fatal(e)

        try:
            async with engine.begin() as connection:
                await connection.run_sync(self._upgrade)
        except CommandError as e:
            return MigrationResult.fatal(e)
        except Exception as e:
            return MigrationResult.transient(e)
        finally:
            await engine.dispose()

        return MigrationResult.succeeded()

    def _upgrade(self, connection: Connection) -> None:
        config = self.alembic_config()
        config.attributes["connection"] = connection
        command.upgrade(config, self.revision)
