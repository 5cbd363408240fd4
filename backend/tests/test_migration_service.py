"""
Persons API — Migration Service Tests
=======================================

What:  Tests for MigrationRunner (retry/backoff control flow) and
       AlembicMigrator (real `alembic upgrade` against SQLite).
How:   The runner gets a scripted migrate callable and a sleep recorder, so
       no test actually waits for the backoff delays.
"""

import logging
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from alembic.util import CommandError
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from app.exceptions import MigrationError
from app.services.migration_service import (
    AlembicMigrator,
    MigrationOutcome,
    MigrationResult,
    MigrationRunner,
)

RUNNER_LOGGER = "app.services.migration_service"
ENGINE_FACTORY = "app.services.migration_service.create_async_engine"


class ScriptedMigrate:
    """Migrate callable that fails `failures` times, then succeeds."""

    def __init__(self, failures: int = 0, fatal: bool = False):
        self.failures = failures
        self.fatal = fatal
        self.calls = 0

    async def __call__(self) -> MigrationResult:
        self.calls += 1
        if self.fatal:
            return MigrationResult.fatal(RuntimeError("broken revision script"))
        if self.calls <= self.failures:
            return MigrationResult.transient(ConnectionRefusedError(f"db not ready ({self.calls})"))
        return MigrationResult.succeeded()


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class TestMigrationRunnerAttempts:
    """Attempt counting against the retry budget."""

    @pytest.mark.asyncio
    async def test_first_attempt_success_never_sleeps(self):
        migrate, sleep = ScriptedMigrate(), SleepRecorder()
        result = await MigrationRunner(migrate, max_retries=10, sleep=sleep).run()

        assert result.outcome is MigrationOutcome.SUCCEEDED
        assert migrate.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "max_retries,failures",
        [(0, 0), (1, 1), (3, 1), (3, 3), (10, 4), (10, 10)],
    )
    async def test_success_after_failures_within_budget(self, max_retries, failures):
        migrate, sleep = ScriptedMigrate(failures=failures), SleepRecorder()
        result = await MigrationRunner(
            migrate, max_retries=max_retries, initial_delay=1.0, sleep=sleep
        ).run()

        assert result.ok
        assert migrate.calls == failures + 1
        assert len(sleep.delays) == failures

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_retries", [0, 1, 3, 10])
    async def test_always_failing_stops_after_budget(self, max_retries):
        migrate, sleep = ScriptedMigrate(failures=1000), SleepRecorder()
        runner = MigrationRunner(migrate, max_retries=max_retries, initial_delay=1.0, sleep=sleep)

        with pytest.raises(MigrationError) as exc_info:
            await runner.run()

        assert migrate.calls == max_retries + 1
        assert len(sleep.delays) == max_retries
        assert exc_info.value.attempts == max_retries + 1
        assert isinstance(exc_info.value.cause, ConnectionRefusedError)

    @pytest.mark.asyncio
    async def test_fatal_result_is_not_retried(self):
        migrate, sleep = ScriptedMigrate(fatal=True), SleepRecorder()

        with pytest.raises(MigrationError) as exc_info:
            await MigrationRunner(migrate, max_retries=10, sleep=sleep).run()

        assert migrate.calls == 1
        assert sleep.delays == []
        assert exc_info.value.attempts == 1
        assert "broken revision script" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_exception_from_migrate_propagates_unretried(self):
        sleep = SleepRecorder()
        calls = []

        async def exploding_migrate():
            calls.append(1)
            raise KeyError("bug in migrate callable")

        with pytest.raises(KeyError):
            await MigrationRunner(exploding_migrate, max_retries=5, sleep=sleep).run()

        assert len(calls) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_default_sleep_is_real_asyncio_sleep(self):
        migrate = ScriptedMigrate(failures=2)
        result = await MigrationRunner(migrate, max_retries=2, initial_delay=0.0).run()

        assert result.ok
        assert migrate.calls == 3

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError):
            MigrationRunner(ScriptedMigrate(), max_retries=-1)

    def test_defaults(self):
        runner = MigrationRunner(ScriptedMigrate())
        assert runner.max_retries == 10
        assert runner.max_attempts == 11
        assert runner.initial_delay == 5.0
        assert runner.max_delay == 30.0


class TestMigrationRunnerBackoff:
    """Delay schedule: doubling from the initial delay, capped at the ceiling."""

    @pytest.mark.asyncio
    async def test_default_schedule_doubles_then_caps(self):
        sleep = SleepRecorder()
        with pytest.raises(MigrationError):
            await MigrationRunner(ScriptedMigrate(failures=1000), max_retries=6, sleep=sleep).run()

        assert sleep.delays == pytest.approx([5.0, 10.0, 20.0, 30.0, 30.0, 30.0])

    @pytest.mark.asyncio
    async def test_each_delay_is_min_of_double_and_ceiling(self):
        sleep = SleepRecorder()
        with pytest.raises(MigrationError):
            await MigrationRunner(
                ScriptedMigrate(failures=1000),
                max_retries=10,
                initial_delay=0.7,
                max_delay=12.0,
                sleep=sleep,
            ).run()

        assert sleep.delays[0] == pytest.approx(0.7)
        for previous, current in zip(sleep.delays, sleep.delays[1:]):
            assert current == pytest.approx(min(previous * 2, 12.0))
        assert max(sleep.delays) <= 12.0

    @pytest.mark.asyncio
    async def test_initial_delay_above_ceiling_is_capped(self):
        sleep = SleepRecorder()
        with pytest.raises(MigrationError):
            await MigrationRunner(
                ScriptedMigrate(failures=1000),
                max_retries=2,
                initial_delay=45.0,
                max_delay=30.0,
                sleep=sleep,
            ).run()

        assert sleep.delays == pytest.approx([30.0, 30.0])


class TestMigrationRunnerLogging:

    @pytest.mark.asyncio
    async def test_two_failures_then_success_scenario(self, caplog):
        """R=2, 100ms initial delay, fails twice, succeeds on attempt 3."""
        caplog.set_level(logging.INFO, logger=RUNNER_LOGGER)
        migrate, sleep = ScriptedMigrate(failures=2), SleepRecorder()

        result = await MigrationRunner(
            migrate, max_retries=2, initial_delay=0.1, sleep=sleep
        ).run()

        records = [r for r in caplog.records if r.name == RUNNER_LOGGER]
        attempt_logs = [
            r for r in records
            if r.levelno == logging.INFO and "Applying database migrations" in r.getMessage()
        ]
        warnings = [r for r in records if r.levelno == logging.WARNING]

        assert result.ok
        assert migrate.calls == 3
        assert [r.getMessage() for r in attempt_logs] == [
            "Applying database migrations (attempt 1/3)",
            "Applying database migrations (attempt 2/3)",
            "Applying database migrations (attempt 3/3)",
        ]
        assert len(warnings) == 2
        assert "Retrying in 0.1s" in warnings[0].getMessage()
        assert "Retrying in 0.2s" in warnings[1].getMessage()
        assert sleep.delays == pytest.approx([0.1, 0.2])
        assert sum(sleep.delays) == pytest.approx(0.3)
        assert not [r for r in records if r.levelno >= logging.ERROR]

    @pytest.mark.asyncio
    async def test_final_failure_logs_error(self, caplog):
        caplog.set_level(logging.INFO, logger=RUNNER_LOGGER)

        with pytest.raises(MigrationError):
            await MigrationRunner(
                ScriptedMigrate(failures=1000), max_retries=1, sleep=SleepRecorder()
            ).run()

        records = [r for r in caplog.records if r.name == RUNNER_LOGGER]
        errors = [r for r in records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert "failed after 2 attempt(s)" in errors[0].getMessage()
        # The last failure is reported as an error, not as a retry warning
        assert len([r for r in records if r.levelno == logging.WARNING]) == 1


class TestAlembicMigrator:
    """Real Alembic upgrades against a throwaway SQLite file."""

    @pytest.mark.asyncio
    async def test_upgrade_creates_persons_table(self, sqlite_url):
        result = await AlembicMigrator(sqlite_url)()

        assert result.outcome is MigrationOutcome.SUCCEEDED
        engine = create_async_engine(sqlite_url)
        try:
            async with engine.connect() as conn:
                tables = await conn.run_sync(lambda c: inspect(c).get_table_names())
        finally:
            await engine.dispose()
        assert "persons" in tables
        assert "alembic_version" in tables

    @pytest.mark.asyncio
    async def test_upgrade_is_idempotent(self, sqlite_url):
        assert (await AlembicMigrator(sqlite_url)()).ok
        assert (await AlembicMigrator(sqlite_url)()).ok

    @pytest.mark.asyncio
    async def test_unknown_driver_is_fatal(self):
        result = await AlembicMigrator("nosuchdialect+nosuchdriver://db/x")()

        assert result.outcome is MigrationOutcome.FATAL_FAILURE
        assert result.error is not None

    @pytest.mark.asyncio
    async def test_unreachable_database_is_transient(self, tmp_path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'missing-dir' / 'persons.db'}"
        result = await AlembicMigrator(url)()

        assert result.outcome is MigrationOutcome.TRANSIENT_FAILURE

    @pytest.mark.asyncio
    async def test_missing_script_directory_is_fatal(self, sqlite_url, tmp_path):
        migrator = AlembicMigrator(sqlite_url, script_location=str(tmp_path / "no-scripts"))
        result = await migrator()

        assert result.outcome is MigrationOutcome.FATAL_FAILURE

    @pytest.mark.asyncio
    async def test_runner_with_alembic_migrator(self, sqlite_url):
        result = await MigrationRunner(AlembicMigrator(sqlite_url), max_retries=0).run()
        assert result.ok


def _fake_engine(run_sync_error=None):
    """Engine double whose begin() yields a connection and dispose() is tracked."""
    connection = MagicMock()
    connection.run_sync = AsyncMock(side_effect=run_sync_error)

    @asynccontextmanager
    async def begin():
        yield connection

    engine = MagicMock()
    engine.begin = begin
    engine.dispose = AsyncMock()
    return engine


class TestAlembicMigratorEngineDisposal:
    """The per-attempt engine is disposed whatever the outcome."""

    @pytest.mark.asyncio
    async def test_disposed_after_success(self):
        engine = _fake_engine()
        with patch(ENGINE_FACTORY, return_value=engine):
            result = await AlembicMigrator("postgresql+asyncpg://db/persons")()

        assert result.ok
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disposed_after_transient_failure(self):
        engine = _fake_engine(run_sync_error=ConnectionRefusedError("refused"))
        with patch(ENGINE_FACTORY, return_value=engine):
            result = await AlembicMigrator("postgresql+asyncpg://db/persons")()

        assert result.outcome is MigrationOutcome.TRANSIENT_FAILURE
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disposed_after_fatal_command_error(self):
        engine = _fake_engine(run_sync_error=CommandError("Can't locate revision"))
        with patch(ENGINE_FACTORY, return_value=engine):
            result = await AlembicMigrator("postgresql+asyncpg://db/persons")()

        assert result.outcome is MigrationOutcome.FATAL_FAILURE
        engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_each_attempt_disposes_its_engine(self):
        engines = [
            _fake_engine(run_sync_error=ConnectionRefusedError("refused")),
            _fake_engine(),
        ]
        sleep = SleepRecorder()
        with patch(ENGINE_FACTORY, side_effect=engines):
            runner = MigrationRunner(
                AlembicMigrator("postgresql+asyncpg://db/persons"),
                max_retries=1,
                initial_delay=0.1,
                sleep=sleep,
            )
            result = await runner.run()

        assert result.ok
        for engine in engines:
            engine.dispose.assert_awaited_once()
