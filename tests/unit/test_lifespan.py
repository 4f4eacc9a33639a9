from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI

from newsdesk.core import lifespan as lifespan_module
from newsdesk.core.lifespan import lifespan, verify_database_connection


def _mock_engine() -> MagicMock:
    engine = MagicMock()
    engine.dispose = AsyncMock()
    return engine


@pytest.mark.asyncio
async def test_verify_database_connection_success() -> None:
    """Test that database connection verification succeeds when DB is available."""
    mock_engine = _mock_engine()
    mock_conn = AsyncMock()
    mock_conn.__aenter__ = AsyncMock(return_value=mock_conn)
    mock_conn.__aexit__ = AsyncMock(return_value=None)
    mock_engine.connect.return_value = mock_conn

    with patch("newsdesk.core.lifespan.get_engine", return_value=mock_engine):
        await verify_database_connection()

    mock_engine.connect.assert_called_once()
    mock_conn.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_verify_database_connection_failure() -> None:
    """Test that database connection verification raises on failure."""
    mock_engine = _mock_engine()
    mock_engine.connect.side_effect = Exception("Connection failed")

    with patch("newsdesk.core.lifespan.get_engine", return_value=mock_engine):
        with pytest.raises(RuntimeError, match="Failed to connect to database"):
            await verify_database_connection()


@pytest.mark.asyncio
async def test_lifespan_skips_db_check_in_test_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that lifespan skips database verification in test environment."""
    monkeypatch.setattr(lifespan_module.settings, "environment", "test")
    with (
        patch("newsdesk.core.lifespan.get_engine", return_value=_mock_engine()),
        patch("newsdesk.core.lifespan.verify_database_connection") as mock_verify,
    ):
        async with lifespan(FastAPI()):
            pass

        mock_verify.assert_not_called()


@pytest.mark.asyncio
async def test_lifespan_verifies_db_in_non_test_environment(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that lifespan verifies database in non-test environments."""
    monkeypatch.setattr(lifespan_module.settings, "environment", "local")
    with (
        patch("newsdesk.core.lifespan.get_engine", return_value=_mock_engine()),
        patch(
            "newsdesk.core.lifespan.verify_database_connection", new_callable=AsyncMock
        ) as mock_verify,
    ):
        async with lifespan(FastAPI()):
            pass

        mock_verify.assert_awaited_once()


@pytest.mark.asyncio
async def test_lifespan_drains_background_tasks_and_disposes_engine(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test the shutdown order: detached tasks first, then the engine."""
    monkeypatch.setattr(lifespan_module.settings, "environment", "test")
    mock_engine = _mock_engine()
    with (
        patch("newsdesk.core.lifespan.get_engine", return_value=mock_engine),
        patch(
            "newsdesk.core.lifespan.drain_detached_tasks", new_callable=AsyncMock
        ) as mock_drain,
    ):
        async with lifespan(FastAPI()):
            pass

    mock_drain.assert_awaited_once()
    mock_engine.dispose.assert_awaited_once()


@pytest.mark.asyncio
async def test_lifespan_disposes_engine_even_if_startup_fails(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test that engine is disposed even if startup verification fails."""
    monkeypatch.setattr(lifespan_module.settings, "environment", "local")
    mock_engine = _mock_engine()
    with (
        patch("newsdesk.core.lifespan.get_engine", return_value=mock_engine),
        patch(
            "newsdesk.core.lifespan.verify_database_connection",
            side_effect=RuntimeError("DB failed"),
        ),
    ):
        with pytest.raises(RuntimeError):
            async with lifespan(FastAPI()):
                pass

    # Engine should still be disposed even if startup fails
    mock_engine.dispose.assert_awaited_once()
