"""Shared pytest fixtures for the API tests."""

import asyncio
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import database
import main


@pytest.fixture
def mock_db(monkeypatch):
    """In-memory database with the real indexes, swapped in for the motor handle."""
    mock = AsyncMongoMockClient()["prodvent_test"]
    asyncio.run(database.ensure_indexes(mock))
    monkeypatch.setattr(database, "db", mock)
    monkeypatch.setattr(main, "db", mock)
    return mock


@pytest.fixture
def client(mock_db) -> Generator[TestClient, None, None]:
    """TestClient without the startup hook, so no real MongoDB is contacted."""
    yield TestClient(main.app)
