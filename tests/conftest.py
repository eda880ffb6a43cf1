"""Shared fixtures: both store implementations, a ledger, a directory and an API client."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from account_service import AccountDirectory, Ledger
from account_service.auth import create_token
from account_service.db import init_db, make_engine
from account_service.stores import memory_unit_of_work, sql_unit_of_work


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'accounts.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(params=["memory", "sqlite"])
def uow_factory(request):
    if request.param == "memory":
        return memory_unit_of_work()
    return sql_unit_of_work(request.getfixturevalue("sqlite_engine"))


@pytest.fixture
def clock():
    """Clock that moves one second forward on every call."""
    start = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
    ticks = itertools.count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def ledger(uow_factory, clock) -> Ledger:
    return Ledger(uow_factory, clock=clock, retry_backoff=0)


@pytest.fixture
def directory(uow_factory) -> AccountDirectory:
    return AccountDirectory(uow_factory)


@pytest.fixture
def client(sqlite_engine):
    from account_service.main import app, get_directory, get_ledger

    factory = sql_unit_of_work(sqlite_engine)
    app.dependency_overrides[get_ledger] = lambda: Ledger(factory, retry_backoff=0)
    app.dependency_overrides[get_directory] = lambda: AccountDirectory(factory)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_header():
    def header(account_id: int) -> dict:
        return {"Authorization": f"Bearer {create_token(account_id)}"}
    return header
