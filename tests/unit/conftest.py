"""Fixtures wiring the in-memory settlement fakes into service tests."""

from unittest.mock import AsyncMock

import pytest

from settlement_fakes import (
    FakeLedger,
    FakeMilestoneRepo,
    FakeOutbox,
    FakeReconciliation,
    FakeTransactionLog,
    FakeWithdrawalRepo,
    make_session,
)


@pytest.fixture
def db() -> AsyncMock:
    return make_session()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def milestones() -> FakeMilestoneRepo:
    return FakeMilestoneRepo()


@pytest.fixture
def withdrawals() -> FakeWithdrawalRepo:
    return FakeWithdrawalRepo()


@pytest.fixture
def tx_log() -> FakeTransactionLog:
    return FakeTransactionLog()


@pytest.fixture
def outbox() -> FakeOutbox:
    return FakeOutbox()


@pytest.fixture
def reconciliation() -> FakeReconciliation:
    return FakeReconciliation()
